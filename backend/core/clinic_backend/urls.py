from django.contrib import admin
from django.http import JsonResponse
from django.urls import path
from rest_framework.authtoken.views import obtain_auth_token

from ledger.views import FinancialTransactionListAPIView
from payments.views import GatewayWebhookAPIView, ProcessPaymentAPIView


def healthz(_request):
    return JsonResponse({"status": "ok"})


urlpatterns = [
    path("healthz/", healthz, name="healthz"),
    path("admin/", admin.site.urls),
    path("api/auth/token/", obtain_auth_token, name="api-token-auth"),
    path("api/payments/process/", ProcessPaymentAPIView.as_view(), name="payments-process"),
    path("api/payments/webhook/", GatewayWebhookAPIView.as_view(), name="payments-webhook"),
    path(
        "api/ledger/transactions/",
        FinancialTransactionListAPIView.as_view(),
        name="ledger-transactions",
    ),
]

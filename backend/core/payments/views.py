from __future__ import annotations

import hashlib
import hmac
import json
import logging
from uuid import uuid4

from rest_framework import status as drf_status
from rest_framework.exceptions import APIException
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from ledger.models import FinancialTransaction
from ledger.services import attach_gateway_payment
from payments.config import PaymentConfig
from payments.exceptions import PaymentProcessingError, PaymentValidationError
from payments.serializers import GatewayWebhookSerializer, PaymentRequestSerializer
from payments.services import PaymentRequest, process_payment, resolve_gateway
from tenancy.logging import mask_sensitive

logger = logging.getLogger(__name__)

SETTLING_EVENTS = {"PAYMENT_RECEIVED", "PAYMENT_CONFIRMED"}


def _error(message: str, http_status: int, **extra) -> Response:
    return Response({"ok": False, "error": message, **extra}, status=http_status)


def _parse_signature(value: str) -> str:
    raw = (value or "").strip()
    if raw.lower().startswith("sha256="):
        raw = raw.split("=", 1)[1].strip()
    return raw


def _get_correlation_id(request) -> str:
    correlation_id = (request.headers.get("X-Correlation-ID") or "").strip()
    if not correlation_id:
        correlation_id = (request.headers.get("X-Request-ID") or "").strip()
    return correlation_id or str(uuid4())


class ProcessPaymentAPIView(APIView):
    """Split a captured payment and record it in the clinic ledger."""

    permission_classes = [IsAuthenticated]

    def get_config(self) -> PaymentConfig:
        return PaymentConfig.from_settings()

    def post(self, request):
        serializer = PaymentRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return _error("Invalid payment request.", drf_status.HTTP_400_BAD_REQUEST, details=serializer.errors)

        config = self.get_config()
        data = serializer.validated_data

        idempotency_key = (request.headers.get("Idempotency-Key") or "").strip()[:100] or None
        fee_percent = data.get("platform_fee_percent")
        payment = PaymentRequest(
            clinic_id=data["clinic_id"],
            appointment_id=data.get("appointment_id"),
            professional_id=data["professional_id"],
            amount_cents=data["amount_cents"],
            platform_fee_percent=config.default_platform_fee_percent if fee_percent is None else fee_percent,
            commission_model=data.get("commission_model") or "commissioned",
            commission_rate=data.get("commission_rate"),
            rental_base_cents=data.get("rental_base_cents"),
            payment_method=data.get("payment_method", ""),
            gateway_payment_id=data.get("gateway_payment_id"),
            idempotency_key=idempotency_key,
        )

        try:
            outcome = process_payment(
                payment,
                config=config,
                gateway=resolve_gateway(config),
                request=request,
            )
        except PaymentValidationError as exc:
            return _error(str(exc), exc.http_status, details=exc.details)
        except PaymentProcessingError as exc:
            if exc.http_status >= 500:
                logger.error(
                    "payments.process.failed clinic_id=%s error=%s",
                    payment.clinic_id,
                    mask_sensitive(str(exc)),
                )
            return _error(str(exc), exc.http_status)

        return Response(
            outcome.as_response(),
            status=drf_status.HTTP_201_CREATED if outcome.created else drf_status.HTTP_200_OK,
        )

    def handle_exception(self, exc):
        if isinstance(exc, APIException):
            return super().handle_exception(exc)
        logger.exception("payments.process.exception error=%s", mask_sensitive(str(exc)))
        return _error("Payment processing error.", drf_status.HTTP_500_INTERNAL_SERVER_ERROR)


class GatewayWebhookAPIView(APIView):
    """Gateway payment confirmations.

    Authenticated by an HMAC-SHA256 signature of the raw body. Do NOT expose
    this endpoint without signature validation.
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    def get_config(self) -> PaymentConfig:
        return PaymentConfig.from_settings()

    def post(self, request):
        correlation_id = _get_correlation_id(request)
        raw_body: bytes = request.body or b""

        secret = self.get_config().webhook_secret
        if not secret:
            logger.error("payments.webhook.secret_missing correlation_id=%s", correlation_id)
            return _error("Webhook secret is not configured.", drf_status.HTTP_503_SERVICE_UNAVAILABLE)

        provided = _parse_signature(request.headers.get("X-Gateway-Signature", ""))
        expected = hmac.new(
            secret.encode("utf-8"),
            msg=raw_body,
            digestmod=hashlib.sha256,
        ).hexdigest()
        if not provided or not hmac.compare_digest(provided, expected):
            logger.warning("payments.webhook.signature_invalid correlation_id=%s", correlation_id)
            return _error("Invalid signature.", drf_status.HTTP_401_UNAUTHORIZED)

        try:
            payload = json.loads(raw_body.decode("utf-8") or "{}")
        except (UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("payments.webhook.json_invalid correlation_id=%s", correlation_id)
            return _error("Invalid JSON.", drf_status.HTTP_400_BAD_REQUEST)

        serializer = GatewayWebhookSerializer(data=payload)
        if not serializer.is_valid():
            return _error("Invalid webhook payload.", drf_status.HTTP_400_BAD_REQUEST, details=serializer.errors)

        event = serializer.validated_data["event"].strip().upper()
        gateway_payment = serializer.validated_data["payment"]
        reference = gateway_payment["externalReference"].strip()

        logger.info(
            "payments.webhook.received event=%s payment_id=%s reference=%s correlation_id=%s",
            event,
            gateway_payment["id"],
            reference,
            correlation_id,
        )

        if not FinancialTransaction.all_objects.filter(uniqueness_key=reference).exists():
            return _error("Financial transaction not found.", drf_status.HTTP_404_NOT_FOUND)

        try:
            record = attach_gateway_payment(
                reference,
                gateway_payment["id"],
                settled=event in SETTLING_EVENTS,
                request=request,
            )
        except PaymentProcessingError as exc:
            logger.warning(
                "payments.webhook.rejected reference=%s correlation_id=%s error=%s",
                reference,
                correlation_id,
                exc,
            )
            return _error(str(exc), drf_status.HTTP_409_CONFLICT)

        return Response(
            {
                "ok": True,
                "transaction_id": str(record.id),
                "status": record.status,
                "settlement_status": record.settlement_status,
                "correlation_id": correlation_id,
            },
            status=drf_status.HTTP_200_OK,
        )

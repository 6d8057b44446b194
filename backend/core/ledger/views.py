from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from ledger.models import FinancialTransaction
from ledger.serializers import FinancialTransactionSerializer
from ledger.services import _safe_uuid


class FinancialTransactionListAPIView(APIView):
    """Reconciliation listing of ledger rows, newest first."""

    permission_classes = [IsAdminUser]

    def get(self, request):
        try:
            limit = int(request.query_params.get("limit", "200"))
        except ValueError:
            limit = 200
        limit = max(1, min(limit, 1000))

        queryset = FinancialTransaction.all_objects.all()

        clinic_param = request.query_params.get("clinic_id")
        if clinic_param:
            clinic_id = _safe_uuid(clinic_param)
            if clinic_id is None:
                return Response({"ok": False, "error": "clinic_id must be a UUID."}, status=400)
            queryset = queryset.filter(clinic_id=clinic_id)

        status_param = request.query_params.get("status")
        if status_param:
            queryset = queryset.filter(status=status_param)

        rows = queryset.order_by("-created_at", "id")[:limit]
        return Response(FinancialTransactionSerializer(rows, many=True).data)

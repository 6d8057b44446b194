from rest_framework import serializers

from ledger.models import FinancialTransaction


class FinancialTransactionSerializer(serializers.ModelSerializer):
    clinic_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = FinancialTransaction
        fields = (
            "id",
            "clinic_id",
            "appointment_id",
            "professional_id",
            "payment_method",
            "commission_model",
            "commission_rate",
            "platform_fee_percent",
            "amount_cents",
            "platform_fee_cents",
            "platform_fee_total_cents",
            "referral_fee_cents",
            "professional_share_cents",
            "clinic_share_cents",
            "referring_clinic_id",
            "status",
            "settlement_status",
            "uniqueness_key",
            "gateway_payment_id",
            "split_payload",
            "created_at",
            "settled_at",
        )
        read_only_fields = fields

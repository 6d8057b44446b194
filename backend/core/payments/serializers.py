from decimal import Decimal

from rest_framework import serializers

from commission.models import CommissionModel


class PaymentRequestSerializer(serializers.Serializer):
    clinic_id = serializers.UUIDField()
    appointment_id = serializers.UUIDField(required=False, allow_null=True)
    professional_id = serializers.UUIDField()
    amount_cents = serializers.IntegerField(min_value=0)
    platform_fee_percent = serializers.DecimalField(
        max_digits=None,
        decimal_places=None,
        min_value=Decimal("0"),
        max_value=Decimal("1"),
        required=False,
        allow_null=True,
    )
    commission_model = serializers.ChoiceField(
        choices=CommissionModel.choices,
        required=False,
        allow_null=True,
    )
    commission_rate = serializers.DecimalField(
        max_digits=None,
        decimal_places=None,
        min_value=Decimal("0"),
        max_value=Decimal("1"),
        required=False,
        allow_null=True,
    )
    rental_base_cents = serializers.IntegerField(min_value=0, required=False, allow_null=True)
    payment_method = serializers.CharField(max_length=40, required=False, allow_blank=True, default="")
    gateway_payment_id = serializers.CharField(
        max_length=100,
        required=False,
        allow_blank=True,
        allow_null=True,
    )

    def validate_payment_method(self, value):
        return (value or "").strip().lower()

    def validate_gateway_payment_id(self, value):
        return (value or "").strip() or None


class GatewayWebhookPaymentSerializer(serializers.Serializer):
    id = serializers.CharField(max_length=100)
    status = serializers.CharField(max_length=40, required=False, allow_blank=True, default="")
    externalReference = serializers.CharField(max_length=200)


class GatewayWebhookSerializer(serializers.Serializer):
    event = serializers.CharField(max_length=60)
    payment = GatewayWebhookPaymentSerializer()

from __future__ import annotations

import uuid

from django.core.exceptions import ValidationError
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from tenancy.context import get_current_clinic
from tenancy.managers import TenantManager
from tenancy.models import BaseTenantModel


class LedgerEntry(models.Model):
    """Append-only (immutable) audit entry.

    Tamper-evident through a hash chain per clinic ("clinic:<id>"). It is not a
    DB-level WORM store: DB superusers can still mutate rows; this ledger gives
    guarantees at the application boundary and makes tampering detectable.
    """

    ACTION_CREATE = "CREATE"
    ACTION_UPDATE = "UPDATE"
    ACTION_SYSTEM = "SYSTEM"
    ACTION_CHOICES = [
        (ACTION_CREATE, "Create"),
        (ACTION_UPDATE, "Update"),
        (ACTION_SYSTEM, "System"),
    ]

    clinic = models.ForeignKey(
        "customers.Clinic",
        on_delete=models.PROTECT,
        related_name="ledger_entries",
    )
    action = models.CharField(
        max_length=20,
        choices=ACTION_CHOICES,
        default=ACTION_SYSTEM,
    )
    event_type = models.CharField(max_length=120, blank=True)
    resource_label = models.CharField(max_length=200)
    resource_pk = models.CharField(max_length=64, blank=True)

    occurred_at = models.DateTimeField(default=timezone.now)
    request_id = models.UUIDField(null=True, blank=True)
    request_method = models.CharField(max_length=12, blank=True)
    request_path = models.CharField(max_length=255, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)

    # Hash chain fields (per chain_id).
    chain_id = models.CharField(max_length=80, db_index=True)
    prev_hash = models.CharField(max_length=64, blank=True, default="")
    entry_hash = models.CharField(max_length=64, unique=True)

    data_before = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    data_after = models.JSONField(null=True, blank=True, encoder=DjangoJSONEncoder)
    metadata = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)

    objects = TenantManager()
    all_objects = models.Manager()

    class Meta:
        ordering = ("-occurred_at", "-id")
        constraints = [
            models.UniqueConstraint(
                fields=("chain_id", "prev_hash"),
                name="uq_ledger_prev_hash_per_chain",
            ),
        ]
        indexes = [
            models.Index(
                fields=("chain_id", "occurred_at"),
                name="idx_ledger_chain_occurred",
            ),
        ]
        verbose_name = "Ledger Entry"
        verbose_name_plural = "Ledger Entries"

    def __str__(self) -> str:  # pragma: no cover - admin/debug helper
        return f"{self.occurred_at:%Y-%m-%d %H:%M:%S} [{self.chain_id}] {self.resource_label}:{self.action}"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValidationError("Ledger entries are immutable; updates are not allowed.")

        current_clinic = get_current_clinic()
        if self.clinic_id is None and current_clinic is not None:
            self.clinic = current_clinic
        if self.clinic_id is None:
            raise ValidationError("clinic is required for ledger entries.")
        if current_clinic is not None and self.clinic_id != current_clinic.id:
            raise ValidationError(
                "Cross-tenant ledger write blocked: entry clinic does not match request tenant."
            )

        if not self.chain_id:
            self.chain_id = f"clinic:{self.clinic_id}"

        if not self.entry_hash:
            raise ValidationError(
                "entry_hash is required. Use ledger.services.append_ledger_entry()."
            )

        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):  # pragma: no cover - enforced behavior
        raise ValidationError("Ledger entries are immutable; deletes are not allowed.")


class FinancialTransaction(BaseTenantModel):
    """Ledger row of one computed payment split.

    Created once per uniqueness key. Afterwards only the gateway attachment
    fields may change (see `ledger.services.apply_gateway_outcome` and
    `attach_gateway_payment`); rows are never deleted.
    """

    class GatewayStatus(models.TextChoices):
        NOT_ATTEMPTED = "not_attempted", "Not attempted"
        PENDING = "pending", "Pending transfer"
        SIMULATED = "simulated", "Simulated"
        COMPLETED = "completed", "Completed"
        FAILED = "failed", "Failed"

    class Settlement(models.TextChoices):
        COMPUTED = "computed", "Computed"
        SETTLED = "settled", "Settled"

    MUTABLE_FIELDS = frozenset(
        {"gateway_payment_id", "status", "settlement_status", "settled_at", "updated_at"}
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    appointment_id = models.UUIDField(null=True, blank=True, db_index=True)
    professional_id = models.UUIDField(db_index=True)
    payment_method = models.CharField(max_length=40, blank=True)

    commission_model = models.CharField(max_length=20)
    commission_rate = models.DecimalField(max_digits=7, decimal_places=6)
    rental_base_cents = models.PositiveBigIntegerField(default=0)
    platform_fee_percent = models.DecimalField(max_digits=7, decimal_places=6)

    amount_cents = models.PositiveBigIntegerField()
    platform_fee_cents = models.PositiveBigIntegerField()
    platform_fee_total_cents = models.PositiveBigIntegerField()
    referral_fee_cents = models.PositiveBigIntegerField(default=0)
    professional_share_cents = models.PositiveBigIntegerField()
    clinic_share_cents = models.PositiveBigIntegerField()
    referring_clinic_id = models.UUIDField(null=True, blank=True)

    status = models.CharField(
        max_length=20,
        choices=GatewayStatus.choices,
        default=GatewayStatus.NOT_ATTEMPTED,
        db_index=True,
    )
    settlement_status = models.CharField(
        max_length=20,
        choices=Settlement.choices,
        default=Settlement.COMPUTED,
        db_index=True,
    )
    uniqueness_key = models.CharField(max_length=200, unique=True)
    gateway_payment_id = models.CharField(max_length=100, null=True, blank=True, unique=True)
    split_payload = models.JSONField(default=dict, encoder=DjangoJSONEncoder)
    settled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ("-created_at", "id")
        verbose_name = "Financial Transaction"
        verbose_name_plural = "Financial Transactions"
        constraints = [
            models.CheckConstraint(
                condition=Q(platform_fee_total_cents=F("platform_fee_cents") + F("referral_fee_cents")),
                name="ck_fin_tx_platform_fee_split",
            ),
            models.CheckConstraint(
                condition=Q(
                    amount_cents=F("platform_fee_total_cents")
                    + F("professional_share_cents")
                    + F("clinic_share_cents")
                ),
                name="ck_fin_tx_conservation",
            ),
        ]
        indexes = [
            models.Index(
                fields=("clinic", "created_at"),
                name="idx_fin_tx_clinic_created",
            ),
            models.Index(
                fields=("status", "created_at"),
                name="idx_fin_tx_status_created",
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.uniqueness_key} {self.amount_cents} [{self.status}]"

    @property
    def is_settled(self) -> bool:
        return self.settlement_status == self.Settlement.SETTLED

    def save(self, *args, **kwargs):
        if not self._state.adding:
            update_fields = kwargs.get("update_fields")
            if not update_fields or not set(update_fields) <= self.MUTABLE_FIELDS:
                raise ValidationError(
                    "Financial transactions are immutable; only gateway attachment fields may change."
                )
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Financial transactions are kept for audit; deletes are not allowed.")


class PlatformFeeCharge(BaseTenantModel):
    """Platform fee the clinic owes because the payment bypassed the gateway split."""

    financial_transaction = models.OneToOneField(
        FinancialTransaction,
        related_name="fee_charge",
        on_delete=models.PROTECT,
    )
    amount_cents = models.PositiveBigIntegerField()
    billing_ref = models.CharField(max_length=120, blank=True, db_index=True)
    billed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ("created_at", "id")
        verbose_name = "Platform Fee Charge"
        verbose_name_plural = "Platform Fee Charges"

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.clinic_id} {self.amount_cents} {self.billing_ref or 'PENDING'}"

    @property
    def is_pending(self) -> bool:
        return not self.billing_ref

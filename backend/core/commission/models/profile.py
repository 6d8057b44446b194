from __future__ import annotations

import uuid
from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from tenancy.models import BaseTenantModel


class CommissionModel(models.TextChoices):
    """How the clinic and the professional divide the variable portion."""

    COMMISSIONED = "commissioned", "Commissioned"
    RENTAL = "rental", "Rental"
    HYBRID = "hybrid", "Hybrid"


class ProfessionalProfile(BaseTenantModel):
    """Commission configuration of a professional working at a clinic.

    Empty commission fields mean "not configured": the payment request (or the
    platform default) supplies the value at processing time.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    display_name = models.CharField(max_length=255)
    payout_wallet_id = models.CharField(
        max_length=64,
        blank=True,
        help_text="Gateway wallet that receives the professional share.",
    )
    commission_model = models.CharField(
        max_length=20,
        choices=CommissionModel.choices,
        blank=True,
        default="",
    )
    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=4,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("1"))],
        help_text="Clinic share of the amount left after the platform fee (0..1).",
    )
    rental_base_cents = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Periodic rental fee; billed separately, never deducted per payment.",
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ("display_name", "id")
        verbose_name = "Professional Profile"
        verbose_name_plural = "Professional Profiles"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(commission_rate__isnull=True)
                | models.Q(commission_rate__gte=0, commission_rate__lte=1),
                name="ck_prof_commission_rate_range",
            ),
        ]
        indexes = [
            models.Index(
                fields=("clinic", "is_active"),
                name="idx_prof_clinic_active",
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return self.display_name

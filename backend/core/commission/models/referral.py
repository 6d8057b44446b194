from __future__ import annotations

from django.core.exceptions import ValidationError
from django.db import models


class ClinicReferral(models.Model):
    """B2B referral: the referring clinic earns part of the platform fee
    charged on payments received by the referred clinic."""

    referring_clinic = models.ForeignKey(
        "customers.Clinic",
        related_name="referrals_made",
        on_delete=models.PROTECT,
    )
    referred_clinic = models.OneToOneField(
        "customers.Clinic",
        related_name="referral",
        on_delete=models.PROTECT,
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-created_at", "id")
        verbose_name = "Clinic Referral"
        verbose_name_plural = "Clinic Referrals"
        constraints = [
            models.CheckConstraint(
                condition=~models.Q(referring_clinic=models.F("referred_clinic")),
                name="ck_referral_not_self",
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.referring_clinic_id} -> {self.referred_clinic_id}"

    def clean(self):
        super().clean()
        if self.referring_clinic_id and self.referring_clinic_id == self.referred_clinic_id:
            raise ValidationError("A clinic cannot refer itself.")


class ReferralRule(models.Model):
    """Platform-wide referral fee, in hundredths of a percent (233 == 2.33%)."""

    platform_referral_percentage = models.PositiveIntegerField(
        help_text="Hundredths of a percent of the payment amount (233 == 2.33%).",
    )
    is_active = models.BooleanField(default=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-updated_at", "-id")
        verbose_name = "Referral Rule"
        verbose_name_plural = "Referral Rules"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(platform_referral_percentage__lte=10000),
                name="ck_referral_rule_max_100pct",
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.platform_referral_percentage / 100:.2f}%"

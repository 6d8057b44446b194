import uuid

from django.db import models


class Clinic(models.Model):
    """Tenant: a clinic hosting professionals and receiving payments."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=150)
    payout_wallet_id = models.CharField(
        max_length=64,
        blank=True,
        help_text="Gateway wallet that receives the clinic share of each split.",
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("name",)
        verbose_name = "Clinic"
        verbose_name_plural = "Clinics"

    def __str__(self):
        return self.name

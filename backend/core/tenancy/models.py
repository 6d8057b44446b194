from django.core.exceptions import ValidationError
from django.db import models

from tenancy.context import get_current_clinic
from tenancy.managers import TenantManager


class BaseTenantModel(models.Model):
    clinic = models.ForeignKey(
        "customers.Clinic",
        on_delete=models.PROTECT,
        related_name="%(app_label)s_%(class)s_set",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TenantManager()
    all_objects = models.Manager()

    class Meta:
        abstract = True

    def _enforce_clinic_scope(self):
        current_clinic = get_current_clinic()

        if self.clinic_id is None and current_clinic is not None:
            self.clinic = current_clinic

        if self.clinic_id is None:
            raise ValidationError("clinic is required.")

        if current_clinic is not None and self.clinic_id != current_clinic.id:
            raise ValidationError(
                "Cross-tenant write blocked: resource clinic does not match request tenant."
            )

    def save(self, *args, **kwargs):
        self._enforce_clinic_scope()
        return super().save(*args, **kwargs)

from django.db import models

from tenancy.context import get_current_clinic


class TenantQuerySet(models.QuerySet):
    def for_clinic(self, clinic):
        return self.filter(clinic=clinic)


class TenantManager(models.Manager.from_queryset(TenantQuerySet)):
    def get_queryset(self):
        queryset = super().get_queryset()
        clinic = get_current_clinic()
        if clinic is None:
            return queryset.none()
        return queryset.filter(clinic=clinic)

    def unsafe_all(self):
        return super().get_queryset()

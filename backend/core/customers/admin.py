from django.contrib import admin

from customers.models import Clinic


@admin.register(Clinic)
class ClinicAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "payout_wallet_id",
        "is_active",
        "created_at",
    )
    list_filter = ("is_active",)
    search_fields = ("name", "payout_wallet_id")
    readonly_fields = ("id", "created_at", "updated_at")

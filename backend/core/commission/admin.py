from django.contrib import admin

from commission.models import ClinicReferral, ProfessionalProfile, ReferralRule


@admin.register(ProfessionalProfile)
class ProfessionalProfileAdmin(admin.ModelAdmin):
    list_display = (
        "display_name",
        "clinic",
        "commission_model",
        "commission_rate",
        "rental_base_cents",
        "is_active",
    )
    list_filter = ("commission_model", "is_active")
    search_fields = ("display_name", "payout_wallet_id")
    readonly_fields = ("id", "created_at", "updated_at")

    def get_queryset(self, request):
        # Default manager is tenant-scoped; admin must see all profiles.
        return ProfessionalProfile.all_objects.select_related("clinic")


@admin.register(ClinicReferral)
class ClinicReferralAdmin(admin.ModelAdmin):
    list_display = ("referring_clinic", "referred_clinic", "is_active", "created_at")
    list_filter = ("is_active",)


@admin.register(ReferralRule)
class ReferralRuleAdmin(admin.ModelAdmin):
    list_display = ("platform_referral_percentage", "is_active", "updated_at")

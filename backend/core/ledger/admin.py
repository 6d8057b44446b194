from django.contrib import admin

from ledger.models import FinancialTransaction, LedgerEntry, PlatformFeeCharge


class ReadOnlyAdminMixin:
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(LedgerEntry)
class LedgerEntryAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = (
        "id",
        "clinic",
        "chain_id",
        "action",
        "event_type",
        "resource_label",
        "resource_pk",
        "occurred_at",
        "ip_address",
    )
    list_filter = ("action",)
    search_fields = ("event_type", "resource_label", "resource_pk", "chain_id")
    ordering = ("-occurred_at", "-id")
    readonly_fields = [field.name for field in LedgerEntry._meta.fields]

    def get_queryset(self, request):
        # Default manager is tenant-scoped; admin must see all entries.
        return LedgerEntry.all_objects.all()


@admin.register(FinancialTransaction)
class FinancialTransactionAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = (
        "id",
        "clinic",
        "payment_method",
        "commission_model",
        "amount_cents",
        "platform_fee_total_cents",
        "status",
        "settlement_status",
        "created_at",
    )
    list_filter = ("status", "settlement_status", "commission_model")
    search_fields = ("uniqueness_key", "gateway_payment_id")
    ordering = ("-created_at",)
    readonly_fields = [field.name for field in FinancialTransaction._meta.fields]

    def get_queryset(self, request):
        return FinancialTransaction.all_objects.select_related("clinic")


@admin.register(PlatformFeeCharge)
class PlatformFeeChargeAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ("id", "clinic", "amount_cents", "billing_ref", "billed_at", "created_at")
    search_fields = ("billing_ref",)
    readonly_fields = [field.name for field in PlatformFeeCharge._meta.fields]

    def get_queryset(self, request):
        return PlatformFeeCharge.all_objects.select_related("clinic")

from django.core.management.base import BaseCommand

from payments.billing import bill_pending_platform_fees, pending_fee_bills


class Command(BaseCommand):
    help = (
        "Group pending platform fees of offline payments into one billing reference per clinic. "
        "Default is dry-run."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--apply",
            action="store_true",
            help="Apply changes. Without this flag, command runs in dry-run mode.",
        )

    def handle(self, *args, **options):
        apply_changes = options.get("apply", False)
        bills = bill_pending_platform_fees() if apply_changes else pending_fee_bills()

        for bill in bills:
            self.stdout.write(
                f"clinic={bill.clinic_id} total_cents={bill.total_cents} "
                f"charges={len(bill.charge_ids)} billing_ref={bill.billing_ref or '-'}"
            )

        mode = "APPLY" if apply_changes else "DRY-RUN"
        total = sum(bill.total_cents for bill in bills)
        self.stdout.write(
            self.style.SUCCESS(f"[{mode}] clinics={len(bills)} total_cents={total}")
        )

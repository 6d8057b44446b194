from django.core.management.base import BaseCommand

from ledger.models import FinancialTransaction
from payments.config import PaymentConfig
from payments.retry import RETRYABLE_STATUSES, retry_pending_transfers
from payments.services import resolve_gateway


class Command(BaseCommand):
    help = (
        "Re-submit stored transfer instructions of ledger rows the gateway never completed. "
        "Default is dry-run."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--limit",
            type=int,
            default=100,
            help="Maximum number of rows to process.",
        )
        parser.add_argument(
            "--include-failed",
            action="store_true",
            help="Also retry rows whose last attempt was rejected by the gateway.",
        )
        parser.add_argument(
            "--apply",
            action="store_true",
            help="Apply changes. Without this flag, command runs in dry-run mode.",
        )

    def handle(self, *args, **options):
        limit = max(1, options.get("limit") or 100)
        include_failed = options.get("include_failed", False)

        if not options.get("apply"):
            statuses = RETRYABLE_STATUSES if include_failed else (FinancialTransaction.GatewayStatus.PENDING,)
            scanned = FinancialTransaction.all_objects.filter(status__in=statuses).count()
            self.stdout.write(self.style.SUCCESS(f"[DRY-RUN] scanned={min(scanned, limit)} retried=0"))
            return

        config = PaymentConfig.from_settings()
        results = retry_pending_transfers(
            resolve_gateway(config),
            limit=limit,
            include_failed=include_failed,
        )
        recovered = sum(1 for result in results if result.status != result.previous_status)
        self.stdout.write(
            self.style.SUCCESS(
                f"[APPLY] scanned={len(results)} retried={len(results)} recovered={recovered}"
            )
        )

from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import connection, transaction

from ledger.models import FinancialTransaction
from ledger.services import accepted_transfers, apply_gateway_outcome
from payments.gateway import GatewayAdapterBase
from payments.services import execute_gateway, untransferred_items

logger = logging.getLogger(__name__)

GatewayStatus = FinancialTransaction.GatewayStatus

RETRYABLE_STATUSES = (
    GatewayStatus.PENDING,
    GatewayStatus.FAILED,
)


@dataclass(frozen=True)
class RetryResult:
    transaction_id: str
    previous_status: str
    status: str


def _claim_row(row_id, statuses) -> FinancialTransaction | None:
    """Lock one candidate row for this run; None when another run holds it or it moved on."""

    qs = FinancialTransaction.all_objects
    if connection.features.has_select_for_update_skip_locked:
        qs = qs.select_for_update(skip_locked=True)
    elif connection.features.has_select_for_update:
        qs = qs.select_for_update()
    return qs.filter(pk=row_id, status__in=statuses).first()


def retry_pending_transfers(
    gateway: GatewayAdapterBase | None,
    *,
    limit: int = 100,
    include_failed: bool = False,
) -> list[RetryResult]:
    """Re-submit stored transfer instructions of rows the gateway never completed.

    The stored instructions are replayed as-is; the split is not recomputed.
    Instructions the gateway already accepted in an earlier attempt are never
    sent again. Each row is locked for the duration of its gateway call so
    overlapping runs skip it.
    """

    statuses = RETRYABLE_STATUSES if include_failed else (GatewayStatus.PENDING,)
    candidate_ids = list(
        FinancialTransaction.all_objects.filter(status__in=statuses)
        .order_by("created_at", "id")
        .values_list("id", flat=True)[:limit]
    )

    results: list[RetryResult] = []
    for row_id in candidate_ids:
        with transaction.atomic():
            row = _claim_row(row_id, statuses)
            if row is None:
                logger.info("payments.retry.skipped transaction_id=%s reason=claimed_or_resolved", row_id)
                continue

            items = list((row.split_payload or {}).get("transfers") or [])
            remaining = untransferred_items(items, accepted_transfers(row))
            if items and not remaining:
                status, transfers, provider_payment_id, error = GatewayStatus.COMPLETED, [], None, ""
            else:
                status, transfers, provider_payment_id, error = execute_gateway(
                    gateway,
                    remaining,
                    reference=row.uniqueness_key,
                )
            if status != row.status or provider_payment_id or error:
                apply_gateway_outcome(
                    row,
                    status,
                    gateway_payment_id=provider_payment_id,
                    transfers=transfers,
                    error=error,
                )

        logger.info(
            "payments.retry.applied transaction_id=%s previous_status=%s status=%s remaining=%s",
            row.id,
            row.status,
            status,
            len(remaining),
        )
        results.append(RetryResult(transaction_id=str(row.id), previous_status=row.status, status=status))

    return results

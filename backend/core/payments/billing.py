from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from django.db import connection, transaction
from django.db.models import Sum
from django.utils import timezone

from ledger.models import LedgerEntry, PlatformFeeCharge
from ledger.services import append_ledger_entry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClinicFeeBill:
    clinic_id: Any
    total_cents: int
    charge_ids: list[int] = field(default_factory=list)
    billing_ref: str = ""

    def as_dict(self) -> dict[str, Any]:
        return {
            "clinic_id": str(self.clinic_id),
            "total_cents": self.total_cents,
            "charges": len(self.charge_ids),
            "billing_ref": self.billing_ref,
        }


def _billing_ref(clinic_id, now: datetime) -> str:
    # Boleto issuance is simulated; the reference groups the charges it covers.
    return f"simulated-boleto-{clinic_id}-{int(now.timestamp() * 1000)}"


def pending_fee_bills() -> list[ClinicFeeBill]:
    """Pending platform fees grouped per clinic, without side effects."""

    rows = (
        PlatformFeeCharge.all_objects.filter(billing_ref="")
        .values("clinic_id")
        .annotate(total=Sum("amount_cents"))
        .order_by("clinic_id")
    )
    bills: list[ClinicFeeBill] = []
    for row in rows:
        charge_ids = list(
            PlatformFeeCharge.all_objects.filter(clinic_id=row["clinic_id"], billing_ref="")
            .order_by("id")
            .values_list("id", flat=True)
        )
        bills.append(
            ClinicFeeBill(
                clinic_id=row["clinic_id"],
                total_cents=int(row["total"] or 0),
                charge_ids=charge_ids,
            )
        )
    return bills


def bill_pending_platform_fees(*, now: datetime | None = None) -> list[ClinicFeeBill]:
    """Group every pending platform fee into one billing reference per clinic."""

    now = now or timezone.now()
    billed: list[ClinicFeeBill] = []

    for bill in pending_fee_bills():
        billing_ref = _billing_ref(bill.clinic_id, now)
        with transaction.atomic():
            qs = PlatformFeeCharge.all_objects.filter(id__in=bill.charge_ids, billing_ref="")
            if connection.features.has_select_for_update:
                qs = qs.select_for_update()
            charges = list(qs.select_related("clinic"))
            if not charges:
                continue
            total = sum(charge.amount_cents for charge in charges)
            PlatformFeeCharge.all_objects.filter(id__in=[charge.id for charge in charges]).update(
                billing_ref=billing_ref,
                billed_at=now,
                updated_at=now,
            )
            append_ledger_entry(
                clinic=charges[0].clinic,
                action=LedgerEntry.ACTION_SYSTEM,
                resource_label="ledger.PlatformFeeCharge",
                resource_pk=billing_ref,
                event_type="payments.fees.billed",
                data_after={"billing_ref": billing_ref, "total_cents": total},
                metadata={"charge_ids": [charge.id for charge in charges]},
            )

        logger.info(
            "payments.fees.billed clinic_id=%s total_cents=%s charges=%s billing_ref=%s",
            bill.clinic_id,
            total,
            len(charges),
            billing_ref,
        )
        billed.append(
            ClinicFeeBill(
                clinic_id=bill.clinic_id,
                total_cents=total,
                charge_ids=[charge.id for charge in charges],
                billing_ref=billing_ref,
            )
        )

    return billed

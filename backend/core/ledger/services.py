from __future__ import annotations

import hashlib
import json
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any, Iterable
from uuid import UUID, uuid4

from django.db import DatabaseError, IntegrityError, connection, transaction
from django.utils import timezone

from ledger.models import FinancialTransaction, LedgerEntry, PlatformFeeCharge
from payments.exceptions import LedgerInvariantError, PersistenceError

if TYPE_CHECKING:
    from commission.services import SplitResult
    from payments.services import PaymentRequest

logger = logging.getLogger(__name__)

# Rate columns keep six decimal places; the exact rate used by the split is in
# split_payload["inputs"].
_STORED_RATE = Decimal("0.000001")

_SPLIT_FIELDS = (
    "platform_fee_cents",
    "platform_fee_total_cents",
    "referral_fee_cents",
    "professional_share_cents",
    "clinic_share_cents",
)


def _stored_rate(value) -> Decimal:
    return Decimal(str(value)).quantize(_STORED_RATE, rounding=ROUND_HALF_UP)


def _canonical_json(value) -> str:
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
        default=str,
    )


def _safe_uuid(value: str) -> UUID | None:
    if not value:
        return None
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


def _extract_ip(request) -> str:
    if request is None:
        return ""
    # If behind a LB, X-Forwarded-For might contain a chain. We only keep the left-most.
    forwarded_for = (request.META.get("HTTP_X_FORWARDED_FOR") or "").strip()
    if forwarded_for:
        return forwarded_for.split(",", 1)[0].strip()
    return (request.META.get("REMOTE_ADDR") or "").strip()


def _build_entry_hash(payload: dict, prev_hash: str) -> str:
    payload_json = _canonical_json(payload)
    material = f"{prev_hash}{payload_json}".encode("utf-8")
    return hashlib.sha256(material).hexdigest()


def append_ledger_entry(
    *,
    clinic,
    action: str,
    resource_label: str,
    resource_pk: str,
    request=None,
    event_type: str = "",
    data_before: dict | None = None,
    data_after: dict | None = None,
    metadata: dict | None = None,
) -> LedgerEntry:
    """Append a new immutable audit entry to the clinic's hash chain.

    Retries on concurrent writers to keep a linear chain.
    """

    clinic_id = getattr(clinic, "id", None)
    if clinic_id is None:
        raise ValueError("clinic is required for ledger entries.")

    chain_id = f"clinic:{clinic_id}"

    occurred_at = timezone.now()
    request_id = None
    request_method = ""
    request_path = ""
    ip_address = ""
    if request is not None:
        request_id = _safe_uuid(request.headers.get("X-Request-ID", ""))
        request_method = (getattr(request, "method", "") or "").upper()
        request_path = getattr(request, "path", "") or ""
        ip_address = _extract_ip(request)

    if request_id is None:
        request_id = uuid4()

    metadata_payload = metadata if isinstance(metadata, dict) else {}
    if not event_type:
        event_type = f"{resource_label}.{action}"

    for _attempt in range(5):
        prev_hash = (
            LedgerEntry.all_objects.filter(chain_id=chain_id)
            .order_by("-id")
            .values_list("entry_hash", flat=True)
            .first()
            or ""
        )

        payload = {
            "chain_id": chain_id,
            "clinic_id": str(clinic_id),
            "action": action,
            "event_type": event_type,
            "resource_label": resource_label,
            "resource_pk": resource_pk,
            "occurred_at": occurred_at.isoformat(),
            "request_id": str(request_id),
            "request_method": request_method,
            "request_path": request_path,
            "ip_address": ip_address,
            "data_before": data_before,
            "data_after": data_after,
            "metadata": metadata_payload,
        }

        entry = LedgerEntry(
            clinic=clinic,
            action=action,
            event_type=event_type,
            resource_label=resource_label,
            resource_pk=resource_pk,
            occurred_at=occurred_at,
            request_id=request_id,
            request_method=request_method,
            request_path=request_path,
            ip_address=ip_address or None,
            chain_id=chain_id,
            prev_hash=prev_hash,
            entry_hash=_build_entry_hash(payload, prev_hash),
            data_before=data_before,
            data_after=data_after,
            metadata=metadata_payload,
        )

        try:
            with transaction.atomic():
                entry.save(force_insert=True)
            return entry
        except IntegrityError as exc:
            # Concurrent writers may race on prev_hash uniqueness. Retry with a new prev_hash.
            msg = str(exc)
            if "uq_ledger_prev_hash_per_chain" in msg or "prev_hash" in msg or "entry_hash" in msg:
                continue
            raise

    raise RuntimeError("Failed to append ledger entry (concurrency retries exhausted).")


def verify_ledger_chain(clinic) -> bool:
    """Recompute the clinic's hash chain; False if any entry was altered or reordered."""

    prev_hash = ""
    entries = LedgerEntry.all_objects.filter(chain_id=f"clinic:{clinic.id}").order_by("id")
    for entry in entries:
        if entry.prev_hash != prev_hash:
            return False
        payload = {
            "chain_id": entry.chain_id,
            "clinic_id": str(entry.clinic_id),
            "action": entry.action,
            "event_type": entry.event_type,
            "resource_label": entry.resource_label,
            "resource_pk": entry.resource_pk,
            "occurred_at": entry.occurred_at.isoformat(),
            "request_id": str(entry.request_id),
            "request_method": entry.request_method,
            "request_path": entry.request_path,
            "ip_address": entry.ip_address or "",
            "data_before": entry.data_before,
            "data_after": entry.data_after,
            "metadata": entry.metadata,
        }
        if _build_entry_hash(payload, prev_hash) != entry.entry_hash:
            return False
        prev_hash = entry.entry_hash
    return True


def assert_split_conservation(amount_cents: int, split: "SplitResult") -> None:
    """Reject a split that would corrupt the ledger."""

    for field in _SPLIT_FIELDS:
        value = getattr(split, field)
        if not isinstance(value, int) or value < 0:
            raise LedgerInvariantError(f"{field} must be a non-negative integer, got {value!r}.")

    if amount_cents < 0:
        raise LedgerInvariantError("amount_cents must be >= 0.")

    if split.platform_fee_cents + split.referral_fee_cents != split.platform_fee_total_cents:
        raise LedgerInvariantError(
            "platform_fee_cents + referral_fee_cents must equal platform_fee_total_cents."
        )

    if split.professional_share_cents + split.clinic_share_cents != amount_cents - split.platform_fee_total_cents:
        raise LedgerInvariantError(
            "professional and clinic shares must add up to the amount net of the platform fee."
        )


def _transaction_snapshot(record: FinancialTransaction) -> dict[str, Any]:
    return {
        "id": str(record.id),
        "uniqueness_key": record.uniqueness_key,
        "amount_cents": record.amount_cents,
        "status": record.status,
        "settlement_status": record.settlement_status,
        "gateway_payment_id": record.gateway_payment_id,
    }


def record_transaction(
    payment: "PaymentRequest",
    split: "SplitResult",
    gateway_status: str,
    *,
    uniqueness_key: str,
    commission_model: str,
    commission_rate,
    rental_base_cents: int = 0,
    referring_clinic_id=None,
    gateway_payment_id: str | None = None,
    transfers: Iterable[dict] = (),
    gateway_payload: dict | None = None,
    register_platform_fee: bool = False,
    request=None,
) -> tuple[FinancialTransaction, bool]:
    """Persist a computed split as an immutable ledger row.

    Upsert-on-conflict: when a row already exists for `uniqueness_key` it is
    returned untouched and `created` is False. Conservation is checked before
    anything is written.
    """

    assert_split_conservation(payment.amount_cents, split)

    if gateway_status not in FinancialTransaction.GatewayStatus.values:
        raise PersistenceError(f"Unknown gateway status {gateway_status!r}.")

    settled = gateway_status == FinancialTransaction.GatewayStatus.COMPLETED
    split_payload = {
        "split": split.as_dict(),
        "inputs": {
            "amount_cents": payment.amount_cents,
            "platform_fee_percent": str(payment.platform_fee_percent),
            "commission_model": commission_model,
            "commission_rate": str(commission_rate),
            "rental_base_cents": rental_base_cents,
            "requested_commission_model": payment.commission_model,
            "requested_commission_rate": (
                None if payment.commission_rate is None else str(payment.commission_rate)
            ),
        },
        "transfers": list(transfers),
        "gateway": gateway_payload or {"status": gateway_status},
    }

    try:
        with transaction.atomic():
            existing_qs = FinancialTransaction.all_objects
            if connection.features.has_select_for_update:
                existing_qs = existing_qs.select_for_update()
            existing = existing_qs.filter(uniqueness_key=uniqueness_key).first()
            if existing is not None:
                return existing, False

            record = FinancialTransaction(
                clinic_id=payment.clinic_id,
                appointment_id=payment.appointment_id,
                professional_id=payment.professional_id,
                payment_method=payment.payment_method,
                commission_model=commission_model,
                commission_rate=_stored_rate(commission_rate),
                rental_base_cents=rental_base_cents,
                platform_fee_percent=_stored_rate(payment.platform_fee_percent),
                amount_cents=payment.amount_cents,
                platform_fee_cents=split.platform_fee_cents,
                platform_fee_total_cents=split.platform_fee_total_cents,
                referral_fee_cents=split.referral_fee_cents,
                professional_share_cents=split.professional_share_cents,
                clinic_share_cents=split.clinic_share_cents,
                referring_clinic_id=referring_clinic_id,
                status=gateway_status,
                settlement_status=(
                    FinancialTransaction.Settlement.SETTLED
                    if settled
                    else FinancialTransaction.Settlement.COMPUTED
                ),
                settled_at=timezone.now() if settled else None,
                uniqueness_key=uniqueness_key,
                gateway_payment_id=gateway_payment_id or None,
                split_payload=split_payload,
            )

            try:
                with transaction.atomic():
                    record.save(force_insert=True)
            except IntegrityError:
                # A concurrent writer won the race for this key.
                existing = FinancialTransaction.all_objects.filter(uniqueness_key=uniqueness_key).first()
                if existing is None:
                    raise
                return existing, False

            if register_platform_fee and split.platform_fee_total_cents > 0:
                PlatformFeeCharge.all_objects.create(
                    clinic_id=record.clinic_id,
                    financial_transaction=record,
                    amount_cents=split.platform_fee_total_cents,
                )

            append_ledger_entry(
                clinic=record.clinic,
                action=LedgerEntry.ACTION_CREATE,
                resource_label="ledger.FinancialTransaction",
                resource_pk=str(record.id),
                request=request,
                event_type="payments.split.recorded",
                data_after={**_transaction_snapshot(record), "split": split.as_dict()},
                metadata={
                    "payment_method": record.payment_method,
                    "commission_model": commission_model,
                    "fee_pending": bool(register_platform_fee),
                },
            )
    except (LedgerInvariantError, PersistenceError):
        raise
    except DatabaseError as exc:
        logger.error(
            "ledger.record.failed clinic_id=%s uniqueness_key=%s error=%s",
            payment.clinic_id,
            uniqueness_key,
            exc.__class__.__name__,
        )
        raise PersistenceError("Failed to persist financial transaction.") from exc

    logger.info(
        "ledger.record.created clinic_id=%s transaction_id=%s uniqueness_key=%s status=%s",
        record.clinic_id,
        record.id,
        uniqueness_key,
        record.status,
    )
    return record, True


def attach_gateway_payment(
    record: FinancialTransaction | str,
    gateway_payment_id: str,
    *,
    settled: bool = False,
    request=None,
) -> FinancialTransaction:
    """Attach a later-arriving gateway payment id; optionally mark money as moved.

    Besides `apply_gateway_outcome` this is the only mutation allowed on a
    ledger row. Re-attaching the same id
    is a no-op (besides settling); a different id is rejected.
    """

    gateway_payment_id = (gateway_payment_id or "").strip()
    if not gateway_payment_id:
        raise PersistenceError("gateway_payment_id is required.")

    key = record.uniqueness_key if isinstance(record, FinancialTransaction) else str(record)

    with transaction.atomic():
        qs = FinancialTransaction.all_objects
        if connection.features.has_select_for_update:
            qs = qs.select_for_update()
        locked = qs.filter(uniqueness_key=key).select_related("clinic").first()
        if locked is None:
            raise PersistenceError(f"No financial transaction for key {key!r}.")

        if locked.gateway_payment_id and locked.gateway_payment_id != gateway_payment_id:
            raise PersistenceError(
                "Financial transaction is already attached to a different gateway payment."
            )

        before = _transaction_snapshot(locked)
        changed: list[str] = []
        if not locked.gateway_payment_id:
            locked.gateway_payment_id = gateway_payment_id
            changed.append("gateway_payment_id")
        if settled and not locked.is_settled:
            locked.status = FinancialTransaction.GatewayStatus.COMPLETED
            locked.settlement_status = FinancialTransaction.Settlement.SETTLED
            locked.settled_at = timezone.now()
            changed.extend(["status", "settlement_status", "settled_at"])

        if not changed:
            return locked

        try:
            locked.save(update_fields=[*changed, "updated_at"])
        except IntegrityError as exc:
            raise PersistenceError("gateway_payment_id is already attached to another transaction.") from exc

        append_ledger_entry(
            clinic=locked.clinic,
            action=LedgerEntry.ACTION_UPDATE,
            resource_label="ledger.FinancialTransaction",
            resource_pk=str(locked.id),
            request=request,
            event_type="payments.gateway.attached",
            data_before=before,
            data_after=_transaction_snapshot(locked),
            metadata={"settled": bool(settled)},
        )

    logger.info(
        "ledger.gateway.attached transaction_id=%s gateway_payment_id=%s settled=%s",
        locked.id,
        gateway_payment_id,
        locked.is_settled,
    )
    return locked


def apply_gateway_outcome(
    record: FinancialTransaction,
    gateway_status: str,
    *,
    gateway_payment_id: str | None = None,
    transfers: Iterable[dict] = (),
    error: str = "",
    request=None,
) -> FinancialTransaction:
    """Record what the gateway did with a claimed transaction.

    Only the gateway fields change; the split itself is never touched.
    """

    if gateway_status not in FinancialTransaction.GatewayStatus.values:
        raise PersistenceError(f"Unknown gateway status {gateway_status!r}.")

    with transaction.atomic():
        qs = FinancialTransaction.all_objects
        if connection.features.has_select_for_update:
            qs = qs.select_for_update()
        locked = qs.select_related("clinic").get(pk=record.pk)

        before = _transaction_snapshot(locked)
        changed = ["status"]
        locked.status = gateway_status
        if gateway_status == FinancialTransaction.GatewayStatus.COMPLETED and not locked.is_settled:
            locked.settlement_status = FinancialTransaction.Settlement.SETTLED
            locked.settled_at = timezone.now()
            changed.extend(["settlement_status", "settled_at"])
        if gateway_payment_id and not locked.gateway_payment_id:
            locked.gateway_payment_id = gateway_payment_id
            changed.append("gateway_payment_id")

        try:
            locked.save(update_fields=[*changed, "updated_at"])
        except IntegrityError as exc:
            raise PersistenceError("gateway_payment_id is already attached to another transaction.") from exc

        append_ledger_entry(
            clinic=locked.clinic,
            action=LedgerEntry.ACTION_UPDATE,
            resource_label="ledger.FinancialTransaction",
            resource_pk=str(locked.id),
            request=request,
            event_type="payments.gateway.executed",
            data_before=before,
            data_after=_transaction_snapshot(locked),
            metadata={"transfers": list(transfers), "error": error},
        )

    logger.info(
        "ledger.gateway.applied transaction_id=%s status=%s",
        locked.id,
        locked.status,
    )
    return locked


def accepted_transfers(record: FinancialTransaction) -> list[dict]:
    """Transfers the gateway accepted for `record`, read from its ledger history.

    Every `payments.gateway.executed` entry stores the batch it reported; items
    carrying a `transfer_id` were accepted by the provider.
    """

    entries = (
        LedgerEntry.all_objects.filter(
            chain_id=f"clinic:{record.clinic_id}",
            resource_label="ledger.FinancialTransaction",
            resource_pk=str(record.id),
            event_type="payments.gateway.executed",
        )
        .order_by("occurred_at", "id")
        .only("metadata")
    )
    accepted: list[dict] = []
    for entry in entries:
        for item in (entry.metadata or {}).get("transfers") or []:
            if isinstance(item, dict) and item.get("transfer_id"):
                accepted.append(item)
    return accepted

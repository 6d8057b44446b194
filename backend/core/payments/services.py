from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from django.db import transaction

from commission.models import CommissionModel
from commission.services import (
    DEFAULT_PLATFORM_FEE_PERCENT,
    SplitCalculationError,
    SplitResult,
    build_transfer_instructions,
    compute_split,
    resolve_clinic,
    resolve_commission,
    resolve_referral,
)
from ledger.models import FinancialTransaction
from ledger.services import apply_gateway_outcome, record_transaction
from payments.config import PaymentConfig
from payments.exceptions import PaymentValidationError
from payments.gateway import GatewayAdapterBase, GatewayError, get_gateway_adapter
from tenancy.context import reset_current_clinic, set_current_clinic

logger = logging.getLogger(__name__)

GatewayStatus = FinancialTransaction.GatewayStatus


@dataclass(frozen=True)
class PaymentRequest:
    clinic_id: UUID
    professional_id: UUID
    amount_cents: int
    appointment_id: UUID | None = None
    platform_fee_percent: Decimal = DEFAULT_PLATFORM_FEE_PERCENT
    commission_model: str = CommissionModel.COMMISSIONED
    commission_rate: Decimal | None = None
    rental_base_cents: int | None = None
    payment_method: str = ""
    gateway_payment_id: str | None = None
    idempotency_key: str | None = None


@dataclass(frozen=True)
class PaymentOutcome:
    transaction: FinancialTransaction
    split: SplitResult
    gateway_status: str
    transfers: list[dict[str, Any]] = field(default_factory=list)
    created: bool = True

    @property
    def duplicate(self) -> bool:
        return not self.created

    def as_response(self) -> dict[str, Any]:
        return {
            "ok": True,
            "split": self.split.as_dict(),
            "gateway": {"status": self.gateway_status, "transfers": self.transfers},
            "transaction_id": str(self.transaction.id),
            "duplicate": self.duplicate,
        }


def derive_uniqueness_key(payment: PaymentRequest) -> str:
    """Ledger key for a payment; equal keys mean "the same payment".

    Without a gateway id, appointment, or caller idempotency key nothing
    identifies a retry, so a random key is issued and no dedup is possible.
    """

    if payment.gateway_payment_id:
        return f"gateway:{payment.gateway_payment_id}"
    if payment.appointment_id:
        method = (payment.payment_method or "").strip().lower() or "unspecified"
        return f"appointment:{payment.appointment_id}:{method}"
    if payment.idempotency_key:
        return f"request:{payment.clinic_id}:{payment.idempotency_key}"
    return f"adhoc:{uuid4()}"


def resolve_gateway(config: PaymentConfig) -> GatewayAdapterBase | None:
    """Factory lookup that degrades to "no adapter" instead of failing the payment."""

    try:
        return get_gateway_adapter(config)
    except GatewayError as exc:
        logger.error(
            "payments.gateway.unavailable provider=%s error=%s",
            config.gateway_provider,
            exc,
        )
        return None


def split_from_record(record: FinancialTransaction) -> SplitResult:
    return SplitResult(
        platform_fee_cents=record.platform_fee_cents,
        platform_fee_total_cents=record.platform_fee_total_cents,
        referral_fee_cents=record.referral_fee_cents,
        professional_share_cents=record.professional_share_cents,
        clinic_share_cents=record.clinic_share_cents,
    )


def transfer_key(item: dict[str, Any]) -> tuple[str, str, int]:
    return (
        str(item.get("beneficiary") or ""),
        str(item.get("destination") or ""),
        int(item.get("amount_cents") or 0),
    )


def untransferred_items(
    items: list[dict[str, Any]],
    transferred: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Instructions in `items` with no matching accepted transfer."""

    done = {transfer_key(item) for item in transferred if item.get("transfer_id")}
    return [dict(item) for item in items if transfer_key(item) not in done]


def execute_gateway(
    gateway: GatewayAdapterBase | None,
    items: list[dict[str, Any]],
    *,
    reference: str,
) -> tuple[str, list[dict[str, Any]], str | None, str]:
    """Run the transfers best-effort.

    Returns (status, transfers, provider_payment_id, error). Gateway errors are
    absorbed into the status: retryable ones leave the transfer pending. When a
    batch fails partway, `transfers` holds the accepted transfers (with their
    `transfer_id`) followed by the items still to be sent.
    """

    if not items:
        return GatewayStatus.NOT_ATTEMPTED, [], None, ""
    if gateway is None:
        return GatewayStatus.PENDING, items, None, ""

    try:
        result = gateway.execute_transfers(items, reference=reference)
    except GatewayError as exc:
        status = GatewayStatus.PENDING if exc.retryable else GatewayStatus.FAILED
        completed = [dict(item) for item in exc.completed_transfers]
        logger.warning(
            "payments.gateway.error reference=%s status=%s retryable=%s completed=%s error=%s",
            reference,
            status,
            exc.retryable,
            len(completed),
            exc,
        )
        return status, completed + untransferred_items(items, completed), None, str(exc)
    except Exception as exc:
        # The claimed ledger row must survive whatever the adapter raises.
        logger.exception(
            "payments.gateway.unexpected_error reference=%s error=%s",
            reference,
            exc.__class__.__name__,
        )
        return GatewayStatus.PENDING, items, None, f"Unexpected gateway error: {exc.__class__.__name__}"

    status = result.status
    if status not in (GatewayStatus.SIMULATED, GatewayStatus.COMPLETED):
        status = GatewayStatus.PENDING
    return status, list(result.transfers), result.provider_payment_id, ""


def process_payment(
    payment: PaymentRequest,
    *,
    config: PaymentConfig,
    gateway: GatewayAdapterBase | None,
    request=None,
) -> PaymentOutcome:
    """Resolve, split, claim, transfer and record one captured payment.

    The claim is the ledger row itself: it is inserted before the gateway call
    and the gateway outcome is applied in the same database transaction, so a
    concurrent duplicate waits on the unique key and never reaches the gateway.
    """

    clinic = resolve_clinic(payment.clinic_id)
    payment = replace(payment, clinic_id=clinic.id)
    token = set_current_clinic(clinic)
    try:
        terms = resolve_commission(
            payment.professional_id,
            clinic_id=clinic.id,
            requested_model=payment.commission_model,
            requested_rate=payment.commission_rate,
            requested_rental_base_cents=payment.rental_base_cents,
            default_rate=config.default_commission_rate,
        )
        referral = resolve_referral(clinic.id, default_percent=config.default_referral_percent)

        try:
            split = compute_split(
                payment.amount_cents,
                payment.platform_fee_percent,
                terms.model,
                terms.rate,
                referral,
            )
        except SplitCalculationError as exc:
            raise PaymentValidationError(str(exc)) from exc

        instructions = [
            item.as_dict()
            for item in build_transfer_instructions(
                split,
                professional_destination=terms.payout_destination,
                clinic_destination=clinic.payout_wallet_id,
                platform_destination=config.platform_wallet_id,
                referral=referral,
            )
        ]
        uniqueness_key = derive_uniqueness_key(payment)
        offline = config.is_offline_method(payment.payment_method)
        goes_to_gateway = bool(instructions) and not offline

        with transaction.atomic():
            record, created = record_transaction(
                payment,
                split,
                GatewayStatus.PENDING if goes_to_gateway else GatewayStatus.NOT_ATTEMPTED,
                uniqueness_key=uniqueness_key,
                commission_model=terms.model,
                commission_rate=terms.rate,
                rental_base_cents=terms.rental_base_cents,
                referring_clinic_id=referral.referring_clinic_id if referral.has_referral else None,
                gateway_payment_id=payment.gateway_payment_id,
                transfers=instructions,
                register_platform_fee=offline,
                request=request,
            )

            if not created:
                logger.info(
                    "payments.process.duplicate clinic_id=%s transaction_id=%s uniqueness_key=%s",
                    clinic.id,
                    record.id,
                    uniqueness_key,
                )
                return PaymentOutcome(
                    transaction=record,
                    split=split_from_record(record),
                    gateway_status=record.status,
                    transfers=list((record.split_payload or {}).get("transfers") or []),
                    created=False,
                )

            transfers: list[dict[str, Any]] = [] if offline else instructions
            if goes_to_gateway:
                status, transfers, provider_payment_id, error = execute_gateway(
                    gateway,
                    instructions,
                    reference=uniqueness_key,
                )
                if status != record.status or provider_payment_id or error:
                    record = apply_gateway_outcome(
                        record,
                        status,
                        gateway_payment_id=provider_payment_id,
                        transfers=transfers,
                        error=error,
                        request=request,
                    )
    finally:
        reset_current_clinic(token)

    logger.info(
        "payments.process.recorded clinic_id=%s transaction_id=%s amount_cents=%s model=%s status=%s",
        clinic.id,
        record.id,
        payment.amount_cents,
        terms.model,
        record.status,
    )
    return PaymentOutcome(
        transaction=record,
        split=split,
        gateway_status=record.status,
        transfers=transfers,
        created=True,
    )

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from commission.models.profile import CommissionModel


DEFAULT_PLATFORM_FEE_PERCENT = Decimal("0.0599")
DEFAULT_REFERRAL_PERCENT = Decimal("0.0233")
DEFAULT_COMMISSION_RATE = Decimal("0.5")

_ZERO = Decimal("0")
_ONE = Decimal("1")


class SplitCalculationError(ValueError):
    """Raised when split inputs violate the calculator preconditions."""


@dataclass(frozen=True, slots=True)
class ReferralContext:
    has_referral: bool = False
    referral_percent: Decimal = DEFAULT_REFERRAL_PERCENT
    referral_destination: str = ""
    referring_clinic_id: Any = None

    def __post_init__(self):
        if self.has_referral and not self.referral_destination:
            raise SplitCalculationError("referral_destination is required when has_referral is set.")

    @classmethod
    def none(cls, referral_percent: Decimal = DEFAULT_REFERRAL_PERCENT) -> "ReferralContext":
        return cls(has_referral=False, referral_percent=referral_percent)


@dataclass(frozen=True, slots=True)
class SplitResult:
    platform_fee_cents: int
    platform_fee_total_cents: int
    referral_fee_cents: int
    professional_share_cents: int
    clinic_share_cents: int

    @property
    def distributed_cents(self) -> int:
        return self.professional_share_cents + self.clinic_share_cents

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class TransferInstruction:
    beneficiary: str
    destination: str
    amount_cents: int
    description: str

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def to_rate(value: Any, *, field: str) -> Decimal:
    """Parse a fraction in [0, 1] without going through binary floats."""

    if isinstance(value, bool):
        raise SplitCalculationError(f"Invalid decimal for {field}.")
    try:
        rate = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise SplitCalculationError(f"Invalid decimal for {field}.") from exc
    if not rate.is_finite() or rate < _ZERO or rate > _ONE:
        raise SplitCalculationError(f"{field} must be between 0 and 1.")
    return rate


def _round_cents(value: Decimal) -> int:
    # Half-up to whole cents; inputs are never negative.
    return int(value.quantize(_ONE, rounding=ROUND_HALF_UP))


def _check_amount(amount_cents: Any) -> int:
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int):
        raise SplitCalculationError("amount_cents must be an integer.")
    if amount_cents < 0:
        raise SplitCalculationError("amount_cents must be >= 0.")
    return amount_cents


def _check_model(commission_model: Any) -> CommissionModel:
    try:
        return CommissionModel(commission_model)
    except ValueError as exc:
        raise SplitCalculationError(f"Unknown commission_model {commission_model!r}.") from exc


def compute_split(
    amount_cents: int,
    platform_fee_percent: Any,
    commission_model: Any,
    commission_rate: Any,
    referral: ReferralContext | None = None,
) -> SplitResult:
    """Split a captured amount between platform, referrer, clinic and professional.

    Steps:
    - platform fee total = round(amount * platform_fee_percent)
    - with an active referral, part of that fee goes to the referring clinic,
      capped at the fee total so the platform never ends up negative
    - the rest is divided by the commission model; `commission_rate` is the
      CLINIC share (professional receives the remainder, never a second rounding)

    The hybrid model divides exactly like `commissioned`: its fixed rental base
    is invoiced by the rental billing process, not deducted here.
    """

    amount = _check_amount(amount_cents)
    fee_percent = to_rate(platform_fee_percent, field="platform_fee_percent")
    model = _check_model(commission_model)
    rate = (
        DEFAULT_COMMISSION_RATE
        if commission_rate is None
        else to_rate(commission_rate, field="commission_rate")
    )
    referral = referral or ReferralContext.none()

    platform_fee_total = _round_cents(amount * fee_percent)

    referral_fee = 0
    if referral.has_referral:
        referral_percent = to_rate(referral.referral_percent, field="referral_percent")
        referral_fee = min(_round_cents(amount * referral_percent), platform_fee_total)
    platform_fee = platform_fee_total - referral_fee

    remaining = max(amount - platform_fee_total, 0)

    if model == CommissionModel.RENTAL:
        clinic_share = 0
    else:
        clinic_share = _round_cents(remaining * rate)
    professional_share = remaining - clinic_share

    return SplitResult(
        platform_fee_cents=platform_fee,
        platform_fee_total_cents=platform_fee_total,
        referral_fee_cents=referral_fee,
        professional_share_cents=professional_share,
        clinic_share_cents=clinic_share,
    )


def build_transfer_instructions(
    split: SplitResult,
    *,
    professional_destination: str,
    clinic_destination: str,
    platform_destination: str,
    referral: ReferralContext | None = None,
) -> list[TransferInstruction]:
    """Gateway transfer list for a split.

    Zero amounts and beneficiaries without a payout wallet are skipped: their
    share stays with the collecting account and is reconciled from the ledger.
    """

    referral = referral or ReferralContext.none()
    candidates = [
        ("professional", professional_destination, split.professional_share_cents, "Comissão do Profissional"),
        ("clinic", clinic_destination, split.clinic_share_cents, "Receita da Clínica"),
        (
            "referral",
            referral.referral_destination if referral.has_referral else "",
            split.referral_fee_cents,
            f"Repasse B2B ({referral.referral_percent * 100:.2f}%)",
        ),
        ("platform", platform_destination, split.platform_fee_cents, "Taxa da Plataforma"),
    ]

    instructions: list[TransferInstruction] = []
    for beneficiary, destination, amount, description in candidates:
        destination = (destination or "").strip()
        if amount <= 0 or not destination:
            continue
        instructions.append(
            TransferInstruction(
                beneficiary=beneficiary,
                destination=destination,
                amount_cents=amount,
                description=description,
            )
        )
    return instructions

from commission.services.resolvers import (
    CommissionTerms,
    resolve_clinic,
    resolve_commission,
    resolve_referral,
)
from commission.services.split_calculator import (
    DEFAULT_COMMISSION_RATE,
    DEFAULT_PLATFORM_FEE_PERCENT,
    DEFAULT_REFERRAL_PERCENT,
    ReferralContext,
    SplitCalculationError,
    SplitResult,
    TransferInstruction,
    build_transfer_instructions,
    compute_split,
)

__all__ = [
    "DEFAULT_COMMISSION_RATE",
    "DEFAULT_PLATFORM_FEE_PERCENT",
    "DEFAULT_REFERRAL_PERCENT",
    "CommissionTerms",
    "ReferralContext",
    "SplitCalculationError",
    "SplitResult",
    "TransferInstruction",
    "build_transfer_instructions",
    "compute_split",
    "resolve_clinic",
    "resolve_commission",
    "resolve_referral",
]

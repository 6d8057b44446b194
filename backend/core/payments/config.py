from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from django.conf import settings

from commission.services.split_calculator import (
    DEFAULT_COMMISSION_RATE,
    DEFAULT_PLATFORM_FEE_PERCENT,
    DEFAULT_REFERRAL_PERCENT,
    to_rate,
)

GATEWAY_PROVIDERS = {"simulated", "asaas", "disabled"}


@dataclass(frozen=True, slots=True)
class PaymentConfig:
    """Platform-wide payment constants, read once and passed explicitly.

    Nothing in the split pipeline reads settings directly; tests build their
    own instance instead of patching globals.
    """

    platform_wallet_id: str = ""
    default_platform_fee_percent: Decimal = DEFAULT_PLATFORM_FEE_PERCENT
    default_referral_percent: Decimal = DEFAULT_REFERRAL_PERCENT
    default_commission_rate: Decimal = DEFAULT_COMMISSION_RATE
    gateway_provider: str = "simulated"
    gateway_api_key: str = ""
    gateway_base_url: str = ""
    gateway_timeout_seconds: float = 10.0
    offline_payment_methods: frozenset[str] = field(default_factory=lambda: frozenset({"cash"}))
    webhook_secret: str = ""

    def __post_init__(self):
        if self.gateway_provider not in GATEWAY_PROVIDERS:
            raise ValueError(
                f"Unsupported gateway provider {self.gateway_provider!r}; "
                f"expected one of {sorted(GATEWAY_PROVIDERS)}."
            )

    def is_offline_method(self, payment_method: str) -> bool:
        return (payment_method or "").strip().lower() in self.offline_payment_methods

    @classmethod
    def from_settings(cls) -> "PaymentConfig":
        offline = getattr(settings, "PAYMENT_OFFLINE_METHODS", None) or ["cash"]
        return cls(
            platform_wallet_id=(getattr(settings, "PLATFORM_WALLET_ID", "") or "").strip(),
            default_platform_fee_percent=to_rate(
                getattr(settings, "PLATFORM_FEE_PERCENT", DEFAULT_PLATFORM_FEE_PERCENT),
                field="PLATFORM_FEE_PERCENT",
            ),
            default_referral_percent=to_rate(
                getattr(settings, "PLATFORM_REFERRAL_PERCENT", DEFAULT_REFERRAL_PERCENT),
                field="PLATFORM_REFERRAL_PERCENT",
            ),
            default_commission_rate=to_rate(
                getattr(settings, "DEFAULT_COMMISSION_RATE", DEFAULT_COMMISSION_RATE),
                field="DEFAULT_COMMISSION_RATE",
            ),
            gateway_provider=(getattr(settings, "PAYMENT_GATEWAY_PROVIDER", "simulated") or "simulated")
            .strip()
            .lower(),
            gateway_api_key=(getattr(settings, "PAYMENT_GATEWAY_API_KEY", "") or "").strip(),
            gateway_base_url=(getattr(settings, "PAYMENT_GATEWAY_BASE_URL", "") or "").strip(),
            gateway_timeout_seconds=float(getattr(settings, "PAYMENT_GATEWAY_TIMEOUT_SECONDS", 10.0)),
            offline_payment_methods=frozenset(
                str(method).strip().lower() for method in offline if str(method).strip()
            ),
            webhook_secret=getattr(settings, "PAYMENT_WEBHOOK_SECRET", "") or "",
        )

from __future__ import annotations

from typing import TYPE_CHECKING

from .asaas import AsaasGatewayAdapter
from .base import GatewayAdapterBase, GatewayError
from .simulated import SimulatedGatewayAdapter

if TYPE_CHECKING:
    from payments.config import PaymentConfig


class GatewayNotSupported(GatewayError):
    """Raised when the configured provider has no adapter implementation."""

    retryable = False


def get_gateway_adapter(config: "PaymentConfig") -> GatewayAdapterBase | None:
    """Return the adapter for the configured provider, or None when disabled."""

    provider = (config.gateway_provider or "").strip().lower()

    if provider == "disabled":
        return None

    # Local-only adapter (for dev/tests).
    if provider in {"simulated", "mock", "local"}:
        return SimulatedGatewayAdapter(timeout_seconds=config.gateway_timeout_seconds)

    if provider == "asaas":
        return AsaasGatewayAdapter(
            api_key=config.gateway_api_key,
            base_url=config.gateway_base_url,
            timeout_seconds=config.gateway_timeout_seconds,
        )

    raise GatewayNotSupported(f"Unsupported gateway provider={config.gateway_provider!r}.")

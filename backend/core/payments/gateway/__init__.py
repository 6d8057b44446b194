"""Payment gateway adapters (provider-agnostic interface + implementations).

Adapters only move money between wallets. They never touch the ledger; the
pipeline maps their outcome onto the recorded gateway status.
"""

from .asaas import AsaasGatewayAdapter
from .base import (
    GatewayAdapterBase,
    GatewayError,
    GatewayRejectionError,
    GatewayResult,
    GatewayTechnicalError,
    GatewayTimeoutError,
)
from .factory import GatewayNotSupported, get_gateway_adapter
from .simulated import SimulatedGatewayAdapter

__all__ = [
    "AsaasGatewayAdapter",
    "GatewayAdapterBase",
    "GatewayError",
    "GatewayNotSupported",
    "GatewayRejectionError",
    "GatewayResult",
    "GatewayTechnicalError",
    "GatewayTimeoutError",
    "SimulatedGatewayAdapter",
    "get_gateway_adapter",
]

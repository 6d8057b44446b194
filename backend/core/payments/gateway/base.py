from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence


class GatewayError(RuntimeError):
    """Base exception for payment gateway failures.

    `completed_transfers` lists the transfers of the batch the provider already
    accepted before the failure; those must never be sent again.
    """

    retryable: bool = True
    completed_transfers: tuple = ()


class GatewayTechnicalError(GatewayError):
    """Technical failure talking to the gateway (network, auth, outages, etc.)."""

    retryable = True


class GatewayTimeoutError(GatewayTechnicalError):
    """Gateway request timed out."""

    retryable = True


class GatewayRejectionError(GatewayError):
    """Business rejection returned by the gateway (not retryable)."""

    retryable = False

    def __init__(self, message: str, *, code: str | None = None, details: Mapping[str, Any] | None = None):
        super().__init__(message)
        self.code = code
        self.details = dict(details) if details else {}


@dataclass(frozen=True)
class GatewayResult:
    status: str
    provider_payment_id: str | None = None
    transfers: list[dict[str, Any]] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict)


class GatewayAdapterBase(ABC):
    """Adapter interface for moving split shares to beneficiary wallets.

    Notes:
    - Keep this interface provider-agnostic (no vendor-specific types).
    - Adapters should be side-effectful only towards the provider API.
      Persistence, retries and status mapping belong to services.
    """

    name = "base"

    def __init__(self, *, timeout_seconds: float | None = None) -> None:
        self.timeout_seconds = timeout_seconds

    @abstractmethod
    def execute_transfers(self, items: Sequence[Mapping[str, Any]], *, reference: str = "") -> GatewayResult:
        """Execute one transfer per item.

        Args:
            items: Transfer instructions (`destination`, `amount_cents`,
                `description`, `beneficiary`).
            reference: Caller reference echoed back by the gateway; the
                ledger uniqueness key.

        Returns:
            A `GatewayResult` whose status is `simulated` or `completed`.
            Failures are raised as `GatewayError` subclasses.
        """

from __future__ import annotations


class PaymentProcessingError(RuntimeError):
    """Base error for payment split processing failures."""

    http_status = 500


class PaymentValidationError(PaymentProcessingError):
    """Malformed or out-of-range request fields. Raised before any side effect."""

    http_status = 400

    def __init__(self, message: str, *, details=None):
        super().__init__(message)
        self.details = details or {}


class ResolutionError(PaymentProcessingError):
    """Professional or clinic could not be resolved; the split cannot be computed."""

    http_status = 400


class PersistenceError(PaymentProcessingError):
    """Ledger write failed. Do not retry without the same uniqueness key."""

    http_status = 500


class LedgerInvariantError(PersistenceError):
    """The split about to be persisted breaks conservation or has negative shares."""

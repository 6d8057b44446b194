from __future__ import annotations

import itertools
from typing import Any, Mapping, Sequence
from uuid import uuid4

from .base import GatewayAdapterBase, GatewayResult


class SimulatedGatewayAdapter(GatewayAdapterBase):
    """Local adapter for development and tests. No money moves.

    Every call is recorded in `calls` so tests can assert on the number of
    gateway attempts.
    """

    name = "simulated"
    _sequence = itertools.count(1)

    def __init__(self, *, timeout_seconds: float | None = None) -> None:
        super().__init__(timeout_seconds=timeout_seconds)
        self.calls: list[dict[str, Any]] = []

    def execute_transfers(self, items: Sequence[Mapping[str, Any]], *, reference: str = "") -> GatewayResult:
        transfers = [
            {
                **dict(item),
                "transfer_id": f"sim:{next(self._sequence)}",
                "status": "simulated",
            }
            for item in items
        ]
        self.calls.append({"reference": reference, "items": [dict(item) for item in items]})
        return GatewayResult(
            status="simulated",
            provider_payment_id=None,
            transfers=transfers,
            raw={"simulated": True, "batch": uuid4().hex},
        )

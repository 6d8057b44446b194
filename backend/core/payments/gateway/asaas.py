from __future__ import annotations

import http.client
import json
import logging
import socket
from decimal import Decimal
from typing import Any, Mapping, Sequence
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from .base import (
    GatewayAdapterBase,
    GatewayError,
    GatewayRejectionError,
    GatewayResult,
    GatewayTechnicalError,
    GatewayTimeoutError,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.asaas.com/v3"


def _cents_to_value(amount_cents: int) -> float:
    return float(Decimal(amount_cents) / Decimal(100))


class AsaasGatewayAdapter(GatewayAdapterBase):
    """Wallet-to-wallet transfers through the Asaas REST API."""

    name = "asaas"

    def __init__(self, *, api_key: str, base_url: str = "", timeout_seconds: float | None = 10.0) -> None:
        super().__init__(timeout_seconds=timeout_seconds)
        if not api_key:
            raise GatewayTechnicalError("Asaas API key is not configured.")
        self.api_key = api_key
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")

    def _post(self, path: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        request = Request(
            f"{self.base_url}{path}",
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "access_token": self.api_key,
                "Content-Type": "application/json",
                "Accept": "application/json",
                "User-Agent": "clinic-payments/1.0",
            },
            method="POST",
        )
        try:
            with urlopen(request, timeout=self.timeout_seconds) as response:  # nosec B310
                return json.loads(response.read().decode("utf-8") or "{}")
        except HTTPError as exc:
            body = ""
            try:
                body = exc.read().decode("utf-8")
            except OSError:
                pass
            if 400 <= exc.code < 500 and exc.code not in (401, 403, 408, 429):
                raise GatewayRejectionError(
                    f"Asaas rejected the transfer (HTTP {exc.code}).",
                    code=str(exc.code),
                    details={"body": body[:500]},
                ) from exc
            raise GatewayTechnicalError(f"Asaas returned HTTP {exc.code}.") from exc
        except (socket.timeout, TimeoutError) as exc:
            raise GatewayTimeoutError("Asaas request timed out.") from exc
        except URLError as exc:
            if isinstance(exc.reason, (socket.timeout, TimeoutError)):
                raise GatewayTimeoutError("Asaas request timed out.") from exc
            raise GatewayTechnicalError(f"Asaas unreachable: {exc.reason}") from exc
        except (http.client.HTTPException, OSError) as exc:
            # Dropped connections and truncated bodies; the transfer may or may not exist.
            raise GatewayTechnicalError(f"Asaas connection failed: {exc.__class__.__name__}") from exc
        except ValueError as exc:
            raise GatewayTechnicalError("Asaas returned a non-JSON response.") from exc

    def execute_transfers(self, items: Sequence[Mapping[str, Any]], *, reference: str = "") -> GatewayResult:
        transfers: list[dict[str, Any]] = []
        for item in items:
            payload = {
                "value": _cents_to_value(int(item["amount_cents"])),
                "walletId": item["destination"],
                "description": item.get("description", ""),
                "externalReference": reference,
            }
            try:
                response = self._post("/transfers", payload)
                transfer_id = str(response.get("id") or "").strip()
                if not transfer_id:
                    raise GatewayTechnicalError("Asaas did not return a transfer id.")
            except GatewayError as exc:
                exc.completed_transfers = tuple(transfers)
                raise
            transfers.append(
                {
                    **dict(item),
                    "transfer_id": transfer_id,
                    "status": str(response.get("status") or "").lower() or "done",
                }
            )
            logger.info(
                "gateway.asaas.transfer reference=%s beneficiary=%s transfer_id=%s",
                reference,
                item.get("beneficiary", ""),
                transfer_id,
            )

        return GatewayResult(status="completed", transfers=transfers, raw={"provider": self.name})

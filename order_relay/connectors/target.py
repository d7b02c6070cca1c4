"""Forward orders to the downstream target endpoint."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class DeliveryStatus(str, Enum):
    """Outcome of a single delivery attempt."""

    DELIVERED = "delivered"
    REJECTED = "rejected"
    UNREACHABLE = "unreachable"


@dataclass
class ForwardResult:
    """Result of posting one order to the target."""

    status: DeliveryStatus
    http_status: Optional[int] = None
    detail: str = ""
    response: Dict[str, Any] = field(default_factory=dict)

    @property
    def delivered(self) -> bool:
        return self.status == DeliveryStatus.DELIVERED


class TargetForwarder:
    """POSTs order payloads to ``target_url``.

    Transport failures never raise; they are reported as
    :attr:`DeliveryStatus.UNREACHABLE` so callers can continue with the next
    order.
    """

    def __init__(
        self,
        target_url: str,
        *,
        timeout: float = 10.0,
        source_name: str = "mageos",
        order_id_field: str = "entity_id",
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.target_url = target_url
        self._source_name = source_name
        self._order_id_field = order_id_field
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "TargetForwarder":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def build_payload(self, order: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "source": self._source_name,
            "order_id": order.get(self._order_id_field),
            "increment_id": order.get("increment_id"),
            "status": order.get("status"),
            "grand_total": order.get("grand_total"),
            "customer_email": order.get("customer_email"),
            "created_at": order.get("created_at"),
            "raw": order,
        }

    async def forward(self, order: Dict[str, Any]) -> ForwardResult:
        payload = self.build_payload(order)
        try:
            resp = await self._client.post(self.target_url, json=payload)
        except httpx.TimeoutException as exc:
            logger.warning("Target timed out for order %s: %s", payload["order_id"], exc)
            return ForwardResult(
                DeliveryStatus.UNREACHABLE, detail=f"Target timed out: {exc!r}"
            )
        except httpx.HTTPError as exc:
            logger.warning("Target unreachable for order %s: %s", payload["order_id"], exc)
            return ForwardResult(
                DeliveryStatus.UNREACHABLE, detail=f"Target unreachable: {exc}"
            )

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {"body": data}

        if resp.is_success:
            return ForwardResult(DeliveryStatus.DELIVERED, resp.status_code, "ok", data)
        return ForwardResult(
            DeliveryStatus.REJECTED,
            resp.status_code,
            f"Target responded {resp.status_code}",
            data,
        )

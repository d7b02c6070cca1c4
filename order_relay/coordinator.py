"""Poll the order source and forward unsent orders to the target."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from .connectors.target import DeliveryStatus, ForwardResult
from .ledger import LedgerWriteError, SentLedger, canonical_order_id

logger = logging.getLogger(__name__)

ALREADY_SENT = "already_sent"
DELIVERED_UNMARKED = "delivered_unmarked"
INVALID_ORDER = "invalid_order"


class OrderSource(Protocol):
    async def list_recent(self, page_size: int = 10) -> List[Dict[str, Any]]: ...

    async def fetch_by_id(self, order_id: str) -> Dict[str, Any]: ...


class Forwarder(Protocol):
    async def forward(self, order: Dict[str, Any]) -> ForwardResult: ...


@dataclass
class PollOutcome:
    """What happened to one order during a cycle."""

    order_id: Optional[str]
    attempted: bool
    delivered: bool
    marked: bool
    detail: str
    http_status: Optional[int] = None
    error: Optional[str] = None
    response: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class PollCoordinator:
    """Runs fetch, filter, forward and mark over one page of orders.

    A single lock serialises poll cycles, manual forwards and ledger resets so
    overlapping triggers cannot forward the same order twice.
    """

    def __init__(
        self,
        source: OrderSource,
        forwarder: Forwarder,
        ledger: SentLedger,
        *,
        page_size: int = 10,
        order_id_field: str = "entity_id",
    ) -> None:
        self._source = source
        self._forwarder = forwarder
        self._ledger = ledger
        self._page_size = page_size
        self._order_id_field = order_id_field
        self._lock = asyncio.Lock()
        self.last_run_at: Optional[datetime] = None
        self.last_outcomes: List[PollOutcome] = []

    @property
    def ledger(self) -> SentLedger:
        return self._ledger

    def sent_ids(self) -> List[str]:
        return self._ledger.snapshot()

    async def run_once(self) -> List[PollOutcome]:
        """Run one poll cycle and return an outcome per order in the page.

        Errors from the order source propagate; per-order failures are
        reported in the returned outcomes.
        """

        async with self._lock:
            orders = await self._source.list_recent(self._page_size)
            outcomes: List[PollOutcome] = []
            for order in orders:
                outcomes.append(await self._process(order))
            self.last_run_at = datetime.now(timezone.utc)
            self.last_outcomes = outcomes

        attempted = sum(1 for o in outcomes if o.attempted)
        if attempted:
            logger.info(
                "[POLL] orders=%d attempted=%d delivered=%d",
                len(outcomes), attempted, sum(1 for o in outcomes if o.delivered),
            )
        return outcomes

    async def forward_one(self, order_id: str) -> PollOutcome:
        """Fetch ``order_id`` and forward it even if it was already sent."""

        async with self._lock:
            order = await self._source.fetch_by_id(order_id)
            return await self._process(order, force=True)

    async def reset_ledger(self) -> None:
        async with self._lock:
            self._ledger.reset()
            logger.info("Sent ledger cleared")

    async def _process(self, order: Dict[str, Any], force: bool = False) -> PollOutcome:
        try:
            key = canonical_order_id(order.get(self._order_id_field))
        except ValueError as exc:
            logger.warning("[SKIP] order without usable %s: %s", self._order_id_field, exc)
            return PollOutcome(None, False, False, False, INVALID_ORDER, error=str(exc))

        if not force and self._ledger.contains(key):
            return PollOutcome(key, False, False, True, ALREADY_SENT)

        try:
            result = await self._forwarder.forward(order)
        except Exception as exc:
            logger.exception("[FORWARD-FAIL] order=%s", key)
            return PollOutcome(
                key, True, False, False, DeliveryStatus.UNREACHABLE.value, error=str(exc)
            )

        if not result.delivered:
            logger.warning(
                "[FORWARD-FAIL] order=%s status=%s http=%s detail=%s",
                key, result.status.value, result.http_status, result.detail,
            )
            return PollOutcome(
                key,
                True,
                False,
                False,
                result.status.value,
                http_status=result.http_status,
                error=result.detail,
                response=result.response,
            )

        try:
            self._ledger.mark_sent(key)
        except LedgerWriteError as exc:
            logger.warning("[MARK-FAIL] order=%s delivered but not marked: %s", key, exc)
            return PollOutcome(
                key,
                True,
                True,
                False,
                DELIVERED_UNMARKED,
                http_status=result.http_status,
                error=str(exc),
                response=result.response,
            )

        logger.info("[FORWARD-OK] order=%s http=%s", key, result.http_status)
        return PollOutcome(
            key,
            True,
            True,
            True,
            DeliveryStatus.DELIVERED.value,
            http_status=result.http_status,
            response=result.response,
        )

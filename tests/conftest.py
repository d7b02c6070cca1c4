import sys
from pathlib import Path

import pytest

# Ensure repository root is on sys.path for imports
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from order_relay.connectors.commerce import CommerceError  # noqa: E402
from order_relay.connectors.target import DeliveryStatus, ForwardResult  # noqa: E402
from order_relay.ledger import SentLedger  # noqa: E402


class StubSource:
    """Order source returning a fixed page of orders."""

    def __init__(self, orders=None, error=None):
        self.orders = list(orders or [])
        self.error = error
        self.list_calls = []

    async def list_recent(self, page_size=10):
        self.list_calls.append(page_size)
        if self.error:
            raise self.error
        return list(self.orders[:page_size])

    async def fetch_by_id(self, order_id):
        if self.error:
            raise self.error
        for order in self.orders:
            if str(order.get("entity_id")) == str(order_id):
                return order
        raise CommerceError(f"Commerce fetch failed (404): order {order_id}", 404)


class StubForwarder:
    """Forwarder replying with a scripted status per order id.

    Order ids missing from ``statuses`` are delivered.
    """

    def __init__(self, statuses=None):
        self.statuses = dict(statuses or {})
        self.calls = []

    async def forward(self, order):
        order_id = str(order.get("entity_id"))
        self.calls.append(order_id)
        status = self.statuses.get(order_id, DeliveryStatus.DELIVERED)
        if isinstance(status, Exception):
            raise status
        if status == DeliveryStatus.DELIVERED:
            return ForwardResult(status, 200, "ok", {"ok": True})
        if status == DeliveryStatus.REJECTED:
            return ForwardResult(status, 422, "Target responded 422", {"ok": False})
        return ForwardResult(status, None, "Target unreachable: connection refused")


@pytest.fixture
def ledger(tmp_path):
    return SentLedger(str(tmp_path / "data" / "sent.json"))


@pytest.fixture
def make_orders():
    def _make(*ids):
        return [{"entity_id": i, "increment_id": f"0000{i}", "status": "pending"} for i in ids]

    return _make

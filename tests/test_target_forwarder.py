import json

import httpx
import pytest

from order_relay.connectors.target import DeliveryStatus, TargetForwarder

ORDER = {
    "entity_id": 101,
    "increment_id": "000000101",
    "status": "processing",
    "grand_total": 49.5,
    "customer_email": "a@example.com",
    "created_at": "2026-01-02 10:00:00",
    "extra": {"nested": True},
}


def _forwarder(handler, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TargetForwarder("https://target.test/orders", client=client, **kwargs)


@pytest.mark.asyncio
async def test_success_is_delivered_and_payload_shaped():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"ok": True, "ref": "TGT-1"})

    async with _forwarder(handler) as forwarder:
        result = await forwarder.forward(ORDER)

    assert result.delivered
    assert result.http_status == 200
    assert result.response == {"ok": True, "ref": "TGT-1"}
    body = seen["body"]
    assert body["source"] == "mageos"
    assert body["order_id"] == 101
    assert body["increment_id"] == "000000101"
    assert body["raw"] == ORDER


@pytest.mark.asyncio
async def test_missing_fields_become_null():
    async with _forwarder(lambda r: httpx.Response(204), source_name="shop") as forwarder:
        payload = forwarder.build_payload({"entity_id": 5})
        result = await forwarder.forward({"entity_id": 5})

    assert payload["source"] == "shop"
    assert payload["customer_email"] is None
    assert result.delivered
    assert result.response == {}


@pytest.mark.asyncio
@pytest.mark.parametrize("code", [400, 422, 500, 503])
async def test_error_status_is_rejected(code):
    async with _forwarder(lambda r: httpx.Response(code, text="nope")) as forwarder:
        result = await forwarder.forward(ORDER)

    assert result.status == DeliveryStatus.REJECTED
    assert not result.delivered
    assert result.http_status == code


@pytest.mark.asyncio
async def test_connection_error_is_unreachable():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    async with _forwarder(handler) as forwarder:
        result = await forwarder.forward(ORDER)

    assert result.status == DeliveryStatus.UNREACHABLE
    assert result.http_status is None
    assert "refused" in result.detail


@pytest.mark.asyncio
async def test_timeout_is_unreachable():
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    async with _forwarder(handler) as forwarder:
        result = await forwarder.forward(ORDER)

    assert result.status == DeliveryStatus.UNREACHABLE
    assert "timed out" in result.detail

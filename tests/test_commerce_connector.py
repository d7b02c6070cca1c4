import httpx
import pytest

from order_relay.config import ConfigError
from order_relay.connectors.commerce import (
    CommerceAuthError,
    CommerceConnector,
    CommerceError,
)


def _connector(handler, base_url="https://shop.test/rest/default/V1/", token="tok"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CommerceConnector(base_url, token, client=client)


@pytest.mark.asyncio
async def test_list_recent_builds_search_criteria():
    seen = {}

    def handler(request):
        seen["url"] = request.url
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(200, json={"items": [{"entity_id": 2}, {"entity_id": 1}, "junk"]})

    async with _connector(handler) as connector:
        orders = await connector.list_recent(5)

    assert orders == [{"entity_id": 2}, {"entity_id": 1}]
    assert seen["auth"] == "Bearer tok"
    assert seen["url"].path == "/rest/default/V1/orders"
    params = seen["url"].params
    assert params["searchCriteria[currentPage]"] == "1"
    assert params["searchCriteria[pageSize]"] == "5"
    assert params["searchCriteria[sortOrders][0][field]"] == "entity_id"
    assert params["searchCriteria[sortOrders][0][direction]"] == "DESC"


@pytest.mark.asyncio
async def test_list_recent_without_items_is_empty():
    async with _connector(lambda r: httpx.Response(200, json={"total_count": 0})) as connector:
        assert await connector.list_recent() == []


@pytest.mark.asyncio
async def test_fetch_by_id_quotes_path():
    seen = {}

    def handler(request):
        seen["path"] = request.url.raw_path
        return httpx.Response(200, json={"entity_id": 7})

    async with _connector(handler) as connector:
        order = await connector.fetch_by_id("7/x")

    assert order == {"entity_id": 7}
    assert seen["path"] == b"/rest/default/V1/orders/7%2Fx"


@pytest.mark.asyncio
async def test_auth_failure_is_distinct():
    async with _connector(lambda r: httpx.Response(401, text="bad token")) as connector:
        with pytest.raises(CommerceAuthError) as exc_info:
            await connector.list_recent()
    assert exc_info.value.status_code == 401
    assert "bad token" in str(exc_info.value)


@pytest.mark.asyncio
async def test_not_found_keeps_status():
    async with _connector(lambda r: httpx.Response(404, json={"message": "no"})) as connector:
        with pytest.raises(CommerceError) as exc_info:
            await connector.fetch_by_id("1")
    assert exc_info.value.status_code == 404
    assert not isinstance(exc_info.value, CommerceAuthError)


@pytest.mark.asyncio
async def test_transport_error_wrapped():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    async with _connector(handler) as connector:
        with pytest.raises(CommerceError) as exc_info:
            await connector.list_recent()
    assert exc_info.value.status_code is None


@pytest.mark.asyncio
async def test_timeout_wrapped():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    async with _connector(handler) as connector:
        with pytest.raises(CommerceError, match="timed out"):
            await connector.list_recent()


@pytest.mark.asyncio
async def test_missing_configuration():
    def handler(request):
        raise AssertionError("no request expected")

    async with _connector(handler, base_url="") as connector:
        with pytest.raises(ConfigError, match="COMMERCE_BASE_URL"):
            await connector.list_recent()
    async with _connector(handler, token="") as connector:
        with pytest.raises(ConfigError, match="COMMERCE_ACCESS_TOKEN"):
            await connector.fetch_by_id("1")

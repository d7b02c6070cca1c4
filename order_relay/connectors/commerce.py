"""Commerce platform REST connector (order source).

Expects ``base_url`` in the form ``https://<domain>/rest/<store_code>/V1``,
for example ``https://example.local/rest/default/V1``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from ..config import ConfigError

logger = logging.getLogger(__name__)


class CommerceError(Exception):
    """Raised when the commerce API cannot be reached or rejects a request."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class CommerceAuthError(CommerceError):
    """Raised when the commerce API rejects the access token."""


class CommerceConnector:
    """Minimal read-only client for the commerce order API."""

    def __init__(
        self,
        base_url: str,
        access_token: str,
        *,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = (base_url or "").rstrip("/")
        self._token = access_token or ""
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "CommerceConnector":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        if not self._base_url:
            raise ConfigError("COMMERCE_BASE_URL is required")
        if not self._token:
            raise ConfigError("COMMERCE_ACCESS_TOKEN is required")
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._token}",
        }

    async def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        headers = self._headers()
        url = self._base_url + path
        try:
            resp = await self._client.get(url, params=params, headers=headers)
        except httpx.TimeoutException as exc:
            raise CommerceError(f"Commerce request timed out: {url}") from exc
        except httpx.HTTPError as exc:
            raise CommerceError(f"Commerce connection error: {exc}") from exc

        if resp.is_error:
            text = resp.text or resp.reason_phrase
            message = f"Commerce fetch failed ({resp.status_code}): {text}"
            if resp.status_code in (401, 403):
                raise CommerceAuthError(message, resp.status_code)
            raise CommerceError(message, resp.status_code)

        try:
            return resp.json()
        except ValueError as exc:
            raise CommerceError(
                f"Commerce returned invalid JSON ({resp.status_code})", resp.status_code
            ) from exc

    async def list_recent(self, page_size: int = 10) -> List[Dict[str, Any]]:
        """Return the most recent orders, newest ``entity_id`` first."""

        params = {
            "searchCriteria[currentPage]": "1",
            "searchCriteria[pageSize]": str(page_size),
            "searchCriteria[sortOrders][0][field]": "entity_id",
            "searchCriteria[sortOrders][0][direction]": "DESC",
        }
        data = await self._get("/orders", params)
        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list):
            return []
        orders = [item for item in items if isinstance(item, dict)]
        logger.debug("Fetched %d recent orders", len(orders))
        return orders

    async def fetch_by_id(self, order_id: str) -> Dict[str, Any]:
        """Return a single order by its entity id."""

        data = await self._get("/orders/" + quote(str(order_id), safe=""))
        if not isinstance(data, dict):
            raise CommerceError(f"Unexpected order payload for {order_id}")
        return data

"""HTTP client for the Toast POS API.

Same shape as the model clients: one request per call, an explicit timeout,
no retries. Non-2xx answers and transport failures become IntegrationError;
a rejected client-credentials login is a 401 so the caller can fix the keys.
"""

import logging
from datetime import date
from typing import Any, Dict, Optional

import httpx

from galley.core.config import settings
from galley.core.errors import IntegrationError

logger = logging.getLogger("galley")


class ToastClient:
    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.TOAST_API_BASE).rstrip("/")
        self.timeout = timeout or settings.TOAST_TIMEOUT_SECONDS
        self._transport = transport

    async def _send(self, method: str, path: str, what: str, **kwargs) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(method, f"{self.base_url}{path}", **kwargs)
        except httpx.HTTPError as exc:
            logger.warning(f"[toast] transport error on {path}: {exc.__class__.__name__}")
            raise IntegrationError(f"Toast API unreachable: {exc.__class__.__name__}") from exc
        if response.status_code >= 400:
            logger.warning(f"[toast] {method} {path} returned {response.status_code}: {response.text[:300]}")
            raise IntegrationError(f"Failed to {what}: {response.status_code}", details={"upstream_status": response.status_code})
        return response

    @staticmethod
    def _json(response: httpx.Response, empty: Any) -> Any:
        if not response.content:
            return empty
        try:
            return response.json()
        except ValueError as exc:
            raise IntegrationError("Invalid response from Toast API") from exc

    def _headers(self, token: str, restaurant_guid: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {token}", "Toast-Restaurant-External-ID": restaurant_guid}

    async def authenticate(self, client_id: str, client_secret: str) -> Dict[str, Any]:
        try:
            response = await self._send(
                "POST",
                "/usermgmt/v1/oauth/token",
                "authenticate",
                data={"grant_type": "client_credentials"},
                auth=(client_id, client_secret),
            )
        except IntegrationError as exc:
            if exc.details.get("upstream_status") in (400, 401, 403):
                raise IntegrationError(
                    f"Toast authentication failed: {exc.details['upstream_status']}",
                    code="pos_auth_failed",
                    status_code=401,
                ) from exc
            raise
        data = self._json(response, {})
        if not isinstance(data, dict) or not data.get("access_token"):
            raise IntegrationError("Toast authentication returned no access token")
        return data

    async def orders(self, token: str, restaurant_guid: str, day: date) -> Any:
        response = await self._send(
            "GET",
            "/orders/v2/orders",
            "fetch orders",
            params={"restaurantGuid": restaurant_guid, "startDate": day.isoformat(), "endDate": day.isoformat()},
            headers=self._headers(token, restaurant_guid),
        )
        return self._json(response, [])

    async def update_order(self, token: str, restaurant_guid: str, order_id: str, status: str) -> None:
        await self._send(
            "PATCH",
            f"/orders/v2/orders/{order_id}",
            "update order",
            json={"status": status},
            headers=self._headers(token, restaurant_guid),
        )

    async def menus(self, token: str, restaurant_guid: str) -> Any:
        response = await self._send(
            "GET",
            f"/config/v2/restaurants/{restaurant_guid}/menus",
            "fetch menu",
            headers=self._headers(token, restaurant_guid),
        )
        return self._json(response, [])

    async def update_menu_item(self, token: str, restaurant_guid: str, item_id: str, available: bool) -> None:
        await self._send(
            "PATCH",
            f"/config/v2/menuItems/{item_id}",
            "update menu item",
            json={"available": available},
            headers=self._headers(token, restaurant_guid),
        )

    async def sales_summary(self, token: str, restaurant_guid: str, start: date, end: date) -> Any:
        response = await self._send(
            "GET",
            "/reporting/v1/reports/sales_summary",
            "fetch analytics",
            params={"restaurantGuid": restaurant_guid, "startDate": start.isoformat(), "endDate": end.isoformat()},
            headers=self._headers(token, restaurant_guid),
        )
        return self._json(response, {})


def get_toast_client() -> ToastClient:
    """FastAPI dependency; tests override it with a client on a mock transport."""
    return ToastClient()

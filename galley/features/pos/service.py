"""
galley/features/pos/service.py

Toast POS bridge: one action per request, passed through to the Toast API
with the caller's own credentials. Nothing is stored here.
"""

from datetime import date, timedelta
from typing import Awaitable, Callable, Dict, Optional

from galley.core.errors import IntegrationError
from galley.core.logging import log_event
from galley.core.metrics import pos_requests_total
from galley.features.pos.client import ToastClient
from galley.models.pos import ToastRequest

ANALYTICS_DAYS = 30


async def _authenticate(req: ToastRequest, client: ToastClient, today: date) -> dict:
    data = await client.authenticate(req.config.client_id, req.config.client_secret)
    return {
        "success": True,
        "accessToken": data["access_token"],
        "expiresIn": data.get("expires_in"),
        "message": "Successfully authenticated with Toast POS",
    }


async def _fetch_orders(req: ToastRequest, client: ToastClient, today: date) -> dict:
    orders = await client.orders(req.config.access_token, req.config.restaurant_guid, today) or []
    return {"success": True, "orders": orders, "count": len(orders)}


async def _update_order_status(req: ToastRequest, client: ToastClient, today: date) -> dict:
    await client.update_order(req.config.access_token, req.config.restaurant_guid, req.order_id, req.status)
    return {"success": True, "message": f"Order {req.order_id} updated to {req.status}"}


async def _fetch_menu(req: ToastRequest, client: ToastClient, today: date) -> dict:
    menus = await client.menus(req.config.access_token, req.config.restaurant_guid) or []
    return {"success": True, "menus": menus, "count": len(menus)}


async def _update_menu_item(req: ToastRequest, client: ToastClient, today: date) -> dict:
    await client.update_menu_item(
        req.config.access_token, req.config.restaurant_guid, req.menu_item_id, req.availability
    )
    return {"success": True, "message": f"Menu item {req.menu_item_id} availability updated"}


async def _fetch_analytics(req: ToastRequest, client: ToastClient, today: date) -> dict:
    start = today - timedelta(days=ANALYTICS_DAYS)
    analytics = await client.sales_summary(req.config.access_token, req.config.restaurant_guid, start, today)
    return {"success": True, "analytics": analytics or {}, "period": f"{start.isoformat()} to {today.isoformat()}"}


_ACTIONS: Dict[str, Callable[[ToastRequest, ToastClient, date], Awaitable[dict]]] = {
    "authenticate": _authenticate,
    "fetch_orders": _fetch_orders,
    "update_order_status": _update_order_status,
    "fetch_menu": _fetch_menu,
    "update_menu_item": _update_menu_item,
    "fetch_analytics": _fetch_analytics,
}


async def run_toast_action(
    req: ToastRequest, client: ToastClient, *, user_id=None, today: Optional[date] = None
) -> dict:
    handler = _ACTIONS[req.action]
    try:
        body = await handler(req, client, today or date.today())
    except IntegrationError as exc:
        pos_requests_total.inc(labels={"action": req.action, "outcome": exc.code})
        log_event(
            "warning",
            "pos.toast.failed",
            user_id=user_id,
            event_type="pos.toast.failed",
            error_code=exc.code,
            extra={"action": req.action},
        )
        raise
    pos_requests_total.inc(labels={"action": req.action, "outcome": "ok"})
    log_event("info", "pos.toast", user_id=user_id, event_type="pos.toast", extra={"action": req.action})
    return body

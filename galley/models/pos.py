"""
galley/models/pos.py

Requests for the Toast POS bridge.
"""

from typing import Literal, Optional

from pydantic import Field, model_validator

from galley.models.common import CamelModel

ToastAction = Literal[
    "authenticate",
    "fetch_orders",
    "update_order_status",
    "fetch_menu",
    "update_menu_item",
    "fetch_analytics",
]


class ToastConfig(CamelModel):
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    restaurant_guid: Optional[str] = None
    access_token: Optional[str] = None


class ToastRequest(CamelModel):
    action: ToastAction
    config: ToastConfig = Field(default_factory=ToastConfig)
    order_id: Optional[str] = None
    status: Optional[str] = None
    menu_item_id: Optional[str] = None
    availability: Optional[bool] = None

    @model_validator(mode="after")
    def require_action_fields(self):
        cfg = self.config
        if self.action == "authenticate":
            if not (cfg.client_id and cfg.client_secret):
                raise ValueError("config.clientId and config.clientSecret are required to authenticate")
            return self
        if not cfg.access_token:
            raise ValueError("Access token required")
        if not cfg.restaurant_guid:
            raise ValueError("config.restaurantGuid is required")
        if self.action == "update_order_status" and not (self.order_id and self.status):
            raise ValueError("orderId and status are required")
        if self.action == "update_menu_item" and (not self.menu_item_id or self.availability is None):
            raise ValueError("menuItemId and availability are required")
        return self

"""
Project: Restaurant POS Service (RPOS)

Description:
Thin HTTP client for the POS handlers, used by front-of-house tools and
scripts. Responses are unwrapped from the {success, data, error} envelope;
failures raise PosClientError with the server's message.
"""

import httpx

from logs import get_logger

logger = get_logger(__name__)

CREATE_ORDER_TIMEOUT_SECONDS = 10.0


class PosClientError(Exception):
    pass


class PosClient:
    def __init__(self, base_url, api_key, auth_token=None, transport=None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.auth_token = auth_token or api_key
        self._transport = transport

    def _headers(self):
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.auth_token}",
            "apikey": self.api_key,
        }

    def call(self, action, payload, timeout=None, fallback_error="Request failed"):
        with httpx.Client(base_url=self.base_url, timeout=timeout, transport=self._transport) as client:
            resp = client.post(f"/{action}", json=payload, headers=self._headers())
        try:
            body = resp.json()
        except ValueError:
            raise PosClientError(fallback_error) from None
        if not isinstance(body, dict):
            raise PosClientError(fallback_error)
        if not body.get("success") or body.get("data") is None:
            raise PosClientError(body.get("error") or fallback_error)
        return body["data"]

    def create_order(self, table_id, staff_id):
        """Open an order on a table; aborts after CREATE_ORDER_TIMEOUT_SECONDS."""
        try:
            data = self.call(
                "create_order",
                {"table_id": table_id, "staff_id": staff_id},
                timeout=CREATE_ORDER_TIMEOUT_SECONDS,
                fallback_error="Failed to create order",
            )
        except httpx.TimeoutException:
            logger.warning("create_order timed out after %ss", CREATE_ORDER_TIMEOUT_SECONDS)
            raise PosClientError("Request timed out. Please try again.") from None
        return data["order_id"]

    def add_item_to_order(self, order_id, menu_item_id, quantity=1):
        data = self.call(
            "add_item_to_order",
            {"order_id": order_id, "menu_item_id": menu_item_id, "quantity": quantity},
            fallback_error="Failed to add item",
        )
        return {"order_item_id": data["order_item_id"], "order_total": data["order_total"]}

    def void_item(self, order_item_id, reason):
        return self.call("void_item", {"order_item_id": order_item_id, "reason": reason})

    def record_payment(self, order_id, amount, method="cash"):
        return self.call("record_payment", {"order_id": order_id, "amount": amount, "method": method})

    def close_order(self, order_id):
        return self.call("close_order", {"order_id": order_id})

"""
Project: Restaurant POS Service (RPOS)

Description:
In-memory DataGateway used by the test-suite and for local demos without a
database. Rows live in plain dicts; transactions snapshot the state and
restore it on failure. Any operation can be made to fail with fail(name).
"""

import copy
import threading
import uuid
from contextlib import contextmanager

from gateway import (
    DataGateway, GatewayError, MenuItemRecord, OrderItemRecord, OrderRecord, PaymentRecord,
    ShiftRecord, StaffMember, TableRecord,
)
from models import utcnow


def _new_id():
    return str(uuid.uuid4())


class InMemoryGateway(DataGateway):
    def __init__(self):
        self._lock = threading.RLock()
        self._failing = set()
        self.state = {
            "staff": {},
            "tables": {},
            "menu_items": {},
            "orders": {},
            "order_items": {},
            "payments": {},
            "shifts": {},
            "audit_log": [],
        }

    # ----- test helpers -----
    def fail(self, *operations):
        """Make the named gateway operations raise GatewayError."""
        self._failing.update(operations)

    def _check(self, operation):
        if operation in self._failing:
            raise GatewayError(f"{operation} failed")

    @property
    def audit_log(self):
        return self.state["audit_log"]

    def add_staff(self, restaurant_id, role="server", username=None, user_id=None):
        user_id = user_id or _new_id()
        self.state["staff"][user_id] = {
            "id": user_id, "restaurant_id": restaurant_id,
            "username": username or f"user-{user_id[:8]}", "role": role,
        }
        return user_id

    def add_table(self, restaurant_id, label="T1", capacity=4, table_id=None):
        table_id = table_id or len(self.state["tables"]) + 1
        self.state["tables"][table_id] = {
            "id": table_id, "restaurant_id": restaurant_id, "label": label, "capacity": capacity,
        }
        return table_id

    def add_menu_item(self, restaurant_id, price_cents, name="Item", menu_item_id=None):
        menu_item_id = menu_item_id or _new_id()
        self.state["menu_items"][menu_item_id] = {
            "id": menu_item_id, "restaurant_id": restaurant_id, "name": name, "price_cents": price_cents,
        }
        return menu_item_id

    def add_order(self, restaurant_id, status="open", table_id=None, staff_id=None, order_id=None):
        order_id = order_id or _new_id()
        self.state["orders"][order_id] = {
            "id": order_id, "restaurant_id": restaurant_id, "table_id": table_id,
            "staff_id": staff_id, "status": status, "cancel_reason": None,
        }
        return order_id

    def add_order_item(self, order_id, menu_item_id, quantity, unit_price_cents, voided=False):
        item_id = _new_id()
        self.state["order_items"][item_id] = {
            "id": item_id, "order_id": order_id, "menu_item_id": menu_item_id, "quantity": quantity,
            "unit_price_cents": unit_price_cents, "voided": voided, "void_reason": None,
        }
        return item_id

    def add_shift(self, restaurant_id, user_id, opening_float_cents=0, closed=False):
        shift_id = _new_id()
        now = utcnow()
        self.state["shifts"][shift_id] = {
            "id": shift_id, "restaurant_id": restaurant_id, "user_id": user_id, "opened_at": now,
            "opening_float_cents": opening_float_cents, "closed_at": now if closed else None,
            "closing_float_cents": opening_float_cents if closed else None,
        }
        return shift_id

    # ----- DataGateway -----
    @contextmanager
    def transaction(self):
        with self._lock:
            snapshot = copy.deepcopy(self.state)
            try:
                yield
            except BaseException:
                self.state = snapshot
                raise

    def fetch_staff(self, user_id):
        self._check("fetch_staff")
        row = self.state["staff"].get(user_id)
        return StaffMember(**row) if row else None

    def _open_order_for(self, table_id):
        for o in self.state["orders"].values():
            if o["table_id"] == table_id and o["status"] == "open":
                return o["id"]
        return None

    def _table(self, row):
        return TableRecord(open_order_id=self._open_order_for(row["id"]), **row)

    def fetch_table(self, table_id):
        self._check("fetch_table")
        row = self.state["tables"].get(table_id)
        return self._table(row) if row else None

    def list_tables(self, restaurant_id):
        self._check("list_tables")
        return [
            self._table(row)
            for _, row in sorted(self.state["tables"].items())
            if row["restaurant_id"] == restaurant_id
        ]

    def fetch_order(self, order_id, for_update=False):
        self._check("fetch_order")
        o = self.state["orders"].get(order_id)
        if o is None:
            return None
        return OrderRecord(id=o["id"], restaurant_id=o["restaurant_id"], table_id=o["table_id"],
                           staff_id=o["staff_id"], status=o["status"])

    def insert_order(self, restaurant_id, table_id, staff_id):
        self._check("insert_order")
        order_id = self.add_order(restaurant_id, table_id=table_id, staff_id=staff_id)
        return self.fetch_order(order_id)

    def set_order_status(self, order_id, status, reason=None):
        self._check("set_order_status")
        o = self.state["orders"][order_id]
        o["status"] = status
        if reason is not None:
            o["cancel_reason"] = reason

    def compute_order_total(self, order_id):
        self._check("compute_order_total")
        return sum(
            oi["quantity"] * oi["unit_price_cents"]
            for oi in self.state["order_items"].values()
            if oi["order_id"] == order_id and not oi["voided"]
        )

    def fetch_menu_item(self, menu_item_id):
        self._check("fetch_menu_item")
        row = self.state["menu_items"].get(menu_item_id)
        return MenuItemRecord(**row) if row else None

    def insert_order_item(self, order_id, menu_item_id, quantity, unit_price_cents):
        self._check("insert_order_item")
        return self.add_order_item(order_id, menu_item_id, quantity, unit_price_cents)

    def fetch_order_item(self, order_item_id, for_update=False):
        self._check("fetch_order_item")
        row = self.state["order_items"].get(order_item_id)
        if row is None:
            return None
        return OrderItemRecord(id=row["id"], order_id=row["order_id"], menu_item_id=row["menu_item_id"],
                               quantity=row["quantity"], unit_price_cents=row["unit_price_cents"],
                               voided=row["voided"])

    def void_order_item(self, order_item_id, reason):
        self._check("void_order_item")
        row = self.state["order_items"][order_item_id]
        row["voided"] = True
        row["void_reason"] = reason

    def compute_payments_total(self, order_id):
        self._check("compute_payments_total")
        return sum(p["amount_cents"] for p in self.state["payments"].values() if p["order_id"] == order_id)

    def insert_payment(self, order_id, method, amount_cents, recorded_by):
        self._check("insert_payment")
        payment_id = _new_id()
        self.state["payments"][payment_id] = {
            "id": payment_id, "order_id": order_id, "method": method, "amount_cents": amount_cents,
            "recorded_by": recorded_by, "created_at": utcnow(),
        }
        return payment_id

    def list_payments_by(self, user_id, since, until):
        self._check("list_payments_by")
        return [
            PaymentRecord(**p)
            for p in sorted(self.state["payments"].values(), key=lambda p: p["created_at"])
            if p["recorded_by"] == user_id and since <= p["created_at"] <= until
        ]

    def _shift(self, row):
        return ShiftRecord(**row)

    def fetch_shift(self, shift_id, for_update=False):
        self._check("fetch_shift")
        row = self.state["shifts"].get(shift_id)
        return self._shift(row) if row else None

    def fetch_open_shift(self, user_id):
        self._check("fetch_open_shift")
        for row in self.state["shifts"].values():
            if row["user_id"] == user_id and row["closed_at"] is None:
                return self._shift(row)
        return None

    def insert_shift(self, restaurant_id, user_id, opening_float_cents):
        self._check("insert_shift")
        shift_id = self.add_shift(restaurant_id, user_id, opening_float_cents)
        return self._shift(self.state["shifts"][shift_id])

    def close_shift(self, shift_id, closing_float_cents):
        self._check("close_shift")
        row = self.state["shifts"][shift_id]
        row["closed_at"] = utcnow()
        row["closing_float_cents"] = closing_float_cents
        return self._shift(row)

    def insert_audit_log(self, entry):
        self._check("insert_audit_log")
        self.state["audit_log"].append(entry)

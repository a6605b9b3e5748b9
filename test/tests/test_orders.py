"""
Unit tests for order creation, cancellation and closing.
"""

import pytest

from support import KITCHEN_ID, OTHER_RESTAURANT_ID, RESTAURANT_ID, SERVER_ID, post


# ----- create_order -----
@pytest.fixture
def table(gateway):
    return gateway.add_table(RESTAURANT_ID, label="T7", capacity=4)


def test_create_order(client, gateway, table):
    r = post(client, "create_order", {"table_id": table, "staff_id": SERVER_ID})
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["status"] == "open"

    row = gateway.state["orders"][data["order_id"]]
    assert row["table_id"] == table
    assert row["staff_id"] == SERVER_ID
    assert row["restaurant_id"] == RESTAURANT_ID
    assert gateway.audit_log[-1].action == "create_order"


def test_create_order_is_not_idempotent(client, table):
    body = {"table_id": table, "staff_id": SERVER_ID}
    first = post(client, "create_order", body).get_json()["data"]
    second = post(client, "create_order", body).get_json()["data"]
    assert first["order_id"] != second["order_id"]
    assert first["status"] == second["status"] == "open"


def test_create_order_marks_table_occupied(client, gateway, table):
    order_id = post(client, "create_order", {"table_id": table, "staff_id": SERVER_ID}).get_json()["data"]["order_id"]
    t = gateway.fetch_table(table)
    assert t.status == "occupied"
    assert t.open_order_id == order_id


def test_create_order_unknown_table(client):
    r = post(client, "create_order", {"table_id": 999, "staff_id": SERVER_ID})
    assert r.status_code == 404
    assert r.get_json()["error"] == "Table not found"


def test_create_order_table_of_other_restaurant(client, gateway):
    foreign = gateway.add_table(OTHER_RESTAURANT_ID, label="X1")
    r = post(client, "create_order", {"table_id": foreign, "staff_id": SERVER_ID})
    assert r.status_code == 404


def test_create_order_unknown_staff(client, table):
    r = post(client, "create_order", {"table_id": table, "staff_id": "nobody"})
    assert r.status_code == 404
    assert r.get_json()["error"] == "Staff member not found"


@pytest.mark.parametrize("body, message", [
    ({"staff_id": "s"}, "table_id is required"),
    ({"table_id": "1", "staff_id": "s"}, "table_id is required"),
    ({"table_id": 1}, "staff_id is required"),
    ({"table_id": 1, "staff_id": ""}, "staff_id is required"),
])
def test_create_order_validation(client, body, message):
    r = post(client, "create_order", body)
    assert r.status_code == 400
    assert r.get_json()["error"] == message


def test_create_order_write_failure(client, gateway, table):
    gateway.fail("insert_order")
    r = post(client, "create_order", {"table_id": table, "staff_id": SERVER_ID})
    assert r.status_code == 500
    assert r.get_json()["error"] == "Failed to create order"


def test_kitchen_cannot_create_orders(client, table):
    r = post(client, "create_order", {"table_id": table, "staff_id": KITCHEN_ID}, token="kitchen-token")
    assert r.status_code == 403


# ----- cancel_order -----
def test_cancel_order(client, gateway, open_order):
    r = post(client, "cancel_order", {"order_id": open_order, "reason": "Customer request"}, token="manager-token")
    assert r.status_code == 200
    assert r.get_json() == {"success": True, "data": {"success": True}}

    row = gateway.state["orders"][open_order]
    assert row["status"] == "cancelled"
    assert row["cancel_reason"] == "Customer request"
    entry = gateway.audit_log[-1]
    assert (entry.action, entry.entity_type, entry.entity_id) == ("cancel_order", "order", open_order)


def test_cancel_order_requires_manager(client, gateway, open_order):
    r = post(client, "cancel_order", {"order_id": open_order, "reason": "x"})
    assert r.status_code == 403
    assert gateway.state["orders"][open_order]["status"] == "open"


@pytest.mark.parametrize("status", ["closed", "cancelled"])
def test_cancel_order_invalid_state(client, gateway, status):
    order_id = gateway.add_order(RESTAURANT_ID, status=status)
    r = post(client, "cancel_order", {"order_id": order_id, "reason": "x"}, token="manager-token")
    assert r.status_code == 422
    assert r.get_json()["error"] == "Order cannot be cancelled"


def test_cancel_order_audit_failure_is_fatal(client, gateway, open_order):
    gateway.fail("insert_audit_log")
    r = post(client, "cancel_order", {"order_id": open_order, "reason": "x"}, token="manager-token")
    assert r.status_code == 500
    assert r.get_json() == {"success": False, "error": "Failed to write audit log"}
    assert gateway.state["orders"][open_order]["status"] == "open"


def test_audit_strictness_is_configurable(app, client, gateway, open_order):
    app.config["STRICT_AUDIT_ACTIONS"] = frozenset()
    gateway.fail("insert_audit_log")
    r = post(client, "cancel_order", {"order_id": open_order, "reason": "x"}, token="manager-token")
    assert r.status_code == 200
    assert gateway.state["orders"][open_order]["status"] == "cancelled"


@pytest.mark.parametrize("body, message", [
    ({"reason": "x"}, "order_id is required"),
    ({"order_id": "", "reason": "x"}, "order_id is required"),
    ({"order_id": 123, "reason": "x"}, "order_id is required"),
    ({"order_id": "o"}, "reason is required"),
    ({"order_id": "o", "reason": ""}, "reason is required"),
    ({"order_id": "o", "reason": 42}, "reason is required"),
])
def test_cancel_order_validation(client, body, message):
    r = post(client, "cancel_order", body, token="manager-token")
    assert r.status_code == 400
    assert r.get_json()["error"] == message


def test_cancel_order_unknown(client):
    r = post(client, "cancel_order", {"order_id": "nope", "reason": "x"}, token="manager-token")
    assert r.status_code == 404


# ----- close_order -----
def test_close_order_returns_final_total(client, gateway, open_order, burger):
    gateway.add_order_item(open_order, burger, 2, 850)
    gateway.add_order_item(open_order, burger, 1, 850, voided=True)

    r = post(client, "close_order", {"order_id": open_order})
    assert r.status_code == 200
    assert r.get_json()["data"] == {"success": True, "final_total": 1700}
    assert gateway.state["orders"][open_order]["status"] == "closed"


def test_close_empty_order(client, open_order):
    r = post(client, "close_order", {"order_id": open_order})
    assert r.get_json()["data"]["final_total"] == 0


def test_close_order_not_open(client, gateway):
    order_id = gateway.add_order(RESTAURANT_ID, status="closed")
    r = post(client, "close_order", {"order_id": order_id})
    assert r.status_code == 409
    assert r.get_json()["error"] == "Order is not open"


def test_close_order_frees_the_table(client, gateway, open_order):
    table_id = gateway.state["orders"][open_order]["table_id"]
    post(client, "close_order", {"order_id": open_order})
    assert gateway.fetch_table(table_id).status == "free"


def test_close_order_write_failure(client, gateway, open_order):
    gateway.fail("set_order_status")
    r = post(client, "close_order", {"order_id": open_order})
    assert r.status_code == 500
    assert r.get_json()["error"] == "Failed to close order"

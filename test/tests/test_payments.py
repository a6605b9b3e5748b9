import pytest

from support import RESTAURANT_ID, SERVER_ID, post


@pytest.fixture
def tab(gateway, open_order, burger):
    # 2 x 850 outstanding
    gateway.add_order_item(open_order, burger, 2, 850)
    return open_order


def test_exact_payment(client, gateway, tab):
    r = post(client, "record_payment", {"order_id": tab, "amount": 1700, "method": "card"})
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["change_due"] == 0

    payment = gateway.state["payments"][data["payment_id"]]
    assert payment["amount_cents"] == 1700
    assert payment["method"] == "card"
    assert payment["recorded_by"] == SERVER_ID


def test_cash_overpayment_returns_change(client, gateway, tab):
    r = post(client, "record_payment", {"order_id": tab, "amount": 2000, "method": "cash"})
    data = r.get_json()["data"]
    assert data["change_due"] == 300
    assert gateway.state["payments"][data["payment_id"]]["amount_cents"] == 1700


def test_split_payments(client, gateway, tab):
    first = post(client, "record_payment", {"order_id": tab, "amount": 1000, "method": "card"})
    assert first.get_json()["data"]["change_due"] == 0
    second = post(client, "record_payment", {"order_id": tab, "amount": 1000, "method": "cash"})
    assert second.get_json()["data"]["change_due"] == 300
    assert gateway.compute_payments_total(tab) == 1700


def test_fractional_amount_rounds_to_cents(client, gateway, tab):
    r = post(client, "record_payment", {"order_id": tab, "amount": 25.5, "method": "cash"})
    data = r.get_json()["data"]
    assert gateway.state["payments"][data["payment_id"]]["amount_cents"] == 26


def test_nothing_outstanding(client, gateway, open_order):
    r = post(client, "record_payment", {"order_id": open_order, "amount": 100, "method": "cash"})
    assert r.status_code == 422
    assert r.get_json()["error"] == "Order has no outstanding balance"


def test_order_not_open(client, gateway):
    order_id = gateway.add_order(RESTAURANT_ID, status="closed")
    r = post(client, "record_payment", {"order_id": order_id, "amount": 100, "method": "cash"})
    assert r.status_code == 422
    assert r.get_json()["error"] == "Order is not open"


def test_unknown_order(client):
    r = post(client, "record_payment", {"order_id": "nope", "amount": 100, "method": "cash"})
    assert r.status_code == 404


def test_write_failure(client, gateway, tab):
    gateway.fail("insert_payment")
    r = post(client, "record_payment", {"order_id": tab, "amount": 100, "method": "cash"})
    assert r.status_code == 500
    assert r.get_json()["error"] == "Failed to record payment"


@pytest.mark.parametrize("body, message", [
    ({"amount": 10, "method": "cash"}, "order_id is required"),
    ({"order_id": "", "amount": 10, "method": "cash"}, "order_id is required"),
    ({"order_id": "o", "method": "cash"}, "amount is required"),
    ({"order_id": "o", "amount": "10", "method": "cash"}, "amount is required"),
    ({"order_id": "o", "amount": None, "method": "cash"}, "amount is required"),
    ({"order_id": "o", "amount": 0, "method": "cash"}, "amount must be greater than 0"),
    ({"order_id": "o", "amount": -10, "method": "cash"}, "amount must be greater than 0"),
    ({"order_id": "o", "amount": 0.4, "method": "cash"}, "amount must be greater than 0"),
    ({"order_id": "o", "amount": 10}, "method is required"),
    ({"order_id": "o", "amount": 10, "method": ""}, "method is required"),
    ({"order_id": "o", "amount": 10, "method": "bitcoin"}, "method must be one of cash, card, other"),
    ({"order_id": "o", "amount": 2**31, "method": "cash"}, "amount must not exceed 2147483647"),
    ({"order_id": "o", "amount": 2147483647.5, "method": "cash"}, "amount must not exceed 2147483647"),
])
def test_validation(client, body, message):
    r = post(client, "record_payment", body)
    assert r.status_code == 400
    assert r.get_json() == {"success": False, "error": message}


def test_kitchen_cannot_take_payments(client, tab):
    r = post(client, "record_payment", {"order_id": tab, "amount": 100, "method": "cash"}, token="kitchen-token")
    assert r.status_code == 403

from support import OTHER_RESTAURANT_ID, RESTAURANT_ID


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.get_json() == {"success": True, "data": {"status": "ok"}}


def test_tables_show_derived_status(client, gateway):
    t1 = gateway.add_table(RESTAURANT_ID, label="T1")
    t2 = gateway.add_table(RESTAURANT_ID, label="T2")
    gateway.add_table(OTHER_RESTAURANT_ID, label="X1")
    order_id = gateway.add_order(RESTAURANT_ID, table_id=t2)
    gateway.add_order(RESTAURANT_ID, table_id=t1, status="closed")

    r = client.get("/api/tables", headers={"Authorization": "Bearer server-token"})
    assert r.status_code == 200
    tables = r.get_json()["data"]
    assert [(t["label"], t["status"], t["order_id"]) for t in tables] == [
        ("T1", "free", None),
        ("T2", "occupied", order_id),
    ]


def test_tables_require_bearer(client):
    r = client.get("/api/tables")
    assert r.status_code == 401
    r = client.get("/api/tables", headers={"Authorization": "Bearer nobody"})
    assert r.status_code == 401


def test_tables_store_failure_uses_envelope(client, gateway):
    gateway.fail("list_tables")
    r = client.get("/api/tables", headers={"Authorization": "Bearer server-token"})
    assert r.status_code == 500
    assert r.get_json() == {"success": False, "error": "Internal server error"}
    assert r.headers["Access-Control-Allow-Origin"] == "*"

import json

RESTAURANT_ID = "00000000-0000-0000-0000-000000000001"
OTHER_RESTAURANT_ID = "00000000-0000-0000-0000-000000000002"

SERVER_ID = "00000000-0000-0000-0000-000000000401"
MANAGER_ID = "00000000-0000-0000-0000-000000000402"
KITCHEN_ID = "00000000-0000-0000-0000-000000000403"
OUTSIDER_ID = "00000000-0000-0000-0000-000000000404"

TOKENS = {
    "server-token": SERVER_ID,
    "manager-token": MANAGER_ID,
    "kitchen-token": KITCHEN_ID,
    "outsider-token": OUTSIDER_ID,
    "ghost-token": "00000000-0000-0000-0000-000000000999",
}

HANDLERS = [
    "add_item_to_order",
    "create_order",
    "cancel_order",
    "close_order",
    "open_shift",
    "close_shift",
    "record_payment",
    "void_item",
]


def post(client, action, body=None, token="server-token", raw=None):
    headers = {"Content-Type": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    data = raw if raw is not None else json.dumps(body)
    return client.post(f"/{action}", data=data, headers=headers)

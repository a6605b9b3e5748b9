"""
Shared fixtures: an app wired to the in-memory gateway and a static token
map, with one restaurant staffed by a server, a manager and a cook, plus a
manager from a second restaurant.
"""

import pytest

from app import create_app
from identity import StaticIdentityResolver
from memory_gateway import InMemoryGateway
from support import (
    KITCHEN_ID, MANAGER_ID, OTHER_RESTAURANT_ID, OUTSIDER_ID, RESTAURANT_ID, SERVER_ID, TOKENS,
)


@pytest.fixture
def gateway():
    gw = InMemoryGateway()
    gw.add_staff(RESTAURANT_ID, role="server", username="sam", user_id=SERVER_ID)
    gw.add_staff(RESTAURANT_ID, role="manager", username="mia", user_id=MANAGER_ID)
    gw.add_staff(RESTAURANT_ID, role="kitchen", username="kai", user_id=KITCHEN_ID)
    gw.add_staff(OTHER_RESTAURANT_ID, role="manager", username="otto", user_id=OUTSIDER_ID)
    return gw


@pytest.fixture
def app(gateway):
    app = create_app(testing=True, gateway=gateway, identity=StaticIdentityResolver(TOKENS))
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def open_order(gateway):
    table_id = gateway.add_table(RESTAURANT_ID, label="T1")
    return gateway.add_order(RESTAURANT_ID, table_id=table_id, staff_id=SERVER_ID)


@pytest.fixture
def burger(gateway):
    return gateway.add_menu_item(RESTAURANT_ID, 850, name="Burger")

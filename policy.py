"""
Role policy: which staff roles may invoke which handler.
"""

ROLES = ("owner", "manager", "server", "kitchen")

SUPERVISOR_ROLES = frozenset({"owner", "manager"})
FLOOR_ROLES = frozenset({"owner", "manager", "server"})
ALL_ROLES = frozenset(ROLES)

PERMISSIONS = {
    "add_item_to_order": FLOOR_ROLES,
    "create_order": FLOOR_ROLES,
    "close_order": FLOOR_ROLES,
    "record_payment": FLOOR_ROLES,
    "cancel_order": SUPERVISOR_ROLES,
    "void_item": SUPERVISOR_ROLES,
    "open_shift": ALL_ROLES,
    "close_shift": ALL_ROLES,
}


def is_allowed(action, role):
    return role in PERMISSIONS.get(action, frozenset())


def is_supervisor(role):
    return role in SUPERVISOR_ROLES

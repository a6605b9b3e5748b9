"""
Project: Restaurant POS Service (RPOS)

Description:
The POS request handlers: add_item_to_order, create_order, cancel_order,
close_order, open_shift, close_shift, record_payment and void_item.

Every handler runs the same pipeline (see endpoint()): CORS preflight,
method check, bearer header, JSON body, ordered field validation, caller
resolution and role check. The handler body then performs its store calls
inside a single gateway transaction and returns the success payload.
"""

from contextlib import contextmanager
from datetime import timezone
from functools import wraps

from flask import Blueprint, current_app, request
from werkzeug.exceptions import BadRequest

from envelope import HandlerError, fail, ok, preflight
from events import publish
from gateway import AuditEntry, GatewayError
from identity import bearer_token
from logs import get_logger
from policy import is_allowed, is_supervisor
from schemas import (
    AddItemToOrderRequest, CancelOrderRequest, CloseOrderRequest, CloseShiftRequest,
    CreateOrderRequest, OpenShiftRequest, RecordPaymentRequest, VoidItemRequest, to_cents,
)

logger = get_logger(__name__)

bp = Blueprint("pos", __name__)

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

INVALID_BODY = "Invalid request body"
INVALID_OR_MISSING_BODY = "Invalid or missing request body"
MISSING_BODY = "Missing request body"


# --------- helpers ---------
def services():
    ext = current_app.extensions["pos"]
    return ext["gateway"], ext["identity"]


def resolve_caller(gateway, identity, token):
    user_id = identity.resolve(token)
    if not user_id:
        raise HandlerError(401, "Unauthorized")
    staff = gateway.fetch_staff(user_id)
    if staff is None:
        raise HandlerError(401, "Unauthorized")
    return staff


def _is_missing(body):
    # JSON null, false, 0 and "" count as no body; objects and arrays never do
    if body is None:
        return True
    return not isinstance(body, (dict, list)) and not body


def endpoint(action, schema, invalid_body=INVALID_BODY, missing_body=INVALID_BODY):
    """Register ``fn(req, caller, gateway) -> data`` as the POST handler for /<action>."""

    def decorator(fn):
        @wraps(fn)
        def view():
            if request.method == "OPTIONS":
                return preflight()
            if request.method != "POST":
                return fail(400, invalid_body)

            token = bearer_token(request.headers.get("Authorization"))
            if token is None:
                return fail(401, "Unauthorized")

            try:
                body = request.get_json(force=True)
            except BadRequest:
                return fail(400, invalid_body)
            if _is_missing(body):
                return fail(400, missing_body)
            req = schema.from_payload(body)

            gateway, identity = services()
            caller = resolve_caller(gateway, identity, token)
            if not is_allowed(action, caller.role):
                logger.warning("%s denied for user %s (role %s)", action, caller.id, caller.role)
                raise HandlerError(403, "Forbidden")

            return ok(fn(req, caller, gateway))

        bp.add_url_rule(f"/{action}", action, view, methods=ALL_METHODS)
        return view

    return decorator


@contextmanager
def unit_of_work(gateway, failure_message):
    """Run the block in one store transaction; a failed commit becomes a 500."""
    try:
        with gateway.transaction():
            yield
    except GatewayError as exc:
        logger.error("%s: %s", failure_message, exc)
        raise HandlerError(500, failure_message) from None


def require(loader, key, message, restaurant_id=None, **kwargs):
    try:
        record = loader(key, **kwargs)
    except GatewayError as exc:
        logger.error("lookup %s(%r) failed: %s", loader.__name__, key, exc)
        record = None
    if record is None:
        raise HandlerError(404, message)
    if restaurant_id is not None and record.restaurant_id != restaurant_id:
        raise HandlerError(404, message)
    return record


def audit(gateway, caller, action, entity_type, entity_id, payload):
    entry = AuditEntry(
        restaurant_id=caller.restaurant_id,
        user_id=caller.id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        payload=payload,
    )
    try:
        gateway.insert_audit_log(entry)
    except GatewayError as exc:
        if action in current_app.config["STRICT_AUDIT_ACTIONS"]:
            logger.error("audit write for %s %s failed, rolling back: %s", action, entity_id, exc)
            raise HandlerError(500, "Failed to write audit log") from None
        logger.warning("audit write for %s %s failed: %s", action, entity_id, exc)


def isoformat(dt):
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def summarize_shift(shift, payments):
    by_method = {}
    for p in payments:
        by_method[p.method] = by_method.get(p.method, 0) + p.amount_cents
    expected_cash = shift.opening_float_cents + by_method.get("cash", 0)
    return {
        "payments_count": len(payments),
        "payments_total": sum(by_method.values()),
        "by_method": by_method,
        "opening_float": shift.opening_float_cents,
        "closing_float": shift.closing_float_cents,
        "expected_cash": expected_cash,
        "cash_variance": shift.closing_float_cents - expected_cash,
    }


@bp.app_errorhandler(HandlerError)
def handle_handler_error(exc):
    return fail(exc.status, exc.message)


@bp.app_errorhandler(GatewayError)
def handle_gateway_error(exc):
    logger.error("unhandled store failure: %s", exc, exc_info=exc)
    return fail(500, "Internal server error")


# --------- orders ---------
@endpoint("add_item_to_order", AddItemToOrderRequest,
          invalid_body=INVALID_OR_MISSING_BODY, missing_body=MISSING_BODY)
def add_item_to_order(req, caller, gateway):
    with unit_of_work(gateway, "Failed to add item to order"):
        order = require(gateway.fetch_order, req.order_id, "Order not found",
                        caller.restaurant_id, for_update=True)
        if order.status != "open":
            logger.warning("add_item_to_order rejected: order %s is %s", order.id, order.status)
            raise HandlerError(409, "Order is not open")
        item = require(gateway.fetch_menu_item, req.menu_item_id, "Menu item not found", caller.restaurant_id)

        try:
            order_item_id = gateway.insert_order_item(order.id, item.id, req.quantity, item.price_cents)
        except GatewayError:
            raise HandlerError(500, "Failed to add item to order") from None
        # always recomputed from the persisted rows
        try:
            order_total = gateway.compute_order_total(order.id)
        except GatewayError:
            raise HandlerError(500, "Failed to compute order total") from None

        audit(gateway, caller, "add_item_to_order", "order_item", order_item_id, {
            "order_id": order.id,
            "menu_item_id": item.id,
            "quantity": req.quantity,
            "unit_price_cents": item.price_cents,
        })

    logger.info("order %s: added %s x%d, total %d", order.id, item.id, req.quantity, order_total)
    publish("order.item_added", order_id=order.id, order_item_id=order_item_id, order_total=order_total)
    return {"order_item_id": order_item_id, "order_total": order_total}


@endpoint("create_order", CreateOrderRequest,
          invalid_body=INVALID_OR_MISSING_BODY, missing_body=MISSING_BODY)
def create_order(req, caller, gateway):
    with unit_of_work(gateway, "Failed to create order"):
        table = require(gateway.fetch_table, req.table_id, "Table not found", caller.restaurant_id)
        staff = require(gateway.fetch_staff, req.staff_id, "Staff member not found", caller.restaurant_id)
        order = gateway.insert_order(caller.restaurant_id, table.id, staff.id)
        audit(gateway, caller, "create_order", "order", order.id, {"table_id": table.id, "staff_id": staff.id})

    logger.info("order %s opened on table %s", order.id, table.label)
    publish("order.created", order_id=order.id, table_id=table.id)
    return {"order_id": order.id, "status": order.status}


@endpoint("cancel_order", CancelOrderRequest)
def cancel_order(req, caller, gateway):
    with unit_of_work(gateway, "Failed to cancel order"):
        order = require(gateway.fetch_order, req.order_id, "Order not found",
                        caller.restaurant_id, for_update=True)
        if order.status != "open":
            logger.warning("cancel_order rejected: order %s is %s", order.id, order.status)
            raise HandlerError(422, "Order cannot be cancelled")
        gateway.set_order_status(order.id, "cancelled", reason=req.reason)
        audit(gateway, caller, "cancel_order", "order", order.id,
              {"reason": req.reason, "previous_status": order.status})

    logger.info("order %s cancelled by %s", order.id, caller.id)
    publish("order.cancelled", order_id=order.id, table_id=order.table_id)
    return {"success": True}


@endpoint("close_order", CloseOrderRequest)
def close_order(req, caller, gateway):
    with unit_of_work(gateway, "Failed to close order"):
        order = require(gateway.fetch_order, req.order_id, "Order not found",
                        caller.restaurant_id, for_update=True)
        if order.status != "open":
            logger.warning("close_order rejected: order %s is %s", order.id, order.status)
            raise HandlerError(409, "Order is not open")
        final_total = gateway.compute_order_total(order.id)
        gateway.set_order_status(order.id, "closed")
        audit(gateway, caller, "close_order", "order", order.id, {"final_total": final_total})

    logger.info("order %s closed, final total %d", order.id, final_total)
    publish("order.closed", order_id=order.id, table_id=order.table_id, final_total=final_total)
    return {"success": True, "final_total": final_total}


@endpoint("void_item", VoidItemRequest)
def void_item(req, caller, gateway):
    with unit_of_work(gateway, "Failed to void item"):
        item = require(gateway.fetch_order_item, req.order_item_id, "Order item not found", for_update=True)
        order = require(gateway.fetch_order, item.order_id, "Order item not found",
                        caller.restaurant_id, for_update=True)
        if order.status != "open":
            logger.warning("void_item rejected: order %s is %s", order.id, order.status)
            raise HandlerError(409, "Order is not open")
        if item.voided:
            raise HandlerError(409, "Order item already voided")

        gateway.void_order_item(item.id, req.reason)
        order_total = gateway.compute_order_total(order.id)
        audit(gateway, caller, "void_item", "order_item", item.id, {
            "order_id": order.id,
            "reason": req.reason,
            "quantity": item.quantity,
            "unit_price_cents": item.unit_price_cents,
        })

    logger.info("order %s: voided item %s, total %d", order.id, item.id, order_total)
    publish("order.item_voided", order_id=order.id, order_item_id=item.id, order_total=order_total)
    return {"success": True, "order_total": order_total}


# --------- payments ---------
@endpoint("record_payment", RecordPaymentRequest)
def record_payment(req, caller, gateway):
    amount_cents = to_cents(req.amount)
    if amount_cents <= 0:
        raise HandlerError(400, "amount must be greater than 0")

    with unit_of_work(gateway, "Failed to record payment"):
        order = require(gateway.fetch_order, req.order_id, "Order not found",
                        caller.restaurant_id, for_update=True)
        if order.status != "open":
            logger.warning("record_payment rejected: order %s is %s", order.id, order.status)
            raise HandlerError(422, "Order is not open")

        balance = gateway.compute_order_total(order.id) - gateway.compute_payments_total(order.id)
        if balance <= 0:
            raise HandlerError(422, "Order has no outstanding balance")
        change_due = max(0, amount_cents - balance)
        applied = amount_cents - change_due

        payment_id = gateway.insert_payment(order.id, req.method, applied, caller.id)
        audit(gateway, caller, "record_payment", "payment", payment_id, {
            "order_id": order.id,
            "method": req.method,
            "amount_cents": applied,
            "tendered_cents": amount_cents,
            "change_due": change_due,
        })

    logger.info("order %s: %s payment %d, change %d", order.id, req.method, applied, change_due)
    publish("payment.created", order_id=order.id, payment_id=payment_id, balance=balance - applied)
    return {"payment_id": payment_id, "change_due": change_due}


# --------- shifts ---------
@endpoint("open_shift", OpenShiftRequest)
def open_shift(req, caller, gateway):
    if req.staff_id != caller.id and not is_supervisor(caller.role):
        logger.warning("open_shift denied: %s tried to open a shift for %s", caller.id, req.staff_id)
        raise HandlerError(403, "Forbidden")
    opening_float = to_cents(req.opening_float)

    with unit_of_work(gateway, "Failed to open shift"):
        staff = require(gateway.fetch_staff, req.staff_id, "Staff member not found", caller.restaurant_id)
        if gateway.fetch_open_shift(staff.id) is not None:
            raise HandlerError(409, "Shift already open")
        shift = gateway.insert_shift(caller.restaurant_id, staff.id, opening_float)
        audit(gateway, caller, "open_shift", "shift", shift.id,
              {"staff_id": staff.id, "opening_float": opening_float})

    logger.info("shift %s opened for %s", shift.id, staff.id)
    publish("shift.opened", shift_id=shift.id, staff_id=staff.id)
    return {"shift_id": shift.id, "started_at": isoformat(shift.opened_at)}


@endpoint("close_shift", CloseShiftRequest)
def close_shift(req, caller, gateway):
    closing_float = to_cents(req.closing_float)

    with unit_of_work(gateway, "Failed to close shift"):
        shift = require(gateway.fetch_shift, req.shift_id, "Shift not found",
                        caller.restaurant_id, for_update=True)
        if shift.user_id != caller.id and not is_supervisor(caller.role):
            logger.warning("close_shift denied: %s tried to close shift %s", caller.id, shift.id)
            raise HandlerError(403, "Forbidden")
        if not shift.is_open:
            raise HandlerError(422, "Shift is not open")

        closed = gateway.close_shift(shift.id, closing_float)
        payments = gateway.list_payments_by(closed.user_id, closed.opened_at, closed.closed_at)
        summary = summarize_shift(closed, payments)
        audit(gateway, caller, "close_shift", "shift", shift.id,
              {"closing_float": closing_float, "summary": summary})

    logger.info("shift %s closed, variance %d", shift.id, summary["cash_variance"])
    publish("shift.closed", shift_id=shift.id, staff_id=shift.user_id)
    return {"shift_id": shift.id, "summary": summary}

"""
Project: Restaurant POS Service (RPOS)

Description:
Data gateway used by the request handlers. DataGateway is the capability
interface (one method per logical store operation); SqlAlchemyGateway is
the production implementation on top of the Flask-SQLAlchemy models.
Lookups return None when a row is missing; store failures raise
GatewayError.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from functools import wraps
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from logs import get_logger
from models import (
    AuditLog, Menu, MenuItem, Order, OrderItem, Payment, Shift, Table, User, utcnow,
)

logger = get_logger(__name__)

# the sqlite driver raises OverflowError for integers wider than 64 bits
STORE_ERRORS = (SQLAlchemyError, OverflowError)


class GatewayError(Exception):
    """A read or write against the backing store failed."""


@dataclass(frozen=True)
class StaffMember:
    id: str
    restaurant_id: str
    username: str
    role: str


@dataclass(frozen=True)
class TableRecord:
    id: int
    restaurant_id: str
    label: str
    capacity: int
    open_order_id: Optional[str] = None

    @property
    def status(self) -> str:
        return "occupied" if self.open_order_id else "free"


@dataclass(frozen=True)
class OrderRecord:
    id: str
    restaurant_id: str
    table_id: Optional[int]
    staff_id: Optional[str]
    status: str


@dataclass(frozen=True)
class MenuItemRecord:
    id: str
    restaurant_id: str
    name: str
    price_cents: int


@dataclass(frozen=True)
class OrderItemRecord:
    id: str
    order_id: str
    menu_item_id: str
    quantity: int
    unit_price_cents: int
    voided: bool = False


@dataclass(frozen=True)
class ShiftRecord:
    id: str
    restaurant_id: str
    user_id: str
    opened_at: datetime
    opening_float_cents: int
    closed_at: Optional[datetime] = None
    closing_float_cents: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.closed_at is None


@dataclass(frozen=True)
class PaymentRecord:
    id: str
    order_id: str
    method: str
    amount_cents: int
    recorded_by: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class AuditEntry:
    restaurant_id: str
    user_id: str
    action: str
    entity_type: str
    entity_id: str
    payload: Dict[str, Any] = field(default_factory=dict)


class DataGateway(ABC):
    """Store operations needed by the POS handlers."""

    @abstractmethod
    def transaction(self) -> Iterator[None]:
        """Context manager: commit on success, roll back on any exception."""

    # staff / tables
    @abstractmethod
    def fetch_staff(self, user_id: str) -> Optional[StaffMember]: ...

    @abstractmethod
    def fetch_table(self, table_id: int) -> Optional[TableRecord]: ...

    @abstractmethod
    def list_tables(self, restaurant_id: str) -> List[TableRecord]: ...

    # orders
    @abstractmethod
    def fetch_order(self, order_id: str, for_update: bool = False) -> Optional[OrderRecord]: ...

    @abstractmethod
    def insert_order(self, restaurant_id: str, table_id: Optional[int], staff_id: str) -> OrderRecord: ...

    @abstractmethod
    def set_order_status(self, order_id: str, status: str, reason: Optional[str] = None) -> None: ...

    @abstractmethod
    def compute_order_total(self, order_id: str) -> int:
        """Sum of quantity * unit_price_cents over the order's non-voided items."""

    # menu / order items
    @abstractmethod
    def fetch_menu_item(self, menu_item_id: str) -> Optional[MenuItemRecord]: ...

    @abstractmethod
    def insert_order_item(self, order_id: str, menu_item_id: str, quantity: int,
                          unit_price_cents: int) -> str: ...

    @abstractmethod
    def fetch_order_item(self, order_item_id: str, for_update: bool = False) -> Optional[OrderItemRecord]: ...

    @abstractmethod
    def void_order_item(self, order_item_id: str, reason: str) -> None: ...

    # payments
    @abstractmethod
    def compute_payments_total(self, order_id: str) -> int: ...

    @abstractmethod
    def insert_payment(self, order_id: str, method: str, amount_cents: int, recorded_by: str) -> str: ...

    @abstractmethod
    def list_payments_by(self, user_id: str, since: datetime, until: datetime) -> List[PaymentRecord]: ...

    # shifts
    @abstractmethod
    def fetch_shift(self, shift_id: str, for_update: bool = False) -> Optional[ShiftRecord]: ...

    @abstractmethod
    def fetch_open_shift(self, user_id: str) -> Optional[ShiftRecord]: ...

    @abstractmethod
    def insert_shift(self, restaurant_id: str, user_id: str, opening_float_cents: int) -> ShiftRecord: ...

    @abstractmethod
    def close_shift(self, shift_id: str, closing_float_cents: int) -> ShiftRecord: ...

    # audit
    @abstractmethod
    def insert_audit_log(self, entry: AuditEntry) -> None: ...


def _wrap_errors(fn):
    @wraps(fn)
    def wrapper(self, *args, **kwargs):
        try:
            return fn(self, *args, **kwargs)
        except STORE_ERRORS as exc:
            logger.exception("store operation %s failed", fn.__name__)
            raise GatewayError(f"{fn.__name__} failed") from exc
    return wrapper


def _staff(u):
    return StaffMember(id=u.id, restaurant_id=u.restaurant_id, username=u.username, role=u.role)


def _order(o):
    return OrderRecord(id=o.id, restaurant_id=o.restaurant_id, table_id=o.table_id,
                       staff_id=o.staff_id, status=o.status)


def _shift(s):
    return ShiftRecord(
        id=s.id, restaurant_id=s.restaurant_id, user_id=s.user_id, opened_at=s.opened_at,
        opening_float_cents=s.opening_float_cents, closed_at=s.closed_at,
        closing_float_cents=s.closing_float_cents,
    )


class SqlAlchemyGateway(DataGateway):
    """Gateway backed by the Flask-SQLAlchemy session."""

    def __init__(self, database):
        self.db = database

    @property
    def session(self):
        return self.db.session

    @contextmanager
    def transaction(self):
        try:
            yield
            self.session.commit()
        except STORE_ERRORS as exc:
            self.session.rollback()
            logger.exception("transaction rolled back")
            raise GatewayError("transaction failed") from exc
        except BaseException:
            self.session.rollback()
            raise

    def _locked(self, model, key, for_update):
        stmt = select(model).where(model.id == key)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    @_wrap_errors
    def fetch_staff(self, user_id):
        u = self.session.get(User, user_id)
        return _staff(u) if u else None

    def _open_orders_by_table(self, restaurant_id):
        rows = self.session.execute(
            select(Order.table_id, Order.id).where(
                Order.restaurant_id == restaurant_id,
                Order.status == "open",
                Order.table_id.is_not(None),
            )
        ).all()
        return {table_id: order_id for table_id, order_id in rows}

    @_wrap_errors
    def fetch_table(self, table_id):
        t = self.session.get(Table, table_id)
        if not t:
            return None
        open_orders = self._open_orders_by_table(t.restaurant_id)
        return TableRecord(id=t.id, restaurant_id=t.restaurant_id, label=t.label,
                           capacity=t.capacity, open_order_id=open_orders.get(t.id))

    @_wrap_errors
    def list_tables(self, restaurant_id):
        open_orders = self._open_orders_by_table(restaurant_id)
        tables = self.session.execute(
            select(Table).where(Table.restaurant_id == restaurant_id).order_by(Table.id)
        ).scalars()
        return [
            TableRecord(id=t.id, restaurant_id=t.restaurant_id, label=t.label,
                        capacity=t.capacity, open_order_id=open_orders.get(t.id))
            for t in tables
        ]

    @_wrap_errors
    def fetch_order(self, order_id, for_update=False):
        o = self._locked(Order, order_id, for_update)
        return _order(o) if o else None

    @_wrap_errors
    def insert_order(self, restaurant_id, table_id, staff_id):
        o = Order(restaurant_id=restaurant_id, table_id=table_id, staff_id=staff_id, status="open")
        self.session.add(o)
        self.session.flush()
        return _order(o)

    @_wrap_errors
    def set_order_status(self, order_id, status, reason=None):
        o = self.session.get(Order, order_id)
        if o is None:
            raise GatewayError(f"order {order_id} vanished")
        o.status = status
        if reason is not None:
            o.cancel_reason = reason
        if status == "closed":
            o.closed_at = utcnow()
        self.session.flush()

    @_wrap_errors
    def compute_order_total(self, order_id):
        total = self.session.execute(
            select(func.coalesce(func.sum(OrderItem.quantity * OrderItem.unit_price_cents), 0)).where(
                OrderItem.order_id == order_id,
                OrderItem.voided.is_(False),
            )
        ).scalar_one()
        return int(total)

    @_wrap_errors
    def fetch_menu_item(self, menu_item_id):
        row = self.session.execute(
            select(MenuItem, Menu.restaurant_id)
            .join(Menu, MenuItem.menu_id == Menu.id)
            .where(MenuItem.id == menu_item_id)
        ).first()
        if row is None:
            return None
        item, restaurant_id = row
        return MenuItemRecord(id=item.id, restaurant_id=restaurant_id, name=item.name,
                              price_cents=item.price_cents)

    @_wrap_errors
    def insert_order_item(self, order_id, menu_item_id, quantity, unit_price_cents):
        oi = OrderItem(order_id=order_id, menu_item_id=menu_item_id, quantity=quantity,
                       unit_price_cents=unit_price_cents)
        self.session.add(oi)
        self.session.flush()
        return oi.id

    @_wrap_errors
    def fetch_order_item(self, order_item_id, for_update=False):
        oi = self._locked(OrderItem, order_item_id, for_update)
        if oi is None:
            return None
        return OrderItemRecord(id=oi.id, order_id=oi.order_id, menu_item_id=oi.menu_item_id,
                               quantity=oi.quantity, unit_price_cents=oi.unit_price_cents,
                               voided=oi.voided)

    @_wrap_errors
    def void_order_item(self, order_item_id, reason):
        oi = self.session.get(OrderItem, order_item_id)
        if oi is None:
            raise GatewayError(f"order item {order_item_id} vanished")
        oi.voided = True
        oi.void_reason = reason
        self.session.flush()

    @_wrap_errors
    def compute_payments_total(self, order_id):
        total = self.session.execute(
            select(func.coalesce(func.sum(Payment.amount_cents), 0)).where(Payment.order_id == order_id)
        ).scalar_one()
        return int(total)

    @_wrap_errors
    def insert_payment(self, order_id, method, amount_cents, recorded_by):
        p = Payment(order_id=order_id, method=method, amount_cents=amount_cents, recorded_by=recorded_by)
        self.session.add(p)
        self.session.flush()
        return p.id

    @_wrap_errors
    def list_payments_by(self, user_id, since, until):
        rows = self.session.execute(
            select(Payment).where(
                Payment.recorded_by == user_id,
                Payment.created_at >= since,
                Payment.created_at <= until,
            ).order_by(Payment.created_at)
        ).scalars()
        return [
            PaymentRecord(id=p.id, order_id=p.order_id, method=p.method, amount_cents=p.amount_cents,
                          recorded_by=p.recorded_by, created_at=p.created_at)
            for p in rows
        ]

    @_wrap_errors
    def fetch_shift(self, shift_id, for_update=False):
        s = self._locked(Shift, shift_id, for_update)
        return _shift(s) if s else None

    @_wrap_errors
    def fetch_open_shift(self, user_id):
        s = self.session.execute(
            select(Shift).where(Shift.user_id == user_id, Shift.closed_at.is_(None))
        ).scalars().first()
        return _shift(s) if s else None

    @_wrap_errors
    def insert_shift(self, restaurant_id, user_id, opening_float_cents):
        s = Shift(restaurant_id=restaurant_id, user_id=user_id, opening_float_cents=opening_float_cents,
                  opened_at=utcnow())
        self.session.add(s)
        self.session.flush()
        return _shift(s)

    @_wrap_errors
    def close_shift(self, shift_id, closing_float_cents):
        s = self.session.get(Shift, shift_id)
        if s is None:
            raise GatewayError(f"shift {shift_id} vanished")
        s.closed_at = utcnow()
        s.closing_float_cents = closing_float_cents
        self.session.flush()
        return _shift(s)

    @_wrap_errors
    def insert_audit_log(self, entry):
        # savepoint: a failed audit insert must not poison the outer transaction
        with self.session.begin_nested():
            self.session.add(AuditLog(
                restaurant_id=entry.restaurant_id,
                user_id=entry.user_id,
                action=entry.action,
                entity_type=entry.entity_type,
                entity_id=entry.entity_id,
                payload=dict(entry.payload),
            ))

"""
Project: Restaurant POS Service (RPOS)

Description:
SQLAlchemy models for restaurants, staff, tables, menus, orders, order
items, payments, shifts and the audit log. Money is stored in integer
cents.
"""

import uuid
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def _uuid():
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc)


class Restaurant(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)


class User(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    restaurant_id = db.Column(db.String(36), db.ForeignKey("restaurant.id"), nullable=False)
    username = db.Column(db.String(80), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), default="server")
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)


class Table(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.String(36), db.ForeignKey("restaurant.id"), nullable=False)
    label = db.Column(db.String(20), nullable=False)
    capacity = db.Column(db.Integer, default=2)


class Menu(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    restaurant_id = db.Column(db.String(36), db.ForeignKey("restaurant.id"), nullable=False)
    name = db.Column(db.String(120), nullable=False)
    items = db.relationship("MenuItem", backref="menu", lazy=True)


class MenuItem(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    menu_id = db.Column(db.String(36), db.ForeignKey("menu.id"), nullable=False)
    name = db.Column(db.String(120), nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    category = db.Column(db.String(80), default="General")
    available = db.Column(db.Boolean, default=True)


class Order(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    restaurant_id = db.Column(db.String(36), db.ForeignKey("restaurant.id"), nullable=False)
    table_id = db.Column(db.Integer, db.ForeignKey("table.id"), nullable=True)
    staff_id = db.Column(db.String(36), db.ForeignKey("user.id"), nullable=True)
    status = db.Column(db.String(20), default="open", nullable=False)
    cancel_reason = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    items = db.relationship("OrderItem", backref="order", lazy=True)
    payments = db.relationship("Payment", backref="order", lazy=True)


class OrderItem(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    order_id = db.Column(db.String(36), db.ForeignKey("order.id"), nullable=False)
    menu_item_id = db.Column(db.String(36), db.ForeignKey("menu_item.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    voided = db.Column(db.Boolean, default=False, nullable=False)
    void_reason = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Payment(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    order_id = db.Column(db.String(36), db.ForeignKey("order.id"), nullable=False)
    method = db.Column(db.String(10), default="cash", nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    recorded_by = db.Column(db.String(36), db.ForeignKey("user.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)


class Shift(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    restaurant_id = db.Column(db.String(36), db.ForeignKey("restaurant.id"), nullable=False)
    user_id = db.Column(db.String(36), db.ForeignKey("user.id"), nullable=False)
    opened_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    opening_float_cents = db.Column(db.Integer, default=0, nullable=False)
    closing_float_cents = db.Column(db.Integer, nullable=True)


class AuditLog(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    restaurant_id = db.Column(db.String(36), nullable=False)
    user_id = db.Column(db.String(36), nullable=False)
    action = db.Column(db.String(60), nullable=False)
    entity_type = db.Column(db.String(60), nullable=False)
    entity_id = db.Column(db.String(36), nullable=False)
    payload = db.Column(db.JSON, default=dict)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

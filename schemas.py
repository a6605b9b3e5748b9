"""
Project: Restaurant POS Service (RPOS)

Description:
Typed request bodies for every handler. Fields are validated in their
declared order and only the first failing field is reported, using the
handler-specific message table on each schema.
"""

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated, ClassVar, Dict, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr, ValidationError, field_validator
from pydantic_core import PydanticCustomError

from envelope import HandlerError

PAYMENT_METHODS = ("cash", "card", "other")

# integer columns are 32-bit on most backends
MAX_INT = 2**31 - 1

NonEmptyStr = Annotated[StrictStr, Field(min_length=1)]
Number = Union[StrictInt, StrictFloat]


def to_cents(value) -> int:
    """Round a numeric minor-unit amount half-up to whole cents."""
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _bounded(value):
    if isinstance(value, float) and not math.isfinite(value):
        raise PydanticCustomError("not_finite", "value must be finite")
    if to_cents(value) > MAX_INT:
        raise PydanticCustomError("too_large", "value is too large")
    return value


class RequestSchema(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    # "<field>" -> default message, "<field>.<error type>" -> override
    messages: ClassVar[Dict[str, str]] = {}

    @classmethod
    def from_payload(cls, payload):
        # a JSON array or scalar carries no fields
        if not isinstance(payload, dict):
            payload = {}
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            error = exc.errors()[0]
            name = str(error["loc"][0]) if error["loc"] else ""
            message = (
                cls.messages.get(f"{name}.{error['type']}")
                or cls.messages.get(name)
                or f"{name} is required"
            )
            raise HandlerError(400, message) from None


class AddItemToOrderRequest(RequestSchema):
    order_id: NonEmptyStr
    menu_item_id: NonEmptyStr
    quantity: Annotated[StrictInt, Field(gt=0, le=MAX_INT)]

    messages: ClassVar[Dict[str, str]] = {
        "order_id": "order_id is required and must be a non-empty string",
        "menu_item_id": "menu_item_id is required and must be a non-empty string",
        "quantity": "quantity is required and must be a positive integer",
        "quantity.less_than_equal": f"quantity must not exceed {MAX_INT}",
    }


class CreateOrderRequest(RequestSchema):
    table_id: StrictInt
    staff_id: NonEmptyStr


class CancelOrderRequest(RequestSchema):
    order_id: NonEmptyStr
    reason: NonEmptyStr


class CloseOrderRequest(RequestSchema):
    order_id: NonEmptyStr


class OpenShiftRequest(RequestSchema):
    staff_id: NonEmptyStr
    opening_float: Number

    messages: ClassVar[Dict[str, str]] = {
        "opening_float.less_than_zero": "opening_float must not be negative",
        "opening_float.too_large": f"opening_float must not exceed {MAX_INT}",
    }

    @field_validator("opening_float")
    @classmethod
    def check_not_negative(cls, value):
        _bounded(value)
        if value < 0:
            raise PydanticCustomError("less_than_zero", "must not be negative")
        return value


class CloseShiftRequest(RequestSchema):
    shift_id: NonEmptyStr
    closing_float: Number

    messages: ClassVar[Dict[str, str]] = {
        "closing_float.less_than_zero": "closing_float must not be negative",
        "closing_float.too_large": f"closing_float must not exceed {MAX_INT}",
    }

    @field_validator("closing_float")
    @classmethod
    def check_not_negative(cls, value):
        _bounded(value)
        if value < 0:
            raise PydanticCustomError("less_than_zero", "must not be negative")
        return value


class RecordPaymentRequest(RequestSchema):
    order_id: NonEmptyStr
    amount: Number
    method: NonEmptyStr

    messages: ClassVar[Dict[str, str]] = {
        "amount.not_positive": "amount must be greater than 0",
        "amount.too_large": f"amount must not exceed {MAX_INT}",
        "method.unknown_method": "method must be one of " + ", ".join(PAYMENT_METHODS),
    }

    @field_validator("amount")
    @classmethod
    def check_positive(cls, value):
        _bounded(value)
        if value <= 0:
            raise PydanticCustomError("not_positive", "must be greater than 0")
        return value

    @field_validator("method")
    @classmethod
    def check_method(cls, value):
        if value not in PAYMENT_METHODS:
            raise PydanticCustomError("unknown_method", "unsupported payment method")
        return value


class VoidItemRequest(RequestSchema):
    order_item_id: NonEmptyStr
    reason: NonEmptyStr

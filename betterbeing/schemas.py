"""
Request schemas for the JSON API.

Bodies keep the storefront's camelCase keys; every endpoint validates its
body against one of these models before calling a service.
"""
from typing import Any, Dict, List, Literal, Optional, Type, TypeVar, Union

from flask import request
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from betterbeing.exceptions import InvalidRequestError

Address = Union[Dict[str, Any], str]

SchemaT = TypeVar('SchemaT', bound=BaseModel)


class RequestSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


def _non_empty_address(value):
    if value is None:
        return value
    if isinstance(value, str) and not value.strip():
        raise ValueError('address must not be empty')
    if isinstance(value, dict) and not value:
        raise ValueError('address must not be empty')
    return value


# -----------------------------
# Orders / Checkout
# -----------------------------
class CheckoutRequest(RequestSchema):
    shipping_address: Address = Field(..., alias='shippingAddress')
    billing_address: Optional[Address] = Field(None, alias='billingAddress')
    payment_method: str = Field(..., alias='paymentMethod', min_length=1, max_length=50)

    @field_validator('shipping_address', 'billing_address')
    @classmethod
    def address_not_empty(cls, value):
        return _non_empty_address(value)


class OrderItemIn(RequestSchema):
    product_id: int = Field(..., alias='productId', gt=0)
    quantity: int = Field(..., ge=1)
    size: Optional[str] = Field(None, max_length=20)


class CreateOrderRequest(CheckoutRequest):
    order_items: List[OrderItemIn] = Field(..., alias='orderItems', min_length=1)


class UpdateStatusRequest(RequestSchema):
    status: str = Field(..., min_length=1)


# -----------------------------
# Catalog
# -----------------------------
class ProductQuery(RequestSchema):
    category: Optional[str] = Field(None, max_length=100)
    search: Optional[str] = Field(None, max_length=200)
    sort: Literal['name', 'price-low', 'price-high', 'newest'] = 'name'
    limit: int = Field(20, ge=1, le=100)
    offset: int = Field(0, ge=0)


# -----------------------------
# Cart
# -----------------------------
class CartAddRequest(RequestSchema):
    product_id: int = Field(..., alias='productId', gt=0)
    quantity: int = Field(1, ge=1)
    size: Optional[str] = Field(None, max_length=20)


class CartUpdateRequest(RequestSchema):
    quantity: int = Field(..., ge=1)


# -----------------------------
# Loyalty
# -----------------------------
class PointsRequest(RequestSchema):
    points: int = Field(..., gt=0)
    description: Optional[str] = Field(None, max_length=500)


class AdminPointsRequest(PointsRequest):
    user_id: Optional[int] = Field(None, alias='userId', gt=0)


# -----------------------------
# Auth
# -----------------------------
class RegisterRequest(RequestSchema):
    email: str = Field(..., pattern=r'^[^@\s]+@[^@\s]+\.[^@\s]+$', max_length=255)
    password: str = Field(..., min_length=1)
    full_name: Optional[str] = Field(None, alias='fullName', max_length=200)


class LoginRequest(RequestSchema):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)


def parse_body(schema: Type[SchemaT]) -> SchemaT:
    """
    Validate the JSON body of the current request.

    Raises:
        InvalidRequestError: body missing, not JSON, or failing the schema
    """
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise InvalidRequestError('Request body must be a JSON object')
    return _validate(schema, data)


def parse_query(schema: Type[SchemaT]) -> SchemaT:
    """Validate the query string of the current request. Blank values count as absent."""
    data = {key: value for key, value in request.args.items() if value.strip()}
    return _validate(schema, data)


def _validate(schema: Type[SchemaT], data: Dict[str, Any]) -> SchemaT:
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        errors = [
            {'field': '.'.join(str(part) for part in err['loc']), 'message': err['msg']}
            for err in e.errors()
        ]
        raise InvalidRequestError('Invalid request', errors=errors)

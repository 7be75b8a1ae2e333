import enum
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from pydantic import BaseModel, Field, PositiveInt, computed_field, field_validator
from pydantic.alias_generators import to_camel
from pydantic.config import ConfigDict

from .utils import sanitize_input


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    STAFF = "STAFF"


class OrderStatus(str, enum.Enum):
    PLACED = "PLACED"
    FULFILLED = "FULFILLED"


class CamelModel(BaseModel):
    # JSON speaks camelCase, Python code uses snake_case
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def reject_null(v, info):
    if v is None:
        raise ValueError(f"{info.field_name} must not be null")
    return v


def cents_price(v: Optional[Decimal]) -> Optional[Decimal]:
    # Prices are stored to the cent, so check positivity after rounding
    if v is None:
        return v
    v = Decimal(v).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    if v <= 0:
        raise ValueError("price must be at least 0.01")
    return v


def stripped_name(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not v:
        raise ValueError("name must not be blank")
    return v


# -------------------- Auth --------------------

class RegisterRequest(CamelModel):
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6)
    role: Optional[Role] = None


class LoginRequest(CamelModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


# -------------------- Users --------------------

class UserCreate(CamelModel):
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6)
    role: Role = Role.STAFF


class UserUpdate(CamelModel):
    username: Optional[str] = Field(default=None, min_length=3, max_length=50)
    password: Optional[str] = Field(default=None, min_length=6)
    role: Optional[Role] = None

    @field_validator("username", "password", "role")
    def no_nulls(cls, v, info):
        return reject_null(v, info)


class UserRead(CamelModel):
    id: int
    username: str
    role: Role
    created_at: datetime
    updated_at: datetime


# -------------------- Sweets --------------------

class SweetCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    price: Decimal = Field(..., gt=Decimal("0"))
    stock: int = Field(..., ge=0)
    description: Optional[str] = None
    image_url: Optional[str] = None

    @field_validator("name")
    def name_not_blank(cls, v: str):
        return stripped_name(v)

    @field_validator("price")
    def price_in_cents(cls, v: Decimal):
        return cents_price(v)

    @field_validator("description")
    def clean_description(cls, v: Optional[str]):
        return sanitize_input(v) if v is not None else None


class SweetUpdate(CamelModel):
    """Partial update: only fields present in the payload are written."""
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    price: Optional[Decimal] = Field(default=None, gt=Decimal("0"))
    stock: Optional[int] = Field(default=None, ge=0)
    description: Optional[str] = None
    image_url: Optional[str] = None

    @field_validator("name", "price", "stock")
    def no_nulls(cls, v, info):
        return reject_null(v, info)

    @field_validator("name")
    def name_not_blank(cls, v: Optional[str]):
        return stripped_name(v)

    @field_validator("price")
    def price_in_cents(cls, v: Optional[Decimal]):
        return cents_price(v)

    @field_validator("description")
    def clean_description(cls, v: Optional[str]):
        return sanitize_input(v) if v is not None else None


class SweetRead(CamelModel):
    id: int
    name: str
    price: Decimal
    stock: int
    description: Optional[str] = None
    image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# -------------------- Orders --------------------

class OrderItemCreate(CamelModel):
    sweet_id: PositiveInt
    quantity: PositiveInt


class OrderCreate(CamelModel):
    customer_name: str = Field(..., min_length=1, max_length=100)
    items: List[OrderItemCreate] = Field(..., min_length=1)

    @field_validator("customer_name")
    def clean_customer_name(cls, v: str):
        v = sanitize_input(v)
        if not v:
            raise ValueError("customerName must not be blank")
        return v


class OrderUpdate(CamelModel):
    status: Optional[OrderStatus] = None


class OrderItemRead(CamelModel):
    id: int
    sweet_id: Optional[int] = None
    sweet_name: str
    quantity: int
    unit_price: Decimal
    price: Decimal

    @computed_field
    @property
    def sweet(self) -> dict:
        return {"id": self.sweet_id, "name": self.sweet_name}


class OrderRead(CamelModel):
    id: int
    customer_name: str
    total_price: Decimal
    status: OrderStatus
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemRead] = []


def dump(model_cls, obj) -> dict:
    """Serialize an ORM object through a read model into JSON-ready camelCase."""
    return model_cls.model_validate(obj).model_dump(by_alias=True, mode="json")

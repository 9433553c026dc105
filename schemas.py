from __future__ import annotations
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

# Each document model => one collection, pluralised name


class Unit(str, Enum):
    kg = "kg"
    gm = "gm"
    liter = "liter"
    ml = "ml"
    piece = "piece"
    dozen = "dozen"
    packet = "packet"


class OrderStatus(str, Enum):
    pending = "pending"
    preparing = "preparing"
    ready = "ready"
    completed = "completed"
    cancelled = "cancelled"


class Role(str, Enum):
    admin = "admin"
    staff = "staff"


class Product(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    price: float = Field(ge=0)
    image: str = Field(min_length=1)
    image_id: Optional[str] = None
    category: str = Field(min_length=1)
    unit: Unit
    max_quantity: float = Field(ge=1)
    in_stock: bool = True


class ProductUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = Field(default=None, min_length=1)
    price: Optional[float] = Field(default=None, ge=0)
    image: Optional[str] = Field(default=None, min_length=1)
    image_id: Optional[str] = None
    category: Optional[str] = Field(default=None, min_length=1)
    unit: Optional[Unit] = None
    max_quantity: Optional[float] = Field(default=None, ge=1)
    in_stock: Optional[bool] = None


class CartItem(BaseModel):
    product_id: str = Field(min_length=1)
    # bounds are checked against the product's max_quantity during intake
    quantity: float


class Order(BaseModel):
    items: list[CartItem] = []
    phone: Optional[str] = None
    email: Optional[str] = None
    subtotal: Optional[float] = None
    total: Optional[float] = None


class StatusUpdate(BaseModel):
    status: str


class CustomerSessionIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    customer_name: str = Field(min_length=1, max_length=100)


class LoginIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RegisterIn(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    role: Role = Role.staff

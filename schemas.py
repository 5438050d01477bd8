"""
Database Schemas for the Storefront API

Each Pydantic model correlates to a MongoDB collection. The collection name is the lowercase of the class name.
- User -> "user"
- Product -> "product"
- Order -> "order"

References to other records (owner, product, category) are stored as the
string form of the referenced ObjectId.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

Role = Literal["user", "admin"]
OrderStatus = Literal["Processing", "Shipped", "Delivered"]

TERMINAL_STATUS = "Delivered"


class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address")
    password_hash: str = Field(..., description="BCrypt password hash")
    role: Role = Field("user", description="Access role")


class Product(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Product name")
    description: str = Field("", description="Product description")
    price: float = Field(..., ge=0, description="Price in USD")
    stock: int = Field(0, description="Units in stock")
    category: Optional[str] = Field(None, description="Category id")
    user: str = Field(..., description="Owner user id")


class OrderItem(BaseModel):
    product: str = Field(..., description="Product id")
    name: Optional[str] = None
    quantity: int = Field(1, ge=1)
    price: float = Field(0, ge=0)


class ShippingInfo(BaseModel):
    address: str
    city: str
    phone: str
    postal_code: str
    country: str


class PaymentInfo(BaseModel):
    id: Optional[str] = None
    status: Optional[str] = None


class Order(BaseModel):
    order_items: List[OrderItem] = Field(..., min_length=1)
    shipping_info: ShippingInfo
    items_price: float = Field(0, ge=0)
    tax_price: float = Field(0, ge=0)
    shipping_price: float = Field(0, ge=0)
    total_price: float = Field(0, ge=0)
    payment_info: Optional[PaymentInfo] = None
    paid_at: Optional[datetime] = None
    user: str = Field(..., description="User placing the order")
    order_status: OrderStatus = "Processing"
    delivered_at: Optional[datetime] = None


# Request models
class SignupRequest(BaseModel):
    name: str
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class ProductPayload(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    price: float = Field(..., ge=0)
    stock: int = 0
    category: Optional[str] = None


class OrderPayload(BaseModel):
    order_items: List[OrderItem] = Field(..., min_length=1)
    shipping_info: ShippingInfo
    items_price: float = Field(0, ge=0)
    tax_price: float = Field(0, ge=0)
    shipping_price: float = Field(0, ge=0)
    total_price: float = Field(0, ge=0)
    payment_info: Optional[PaymentInfo] = None
    paid_at: Optional[datetime] = None


class StatusUpdate(BaseModel):
    status: Optional[OrderStatus] = None

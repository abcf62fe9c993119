# marketplace/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import List, Literal
from decimal import Decimal
from datetime import date, datetime

from marketplace.domain.lifecycle import PaymentMethod, Role

class ItemIn(BaseModel):
    """Schema for adding a product to the cart."""

    product_id: int = Field(..., gt=0, description="Product ID (must be > 0)")
    quantity: int = Field(1, description="Quantity to add (must be >= 1)")

class ItemUpdate(BaseModel):
    """Schema for setting a cart line quantity. 0 or less removes the line."""

    quantity: int

class UserCreate(BaseModel):
    """Schema for registering a user with the service."""

    id: int = Field(..., gt=0, description="User ID (must be > 0)")
    name: str = Field(..., min_length=1, max_length=100, description="Display name")
    email: str = ""
    phone: str = ""
    role: Role = Role.BUYER

class UserRead(BaseModel):
    """Schema for a user (response)."""

    id: int
    name: str
    email: str
    phone: str
    role: Role

    model_config = ConfigDict(from_attributes=True)

# catalog contract

class CatalogProduct(BaseModel):
    """What the order core reads from the catalog store."""

    id: int
    name: str
    price: Decimal
    unit: str = "piece"
    stock: int
    is_active: bool = True
    status: str = "active"
    seller_id: int
    images: List[str] = []

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_available(self) -> bool:
        return self.is_active and self.status == "active"

class StockChange(BaseModel):
    applied: bool
    current_stock: int

class StockChangeIn(BaseModel):
    quantity: int = Field(..., gt=0)

# cart

class CartSummaryItem(BaseModel):
    product_id: int
    product_name: str | None = None
    product_image: str = ""
    quantity: int
    unit: str | None = None
    price: Decimal | None = None
    total: Decimal = Decimal("0.00")
    seller_id: int | None = None
    seller_name: str | None = None
    stock: int = 0
    available: bool
    note: str | None = None

class CartSummaryOut(BaseModel):
    """Advisory cart view joined with live catalog data."""

    cart_id: int
    user_id: int
    total_items: int
    total_value: Decimal
    items: List[CartSummaryItem]
    updated_at: datetime | None = None

class CartCountOut(BaseModel):
    count: int

# checkout

class DeliveryAddressIn(BaseModel):
    street: str
    city: str
    state: str = "Bagmati"
    postal_code: str = ""
    country: str = "Nepal"
    landmark: str = ""
    instructions: str = ""

    @field_validator("street", "city")
    @classmethod
    def required_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("state", "postal_code", "country", "landmark", "instructions")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()

class CheckoutIn(BaseModel):
    """Schema for turning the buyer's cart into an order."""

    delivery_address: DeliveryAddressIn
    payment_method: PaymentMethod
    delivery_date: date | None = None
    delivery_time_slot: Literal["morning", "afternoon", "evening", "anytime"] = "anytime"
    delivery_instructions: str = Field("", max_length=500)
    notes: str = Field("", max_length=1000)

# orders

class OrderItemOut(BaseModel):
    product_id: int
    product_name: str
    product_image: str
    quantity: int
    unit: str
    unit_price: Decimal
    line_total: Decimal
    seller_id: int
    seller_name: str

    model_config = ConfigDict(from_attributes=True)

class OrderOut(BaseModel):
    """Schema for an order (response)."""

    id: int
    order_number: str
    buyer_id: int
    buyer_name: str
    buyer_email: str
    buyer_phone: str
    items: List[OrderItemOut]
    subtotal: Decimal
    delivery_fee: Decimal
    tax: Decimal
    total: Decimal
    status: str
    payment_method: str
    payment_status: str
    paid_at: datetime | None = None
    delivery_address: dict
    delivery_date: date | None = None
    delivery_time_slot: str
    delivery_instructions: str
    notes: str
    created_at: datetime
    updated_at: datetime
    confirmed_at: datetime | None = None
    processed_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    received_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None

    model_config = ConfigDict(from_attributes=True)

class StatusUpdateIn(BaseModel):
    status: str
    reason: str | None = Field(None, max_length=500)

class Pagination(BaseModel):
    current: int
    pages: int
    total: int
    limit: int

class OrderListOut(BaseModel):
    orders: List[OrderOut]
    pagination: Pagination

class OrderStatsOut(BaseModel):
    total_orders: int
    pending_orders: int
    completed_orders: int
    total_revenue: Decimal

from pydantic import BaseModel, EmailStr, Field, field_validator
from datetime import datetime
from typing import Optional

from storefront.domain.models import Category, ContactStatus, OrderStatus, PaymentMethod, PaymentStatus

# Catalog

class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    category: Category = Category.CHEMICALS
    product_type: Optional[str] = Field(default=None, max_length=100)
    weight_grams: Optional[int] = Field(default=None, ge=0)
    price_cents: int = Field(ge=0)
    quantity_per_unit: int = Field(default=1, ge=1)
    unit: str = Field(default="each", max_length=50)
    image_url: Optional[str] = None
    stock_quantity: int = Field(default=0, ge=0)
    low_stock_threshold: int = Field(default=10, ge=0)

class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[Category] = None
    product_type: Optional[str] = Field(default=None, max_length=100)
    weight_grams: Optional[int] = Field(default=None, ge=0)
    price_cents: Optional[int] = Field(default=None, ge=0)
    quantity_per_unit: Optional[int] = Field(default=None, ge=1)
    unit: Optional[str] = Field(default=None, max_length=50)
    image_url: Optional[str] = None
    stock_quantity: Optional[int] = Field(default=None, ge=0)
    low_stock_threshold: Optional[int] = Field(default=None, ge=0)

    @field_validator(
        "name", "category", "price_cents", "quantity_per_unit", "unit", "stock_quantity", "low_stock_threshold"
    )
    @classmethod
    def reject_null(cls, value):
        # omit a field to leave it unchanged; these columns cannot be cleared
        if value is None:
            raise ValueError("must not be null")
        return value

class ProductRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    category: str
    product_type: Optional[str] = None
    weight_grams: Optional[int] = None
    price_cents: int
    quantity_per_unit: int
    unit: str
    image_url: Optional[str] = None
    in_stock: bool
    stock_quantity: int
    low_stock_threshold: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class ProductViewCreate(BaseModel):
    # client-generated id kept in the browser's local storage
    session_id: str = Field(min_length=1, max_length=100)

# Shipping

class ShippingRateRead(BaseModel):
    id: int
    carrier: str
    service_name: str
    description: Optional[str] = None
    estimated_days: Optional[str] = None
    base_rate: int
    # base_rate with the free-shipping promotion applied for the quoted cart
    cost: Optional[int] = None
    display_order: int

    class Config:
        from_attributes = True

# Orders

class CartItem(BaseModel):
    product_id: int
    quantity: int = Field(ge=1, le=10000)

class CustomerDetails(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=30)
    address: str = Field(min_length=1)
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(min_length=1, max_length=100)
    zip: str = Field(min_length=1, max_length=20)
    country: str = Field(default="USA", max_length=100)

class OrderCreate(BaseModel):
    items: list[CartItem]
    shipping_rate_id: int
    payment_method: PaymentMethod
    customer: CustomerDetails
    customer_notes: Optional[str] = None

class OrderItemRead(BaseModel):
    id: int
    product_id: int
    product_name: str
    quantity: int
    price_per_unit: int

    class Config:
        from_attributes = True

class OrderRead(BaseModel):
    id: int
    order_number: str
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    shipping_address: str
    shipping_city: str
    shipping_state: str
    shipping_zip: str
    shipping_country: str
    shipping_carrier: str
    shipping_service: str
    status: str
    payment_status: str
    payment_method: str
    payment_id: Optional[str] = None
    tracking_number: Optional[str] = None
    subtotal: int
    shipping_cost: int
    total: int
    customer_notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    items: list[OrderItemRead]
    # Only set for Bitcoin orders awaiting payment
    bitcoin_address: Optional[str] = None

    class Config:
        from_attributes = True

class OrderPlaced(BaseModel):
    order_number: str
    subtotal: int
    shipping_cost: int
    total: int
    payment_method: str
    payment_status: str
    bitcoin_address: Optional[str] = None

class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    tracking_number: Optional[str] = Field(default=None, max_length=100)

class PaymentStatusUpdate(BaseModel):
    payment_status: PaymentStatus

class ProcessPaymentRequest(BaseModel):
    order_number: str = Field(min_length=1, max_length=50)
    # one-time card token from the hosted payment form
    source_id: str = Field(min_length=1)

class PaymentResult(BaseModel):
    order_number: str
    payment_status: str
    payment_id: Optional[str] = None
    receipt_url: Optional[str] = None

# Contacts

class ContactCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=30)
    subject: str = Field(min_length=1, max_length=255)
    message: str = Field(min_length=1, max_length=10000)

class ContactStatusUpdate(BaseModel):
    status: ContactStatus
    admin_notes: Optional[str] = None

class ContactRead(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    subject: str
    message: str
    status: str
    admin_notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# Inventory

class StockUpdate(BaseModel):
    stock_quantity: int = Field(ge=0)
    reason: Optional[str] = Field(default=None, max_length=255)

class ThresholdUpdate(BaseModel):
    low_stock_threshold: int = Field(ge=0)

class InventoryLogRead(BaseModel):
    id: int
    product_id: int
    previous_quantity: int
    new_quantity: int
    change_reason: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

# Abandoned carts

class CartLine(BaseModel):
    product_id: int
    product_name: str
    quantity: int = Field(ge=1)
    price_per_unit: int = Field(ge=0)

class CheckoutStarted(BaseModel):
    email: EmailStr
    name: Optional[str] = Field(default=None, max_length=255)
    items: list[CartLine] = Field(min_length=1)
    total_amount: int = Field(ge=0)

class AbandonedCartRead(BaseModel):
    id: int
    customer_email: str
    customer_name: Optional[str] = None
    cart_data: str
    total_amount: int
    recovery_email_sent: bool
    recovery_email_sent_at: Optional[datetime] = None
    converted: bool
    converted_order_number: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class OpenCartRead(BaseModel):
    """Public view of an open cart: enough to restore it, nothing about the shopper."""

    id: int
    items: list[CartLine]
    total_amount: int
    created_at: datetime

class RecoveryRunResult(BaseModel):
    processed: int
    sent: int
    failed: int

# Auth

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int

class UserRead(BaseModel):
    id: int
    email: str
    name: Optional[str] = None
    role: str
    created_at: datetime
    last_signed_in: Optional[datetime] = None

    class Config:
        from_attributes = True

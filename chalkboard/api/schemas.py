"""
API schemas for sessions, orders, payments and admin resources
"""

from sqlmodel import Field, SQLModel
from datetime import datetime
from typing import Optional, List
from decimal import Decimal
import uuid

from chalkboard.models import (
    BillingMode, FnbOrderStatus, PaymentStatus, TableSessionStatus, TableStatus
)
from chalkboard.services.billing import BillingBreakdown

# ============================================================================
# Table Schemas
# ============================================================================

class TableCreate(SQLModel):
    name: str = Field(min_length=1, max_length=50)
    hourly_rate: Decimal = Field(ge=0)
    per_minute_rate: Optional[Decimal] = Field(default=None, ge=0)
    pricing_package_id: Optional[uuid.UUID] = None


class TableUpdate(SQLModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    hourly_rate: Optional[Decimal] = Field(default=None, ge=0)
    per_minute_rate: Optional[Decimal] = Field(default=None, ge=0)
    pricing_package_id: Optional[uuid.UUID] = None
    status: Optional[TableStatus] = None


# ============================================================================
# Session Schemas
# ============================================================================

class StartSessionRequest(SQLModel):
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    mode: str = "open"
    planned_duration: Optional[int] = None
    pricing_package_id: Optional[uuid.UUID] = None


class MoveTableRequest(SQLModel):
    new_table_id: Optional[uuid.UUID] = None


class DurationRequest(SQLModel):
    """Body of update-duration and recalculate-billing"""
    duration_type: Optional[str] = None
    actual_duration: Optional[float] = None


class TableSessionRead(SQLModel):
    id: uuid.UUID
    table_id: uuid.UUID
    customer_name: str
    customer_phone: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    planned_duration: int
    actual_duration: Optional[int] = None
    original_duration: Optional[int] = None
    duration_type: BillingMode
    pricing_package_id: Optional[uuid.UUID] = None
    total_cost: Optional[Decimal] = None
    payment_id: Optional[uuid.UUID] = None
    status: TableSessionStatus
    staff_id: Optional[uuid.UUID] = None
    fnb_order_count: int
    created_at: datetime


class PricingPackageRead(SQLModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None
    category: BillingMode
    hourly_rate: Optional[Decimal] = None
    per_minute_rate: Optional[Decimal] = None
    is_default: bool
    is_active: bool
    sort_order: int


class CurrentSessionResponse(SQLModel):
    session: Optional[TableSessionRead] = None
    pricing_package: Optional[PricingPackageRead] = None


class MoveSessionResponse(SQLModel):
    session: TableSessionRead
    old_table_id: uuid.UUID
    new_table_id: uuid.UUID
    moved_order_count: int


# ============================================================================
# F&B Order Schemas
# ============================================================================

class OrderLineRequest(SQLModel):
    item_id: uuid.UUID
    quantity: int


class OrderCreateRequest(SQLModel):
    context: str = "waiting"
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    table_id: Optional[uuid.UUID] = None
    staff_id: Optional[uuid.UUID] = None
    items: List[OrderLineRequest] = []
    notes: Optional[str] = None


class AssignTableRequest(SQLModel):
    table_id: Optional[uuid.UUID] = None
    staff_id: Optional[uuid.UUID] = None


class AssignTransactionRequest(SQLModel):
    transaction_id: Optional[uuid.UUID] = None
    staff_id: Optional[uuid.UUID] = None


class PaymentMethodEntry(SQLModel):
    type: str = Field(min_length=1, max_length=30)
    amount: Decimal = Field(ge=0)


class CheckoutRequest(SQLModel):
    order_ids: List[uuid.UUID] = []
    staff_id: Optional[uuid.UUID] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    payment_methods: Optional[List[PaymentMethodEntry]] = None


class FnbOrderItemRead(SQLModel):
    id: uuid.UUID
    item_id: uuid.UUID
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


class FnbOrderRead(SQLModel):
    id: uuid.UUID
    order_number: str
    table_id: Optional[uuid.UUID] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    status: FnbOrderStatus
    payment_id: Optional[uuid.UUID] = None
    staff_id: Optional[uuid.UUID] = None
    notes: Optional[str] = None
    created_at: datetime
    items: List[FnbOrderItemRead] = []


class DraftOrderRead(FnbOrderRead):
    item_count: int


# ============================================================================
# Payment Schemas
# ============================================================================

class PaymentRead(SQLModel):
    id: uuid.UUID
    transaction_number: str
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    table_amount: Decimal
    fnb_amount: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    currency: str
    payment_methods: List[dict] = []
    staff_id: Optional[uuid.UUID] = None
    status: PaymentStatus
    created_at: datetime
    updated_at: datetime


class PaymentStatusRequest(SQLModel):
    status: Optional[str] = None
    payment_method: Optional[str] = None


class PaymentStatusResponse(SQLModel):
    payment: PaymentRead
    previous_status: PaymentStatus
    orders_updated: int


class PaymentDetailResponse(SQLModel):
    payment: PaymentRead
    sessions: List[TableSessionRead] = []
    orders: List[FnbOrderRead] = []


class OrderCreateResponse(SQLModel):
    order: FnbOrderRead
    payment: Optional[PaymentRead] = None


class EndSessionResponse(SQLModel):
    session: TableSessionRead
    payment: PaymentRead
    billing: BillingBreakdown
    orders: List[FnbOrderRead] = []


class RecalculationResponse(SQLModel):
    session: TableSessionRead
    payment: Optional[PaymentRead] = None
    billing: BillingBreakdown


# ============================================================================
# Admin Schemas
# ============================================================================

class PricingPackageCreate(SQLModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    category: BillingMode
    hourly_rate: Optional[Decimal] = Field(default=None, ge=0)
    per_minute_rate: Optional[Decimal] = Field(default=None, ge=0)
    is_default: bool = False
    is_active: bool = True
    sort_order: int = 0


class PricingPackageUpdate(SQLModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[BillingMode] = None
    hourly_rate: Optional[Decimal] = Field(default=None, ge=0)
    per_minute_rate: Optional[Decimal] = Field(default=None, ge=0)
    is_default: Optional[bool] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None


class StaffCreate(SQLModel):
    name: str = Field(min_length=1, max_length=100)
    role: str = "staff"


class FnbCategoryCreate(SQLModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    is_active: bool = True


class FnbCategoryUpdate(SQLModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class FnbItemCreate(SQLModel):
    category_id: uuid.UUID
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    price: Decimal = Field(ge=0)
    cost: Optional[Decimal] = Field(default=None, ge=0)
    stock_quantity: int = Field(default=0, ge=0)
    min_stock_level: int = Field(default=0, ge=0)
    unit: str = "pcs"
    is_active: bool = True


class FnbItemUpdate(SQLModel):
    category_id: Optional[uuid.UUID] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    cost: Optional[Decimal] = Field(default=None, ge=0)
    min_stock_level: Optional[int] = Field(default=None, ge=0)
    unit: Optional[str] = None
    is_active: Optional[bool] = None


class RestockRequest(SQLModel):
    quantity: int


class BillingRateTypeSetting(SQLModel):
    billing_rate_type: BillingMode


def order_payload(order) -> dict:
    """Order fields plus its line items, which model_dump leaves out"""
    return {**order.model_dump(), "items": [line.model_dump() for line in order.items]}

"""
Sales Order Pydantic Schemas
"""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


# ============================================================================
# Request Schemas
# ============================================================================

class MaterialSpecFields(BaseModel):
    """Material overrides; on a line they win over the order, on the order over the item master"""
    material_rod_forging_size_mm: Optional[str] = Field(None, max_length=60)
    alloy: Optional[str] = Field(None, max_length=60)
    gross_weight_per_pc_g: Optional[Decimal] = Field(None, ge=0)
    net_weight_per_pc_g: Optional[Decimal] = Field(None, ge=0)
    cycle_time_seconds: Optional[Decimal] = Field(None, ge=0)


class SalesOrderLineCreate(MaterialSpecFields):
    item_code: str = Field(..., min_length=1, max_length=60)
    description: Optional[str] = Field(None, max_length=255)
    quantity: int = Field(..., gt=0)
    price_per_pc: Decimal = Field(Decimal("0"), ge=0)
    due_date: Optional[date] = None


class SalesOrderLineUpdate(MaterialSpecFields):
    """Line change; omit `id` to add a new line"""
    id: Optional[int] = None
    item_code: Optional[str] = Field(None, max_length=60)
    description: Optional[str] = Field(None, max_length=255)
    quantity: Optional[int] = Field(None, gt=0)
    price_per_pc: Optional[Decimal] = Field(None, ge=0)
    due_date: Optional[date] = None


class SalesOrderCreate(MaterialSpecFields):
    customer_id: int
    po_number: Optional[str] = Field(None, max_length=60)
    po_date: Optional[date] = None
    expected_delivery_date: Optional[date] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    payment_terms_days: Optional[int] = Field(None, ge=0, le=365)
    incoterm: Optional[str] = Field(None, max_length=20)
    notes: Optional[str] = Field(None, max_length=5000)
    lines: List[SalesOrderLineCreate] = Field(..., min_length=1, description="Order lines")


class SalesOrderUpdate(MaterialSpecFields):
    so_number: Optional[str] = Field(None, description="Read-only; sending a different value is rejected")
    po_number: Optional[str] = Field(None, max_length=60)
    po_date: Optional[date] = None
    expected_delivery_date: Optional[date] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    payment_terms_days: Optional[int] = Field(None, ge=0, le=365)
    incoterm: Optional[str] = Field(None, max_length=20)
    notes: Optional[str] = Field(None, max_length=5000)
    lines: Optional[List[SalesOrderLineUpdate]] = None


class CancelRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


# ============================================================================
# Response Schemas
# ============================================================================

class SalesOrderLineResponse(BaseModel):
    id: int
    line_number: int
    item_code: str
    description: Optional[str] = None
    quantity: int
    price_per_pc: Decimal
    line_amount: Decimal
    due_date: Optional[date] = None
    status: str
    work_order_id: Optional[int] = None
    material_rod_forging_size_mm: Optional[str] = None
    alloy: Optional[str] = None

    model_config = {"from_attributes": True}


class SalesOrderResponse(BaseModel):
    id: int
    so_number: str
    customer_id: int
    po_number: Optional[str] = None
    po_date: Optional[date] = None
    expected_delivery_date: Optional[date] = None
    currency: Optional[str] = None
    payment_terms_days: Optional[int] = None
    incoterm: Optional[str] = None
    total_amount: Decimal
    status: str
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_at: datetime
    lines: List[SalesOrderLineResponse] = []

    model_config = {"from_attributes": True}


class SalesOrderListResponse(BaseModel):
    id: int
    so_number: str
    customer_id: int
    po_number: Optional[str] = None
    total_amount: Decimal
    status: str
    expected_delivery_date: Optional[date] = None
    created_at: datetime

    model_config = {"from_attributes": True}

"""
Invoice, receipt, credit adjustment and period lock schemas
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


def _to_decimal(v):
    if v is None:
        return v
    return Decimal(str(v))


# ============================================================================
# Invoices
# ============================================================================

class InvoiceItemCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=255)
    item_code: Optional[str] = Field(None, max_length=60)
    quantity: Decimal = Field(..., gt=0)
    rate: Decimal = Field(..., ge=0)

    @field_validator("quantity", "rate", mode="before")
    @classmethod
    def convert_to_decimal(cls, v):
        """Convert float/int to Decimal"""
        return _to_decimal(v)


class InvoiceCreate(BaseModel):
    customer_id: int
    invoice_date: Optional[date] = None
    due_date: Optional[date] = Field(None, description="Defaults to invoice date + customer payment terms")
    sales_order_id: Optional[int] = None
    work_order_id: Optional[int] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    gst_percent: Decimal = Field(Decimal("0"), ge=0, le=100)
    items: List[InvoiceItemCreate] = Field(default_factory=list)
    from_dispatches: List[int] = Field(default_factory=list, description="Dispatch IDs to bill at the SO line price")
    remarks: Optional[str] = None


class InvoiceUpdate(BaseModel):
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    gst_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    items: Optional[List[InvoiceItemCreate]] = None
    remarks: Optional[str] = None


class ShortCloseRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)


class InvoiceItemResponse(BaseModel):
    id: int
    dispatch_id: Optional[int] = None
    item_code: Optional[str] = None
    description: str
    quantity: Decimal
    rate: Decimal
    amount: Decimal

    model_config = {"from_attributes": True}


class InvoiceResponse(BaseModel):
    id: int
    invoice_number: str
    customer_id: int
    sales_order_id: Optional[int] = None
    work_order_id: Optional[int] = None
    invoice_date: date
    due_date: date
    currency: str
    gst_percent: Decimal
    subtotal: Decimal
    gst_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    adjustment_amount: Decimal
    short_closed_amount: Decimal
    net_payable: Decimal
    balance_amount: Decimal
    status: str
    remarks: Optional[str] = None
    short_close_reason: Optional[str] = None
    issued_at: Optional[datetime] = None
    items: List[InvoiceItemResponse] = []

    model_config = {"from_attributes": True}


class MarkOverdueResponse(BaseModel):
    marked_overdue: int


# ============================================================================
# Receipts & allocations
# ============================================================================

class ReceiptCreate(BaseModel):
    customer_id: int
    amount: Decimal = Field(..., gt=0)
    receipt_date: Optional[date] = None
    payment_mode: Optional[str] = Field(None, max_length=30)
    reference: Optional[str] = Field(None, max_length=100)
    remarks: Optional[str] = None

    @field_validator("amount", mode="before")
    @classmethod
    def convert_to_decimal(cls, v):
        return _to_decimal(v)


class AllocationCreate(BaseModel):
    invoice_id: int
    amount: Decimal = Field(..., gt=0)


class AllocationResponse(BaseModel):
    id: int
    receipt_id: int
    invoice_id: int
    amount: Decimal
    allocated_by: Optional[int] = None
    allocated_at: datetime

    model_config = {"from_attributes": True}


class ReceiptResponse(BaseModel):
    id: int
    receipt_number: str
    customer_id: int
    receipt_date: date
    amount: Decimal
    allocated_amount: Decimal
    unallocated_amount: Decimal
    payment_mode: Optional[str] = None
    reference: Optional[str] = None
    status: str
    remarks: Optional[str] = None
    allocations: List[AllocationResponse] = []

    model_config = {"from_attributes": True}


# ============================================================================
# Credit adjustments
# ============================================================================

class CreditAdjustmentCreate(BaseModel):
    customer_id: int
    amount: Decimal = Field(..., gt=0)
    adjustment_type: str = Field("other", description="rejection, quality_claim, price_dispute, other")
    ncr_id: Optional[int] = None
    reason: Optional[str] = None


class CreditApplication(BaseModel):
    invoice_id: int
    amount: Decimal = Field(..., gt=0)


class CreditAdjustmentResponse(BaseModel):
    id: int
    adjustment_number: str
    customer_id: int
    adjustment_type: str
    ncr_id: Optional[int] = None
    amount: Decimal
    remaining_amount: Decimal
    reason: Optional[str] = None
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class InvoiceAdjustmentResponse(BaseModel):
    id: int
    adjustment_id: int
    invoice_id: int
    amount: Decimal
    applied_at: datetime

    model_config = {"from_attributes": True}


# ============================================================================
# Period locks & aging
# ============================================================================

class PeriodLockCreate(BaseModel):
    year: int = Field(..., ge=2000, le=2100)
    month: int = Field(..., ge=1, le=12)
    reason: Optional[str] = None


class PeriodLockResponse(BaseModel):
    id: int
    year: int
    month: int
    reason: Optional[str] = None
    locked_by: Optional[int] = None
    locked_at: datetime

    model_config = {"from_attributes": True}


class AgingResponse(BaseModel):
    customer_id: int
    as_of: date
    buckets: Dict[str, Decimal]
    total: Decimal
    invoice_count: int

"""
External processing, packing and dispatch schemas
"""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


# ============================================================================
# External processing
# ============================================================================

class SendToPartner(BaseModel):
    production_batch_id: int
    partner_id: int
    process_type: str = Field(..., min_length=1, max_length=60)
    quantity: int = Field(..., gt=0)
    sent_date: Optional[date] = None
    expected_return_date: Optional[date] = None
    remarks: Optional[str] = None


class ExternalMovementResponse(BaseModel):
    id: int
    challan_number: str
    work_order_id: int
    production_batch_id: int
    partner_id: int
    parent_movement_id: Optional[int] = None
    process_type: str
    quantity_sent: int
    quantity_returned: int
    quantity_rejected: int
    quantity_outstanding: int
    sent_date: date
    expected_return_date: Optional[date] = None
    actual_return_date: Optional[date] = None
    status: str
    remarks: Optional[str] = None

    model_config = {"from_attributes": True}


class MaterialReceiptCreate(BaseModel):
    receipt_type: str = Field(
        ..., description="supplier_to_factory, partner_to_factory, partner_to_partner, partner_to_packing"
    )
    quantity_received: int = Field(..., gt=0)
    quantity_rejected: int = Field(0, ge=0)
    external_movement_id: Optional[int] = None
    production_batch_id: Optional[int] = None
    to_partner_id: Optional[int] = None
    next_process_type: Optional[str] = Field(None, max_length=60)
    expected_return_date: Optional[date] = None
    receipt_date: Optional[date] = None
    remarks: Optional[str] = None


class MaterialReceiptResponse(BaseModel):
    id: int
    receipt_number: str
    receipt_type: str
    external_movement_id: Optional[int] = None
    production_batch_id: int
    to_partner_id: Optional[int] = None
    quantity_received: int
    quantity_rejected: int
    quantity_ok: int
    receipt_date: date
    remarks: Optional[str] = None

    model_config = {"from_attributes": True}


# ============================================================================
# Packing
# ============================================================================

class DispatchQCBatchCreate(BaseModel):
    production_batch_id: int
    quantity: int = Field(..., gt=0)
    remarks: Optional[str] = None


class DispatchQCBatchResponse(BaseModel):
    id: int
    qc_batch_id: str
    work_order_id: int
    production_batch_id: int
    qc_approved_quantity: int
    consumed_quantity: int
    remaining_quantity: int
    status: str
    remarks: Optional[str] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CartonCreate(BaseModel):
    work_order_id: int
    production_batch_id: int
    quantity: int = Field(..., gt=0)
    dispatch_qc_batch_id: Optional[int] = None
    gross_weight_kg: Optional[Decimal] = Field(None, ge=0)
    net_weight_kg: Optional[Decimal] = Field(None, ge=0)


class CartonUpdate(BaseModel):
    quantity: int = Field(..., gt=0)


class CartonResponse(BaseModel):
    id: int
    carton_number: str
    work_order_id: int
    production_batch_id: int
    dispatch_qc_batch_id: Optional[int] = None
    quantity: int
    gross_weight_kg: Optional[Decimal] = None
    net_weight_kg: Optional[Decimal] = None
    status: str
    packed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


# ============================================================================
# Dispatch
# ============================================================================

class DispatchCreate(BaseModel):
    work_order_id: int
    production_batch_id: int
    quantity: int = Field(..., gt=0)
    carton_id: Optional[int] = None
    shipment_id: Optional[int] = None
    remarks: Optional[str] = None


class DispatchResponse(BaseModel):
    id: int
    dispatch_number: str
    work_order_id: int
    production_batch_id: int
    carton_id: Optional[int] = None
    shipment_id: Optional[int] = None
    quantity: int
    remarks: Optional[str] = None
    dispatched_by: Optional[int] = None
    dispatched_at: datetime

    model_config = {"from_attributes": True}


class ShipmentCreate(BaseModel):
    sales_order_id: int
    work_order_id: Optional[int] = None
    carrier: Optional[str] = Field(None, max_length=100)
    tracking_number: Optional[str] = Field(None, max_length=100)
    dispatch_ids: List[int] = Field(default_factory=list)
    remarks: Optional[str] = None


class ShipmentStatusUpdate(BaseModel):
    status: str = Field(..., description="pending, shipped, delivered")


class ShipmentResponse(BaseModel):
    id: int
    shipment_number: str
    sales_order_id: int
    work_order_id: Optional[int] = None
    customer_id: int
    batch_id: Optional[int] = None
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    status: str
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    remarks: Optional[str] = None

    model_config = {"from_attributes": True}

"""
Production batch, production log, QC and material schemas
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


# ============================================================================
# Production
# ============================================================================

class ProductionLogCreate(BaseModel):
    work_order_id: int
    log_date: Optional[date] = None
    shift: Optional[str] = Field(None, max_length=20)
    machine: Optional[str] = Field(None, max_length=60)
    operator: Optional[str] = Field(None, max_length=120)
    operation: Optional[str] = Field(None, max_length=60)
    ok_quantity: int = Field(0, ge=0)
    rejection_quantity: int = Field(0, ge=0)
    rework_quantity: int = Field(0, ge=0)
    downtime_minutes: int = Field(0, ge=0)
    remarks: Optional[str] = None


class ProductionLogResponse(BaseModel):
    id: int
    work_order_id: int
    production_batch_id: int
    log_date: date
    shift: Optional[str] = None
    machine: Optional[str] = None
    operator: Optional[str] = None
    ok_quantity: int
    rejection_quantity: int
    rework_quantity: int
    downtime_minutes: int
    remarks: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class BatchStageChange(BaseModel):
    stage: str = Field(..., min_length=1, max_length=30)
    process: Optional[str] = Field(None, max_length=60)


class ProductionBatchResponse(BaseModel):
    id: int
    work_order_id: int
    batch_number: int
    trigger_reason: str
    previous_batch_id: Optional[int] = None
    batch_quantity: Optional[int] = None
    started_at: datetime
    ended_at: Optional[datetime] = None
    stage: Optional[str] = None
    location_type: Optional[str] = None
    location_ref: Optional[str] = None
    current_process: Optional[str] = None

    qc_material_status: Optional[str] = None
    qc_first_piece_status: Optional[str] = None
    qc_final_status: Optional[str] = None
    production_allowed: bool
    dispatch_allowed: bool

    produced_qty: int = 0
    qc_approved_qty: int = 0
    qc_rejected_qty: int = 0
    qc_pending_qty: int = 0
    dispatched_qty: int = 0
    production_complete: bool

    model_config = {"from_attributes": True}


# ============================================================================
# Quality
# ============================================================================

class QCRecordCreate(BaseModel):
    work_order_id: int
    qc_type: str = Field(..., description="incoming, first_piece, in_process, final")
    production_batch_id: Optional[int] = None
    material_lot_id: Optional[int] = None
    result: str = Field("pending", description="pending, pass, fail, rework, waived")
    inspected_quantity: int = Field(0, ge=0)
    rejected_quantity: int = Field(0, ge=0)
    measurements: Optional[str] = None
    remarks: Optional[str] = None


class QCResultUpdate(BaseModel):
    result: str = Field(..., description="pass, fail, rework, waived")
    inspected_quantity: Optional[int] = Field(None, ge=0)
    rejected_quantity: Optional[int] = Field(None, ge=0)
    remarks: Optional[str] = None


class GateWaiver(BaseModel):
    work_order_id: int
    gate: str = Field(..., description="material, first_piece, final")
    reason: str = Field(..., min_length=1, max_length=2000)
    production_batch_id: Optional[int] = None


class QCRecordResponse(BaseModel):
    id: int
    qc_number: str
    work_order_id: int
    production_batch_id: Optional[int] = None
    material_lot_id: Optional[int] = None
    qc_type: str
    result: str
    inspected_quantity: int
    rejected_quantity: int
    measurements: Optional[str] = None
    remarks: Optional[str] = None
    inspected_at: Optional[datetime] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


# ============================================================================
# Materials
# ============================================================================

class MaterialLotCreate(BaseModel):
    lot_number: Optional[str] = Field(None, max_length=40, description="Generated when omitted")
    heat_no: Optional[str] = Field(None, max_length=60)
    alloy: Optional[str] = Field(None, max_length=60)
    size_mm: Optional[str] = Field(None, max_length=60)
    supplier: Optional[str] = Field(None, max_length=200)
    supplier_invoice: Optional[str] = Field(None, max_length=60)
    quantity_received_kg: Decimal = Field(..., gt=0)
    received_date: Optional[date] = None


class MaterialLotResponse(BaseModel):
    id: int
    lot_number: str
    heat_no: Optional[str] = None
    alloy: Optional[str] = None
    size_mm: Optional[str] = None
    supplier: Optional[str] = None
    quantity_received_kg: Decimal
    quantity_issued_kg: Decimal
    available_kg: Decimal
    qc_status: str
    received_date: date

    model_config = {"from_attributes": True}


class MaterialIssueCreate(BaseModel):
    material_lot_id: int
    work_order_id: int
    quantity_kg: Decimal = Field(..., gt=0)
    remarks: Optional[str] = None


class MaterialIssueResponse(BaseModel):
    id: int
    material_lot_id: int
    work_order_id: int
    quantity_kg: Decimal
    remarks: Optional[str] = None
    issued_by: Optional[int] = None
    issued_at: datetime

    model_config = {"from_attributes": True}

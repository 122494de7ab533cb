"""
Work order schemas
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class WorkOrderCreate(BaseModel):
    """Stand-alone work order (not generated from a sales order line)"""
    item_code: str = Field(..., min_length=1, max_length=60)
    quantity: int = Field(..., gt=0)
    customer_id: Optional[int] = None
    customer_po: Optional[str] = Field(None, max_length=60)
    due_date: Optional[date] = None
    priority: int = Field(3, ge=1, le=5)
    material_size_mm: Optional[str] = Field(None, max_length=60)
    alloy: Optional[str] = Field(None, max_length=60)
    notes: Optional[str] = None


class StageChange(BaseModel):
    to_stage: str = Field(..., description="goods_in, cutting, forging, production, external, quality, packing, dispatch")
    reason: Optional[str] = Field(None, max_length=2000)


class StatusChange(BaseModel):
    status: str
    reason: Optional[str] = Field(None, max_length=2000)


class WorkOrderResponse(BaseModel):
    id: int
    wo_number: str
    display_id: Optional[str] = None
    sales_order_id: Optional[int] = None
    sales_order_line_id: Optional[int] = None
    customer_id: Optional[int] = None
    customer_po: Optional[str] = None
    item_code: str
    quantity: int
    due_date: Optional[date] = None
    status: str
    current_stage: str
    priority: Optional[int] = None

    material_size_mm: Optional[str] = None
    alloy: Optional[str] = None
    gross_weight_per_pc_g: Optional[Decimal] = None
    net_weight_per_pc_g: Optional[Decimal] = None
    cycle_time_seconds: Optional[Decimal] = None
    financial_snapshot: Optional[Dict[str, Any]] = None

    qc_material_status: Optional[str] = None
    qc_first_piece_status: Optional[str] = None
    qc_final_status: Optional[str] = None
    qc_status: Optional[str] = None
    production_locked: bool
    production_complete: bool

    qty_completed: int = 0
    qty_rejected: int = 0
    qty_dispatched: int = 0
    qty_external_wip: int = 0
    completion_pct: Decimal = Decimal("0")

    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class StageHistoryResponse(BaseModel):
    id: int
    event: str
    from_stage: Optional[str] = None
    to_stage: Optional[str] = None
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    reason: Optional[str] = None
    changed_by: Optional[int] = None
    changed_at: datetime

    model_config = {"from_attributes": True}


class BatchStatusResponse(BaseModel):
    status: str
    base_status: str
    ordered_qty: int
    produced_qty: int
    qc_approved_qty: int
    qc_rejected_qty: int
    qc_pending_qty: int
    dispatched_qty: int
    remaining_qty: int
    active_batches: int
    has_pending_qc: bool


class CompletionStatusResponse(BaseModel):
    can_complete: bool
    blockers: List[str]
    all_batches_production_complete: bool
    all_batches_final_qc_complete: bool
    has_packed_qty: bool
    totals: Dict[str, Any]
    active_batch_id: Optional[int] = None

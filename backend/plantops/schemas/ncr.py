"""
Non-conformance report schemas
"""
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class NCRCreate(BaseModel):
    issue_description: str = Field(..., min_length=1)
    ncr_type: str = Field("INTERNAL", description="INTERNAL, CUSTOMER, SUPPLIER")
    work_order_id: Optional[int] = None
    qc_record_id: Optional[int] = None
    material_lot_id: Optional[int] = None
    quantity_affected: int = Field(0, ge=0)
    unit: str = Field("pcs", max_length=10)
    disposition: Optional[str] = Field(None, description="REWORK, SCRAP, USE_AS_IS, RETURN_TO_SUPPLIER")
    due_date: Optional[date] = None


class NCRUpdate(BaseModel):
    root_cause: Optional[str] = None
    disposition: Optional[str] = None
    due_date: Optional[date] = None


class NCRActionCreate(BaseModel):
    description: str = Field(..., min_length=1)
    action_type: str = Field("CORRECTIVE", description="CORRECTIVE, PREVENTIVE")
    owner_id: Optional[int] = None
    due_date: Optional[date] = None


class NCRActionStatusUpdate(BaseModel):
    status: str = Field(..., description="in_progress, completed, verified")


class NCRActionResponse(BaseModel):
    id: int
    ncr_id: int
    action_type: str
    description: str
    owner_id: Optional[int] = None
    due_date: Optional[date] = None
    status: str
    completed_at: Optional[datetime] = None
    verified_by: Optional[int] = None
    verified_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class NCRResponse(BaseModel):
    id: int
    ncr_number: str
    ncr_type: str
    work_order_id: Optional[int] = None
    qc_record_id: Optional[int] = None
    material_lot_id: Optional[int] = None
    quantity_affected: int
    unit: str
    issue_description: str
    root_cause: Optional[str] = None
    disposition: Optional[str] = None
    due_date: Optional[date] = None
    status: str
    raised_by: Optional[int] = None
    closed_by: Optional[int] = None
    closed_at: Optional[datetime] = None
    created_at: datetime
    actions: List[NCRActionResponse] = []

    model_config = {"from_attributes": True}

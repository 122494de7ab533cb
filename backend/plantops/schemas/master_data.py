"""
Customer, item master and external partner schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


class CustomerCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=30)
    name: str = Field(..., min_length=1, max_length=200)
    contact_name: Optional[str] = Field(None, max_length=120)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=40)
    billing_address: Optional[str] = None
    currency: str = Field("USD", min_length=3, max_length=3)
    payment_terms_days: int = Field(30, ge=0, le=365)


class CustomerUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=30)
    name: Optional[str] = Field(None, max_length=200)
    contact_name: Optional[str] = Field(None, max_length=120)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=40)
    billing_address: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    payment_terms_days: Optional[int] = Field(None, ge=0, le=365)
    active: Optional[bool] = None


class CustomerResponse(BaseModel):
    id: int
    code: str
    name: str
    contact_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    billing_address: Optional[str] = None
    currency: str
    payment_terms_days: int
    active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ItemCreate(BaseModel):
    item_code: str = Field(..., min_length=1, max_length=60)
    description: Optional[str] = Field(None, max_length=255)
    drawing_number: Optional[str] = Field(None, max_length=60)
    material_size_mm: Optional[Decimal] = Field(None, gt=0)
    material_shape: Optional[str] = Field("round", max_length=30)
    alloy: Optional[str] = Field(None, max_length=60)
    gross_weight_per_pc_g: Optional[Decimal] = Field(None, ge=0)
    net_weight_per_pc_g: Optional[Decimal] = Field(None, ge=0)
    cycle_time_seconds: Optional[Decimal] = Field(None, ge=0)


class ItemUpdate(BaseModel):
    description: Optional[str] = Field(None, max_length=255)
    drawing_number: Optional[str] = Field(None, max_length=60)
    material_size_mm: Optional[Decimal] = Field(None, gt=0)
    material_shape: Optional[str] = Field(None, max_length=30)
    alloy: Optional[str] = Field(None, max_length=60)
    gross_weight_per_pc_g: Optional[Decimal] = Field(None, ge=0)
    net_weight_per_pc_g: Optional[Decimal] = Field(None, ge=0)
    cycle_time_seconds: Optional[Decimal] = Field(None, ge=0)
    active: Optional[bool] = None


class ItemResponse(BaseModel):
    id: int
    item_code: str
    description: Optional[str] = None
    drawing_number: Optional[str] = None
    material_size_mm: Optional[Decimal] = None
    material_shape: Optional[str] = None
    alloy: Optional[str] = None
    gross_weight_per_pc_g: Optional[Decimal] = None
    net_weight_per_pc_g: Optional[Decimal] = None
    cycle_time_seconds: Optional[Decimal] = None
    active: bool

    model_config = {"from_attributes": True}


class PartnerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    process_types: List[str] = Field(default_factory=list, description="e.g. plating, heat_treatment")
    contact_name: Optional[str] = Field(None, max_length=120)
    phone: Optional[str] = Field(None, max_length=40)
    address: Optional[str] = None


class PartnerResponse(BaseModel):
    id: int
    name: str
    process_type_list: List[str] = Field(default_factory=list, serialization_alias="process_types")
    contact_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    active: bool

    model_config = {"from_attributes": True}

"""
External processing partner endpoints
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from plantops.api.v1.deps import get_current_user, require_permission
from plantops.db.session import get_db
from plantops.models.user import User
from plantops.schemas.master_data import PartnerCreate, PartnerResponse
from plantops.services import master_data_service

router = APIRouter(prefix="/partners", tags=["Master Data"])


@router.get("/", response_model=List[PartnerResponse])
async def list_partners(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    process_type: Optional[str] = None,
    include_inactive: bool = False,
):
    return master_data_service.list_partners(db, process_type=process_type, include_inactive=include_inactive)


@router.post("/", response_model=PartnerResponse, status_code=status.HTTP_201_CREATED)
async def create_partner(
    payload: PartnerCreate,
    current_user: User = Depends(require_permission("master_data:write")),
    db: Session = Depends(get_db),
):
    partner = master_data_service.create_partner(db, payload.model_dump())
    db.commit()
    db.refresh(partner)
    return partner


@router.get("/{partner_id}", response_model=PartnerResponse)
async def get_partner(
    partner_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return master_data_service.get_partner(db, partner_id)


@router.post("/{partner_id}/deactivate", response_model=PartnerResponse)
async def deactivate_partner(
    partner_id: int,
    current_user: User = Depends(require_permission("master_data:write")),
    db: Session = Depends(get_db),
):
    partner = master_data_service.set_partner_active(db, master_data_service.get_partner(db, partner_id), False)
    db.commit()
    db.refresh(partner)
    return partner

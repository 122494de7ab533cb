"""
Material lot endpoints: receiving stock and issuing it to work orders
"""
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from plantops.api.v1.deps import get_current_user, get_pagination_params, require_permission
from plantops.db.session import get_db
from plantops.models import MaterialLot
from plantops.models.user import User
from plantops.schemas.common import ListResponse, PaginationParams, paginate
from plantops.schemas.production import (
    MaterialIssueCreate,
    MaterialIssueResponse,
    MaterialLotCreate,
    MaterialLotResponse,
)
from plantops.services import materials_service, work_order_service

router = APIRouter(prefix="/materials", tags=["Materials"])


@router.get("/lots", response_model=ListResponse[MaterialLotResponse])
async def list_lots(
    pagination: Annotated[PaginationParams, Depends(get_pagination_params)],
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    qc_status: Optional[str] = Query(None),
    alloy: Optional[str] = None,
):
    query = db.query(MaterialLot)
    if qc_status:
        query = query.filter(MaterialLot.qc_status == qc_status)
    if alloy:
        query = query.filter(MaterialLot.alloy == alloy)
    total = query.count()
    lots = query.order_by(MaterialLot.received_date.desc(), MaterialLot.id.desc()) \
        .offset(pagination.offset).limit(pagination.limit).all()
    return paginate(lots, total, pagination)


@router.post("/lots", response_model=MaterialLotResponse, status_code=status.HTTP_201_CREATED)
async def receive_lot(
    payload: MaterialLotCreate,
    current_user: User = Depends(require_permission("materials:write")),
    db: Session = Depends(get_db),
):
    lot = materials_service.receive_lot(db, payload.model_dump(), user_id=current_user.id)
    db.commit()
    db.refresh(lot)
    return lot


@router.get("/lots/{lot_id}", response_model=MaterialLotResponse)
async def get_lot(
    lot_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return materials_service.get_lot(db, lot_id)


@router.get("/lots/{lot_id}/issues", response_model=List[MaterialIssueResponse])
async def list_lot_issues(
    lot_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return materials_service.get_lot(db, lot_id).issues


@router.post("/issues", response_model=MaterialIssueResponse, status_code=status.HTTP_201_CREATED)
async def issue_material(
    payload: MaterialIssueCreate,
    current_user: User = Depends(require_permission("materials:write")),
    db: Session = Depends(get_db),
):
    """
    Issue kilograms from a lot to a work order.

    The work order gets a pending incoming-material QC gate; production
    stays locked until it passes.
    """
    lot = materials_service.get_lot(db, payload.material_lot_id)
    wo = work_order_service.get_work_order(db, payload.work_order_id)
    issue = materials_service.issue_material(
        db, lot, wo, payload.quantity_kg, user_id=current_user.id, remarks=payload.remarks,
    )
    db.commit()
    db.refresh(issue)
    return issue

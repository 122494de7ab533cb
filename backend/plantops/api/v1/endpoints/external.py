"""
External processing endpoints: challans to partners and goods received
"""
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from plantops.api.v1.deps import get_current_user, get_pagination_params, require_permission
from plantops.db.session import get_db
from plantops.models import ExternalMovement
from plantops.models.user import User
from plantops.schemas.common import ListResponse, PaginationParams, paginate
from plantops.schemas.logistics import (
    ExternalMovementResponse,
    MaterialReceiptCreate,
    MaterialReceiptResponse,
    SendToPartner,
)
from plantops.services import external_service, production_service

router = APIRouter(prefix="/external", tags=["External Processing"])


@router.get("/movements", response_model=ListResponse[ExternalMovementResponse])
async def list_movements(
    pagination: Annotated[PaginationParams, Depends(get_pagination_params)],
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    work_order_id: Optional[int] = None,
    partner_id: Optional[int] = None,
    status_filter: Optional[str] = None,
):
    query = db.query(ExternalMovement)
    if work_order_id:
        query = query.filter(ExternalMovement.work_order_id == work_order_id)
    if partner_id:
        query = query.filter(ExternalMovement.partner_id == partner_id)
    if status_filter:
        query = query.filter(ExternalMovement.status == status_filter)
    total = query.count()
    moves = query.order_by(ExternalMovement.sent_date.desc(), ExternalMovement.id.desc()) \
        .offset(pagination.offset).limit(pagination.limit).all()
    return paginate(moves, total, pagination)


@router.post("/send", response_model=ExternalMovementResponse, status_code=status.HTTP_201_CREATED)
async def send_to_partner(
    payload: SendToPartner,
    current_user: User = Depends(require_permission("external:write")),
    db: Session = Depends(get_db),
):
    batch = production_service.get_batch(db, payload.production_batch_id)
    movement = external_service.send_to_external(
        db, batch, payload.partner_id, payload.process_type, payload.quantity,
        expected_return_date=payload.expected_return_date,
        sent_date=payload.sent_date,
        remarks=payload.remarks,
        user_id=current_user.id,
    )
    db.commit()
    db.refresh(movement)
    return movement


@router.get("/movements/overdue", response_model=List[ExternalMovementResponse])
async def overdue_movements(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return external_service.list_overdue_movements(db)


@router.get("/movements/{movement_id}", response_model=ExternalMovementResponse)
async def get_movement(
    movement_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return external_service.get_movement(db, movement_id)


@router.post("/receipts", response_model=MaterialReceiptResponse, status_code=status.HTTP_201_CREATED)
async def record_receipt(
    payload: MaterialReceiptCreate,
    current_user: User = Depends(require_permission("external:write")),
    db: Session = Depends(get_db),
):
    movement = (
        external_service.get_movement(db, payload.external_movement_id)
        if payload.external_movement_id else None
    )
    batch = (
        production_service.get_batch(db, payload.production_batch_id)
        if payload.production_batch_id else None
    )
    receipt = external_service.record_material_receipt(
        db,
        payload.receipt_type,
        payload.quantity_received,
        quantity_rejected=payload.quantity_rejected,
        movement=movement,
        batch=batch,
        to_partner_id=payload.to_partner_id,
        next_process_type=payload.next_process_type,
        expected_return_date=payload.expected_return_date,
        receipt_date=payload.receipt_date,
        remarks=payload.remarks,
        user_id=current_user.id,
    )
    db.commit()
    db.refresh(receipt)
    return receipt

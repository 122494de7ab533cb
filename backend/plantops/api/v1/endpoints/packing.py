"""
Packing endpoints: dispatch QC releases and cartons
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from plantops.api.v1.deps import get_current_user, require_permission
from plantops.db.session import get_db
from plantops.models import Carton, DispatchQCBatch
from plantops.models.user import User
from plantops.schemas.common import MessageResponse
from plantops.schemas.logistics import (
    CartonCreate,
    CartonResponse,
    CartonUpdate,
    DispatchQCBatchCreate,
    DispatchQCBatchResponse,
)
from plantops.services import packing_service, production_service, work_order_service

router = APIRouter(prefix="/packing", tags=["Packing"])


@router.get("/dqc-batches", response_model=List[DispatchQCBatchResponse])
async def list_dqc_batches(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    work_order_id: Optional[int] = None,
):
    query = db.query(DispatchQCBatch)
    if work_order_id:
        query = query.filter(DispatchQCBatch.work_order_id == work_order_id)
    return query.order_by(DispatchQCBatch.id).all()


@router.post("/dqc-batches", response_model=DispatchQCBatchResponse, status_code=status.HTTP_201_CREATED)
async def create_dqc_batch(
    payload: DispatchQCBatchCreate,
    current_user: User = Depends(require_permission("dispatch_qc:write")),
    db: Session = Depends(get_db),
):
    """
    Release final-QC approved pieces of a batch for dispatch.

    Raises:
        QCGateError (422) when final QC on the batch is not passed or waived
    """
    batch = production_service.get_batch(db, payload.production_batch_id)
    dqc = packing_service.create_dispatch_qc_batch(
        db, batch, payload.quantity, user_id=current_user.id, remarks=payload.remarks,
    )
    db.commit()
    db.refresh(dqc)
    return dqc


@router.get("/cartons", response_model=List[CartonResponse])
async def list_cartons(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    work_order_id: Optional[int] = None,
    status_filter: Optional[str] = None,
):
    query = db.query(Carton)
    if work_order_id:
        query = query.filter(Carton.work_order_id == work_order_id)
    if status_filter:
        query = query.filter(Carton.status == status_filter)
    return query.order_by(Carton.id).all()


@router.post("/cartons", response_model=CartonResponse, status_code=status.HTTP_201_CREATED)
async def pack_carton(
    payload: CartonCreate,
    current_user: User = Depends(require_permission("packing:write")),
    db: Session = Depends(get_db),
):
    wo = work_order_service.get_work_order(db, payload.work_order_id)
    batch = production_service.get_batch(db, payload.production_batch_id)
    dqc = packing_service.get_dqc_batch(db, payload.dispatch_qc_batch_id) if payload.dispatch_qc_batch_id else None
    carton = packing_service.pack_carton(
        db, wo, batch, payload.quantity, dqc=dqc,
        gross_weight_kg=payload.gross_weight_kg,
        net_weight_kg=payload.net_weight_kg,
        user_id=current_user.id,
    )
    db.commit()
    db.refresh(carton)
    return carton


@router.patch("/cartons/{carton_id}", response_model=CartonResponse)
async def update_carton(
    carton_id: int,
    payload: CartonUpdate,
    current_user: User = Depends(require_permission("packing:write")),
    db: Session = Depends(get_db),
):
    carton = packing_service.get_carton(db, carton_id)
    packing_service.update_carton_quantity(db, carton, payload.quantity)
    db.commit()
    db.refresh(carton)
    return carton


@router.post("/cartons/{carton_id}/ready", response_model=CartonResponse)
async def mark_ready(
    carton_id: int,
    current_user: User = Depends(require_permission("packing:write")),
    db: Session = Depends(get_db),
):
    carton = packing_service.get_carton(db, carton_id)
    packing_service.mark_ready_for_dispatch(db, carton)
    db.commit()
    db.refresh(carton)
    return carton


@router.delete("/cartons/{carton_id}", response_model=MessageResponse)
async def delete_carton(
    carton_id: int,
    current_user: User = Depends(require_permission("packing:write")),
    db: Session = Depends(get_db),
):
    carton = packing_service.get_carton(db, carton_id)
    number = carton.carton_number
    packing_service.delete_carton(db, carton, user_id=current_user.id)
    db.commit()
    return MessageResponse(message=f"Carton {number} deleted")

"""
Dispatch endpoints: dispatches against packed stock and customer shipments
"""
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from plantops.api.v1.deps import get_current_user, get_pagination_params, require_permission
from plantops.db.session import get_db
from plantops.models import Dispatch, Shipment
from plantops.models.user import User
from plantops.schemas.common import ListResponse, MessageResponse, PaginationParams, paginate
from plantops.schemas.logistics import (
    DispatchCreate,
    DispatchResponse,
    ShipmentCreate,
    ShipmentResponse,
    ShipmentStatusUpdate,
)
from plantops.services import (
    dispatch_service, packing_service, production_service, sales_order_service, work_order_service,
)

router = APIRouter(prefix="/dispatch", tags=["Dispatch"])


@router.get("/dispatches", response_model=ListResponse[DispatchResponse])
async def list_dispatches(
    pagination: Annotated[PaginationParams, Depends(get_pagination_params)],
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    work_order_id: Optional[int] = None,
):
    query = db.query(Dispatch)
    if work_order_id:
        query = query.filter(Dispatch.work_order_id == work_order_id)
    total = query.count()
    rows = query.order_by(Dispatch.id.desc()).offset(pagination.offset).limit(pagination.limit).all()
    return paginate(rows, total, pagination)


@router.post("/dispatches", response_model=DispatchResponse, status_code=status.HTTP_201_CREATED)
async def create_dispatch(
    payload: DispatchCreate,
    current_user: User = Depends(require_permission("dispatch:write")),
    db: Session = Depends(get_db),
):
    """
    Dispatch pieces of a batch, optionally from a specific carton.

    Raises:
        DispatchBlockedError (422) without final QC or a dispatch QC release
        QuantityExceededError (422) beyond packed and not yet dispatched stock
    """
    wo = work_order_service.get_work_order(db, payload.work_order_id)
    batch = production_service.get_batch(db, payload.production_batch_id)
    carton = packing_service.get_carton(db, payload.carton_id) if payload.carton_id else None
    shipment = dispatch_service.get_shipment(db, payload.shipment_id) if payload.shipment_id else None
    dispatch = dispatch_service.create_dispatch(
        db, wo, batch, payload.quantity, carton=carton, shipment=shipment,
        remarks=payload.remarks, user_id=current_user.id,
    )
    db.commit()
    db.refresh(dispatch)
    return dispatch


@router.delete("/dispatches/{dispatch_id}", response_model=MessageResponse)
async def delete_dispatch(
    dispatch_id: int,
    current_user: User = Depends(require_permission("dispatch:write")),
    db: Session = Depends(get_db),
):
    dispatch = dispatch_service.get_dispatch(db, dispatch_id)
    number = dispatch.dispatch_number
    dispatch_service.delete_dispatch(db, dispatch, user_id=current_user.id)
    db.commit()
    return MessageResponse(message=f"Dispatch {number} deleted")


@router.get("/shipments", response_model=ListResponse[ShipmentResponse])
async def list_shipments(
    pagination: Annotated[PaginationParams, Depends(get_pagination_params)],
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    sales_order_id: Optional[int] = None,
):
    query = db.query(Shipment)
    if sales_order_id:
        query = query.filter(Shipment.sales_order_id == sales_order_id)
    total = query.count()
    rows = query.order_by(Shipment.id.desc()).offset(pagination.offset).limit(pagination.limit).all()
    return paginate(rows, total, pagination)


@router.post("/shipments", response_model=ShipmentResponse, status_code=status.HTTP_201_CREATED)
async def create_shipment(
    payload: ShipmentCreate,
    current_user: User = Depends(require_permission("dispatch:write")),
    db: Session = Depends(get_db),
):
    so = sales_order_service.get_sales_order(db, payload.sales_order_id)
    shipment = dispatch_service.create_shipment(db, so, payload.model_dump(), user_id=current_user.id)
    db.commit()
    db.refresh(shipment)
    return shipment


@router.post("/shipments/{shipment_id}/status", response_model=ShipmentResponse)
async def update_shipment_status(
    shipment_id: int,
    payload: ShipmentStatusUpdate,
    current_user: User = Depends(require_permission("dispatch:write")),
    db: Session = Depends(get_db),
):
    """
    Move a shipment to shipped / delivered.

    Raises:
        DispatchBlockedError (422) naming the first QC gate not cleared on
        the work order's current batch
    """
    shipment = dispatch_service.get_shipment(db, shipment_id)
    dispatch_service.update_shipment_status(db, shipment, payload.status, user_id=current_user.id)
    db.commit()
    db.refresh(shipment)
    return shipment

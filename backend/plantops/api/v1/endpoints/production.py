"""
Production endpoints: shift logs and batches
"""
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from plantops.api.v1.deps import get_current_user, get_pagination_params, require_permission
from plantops.db.session import get_db
from plantops.exceptions import NotFoundError
from plantops.models import ProductionLog
from plantops.models.user import User
from plantops.schemas.common import ListResponse, MessageResponse, PaginationParams, paginate
from plantops.schemas.production import (
    BatchStageChange,
    ProductionBatchResponse,
    ProductionLogCreate,
    ProductionLogResponse,
)
from plantops.services import production_service, work_order_service

router = APIRouter(prefix="/production", tags=["Production"])


@router.get("/logs", response_model=ListResponse[ProductionLogResponse])
async def list_logs(
    pagination: Annotated[PaginationParams, Depends(get_pagination_params)],
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    work_order_id: Optional[int] = None,
    production_batch_id: Optional[int] = None,
):
    query = db.query(ProductionLog)
    if work_order_id:
        query = query.filter(ProductionLog.work_order_id == work_order_id)
    if production_batch_id:
        query = query.filter(ProductionLog.production_batch_id == production_batch_id)
    total = query.count()
    logs = query.order_by(ProductionLog.log_date.desc(), ProductionLog.id.desc()) \
        .offset(pagination.offset).limit(pagination.limit).all()
    return paginate(logs, total, pagination)


@router.post("/logs", response_model=ProductionLogResponse, status_code=status.HTTP_201_CREATED)
async def add_log(
    payload: ProductionLogCreate,
    current_user: User = Depends(require_permission("production:write")),
    db: Session = Depends(get_db),
):
    """
    Book shift output. Opens a new batch after a dispatch or a long gap.

    Raises:
        ProductionLockedError (422) while material / first piece QC is not cleared
    """
    wo = work_order_service.get_work_order(db, payload.work_order_id)
    log = production_service.add_production_log(db, wo, payload.model_dump(), user_id=current_user.id)
    db.commit()
    db.refresh(log)
    return log


@router.delete("/logs/{log_id}", response_model=MessageResponse)
async def delete_log(
    log_id: int,
    current_user: User = Depends(require_permission("production:write")),
    db: Session = Depends(get_db),
):
    log = db.query(ProductionLog).filter(ProductionLog.id == log_id).first()
    if not log:
        raise NotFoundError("ProductionLog", log_id)
    production_service.delete_production_log(db, log)
    db.commit()
    return MessageResponse(message=f"Production log {log_id} deleted")


@router.get("/batches/{batch_id}", response_model=ProductionBatchResponse)
async def get_batch(
    batch_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return production_service.get_batch(db, batch_id)


@router.post("/batches/{batch_id}/stage", response_model=ProductionBatchResponse)
async def set_batch_stage(
    batch_id: int,
    payload: BatchStageChange,
    current_user: User = Depends(require_permission("production:write")),
    db: Session = Depends(get_db),
):
    batch = production_service.get_batch(db, batch_id)
    production_service.set_batch_stage(db, batch, payload.stage, process=payload.process)
    db.commit()
    db.refresh(batch)
    return batch


@router.post("/batches/{batch_id}/complete", response_model=ProductionBatchResponse)
async def complete_batch(
    batch_id: int,
    current_user: User = Depends(require_permission("production:write")),
    db: Session = Depends(get_db),
):
    batch = production_service.get_batch(db, batch_id)
    production_service.mark_batch_production_complete(db, batch, user_id=current_user.id)
    db.commit()
    db.refresh(batch)
    return batch

"""
Work order endpoints

Stage moves, status changes, batch/completion status and completion.
"""
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from plantops.api.v1.deps import get_current_user, get_pagination_params, require_permission
from plantops.db.session import get_db
from plantops.models import WorkOrder
from plantops.models.user import User
from plantops.schemas.common import ListResponse, PaginationParams, paginate
from plantops.schemas.production import ProductionBatchResponse
from plantops.schemas.work_order import (
    BatchStatusResponse,
    CompletionStatusResponse,
    StageChange,
    StageHistoryResponse,
    StatusChange,
    WorkOrderCreate,
    WorkOrderResponse,
)
from plantops.services import work_order_service

router = APIRouter(prefix="/work-orders", tags=["Work Orders"])


@router.get("/", response_model=ListResponse[WorkOrderResponse])
async def list_work_orders(
    pagination: Annotated[PaginationParams, Depends(get_pagination_params)],
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    status_filter: Optional[str] = Query(None, alias="status"),
    stage: Optional[str] = None,
    sales_order_id: Optional[int] = None,
):
    query = db.query(WorkOrder)
    if status_filter:
        query = query.filter(WorkOrder.status == status_filter)
    if stage:
        query = query.filter(WorkOrder.current_stage == stage)
    if sales_order_id:
        query = query.filter(WorkOrder.sales_order_id == sales_order_id)
    total = query.count()
    work_orders = (
        query.order_by(WorkOrder.due_date.asc(), WorkOrder.id.asc())
        .offset(pagination.offset)
        .limit(pagination.limit)
        .all()
    )
    return paginate(work_orders, total, pagination)


@router.post("/", response_model=WorkOrderResponse, status_code=status.HTTP_201_CREATED)
async def create_work_order(
    payload: WorkOrderCreate,
    current_user: User = Depends(require_permission("work_orders:write")),
    db: Session = Depends(get_db),
):
    wo = work_order_service.create_work_order(db, payload.model_dump(), user_id=current_user.id)
    db.commit()
    db.refresh(wo)
    return wo


@router.get("/{wo_id}", response_model=WorkOrderResponse)
async def get_work_order(
    wo_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return work_order_service.get_work_order(db, wo_id)


@router.post("/{wo_id}/stage", response_model=WorkOrderResponse)
async def move_stage(
    wo_id: int,
    payload: StageChange,
    current_user: User = Depends(require_permission("work_orders:write")),
    db: Session = Depends(get_db),
):
    wo = work_order_service.get_work_order(db, wo_id)
    work_order_service.move_stage(db, wo, payload.to_stage, user_id=current_user.id, reason=payload.reason)
    db.commit()
    db.refresh(wo)
    return wo


@router.post("/{wo_id}/status", response_model=WorkOrderResponse)
async def set_status(
    wo_id: int,
    payload: StatusChange,
    current_user: User = Depends(require_permission("work_orders:write")),
    db: Session = Depends(get_db),
):
    wo = work_order_service.get_work_order(db, wo_id)
    work_order_service.set_status(db, wo, payload.status, user_id=current_user.id, reason=payload.reason)
    db.commit()
    db.refresh(wo)
    return wo


@router.get("/{wo_id}/batch-status", response_model=BatchStatusResponse)
async def get_batch_status(
    wo_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    wo = work_order_service.get_work_order(db, wo_id)
    return work_order_service.get_wo_batch_status(db, wo)


@router.get("/{wo_id}/completion-status", response_model=CompletionStatusResponse)
async def get_completion_status(
    wo_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    wo = work_order_service.get_work_order(db, wo_id)
    return work_order_service.check_wo_completion_status(db, wo)


@router.post("/{wo_id}/complete", response_model=WorkOrderResponse)
async def complete_work_order(
    wo_id: int,
    current_user: User = Depends(require_permission("work_orders:complete")),
    db: Session = Depends(get_db),
):
    """
    Close the work order.

    Raises:
        BusinessRuleError (422) listing the blockers from completion-status
    """
    wo = work_order_service.get_work_order(db, wo_id)
    work_order_service.mark_wo_complete(db, wo, user_id=current_user.id)
    db.commit()
    db.refresh(wo)
    return wo


@router.get("/{wo_id}/stage-history", response_model=List[StageHistoryResponse])
async def get_stage_history(
    wo_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return work_order_service.get_work_order(db, wo_id).stage_history


@router.get("/{wo_id}/batches", response_model=List[ProductionBatchResponse])
async def list_batches(
    wo_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return work_order_service.get_work_order(db, wo_id).batches

"""
Sales order endpoints

Approval of an order (or a single line) generates the work orders; edits
to an approved order are synced to work orders still in goods-in.
"""
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from plantops.api.v1.deps import get_current_user, get_pagination_params, require_permission
from plantops.db.session import get_db
from plantops.models import SalesOrder
from plantops.models.user import User
from plantops.schemas.common import ListResponse, PaginationParams, paginate
from plantops.schemas.sales_order import (
    CancelRequest,
    SalesOrderCreate,
    SalesOrderListResponse,
    SalesOrderResponse,
    SalesOrderUpdate,
)
from plantops.schemas.work_order import WorkOrderResponse
from plantops.services import sales_order_service

router = APIRouter(prefix="/sales-orders", tags=["Sales Orders"])


@router.get("/", response_model=ListResponse[SalesOrderListResponse])
async def list_sales_orders(
    pagination: Annotated[PaginationParams, Depends(get_pagination_params)],
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    status_filter: Optional[str] = Query(None, alias="status"),
    customer_id: Optional[int] = None,
):
    query = db.query(SalesOrder)
    if status_filter:
        query = query.filter(SalesOrder.status == status_filter)
    if customer_id:
        query = query.filter(SalesOrder.customer_id == customer_id)
    total = query.count()
    orders = (
        query.order_by(SalesOrder.created_at.desc(), SalesOrder.id.desc())
        .offset(pagination.offset)
        .limit(pagination.limit)
        .all()
    )
    return paginate(orders, total, pagination)


@router.post("/", response_model=SalesOrderResponse, status_code=status.HTTP_201_CREATED)
async def create_sales_order(
    payload: SalesOrderCreate,
    current_user: User = Depends(require_permission("sales_orders:write")),
    db: Session = Depends(get_db),
):
    so = sales_order_service.create_sales_order(db, payload.model_dump(), user_id=current_user.id)
    db.commit()
    db.refresh(so)
    return so


@router.get("/{so_id}", response_model=SalesOrderResponse)
async def get_sales_order(
    so_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return sales_order_service.get_sales_order(db, so_id)


@router.patch("/{so_id}", response_model=SalesOrderResponse)
async def update_sales_order(
    so_id: int,
    payload: SalesOrderUpdate,
    current_user: User = Depends(require_permission("sales_orders:write")),
    db: Session = Depends(get_db),
):
    so = sales_order_service.get_sales_order(db, so_id)
    changes = payload.model_dump(exclude_unset=True)
    if "lines" in changes:
        changes["lines"] = [line.model_dump(exclude_unset=True) for line in payload.lines or []]
    sales_order_service.update_sales_order(db, so, changes, user_id=current_user.id)
    db.commit()
    db.refresh(so)
    return so


@router.post("/{so_id}/approve", response_model=SalesOrderResponse)
async def approve_sales_order(
    so_id: int,
    current_user: User = Depends(require_permission("sales_orders:approve")),
    db: Session = Depends(get_db),
):
    so = sales_order_service.get_sales_order(db, so_id)
    sales_order_service.approve_sales_order(db, so, user_id=current_user.id)
    db.commit()
    db.refresh(so)
    return so


@router.post("/lines/{line_id}/approve", response_model=WorkOrderResponse)
async def approve_line_item(
    line_id: int,
    current_user: User = Depends(require_permission("sales_orders:approve")),
    db: Session = Depends(get_db),
):
    """Approve one line and return the work order generated for it."""
    line = sales_order_service.get_line(db, line_id)
    wo = sales_order_service.approve_line_item(db, line, user_id=current_user.id)
    db.commit()
    db.refresh(wo)
    return wo


@router.post("/lines/{line_id}/cancel", response_model=SalesOrderResponse)
async def cancel_line_item(
    line_id: int,
    payload: CancelRequest,
    current_user: User = Depends(require_permission("sales_orders:write")),
    db: Session = Depends(get_db),
):
    line = sales_order_service.get_line(db, line_id)
    sales_order_service.cancel_line_item(db, line, reason=payload.reason, user_id=current_user.id)
    db.commit()
    so = sales_order_service.get_sales_order(db, line.sales_order_id)
    return so


@router.post("/{so_id}/cancel", response_model=SalesOrderResponse)
async def cancel_sales_order(
    so_id: int,
    payload: CancelRequest,
    current_user: User = Depends(require_permission("sales_orders:write")),
    db: Session = Depends(get_db),
):
    so = sales_order_service.get_sales_order(db, so_id)
    sales_order_service.cancel_sales_order(db, so, payload.reason, user_id=current_user.id)
    db.commit()
    db.refresh(so)
    return so

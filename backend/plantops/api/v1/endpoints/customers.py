"""
Customer master endpoints
"""
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from plantops.api.v1.deps import get_current_user, get_pagination_params, require_permission
from plantops.db.session import get_db
from plantops.models.user import User
from plantops.schemas.common import ListResponse, PaginationParams, paginate
from plantops.schemas.finance import AgingResponse
from plantops.schemas.master_data import CustomerCreate, CustomerResponse, CustomerUpdate
from plantops.services import finance_service, master_data_service

router = APIRouter(prefix="/customers", tags=["Master Data"])


@router.get("/", response_model=ListResponse[CustomerResponse])
async def list_customers(
    pagination: Annotated[PaginationParams, Depends(get_pagination_params)],
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    search: Optional[str] = None,
    include_inactive: bool = False,
):
    customers, total = master_data_service.list_customers(
        db, search=search, include_inactive=include_inactive,
        offset=pagination.offset, limit=pagination.limit,
    )
    return paginate(customers, total, pagination)


@router.post("/", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(
    payload: CustomerCreate,
    current_user: User = Depends(require_permission("master_data:write")),
    db: Session = Depends(get_db),
):
    customer = master_data_service.create_customer(db, payload.model_dump())
    db.commit()
    db.refresh(customer)
    return customer


@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer(
    customer_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return master_data_service.get_customer(db, customer_id)


@router.patch("/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_id: int,
    payload: CustomerUpdate,
    current_user: User = Depends(require_permission("master_data:write")),
    db: Session = Depends(get_db),
):
    customer = master_data_service.get_customer(db, customer_id)
    master_data_service.update_customer(db, customer, payload.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(customer)
    return customer


@router.get("/{customer_id}/aging", response_model=AgingResponse)
async def customer_aging(
    customer_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Open receivables bucketed 0-30 / 31-60 / 61-90 / 90+ days past due."""
    master_data_service.get_customer(db, customer_id)
    return finance_service.customer_outstanding(db, customer_id)

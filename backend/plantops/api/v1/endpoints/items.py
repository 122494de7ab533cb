"""
Item master endpoints
"""
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from plantops.api.v1.deps import get_current_user, get_pagination_params, require_permission
from plantops.db.session import get_db
from plantops.models.user import User
from plantops.schemas.common import ListResponse, PaginationParams, paginate
from plantops.schemas.master_data import ItemCreate, ItemResponse, ItemUpdate
from plantops.services import master_data_service

router = APIRouter(prefix="/items", tags=["Master Data"])


@router.get("/", response_model=ListResponse[ItemResponse])
async def list_items(
    pagination: Annotated[PaginationParams, Depends(get_pagination_params)],
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    search: Optional[str] = None,
):
    items, total = master_data_service.list_items(db, search=search, offset=pagination.offset,
                                                  limit=pagination.limit)
    return paginate(items, total, pagination)


@router.post("/", response_model=ItemResponse, status_code=status.HTTP_201_CREATED)
async def create_item(
    payload: ItemCreate,
    current_user: User = Depends(require_permission("master_data:write")),
    db: Session = Depends(get_db),
):
    item = master_data_service.create_item(db, payload.model_dump())
    db.commit()
    db.refresh(item)
    return item


@router.get("/{item_id}", response_model=ItemResponse)
async def get_item(
    item_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return master_data_service.get_item(db, item_id)


@router.patch("/{item_id}", response_model=ItemResponse)
async def update_item(
    item_id: int,
    payload: ItemUpdate,
    current_user: User = Depends(require_permission("master_data:write")),
    db: Session = Depends(get_db),
):
    item = master_data_service.get_item(db, item_id)
    master_data_service.update_item(db, item, payload.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(item)
    return item

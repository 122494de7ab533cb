"""
User Management Endpoints (Admin Only)
"""
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from plantops.api.v1.deps import get_pagination_params, require_permission
from plantops.db.session import get_db
from plantops.models.user import User
from plantops.schemas.auth import UserCreate, UserResponse, UserUpdate
from plantops.schemas.common import ListResponse, PaginationParams, paginate
from plantops.services import user_service

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/", response_model=ListResponse[UserResponse])
async def list_users(
    pagination: Annotated[PaginationParams, Depends(get_pagination_params)],
    current_user: User = Depends(require_permission("users:write")),
    db: Session = Depends(get_db),
    role: Optional[str] = Query(None),
):
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    total = query.count()
    users = query.order_by(User.email).offset(pagination.offset).limit(pagination.limit).all()
    return paginate(users, total, pagination)


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    current_user: User = Depends(require_permission("users:write")),
    db: Session = Depends(get_db),
):
    user = user_service.create_user(db, payload.model_dump())
    db.commit()
    db.refresh(user)
    return user


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    payload: UserUpdate,
    current_user: User = Depends(require_permission("users:write")),
    db: Session = Depends(get_db),
):
    user = user_service.get_user(db, user_id)
    user_service.update_user(db, user, payload.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(user)
    return user

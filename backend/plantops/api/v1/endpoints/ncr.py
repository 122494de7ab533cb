"""
Non-conformance report endpoints
"""
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from plantops.api.v1.deps import get_current_user, get_pagination_params, require_permission
from plantops.db.session import get_db
from plantops.core.permissions import has_permission
from plantops.core.status_config import NCRActionStatus
from plantops.exceptions import NotFoundError, PermissionDeniedError
from plantops.models import NCR, NCRAction, QCRecord
from plantops.models.user import User
from plantops.schemas.common import ListResponse, PaginationParams, paginate
from plantops.schemas.ncr import (
    NCRActionCreate,
    NCRActionResponse,
    NCRActionStatusUpdate,
    NCRCreate,
    NCRResponse,
    NCRUpdate,
)
from plantops.services import ncr_service, work_order_service

router = APIRouter(prefix="/ncr", tags=["NCR"])


def _get_ncr(db: Session, ncr_id: int) -> NCR:
    ncr = db.query(NCR).filter(NCR.id == ncr_id).first()
    if not ncr:
        raise NotFoundError("NCR", ncr_id)
    return ncr


@router.get("/", response_model=ListResponse[NCRResponse])
async def list_ncrs(
    pagination: Annotated[PaginationParams, Depends(get_pagination_params)],
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    status_filter: Optional[str] = None,
    work_order_id: Optional[int] = None,
):
    query = db.query(NCR)
    if status_filter:
        query = query.filter(NCR.status == status_filter)
    if work_order_id:
        query = query.filter(NCR.work_order_id == work_order_id)
    total = query.count()
    rows = query.order_by(NCR.id.desc()).offset(pagination.offset).limit(pagination.limit).all()
    return paginate(rows, total, pagination)


@router.post("/", response_model=NCRResponse, status_code=status.HTTP_201_CREATED)
async def create_ncr(
    payload: NCRCreate,
    current_user: User = Depends(require_permission("ncr:write")),
    db: Session = Depends(get_db),
):
    wo = work_order_service.get_work_order(db, payload.work_order_id) if payload.work_order_id else None
    qc_record = None
    if payload.qc_record_id:
        qc_record = db.query(QCRecord).filter(QCRecord.id == payload.qc_record_id).first()
        if not qc_record:
            raise NotFoundError("QCRecord", payload.qc_record_id)
    ncr = ncr_service.create_ncr(
        db,
        issue_description=payload.issue_description,
        ncr_type=payload.ncr_type,
        work_order=wo,
        qc_record=qc_record,
        material_lot_id=payload.material_lot_id,
        quantity_affected=payload.quantity_affected,
        unit=payload.unit,
        disposition=payload.disposition,
        due_date=payload.due_date,
        user_id=current_user.id,
    )
    db.commit()
    db.refresh(ncr)
    return ncr


@router.get("/{ncr_id}", response_model=NCRResponse)
async def get_ncr(
    ncr_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _get_ncr(db, ncr_id)


@router.patch("/{ncr_id}", response_model=NCRResponse)
async def update_ncr(
    ncr_id: int,
    payload: NCRUpdate,
    current_user: User = Depends(require_permission("ncr:write")),
    db: Session = Depends(get_db),
):
    ncr = _get_ncr(db, ncr_id)
    ncr_service.update_ncr(db, ncr, **payload.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(ncr)
    return ncr


@router.post("/{ncr_id}/actions", response_model=NCRActionResponse, status_code=status.HTTP_201_CREATED)
async def add_action(
    ncr_id: int,
    payload: NCRActionCreate,
    current_user: User = Depends(require_permission("ncr:write")),
    db: Session = Depends(get_db),
):
    ncr = _get_ncr(db, ncr_id)
    action = ncr_service.add_action(
        db, ncr,
        description=payload.description,
        action_type=payload.action_type,
        owner_id=payload.owner_id,
        due_date=payload.due_date,
    )
    db.commit()
    db.refresh(action)
    return action


@router.post("/actions/{action_id}/status", response_model=NCRActionResponse)
async def update_action_status(
    action_id: int,
    payload: NCRActionStatusUpdate,
    current_user: User = Depends(require_permission("ncr:write")),
    db: Session = Depends(get_db),
):
    """Move an action along its workflow; only quality may sign off verification."""
    action = db.query(NCRAction).filter(NCRAction.id == action_id).first()
    if not action:
        raise NotFoundError("NCRAction", action_id)
    if payload.status == NCRActionStatus.VERIFIED.value and not has_permission(current_user.role, "ncr:verify"):
        raise PermissionDeniedError(
            f"Role '{current_user.role}' may not verify NCR actions",
            action="ncr:verify",
        )
    ncr_service.update_action_status(db, action, payload.status, user_id=current_user.id)
    db.commit()
    db.refresh(action)
    return action


@router.post("/{ncr_id}/close", response_model=NCRResponse)
async def close_ncr(
    ncr_id: int,
    current_user: User = Depends(require_permission("ncr:close")),
    db: Session = Depends(get_db),
):
    """
    Close an NCR.

    Raises:
        BusinessRuleError (422) when the NCR has no actions, an action is
        not yet verified, or the root cause is missing
    """
    ncr = _get_ncr(db, ncr_id)
    ncr_service.close_ncr(db, ncr, user_id=current_user.id)
    db.commit()
    db.refresh(ncr)
    return ncr

"""
Quality control endpoints: inspection records, results and gate waivers
"""
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from plantops.api.v1.deps import get_current_user, get_pagination_params, require_permission
from plantops.db.session import get_db
from plantops.exceptions import NotFoundError
from plantops.models import QCRecord
from plantops.models.user import User
from plantops.schemas.common import ListResponse, PaginationParams, paginate
from plantops.schemas.production import GateWaiver, QCRecordCreate, QCRecordResponse, QCResultUpdate
from plantops.schemas.work_order import WorkOrderResponse
from plantops.services import production_service, quality_service, work_order_service

router = APIRouter(prefix="/qc", tags=["Quality"])


def _get_record(db: Session, record_id: int) -> QCRecord:
    record = db.query(QCRecord).filter(QCRecord.id == record_id).first()
    if not record:
        raise NotFoundError("QCRecord", record_id)
    return record


@router.get("/records", response_model=ListResponse[QCRecordResponse])
async def list_qc_records(
    pagination: Annotated[PaginationParams, Depends(get_pagination_params)],
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    work_order_id: Optional[int] = None,
    qc_type: Optional[str] = None,
    result: Optional[str] = None,
):
    query = db.query(QCRecord)
    if work_order_id:
        query = query.filter(QCRecord.work_order_id == work_order_id)
    if qc_type:
        query = query.filter(QCRecord.qc_type == qc_type)
    if result:
        query = query.filter(QCRecord.result == result)
    total = query.count()
    records = query.order_by(QCRecord.id.desc()).offset(pagination.offset).limit(pagination.limit).all()
    return paginate(records, total, pagination)


@router.post("/records", response_model=QCRecordResponse, status_code=status.HTTP_201_CREATED)
async def create_qc_record(
    payload: QCRecordCreate,
    current_user: User = Depends(require_permission("qc:write")),
    db: Session = Depends(get_db),
):
    wo = work_order_service.get_work_order(db, payload.work_order_id)
    record = quality_service.create_qc_record(db, wo, payload.model_dump(), user_id=current_user.id)
    db.commit()
    db.refresh(record)
    return record


@router.get("/records/{record_id}", response_model=QCRecordResponse)
async def get_qc_record(
    record_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _get_record(db, record_id)


@router.post("/records/{record_id}/result", response_model=QCRecordResponse)
async def record_result(
    record_id: int,
    payload: QCResultUpdate,
    current_user: User = Depends(require_permission("qc:write")),
    db: Session = Depends(get_db),
):
    """
    Record pass / fail / rework / waived.

    A fail raises an NCR and locks production; final-QC quantities are
    rolled into the batch and work order.
    """
    record = _get_record(db, record_id)
    quality_service.record_qc_result(
        db, record, payload.result, user_id=current_user.id,
        inspected_quantity=payload.inspected_quantity,
        rejected_quantity=payload.rejected_quantity,
        remarks=payload.remarks,
    )
    db.commit()
    db.refresh(record)
    return record


@router.post("/waive", response_model=WorkOrderResponse)
async def waive_gate(
    payload: GateWaiver,
    current_user: User = Depends(require_permission("qc:write")),
    db: Session = Depends(get_db),
):
    wo = work_order_service.get_work_order(db, payload.work_order_id)
    batch = (
        production_service.get_batch(db, payload.production_batch_id)
        if payload.production_batch_id else None
    )
    quality_service.waive_gate(db, wo, payload.gate, payload.reason, user_id=current_user.id, batch=batch)
    db.commit()
    db.refresh(wo)
    return wo


@router.get("/batches/{batch_id}/gates")
async def get_batch_gates(
    batch_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Gate statuses of one batch plus the first gate still blocking dispatch."""
    batch = production_service.get_batch(db, batch_id)
    return {**quality_service.get_batch_qc_status(batch), "blocking_gate": quality_service.first_blocking_gate(batch)}

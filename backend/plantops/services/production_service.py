"""
Production Service

Batch lifecycle and production logging.

A work order's output is booked in batches. Logging production resolves
the batch to book against:

- no batch yet                              → batch 1 (initial)
- goods dispatched since the batch started  → close it, open next (post_dispatch)
- last log older than the gap threshold     → close it, open next (gap_restart)
- otherwise                                 → current batch
"""
from datetime import date, datetime
from typing import Any, Dict, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from plantops.core.settings import settings
from plantops.core.status_config import (
    BatchTriggerReason, QCStatus, WOQCStatus, WorkOrderStatus, is_gate_complete, normalize_qc_status,
)
from plantops.exceptions import (
    BusinessRuleError, InvalidStateError, NotFoundError, ProductionLockedError, ValidationError,
)
from plantops.models import Dispatch, ProductionBatch, ProductionLog, WorkOrder
from plantops.services.audit_service import record_audit
from plantops.services.quantity_service import recalculate_batch_quantities, recalculate_wo_quantities
from plantops.logging_config import get_logger

logger = get_logger(__name__)


def get_current_batch(db: Session, wo: WorkOrder) -> Optional[ProductionBatch]:
    """Open batch first, otherwise the highest-numbered one."""
    return (
        db.query(ProductionBatch)
        .filter(ProductionBatch.work_order_id == wo.id)
        .order_by(ProductionBatch.ended_at.isnot(None), desc(ProductionBatch.batch_number))
        .first()
    )


def get_batch(db: Session, batch_id: int) -> ProductionBatch:
    batch = db.query(ProductionBatch).filter(ProductionBatch.id == batch_id).first()
    if not batch:
        raise NotFoundError("ProductionBatch", batch_id)
    return batch


def refresh_batch_gates(batch: ProductionBatch) -> ProductionBatch:
    """production_allowed needs material + first piece; dispatch_allowed needs all three."""
    material = is_gate_complete(batch.qc_material_status)
    first_piece = is_gate_complete(batch.qc_first_piece_status)
    final = is_gate_complete(batch.qc_final_status)
    batch.production_allowed = material and first_piece
    batch.dispatch_allowed = material and first_piece and final
    return batch


def _open_batch(
    db: Session,
    wo: WorkOrder,
    reason: BatchTriggerReason,
    previous: Optional[ProductionBatch] = None,
) -> ProductionBatch:
    now = datetime.utcnow()
    if previous is not None and previous.ended_at is None:
        previous.ended_at = now

    batch = ProductionBatch(
        work_order_id=wo.id,
        batch_number=(previous.batch_number + 1) if previous else 1,
        trigger_reason=reason.value,
        previous_batch_id=previous.id if previous else None,
        batch_quantity=wo.quantity,
        started_at=now,
        stage="production",
        stage_entered_at=now,
        location_type="factory",
        current_process="production",
        # Material and first-piece approvals carry over from the work order
        qc_material_status=wo.qc_material_status if wo.qc_material_status != "not_started" else "pending",
        qc_material_approved_by=wo.qc_material_approved_by,
        qc_material_approved_at=wo.qc_material_approved_at,
        qc_first_piece_status=wo.qc_first_piece_status if wo.qc_first_piece_status != "not_started" else "pending",
        qc_first_piece_approved_by=wo.qc_first_piece_approved_by,
        qc_first_piece_approved_at=wo.qc_first_piece_approved_at,
        qc_final_status="pending",
    )
    refresh_batch_gates(batch)
    db.add(batch)
    db.flush()
    record_audit(
        db, "production_batches", batch.id, "BATCH_CREATED",
        new_data={"work_order_id": wo.id, "batch_number": batch.batch_number, "trigger_reason": reason.value},
    )
    logger.info(
        f"{wo.wo_number}: opened batch #{batch.batch_number} ({reason.value})",
        extra={"work_order_id": wo.id, "batch_id": batch.id},
    )
    return batch


def get_or_create_production_batch(
    db: Session,
    wo: WorkOrder,
    log_date: Optional[date] = None,
    gap_threshold_days: Optional[int] = None,
) -> ProductionBatch:
    """Resolve the batch new production for `wo` should be booked against."""
    threshold = settings.BATCH_GAP_THRESHOLD_DAYS if gap_threshold_days is None else gap_threshold_days
    reference_day = log_date or date.today()

    current = get_current_batch(db, wo)
    if current is None:
        return _open_batch(db, wo, BatchTriggerReason.INITIAL)

    dispatched_since = (
        db.query(Dispatch.id)
        .filter(Dispatch.work_order_id == wo.id, Dispatch.dispatched_at > current.started_at)
        .first()
    )
    if dispatched_since is not None:
        return _open_batch(db, wo, BatchTriggerReason.POST_DISPATCH, previous=current)

    last_log = (
        db.query(ProductionLog)
        .filter(ProductionLog.production_batch_id == current.id)
        .order_by(desc(ProductionLog.log_date))
        .first()
    )
    last_day = last_log.log_date if last_log else current.started_at.date()
    if (reference_day - last_day).days > threshold:
        return _open_batch(db, wo, BatchTriggerReason.GAP_RESTART, previous=current)

    if current.ended_at is not None:
        # Closed without a successor (e.g. marked complete); reopen as a new batch
        return _open_batch(db, wo, BatchTriggerReason.GAP_RESTART, previous=current)

    return current


def add_production_log(db: Session, wo: WorkOrder, data: Dict[str, Any], user_id: Optional[int] = None) -> ProductionLog:
    """
    Book shift output against the work order's current batch.

    Raises:
        InvalidStateError: WO is closed or on hold
        ProductionLockedError: material or first-piece QC not cleared
        ValidationError: quantities negative or both zero
    """
    if wo.status in (WorkOrderStatus.COMPLETED.value, WorkOrderStatus.CANCELLED.value, WorkOrderStatus.ON_HOLD.value):
        raise InvalidStateError(
            f"Cannot log production on {wo.status} work order {wo.wo_number}",
            current_state=wo.status,
        )
    if wo.production_locked:
        reason = (
            "QC failed; clear the failed inspection first"
            if wo.qc_status == WOQCStatus.FAILED.value
            else "Material and first piece QC must be approved"
        )
        raise ProductionLockedError(wo.wo_number, reason=reason)

    ok = int(data.get("ok_quantity") or 0)
    rejected = int(data.get("rejection_quantity") or 0)
    rework = int(data.get("rework_quantity") or 0)
    if ok < 0 or rejected < 0 or rework < 0:
        raise ValidationError("Production quantities cannot be negative")
    if ok == 0 and rejected == 0:
        raise ValidationError("Log must record OK or rejected quantity")

    log_date = data.get("log_date") or date.today()
    batch = get_or_create_production_batch(db, wo, log_date=log_date)
    for gate in ("material", "first_piece"):
        if normalize_qc_status(getattr(batch, f"qc_{gate}_status")) == QCStatus.FAILED.value:
            raise ProductionLockedError(
                wo.wo_number,
                reason=f"Batch #{batch.batch_number} {gate.replace('_', ' ')} QC failed",
            )

    log = ProductionLog(
        work_order_id=wo.id,
        production_batch_id=batch.id,
        log_date=log_date,
        shift=data.get("shift"),
        machine=data.get("machine"),
        operator=data.get("operator"),
        operation=data.get("operation"),
        ok_quantity=ok,
        rejection_quantity=rejected,
        rework_quantity=rework,
        downtime_minutes=int(data.get("downtime_minutes") or 0),
        remarks=data.get("remarks"),
        created_by=user_id,
    )
    db.add(log)
    db.flush()

    if wo.status == WorkOrderStatus.PENDING.value:
        wo.status = WorkOrderStatus.IN_PROGRESS.value
    if wo.started_at is None:
        wo.started_at = datetime.utcnow()

    recalculate_batch_quantities(db, batch)
    recalculate_wo_quantities(db, wo)
    logger.info(
        f"{wo.wo_number}: logged {ok} ok / {rejected} rejected on batch #{batch.batch_number}",
        extra={"work_order_id": wo.id, "batch_id": batch.id},
    )
    return log


def delete_production_log(db: Session, log: ProductionLog) -> None:
    batch = log.batch
    wo = db.query(WorkOrder).filter(WorkOrder.id == log.work_order_id).one()
    if batch.production_complete:
        raise InvalidStateError("Cannot change logs of a completed batch", current_state="production_complete")
    db.delete(log)
    db.flush()
    recalculate_batch_quantities(db, batch)
    recalculate_wo_quantities(db, wo)


def set_batch_stage(db: Session, batch: ProductionBatch, stage: str, process: Optional[str] = None) -> ProductionBatch:
    batch.stage = stage
    batch.current_process = process or stage
    batch.stage_entered_at = datetime.utcnow()
    return batch


def set_batch_location(
    batch: ProductionBatch,
    location_type: str,
    process: Optional[str] = None,
    location_ref: Optional[str] = None,
) -> ProductionBatch:
    batch.location_type = location_type
    batch.location_ref = location_ref
    if process is not None:
        batch.current_process = process
        batch.stage_entered_at = datetime.utcnow()
    return batch


def mark_batch_production_complete(db: Session, batch: ProductionBatch, user_id: Optional[int] = None) -> ProductionBatch:
    if batch.production_complete:
        return batch
    if (batch.produced_qty or 0) <= 0:
        raise BusinessRuleError(
            f"Batch #{batch.batch_number} has no production logged",
            rule="batch_requires_output",
        )
    batch.production_complete = True
    batch.production_completed_at = datetime.utcnow()
    batch.production_completed_by = user_id
    if batch.ended_at is None:
        batch.ended_at = batch.production_completed_at
    record_audit(
        db, "production_batches", batch.id, "BATCH_PRODUCTION_COMPLETE",
        new_data={"produced_qty": batch.produced_qty}, user_id=user_id,
    )
    return batch

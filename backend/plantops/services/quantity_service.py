"""
Quantity Ledger Service

Derives every stored quantity from its source records so batches,
cartons, dispatches and work orders always reconcile:

    batch.produced_qty    = sum(log ok + log rejection)
    batch.qc_rejected_qty = sum(log rejection) + sum(final QC rejected)
                            + sum(rejected at external partners)
    batch.qc_approved_qty = sum(final QC passed inspected - rejected)
    batch.qc_pending_qty  = produced - approved - rejected
    batch.dispatched_qty  = sum(dispatch quantity)

    wo.qty_completed      = sum(batch produced - rejected)   (good pieces)
    wo.qty_rejected       = sum(batch rejected)
    wo.qty_dispatched     = sum(dispatch quantity)
    wo.qty_external_wip   = sum(open movement outstanding)
    wo.completion_pct     = round(qty_completed / quantity * 100, 2)
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from plantops.core.status_config import CartonStatus, OPEN_MOVEMENT_STATUSES, QCResult, QCType
from plantops.exceptions import QuantityExceededError
from plantops.models import (
    Carton, Dispatch, ExternalMovement, ProductionBatch, ProductionLog, QCRecord, WorkOrder,
)
from plantops.logging_config import get_logger

logger = get_logger(__name__)


def _int(value) -> int:
    return int(value or 0)


def log_totals(db: Session, batch_id: int) -> Tuple[int, int]:
    """(ok, rejected) pieces booked in production logs for a batch"""
    ok, rejected = (
        db.query(
            func.coalesce(func.sum(ProductionLog.ok_quantity), 0),
            func.coalesce(func.sum(ProductionLog.rejection_quantity), 0),
        )
        .filter(ProductionLog.production_batch_id == batch_id)
        .one()
    )
    return _int(ok), _int(rejected)


def final_qc_totals(db: Session, batch_id: int) -> Tuple[int, int]:
    """(approved, rejected) pieces from final inspection of a batch"""
    records = (
        db.query(QCRecord)
        .filter(
            QCRecord.production_batch_id == batch_id,
            QCRecord.qc_type == QCType.FINAL.value,
        )
        .all()
    )
    approved = 0
    rejected = 0
    for r in records:
        rejected += _int(r.rejected_quantity)
        if r.result == QCResult.PASS.value:
            approved += max(_int(r.inspected_quantity) - _int(r.rejected_quantity), 0)
    return approved, rejected


def external_rejected_quantity(db: Session, batch_id: int) -> int:
    total = (
        db.query(func.coalesce(func.sum(ExternalMovement.quantity_rejected), 0))
        .filter(ExternalMovement.production_batch_id == batch_id)
        .scalar()
    )
    return _int(total)


def batch_dispatched_quantity(db: Session, batch_id: int) -> int:
    total = (
        db.query(func.coalesce(func.sum(Dispatch.quantity), 0))
        .filter(Dispatch.production_batch_id == batch_id)
        .scalar()
    )
    return _int(total)


def recalculate_batch_quantities(db: Session, batch: ProductionBatch) -> ProductionBatch:
    """
    Recompute a batch's quantity ledger from logs, QC, partner returns and dispatches.

    Raises:
        QuantityExceededError: if approved + rejected exceeds produced
    """
    ok, log_rejected = log_totals(db, batch.id)
    approved, qc_rejected = final_qc_totals(db, batch.id)
    produced = ok + log_rejected
    rejected = log_rejected + qc_rejected + external_rejected_quantity(db, batch.id)

    if approved + rejected > produced:
        raise QuantityExceededError(
            f"QC quantities for batch #{batch.batch_number}",
            requested=approved + rejected,
            available=produced,
        )

    batch.produced_qty = produced
    batch.qc_approved_qty = approved
    batch.qc_rejected_qty = rejected
    batch.qc_pending_qty = produced - approved - rejected
    batch.dispatched_qty = batch_dispatched_quantity(db, batch.id)
    return batch


def packed_quantity(db: Session, batch_id: int, exclude_carton_id: Optional[int] = None) -> int:
    """Pieces already packed into cartons from a batch"""
    q = db.query(func.coalesce(func.sum(Carton.quantity), 0)).filter(Carton.production_batch_id == batch_id)
    if exclude_carton_id is not None:
        q = q.filter(Carton.id != exclude_carton_id)
    return _int(q.scalar())


def packable_quantity(db: Session, batch: ProductionBatch, exclude_carton_id: Optional[int] = None) -> int:
    return max(_int(batch.qc_approved_qty) - packed_quantity(db, batch.id, exclude_carton_id), 0)


def carton_dispatched_quantity(db: Session, carton_id: int) -> int:
    total = (
        db.query(func.coalesce(func.sum(Dispatch.quantity), 0))
        .filter(Dispatch.carton_id == carton_id)
        .scalar()
    )
    return _int(total)


def wo_packed_quantity(db: Session, wo_id: int) -> int:
    """Pieces in cartons released for dispatch (ready or already dispatched)"""
    total = (
        db.query(func.coalesce(func.sum(Carton.quantity), 0))
        .filter(
            Carton.work_order_id == wo_id,
            Carton.status.in_([CartonStatus.READY_FOR_DISPATCH.value, CartonStatus.DISPATCHED.value]),
        )
        .scalar()
    )
    return _int(total)


def wo_dispatched_quantity(db: Session, wo_id: int) -> int:
    total = (
        db.query(func.coalesce(func.sum(Dispatch.quantity), 0))
        .filter(Dispatch.work_order_id == wo_id)
        .scalar()
    )
    return _int(total)


def wo_external_wip(db: Session, wo_id: int) -> int:
    moves = (
        db.query(ExternalMovement)
        .filter(
            ExternalMovement.work_order_id == wo_id,
            ExternalMovement.status.in_(list(OPEN_MOVEMENT_STATUSES)),
        )
        .all()
    )
    return sum(max(m.quantity_outstanding, 0) for m in moves)


def recalculate_wo_quantities(db: Session, wo: WorkOrder) -> WorkOrder:
    """Roll batch, dispatch and external movement quantities up to the WO."""
    db.flush()
    batches = db.query(ProductionBatch).filter(ProductionBatch.work_order_id == wo.id).all()
    produced = sum(_int(b.produced_qty) for b in batches)
    rejected = sum(_int(b.qc_rejected_qty) for b in batches)

    wo.qty_completed = produced - rejected
    wo.qty_rejected = rejected
    wo.qty_dispatched = wo_dispatched_quantity(db, wo.id)
    wo.qty_external_wip = wo_external_wip(db, wo.id)
    if wo.quantity:
        pct = Decimal(wo.qty_completed) * 100 / Decimal(wo.quantity)
        wo.completion_pct = pct.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    else:
        wo.completion_pct = Decimal("0")
    return wo

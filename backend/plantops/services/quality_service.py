"""
Quality Service

QC records and the gates they drive.

Gates (material, first piece, final) exist on the work order and on each
production batch. Recording a result on a QC record normalizes it
(pass→passed, fail→failed, rework→hold) and pushes it into:

- the WO gate, `production_locked` and overall `qc_status`
- the batch gate plus `production_allowed` / `dispatch_allowed`
- the material lot (incoming inspection of a lot)
- an NCR when the result is a failure
- the batch quantity ledger for final inspection
"""
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from plantops.core.status_config import (
    QCResult, QCStatus, QCType, WOQCStatus, is_gate_complete, normalize_qc_status,
)
from plantops.exceptions import BusinessRuleError, NotFoundError, QCGateError, ValidationError
from plantops.models import MaterialLot, NCR, ProductionBatch, QCRecord, WorkOrder
from plantops.services import ncr_service
from plantops.services.audit_service import record_audit
from plantops.services.numbering import generate_qc_number
from plantops.services.production_service import get_current_batch, refresh_batch_gates
from plantops.services.quantity_service import recalculate_batch_quantities, recalculate_wo_quantities
from plantops.logging_config import get_logger

logger = get_logger(__name__)

# qc_type → gate name
GATE_FOR_TYPE = {
    QCType.INCOMING.value: "material",
    QCType.FIRST_PIECE.value: "first_piece",
    QCType.FINAL.value: "final",
}

GATE_LABELS = {
    "material": "Material QC",
    "first_piece": "First Piece QC",
    "final": "Final QC",
}

VALID_RESULTS = {r.value for r in QCResult}

# Types with a single gate record per (wo, batch, lot); final inspections repeat per batch
GATE_RECORD_TYPES = (QCType.INCOMING.value, QCType.FIRST_PIECE.value)


def _set_gate(target: Any, gate: str, status: str, user_id: Optional[int]) -> None:
    setattr(target, f"qc_{gate}_status", status)
    if status in (QCStatus.PASSED.value, QCStatus.WAIVED.value):
        setattr(target, f"qc_{gate}_approved_by", user_id)
        setattr(target, f"qc_{gate}_approved_at", datetime.utcnow())
    else:
        setattr(target, f"qc_{gate}_approved_by", None)
        setattr(target, f"qc_{gate}_approved_at", None)


def refresh_wo_qc_state(wo: WorkOrder) -> WorkOrder:
    """
    Derive production_locked and qc_status from the WO gates.

    Production stays locked until material and first piece QC are both
    passed or waived. Any failed gate marks the WO failed and locks it again.
    """
    gates = [wo.qc_material_status, wo.qc_first_piece_status, wo.qc_final_status]
    failed = any(normalize_qc_status(g) == QCStatus.FAILED.value for g in gates)
    wo.production_locked = failed or not (
        is_gate_complete(wo.qc_material_status) and is_gate_complete(wo.qc_first_piece_status)
    )
    if failed:
        wo.qc_status = WOQCStatus.FAILED.value
    elif not wo.production_locked:
        wo.qc_status = WOQCStatus.APPROVED.value
    else:
        wo.qc_status = WOQCStatus.PENDING.value
    return wo


def ensure_qc_gate(
    db: Session,
    wo: WorkOrder,
    qc_type: str,
    batch: Optional[ProductionBatch] = None,
    lot: Optional[MaterialLot] = None,
    remarks: Optional[str] = None,
) -> QCRecord:
    """Return the gate record for (wo, type, batch, lot), creating a pending one if missing."""
    q = db.query(QCRecord).filter(QCRecord.work_order_id == wo.id, QCRecord.qc_type == qc_type)
    q = q.filter(QCRecord.production_batch_id == (batch.id if batch else None))
    q = q.filter(QCRecord.material_lot_id == (lot.id if lot else None))
    existing = q.first()
    if existing:
        return existing

    record = QCRecord(
        qc_number=generate_qc_number(db, qc_type),
        work_order_id=wo.id,
        production_batch_id=batch.id if batch else None,
        material_lot_id=lot.id if lot else None,
        qc_type=qc_type,
        result=QCResult.PENDING.value,
        remarks=remarks or f"Auto-generated {qc_type.replace('_', ' ')} QC gate",
    )
    db.add(record)
    db.flush()

    gate = GATE_FOR_TYPE.get(qc_type)
    if gate and normalize_qc_status(getattr(wo, f"qc_{gate}_status")) == QCStatus.NOT_STARTED.value:
        setattr(wo, f"qc_{gate}_status", QCStatus.PENDING.value)
        refresh_wo_qc_state(wo)
    return record


def create_qc_record(db: Session, wo: WorkOrder, data: Dict[str, Any], user_id: Optional[int] = None) -> QCRecord:
    """
    Create an inspection record; a non-pending result is applied immediately.

    Final inspections are always tied to a batch (the current one when
    none is given).

    Raises:
        BusinessRuleError: an incoming or first piece gate record already
            exists for the same work order, batch and lot
    """
    qc_type = data.get("qc_type")
    if qc_type not in {t.value for t in QCType}:
        raise ValidationError(f"Unknown QC type '{qc_type}'", field="qc_type", value=qc_type)

    batch = None
    if data.get("production_batch_id"):
        batch = db.query(ProductionBatch).filter(ProductionBatch.id == data["production_batch_id"]).first()
        if not batch:
            raise NotFoundError("ProductionBatch", data["production_batch_id"])
        if batch.work_order_id != wo.id:
            raise ValidationError("Batch does not belong to this work order", field="production_batch_id")
    elif qc_type == QCType.FINAL.value:
        batch = get_current_batch(db, wo)
        if batch is None:
            raise QCGateError(
                f"Final QC needs a production batch; nothing has been produced on {wo.wo_number}",
                gate="final",
            )

    lot = None
    if data.get("material_lot_id"):
        lot = db.query(MaterialLot).filter(MaterialLot.id == data["material_lot_id"]).first()
        if not lot:
            raise NotFoundError("MaterialLot", data["material_lot_id"])

    if qc_type in GATE_RECORD_TYPES:
        existing = (
            db.query(QCRecord)
            .filter(
                QCRecord.work_order_id == wo.id,
                QCRecord.qc_type == qc_type,
                QCRecord.production_batch_id == (batch.id if batch else None),
                QCRecord.material_lot_id == (lot.id if lot else None),
            )
            .first()
        )
        if existing:
            raise BusinessRuleError(
                f"{wo.wo_number} already has a {qc_type.replace('_', ' ')} QC record ({existing.qc_number}); "
                f"record the result on it instead",
                rule="qc_gate_unique",
                details={"qc_record_id": existing.id},
            )

    record = QCRecord(
        qc_number=generate_qc_number(db, qc_type),
        work_order_id=wo.id,
        production_batch_id=batch.id if batch else None,
        material_lot_id=lot.id if lot else None,
        qc_type=qc_type,
        result=QCResult.PENDING.value,
        inspected_quantity=int(data.get("inspected_quantity") or 0),
        rejected_quantity=int(data.get("rejected_quantity") or 0),
        measurements=data.get("measurements"),
        remarks=data.get("remarks"),
    )
    db.add(record)
    db.flush()

    result = data.get("result") or QCResult.PENDING.value
    if result != QCResult.PENDING.value:
        record_qc_result(db, record, result, user_id=user_id)
    return record


def record_qc_result(
    db: Session,
    record: QCRecord,
    result: str,
    user_id: Optional[int] = None,
    inspected_quantity: Optional[int] = None,
    rejected_quantity: Optional[int] = None,
    remarks: Optional[str] = None,
) -> QCRecord:
    """
    Apply an inspection outcome to the record and everything it gates.

    Raises:
        ValidationError: unknown result or inconsistent quantities
        QCGateError: first piece inspected before material QC cleared
        QuantityExceededError: final QC quantities exceed what was produced
    """
    if result not in VALID_RESULTS:
        raise ValidationError(f"Unknown QC result '{result}'", field="result", value=result)

    wo = db.query(WorkOrder).filter(WorkOrder.id == record.work_order_id).one()
    batch = (
        db.query(ProductionBatch).filter(ProductionBatch.id == record.production_batch_id).first()
        if record.production_batch_id else None
    )

    if record.qc_type == QCType.FIRST_PIECE.value:
        material_status = batch.qc_material_status if batch else wo.qc_material_status
        if not is_gate_complete(material_status):
            raise QCGateError(
                f"First piece QC cannot be recorded before Material QC is approved "
                f"(current status: {normalize_qc_status(material_status)})",
                gate="material",
                status=normalize_qc_status(material_status),
            )

    if inspected_quantity is not None:
        record.inspected_quantity = inspected_quantity
    if rejected_quantity is not None:
        record.rejected_quantity = rejected_quantity
    if remarks is not None:
        record.remarks = remarks
    if (record.inspected_quantity or 0) < 0 or (record.rejected_quantity or 0) < 0:
        raise ValidationError("QC quantities cannot be negative")
    if record.qc_type == QCType.FINAL.value and result == QCResult.FAIL.value and not record.rejected_quantity:
        record.rejected_quantity = record.inspected_quantity
    if (record.rejected_quantity or 0) > (record.inspected_quantity or 0) and record.inspected_quantity:
        raise ValidationError("Rejected quantity cannot exceed inspected quantity", field="rejected_quantity")

    old_result = record.result
    record.result = result
    record.inspected_by = user_id
    record.inspected_at = datetime.utcnow()
    status = normalize_qc_status(result)
    if status in (QCStatus.PASSED.value, QCStatus.WAIVED.value):
        record.approved_by = user_id
        record.approved_at = record.inspected_at
    else:
        record.approved_by = None
        record.approved_at = None

    gate = GATE_FOR_TYPE.get(record.qc_type)
    if gate:
        _set_gate(wo, gate, status, user_id)
        if batch is not None:
            _set_gate(batch, gate, status, user_id)
            refresh_batch_gates(batch)
        elif gate in ("material", "first_piece"):
            # A WO-level approval applies to every open batch
            for open_batch in [b for b in wo.batches if b.ended_at is None]:
                _set_gate(open_batch, gate, status, user_id)
                refresh_batch_gates(open_batch)
        refresh_wo_qc_state(wo)

    if record.qc_type == QCType.INCOMING.value and record.material_lot_id:
        lot = db.query(MaterialLot).filter(MaterialLot.id == record.material_lot_id).one()
        lot.qc_status = status if status in ("passed", "failed", "hold") else "pending"

    if record.qc_type == QCType.FINAL.value and batch is not None:
        db.flush()
        recalculate_batch_quantities(db, batch)
        recalculate_wo_quantities(db, wo)

    if status == QCStatus.FAILED.value:
        # in-process failures have no gate of their own but still stop the line
        wo.production_locked = True
        wo.qc_status = WOQCStatus.FAILED.value
        _raise_ncr_for_failure(db, record, wo, user_id)

    record_audit(
        db, "qc_records", record.id, "QC_RESULT",
        old_data={"result": old_result},
        new_data={"result": result, "qc_type": record.qc_type, "work_order_id": wo.id},
        user_id=user_id,
    )
    log = logger.warning if status == QCStatus.FAILED.value else logger.info
    log(
        f"{wo.wo_number}: {record.qc_type} QC {record.qc_number} → {status}",
        extra={"work_order_id": wo.id, "batch_id": record.production_batch_id, "qc_status": status},
    )
    return record


def _raise_ncr_for_failure(db: Session, record: QCRecord, wo: WorkOrder, user_id: Optional[int]) -> Optional[NCR]:
    existing = db.query(NCR).filter(NCR.qc_record_id == record.id).first()
    if existing:
        return existing
    return ncr_service.create_ncr(
        db,
        issue_description=(
            f"{record.qc_type.replace('_', ' ').title()} inspection {record.qc_number} failed"
            + (f": {record.remarks}" if record.remarks else "")
        ),
        ncr_type="SUPPLIER" if record.qc_type == QCType.INCOMING.value else "INTERNAL",
        work_order=wo,
        qc_record=record,
        material_lot_id=record.material_lot_id,
        quantity_affected=record.rejected_quantity or record.inspected_quantity or 0,
        user_id=user_id,
    )


def waive_gate(
    db: Session,
    wo: WorkOrder,
    gate: str,
    reason: str,
    user_id: Optional[int] = None,
    batch: Optional[ProductionBatch] = None,
) -> WorkOrder:
    """Waive a gate on a WO (and optionally one batch). The reason is audited."""
    if gate not in GATE_LABELS:
        raise ValidationError(f"Unknown QC gate '{gate}'", field="gate", value=gate)
    if not reason or not reason.strip():
        raise ValidationError("A reason is required to waive a QC gate", field="reason")

    if batch is not None:
        if batch.work_order_id != wo.id:
            raise ValidationError("Batch does not belong to this work order", field="batch_id")
        old = getattr(batch, f"qc_{gate}_status")
        _set_gate(batch, gate, QCStatus.WAIVED.value, user_id)
        refresh_batch_gates(batch)
        target_table, target_id = "production_batches", batch.id
    else:
        old = getattr(wo, f"qc_{gate}_status")
        for open_batch in [b for b in wo.batches if b.ended_at is None]:
            _set_gate(open_batch, gate, QCStatus.WAIVED.value, user_id)
            refresh_batch_gates(open_batch)
        target_table, target_id = "work_orders", wo.id

    _set_gate(wo, gate, QCStatus.WAIVED.value, user_id)
    refresh_wo_qc_state(wo)
    record_audit(
        db, target_table, target_id, "QC_GATE_WAIVED",
        old_data={"gate": gate, "status": old},
        new_data={"gate": gate, "status": QCStatus.WAIVED.value, "reason": reason},
        user_id=user_id,
    )
    logger.warning(f"{wo.wo_number}: {GATE_LABELS[gate]} waived", extra={"reason": reason})
    return wo


def get_batch_qc_status(batch: ProductionBatch) -> Dict[str, Any]:
    return {
        "batch_id": batch.id,
        "batch_number": batch.batch_number,
        "material": normalize_qc_status(batch.qc_material_status),
        "first_piece": normalize_qc_status(batch.qc_first_piece_status),
        "final": normalize_qc_status(batch.qc_final_status),
        "production_allowed": bool(batch.production_allowed),
        "dispatch_allowed": bool(batch.dispatch_allowed),
    }


def first_blocking_gate(batch: ProductionBatch) -> Optional[str]:
    """Name of the first gate (in inspection order) that is not passed or waived."""
    for gate in ("material", "first_piece", "final"):
        if not is_gate_complete(getattr(batch, f"qc_{gate}_status")):
            return gate
    return None

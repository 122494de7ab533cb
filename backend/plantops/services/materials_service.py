"""
Materials Service

Receiving bar stock into lots and issuing it to work orders. Issuing
opens the work order's incoming (material) QC gate; production stays
locked until that gate passes.
"""
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from plantops.core.status_config import CLOSED_WO_STATUSES, QCType
from plantops.exceptions import BusinessRuleError, InvalidStateError, NotFoundError, QuantityExceededError, ValidationError
from plantops.models import MaterialIssue, MaterialLot, WorkOrder
from plantops.services.audit_service import record_audit
from plantops.services.numbering import generate_lot_number
from plantops.services.quality_service import ensure_qc_gate, refresh_wo_qc_state
from plantops.logging_config import get_logger

logger = get_logger(__name__)

BLOCKED_LOT_STATUSES = {"failed", "hold"}


def get_lot(db: Session, lot_id: int) -> MaterialLot:
    lot = db.query(MaterialLot).filter(MaterialLot.id == lot_id).first()
    if not lot:
        raise NotFoundError("MaterialLot", lot_id)
    return lot


def available_quantity(lot: MaterialLot) -> Decimal:
    return Decimal(str(lot.quantity_received_kg or 0)) - Decimal(str(lot.quantity_issued_kg or 0))


def receive_lot(db: Session, data: Dict[str, Any], user_id: Optional[int] = None) -> MaterialLot:
    qty = Decimal(str(data.get("quantity_received_kg") or 0))
    if qty <= 0:
        raise ValidationError("Received quantity must be greater than 0", field="quantity_received_kg")

    received = data.get("received_date") or date.today()
    lot = MaterialLot(
        lot_number=data.get("lot_number") or generate_lot_number(db, received),
        heat_no=data.get("heat_no"),
        alloy=data.get("alloy"),
        size_mm=data.get("size_mm"),
        supplier=data.get("supplier"),
        supplier_invoice=data.get("supplier_invoice"),
        quantity_received_kg=qty,
        quantity_issued_kg=Decimal("0"),
        qc_status="pending",
        received_date=received,
        received_by=user_id,
    )
    db.add(lot)
    db.flush()
    logger.info(f"Received lot {lot.lot_number}", extra={"lot_id": lot.id, "quantity_kg": str(qty)})
    return lot


def issue_material(
    db: Session,
    lot: MaterialLot,
    wo: WorkOrder,
    quantity_kg: Any,
    user_id: Optional[int] = None,
    remarks: Optional[str] = None,
) -> MaterialIssue:
    """
    Issue material from a lot to a work order.

    Raises:
        BusinessRuleError: lot failed inspection or is on hold
        ValidationError: quantity not positive
        QuantityExceededError: more than the lot has available
        InvalidStateError: work order completed or cancelled
    """
    if lot.qc_status in BLOCKED_LOT_STATUSES:
        raise BusinessRuleError(
            f"Lot {lot.lot_number} cannot be issued (QC status: {lot.qc_status})",
            rule="lot_qc_blocked",
        )
    qty = Decimal(str(quantity_kg or 0))
    if qty <= 0:
        raise ValidationError("Issue quantity must be greater than 0", field="quantity_kg")
    available = available_quantity(lot)
    if qty > available:
        raise QuantityExceededError(f"Issue from lot {lot.lot_number}", requested=qty, available=available)
    if wo.status in CLOSED_WO_STATUSES:
        raise InvalidStateError(f"Work order {wo.wo_number} is {wo.status}", current_state=wo.status)

    issue = MaterialIssue(
        material_lot_id=lot.id,
        work_order_id=wo.id,
        quantity_kg=qty,
        remarks=remarks,
        issued_by=user_id,
    )
    db.add(issue)
    lot.quantity_issued_kg = Decimal(str(lot.quantity_issued_kg or 0)) + qty

    if wo.alloy is None and lot.alloy:
        wo.alloy = lot.alloy
    ensure_qc_gate(db, wo, QCType.INCOMING.value, lot=lot,
                   remarks=f"Incoming inspection of lot {lot.lot_number}")
    refresh_wo_qc_state(wo)
    db.flush()

    record_audit(
        db, "material_issues", issue.id, "MATERIAL_ISSUED",
        new_data={"lot": lot.lot_number, "work_order": wo.wo_number, "quantity_kg": qty},
        user_id=user_id,
    )
    logger.info(
        f"Issued {qty} kg from {lot.lot_number} to {wo.wo_number}",
        extra={"lot_id": lot.id, "work_order_id": wo.id},
    )
    return issue

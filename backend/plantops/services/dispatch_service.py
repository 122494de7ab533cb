"""
Dispatch Service

Goods leaving the plant. Nothing ships without QC approval:

- a dispatch needs final QC on its batch and a dispatch QC release,
  either on the carton it draws from or on the work order
- a shipment moving to shipped/delivered needs the work order's current
  batch to be dispatch_allowed (all three gates passed or waived)
"""
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from plantops.core.status_config import (
    CartonStatus,
    DISPATCHABLE_DQC_STATUSES,
    ShipmentStatus,
    is_gate_complete,
    normalize_qc_status,
    validate_shipment_transition,
)
from plantops.exceptions import DispatchBlockedError, NotFoundError, QuantityExceededError, ValidationError
from plantops.models import (
    Carton, Dispatch, DispatchQCBatch, ProductionBatch, SalesOrder, Shipment, WorkOrder,
)
from plantops.services.audit_service import record_audit
from plantops.services.numbering import generate_dispatch_number, generate_shipment_number
from plantops.services.production_service import get_current_batch
from plantops.services.quantity_service import (
    carton_dispatched_quantity,
    recalculate_batch_quantities,
    recalculate_wo_quantities,
    wo_dispatched_quantity,
    wo_packed_quantity,
)
from plantops.logging_config import get_logger

logger = get_logger(__name__)

GATE_CHECKS = (
    ("qc_material_status", "Material QC"),
    ("qc_first_piece_status", "First Piece QC"),
    ("qc_final_status", "Final QC"),
)


def get_dispatch(db: Session, dispatch_id: int) -> Dispatch:
    dispatch = db.query(Dispatch).filter(Dispatch.id == dispatch_id).first()
    if not dispatch:
        raise NotFoundError("Dispatch", dispatch_id)
    return dispatch


def get_shipment(db: Session, shipment_id: int) -> Shipment:
    shipment = db.query(Shipment).filter(Shipment.id == shipment_id).first()
    if not shipment:
        raise NotFoundError("Shipment", shipment_id)
    return shipment


def validate_and_update_dispatch(
    db: Session,
    wo: WorkOrder,
    batch: Optional[ProductionBatch],
    quantity: int,
    carton: Optional[Carton] = None,
) -> None:
    """
    Check a proposed dispatch against QC releases and packed stock.

    Raises:
        NotFoundError: batch missing
        ValidationError: batch/carton from another WO, quantity not positive
        DispatchBlockedError: final QC or dispatch QC release missing, nothing packed
        QuantityExceededError: more than is packed and not yet dispatched
    """
    if batch is None:
        raise NotFoundError("ProductionBatch")
    if batch.work_order_id != wo.id:
        raise ValidationError("Batch does not belong to this work order", field="production_batch_id")
    if quantity is None or quantity <= 0:
        raise ValidationError("Dispatch quantity must be greater than 0", field="quantity", value=quantity)
    if not is_gate_complete(batch.qc_final_status):
        raise DispatchBlockedError(
            f"Cannot dispatch from batch #{batch.batch_number} - Final QC not approved "
            f"(status: {normalize_qc_status(batch.qc_final_status)})",
            details={"batch_id": batch.id},
        )

    if carton is not None:
        if carton.work_order_id != wo.id:
            raise ValidationError("Carton does not belong to this work order", field="carton_id")
        dqc = carton.dispatch_qc_batch
        if dqc is None or dqc.status not in DISPATCHABLE_DQC_STATUSES:
            raise DispatchBlockedError(
                f"Carton {carton.carton_number} has no dispatch QC approval",
                details={"carton_id": carton.id},
            )
        available = carton.quantity - carton_dispatched_quantity(db, carton.id)
        if quantity > available:
            raise QuantityExceededError(
                f"Dispatch from carton {carton.carton_number}", requested=quantity, available=available,
            )
        return

    approved_release = (
        db.query(DispatchQCBatch.id)
        .filter(
            DispatchQCBatch.work_order_id == wo.id,
            DispatchQCBatch.status.in_(list(DISPATCHABLE_DQC_STATUSES)),
        )
        .first()
    )
    if approved_release is None:
        raise DispatchBlockedError(
            f"Dispatch blocked: no dispatch QC approval for {wo.wo_number}",
            details={"work_order_id": wo.id},
        )
    packed = wo_packed_quantity(db, wo.id)
    if packed <= 0:
        raise DispatchBlockedError(
            f"Cannot dispatch from {wo.wo_number} - No cartons packed yet",
            details={"work_order_id": wo.id},
        )
    dispatched = wo_dispatched_quantity(db, wo.id)
    if quantity > packed - dispatched:
        raise QuantityExceededError(
            f"Cannot dispatch {quantity} pcs of {wo.wo_number} (packed: {packed}, already dispatched: {dispatched})",
            requested=quantity,
            available=packed - dispatched,
        )


def create_dispatch(
    db: Session,
    wo: WorkOrder,
    batch: Optional[ProductionBatch],
    quantity: int,
    carton: Optional[Carton] = None,
    shipment: Optional[Shipment] = None,
    remarks: Optional[str] = None,
    user_id: Optional[int] = None,
) -> Dispatch:
    validate_and_update_dispatch(db, wo, batch, quantity, carton=carton)

    dispatch = Dispatch(
        dispatch_number=generate_dispatch_number(db),
        work_order_id=wo.id,
        production_batch_id=batch.id,
        carton_id=carton.id if carton else None,
        shipment_id=shipment.id if shipment else None,
        quantity=quantity,
        remarks=remarks,
        dispatched_by=user_id,
        dispatched_at=datetime.utcnow(),
    )
    db.add(dispatch)
    db.flush()

    if carton is not None and carton_dispatched_quantity(db, carton.id) >= carton.quantity:
        carton.status = CartonStatus.DISPATCHED.value

    recalculate_batch_quantities(db, batch)
    recalculate_wo_quantities(db, wo)
    record_audit(
        db, "dispatches", dispatch.id, "DISPATCH_CREATED",
        new_data={
            "dispatch_number": dispatch.dispatch_number,
            "work_order": wo.wo_number,
            "batch_number": batch.batch_number,
            "carton": carton.carton_number if carton else None,
            "quantity": quantity,
        },
        user_id=user_id,
    )
    logger.info(
        f"{dispatch.dispatch_number}: dispatched {quantity} pcs of {wo.wo_number}",
        extra={"work_order_id": wo.id, "batch_id": batch.id},
    )
    return dispatch


def delete_dispatch(db: Session, dispatch: Dispatch, user_id: Optional[int] = None) -> None:
    wo = db.query(WorkOrder).filter(WorkOrder.id == dispatch.work_order_id).one()
    batch = db.query(ProductionBatch).filter(ProductionBatch.id == dispatch.production_batch_id).one()
    carton = db.query(Carton).filter(Carton.id == dispatch.carton_id).first() if dispatch.carton_id else None
    dispatch_id = dispatch.id
    data = {"dispatch_number": dispatch.dispatch_number, "quantity": dispatch.quantity}

    db.delete(dispatch)
    db.flush()
    if carton is not None and carton.status == CartonStatus.DISPATCHED.value:
        carton.status = CartonStatus.READY_FOR_DISPATCH.value
    recalculate_batch_quantities(db, batch)
    recalculate_wo_quantities(db, wo)
    record_audit(db, "dispatches", dispatch_id, "DISPATCH_DELETED", old_data=data, user_id=user_id)
    logger.info(f"Deleted dispatch {data['dispatch_number']}", extra={"work_order_id": wo.id})


def create_shipment(db: Session, so: SalesOrder, data: Dict[str, Any], user_id: Optional[int] = None) -> Shipment:
    wo_id = data.get("work_order_id")
    if wo_id is not None:
        wo = db.query(WorkOrder).filter(WorkOrder.id == wo_id).first()
        if wo is None:
            raise NotFoundError("WorkOrder", wo_id)
        if wo.sales_order_id != so.id:
            raise ValidationError("Work order belongs to a different sales order", field="work_order_id")

    shipment = Shipment(
        shipment_number=generate_shipment_number(db),
        sales_order_id=so.id,
        work_order_id=wo_id,
        customer_id=so.customer_id,
        carrier=data.get("carrier"),
        tracking_number=data.get("tracking_number"),
        status=ShipmentStatus.PENDING.value,
        remarks=data.get("remarks"),
        created_by=user_id,
    )
    db.add(shipment)
    db.flush()
    for dispatch_id in data.get("dispatch_ids") or []:
        dispatch = get_dispatch(db, dispatch_id)
        if dispatch.work_order_id not in _so_work_order_ids(db, so):
            raise ValidationError(f"Dispatch {dispatch.dispatch_number} is not for {so.so_number}",
                                  field="dispatch_ids")
        dispatch.shipment_id = shipment.id
    logger.info(f"Created shipment {shipment.shipment_number}", extra={"sales_order_id": so.id})
    return shipment


def _so_work_order_ids(db: Session, so: SalesOrder):
    return {wo_id for (wo_id,) in db.query(WorkOrder.id).filter(WorkOrder.sales_order_id == so.id).all()}


def validate_batch_dispatch(db: Session, shipment: Shipment) -> Optional[ProductionBatch]:
    """
    Gate check for a shipment leaving: the WO's current batch must be
    dispatch_allowed. Returns the batch, or None when there is nothing to
    check (no WO linked, or a WO without batches).

    Raises:
        DispatchBlockedError: naming the first gate that is not cleared
    """
    if shipment.work_order_id is None:
        return None
    wo = db.query(WorkOrder).filter(WorkOrder.id == shipment.work_order_id).one()
    batch = get_current_batch(db, wo)
    if batch is None:
        logger.warning(
            f"No production batch for {wo.wo_number}; allowing shipment {shipment.shipment_number}",
            extra={"shipment_id": shipment.id},
        )
        return None
    if batch.dispatch_allowed:
        return batch

    for field, label in GATE_CHECKS:
        status = getattr(batch, field)
        if not is_gate_complete(status):
            raise DispatchBlockedError(
                f"Dispatch blocked: {label} not approved for Batch #{batch.batch_number}. "
                f"Current status: {status}",
                details={"batch_id": batch.id, "gate": field},
            )
    raise DispatchBlockedError(
        f"Dispatch blocked: QC approval incomplete for Batch #{batch.batch_number}",
        details={"batch_id": batch.id},
    )


def update_shipment_status(
    db: Session,
    shipment: Shipment,
    new_status: str,
    user_id: Optional[int] = None,
) -> Shipment:
    if new_status not in {s.value for s in ShipmentStatus}:
        raise ValidationError(f"Unknown shipment status '{new_status}'", field="status", value=new_status)
    validate_shipment_transition(shipment.status, new_status)
    if shipment.status == new_status:
        return shipment

    leaving = new_status in (ShipmentStatus.SHIPPED.value, ShipmentStatus.DELIVERED.value)
    if leaving and shipment.status == ShipmentStatus.PENDING.value:
        try:
            batch = validate_batch_dispatch(db, shipment)
        except DispatchBlockedError as e:
            logger.warning(f"Shipment {shipment.shipment_number} blocked: {e.message}",
                           extra={"shipment_id": shipment.id})
            raise
        if batch is not None:
            shipment.batch_id = batch.id

    old_status = shipment.status
    shipment.status = new_status
    now = datetime.utcnow()
    if new_status == ShipmentStatus.SHIPPED.value and shipment.shipped_at is None:
        shipment.shipped_at = now
    if new_status == ShipmentStatus.DELIVERED.value:
        shipment.delivered_at = now
    record_audit(db, "shipments", shipment.id, "SHIPMENT_STATUS_CHANGED",
                 old_data={"status": old_status}, new_data={"status": new_status}, user_id=user_id)
    logger.info(f"Shipment {shipment.shipment_number}: {old_status} → {new_status}")
    return shipment

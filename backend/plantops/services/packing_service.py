"""
Packing Service

Dispatch QC releases (DQC batches) and cartons.

A DQC batch releases part of a production batch's final-QC approved
quantity for shipment. Cartons draw on that release; the DQC status
tracks how much of it has been consumed.
"""
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from plantops.core.status_config import CartonStatus, DispatchQCStatus, is_gate_complete, normalize_qc_status
from plantops.exceptions import (
    InvalidStateError, NotFoundError, QCGateError, QuantityExceededError, ValidationError,
)
from plantops.models import Carton, DispatchQCBatch, ProductionBatch, WorkOrder
from plantops.services.audit_service import record_audit
from plantops.services.numbering import generate_carton_number, generate_dqc_id
from plantops.services.quantity_service import (
    carton_dispatched_quantity, packable_quantity, recalculate_wo_quantities,
)
from plantops.logging_config import get_logger

logger = get_logger(__name__)


def derive_dqc_status(dqc: DispatchQCBatch) -> str:
    consumed = dqc.consumed_quantity or 0
    if consumed >= dqc.qc_approved_quantity:
        return DispatchQCStatus.CONSUMED.value
    if consumed > 0:
        return DispatchQCStatus.PARTIALLY_CONSUMED.value
    return DispatchQCStatus.APPROVED.value


def get_carton(db: Session, carton_id: int) -> Carton:
    carton = db.query(Carton).filter(Carton.id == carton_id).first()
    if not carton:
        raise NotFoundError("Carton", carton_id)
    return carton


def get_dqc_batch(db: Session, dqc_id: int) -> DispatchQCBatch:
    dqc = db.query(DispatchQCBatch).filter(DispatchQCBatch.id == dqc_id).first()
    if not dqc:
        raise NotFoundError("DispatchQCBatch", dqc_id)
    return dqc


def released_quantity(db: Session, batch_id: int) -> int:
    total = (
        db.query(func.coalesce(func.sum(DispatchQCBatch.qc_approved_quantity), 0))
        .filter(DispatchQCBatch.production_batch_id == batch_id)
        .scalar()
    )
    return int(total or 0)


def create_dispatch_qc_batch(
    db: Session,
    batch: ProductionBatch,
    quantity: int,
    user_id: Optional[int] = None,
    remarks: Optional[str] = None,
) -> DispatchQCBatch:
    """
    Release final-QC approved pieces of a batch for dispatch.

    Raises:
        QCGateError: final QC on the batch is not passed or waived
        ValidationError: quantity not positive
        QuantityExceededError: more than approved minus already released
    """
    if not is_gate_complete(batch.qc_final_status):
        raise QCGateError(
            f"Final QC not approved for Batch #{batch.batch_number}",
            gate="final",
            status=normalize_qc_status(batch.qc_final_status),
        )
    if quantity is None or quantity <= 0:
        raise ValidationError("Dispatch QC quantity must be greater than 0", field="quantity", value=quantity)
    available = (batch.qc_approved_qty or 0) - released_quantity(db, batch.id)
    if quantity > available:
        raise QuantityExceededError(
            f"Dispatch QC release for batch #{batch.batch_number}",
            requested=quantity,
            available=max(available, 0),
        )

    dqc = DispatchQCBatch(
        qc_batch_id=generate_dqc_id(db),
        work_order_id=batch.work_order_id,
        production_batch_id=batch.id,
        qc_approved_quantity=quantity,
        consumed_quantity=0,
        status=DispatchQCStatus.APPROVED.value,
        remarks=remarks,
        approved_by=user_id,
        approved_at=datetime.utcnow(),
    )
    db.add(dqc)
    db.flush()
    record_audit(
        db, "dispatch_qc_batches", dqc.id, "DQC_CREATED",
        new_data={"qc_batch_id": dqc.qc_batch_id, "batch_id": batch.id, "quantity": quantity},
        user_id=user_id,
    )
    logger.info(f"{dqc.qc_batch_id}: released {quantity} pcs", extra={"batch_id": batch.id})
    return dqc


def _consume(dqc: DispatchQCBatch, delta: int) -> None:
    dqc.consumed_quantity = max((dqc.consumed_quantity or 0) + delta, 0)
    dqc.status = derive_dqc_status(dqc)


def pack_carton(
    db: Session,
    wo: WorkOrder,
    batch: ProductionBatch,
    quantity: int,
    dqc: Optional[DispatchQCBatch] = None,
    gross_weight_kg: Any = None,
    net_weight_kg: Any = None,
    user_id: Optional[int] = None,
) -> Carton:
    """
    Pack approved pieces of a batch into a new carton.

    Raises:
        ValidationError: batch or DQC batch from another work order, quantity not positive
        QuantityExceededError: more than packable, or than the DQC release has left
    """
    if batch.work_order_id != wo.id:
        raise ValidationError("Batch does not belong to this work order", field="production_batch_id")
    if quantity is None or quantity <= 0:
        raise ValidationError("Carton quantity must be greater than 0", field="quantity", value=quantity)

    available = packable_quantity(db, batch)
    if quantity > available:
        raise QuantityExceededError(
            f"Pack from batch #{batch.batch_number}", requested=quantity, available=available,
        )
    if dqc is not None:
        if dqc.production_batch_id != batch.id:
            raise ValidationError("Dispatch QC batch belongs to a different production batch",
                                  field="dispatch_qc_batch_id")
        if quantity > dqc.remaining_quantity:
            raise QuantityExceededError(
                f"Pack against {dqc.qc_batch_id}", requested=quantity, available=dqc.remaining_quantity,
            )

    carton = Carton(
        carton_number=generate_carton_number(db),
        work_order_id=wo.id,
        production_batch_id=batch.id,
        dispatch_qc_batch_id=dqc.id if dqc else None,
        quantity=quantity,
        gross_weight_kg=gross_weight_kg,
        net_weight_kg=net_weight_kg,
        status=CartonStatus.PACKED.value,
        packed_by=user_id,
    )
    db.add(carton)
    if dqc is not None:
        _consume(dqc, quantity)
    db.flush()
    logger.info(
        f"{carton.carton_number}: packed {quantity} pcs of {wo.wo_number}",
        extra={"batch_id": batch.id, "dqc_id": dqc.id if dqc else None},
    )
    return carton


def update_carton_quantity(db: Session, carton: Carton, quantity: int) -> Carton:
    if carton.status == CartonStatus.DISPATCHED.value:
        raise InvalidStateError(f"Carton {carton.carton_number} is already dispatched",
                                current_state=carton.status)
    if quantity is None or quantity <= 0:
        raise ValidationError("Carton quantity must be greater than 0", field="quantity", value=quantity)
    already_dispatched = carton_dispatched_quantity(db, carton.id)
    if quantity < already_dispatched:
        raise ValidationError(
            f"Carton {carton.carton_number} already has {already_dispatched} pcs dispatched",
            field="quantity",
        )

    batch = db.query(ProductionBatch).filter(ProductionBatch.id == carton.production_batch_id).one()
    available = packable_quantity(db, batch, exclude_carton_id=carton.id)
    if quantity > available:
        raise QuantityExceededError(
            f"Carton {carton.carton_number}", requested=quantity, available=available,
        )

    delta = quantity - carton.quantity
    if carton.dispatch_qc_batch_id:
        dqc = get_dqc_batch(db, carton.dispatch_qc_batch_id)
        if delta > dqc.remaining_quantity:
            raise QuantityExceededError(
                f"Carton {carton.carton_number} against {dqc.qc_batch_id}",
                requested=quantity,
                available=carton.quantity + dqc.remaining_quantity,
            )
        _consume(dqc, delta)
    carton.quantity = quantity
    db.flush()
    return carton


def delete_carton(db: Session, carton: Carton, user_id: Optional[int] = None) -> None:
    if carton.status == CartonStatus.DISPATCHED.value or carton_dispatched_quantity(db, carton.id) > 0:
        raise InvalidStateError(f"Carton {carton.carton_number} has been dispatched",
                                current_state=carton.status)
    if carton.dispatch_qc_batch_id:
        dqc = get_dqc_batch(db, carton.dispatch_qc_batch_id)
        _consume(dqc, -carton.quantity)
    wo = db.query(WorkOrder).filter(WorkOrder.id == carton.work_order_id).one()
    db.delete(carton)
    db.flush()
    recalculate_wo_quantities(db, wo)
    logger.info(f"Deleted carton {carton.carton_number}", extra={"work_order_id": wo.id})


def mark_ready_for_dispatch(db: Session, carton: Carton) -> Carton:
    if carton.status != CartonStatus.PACKED.value:
        raise InvalidStateError(
            f"Carton {carton.carton_number} is {carton.status}",
            current_state=carton.status,
            allowed_states=[CartonStatus.PACKED.value],
        )
    carton.status = CartonStatus.READY_FOR_DISPATCH.value
    return carton

"""
External Processing Service

Sending batch quantities to outside partners (plating, heat treatment,
...) and booking what comes back.

Receipt types:
    supplier_to_factory  raw stock arriving for a batch (no movement)
    partner_to_factory   processed parts back at the plant
    partner_to_partner   partner forwards parts to the next partner
    partner_to_packing   partner ships straight to packing
"""
from datetime import date, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from plantops.core.settings import settings
from plantops.core.status_config import (
    BatchLocation, MovementStatus, OPEN_MOVEMENT_STATUSES, ReceiptType, WorkOrderStage,
)
from plantops.exceptions import (
    BusinessRuleError, InvalidStateError, NotFoundError, QuantityExceededError, ValidationError,
)
from plantops.models import ExternalMovement, ExternalPartner, MaterialReceipt, ProductionBatch, WorkOrder
from plantops.services.audit_service import record_audit
from plantops.services.numbering import generate_challan_number, generate_material_receipt_number
from plantops.services.production_service import set_batch_location
from plantops.services.quantity_service import recalculate_batch_quantities, recalculate_wo_quantities
from plantops.logging_config import get_logger

logger = get_logger(__name__)


def get_movement(db: Session, movement_id: int) -> ExternalMovement:
    movement = db.query(ExternalMovement).filter(ExternalMovement.id == movement_id).first()
    if not movement:
        raise NotFoundError("ExternalMovement", movement_id)
    return movement


def _get_active_partner(db: Session, partner_id: int) -> ExternalPartner:
    partner = db.query(ExternalPartner).filter(ExternalPartner.id == partner_id).first()
    if not partner:
        raise NotFoundError("ExternalPartner", partner_id)
    if not partner.active:
        raise BusinessRuleError(f"Partner {partner.name} is inactive", rule="partner_active")
    return partner


def quantity_at_partners(db: Session, batch_id: int) -> int:
    moves = (
        db.query(ExternalMovement)
        .filter(
            ExternalMovement.production_batch_id == batch_id,
            ExternalMovement.status.in_(list(OPEN_MOVEMENT_STATUSES)),
        )
        .all()
    )
    return sum(max(m.quantity_outstanding, 0) for m in moves)


def sendable_quantity(db: Session, batch: ProductionBatch) -> int:
    """Good pieces of the batch not already out at a partner"""
    good = (batch.produced_qty or 0) - (batch.qc_rejected_qty or 0)
    return max(good - quantity_at_partners(db, batch.id), 0)


def _create_movement(
    db: Session,
    batch: ProductionBatch,
    partner: ExternalPartner,
    process_type: str,
    quantity: int,
    sent_date: date,
    expected_return_date: Optional[date],
    parent: Optional[ExternalMovement] = None,
    remarks: Optional[str] = None,
    user_id: Optional[int] = None,
) -> ExternalMovement:
    movement = ExternalMovement(
        challan_number=generate_challan_number(db, sent_date),
        work_order_id=batch.work_order_id,
        production_batch_id=batch.id,
        partner_id=partner.id,
        parent_movement_id=parent.id if parent else None,
        process_type=process_type,
        quantity_sent=quantity,
        quantity_returned=0,
        quantity_rejected=0,
        sent_date=sent_date,
        expected_return_date=expected_return_date,
        status=MovementStatus.SENT.value,
        remarks=remarks,
        created_by=user_id,
    )
    db.add(movement)
    db.flush()
    return movement


def send_to_external(
    db: Session,
    batch: ProductionBatch,
    partner_id: int,
    process_type: str,
    quantity: int,
    expected_return_date: Optional[date] = None,
    sent_date: Optional[date] = None,
    remarks: Optional[str] = None,
    user_id: Optional[int] = None,
) -> ExternalMovement:
    """
    Send part of a batch out under a new challan.

    Raises:
        ValidationError: quantity not positive or missing process type
        QuantityExceededError: more than the batch's good pieces still in the plant
        BusinessRuleError: partner inactive
    """
    if not process_type:
        raise ValidationError("Process type is required", field="process_type")
    if quantity is None or quantity <= 0:
        raise ValidationError("Quantity sent must be greater than 0", field="quantity", value=quantity)
    partner = _get_active_partner(db, partner_id)
    wo = db.query(WorkOrder).filter(WorkOrder.id == batch.work_order_id).one()
    if not wo.is_open:
        raise InvalidStateError(f"Work order {wo.wo_number} is {wo.status}", current_state=wo.status)

    available = sendable_quantity(db, batch)
    if quantity > available:
        raise QuantityExceededError(
            f"Send batch #{batch.batch_number} to {partner.name}",
            requested=quantity,
            available=available,
        )

    sent_on = sent_date or date.today()
    movement = _create_movement(
        db, batch, partner, process_type, quantity, sent_on, expected_return_date,
        remarks=remarks, user_id=user_id,
    )
    set_batch_location(batch, BatchLocation.EXTERNAL_PARTNER.value, process=process_type, location_ref=partner.name)
    wo.current_stage = WorkOrderStage.EXTERNAL.value
    recalculate_wo_quantities(db, wo)

    record_audit(
        db, "external_movements", movement.id, "SENT_TO_PARTNER",
        new_data={"challan": movement.challan_number, "partner": partner.name, "quantity": quantity},
        user_id=user_id,
    )
    logger.info(
        f"{movement.challan_number}: {quantity} pcs of {wo.wo_number} to {partner.name} for {process_type}",
        extra={"movement_id": movement.id, "batch_id": batch.id},
    )
    return movement


def record_material_receipt(
    db: Session,
    receipt_type: str,
    quantity_received: int,
    quantity_rejected: int = 0,
    movement: Optional[ExternalMovement] = None,
    batch: Optional[ProductionBatch] = None,
    to_partner_id: Optional[int] = None,
    next_process_type: Optional[str] = None,
    expected_return_date: Optional[date] = None,
    receipt_date: Optional[date] = None,
    remarks: Optional[str] = None,
    user_id: Optional[int] = None,
) -> MaterialReceipt:
    """
    Book goods received and move the batch accordingly.

    Raises:
        ValidationError: bad type, quantities, or missing movement/partner
        QuantityExceededError: more back than was sent
    """
    if receipt_type not in {t.value for t in ReceiptType}:
        raise ValidationError(f"Unknown receipt type '{receipt_type}'", field="receipt_type", value=receipt_type)
    if quantity_received is None or quantity_received <= 0:
        raise ValidationError("Received quantity must be greater than 0", field="quantity_received")
    quantity_rejected = quantity_rejected or 0
    if quantity_rejected < 0 or quantity_rejected > quantity_received:
        raise ValidationError("Rejected quantity must be between 0 and received", field="quantity_rejected")

    from_partner = receipt_type != ReceiptType.SUPPLIER_TO_FACTORY.value
    if from_partner and movement is None:
        raise ValidationError("A partner receipt must reference an external movement", field="external_movement_id")
    if movement is not None:
        if movement.status not in OPEN_MOVEMENT_STATUSES:
            raise InvalidStateError(
                f"Movement {movement.challan_number} is {movement.status}",
                current_state=movement.status,
            )
        back = (movement.quantity_returned or 0) + (movement.quantity_rejected or 0)
        if back + quantity_received > movement.quantity_sent:
            raise QuantityExceededError(
                f"Receipt against {movement.challan_number}",
                requested=quantity_received,
                available=movement.quantity_sent - back,
            )
        batch = db.query(ProductionBatch).filter(ProductionBatch.id == movement.production_batch_id).one()
    if batch is None:
        raise ValidationError("A production batch is required", field="production_batch_id")

    target_partner = None
    if receipt_type == ReceiptType.PARTNER_TO_PARTNER.value:
        if not to_partner_id:
            raise ValidationError("Forwarding needs a destination partner", field="to_partner_id")
        target_partner = _get_active_partner(db, to_partner_id)

    received_on = receipt_date or date.today()
    ok = quantity_received - quantity_rejected
    receipt = MaterialReceipt(
        receipt_number=generate_material_receipt_number(db, received_on),
        receipt_type=receipt_type,
        external_movement_id=movement.id if movement else None,
        production_batch_id=batch.id,
        to_partner_id=target_partner.id if target_partner else None,
        quantity_received=quantity_received,
        quantity_rejected=quantity_rejected,
        quantity_ok=ok,
        receipt_date=received_on,
        remarks=remarks,
        received_by=user_id,
    )
    db.add(receipt)

    if movement is not None:
        movement.quantity_returned = (movement.quantity_returned or 0) + ok
        movement.quantity_rejected = (movement.quantity_rejected or 0) + quantity_rejected
        fully_back = movement.quantity_returned + movement.quantity_rejected >= movement.quantity_sent
        if receipt_type == ReceiptType.PARTNER_TO_PARTNER.value:
            movement.status = MovementStatus.FORWARDED.value
        else:
            movement.status = (
                MovementStatus.RETURNED.value if fully_back else MovementStatus.PARTIALLY_RETURNED.value
            )
        if fully_back:
            movement.actual_return_date = received_on

    if receipt_type == ReceiptType.SUPPLIER_TO_FACTORY.value:
        set_batch_location(batch, BatchLocation.FACTORY.value, process="goods_in")
    elif receipt_type == ReceiptType.PARTNER_TO_FACTORY.value:
        set_batch_location(batch, BatchLocation.FACTORY.value, process="post_external_qc")
    elif receipt_type == ReceiptType.PARTNER_TO_PACKING.value:
        set_batch_location(batch, BatchLocation.PACKING.value, process="packing")

    db.flush()
    forwarded = None
    if target_partner is not None and ok > 0:
        forwarded = _create_movement(
            db, batch, target_partner,
            next_process_type or movement.process_type, ok, received_on, expected_return_date,
            parent=movement, remarks=f"Forwarded from {movement.challan_number}", user_id=user_id,
        )
        set_batch_location(batch, BatchLocation.EXTERNAL_PARTNER.value,
                           process=forwarded.process_type, location_ref=target_partner.name)

    wo = db.query(WorkOrder).filter(WorkOrder.id == batch.work_order_id).one()
    recalculate_batch_quantities(db, batch)
    recalculate_wo_quantities(db, wo)

    record_audit(
        db, "material_receipts", receipt.id, "MATERIAL_RECEIVED",
        new_data={
            "receipt_type": receipt_type,
            "received": quantity_received,
            "rejected": quantity_rejected,
            "movement": movement.challan_number if movement else None,
            "forwarded_as": forwarded.challan_number if forwarded else None,
        },
        user_id=user_id,
    )
    logger.info(
        f"{receipt.receipt_number}: {receipt_type} {quantity_received} pcs ({quantity_rejected} rejected)",
        extra={"batch_id": batch.id, "movement_id": movement.id if movement else None},
    )
    return receipt


def list_overdue_movements(db: Session, today: Optional[date] = None) -> List[ExternalMovement]:
    """Open movements past their expected return date (plus grace days)."""
    cutoff = (today or date.today()) - timedelta(days=settings.EXTERNAL_OVERDUE_GRACE_DAYS)
    return (
        db.query(ExternalMovement)
        .filter(
            ExternalMovement.status.in_(list(OPEN_MOVEMENT_STATUSES)),
            ExternalMovement.expected_return_date.isnot(None),
            ExternalMovement.expected_return_date < cutoff,
        )
        .order_by(ExternalMovement.expected_return_date)
        .all()
    )

"""
Work Order Service

Stage routing, status changes, completion checks and the roll-up of a work
order's state to its parent sales order.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from plantops.core.status_config import (
    CLOSED_WO_STATUSES,
    PRODUCTION_STAGES,
    QCType,
    SalesOrderStatus,
    STAGE_ORDER,
    WorkOrderStage,
    WorkOrderStatus,
    is_gate_complete,
    normalize_qc_status,
    validate_work_order_transition,
)
from plantops.exceptions import (
    BusinessRuleError, InvalidStateError, NotFoundError, ProductionLockedError, ValidationError,
)
from plantops.models import Carton, ProductionBatch, SalesOrder, WorkOrder, WOStageHistory
from plantops.services.audit_service import record_audit, snapshot
from plantops.services.numbering import generate_wo_number
from plantops.services.quality_service import ensure_qc_gate, refresh_wo_qc_state
from plantops.services.quantity_service import recalculate_wo_quantities
from plantops.logging_config import get_logger

logger = get_logger(__name__)

WO_AUDIT_FIELDS = ("status", "current_stage", "quantity", "due_date", "production_locked", "qc_status")

# status a WO takes on when it enters a stage
STAGE_STATUS = {
    WorkOrderStage.QUALITY.value: WorkOrderStatus.QC.value,
    WorkOrderStage.PACKING.value: WorkOrderStatus.PACKING.value,
}


def get_work_order(db: Session, wo_id: int) -> WorkOrder:
    wo = db.query(WorkOrder).filter(WorkOrder.id == wo_id).first()
    if not wo:
        raise NotFoundError("WorkOrder", wo_id)
    return wo


def add_stage_history(
    db: Session,
    wo: WorkOrder,
    event: str,
    *,
    from_stage: Optional[str] = None,
    to_stage: Optional[str] = None,
    from_status: Optional[str] = None,
    to_status: Optional[str] = None,
    reason: Optional[str] = None,
    user_id: Optional[int] = None,
) -> WOStageHistory:
    entry = WOStageHistory(
        event=event,
        from_stage=from_stage,
        to_stage=to_stage,
        from_status=from_status,
        to_status=to_status,
        reason=reason,
        changed_by=user_id,
    )
    wo.stage_history.append(entry)
    return entry


def create_work_order(db: Session, data: Dict[str, Any], user_id: Optional[int] = None) -> WorkOrder:
    """
    Insert a new work order in pending / goods_in.

    The WO starts production-locked: material and first piece QC have not
    been recorded yet.
    """
    if int(data.get("quantity") or 0) <= 0:
        raise ValidationError("Work order quantity must be greater than 0", field="quantity")

    wo_number = generate_wo_number(db)
    wo = WorkOrder(
        wo_number=wo_number,
        display_id=wo_number,
        sales_order_id=data.get("sales_order_id"),
        sales_order_line_id=data.get("sales_order_line_id"),
        customer_id=data.get("customer_id"),
        customer_po=data.get("customer_po"),
        item_code=data["item_code"],
        quantity=int(data["quantity"]),
        due_date=data.get("due_date"),
        priority=data.get("priority") or 3,
        material_size_mm=data.get("material_size_mm"),
        alloy=data.get("alloy"),
        gross_weight_per_pc_g=data.get("gross_weight_per_pc_g"),
        net_weight_per_pc_g=data.get("net_weight_per_pc_g"),
        cycle_time_seconds=data.get("cycle_time_seconds"),
        financial_snapshot=data.get("financial_snapshot"),
        status=WorkOrderStatus.PENDING.value,
        current_stage=WorkOrderStage.GOODS_IN.value,
        qc_material_status="not_started",
        qc_first_piece_status="not_started",
        qc_final_status="not_started",
        notes=data.get("notes"),
        created_by=user_id,
    )
    refresh_wo_qc_state(wo)
    db.add(wo)
    db.flush()

    add_stage_history(
        db, wo, "wo_created",
        to_stage=wo.current_stage, to_status=wo.status,
        reason=data.get("reason"), user_id=user_id,
    )
    record_audit(db, "work_orders", wo.id, "WO_CREATED", new_data=snapshot(wo, WO_AUDIT_FIELDS), user_id=user_id)
    logger.info(
        f"Created work order {wo.wo_number}",
        extra={"work_order_id": wo.id, "sales_order_id": wo.sales_order_id, "quantity": wo.quantity},
    )
    return wo


def _ensure_open(wo: WorkOrder) -> None:
    if wo.status in CLOSED_WO_STATUSES:
        raise InvalidStateError(
            f"Work order {wo.wo_number} is {wo.status}",
            current_state=wo.status,
        )


def move_stage(
    db: Session,
    wo: WorkOrder,
    to_stage: str,
    user_id: Optional[int] = None,
    reason: Optional[str] = None,
) -> WorkOrder:
    """
    Move a work order to another shop-floor stage.

    Raises:
        ValidationError: unknown stage
        InvalidStateError: WO is completed or cancelled
        ProductionLockedError: material QC not cleared (entering production),
            or production still locked (stages after production)
    """
    if to_stage not in STAGE_ORDER:
        raise ValidationError(f"Unknown stage '{to_stage}'", field="to_stage", value=to_stage)
    _ensure_open(wo)

    from_stage = wo.current_stage
    if from_stage == to_stage:
        return wo

    if to_stage in PRODUCTION_STAGES:
        if not is_gate_complete(wo.qc_material_status):
            raise ProductionLockedError(
                wo.wo_number,
                reason=f"Material QC not approved (current status: {normalize_qc_status(wo.qc_material_status)})",
            )
        if to_stage != WorkOrderStage.PRODUCTION.value and wo.production_locked:
            raise ProductionLockedError(wo.wo_number, reason="First piece QC not approved")

    new_status = None
    if to_stage in STAGE_STATUS and wo.status != WorkOrderStatus.ON_HOLD.value:
        new_status = STAGE_STATUS[to_stage]
        validate_work_order_transition(wo.status, new_status)

    old = snapshot(wo, WO_AUDIT_FIELDS)
    from_status = wo.status
    wo.current_stage = to_stage

    if to_stage == WorkOrderStage.PRODUCTION.value:
        ensure_qc_gate(db, wo, QCType.FIRST_PIECE.value)
        if wo.status == WorkOrderStatus.PENDING.value:
            wo.status = WorkOrderStatus.IN_PROGRESS.value
            wo.started_at = wo.started_at or datetime.utcnow()
    elif new_status is not None:
        wo.status = new_status

    add_stage_history(
        db, wo, "stage_change",
        from_stage=from_stage, to_stage=to_stage,
        from_status=from_status, to_status=wo.status,
        reason=reason, user_id=user_id,
    )
    record_audit(db, "work_orders", wo.id, "WO_STAGE_CHANGED", old_data=old,
                 new_data=snapshot(wo, WO_AUDIT_FIELDS), user_id=user_id)
    logger.info(
        f"{wo.wo_number}: stage {from_stage} → {to_stage}",
        extra={"work_order_id": wo.id, "status": wo.status},
    )
    return wo


def set_status(
    db: Session,
    wo: WorkOrder,
    new_status: str,
    user_id: Optional[int] = None,
    reason: Optional[str] = None,
) -> WorkOrder:
    """Validated status change. Completion is routed through mark_wo_complete."""
    if new_status not in {s.value for s in WorkOrderStatus}:
        raise ValidationError(f"Unknown work order status '{new_status}'", field="status", value=new_status)
    if new_status == WorkOrderStatus.COMPLETED.value:
        return mark_wo_complete(db, wo, user_id=user_id)
    if new_status == WorkOrderStatus.CANCELLED.value:
        return cancel_work_order(db, wo, reason=reason, user_id=user_id)

    validate_work_order_transition(wo.status, new_status)
    if wo.status == new_status:
        return wo

    old = snapshot(wo, WO_AUDIT_FIELDS)
    from_status = wo.status
    wo.status = new_status
    if new_status == WorkOrderStatus.IN_PROGRESS.value and wo.started_at is None:
        wo.started_at = datetime.utcnow()

    add_stage_history(
        db, wo, "status_change",
        from_status=from_status, to_status=new_status,
        reason=reason, user_id=user_id,
    )
    record_audit(db, "work_orders", wo.id, "WO_STATUS_CHANGED", old_data=old,
                 new_data=snapshot(wo, WO_AUDIT_FIELDS), user_id=user_id)
    refresh_sales_order_fulfilment(db, wo.sales_order)
    logger.info(f"{wo.wo_number}: status {from_status} → {new_status}", extra={"work_order_id": wo.id})
    return wo


def cancel_work_order(
    db: Session,
    wo: WorkOrder,
    reason: Optional[str] = None,
    user_id: Optional[int] = None,
    refresh_parent: bool = True,
) -> WorkOrder:
    if wo.status == WorkOrderStatus.CANCELLED.value:
        return wo
    validate_work_order_transition(wo.status, WorkOrderStatus.CANCELLED.value)

    from_status = wo.status
    wo.status = WorkOrderStatus.CANCELLED.value
    wo.cancelled_at = datetime.utcnow()
    add_stage_history(
        db, wo, "status_change",
        from_status=from_status, to_status=wo.status,
        reason=reason or "Cancelled", user_id=user_id,
    )
    record_audit(
        db, "work_orders", wo.id, "WO_CANCELLED",
        old_data={"status": from_status}, new_data={"status": wo.status, "reason": reason},
        user_id=user_id,
    )
    if refresh_parent:
        refresh_sales_order_fulfilment(db, wo.sales_order)
    logger.info(f"{wo.wo_number} cancelled", extra={"work_order_id": wo.id, "reason": reason})
    return wo


def recalculate(db: Session, wo: WorkOrder) -> WorkOrder:
    """Recompute quantity aggregates and derived QC state."""
    recalculate_wo_quantities(db, wo)
    refresh_wo_qc_state(wo)
    return wo


def _batch_totals(db: Session, wo: WorkOrder) -> Dict[str, int]:
    produced, approved, rejected, dispatched, active = (
        db.query(
            func.coalesce(func.sum(ProductionBatch.produced_qty), 0),
            func.coalesce(func.sum(ProductionBatch.qc_approved_qty), 0),
            func.coalesce(func.sum(ProductionBatch.qc_rejected_qty), 0),
            func.coalesce(func.sum(ProductionBatch.dispatched_qty), 0),
            func.coalesce(func.sum(case((ProductionBatch.ended_at.is_(None), 1), else_=0)), 0),
        )
        .filter(ProductionBatch.work_order_id == wo.id)
        .one()
    )
    return {
        "produced": int(produced),
        "approved": int(approved),
        "rejected": int(rejected),
        "dispatched": int(dispatched),
        "active": int(active),
    }


BASE_STATUS_MAP = {
    WorkOrderStatus.COMPLETED.value: "closed",
    WorkOrderStatus.PACKING.value: "packing",
    WorkOrderStatus.QC.value: "in_qc",
    WorkOrderStatus.IN_PROGRESS.value: "in_production",
}


def get_wo_batch_status(db: Session, wo: WorkOrder) -> Dict[str, Any]:
    """Status of a WO computed from its batches (first matching rule wins)."""
    t = _batch_totals(db, wo)
    ordered = wo.quantity
    produced, approved, rejected, dispatched, active = (
        t["produced"], t["approved"], t["rejected"], t["dispatched"], t["active"]
    )
    has_pending_qc = produced > approved + rejected

    if ordered > 0 and dispatched >= ordered:
        status = "fully_dispatched"
    elif 0 < dispatched < ordered and active == 0:
        status = "awaiting_next_batch"
    elif 0 < dispatched < ordered:
        status = "partially_dispatched"
    elif approved > dispatched and approved > 0:
        status = "ready_to_dispatch"
    elif approved > 0 and has_pending_qc:
        status = "partially_qc_approved"
    elif produced > 0 or active > 0:
        status = "in_production"
    else:
        status = BASE_STATUS_MAP.get(wo.status, "pending")

    return {
        "status": status,
        "base_status": wo.status,
        "ordered_qty": ordered,
        "produced_qty": produced,
        "qc_approved_qty": approved,
        "qc_rejected_qty": rejected,
        "qc_pending_qty": max(0, produced - approved - rejected),
        "dispatched_qty": dispatched,
        "remaining_qty": max(0, ordered - dispatched),
        "active_batches": active,
        "has_pending_qc": has_pending_qc,
    }


def check_wo_completion_status(db: Session, wo: WorkOrder) -> Dict[str, Any]:
    """
    Can this work order be marked complete?

    All of the following must hold:
    1. Every batch has production complete (or has been closed)
    2. Total produced >= ordered quantity
    3. Every batch has final QC passed or waived
    4. Something has been packed
    """
    batches = db.query(ProductionBatch).filter(ProductionBatch.work_order_id == wo.id).all()
    t = _batch_totals(db, wo)
    packed = int(
        db.query(func.coalesce(func.sum(Carton.quantity), 0))
        .filter(Carton.work_order_id == wo.id)
        .scalar()
    )

    all_production_complete = bool(batches) and all(b.production_complete or b.ended_at for b in batches)
    all_final_qc_complete = bool(batches) and all(is_gate_complete(b.qc_final_status) for b in batches)

    blockers: List[str] = []
    if not all_production_complete:
        blockers.append("Production not complete for all batches")
    if t["produced"] < wo.quantity:
        blockers.append(f"Produced qty ({t['produced']}) < ordered qty ({wo.quantity})")
    if not all_final_qc_complete:
        blockers.append("Final QC not complete for all batches")
    if packed == 0:
        blockers.append("No quantity packed yet")

    active = next((b for b in sorted(batches, key=lambda b: -b.batch_number) if b.is_active), None)
    return {
        "can_complete": not blockers,
        "blockers": blockers,
        "all_batches_production_complete": all_production_complete,
        "all_batches_final_qc_complete": all_final_qc_complete,
        "has_packed_qty": packed > 0,
        "totals": {
            "ordered": wo.quantity,
            "produced": t["produced"],
            "final_qc_approved": t["approved"],
            "packed": packed,
            "dispatched": t["dispatched"],
        },
        "active_batch_id": active.id if active else None,
    }


def mark_wo_complete(db: Session, wo: WorkOrder, user_id: Optional[int] = None) -> WorkOrder:
    """
    Close a work order.

    Raises:
        InvalidStateError: WO already completed or cancelled
        BusinessRuleError: completion blockers remain
    """
    _ensure_open(wo)
    check = check_wo_completion_status(db, wo)
    if not check["can_complete"]:
        logger.warning(
            f"Refused to complete {wo.wo_number}",
            extra={"work_order_id": wo.id, "blockers": check["blockers"]},
        )
        raise BusinessRuleError(
            f"Cannot complete {wo.wo_number}: " + "; ".join(check["blockers"]),
            rule="wo_completion",
            details={"blockers": check["blockers"]},
        )

    old = snapshot(wo, WO_AUDIT_FIELDS)
    from_status = wo.status
    wo.status = WorkOrderStatus.COMPLETED.value
    wo.production_complete = True
    wo.completed_at = datetime.utcnow()
    recalculate_wo_quantities(db, wo)

    add_stage_history(
        db, wo, "status_change",
        from_status=from_status, to_status=wo.status,
        reason="Marked complete", user_id=user_id,
    )
    record_audit(db, "work_orders", wo.id, "WO_COMPLETED", old_data=old,
                 new_data=snapshot(wo, WO_AUDIT_FIELDS), user_id=user_id)
    refresh_sales_order_fulfilment(db, wo.sales_order)
    logger.info(f"{wo.wo_number} completed", extra={"work_order_id": wo.id})
    return wo


def refresh_sales_order_fulfilment(db: Session, so: Optional[SalesOrder]) -> Optional[SalesOrder]:
    """An approved SO is fulfilled once it has WOs and every live one is completed."""
    if so is None or so.status != SalesOrderStatus.APPROVED.value:
        return so
    db.flush()
    statuses = [
        s for (s,) in db.query(WorkOrder.status).filter(WorkOrder.sales_order_id == so.id).all()
    ]
    live = [s for s in statuses if s != WorkOrderStatus.CANCELLED.value]
    if live and all(s == WorkOrderStatus.COMPLETED.value for s in live):
        so.status = SalesOrderStatus.FULFILLED.value
        so.fulfilled_at = datetime.utcnow()
        record_audit(db, "sales_orders", so.id, "SO_FULFILLED", old_data={"status": "approved"},
                     new_data={"status": so.status})
        logger.info(f"Sales order {so.so_number} fulfilled", extra={"sales_order_id": so.id})
    return so

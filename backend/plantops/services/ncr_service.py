"""
Non-Conformance Report Service

NCR lifecycle: OPEN → ACTION_IN_PROGRESS → EFFECTIVENESS_PENDING → CLOSED

An NCR can only be closed once a root cause is recorded and every
corrective/preventive action has been verified.
"""
from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

from plantops.core.status_config import NCRActionStatus, NCRStatus, validate_ncr_action_transition
from plantops.exceptions import BusinessRuleError, InvalidStateError, ValidationError
from plantops.models import NCR, NCRAction, QCRecord, WorkOrder
from plantops.services.audit_service import record_audit
from plantops.services.numbering import generate_ncr_number
from plantops.logging_config import get_logger

logger = get_logger(__name__)

NCR_TYPES = {"INTERNAL", "CUSTOMER", "SUPPLIER"}
DISPOSITIONS = {"REWORK", "SCRAP", "USE_AS_IS", "RETURN_TO_SUPPLIER"}
ACTION_TYPES = {"CORRECTIVE", "PREVENTIVE"}


def create_ncr(
    db: Session,
    *,
    issue_description: str,
    ncr_type: str = "INTERNAL",
    work_order: Optional[WorkOrder] = None,
    qc_record: Optional[QCRecord] = None,
    material_lot_id: Optional[int] = None,
    quantity_affected: int = 0,
    unit: str = "pcs",
    disposition: Optional[str] = None,
    due_date: Optional[date] = None,
    user_id: Optional[int] = None,
) -> NCR:
    if ncr_type not in NCR_TYPES:
        raise ValidationError(f"Unknown NCR type '{ncr_type}'", field="ncr_type", value=ncr_type)
    if disposition and disposition not in DISPOSITIONS:
        raise ValidationError(f"Unknown disposition '{disposition}'", field="disposition", value=disposition)
    if quantity_affected < 0:
        raise ValidationError("quantity_affected cannot be negative", field="quantity_affected")
    if not issue_description or not issue_description.strip():
        raise ValidationError("Issue description is required", field="issue_description")

    ncr = NCR(
        ncr_number=generate_ncr_number(db),
        ncr_type=ncr_type,
        work_order_id=work_order.id if work_order else (qc_record.work_order_id if qc_record else None),
        qc_record_id=qc_record.id if qc_record else None,
        material_lot_id=material_lot_id,
        quantity_affected=quantity_affected,
        unit=unit,
        issue_description=issue_description.strip(),
        disposition=disposition,
        due_date=due_date,
        status=NCRStatus.OPEN.value,
        raised_by=user_id,
    )
    db.add(ncr)
    db.flush()
    record_audit(db, "ncrs", ncr.id, "NCR_RAISED", new_data={"ncr_number": ncr.ncr_number}, user_id=user_id)
    logger.info(f"NCR {ncr.ncr_number} raised", extra={"ncr_type": ncr_type, "work_order_id": ncr.work_order_id})
    return ncr


def _ensure_open(ncr: NCR) -> None:
    if ncr.status == NCRStatus.CLOSED.value:
        raise InvalidStateError(f"NCR {ncr.ncr_number} is closed", current_state=ncr.status)


def update_ncr(
    db: Session,
    ncr: NCR,
    *,
    root_cause: Optional[str] = None,
    disposition: Optional[str] = None,
    due_date: Optional[date] = None,
) -> NCR:
    _ensure_open(ncr)
    if disposition is not None:
        if disposition not in DISPOSITIONS:
            raise ValidationError(f"Unknown disposition '{disposition}'", field="disposition", value=disposition)
        ncr.disposition = disposition
    if root_cause is not None:
        ncr.root_cause = root_cause
    if due_date is not None:
        ncr.due_date = due_date
    return ncr


def add_action(
    db: Session,
    ncr: NCR,
    *,
    description: str,
    action_type: str = "CORRECTIVE",
    owner_id: Optional[int] = None,
    due_date: Optional[date] = None,
) -> NCRAction:
    _ensure_open(ncr)
    if action_type not in ACTION_TYPES:
        raise ValidationError(f"Unknown action type '{action_type}'", field="action_type", value=action_type)

    action = NCRAction(
        ncr_id=ncr.id,
        action_type=action_type,
        description=description,
        owner_id=owner_id,
        due_date=due_date,
        status=NCRActionStatus.PENDING.value,
    )
    db.add(action)
    ncr.actions.append(action)
    ncr.status = NCRStatus.ACTION_IN_PROGRESS.value
    db.flush()
    return action


def update_action_status(db: Session, action: NCRAction, new_status: str, user_id: Optional[int] = None) -> NCRAction:
    """
    Advance an action: pending → in_progress → completed → verified.

    When every action is completed (or verified) the NCR moves to
    EFFECTIVENESS_PENDING.
    """
    ncr = action.ncr
    _ensure_open(ncr)
    validate_ncr_action_transition(action.status, new_status)

    action.status = new_status
    if new_status == NCRActionStatus.COMPLETED.value:
        action.completed_at = datetime.utcnow()
    elif new_status == NCRActionStatus.VERIFIED.value:
        action.verified_by = user_id
        action.verified_at = datetime.utcnow()

    done = {NCRActionStatus.COMPLETED.value, NCRActionStatus.VERIFIED.value}
    if all(a.status in done for a in ncr.actions):
        ncr.status = NCRStatus.EFFECTIVENESS_PENDING.value
    else:
        ncr.status = NCRStatus.ACTION_IN_PROGRESS.value
    db.flush()
    return action


def close_ncr(db: Session, ncr: NCR, user_id: Optional[int] = None) -> NCR:
    _ensure_open(ncr)
    if not ncr.actions:
        raise BusinessRuleError("NCR cannot be closed without actions", rule="ncr_actions_required")
    unverified = [a.id for a in ncr.actions if a.status != NCRActionStatus.VERIFIED.value]
    if unverified:
        raise BusinessRuleError(
            "All NCR actions must be verified before closing",
            rule="ncr_actions_verified",
            details={"unverified_action_ids": unverified},
        )
    if not ncr.root_cause:
        raise BusinessRuleError("Root cause is required to close an NCR", rule="ncr_root_cause_required")

    ncr.status = NCRStatus.CLOSED.value
    ncr.closed_by = user_id
    ncr.closed_at = datetime.utcnow()
    record_audit(db, "ncrs", ncr.id, "NCR_CLOSED", user_id=user_id)
    db.flush()
    logger.info(f"NCR {ncr.ncr_number} closed")
    return ncr

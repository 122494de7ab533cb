"""Status Configuration and Transition Rules

Valid status values for every PlantOps document, the allowed transitions
for the ones with a lifecycle, and QC status normalization helpers.
"""
from enum import Enum
from typing import Dict, List, Optional, Set

from plantops.exceptions import InvalidStateError


# =============================================================================
# Sales Orders
# =============================================================================

class SalesOrderStatus(str, Enum):
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"


SALES_ORDER_TRANSITIONS: Dict[str, Set[str]] = {
    SalesOrderStatus.DRAFT: {
        SalesOrderStatus.PENDING_APPROVAL,
        SalesOrderStatus.APPROVED,
        SalesOrderStatus.CANCELLED,
    },
    SalesOrderStatus.PENDING_APPROVAL: {
        SalesOrderStatus.APPROVED,
        SalesOrderStatus.DRAFT,
        SalesOrderStatus.CANCELLED,
    },
    SalesOrderStatus.APPROVED: {
        SalesOrderStatus.FULFILLED,
        SalesOrderStatus.CANCELLED,
    },
    SalesOrderStatus.FULFILLED: set(),  # Terminal
    SalesOrderStatus.CANCELLED: set(),  # Terminal
}


class LineItemStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    CANCELLED = "cancelled"


# =============================================================================
# Work Orders
# =============================================================================

class WorkOrderStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    QC = "qc"
    PACKING = "packing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ON_HOLD = "on_hold"


WORK_ORDER_TRANSITIONS: Dict[str, Set[str]] = {
    WorkOrderStatus.PENDING: {
        WorkOrderStatus.IN_PROGRESS,
        WorkOrderStatus.ON_HOLD,
        WorkOrderStatus.CANCELLED,
    },
    WorkOrderStatus.IN_PROGRESS: {
        WorkOrderStatus.QC,
        WorkOrderStatus.PACKING,
        WorkOrderStatus.ON_HOLD,
        WorkOrderStatus.COMPLETED,
        WorkOrderStatus.CANCELLED,
    },
    WorkOrderStatus.QC: {
        WorkOrderStatus.IN_PROGRESS,  # rework / next batch
        WorkOrderStatus.PACKING,
        WorkOrderStatus.ON_HOLD,
        WorkOrderStatus.COMPLETED,
        WorkOrderStatus.CANCELLED,
    },
    WorkOrderStatus.PACKING: {
        WorkOrderStatus.IN_PROGRESS,
        WorkOrderStatus.QC,
        WorkOrderStatus.ON_HOLD,
        WorkOrderStatus.COMPLETED,
        WorkOrderStatus.CANCELLED,
    },
    WorkOrderStatus.ON_HOLD: {
        WorkOrderStatus.PENDING,
        WorkOrderStatus.IN_PROGRESS,
        WorkOrderStatus.QC,
        WorkOrderStatus.PACKING,
        WorkOrderStatus.CANCELLED,
    },
    WorkOrderStatus.COMPLETED: set(),  # Terminal
    WorkOrderStatus.CANCELLED: set(),  # Terminal
}

CLOSED_WO_STATUSES = {WorkOrderStatus.COMPLETED.value, WorkOrderStatus.CANCELLED.value}


class WorkOrderStage(str, Enum):
    """Shop-floor stages, in routing order"""
    GOODS_IN = "goods_in"
    CUTTING = "cutting"
    FORGING = "forging"
    PRODUCTION = "production"
    EXTERNAL = "external"
    QUALITY = "quality"
    PACKING = "packing"
    DISPATCH = "dispatch"


STAGE_ORDER: List[str] = [s.value for s in WorkOrderStage]

# Stages that consume material and therefore require cleared material/first-piece QC
PRODUCTION_STAGES = {
    WorkOrderStage.PRODUCTION.value,
    WorkOrderStage.EXTERNAL.value,
    WorkOrderStage.QUALITY.value,
    WorkOrderStage.PACKING.value,
    WorkOrderStage.DISPATCH.value,
}


# =============================================================================
# Quality
# =============================================================================

class QCType(str, Enum):
    INCOMING = "incoming"
    FIRST_PIECE = "first_piece"
    IN_PROCESS = "in_process"
    FINAL = "final"


class QCResult(str, Enum):
    """Raw inspection result recorded on a QC record"""
    PENDING = "pending"
    PASS = "pass"
    FAIL = "fail"
    REWORK = "rework"
    WAIVED = "waived"


class QCStatus(str, Enum):
    """Normalized gate status stored on work orders and batches"""
    NOT_STARTED = "not_started"
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"
    HOLD = "hold"
    WAIVED = "waived"
    BLOCKED = "blocked"


_QC_ALIASES = {
    "pass": QCStatus.PASSED.value,
    "fail": QCStatus.FAILED.value,
    "rework": QCStatus.HOLD.value,
}

COMPLETE_QC_STATUSES = {QCStatus.PASSED.value, QCStatus.WAIVED.value}


def normalize_qc_status(value: Optional[str]) -> str:
    """Map raw results and legacy values onto QCStatus values."""
    if not value:
        return QCStatus.PENDING.value
    v = value.strip().lower()
    if v in _QC_ALIASES:
        return _QC_ALIASES[v]
    if v in {s.value for s in QCStatus}:
        return v
    return QCStatus.PENDING.value


def is_gate_complete(value: Optional[str]) -> bool:
    return normalize_qc_status(value) in COMPLETE_QC_STATUSES


class WOQCStatus(str, Enum):
    """Overall WO quality verdict"""
    PENDING = "pending"
    APPROVED = "approved"
    FAILED = "failed"


# =============================================================================
# Batches, packing and dispatch
# =============================================================================

class BatchTriggerReason(str, Enum):
    INITIAL = "initial"
    POST_DISPATCH = "post_dispatch"
    GAP_RESTART = "gap_restart"


class BatchLocation(str, Enum):
    FACTORY = "factory"
    EXTERNAL_PARTNER = "external_partner"
    PACKING = "packing"


class DispatchQCStatus(str, Enum):
    APPROVED = "approved"
    PARTIALLY_CONSUMED = "partially_consumed"
    CONSUMED = "consumed"


DISPATCHABLE_DQC_STATUSES = {s.value for s in DispatchQCStatus}


class CartonStatus(str, Enum):
    PACKED = "packed"
    READY_FOR_DISPATCH = "ready_for_dispatch"
    DISPATCHED = "dispatched"


class ShipmentStatus(str, Enum):
    PENDING = "pending"
    SHIPPED = "shipped"
    DELIVERED = "delivered"


SHIPMENT_TRANSITIONS: Dict[str, Set[str]] = {
    ShipmentStatus.PENDING: {ShipmentStatus.SHIPPED},
    ShipmentStatus.SHIPPED: {ShipmentStatus.DELIVERED},
    ShipmentStatus.DELIVERED: set(),
}


# =============================================================================
# External processing
# =============================================================================

class MovementStatus(str, Enum):
    SENT = "sent"
    IN_TRANSIT = "in_transit"
    AT_PARTNER = "at_partner"
    PARTIALLY_RETURNED = "partially_returned"
    RETURNED = "returned"
    FORWARDED = "forwarded"


OPEN_MOVEMENT_STATUSES = {
    MovementStatus.SENT.value,
    MovementStatus.IN_TRANSIT.value,
    MovementStatus.AT_PARTNER.value,
    MovementStatus.PARTIALLY_RETURNED.value,
}


class ReceiptType(str, Enum):
    SUPPLIER_TO_FACTORY = "supplier_to_factory"
    PARTNER_TO_FACTORY = "partner_to_factory"
    PARTNER_TO_PARTNER = "partner_to_partner"
    PARTNER_TO_PACKING = "partner_to_packing"


# =============================================================================
# NCR
# =============================================================================

class NCRStatus(str, Enum):
    OPEN = "OPEN"
    ACTION_IN_PROGRESS = "ACTION_IN_PROGRESS"
    EFFECTIVENESS_PENDING = "EFFECTIVENESS_PENDING"
    CLOSED = "CLOSED"


class NCRActionStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    VERIFIED = "verified"


NCR_ACTION_TRANSITIONS: Dict[str, Set[str]] = {
    NCRActionStatus.PENDING: {NCRActionStatus.IN_PROGRESS, NCRActionStatus.COMPLETED},
    NCRActionStatus.IN_PROGRESS: {NCRActionStatus.COMPLETED},
    NCRActionStatus.COMPLETED: {NCRActionStatus.VERIFIED, NCRActionStatus.IN_PROGRESS},
    NCRActionStatus.VERIFIED: set(),
}


# =============================================================================
# Finance
# =============================================================================

class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    ISSUED = "issued"
    PART_PAID = "part_paid"
    PAID = "paid"
    OVERDUE = "overdue"
    SHORT_CLOSED = "short_closed"
    CANCELLED = "cancelled"


PAYABLE_INVOICE_STATUSES = {
    InvoiceStatus.ISSUED.value,
    InvoiceStatus.PART_PAID.value,
    InvoiceStatus.OVERDUE.value,
}


class ReceiptStatus(str, Enum):
    PENDING = "pending"
    PARTIALLY_ALLOCATED = "partially_allocated"
    FULLY_ALLOCATED = "fully_allocated"


class AdjustmentType(str, Enum):
    REJECTION = "rejection"
    QUALITY_CLAIM = "quality_claim"
    PRICE_DISPUTE = "price_dispute"
    OTHER = "other"


class AdjustmentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    APPLIED = "applied"


# =============================================================================
# Validation Helpers
# =============================================================================

class StatusTransitionError(InvalidStateError):
    """Raised when an invalid status transition is attempted"""

    def __init__(self, entity: str, current: str, requested: str, allowed: List[str]):
        self.entity = entity
        self.current = current
        self.requested = requested
        self.allowed = allowed
        super().__init__(
            f"Invalid {entity} status transition: '{current}' -> '{requested}'. "
            f"Allowed: {allowed if allowed else 'none (terminal state)'}",
            current_state=current,
            allowed_states=allowed,
        )


def _value(status) -> str:
    return getattr(status, "value", status)


def get_allowed_transitions(table: Dict[str, Set[str]], current: str) -> List[str]:
    """Allowed next statuses as plain strings"""
    for key, allowed in table.items():
        if _value(key) == _value(current):
            return sorted(_value(a) for a in allowed)
    return []


def _validate(entity: str, table: Dict[str, Set[str]], current: str, new: str) -> None:
    if _value(current) == _value(new):
        return
    allowed = get_allowed_transitions(table, current)
    if _value(new) not in allowed:
        raise StatusTransitionError(entity, _value(current), _value(new), allowed)


def validate_sales_order_transition(current: str, new: str) -> None:
    _validate("sales order", SALES_ORDER_TRANSITIONS, current, new)


def validate_work_order_transition(current: str, new: str) -> None:
    _validate("work order", WORK_ORDER_TRANSITIONS, current, new)


def validate_shipment_transition(current: str, new: str) -> None:
    _validate("shipment", SHIPMENT_TRANSITIONS, current, new)


def validate_ncr_action_transition(current: str, new: str) -> None:
    _validate("NCR action", NCR_ACTION_TRANSITIONS, current, new)

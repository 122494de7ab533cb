"""
Sales Order Service

Order intake and the link from sales order lines to work orders:

- approving a line generates exactly one work order for it
- editing an approved order pushes quantity, due date and material
  changes into work orders that have not started; started ones raise an
  approval_required notification instead
- cancelling an order cancels its open work orders
"""
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from plantops.core.settings import settings
from plantops.core.status_config import (
    LineItemStatus,
    SalesOrderStatus,
    WorkOrderStage,
    WorkOrderStatus,
    validate_sales_order_transition,
)
from plantops.exceptions import InvalidStateError, NotFoundError, ValidationError
from plantops.models import Customer, Item, SalesOrder, SalesOrderLine, WorkOrder
from plantops.services import work_order_service
from plantops.services.audit_service import notify_roles, record_audit, snapshot
from plantops.services.numbering import generate_so_number
from plantops.logging_config import get_logger

logger = get_logger(__name__)

HEADER_FIELDS = (
    "customer_id", "po_number", "po_date", "expected_delivery_date",
    "currency", "payment_terms_days", "incoterm", "notes",
    "material_rod_forging_size_mm", "alloy", "gross_weight_per_pc_g",
    "net_weight_per_pc_g", "cycle_time_seconds",
)

LINE_FIELDS = (
    "item_code", "description", "quantity", "price_per_pc", "due_date",
    "material_rod_forging_size_mm", "alloy", "gross_weight_per_pc_g",
    "net_weight_per_pc_g", "cycle_time_seconds",
)

# Work order fields kept in step with the line while the WO is editable
SYNCED_WO_FIELDS = (
    "quantity", "due_date", "material_size_mm", "alloy",
    "gross_weight_per_pc_g", "net_weight_per_pc_g", "cycle_time_seconds",
)

READ_ONLY_STATUSES = {SalesOrderStatus.CANCELLED.value, SalesOrderStatus.FULFILLED.value}

SYNC_NOTIFY_ROLES = ("admin", "production")


def get_sales_order(db: Session, so_id: int) -> SalesOrder:
    so = db.query(SalesOrder).filter(SalesOrder.id == so_id).first()
    if not so:
        raise NotFoundError("SalesOrder", so_id)
    return so


def get_line(db: Session, line_id: int) -> SalesOrderLine:
    line = db.query(SalesOrderLine).filter(SalesOrderLine.id == line_id).first()
    if not line:
        raise NotFoundError("SalesOrderLine", line_id)
    return line


def _recalculate_total(so: SalesOrder) -> None:
    so.total_amount = sum(
        (Decimal(str(l.line_amount)) for l in so.lines if l.status != LineItemStatus.CANCELLED.value),
        Decimal("0"),
    ).quantize(Decimal("0.01"))


def _validate_line(data: Dict[str, Any]) -> None:
    if not data.get("item_code"):
        raise ValidationError("Line item_code is required", field="item_code")
    if int(data.get("quantity") or 0) <= 0:
        raise ValidationError("Line quantity must be greater than 0", field="quantity", value=data.get("quantity"))
    if Decimal(str(data.get("price_per_pc") or 0)) < 0:
        raise ValidationError("Line price cannot be negative", field="price_per_pc")


def _add_line(so: SalesOrder, data: Dict[str, Any]) -> SalesOrderLine:
    _validate_line(data)
    next_number = max((l.line_number for l in so.lines), default=0) + 1
    line = SalesOrderLine(
        line_number=next_number,
        status=LineItemStatus.PENDING.value,
        **{f: data.get(f) for f in LINE_FIELDS if data.get(f) is not None},
    )
    line.quantity = int(data["quantity"])
    so.lines.append(line)
    return line


def create_sales_order(db: Session, data: Dict[str, Any], user_id: Optional[int] = None) -> SalesOrder:
    """
    Create a draft sales order with its lines.

    Currency and payment terms default from the customer.
    """
    customer = db.query(Customer).filter(Customer.id == data.get("customer_id")).first()
    if not customer:
        raise NotFoundError("Customer", data.get("customer_id"))
    lines = data.get("lines") or []
    if not lines:
        raise ValidationError("A sales order needs at least one line", field="lines")

    so = SalesOrder(
        so_number=generate_so_number(db, data.get("po_date")),
        status=SalesOrderStatus.DRAFT.value,
        created_by=user_id,
        **{f: data.get(f) for f in HEADER_FIELDS if data.get(f) is not None},
    )
    so.currency = so.currency or customer.currency or settings.DEFAULT_CURRENCY
    if so.payment_terms_days is None:
        so.payment_terms_days = customer.payment_terms_days
    for line_data in lines:
        _add_line(so, line_data)
    _recalculate_total(so)

    db.add(so)
    db.flush()
    record_audit(
        db, "sales_orders", so.id, "SO_CREATED",
        new_data={"so_number": so.so_number, "total_amount": so.total_amount, "lines": len(so.lines)},
        user_id=user_id,
    )
    logger.info(
        f"Created sales order {so.so_number}",
        extra={"sales_order_id": so.id, "customer_id": customer.id, "line_count": len(so.lines)},
    )
    return so


def update_sales_order(
    db: Session,
    so: SalesOrder,
    changes: Dict[str, Any],
    user_id: Optional[int] = None,
) -> SalesOrder:
    """
    Edit header fields and lines.

    `changes["lines"]` entries with an `id` update that line; entries
    without one add a new line. Approved orders are synced to their work
    orders afterwards.

    Raises:
        ValidationError: attempt to change so_number, or invalid line data
        InvalidStateError: order is cancelled or fulfilled
    """
    if "so_number" in changes and changes["so_number"] not in (None, so.so_number):
        raise ValidationError("so_number cannot be changed once assigned", field="so_number",
                              value=changes["so_number"])
    if so.status in READ_ONLY_STATUSES:
        raise InvalidStateError(f"Sales order {so.so_number} is {so.status}", current_state=so.status)

    old = snapshot(so, ("po_number", "expected_delivery_date", "total_amount", "status"))
    for field in HEADER_FIELDS:
        if field in changes and changes[field] is not None:
            setattr(so, field, changes[field])

    for line_data in changes.get("lines") or []:
        line_id = line_data.get("id")
        if line_id is None:
            _add_line(so, line_data)
            continue
        line = next((l for l in so.lines if l.id == line_id), None)
        if line is None:
            raise NotFoundError("SalesOrderLine", line_id)
        if line.status == LineItemStatus.CANCELLED.value:
            raise InvalidStateError(f"Line {line.line_number} is cancelled", current_state=line.status)
        merged = {
            f: line_data[f] if line_data.get(f) is not None else getattr(line, f) for f in LINE_FIELDS
        }
        _validate_line(merged)
        for field in LINE_FIELDS:
            if field in line_data and line_data[field] is not None:
                setattr(line, field, line_data[field])

    _recalculate_total(so)
    db.flush()
    record_audit(db, "sales_orders", so.id, "SO_UPDATED", old_data=old,
                 new_data=snapshot(so, ("po_number", "expected_delivery_date", "total_amount", "status")),
                 user_id=user_id)

    if so.status == SalesOrderStatus.APPROVED.value:
        sync_work_orders_from_sales_order(db, so, user_id=user_id)
    return so


def approve_sales_order(db: Session, so: SalesOrder, user_id: Optional[int] = None) -> SalesOrder:
    """Approve the order and every pending line; each line gets its work order."""
    validate_sales_order_transition(so.status, SalesOrderStatus.APPROVED.value)
    if so.status == SalesOrderStatus.APPROVED.value:
        return so

    old_status = so.status
    so.status = SalesOrderStatus.APPROVED.value
    so.approved_by = user_id
    so.approved_at = datetime.utcnow()
    for line in so.lines:
        if line.status == LineItemStatus.PENDING.value:
            approve_line_item(db, line, user_id=user_id)

    record_audit(db, "sales_orders", so.id, "SO_APPROVED", old_data={"status": old_status},
                 new_data={"status": so.status}, user_id=user_id)
    logger.info(f"Approved sales order {so.so_number}", extra={"sales_order_id": so.id})
    return so


def approve_line_item(db: Session, line: SalesOrderLine, user_id: Optional[int] = None) -> WorkOrder:
    """Approve one line and make sure it has a work order. Safe to repeat."""
    so = line.sales_order
    if so.status in READ_ONLY_STATUSES:
        raise InvalidStateError(f"Sales order {so.so_number} is {so.status}", current_state=so.status)
    if line.status == LineItemStatus.CANCELLED.value:
        raise InvalidStateError(f"Line {line.line_number} is cancelled", current_state=line.status)

    line.status = LineItemStatus.APPROVED.value
    return generate_work_order_from_line(db, line, user_id=user_id)


def _format_size(value: Any) -> str:
    text = str(value)
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def resolve_material_specs(db: Session, so: SalesOrder, line: SalesOrderLine) -> Dict[str, Any]:
    """Material spec for a line: line override, then SO default, then item master."""
    item = db.query(Item).filter(Item.item_code == line.item_code).first()

    def pick(field: str, item_field: Optional[str] = None):
        for source in (line, so):
            value = getattr(source, field, None)
            if value not in (None, ""):
                return value
        if item is not None and item_field:
            return getattr(item, item_field)
        return None

    size = pick("material_rod_forging_size_mm")
    if size is None and item is not None and item.material_size_mm is not None:
        size = f"{item.material_shape or 'round'} {_format_size(item.material_size_mm)}mm"

    return {
        "material_size_mm": size,
        "alloy": pick("alloy", "alloy"),
        "gross_weight_per_pc_g": pick("gross_weight_per_pc_g", "gross_weight_per_pc_g"),
        "net_weight_per_pc_g": pick("net_weight_per_pc_g", "net_weight_per_pc_g"),
        "cycle_time_seconds": pick("cycle_time_seconds", "cycle_time_seconds"),
    }


def _resolve_due_date(so: SalesOrder, line: SalesOrderLine) -> date:
    return (
        line.due_date
        or so.expected_delivery_date
        or date.today() + timedelta(days=settings.DEFAULT_DUE_DAYS)
    )


def build_financial_snapshot(so: SalesOrder, line: SalesOrderLine) -> Dict[str, Any]:
    return {
        "currency": so.currency or settings.DEFAULT_CURRENCY,
        "payment_terms_days": so.payment_terms_days,
        "incoterm": so.incoterm,
        "so_total": str(so.total_amount or 0),
        "line": {
            "item_code": line.item_code,
            "quantity": line.quantity,
            "price_per_pc": str(line.price_per_pc or 0),
            "line_amount": str(line.line_amount),
        },
    }


def generate_work_order_from_line(db: Session, line: SalesOrderLine, user_id: Optional[int] = None) -> WorkOrder:
    """Create the work order for an approved line, or return the one it already has."""
    if line.work_order_id:
        existing = db.query(WorkOrder).filter(WorkOrder.id == line.work_order_id).first()
        if existing:
            return existing
    db.flush()
    existing = db.query(WorkOrder).filter(WorkOrder.sales_order_line_id == line.id).first()
    if existing:
        line.work_order_id = existing.id
        return existing

    so = line.sales_order
    data = {
        "sales_order_id": so.id,
        "sales_order_line_id": line.id,
        "customer_id": so.customer_id,
        "customer_po": so.po_number,
        "item_code": line.item_code,
        "quantity": line.quantity,
        "due_date": _resolve_due_date(so, line),
        "financial_snapshot": build_financial_snapshot(so, line),
        "reason": f"Generated from {so.so_number} line {line.line_number}",
        **resolve_material_specs(db, so, line),
    }
    wo = work_order_service.create_work_order(db, data, user_id=user_id)
    line.work_order_id = wo.id
    return wo


def _is_editable(wo: WorkOrder) -> bool:
    return wo.status == WorkOrderStatus.PENDING.value and wo.current_stage == WorkOrderStage.GOODS_IN.value


def _wanted_wo_values(db: Session, so: SalesOrder, line: SalesOrderLine) -> Dict[str, Any]:
    values = {"quantity": line.quantity, "due_date": _resolve_due_date(so, line)}
    values.update(resolve_material_specs(db, so, line))
    return values


def _differs(current: Any, wanted: Any) -> bool:
    if isinstance(current, Decimal) or isinstance(wanted, Decimal):
        if current is None or wanted is None:
            return current is not wanted
        return Decimal(str(current)) != Decimal(str(wanted))
    return current != wanted


def sync_work_orders_from_sales_order(db: Session, so: SalesOrder, user_id: Optional[int] = None) -> List[str]:
    """
    Push line changes into work orders of an approved sales order.

    Returns the numbers of work orders that could not be updated and were
    flagged for approval instead.
    """
    flagged: List[str] = []
    for line in list(so.lines):
        if line.status == LineItemStatus.PENDING.value:
            approve_line_item(db, line, user_id=user_id)
            continue
        if line.status != LineItemStatus.APPROVED.value or not line.work_order_id:
            continue

        wo = db.query(WorkOrder).filter(WorkOrder.id == line.work_order_id).first()
        if wo is None or wo.status == WorkOrderStatus.CANCELLED.value:
            continue

        wanted = _wanted_wo_values(db, so, line)
        changed = [f for f in SYNCED_WO_FIELDS if _differs(getattr(wo, f), wanted[f])]
        if not changed:
            continue

        if _is_editable(wo):
            old = snapshot(wo, changed)
            for f in changed:
                setattr(wo, f, wanted[f])
            snap = dict(wo.financial_snapshot or {})
            snap["so_total"] = str(so.total_amount or 0)
            snap["line"] = build_financial_snapshot(so, line)["line"]
            wo.financial_snapshot = snap
            record_audit(db, "work_orders", wo.id, "WO_SYNCED_FROM_SO", old_data=old,
                         new_data=snapshot(wo, changed), user_id=user_id)
            logger.info(f"{wo.wo_number} synced from {so.so_number}", extra={"fields": changed})
        else:
            notify_roles(
                db,
                SYNC_NOTIFY_ROLES,
                "approval_required",
                f"{so.so_number} changed after {wo.wo_number} started",
                message=(
                    f"Sales order {so.so_number} line {line.line_number} was edited, but work order "
                    f"{wo.wo_number} is {wo.status} at {wo.current_stage} and was not updated. "
                    f"Changed fields: {', '.join(changed)}"
                ),
                entity_type="work_order",
                entity_id=wo.id,
            )
            flagged.append(wo.wo_number)
            logger.warning(
                f"{wo.wo_number} not synced from {so.so_number}: work order already started",
                extra={"fields": changed, "wo_status": wo.status},
            )
    return flagged


def cancel_line_item(
    db: Session,
    line: SalesOrderLine,
    reason: Optional[str] = None,
    user_id: Optional[int] = None,
) -> SalesOrderLine:
    """Cancel one line; its work order is cancelled if it has not started."""
    so = line.sales_order
    if so.status in READ_ONLY_STATUSES:
        raise InvalidStateError(f"Sales order {so.so_number} is {so.status}", current_state=so.status)
    if line.status == LineItemStatus.CANCELLED.value:
        return line

    line.status = LineItemStatus.CANCELLED.value
    if line.work_order_id:
        wo = db.query(WorkOrder).filter(WorkOrder.id == line.work_order_id).first()
        if wo is not None and wo.status not in (WorkOrderStatus.COMPLETED.value, WorkOrderStatus.CANCELLED.value):
            if _is_editable(wo):
                work_order_service.cancel_work_order(db, wo, reason=reason or "Sales order line cancelled",
                                                     user_id=user_id)
            else:
                notify_roles(
                    db, SYNC_NOTIFY_ROLES, "approval_required",
                    f"{so.so_number} line {line.line_number} cancelled",
                    message=f"Work order {wo.wo_number} is already {wo.status}; decide whether to cancel it.",
                    entity_type="work_order", entity_id=wo.id,
                )
    _recalculate_total(so)
    record_audit(db, "sales_order_lines", line.id, "SO_LINE_CANCELLED",
                 new_data={"reason": reason}, user_id=user_id)
    return line


def cancel_sales_order(db: Session, so: SalesOrder, reason: str, user_id: Optional[int] = None) -> SalesOrder:
    """Cancel the order and every work order under it that is still open."""
    if not reason or not reason.strip():
        raise ValidationError("A cancellation reason is required", field="reason")
    validate_sales_order_transition(so.status, SalesOrderStatus.CANCELLED.value)
    if so.status == SalesOrderStatus.CANCELLED.value:
        return so

    old_status = so.status
    so.status = SalesOrderStatus.CANCELLED.value
    so.cancellation_reason = reason
    so.cancelled_at = datetime.utcnow()

    cancelled = []
    open_wos = (
        db.query(WorkOrder)
        .filter(
            WorkOrder.sales_order_id == so.id,
            WorkOrder.status.notin_([WorkOrderStatus.COMPLETED.value, WorkOrderStatus.CANCELLED.value]),
        )
        .all()
    )
    for wo in open_wos:
        work_order_service.cancel_work_order(
            db, wo, reason=f"Sales order {so.so_number} cancelled: {reason}",
            user_id=user_id, refresh_parent=False,
        )
        cancelled.append(wo.wo_number)

    record_audit(
        db, "sales_orders", so.id, "SO_CANCELLED",
        old_data={"status": old_status},
        new_data={"status": so.status, "reason": reason, "cancelled_work_orders": cancelled},
        user_id=user_id,
    )
    logger.info(
        f"Cancelled sales order {so.so_number}",
        extra={"sales_order_id": so.id, "cancelled_work_orders": cancelled},
    )
    return so

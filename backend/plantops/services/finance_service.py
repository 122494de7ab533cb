"""
Finance Service

Invoices, period locks and receivables aging.

Invoice amounts:
    subtotal = sum(item amount)            item amount = quantity * rate
    gst      = subtotal * gst_percent / 100  (2dp, half-up)
    total    = subtotal + gst
    balance  = total - paid - adjustment

Documents dated inside a locked month cannot be created, changed,
allocated against or deleted.
"""
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from plantops.core.settings import settings
from plantops.core.status_config import InvoiceStatus, PAYABLE_INVOICE_STATUSES
from plantops.exceptions import (
    DuplicateError, InvalidStateError, NotFoundError, PeriodLockedError, ValidationError,
)
from plantops.models import (
    Customer, Dispatch, FinancePeriodLock, Invoice, InvoiceItem, SalesOrderLine, WorkOrder,
)
from plantops.services.audit_service import record_audit
from plantops.services.numbering import generate_invoice_number
from plantops.logging_config import get_logger

logger = get_logger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")


def money(value: Any) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENT, rounding=ROUND_HALF_UP)


# ============================================================================
# Period locks
# ============================================================================

def is_period_locked(db: Session, on: date) -> bool:
    return (
        db.query(FinancePeriodLock.id)
        .filter(FinancePeriodLock.year == on.year, FinancePeriodLock.month == on.month)
        .first()
        is not None
    )


def ensure_period_open(db: Session, on: Optional[date]) -> None:
    """Raise PeriodLockedError when `on` falls in a locked month."""
    if on is not None and is_period_locked(db, on):
        raise PeriodLockedError(on.year, on.month)


def lock_period(db: Session, year: int, month: int, reason: Optional[str] = None,
                user_id: Optional[int] = None) -> FinancePeriodLock:
    if not 1 <= month <= 12:
        raise ValidationError("Month must be between 1 and 12", field="month", value=month)
    existing = (
        db.query(FinancePeriodLock)
        .filter(FinancePeriodLock.year == year, FinancePeriodLock.month == month)
        .first()
    )
    if existing:
        raise DuplicateError("FinancePeriodLock", field="period", value=f"{year}-{month:02d}")

    lock = FinancePeriodLock(year=year, month=month, reason=reason, locked_by=user_id)
    db.add(lock)
    db.flush()
    record_audit(db, "finance_period_locks", lock.id, "PERIOD_LOCKED",
                 new_data={"year": year, "month": month, "reason": reason}, user_id=user_id)
    logger.info(f"Locked finance period {year}-{month:02d}")
    return lock


def unlock_period(db: Session, year: int, month: int, user_id: Optional[int] = None) -> None:
    lock = (
        db.query(FinancePeriodLock)
        .filter(FinancePeriodLock.year == year, FinancePeriodLock.month == month)
        .first()
    )
    if not lock:
        raise NotFoundError("FinancePeriodLock", f"{year}-{month:02d}")
    record_audit(db, "finance_period_locks", lock.id, "PERIOD_UNLOCKED",
                 old_data={"year": year, "month": month}, user_id=user_id)
    db.delete(lock)
    db.flush()
    logger.warning(f"Unlocked finance period {year}-{month:02d}")


# ============================================================================
# Invoices
# ============================================================================

def get_invoice(db: Session, invoice_id: int) -> Invoice:
    invoice = db.query(Invoice).filter(Invoice.id == invoice_id).first()
    if not invoice:
        raise NotFoundError("Invoice", invoice_id)
    return invoice


def recalculate_invoice(invoice: Invoice) -> Invoice:
    subtotal = ZERO
    for item in invoice.items:
        item.amount = money(Decimal(str(item.quantity)) * Decimal(str(item.rate or 0)))
        subtotal += item.amount
    invoice.subtotal = money(subtotal)
    invoice.gst_amount = money(invoice.subtotal * Decimal(str(invoice.gst_percent or 0)) / 100)
    invoice.total_amount = invoice.subtotal + invoice.gst_amount
    refresh_balance(invoice)
    return invoice


def refresh_balance(invoice: Invoice) -> Invoice:
    invoice.balance_amount = (
        money(invoice.total_amount) - money(invoice.paid_amount)
        - money(invoice.adjustment_amount) - money(invoice.short_closed_amount)
    )
    return invoice


def refresh_payment_status(invoice: Invoice, today: Optional[date] = None) -> Invoice:
    """Derive paid/part_paid/overdue from the balance for an issued invoice."""
    refresh_balance(invoice)
    if invoice.status not in PAYABLE_INVOICE_STATUSES | {InvoiceStatus.PAID.value}:
        return invoice
    if invoice.balance_amount <= 0:
        invoice.status = InvoiceStatus.PAID.value
    elif money(invoice.paid_amount) > 0 or money(invoice.adjustment_amount) > 0:
        invoice.status = InvoiceStatus.PART_PAID.value
    else:
        invoice.status = InvoiceStatus.ISSUED.value
    if (
        invoice.status in (InvoiceStatus.ISSUED.value, InvoiceStatus.PART_PAID.value)
        and invoice.due_date is not None
        and invoice.due_date < (today or date.today())
    ):
        invoice.status = InvoiceStatus.OVERDUE.value
    return invoice


def _items_from_dispatches(db: Session, dispatch_ids: List[int]) -> List[Dict[str, Any]]:
    items = []
    for dispatch_id in dispatch_ids:
        dispatch = db.query(Dispatch).filter(Dispatch.id == dispatch_id).first()
        if not dispatch:
            raise NotFoundError("Dispatch", dispatch_id)
        already = db.query(InvoiceItem.id).filter(InvoiceItem.dispatch_id == dispatch.id).first()
        if already:
            raise DuplicateError("InvoiceItem", field="dispatch_id", value=dispatch.dispatch_number)
        wo = db.query(WorkOrder).filter(WorkOrder.id == dispatch.work_order_id).one()
        line = (
            db.query(SalesOrderLine).filter(SalesOrderLine.id == wo.sales_order_line_id).first()
            if wo.sales_order_line_id else None
        )
        rate = line.price_per_pc if line else (wo.financial_snapshot or {}).get("line", {}).get("price_per_pc", 0)
        items.append({
            "dispatch_id": dispatch.id,
            "item_code": wo.item_code,
            "description": f"{wo.item_code} - {dispatch.dispatch_number}",
            "quantity": dispatch.quantity,
            "rate": rate,
        })
    return items


def _build_item(item: Dict[str, Any]) -> InvoiceItem:
    quantity = Decimal(str(item.get("quantity") or 0))
    if quantity <= 0:
        raise ValidationError("Invoice item quantity must be greater than 0", field="quantity")
    rate = Decimal(str(item.get("rate") or 0))
    if rate < 0:
        raise ValidationError("Invoice item rate cannot be negative", field="rate")
    return InvoiceItem(
        dispatch_id=item.get("dispatch_id"),
        item_code=item.get("item_code"),
        description=item.get("description") or item.get("item_code") or "Item",
        quantity=quantity,
        rate=rate,
    )


def create_invoice(db: Session, data: Dict[str, Any], user_id: Optional[int] = None) -> Invoice:
    """
    Create a draft invoice from explicit items and/or dispatches.

    due_date defaults to invoice_date + the customer's payment terms.
    """
    customer = db.query(Customer).filter(Customer.id == data.get("customer_id")).first()
    if not customer:
        raise NotFoundError("Customer", data.get("customer_id"))
    invoice_date = data.get("invoice_date") or date.today()
    ensure_period_open(db, invoice_date)

    items = list(data.get("items") or [])
    if data.get("from_dispatches"):
        items.extend(_items_from_dispatches(db, data["from_dispatches"]))
    if not items:
        raise ValidationError("An invoice needs at least one item", field="items")

    terms = customer.payment_terms_days
    if terms is None:
        terms = settings.DEFAULT_PAYMENT_TERMS_DAYS
    invoice = Invoice(
        invoice_number=generate_invoice_number(db, invoice_date),
        customer_id=customer.id,
        sales_order_id=data.get("sales_order_id"),
        work_order_id=data.get("work_order_id"),
        invoice_date=invoice_date,
        due_date=data.get("due_date") or invoice_date + timedelta(days=terms),
        currency=data.get("currency") or customer.currency or settings.DEFAULT_CURRENCY,
        gst_percent=Decimal(str(data.get("gst_percent") or 0)),
        paid_amount=ZERO,
        adjustment_amount=ZERO,
        short_closed_amount=ZERO,
        status=InvoiceStatus.DRAFT.value,
        remarks=data.get("remarks"),
        created_by=user_id,
    )
    for item in items:
        invoice.items.append(_build_item(item))
    recalculate_invoice(invoice)
    db.add(invoice)
    db.flush()
    logger.info(
        f"Created invoice {invoice.invoice_number}",
        extra={"invoice_id": invoice.id, "customer_id": customer.id, "total": str(invoice.total_amount)},
    )
    return invoice


def update_invoice(db: Session, invoice: Invoice, changes: Dict[str, Any]) -> Invoice:
    """Edit a draft invoice; both the old and new dates must be in open periods."""
    if invoice.status != InvoiceStatus.DRAFT.value:
        raise InvalidStateError(
            f"Invoice {invoice.invoice_number} is {invoice.status}",
            current_state=invoice.status,
            allowed_states=[InvoiceStatus.DRAFT.value],
        )
    ensure_period_open(db, invoice.invoice_date)
    if changes.get("invoice_date"):
        ensure_period_open(db, changes["invoice_date"])
        invoice.invoice_date = changes["invoice_date"]
    for field in ("due_date", "remarks", "currency"):
        if changes.get(field) is not None:
            setattr(invoice, field, changes[field])
    if changes.get("gst_percent") is not None:
        invoice.gst_percent = Decimal(str(changes["gst_percent"]))
    if changes.get("items") is not None:
        if not changes["items"]:
            raise ValidationError("An invoice needs at least one item", field="items")
        invoice.items.clear()
        for item in changes["items"]:
            invoice.items.append(_build_item(item))
    recalculate_invoice(invoice)
    return invoice


def delete_invoice(db: Session, invoice: Invoice) -> None:
    if invoice.status != InvoiceStatus.DRAFT.value:
        raise InvalidStateError("Only draft invoices can be deleted", current_state=invoice.status)
    ensure_period_open(db, invoice.invoice_date)
    db.delete(invoice)
    db.flush()


def issue_invoice(db: Session, invoice: Invoice, user_id: Optional[int] = None) -> Invoice:
    if invoice.status != InvoiceStatus.DRAFT.value:
        raise InvalidStateError(
            f"Invoice {invoice.invoice_number} is {invoice.status}",
            current_state=invoice.status,
            allowed_states=[InvoiceStatus.DRAFT.value],
        )
    ensure_period_open(db, invoice.invoice_date)
    if money(invoice.total_amount) <= 0:
        raise ValidationError("Cannot issue an invoice with a zero total", field="total_amount")
    invoice.status = InvoiceStatus.ISSUED.value
    invoice.issued_at = datetime.utcnow()
    refresh_balance(invoice)
    record_audit(db, "invoices", invoice.id, "INVOICE_ISSUED",
                 new_data={"invoice_number": invoice.invoice_number, "total": invoice.total_amount},
                 user_id=user_id)
    db.flush()
    logger.info(f"Issued invoice {invoice.invoice_number}", extra={"invoice_id": invoice.id})
    return invoice


def cancel_invoice(db: Session, invoice: Invoice, user_id: Optional[int] = None) -> Invoice:
    if invoice.status in (InvoiceStatus.CANCELLED.value, InvoiceStatus.PAID.value,
                          InvoiceStatus.SHORT_CLOSED.value):
        raise InvalidStateError(f"Invoice {invoice.invoice_number} is {invoice.status}",
                                current_state=invoice.status)
    if invoice.allocations:
        raise InvalidStateError(
            f"Invoice {invoice.invoice_number} has receipts allocated; remove them first",
            current_state=invoice.status,
        )
    ensure_period_open(db, invoice.invoice_date)
    old = invoice.status
    invoice.status = InvoiceStatus.CANCELLED.value
    invoice.balance_amount = ZERO
    record_audit(db, "invoices", invoice.id, "INVOICE_CANCELLED", old_data={"status": old},
                 new_data={"status": invoice.status}, user_id=user_id)
    db.flush()
    return invoice


def short_close(db: Session, invoice: Invoice, reason: str, user_id: Optional[int] = None) -> Invoice:
    """Write off the remaining balance of an issued invoice."""
    if invoice.status not in PAYABLE_INVOICE_STATUSES:
        raise InvalidStateError(
            f"Invoice {invoice.invoice_number} is {invoice.status}",
            current_state=invoice.status,
            allowed_states=sorted(PAYABLE_INVOICE_STATUSES),
        )
    if not reason or not reason.strip():
        raise ValidationError("A reason is required to short-close an invoice", field="reason")
    ensure_period_open(db, invoice.invoice_date)

    written_off = money(invoice.balance_amount)
    invoice.short_closed_amount = money(invoice.short_closed_amount) + written_off
    invoice.short_close_reason = reason
    invoice.status = InvoiceStatus.SHORT_CLOSED.value
    refresh_balance(invoice)
    record_audit(db, "invoices", invoice.id, "INVOICE_SHORT_CLOSED",
                 new_data={"written_off": written_off, "reason": reason}, user_id=user_id)
    db.flush()
    logger.warning(f"Short-closed invoice {invoice.invoice_number}", extra={"written_off": str(written_off)})
    return invoice


def mark_overdue(db: Session, today: Optional[date] = None) -> int:
    """Flag issued / part-paid invoices past due with a balance. Returns the count."""
    today = today or date.today()
    invoices = (
        db.query(Invoice)
        .filter(
            Invoice.status.in_([InvoiceStatus.ISSUED.value, InvoiceStatus.PART_PAID.value]),
            Invoice.due_date < today,
            Invoice.balance_amount > 0,
        )
        .all()
    )
    for invoice in invoices:
        invoice.status = InvoiceStatus.OVERDUE.value
    if invoices:
        db.flush()
        logger.info(f"Marked {len(invoices)} invoice(s) overdue")
    return len(invoices)


# ============================================================================
# Aging
# ============================================================================

AGING_BUCKETS = (("0-30", 0, 30), ("31-60", 31, 60), ("61-90", 61, 90), ("90+", 91, None))


def customer_outstanding(db: Session, customer_id: int, today: Optional[date] = None) -> Dict[str, Any]:
    """Open balances of a customer bucketed by days past due."""
    today = today or date.today()
    buckets = {name: ZERO for name, _, _ in AGING_BUCKETS}
    invoices = (
        db.query(Invoice)
        .filter(
            Invoice.customer_id == customer_id,
            Invoice.status.in_(list(PAYABLE_INVOICE_STATUSES)),
            Invoice.balance_amount > 0,
        )
        .all()
    )
    for invoice in invoices:
        days = max((today - invoice.due_date).days, 0) if invoice.due_date else 0
        for name, low, high in AGING_BUCKETS:
            if days >= low and (high is None or days <= high):
                buckets[name] += money(invoice.balance_amount)
                break
    return {
        "customer_id": customer_id,
        "as_of": today,
        "buckets": buckets,
        "total": sum(buckets.values(), ZERO),
        "invoice_count": len(invoices),
    }

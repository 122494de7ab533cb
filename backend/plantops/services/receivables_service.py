"""
Receivables Service

Customer receipts, their allocation to invoices, and credit adjustments
(rejection / quality claim credits) applied against invoices.
"""
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from plantops.core.status_config import (
    AdjustmentStatus, AdjustmentType, PAYABLE_INVOICE_STATUSES, ReceiptStatus,
)
from plantops.exceptions import (
    BusinessRuleError, InvalidStateError, NotFoundError, QuantityExceededError, ValidationError,
)
from plantops.models import (
    CreditAdjustment, Customer, CustomerReceipt, Invoice, InvoiceAdjustment, NCR, ReceiptAllocation,
)
from plantops.services.audit_service import record_audit
from plantops.services.finance_service import ensure_period_open, money, refresh_payment_status
from plantops.services.numbering import generate_adjustment_number, generate_receipt_number
from plantops.logging_config import get_logger

logger = get_logger(__name__)


def _refresh_receipt_status(receipt: CustomerReceipt) -> None:
    allocated = money(receipt.allocated_amount)
    if allocated <= 0:
        receipt.status = ReceiptStatus.PENDING.value
    elif allocated >= money(receipt.amount):
        receipt.status = ReceiptStatus.FULLY_ALLOCATED.value
    else:
        receipt.status = ReceiptStatus.PARTIALLY_ALLOCATED.value


def get_receipt(db: Session, receipt_id: int) -> CustomerReceipt:
    receipt = db.query(CustomerReceipt).filter(CustomerReceipt.id == receipt_id).first()
    if not receipt:
        raise NotFoundError("CustomerReceipt", receipt_id)
    return receipt


def record_receipt(db: Session, data: Dict[str, Any], user_id: Optional[int] = None) -> CustomerReceipt:
    customer = db.query(Customer).filter(Customer.id == data.get("customer_id")).first()
    if not customer:
        raise NotFoundError("Customer", data.get("customer_id"))
    amount = money(data.get("amount"))
    if amount <= 0:
        raise ValidationError("Receipt amount must be greater than 0", field="amount")
    receipt_date = data.get("receipt_date") or date.today()
    ensure_period_open(db, receipt_date)

    receipt = CustomerReceipt(
        receipt_number=generate_receipt_number(db, receipt_date),
        customer_id=customer.id,
        receipt_date=receipt_date,
        amount=amount,
        allocated_amount=Decimal("0"),
        payment_mode=data.get("payment_mode"),
        reference=data.get("reference"),
        status=ReceiptStatus.PENDING.value,
        remarks=data.get("remarks"),
        created_by=user_id,
    )
    db.add(receipt)
    db.flush()
    logger.info(f"Recorded receipt {receipt.receipt_number}", extra={"customer_id": customer.id,
                                                                      "amount": str(amount)})
    return receipt


def delete_receipt(db: Session, receipt: CustomerReceipt) -> None:
    if receipt.allocations:
        raise InvalidStateError(
            f"Receipt {receipt.receipt_number} has allocations; remove them first",
            current_state=receipt.status,
        )
    ensure_period_open(db, receipt.receipt_date)
    db.delete(receipt)
    db.flush()


def allocate_receipt(
    db: Session,
    receipt: CustomerReceipt,
    invoice: Invoice,
    amount: Any,
    user_id: Optional[int] = None,
) -> ReceiptAllocation:
    """
    Apply part of a receipt to an invoice.

    Raises:
        ValidationError: amount not positive, or customer mismatch
        InvalidStateError: invoice not open for payment
        QuantityExceededError: more than the invoice balance or receipt remainder
        PeriodLockedError: receipt or invoice in a locked month
    """
    amount = money(amount)
    if amount <= 0:
        raise ValidationError("Allocation amount must be greater than 0", field="amount")
    if invoice.customer_id != receipt.customer_id:
        raise ValidationError("Receipt and invoice belong to different customers", field="invoice_id")
    if invoice.status not in PAYABLE_INVOICE_STATUSES:
        raise InvalidStateError(
            f"Invoice {invoice.invoice_number} is {invoice.status}",
            current_state=invoice.status,
            allowed_states=sorted(PAYABLE_INVOICE_STATUSES),
        )
    ensure_period_open(db, receipt.receipt_date)
    ensure_period_open(db, invoice.invoice_date)
    if amount > money(invoice.balance_amount):
        raise QuantityExceededError(f"Allocation to {invoice.invoice_number}",
                                    requested=amount, available=money(invoice.balance_amount))
    if amount > money(receipt.unallocated_amount):
        raise QuantityExceededError(f"Allocation from {receipt.receipt_number}",
                                    requested=amount, available=money(receipt.unallocated_amount))

    allocation = (
        db.query(ReceiptAllocation)
        .filter(ReceiptAllocation.receipt_id == receipt.id, ReceiptAllocation.invoice_id == invoice.id)
        .first()
    )
    if allocation:
        allocation.amount = money(allocation.amount) + amount
    else:
        allocation = ReceiptAllocation(receipt_id=receipt.id, invoice_id=invoice.id, amount=amount,
                                       allocated_by=user_id)
        db.add(allocation)

    invoice.paid_amount = money(invoice.paid_amount) + amount
    refresh_payment_status(invoice)
    receipt.allocated_amount = money(receipt.allocated_amount) + amount
    _refresh_receipt_status(receipt)
    db.flush()

    record_audit(db, "receipt_allocations", allocation.id, "ALLOCATION_CREATED",
                 new_data={"receipt": receipt.receipt_number, "invoice": invoice.invoice_number,
                           "amount": amount},
                 user_id=user_id)
    logger.info(
        f"Allocated {amount} from {receipt.receipt_number} to {invoice.invoice_number}",
        extra={"invoice_status": invoice.status},
    )
    return allocation


def remove_allocation(db: Session, allocation: ReceiptAllocation, user_id: Optional[int] = None) -> None:
    receipt = allocation.receipt
    invoice = allocation.invoice
    ensure_period_open(db, receipt.receipt_date)
    ensure_period_open(db, invoice.invoice_date)

    amount = money(allocation.amount)
    invoice.paid_amount = max(money(invoice.paid_amount) - amount, Decimal("0"))
    refresh_payment_status(invoice)
    receipt.allocated_amount = max(money(receipt.allocated_amount) - amount, Decimal("0"))
    _refresh_receipt_status(receipt)

    record_audit(db, "receipt_allocations", allocation.id, "ALLOCATION_REMOVED",
                 old_data={"receipt": receipt.receipt_number, "invoice": invoice.invoice_number,
                           "amount": amount},
                 user_id=user_id)
    db.delete(allocation)
    db.flush()


def create_credit_adjustment(db: Session, data: Dict[str, Any], user_id: Optional[int] = None) -> CreditAdjustment:
    customer = db.query(Customer).filter(Customer.id == data.get("customer_id")).first()
    if not customer:
        raise NotFoundError("Customer", data.get("customer_id"))
    adjustment_type = data.get("adjustment_type") or AdjustmentType.OTHER.value
    if adjustment_type not in {t.value for t in AdjustmentType}:
        raise ValidationError(f"Unknown adjustment type '{adjustment_type}'", field="adjustment_type")
    amount = money(data.get("amount"))
    if amount <= 0:
        raise ValidationError("Adjustment amount must be greater than 0", field="amount")
    if data.get("ncr_id") and not db.query(NCR.id).filter(NCR.id == data["ncr_id"]).first():
        raise NotFoundError("NCR", data["ncr_id"])

    adjustment = CreditAdjustment(
        adjustment_number=generate_adjustment_number(db),
        customer_id=customer.id,
        adjustment_type=adjustment_type,
        ncr_id=data.get("ncr_id"),
        amount=amount,
        remaining_amount=amount,
        reason=data.get("reason"),
        status=AdjustmentStatus.PENDING.value,
        created_by=user_id,
    )
    db.add(adjustment)
    db.flush()
    return adjustment


def apply_credit_adjustment(
    db: Session,
    adjustment: CreditAdjustment,
    invoice: Invoice,
    amount: Any,
    user_id: Optional[int] = None,
) -> InvoiceAdjustment:
    amount = money(amount)
    if amount <= 0:
        raise ValidationError("Amount must be greater than 0", field="amount")
    if adjustment.customer_id != invoice.customer_id:
        raise ValidationError("Adjustment and invoice belong to different customers", field="invoice_id")
    if invoice.status not in PAYABLE_INVOICE_STATUSES:
        raise InvalidStateError(f"Invoice {invoice.invoice_number} is {invoice.status}",
                                current_state=invoice.status)
    if adjustment.status == AdjustmentStatus.APPLIED.value:
        raise BusinessRuleError(f"Adjustment {adjustment.adjustment_number} is fully applied",
                                rule="adjustment_remaining")
    ensure_period_open(db, invoice.invoice_date)
    if amount > money(adjustment.remaining_amount):
        raise QuantityExceededError(f"Apply {adjustment.adjustment_number}", requested=amount,
                                    available=money(adjustment.remaining_amount))
    if amount > money(invoice.balance_amount):
        raise QuantityExceededError(f"Credit to {invoice.invoice_number}", requested=amount,
                                    available=money(invoice.balance_amount))

    application = InvoiceAdjustment(adjustment_id=adjustment.id, invoice_id=invoice.id, amount=amount,
                                    applied_by=user_id)
    db.add(application)
    adjustment.remaining_amount = money(adjustment.remaining_amount) - amount
    adjustment.status = (
        AdjustmentStatus.APPLIED.value if adjustment.remaining_amount <= 0 else AdjustmentStatus.PARTIAL.value
    )
    invoice.adjustment_amount = money(invoice.adjustment_amount) + amount
    refresh_payment_status(invoice)
    db.flush()

    record_audit(db, "invoice_adjustments", application.id, "CREDIT_APPLIED",
                 new_data={"adjustment": adjustment.adjustment_number, "invoice": invoice.invoice_number,
                           "amount": amount},
                 user_id=user_id)
    logger.info(f"Applied {amount} of {adjustment.adjustment_number} to {invoice.invoice_number}")
    return application

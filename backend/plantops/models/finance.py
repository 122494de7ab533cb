"""
Accounts receivable: invoices, customer receipts, allocations,
credit adjustments and finance period locks
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Date, ForeignKey, Text, CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime

from plantops.db.base import Base


class Invoice(Base):
    """
    Customer invoice.

    balance_amount = total_amount - paid_amount - adjustment_amount
    net_payable    = total_amount - adjustment_amount
    """
    __tablename__ = "invoices"
    __table_args__ = (
        CheckConstraint("paid_amount >= 0", name="ck_invoice_paid_non_negative"),
        CheckConstraint("adjustment_amount >= 0", name="ck_invoice_adjustment_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(30), unique=True, nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    sales_order_id = Column(Integer, ForeignKey("sales_orders.id"), nullable=True, index=True)
    work_order_id = Column(Integer, ForeignKey("work_orders.id"), nullable=True, index=True)

    invoice_date = Column(Date, nullable=False, index=True)
    due_date = Column(Date, nullable=False, index=True)
    currency = Column(String(3), nullable=False, default="USD")
    gst_percent = Column(Numeric(5, 2), nullable=False, default=0)

    subtotal = Column(Numeric(14, 2), nullable=False, default=0)
    gst_amount = Column(Numeric(14, 2), nullable=False, default=0)
    total_amount = Column(Numeric(14, 2), nullable=False, default=0)
    paid_amount = Column(Numeric(14, 2), nullable=False, default=0)
    adjustment_amount = Column(Numeric(14, 2), nullable=False, default=0)
    balance_amount = Column(Numeric(14, 2), nullable=False, default=0)
    short_closed_amount = Column(Numeric(14, 2), nullable=False, default=0)

    status = Column(String(20), nullable=False, default="draft", index=True)
    remarks = Column(Text, nullable=True)
    short_close_reason = Column(Text, nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    issued_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("Customer")
    items = relationship(
        "InvoiceItem", back_populates="invoice", cascade="all, delete-orphan", order_by="InvoiceItem.id"
    )
    allocations = relationship("ReceiptAllocation", back_populates="invoice")

    @property
    def net_payable(self):
        return (self.total_amount or 0) - (self.adjustment_amount or 0)


class InvoiceItem(Base):
    __tablename__ = "invoice_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_invoice_item_quantity_positive"),
        CheckConstraint("rate >= 0", name="ck_invoice_item_rate_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    dispatch_id = Column(Integer, ForeignKey("dispatches.id"), nullable=True, index=True)
    item_code = Column(String(60), nullable=True)
    description = Column(String(255), nullable=False)
    quantity = Column(Numeric(14, 3), nullable=False)
    rate = Column(Numeric(14, 4), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False, default=0)

    invoice = relationship("Invoice", back_populates="items")


class CustomerReceipt(Base):
    """Money received from a customer, to be allocated against invoices"""
    __tablename__ = "customer_receipts"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_receipt_amount_positive"),
        CheckConstraint("allocated_amount >= 0", name="ck_receipt_allocated_non_negative"),
        CheckConstraint("allocated_amount <= amount", name="ck_receipt_allocated_le_amount"),
    )

    id = Column(Integer, primary_key=True, index=True)
    receipt_number = Column(String(30), unique=True, nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    receipt_date = Column(Date, nullable=False, index=True)
    amount = Column(Numeric(14, 2), nullable=False)
    allocated_amount = Column(Numeric(14, 2), nullable=False, default=0)
    payment_mode = Column(String(30), nullable=True)  # bank_transfer, cheque, cash
    reference = Column(String(100), nullable=True)
    status = Column(String(30), nullable=False, default="pending", index=True)
    remarks = Column(Text, nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    allocations = relationship("ReceiptAllocation", back_populates="receipt")

    @property
    def unallocated_amount(self):
        return (self.amount or 0) - (self.allocated_amount or 0)


class ReceiptAllocation(Base):
    __tablename__ = "receipt_allocations"
    __table_args__ = (
        UniqueConstraint("receipt_id", "invoice_id", name="uq_allocation_receipt_invoice"),
        CheckConstraint("amount > 0", name="ck_allocation_amount_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    receipt_id = Column(Integer, ForeignKey("customer_receipts.id"), nullable=False, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    amount = Column(Numeric(14, 2), nullable=False)
    allocated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    allocated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    receipt = relationship("CustomerReceipt", back_populates="allocations")
    invoice = relationship("Invoice", back_populates="allocations")


class CreditAdjustment(Base):
    """Credit owed to a customer (rejections, quality claims, price disputes)"""
    __tablename__ = "credit_adjustments"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_adjustment_amount_positive"),
        CheckConstraint("remaining_amount >= 0", name="ck_adjustment_remaining_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    adjustment_number = Column(String(30), unique=True, nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    adjustment_type = Column(String(30), nullable=False)
    ncr_id = Column(Integer, ForeignKey("ncrs.id"), nullable=True)
    amount = Column(Numeric(14, 2), nullable=False)
    remaining_amount = Column(Numeric(14, 2), nullable=False)
    reason = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="pending", index=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    applications = relationship("InvoiceAdjustment", back_populates="adjustment")


class InvoiceAdjustment(Base):
    __tablename__ = "invoice_adjustments"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_invoice_adjustment_amount_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    adjustment_id = Column(Integer, ForeignKey("credit_adjustments.id"), nullable=False, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    amount = Column(Numeric(14, 2), nullable=False)
    applied_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    applied_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    adjustment = relationship("CreditAdjustment", back_populates="applications")


class FinancePeriodLock(Base):
    """A closed accounting month; documents dated inside it are frozen"""
    __tablename__ = "finance_period_locks"
    __table_args__ = (
        UniqueConstraint("year", "month", name="uq_period_lock_year_month"),
        CheckConstraint("month BETWEEN 1 AND 12", name="ck_period_lock_month"),
    )

    id = Column(Integer, primary_key=True, index=True)
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=False)
    reason = Column(Text, nullable=True)
    locked_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    locked_at = Column(DateTime, nullable=False, default=datetime.utcnow)

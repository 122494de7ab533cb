"""
Sales Order Model

Customer purchase orders as entered by the sales desk. Approving a line
generates its work order.
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Date, ForeignKey, Text, CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime

from plantops.db.base import Base


class SalesOrder(Base):
    """Sales Order - header with commercial terms and material defaults"""
    __tablename__ = "sales_orders"

    id = Column(Integer, primary_key=True, index=True)

    # SO-YYYYMMDD-NNN, immutable once assigned
    so_number = Column(String(30), unique=True, nullable=False, index=True)

    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    po_number = Column(String(60), nullable=True, index=True)
    po_date = Column(Date, nullable=True)
    expected_delivery_date = Column(Date, nullable=True)

    # Commercial terms (copied into each WO's financial snapshot)
    currency = Column(String(3), nullable=True)
    payment_terms_days = Column(Integer, nullable=True)
    incoterm = Column(String(20), nullable=True)
    total_amount = Column(Numeric(14, 2), nullable=False, default=0)

    # Material defaults for all lines
    material_rod_forging_size_mm = Column(String(60), nullable=True)
    alloy = Column(String(60), nullable=True)
    gross_weight_per_pc_g = Column(Numeric(12, 3), nullable=True)
    net_weight_per_pc_g = Column(Numeric(12, 3), nullable=True)
    cycle_time_seconds = Column(Numeric(10, 2), nullable=True)

    # draft → pending_approval → approved → fulfilled; cancelled from any open state
    status = Column(String(30), nullable=False, default="draft", index=True)

    notes = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    fulfilled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("Customer")
    lines = relationship(
        "SalesOrderLine",
        back_populates="sales_order",
        cascade="all, delete-orphan",
        order_by="SalesOrderLine.line_number",
    )

    def __repr__(self):
        return f"<SalesOrder {self.so_number} ({self.status})>"


class SalesOrderLine(Base):
    """Sales order line item - one part number, one quantity, one work order"""
    __tablename__ = "sales_order_lines"
    __table_args__ = (
        UniqueConstraint("sales_order_id", "line_number", name="uq_so_line_number"),
        CheckConstraint("quantity > 0", name="ck_so_line_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    sales_order_id = Column(Integer, ForeignKey("sales_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    line_number = Column(Integer, nullable=False)

    item_code = Column(String(60), nullable=False, index=True)
    description = Column(String(255), nullable=True)
    quantity = Column(Integer, nullable=False)
    price_per_pc = Column(Numeric(14, 4), nullable=False, default=0)
    due_date = Column(Date, nullable=True)

    # Per-line material overrides (take priority over SO and item master)
    material_rod_forging_size_mm = Column(String(60), nullable=True)
    alloy = Column(String(60), nullable=True)
    gross_weight_per_pc_g = Column(Numeric(12, 3), nullable=True)
    net_weight_per_pc_g = Column(Numeric(12, 3), nullable=True)
    cycle_time_seconds = Column(Numeric(10, 2), nullable=True)

    # pending, approved, cancelled
    status = Column(String(20), nullable=False, default="pending", index=True)

    # No FK: work_orders.sales_order_line_id already references this table
    work_order_id = Column(Integer, nullable=True, index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    sales_order = relationship("SalesOrder", back_populates="lines")

    @property
    def line_amount(self):
        return (self.price_per_pc or 0) * (self.quantity or 0)

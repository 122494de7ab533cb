"""
Raw material lots and their issue to work orders
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Date, ForeignKey, Text, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from plantops.db.base import Base


class MaterialLot(Base):
    """
    A received heat/lot of bar stock.

    qc_status follows the incoming inspection; a failed or held lot
    cannot be issued.
    """
    __tablename__ = "material_lots"
    __table_args__ = (
        CheckConstraint("quantity_received_kg > 0", name="ck_lot_received_positive"),
        CheckConstraint("quantity_issued_kg >= 0", name="ck_lot_issued_non_negative"),
        CheckConstraint("quantity_issued_kg <= quantity_received_kg", name="ck_lot_issued_le_received"),
    )

    id = Column(Integer, primary_key=True, index=True)
    lot_number = Column(String(30), unique=True, nullable=False, index=True)
    heat_no = Column(String(60), nullable=True, index=True)
    alloy = Column(String(60), nullable=True)
    size_mm = Column(String(60), nullable=True)
    supplier = Column(String(200), nullable=True)
    supplier_invoice = Column(String(60), nullable=True)

    quantity_received_kg = Column(Numeric(12, 3), nullable=False)
    quantity_issued_kg = Column(Numeric(12, 3), nullable=False, default=0)

    qc_status = Column(String(20), nullable=False, default="pending")  # pending, passed, failed, hold
    received_date = Column(Date, nullable=False)
    received_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    issues = relationship("MaterialIssue", back_populates="lot")

    @property
    def available_kg(self):
        return (self.quantity_received_kg or 0) - (self.quantity_issued_kg or 0)


class MaterialIssue(Base):
    __tablename__ = "material_issues"
    __table_args__ = (
        CheckConstraint("quantity_kg > 0", name="ck_issue_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    material_lot_id = Column(Integer, ForeignKey("material_lots.id"), nullable=False, index=True)
    work_order_id = Column(Integer, ForeignKey("work_orders.id"), nullable=False, index=True)
    quantity_kg = Column(Numeric(12, 3), nullable=False)
    remarks = Column(Text, nullable=True)
    issued_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    issued_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    lot = relationship("MaterialLot", back_populates="issues")

"""
Packing: dispatch QC approvals and cartons
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Text, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from plantops.db.base import Base


class DispatchQCBatch(Base):
    """
    Quality release of a quantity for shipment.

    Cartons packed against it consume the approved quantity; status is
    derived from consumption (approved → partially_consumed → consumed).
    """
    __tablename__ = "dispatch_qc_batches"
    __table_args__ = (
        CheckConstraint("qc_approved_quantity > 0", name="ck_dqc_approved_positive"),
        CheckConstraint("consumed_quantity >= 0", name="ck_dqc_consumed_non_negative"),
        CheckConstraint("consumed_quantity <= qc_approved_quantity", name="ck_dqc_consumed_le_approved"),
    )

    id = Column(Integer, primary_key=True, index=True)
    qc_batch_id = Column(String(20), unique=True, nullable=False, index=True)  # DQC-00001-26
    work_order_id = Column(Integer, ForeignKey("work_orders.id"), nullable=False, index=True)
    production_batch_id = Column(Integer, ForeignKey("production_batches.id"), nullable=False, index=True)

    qc_approved_quantity = Column(Integer, nullable=False)
    consumed_quantity = Column(Integer, nullable=False, default=0)
    status = Column(String(30), nullable=False, default="approved", index=True)
    remarks = Column(Text, nullable=True)

    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    @property
    def remaining_quantity(self) -> int:
        return self.qc_approved_quantity - (self.consumed_quantity or 0)


class Carton(Base):
    __tablename__ = "cartons"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_carton_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    carton_number = Column(String(30), unique=True, nullable=False, index=True)
    work_order_id = Column(Integer, ForeignKey("work_orders.id"), nullable=False, index=True)
    production_batch_id = Column(Integer, ForeignKey("production_batches.id"), nullable=False, index=True)
    dispatch_qc_batch_id = Column(Integer, ForeignKey("dispatch_qc_batches.id"), nullable=True, index=True)

    quantity = Column(Integer, nullable=False)
    gross_weight_kg = Column(Numeric(10, 3), nullable=True)
    net_weight_kg = Column(Numeric(10, 3), nullable=True)
    # packed, ready_for_dispatch, dispatched
    status = Column(String(30), nullable=False, default="packed", index=True)

    packed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    packed_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    dispatch_qc_batch = relationship("DispatchQCBatch")

"""
Production batches and daily production logs
"""
from sqlalchemy import (
    Column, Integer, String, DateTime, Date, ForeignKey, Text, Boolean, CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime

from plantops.db.base import Base


class ProductionBatch(Base):
    """
    A run of parts for one work order.

    A new batch starts when production resumes after a dispatch
    (post_dispatch) or after a long idle gap (gap_restart). Each batch
    carries its own QC gates and quantity ledger:

        qc_pending_qty = produced_qty - qc_approved_qty - qc_rejected_qty
    """
    __tablename__ = "production_batches"
    __table_args__ = (
        UniqueConstraint("work_order_id", "batch_number", name="uq_batch_number_per_wo"),
        CheckConstraint(
            "trigger_reason IN ('initial', 'post_dispatch', 'gap_restart')",
            name="ck_batch_trigger_reason",
        ),
        CheckConstraint("produced_qty >= 0", name="ck_batch_produced_non_negative"),
        CheckConstraint("qc_approved_qty >= 0", name="ck_batch_approved_non_negative"),
        CheckConstraint("qc_rejected_qty >= 0", name="ck_batch_rejected_non_negative"),
        CheckConstraint("dispatched_qty >= 0", name="ck_batch_dispatched_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    work_order_id = Column(Integer, ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    batch_number = Column(Integer, nullable=False)
    trigger_reason = Column(String(20), nullable=False, default="initial")
    previous_batch_id = Column(Integer, ForeignKey("production_batches.id"), nullable=True)
    batch_quantity = Column(Integer, nullable=True)

    started_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    ended_at = Column(DateTime, nullable=True)

    # Stage / location
    stage = Column(String(30), nullable=False, default="production")
    stage_entered_at = Column(DateTime, nullable=True, default=datetime.utcnow)
    location_type = Column(String(20), nullable=False, default="factory")
    location_ref = Column(String(200), nullable=True)
    current_process = Column(String(60), nullable=True)

    # QC gates
    qc_material_status = Column(String(20), nullable=False, default="pending")
    qc_material_approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    qc_material_approved_at = Column(DateTime, nullable=True)
    qc_first_piece_status = Column(String(20), nullable=False, default="pending")
    qc_first_piece_approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    qc_first_piece_approved_at = Column(DateTime, nullable=True)
    qc_final_status = Column(String(20), nullable=False, default="pending")
    qc_final_approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    qc_final_approved_at = Column(DateTime, nullable=True)
    production_allowed = Column(Boolean, nullable=False, default=False)
    dispatch_allowed = Column(Boolean, nullable=False, default=False)

    # Quantity ledger
    produced_qty = Column(Integer, nullable=False, default=0)
    qc_approved_qty = Column(Integer, nullable=False, default=0)
    qc_rejected_qty = Column(Integer, nullable=False, default=0)
    qc_pending_qty = Column(Integer, nullable=False, default=0)
    dispatched_qty = Column(Integer, nullable=False, default=0)

    production_complete = Column(Boolean, nullable=False, default=False)
    production_completed_at = Column(DateTime, nullable=True)
    production_completed_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    work_order = relationship("WorkOrder", back_populates="batches")
    logs = relationship("ProductionLog", back_populates="batch", order_by="ProductionLog.log_date")

    def __repr__(self):
        return f"<ProductionBatch wo={self.work_order_id} #{self.batch_number}>"

    @property
    def is_active(self) -> bool:
        return self.ended_at is None


class ProductionLog(Base):
    """Shift-wise output booked against a batch"""
    __tablename__ = "production_logs"
    __table_args__ = (
        CheckConstraint("ok_quantity >= 0", name="ck_log_ok_non_negative"),
        CheckConstraint("rejection_quantity >= 0", name="ck_log_rejection_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    work_order_id = Column(Integer, ForeignKey("work_orders.id"), nullable=False, index=True)
    production_batch_id = Column(Integer, ForeignKey("production_batches.id"), nullable=False, index=True)

    log_date = Column(Date, nullable=False, index=True)
    shift = Column(String(10), nullable=True)
    machine = Column(String(60), nullable=True)
    operator = Column(String(120), nullable=True)
    operation = Column(String(60), nullable=True)

    ok_quantity = Column(Integer, nullable=False, default=0)
    rejection_quantity = Column(Integer, nullable=False, default=0)
    rework_quantity = Column(Integer, nullable=False, default=0)
    downtime_minutes = Column(Integer, nullable=False, default=0)
    remarks = Column(Text, nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    batch = relationship("ProductionBatch", back_populates="logs")

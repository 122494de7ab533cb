"""
Quality models: inspection records, non-conformance reports and their actions
"""
from sqlalchemy import Column, Integer, String, DateTime, Date, ForeignKey, Text, CheckConstraint, Index, text
from sqlalchemy.orm import relationship
from datetime import datetime

from plantops.db.base import Base


class QCRecord(Base):
    """
    One inspection against a work order (optionally a batch or material lot).

    `result` is the raw inspection outcome (pending/pass/fail/rework/waived);
    gate statuses derived from it live on the WO and batch.
    """
    __tablename__ = "qc_records"
    __table_args__ = (
        CheckConstraint(
            "qc_type IN ('incoming', 'first_piece', 'in_process', 'final')",
            name="ck_qc_type",
        ),
        CheckConstraint("inspected_quantity >= 0", name="ck_qc_inspected_non_negative"),
        CheckConstraint("rejected_quantity >= 0", name="ck_qc_rejected_non_negative"),
        # One gate record per WO (or batch) for first piece, one per issued lot for incoming.
        # Final and in-process inspections repeat freely.
        Index(
            "uq_qc_first_piece_wo", "work_order_id", unique=True,
            sqlite_where=text("qc_type = 'first_piece' AND production_batch_id IS NULL"),
            postgresql_where=text("qc_type = 'first_piece' AND production_batch_id IS NULL"),
        ),
        Index(
            "uq_qc_first_piece_batch", "production_batch_id", unique=True,
            sqlite_where=text("qc_type = 'first_piece' AND production_batch_id IS NOT NULL"),
            postgresql_where=text("qc_type = 'first_piece' AND production_batch_id IS NOT NULL"),
        ),
        Index(
            "uq_qc_incoming_lot", "work_order_id", "material_lot_id", unique=True,
            sqlite_where=text("qc_type = 'incoming' AND material_lot_id IS NOT NULL"),
            postgresql_where=text("qc_type = 'incoming' AND material_lot_id IS NOT NULL"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    qc_number = Column(String(30), unique=True, nullable=False, index=True)
    work_order_id = Column(Integer, ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    production_batch_id = Column(Integer, ForeignKey("production_batches.id"), nullable=True, index=True)
    material_lot_id = Column(Integer, ForeignKey("material_lots.id"), nullable=True, index=True)

    qc_type = Column(String(20), nullable=False, index=True)
    result = Column(String(20), nullable=False, default="pending")
    inspected_quantity = Column(Integer, nullable=False, default=0)
    rejected_quantity = Column(Integer, nullable=False, default=0)
    measurements = Column(Text, nullable=True)
    remarks = Column(Text, nullable=True)

    inspected_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    inspected_at = Column(DateTime, nullable=True)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self):
        return f"<QCRecord {self.qc_number} {self.qc_type}={self.result}>"


class NCR(Base):
    """
    Non-Conformance Report.

    Lifecycle: OPEN → ACTION_IN_PROGRESS → EFFECTIVENESS_PENDING → CLOSED
    Closing requires a root cause and every action verified.
    """
    __tablename__ = "ncrs"

    id = Column(Integer, primary_key=True, index=True)
    ncr_number = Column(String(30), unique=True, nullable=False, index=True)
    ncr_type = Column(String(20), nullable=False, default="INTERNAL")  # INTERNAL, CUSTOMER, SUPPLIER

    work_order_id = Column(Integer, ForeignKey("work_orders.id"), nullable=True, index=True)
    qc_record_id = Column(Integer, ForeignKey("qc_records.id"), nullable=True, index=True)
    material_lot_id = Column(Integer, ForeignKey("material_lots.id"), nullable=True)

    quantity_affected = Column(Integer, nullable=False, default=0)
    unit = Column(String(10), nullable=False, default="pcs")
    issue_description = Column(Text, nullable=False)
    root_cause = Column(Text, nullable=True)
    disposition = Column(String(30), nullable=True)  # REWORK, SCRAP, USE_AS_IS, RETURN_TO_SUPPLIER
    due_date = Column(Date, nullable=True)

    status = Column(String(30), nullable=False, default="OPEN", index=True)
    raised_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    closed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    closed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    actions = relationship(
        "NCRAction", back_populates="ncr", cascade="all, delete-orphan", order_by="NCRAction.id"
    )


class NCRAction(Base):
    __tablename__ = "ncr_actions"

    id = Column(Integer, primary_key=True, index=True)
    ncr_id = Column(Integer, ForeignKey("ncrs.id", ondelete="CASCADE"), nullable=False, index=True)
    action_type = Column(String(20), nullable=False, default="CORRECTIVE")  # CORRECTIVE, PREVENTIVE
    description = Column(Text, nullable=False)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    due_date = Column(Date, nullable=True)
    status = Column(String(20), nullable=False, default="pending")
    completed_at = Column(DateTime, nullable=True)
    verified_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    verified_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    ncr = relationship("NCR", back_populates="actions")

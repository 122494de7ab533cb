"""
Work Order model

A work order is generated from one approved sales order line and tracks
that quantity through the shop: stages, QC gates, production batches,
external processing, packing and dispatch.
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Date, ForeignKey, Text, Boolean, JSON, CheckConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime

from plantops.db.base import Base


class WorkOrder(Base):
    """
    Work Order - the core production entity.

    Lifecycle: pending → in_progress → qc → packing → completed
    Side paths: on_hold, cancelled (cascade from sales order cancellation)

    QC gates (material, first piece, final) hold normalized statuses
    (see plantops.core.status_config.normalize_qc_status). While
    `production_locked` is set the WO cannot enter production stages or
    log output.
    """
    __tablename__ = "work_orders"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_wo_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    wo_number = Column(String(30), unique=True, nullable=False, index=True)
    display_id = Column(String(30), nullable=False, index=True)

    # References
    sales_order_id = Column(Integer, ForeignKey("sales_orders.id"), nullable=True, index=True)
    sales_order_line_id = Column(Integer, ForeignKey("sales_order_lines.id"), nullable=True, unique=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)
    customer_po = Column(String(60), nullable=True)

    item_code = Column(String(60), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=True, index=True)

    # Status / stage
    status = Column(String(20), nullable=False, default="pending", index=True)
    current_stage = Column(String(20), nullable=False, default="goods_in", index=True)
    priority = Column(Integer, nullable=False, default=3)  # 1=highest, 5=lowest

    # Resolved material specs
    material_size_mm = Column(String(60), nullable=True)
    alloy = Column(String(60), nullable=True)
    gross_weight_per_pc_g = Column(Numeric(12, 3), nullable=True)
    net_weight_per_pc_g = Column(Numeric(12, 3), nullable=True)
    cycle_time_seconds = Column(Numeric(10, 2), nullable=True)

    # Commercial terms frozen at WO creation
    financial_snapshot = Column(JSON, nullable=True)

    # QC gates
    qc_material_status = Column(String(20), nullable=False, default="not_started")
    qc_material_approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    qc_material_approved_at = Column(DateTime, nullable=True)
    qc_first_piece_status = Column(String(20), nullable=False, default="not_started")
    qc_first_piece_approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    qc_first_piece_approved_at = Column(DateTime, nullable=True)
    qc_final_status = Column(String(20), nullable=False, default="not_started")
    qc_final_approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    qc_final_approved_at = Column(DateTime, nullable=True)
    qc_status = Column(String(20), nullable=False, default="pending")  # pending, approved, failed
    production_locked = Column(Boolean, nullable=False, default=False)

    # Aggregates recomputed from batches, dispatches and external moves
    qty_completed = Column(Integer, nullable=False, default=0)
    qty_rejected = Column(Integer, nullable=False, default=0)
    qty_dispatched = Column(Integer, nullable=False, default=0)
    qty_external_wip = Column(Integer, nullable=False, default=0)
    completion_pct = Column(Numeric(6, 2), nullable=False, default=0)

    production_complete = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    sales_order = relationship("SalesOrder")
    customer = relationship("Customer")
    batches = relationship(
        "ProductionBatch",
        back_populates="work_order",
        order_by="ProductionBatch.batch_number",
        cascade="all, delete-orphan",
    )
    stage_history = relationship(
        "WOStageHistory",
        back_populates="work_order",
        order_by="WOStageHistory.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<WorkOrder {self.wo_number} ({self.status}/{self.current_stage})>"

    @property
    def is_open(self) -> bool:
        return self.status not in ("completed", "cancelled")


class WOStageHistory(Base):
    """Append-only log of stage and status changes for a work order"""
    __tablename__ = "wo_stage_history"

    id = Column(Integer, primary_key=True, index=True)
    work_order_id = Column(Integer, ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=False, index=True)
    event = Column(String(30), nullable=False, default="stage_change")  # wo_created, stage_change, status_change
    from_stage = Column(String(30), nullable=True)
    to_stage = Column(String(30), nullable=True)
    from_status = Column(String(20), nullable=True)
    to_status = Column(String(20), nullable=True)
    reason = Column(Text, nullable=True)
    changed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    changed_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    work_order = relationship("WorkOrder", back_populates="stage_history")

"""
Dispatch records and customer shipments
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from plantops.db.base import Base


class Dispatch(Base):
    """Quantity released out of the plant from a batch (optionally a carton)"""
    __tablename__ = "dispatches"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_dispatch_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    dispatch_number = Column(String(30), unique=True, nullable=False, index=True)
    work_order_id = Column(Integer, ForeignKey("work_orders.id"), nullable=False, index=True)
    production_batch_id = Column(Integer, ForeignKey("production_batches.id"), nullable=False, index=True)
    carton_id = Column(Integer, ForeignKey("cartons.id"), nullable=True, index=True)
    shipment_id = Column(Integer, ForeignKey("shipments.id"), nullable=True, index=True)

    quantity = Column(Integer, nullable=False)
    remarks = Column(Text, nullable=True)
    dispatched_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    dispatched_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)


class Shipment(Base):
    """Customer consignment; leaving `pending` is gated on batch QC"""
    __tablename__ = "shipments"

    id = Column(Integer, primary_key=True, index=True)
    shipment_number = Column(String(30), unique=True, nullable=False, index=True)
    sales_order_id = Column(Integer, ForeignKey("sales_orders.id"), nullable=True, index=True)
    work_order_id = Column(Integer, ForeignKey("work_orders.id"), nullable=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=True, index=True)
    batch_id = Column(Integer, ForeignKey("production_batches.id"), nullable=True)

    carrier = Column(String(100), nullable=True)
    tracking_number = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    shipped_at = Column(DateTime, nullable=True)
    delivered_at = Column(DateTime, nullable=True)
    remarks = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    dispatches = relationship("Dispatch")

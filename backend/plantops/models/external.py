"""
External (outsourced) processing: challans out and material receipts back
"""
from sqlalchemy import Column, Integer, String, DateTime, Date, ForeignKey, Text, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from plantops.db.base import Base


class ExternalMovement(Base):
    """Parts sent out to a partner under a delivery challan"""
    __tablename__ = "external_movements"
    __table_args__ = (
        CheckConstraint("quantity_sent > 0", name="ck_move_sent_positive"),
        CheckConstraint("quantity_returned >= 0", name="ck_move_returned_non_negative"),
        CheckConstraint("quantity_rejected >= 0", name="ck_move_rejected_non_negative"),
        CheckConstraint(
            "quantity_returned + quantity_rejected <= quantity_sent",
            name="ck_move_back_le_sent",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    challan_number = Column(String(30), unique=True, nullable=False, index=True)
    work_order_id = Column(Integer, ForeignKey("work_orders.id"), nullable=False, index=True)
    production_batch_id = Column(Integer, ForeignKey("production_batches.id"), nullable=False, index=True)
    partner_id = Column(Integer, ForeignKey("external_partners.id"), nullable=False, index=True)
    parent_movement_id = Column(Integer, ForeignKey("external_movements.id"), nullable=True)

    process_type = Column(String(60), nullable=False)
    quantity_sent = Column(Integer, nullable=False)
    quantity_returned = Column(Integer, nullable=False, default=0)
    quantity_rejected = Column(Integer, nullable=False, default=0)

    sent_date = Column(Date, nullable=False)
    expected_return_date = Column(Date, nullable=True, index=True)
    actual_return_date = Column(Date, nullable=True)

    status = Column(String(30), nullable=False, default="sent", index=True)
    remarks = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    partner = relationship("ExternalPartner")
    receipts = relationship("MaterialReceipt", back_populates="movement")

    @property
    def quantity_outstanding(self) -> int:
        return self.quantity_sent - (self.quantity_returned or 0) - (self.quantity_rejected or 0)


class MaterialReceipt(Base):
    """Goods received back from a partner (or forwarded partner to partner)"""
    __tablename__ = "material_receipts"
    __table_args__ = (
        CheckConstraint("quantity_received > 0", name="ck_receipt_received_positive"),
        CheckConstraint("quantity_rejected >= 0", name="ck_receipt_rejected_non_negative"),
        CheckConstraint("quantity_rejected <= quantity_received", name="ck_receipt_rejected_le_received"),
    )

    id = Column(Integer, primary_key=True, index=True)
    receipt_number = Column(String(30), unique=True, nullable=False, index=True)
    receipt_type = Column(String(30), nullable=False)
    external_movement_id = Column(Integer, ForeignKey("external_movements.id"), nullable=True, index=True)
    production_batch_id = Column(Integer, ForeignKey("production_batches.id"), nullable=True, index=True)
    to_partner_id = Column(Integer, ForeignKey("external_partners.id"), nullable=True)

    quantity_received = Column(Integer, nullable=False)
    quantity_rejected = Column(Integer, nullable=False, default=0)
    quantity_ok = Column(Integer, nullable=False, default=0)

    receipt_date = Column(Date, nullable=False)
    remarks = Column(Text, nullable=True)
    received_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    movement = relationship("ExternalMovement", back_populates="receipts")

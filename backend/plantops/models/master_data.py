"""
Master data: customers, item master and external processing partners
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Boolean, Text
from datetime import datetime

from plantops.db.base import Base


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(30), unique=True, nullable=False, index=True)
    name = Column(String(200), nullable=False, index=True)
    contact_name = Column(String(120), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(40), nullable=True)
    billing_address = Column(Text, nullable=True)
    currency = Column(String(3), nullable=False, default="USD")
    payment_terms_days = Column(Integer, nullable=False, default=30)
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Customer {self.code}: {self.name}>"


class Item(Base):
    """
    Item master - the drawing/part a customer orders.

    Carries default material specs used when a sales order line or the
    order itself does not override them.
    """
    __tablename__ = "items"

    id = Column(Integer, primary_key=True, index=True)
    item_code = Column(String(60), unique=True, nullable=False, index=True)
    description = Column(String(255), nullable=True)
    drawing_number = Column(String(60), nullable=True)

    material_size_mm = Column(Numeric(10, 2), nullable=True)
    material_shape = Column(String(30), nullable=True)  # round, hex, square
    alloy = Column(String(60), nullable=True)
    gross_weight_per_pc_g = Column(Numeric(12, 3), nullable=True)
    net_weight_per_pc_g = Column(Numeric(12, 3), nullable=True)
    cycle_time_seconds = Column(Numeric(10, 2), nullable=True)

    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Item {self.item_code}>"


class ExternalPartner(Base):
    """Outsourced processor (plating, heat treatment, machining)"""
    __tablename__ = "external_partners"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), unique=True, nullable=False, index=True)
    process_types = Column(String(255), nullable=True)  # comma separated
    contact_name = Column(String(120), nullable=True)
    phone = Column(String(40), nullable=True)
    address = Column(Text, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    @property
    def process_type_list(self):
        if not self.process_types:
            return []
        return [p.strip() for p in self.process_types.split(",") if p.strip()]

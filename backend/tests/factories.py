"""
Test data factories for PlantOps.

Provides functions to create test entities with sensible defaults. The
shop-floor helpers go through the services so the resulting records
carry the same gates, batches and ledgers real usage produces.

Usage:
    from tests.factories import create_test_customer, create_released_work_order

    def test_something(db_session):
        wo = create_released_work_order(db_session, quantity=50)
"""
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from plantops.core.security import hash_password
from plantops.models import (
    Customer, ExternalPartner, Item, MaterialLot, ProductionBatch, ProductionLog, QCRecord,
    SalesOrder, User, WorkOrder,
)


# =============================================================================
# SEQUENCE MANAGEMENT
# =============================================================================

_sequences: Dict[str, int] = {}


def reset_sequences():
    """Reset all sequences. Call between tests for predictable codes."""
    global _sequences
    _sequences = {}


def _next(name: str) -> int:
    """Get next sequence number for a given entity type."""
    _sequences[name] = _sequences.get(name, 0) + 1
    return _sequences[name]


# =============================================================================
# USERS AND MASTER DATA
# =============================================================================

def create_test_user(
    db: Session,
    email: Optional[str] = None,
    password: str = "TestPass123!",
    role: str = "admin",
    **overrides
) -> User:
    """
    Create or get a test user (get-or-create semantics).

    Args:
        db: Database session
        email: User email (auto-generated if not provided)
        password: Plain text password (hashed before storage)
        role: One of the plant roles (admin, sales, production, ...)
        **overrides: Any other User fields

    Returns:
        User instance
    """
    if email is None:
        email = f"user{_next('user')}@example.com"

    existing = db.query(User).filter(User.email == email).first()
    if existing:
        return existing

    user = User(
        email=email,
        password_hash=hash_password(password),
        full_name=overrides.pop("full_name", "Test User"),
        role=role,
        status=overrides.pop("status", "active"),
        **overrides
    )
    db.add(user)
    db.flush()
    return user


def create_test_customer(db: Session, **overrides) -> Customer:
    """
    Create a test customer.

    Args:
        db: Database session
        **overrides: Any Customer fields (code, name, currency, payment_terms_days, ...)

    Returns:
        Customer instance
    """
    seq = _next("customer")
    defaults = {
        "code": f"CUST-{seq:03d}",
        "name": f"Test Customer {seq}",
        "currency": "USD",
        "payment_terms_days": 30,
        "active": True,
    }
    defaults.update(overrides)
    customer = Customer(**defaults)
    db.add(customer)
    db.flush()
    return customer


def create_test_item(db: Session, **overrides) -> Item:
    """Create an item master record with round bar stock defaults."""
    seq = _next("item")
    defaults = {
        "item_code": f"ITEM-{seq:03d}",
        "description": f"Test part {seq}",
        "material_size_mm": Decimal("25.00"),
        "material_shape": "round",
        "alloy": "EN8",
        "gross_weight_per_pc_g": Decimal("120.000"),
        "net_weight_per_pc_g": Decimal("95.000"),
        "cycle_time_seconds": Decimal("42.00"),
    }
    defaults.update(overrides)
    item = Item(**defaults)
    db.add(item)
    db.flush()
    return item


def create_test_partner(db: Session, **overrides) -> ExternalPartner:
    seq = _next("partner")
    defaults = {
        "name": f"Plating Partner {seq}",
        "process_types": "plating,heat_treatment",
        "active": True,
    }
    defaults.update(overrides)
    partner = ExternalPartner(**defaults)
    db.add(partner)
    db.flush()
    return partner


# =============================================================================
# SALES AND WORK ORDERS
# =============================================================================

def create_test_sales_order(
    db: Session,
    customer: Optional[Customer] = None,
    lines: Optional[List[Dict[str, Any]]] = None,
    approve: bool = False,
    user: Optional[User] = None,
    **overrides
) -> SalesOrder:
    """
    Create a draft sales order through the sales order service.

    Args:
        db: Database session
        customer: Ordering customer (created if not provided)
        lines: Line dicts (item_code, quantity, price_per_pc, ...);
            defaults to one line of 100 pcs at 2.50
        approve: Approve the order, generating its work orders
        user: Acting user
        **overrides: Header fields (po_number, expected_delivery_date, ...)

    Returns:
        SalesOrder instance
    """
    from plantops.services import sales_order_service

    if customer is None:
        customer = create_test_customer(db)
    if lines is None:
        lines = [{"item_code": "ITEM-A", "quantity": 100, "price_per_pc": Decimal("2.50")}]

    data = {"customer_id": customer.id, "po_number": f"PO-{_next('po'):04d}", "lines": lines}
    data.update(overrides)
    so = sales_order_service.create_sales_order(db, data, user_id=user.id if user else None)
    if approve:
        sales_order_service.approve_sales_order(db, so, user_id=user.id if user else None)
    db.flush()
    return so


def create_test_work_order(db: Session, quantity: int = 100, **overrides) -> WorkOrder:
    """Create a standalone pending work order (no sales order)."""
    from plantops.services import work_order_service

    data = {"item_code": overrides.pop("item_code", "ITEM-A"), "quantity": quantity}
    data.update(overrides)
    return work_order_service.create_work_order(db, data)


def create_test_material_lot(db: Session, **overrides) -> MaterialLot:
    from plantops.services import materials_service

    data = {
        "heat_no": f"HT-{_next('heat'):04d}",
        "alloy": "EN8",
        "size_mm": "25",
        "supplier": "Steel Mills Ltd",
        "quantity_received_kg": Decimal("500"),
    }
    data.update(overrides)
    return materials_service.receive_lot(db, data)


def gate_record(db: Session, wo: WorkOrder, qc_type: str) -> QCRecord:
    """The first QC record of a type on a work order."""
    return (
        db.query(QCRecord)
        .filter(QCRecord.work_order_id == wo.id, QCRecord.qc_type == qc_type)
        .order_by(QCRecord.id)
        .first()
    )


def clear_material_qc(db: Session, wo: WorkOrder, lot: Optional[MaterialLot] = None) -> MaterialLot:
    """Issue material to the WO and pass its incoming inspection."""
    from plantops.services import materials_service, quality_service

    lot = lot or create_test_material_lot(db)
    materials_service.issue_material(db, lot, wo, Decimal("50"))
    quality_service.record_qc_result(db, gate_record(db, wo, "incoming"), "pass")
    db.flush()
    return lot


def create_released_work_order(db: Session, quantity: int = 100, wo: Optional[WorkOrder] = None,
                               **overrides) -> WorkOrder:
    """
    A work order cleared for production: material issued and passed,
    moved to the production stage and first piece passed.
    """
    from plantops.services import quality_service, work_order_service

    if wo is None:
        wo = create_test_work_order(db, quantity=quantity, **overrides)
    clear_material_qc(db, wo)
    work_order_service.move_stage(db, wo, "production")
    quality_service.record_qc_result(db, gate_record(db, wo, "first_piece"), "pass")
    db.flush()
    return wo


def log_test_production(
    db: Session,
    wo: WorkOrder,
    ok: int,
    rejected: int = 0,
    log_date: Optional[date] = None,
) -> ProductionLog:
    from plantops.services import production_service

    return production_service.add_production_log(
        db, wo, {"ok_quantity": ok, "rejection_quantity": rejected, "log_date": log_date, "shift": "A"},
    )


def pass_final_qc(db: Session, wo: WorkOrder, batch: ProductionBatch, inspected: int,
                  rejected: int = 0) -> QCRecord:
    """Record a passed final inspection on a batch."""
    from plantops.services import quality_service

    record = quality_service.create_qc_record(db, wo, {
        "qc_type": "final",
        "production_batch_id": batch.id,
        "inspected_quantity": inspected,
        "rejected_quantity": rejected,
    })
    quality_service.record_qc_result(db, record, "pass")
    db.flush()
    return record


def create_packed_work_order(db: Session, quantity: int = 100, wo: Optional[WorkOrder] = None,
                             ready: bool = True, **overrides):
    """
    Run a work order through production, final QC, dispatch QC release
    and packing of its full quantity into one carton.

    Returns:
        (work order, batch, carton)
    """
    from plantops.services import packing_service, production_service

    wo = create_released_work_order(db, quantity=quantity, wo=wo, **overrides)
    log = log_test_production(db, wo, ok=wo.quantity)
    batch = log.batch
    pass_final_qc(db, wo, batch, inspected=wo.quantity)
    production_service.mark_batch_production_complete(db, batch)
    dqc = packing_service.create_dispatch_qc_batch(db, batch, wo.quantity)
    carton = packing_service.pack_carton(db, wo, batch, wo.quantity, dqc=dqc)
    if ready:
        packing_service.mark_ready_for_dispatch(db, carton)
    db.flush()
    return wo, batch, carton

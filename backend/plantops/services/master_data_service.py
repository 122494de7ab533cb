"""
Master data: customers, item master and external partners.

Codes are unique; creating a second record with the same code raises
DuplicateError rather than failing on the database constraint.
"""
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from plantops.exceptions import DuplicateError, NotFoundError, ValidationError
from plantops.models import Customer, ExternalPartner, Item
from plantops.logging_config import get_logger

logger = get_logger(__name__)

CUSTOMER_FIELDS = (
    "code", "name", "contact_name", "email", "phone", "billing_address",
    "currency", "payment_terms_days", "active",
)
ITEM_FIELDS = (
    "item_code", "description", "drawing_number", "material_size_mm", "material_shape", "alloy",
    "gross_weight_per_pc_g", "net_weight_per_pc_g", "cycle_time_seconds", "active",
)
PARTNER_FIELDS = ("name", "process_types", "contact_name", "phone", "address", "active")


def _apply(obj: Any, data: Dict[str, Any], fields) -> None:
    for field in fields:
        if field in data and data[field] is not None:
            setattr(obj, field, data[field])


def _normalize_code(value: Optional[str], field: str) -> str:
    code = (value or "").strip().upper()
    if not code:
        raise ValidationError(f"{field} is required", field=field)
    return code


# ============================================================================
# Customers
# ============================================================================

def get_customer(db: Session, customer_id: int) -> Customer:
    customer = db.query(Customer).filter(Customer.id == customer_id).first()
    if not customer:
        raise NotFoundError("Customer", customer_id)
    return customer


def list_customers(db: Session, search: Optional[str] = None, include_inactive: bool = False,
                   offset: int = 0, limit: int = 50):
    query = db.query(Customer)
    if not include_inactive:
        query = query.filter(Customer.active.is_(True))
    if search:
        term = f"%{search}%"
        query = query.filter(Customer.name.ilike(term) | Customer.code.ilike(term))
    total = query.count()
    return query.order_by(Customer.code).offset(offset).limit(limit).all(), total


def create_customer(db: Session, data: Dict[str, Any]) -> Customer:
    code = _normalize_code(data.get("code"), "code")
    if db.query(Customer.id).filter(Customer.code == code).first():
        raise DuplicateError("Customer", field="code", value=code)

    customer = Customer()
    _apply(customer, data, CUSTOMER_FIELDS)
    customer.code = code
    db.add(customer)
    db.flush()
    logger.info(f"Created customer {customer.code}", extra={"customer_id": customer.id})
    return customer


def update_customer(db: Session, customer: Customer, changes: Dict[str, Any]) -> Customer:
    if "code" in changes and changes["code"] is not None:
        code = _normalize_code(changes["code"], "code")
        clash = db.query(Customer.id).filter(Customer.code == code, Customer.id != customer.id).first()
        if clash:
            raise DuplicateError("Customer", field="code", value=code)
        changes = {**changes, "code": code}
    _apply(customer, changes, CUSTOMER_FIELDS)
    db.flush()
    return customer


# ============================================================================
# Items
# ============================================================================

def get_item(db: Session, item_id: int) -> Item:
    item = db.query(Item).filter(Item.id == item_id).first()
    if not item:
        raise NotFoundError("Item", item_id)
    return item


def get_item_by_code(db: Session, item_code: str) -> Optional[Item]:
    return db.query(Item).filter(Item.item_code == item_code).first()


def list_items(db: Session, search: Optional[str] = None, offset: int = 0, limit: int = 50):
    query = db.query(Item)
    if search:
        term = f"%{search}%"
        query = query.filter(Item.item_code.ilike(term) | Item.description.ilike(term))
    total = query.count()
    return query.order_by(Item.item_code).offset(offset).limit(limit).all(), total


def create_item(db: Session, data: Dict[str, Any]) -> Item:
    item_code = _normalize_code(data.get("item_code"), "item_code")
    if get_item_by_code(db, item_code):
        raise DuplicateError("Item", field="item_code", value=item_code)

    item = Item(material_shape="round")
    _apply(item, data, ITEM_FIELDS)
    item.item_code = item_code
    db.add(item)
    db.flush()
    logger.info(f"Created item {item.item_code}")
    return item


def update_item(db: Session, item: Item, changes: Dict[str, Any]) -> Item:
    changes = {k: v for k, v in changes.items() if k != "item_code"}
    _apply(item, changes, ITEM_FIELDS)
    db.flush()
    return item


# ============================================================================
# External partners
# ============================================================================

def get_partner(db: Session, partner_id: int) -> ExternalPartner:
    partner = db.query(ExternalPartner).filter(ExternalPartner.id == partner_id).first()
    if not partner:
        raise NotFoundError("ExternalPartner", partner_id)
    return partner


def list_partners(db: Session, process_type: Optional[str] = None,
                  include_inactive: bool = False) -> List[ExternalPartner]:
    query = db.query(ExternalPartner)
    if not include_inactive:
        query = query.filter(ExternalPartner.active.is_(True))
    partners = query.order_by(ExternalPartner.name).all()
    if process_type:
        partners = [p for p in partners if process_type in p.process_type_list]
    return partners


def create_partner(db: Session, data: Dict[str, Any]) -> ExternalPartner:
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required", field="name")
    if db.query(ExternalPartner.id).filter(ExternalPartner.name == name).first():
        raise DuplicateError("ExternalPartner", field="name", value=name)

    partner = ExternalPartner()
    process_types = data.get("process_types")
    if isinstance(process_types, (list, tuple)):
        data = {**data, "process_types": ",".join(p.strip() for p in process_types if p.strip())}
    _apply(partner, data, PARTNER_FIELDS)
    partner.name = name
    db.add(partner)
    db.flush()
    logger.info(f"Created external partner {partner.name}", extra={"partner_id": partner.id})
    return partner


def set_partner_active(db: Session, partner: ExternalPartner, active: bool) -> ExternalPartner:
    partner.active = active
    db.flush()
    return partner

"""
Audit Service

Helpers for recording audit trail entries and in-app notifications.
None of these commit; the calling endpoint owns the transaction.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from plantops.models.audit import AuditLog, Notification
from plantops.models.user import User
from plantops.logging_config import get_logger

logger = get_logger(__name__)


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def snapshot(obj: Any, fields: Iterable[str]) -> Dict[str, Any]:
    """Capture selected attributes of a model as JSON-safe values."""
    return {f: _jsonable(getattr(obj, f, None)) for f in fields}


def record_audit(
    db: Session,
    table_name: str,
    record_id: int,
    action: str,
    old_data: Optional[Dict[str, Any]] = None,
    new_data: Optional[Dict[str, Any]] = None,
    user_id: Optional[int] = None,
) -> AuditLog:
    """
    Record an audit entry.

    Args:
        db: Database session
        table_name: Table of the changed record (e.g. "work_orders")
        record_id: Primary key of the changed record
        action: Verb such as WO_COMPLETED, DISPATCH_CREATED, PERIOD_LOCKED
        old_data: State before the change
        new_data: State after the change
        user_id: User who made the change (None for system actions)

    Returns:
        The created AuditLog instance
    """
    entry = AuditLog(
        table_name=table_name,
        record_id=record_id,
        action=action,
        old_data=_jsonable(old_data) if old_data is not None else None,
        new_data=_jsonable(new_data) if new_data is not None else None,
        changed_by=user_id,
    )
    db.add(entry)
    return entry


def get_audit_trail(db: Session, table_name: str, record_id: int) -> List[AuditLog]:
    return (
        db.query(AuditLog)
        .filter(AuditLog.table_name == table_name, AuditLog.record_id == record_id)
        .order_by(AuditLog.changed_at, AuditLog.id)
        .all()
    )


def notify_roles(
    db: Session,
    roles: Iterable[str],
    notification_type: str,
    title: str,
    message: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
) -> List[Notification]:
    """Create one notification per active user holding any of the roles."""
    users = (
        db.query(User)
        .filter(User.role.in_(list(roles)), User.status == "active")
        .all()
    )
    created = []
    for user in users:
        n = Notification(
            user_id=user.id,
            notification_type=notification_type,
            title=title,
            message=message,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        db.add(n)
        created.append(n)
    db.flush()
    logger.info(
        f"Notified {len(created)} user(s): {title}",
        extra={"notification_type": notification_type, "entity_type": entity_type, "entity_id": entity_id},
    )
    return created


def mark_notification_read(db: Session, notification: Notification) -> Notification:
    if not notification.read:
        notification.read = True
        notification.read_at = datetime.utcnow()
    return notification

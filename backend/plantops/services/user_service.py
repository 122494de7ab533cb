"""
Staff accounts and login.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from plantops.core.permissions import ALL_ROLES
from plantops.core.security import hash_password, verify_password
from plantops.exceptions import DuplicateError, InvalidCredentialsError, NotFoundError, ValidationError
from plantops.models import User
from plantops.logging_config import get_logger

logger = get_logger(__name__)

USER_STATUSES = {"active", "inactive", "suspended"}


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User", user_id)
    return user


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.lower()).first()


def _check_role(role: str) -> None:
    if role not in ALL_ROLES:
        raise ValidationError(f"Unknown role '{role}'", field="role", value=role)


def create_user(db: Session, data: Dict[str, Any]) -> User:
    email = (data.get("email") or "").strip().lower()
    if get_user_by_email(db, email):
        raise DuplicateError("User", field="email", value=email)
    role = data.get("role") or "viewer"
    _check_role(role)

    user = User(
        email=email,
        password_hash=hash_password(data["password"]),
        full_name=data.get("full_name"),
        role=role,
        status="active",
    )
    db.add(user)
    db.flush()
    logger.info(f"Created user {email}", extra={"user_id": user.id, "role": role})
    return user


def update_user(db: Session, user: User, changes: Dict[str, Any]) -> User:
    if changes.get("role") is not None:
        _check_role(changes["role"])
        user.role = changes["role"]
    if changes.get("status") is not None:
        if changes["status"] not in USER_STATUSES:
            raise ValidationError(f"Unknown status '{changes['status']}'", field="status")
        user.status = changes["status"]
    if changes.get("full_name") is not None:
        user.full_name = changes["full_name"]
    if changes.get("password"):
        user.password_hash = hash_password(changes["password"])
    db.flush()
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    """
    Check credentials and stamp last_login_at.

    Inactive accounts and unknown emails get the same error as a wrong
    password.
    """
    user = get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        logger.warning("Failed login attempt", extra={"email": email})
        raise InvalidCredentialsError()
    if not user.is_active:
        logger.warning("Login attempt on inactive account", extra={"user_id": user.id})
        raise InvalidCredentialsError()
    user.last_login_at = datetime.utcnow()
    db.flush()
    return user

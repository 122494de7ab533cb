"""
User model for staff authentication and role-based access
"""
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func

from plantops.db.base import Base


class User(Base):
    """
    Plant staff member.

    `role` drives authorization (see plantops.core.permissions).
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)

    full_name = Column(String(200), nullable=True)
    role = Column(String(20), default="viewer", nullable=False, index=True)
    # active, inactive, suspended
    status = Column(String(20), default="active", nullable=False, index=True)

    created_at = Column(DateTime(timezone=False), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=False), server_default=func.now(), onupdate=func.now(), nullable=False)
    last_login_at = Column(DateTime(timezone=False), nullable=True)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"

    @property
    def display_name(self) -> str:
        return self.full_name or self.email

    @property
    def is_active(self) -> bool:
        """Check if user account is active"""
        return self.status == "active"

    @property
    def is_admin(self) -> bool:
        """Check if user is an admin"""
        return self.role == "admin"

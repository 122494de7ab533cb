"""
Authentication and user admin schemas
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from plantops.core.permissions import ALL_ROLES


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    full_name: Optional[str] = Field(None, max_length=200)
    role: str = Field("viewer", description="admin, sales, production, quality, stores, logistics, accounts, viewer")

    @field_validator("role")
    @classmethod
    def validate_role(cls, v: str) -> str:
        if v not in ALL_ROLES:
            raise ValueError(f"role must be one of {sorted(ALL_ROLES)}")
        return v


class UserUpdate(BaseModel):
    full_name: Optional[str] = Field(None, max_length=200)
    role: Optional[str] = None
    status: Optional[str] = Field(None, description="active, inactive, suspended")
    password: Optional[str] = Field(None, min_length=8, max_length=128)


class UserResponse(BaseModel):
    id: int
    email: str
    full_name: Optional[str] = None
    role: str
    status: str
    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

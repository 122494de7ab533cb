"""
Common API Response Schemas

Standardized error responses and pagination models shared by all
endpoints.
"""
from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field, field_validator


# ============================================================================
# Error Response Models
# ============================================================================

class ErrorResponse(BaseModel):
    """
    Body returned for every handled error.

    Error codes match plantops.exceptions (NOT_FOUND, QC_GATE_BLOCKED,
    DISPATCH_BLOCKED, PERIOD_LOCKED, ...) plus INTERNAL_ERROR.
    """
    error: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error context")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="When the error occurred (UTC)")

    model_config = {
        "json_schema_extra": {
            "example": {
                "error": "DISPATCH_BLOCKED",
                "message": "Dispatch blocked: Final QC not approved for Batch #1. Current status: pending",
                "details": {"rule": "dispatch_gate", "batch_id": 12},
                "timestamp": "2025-03-10T08:30:00Z",
            }
        }
    }


# ============================================================================
# Pagination Models
# ============================================================================

class PaginationParams(BaseModel):
    """Offset-based pagination parameters for list endpoints."""
    offset: int = Field(default=0, ge=0, description="Number of records to skip")
    limit: int = Field(default=50, ge=1, le=500, description="Maximum number of records to return (1-500)")

    @field_validator("limit")
    @classmethod
    def validate_limit(cls, v: int) -> int:
        return min(max(v, 1), 500)

    @field_validator("offset")
    @classmethod
    def validate_offset(cls, v: int) -> int:
        return max(0, v)


class PaginationMeta(BaseModel):
    total: int = Field(..., description="Total number of records matching the query")
    offset: int
    limit: int
    returned: int = Field(..., description="Number of records in this response")


T = TypeVar("T")


class ListResponse(BaseModel, Generic[T]):
    """
    Standardized list response wrapper with pagination.

    Example:
        {"items": [...], "pagination": {"total": 150, "offset": 0, "limit": 50, "returned": 50}}
    """
    items: List[T]
    pagination: PaginationMeta


def paginate(items: List[Any], total: int, pagination: PaginationParams) -> Dict[str, Any]:
    return {
        "items": items,
        "pagination": {
            "total": total,
            "offset": pagination.offset,
            "limit": pagination.limit,
            "returned": len(items),
        },
    }


class MessageResponse(BaseModel):
    """Confirmation for operations that return no resource (delete, unlock...)."""
    message: str


class StatusResponse(BaseModel):
    status: str
    version: Optional[str] = None
    database: Optional[str] = None

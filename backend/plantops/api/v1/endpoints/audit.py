"""
Audit trail endpoint
"""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from plantops.api.v1.deps import get_current_user
from plantops.db.session import get_db
from plantops.models.user import User
from plantops.schemas.audit import AuditLogResponse
from plantops.services import audit_service

router = APIRouter(prefix="/audit", tags=["Audit"])


@router.get("/{table_name}/{record_id}", response_model=List[AuditLogResponse])
async def get_audit_trail(
    table_name: str,
    record_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """History of a single record, oldest first."""
    return audit_service.get_audit_trail(db, table_name, record_id)

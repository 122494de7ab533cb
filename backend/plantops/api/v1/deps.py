"""
API Dependencies

Authentication, role-based authorization and common query parameter
dependencies.
"""
from typing import Annotated, Callable

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from plantops.core.permissions import has_permission
from plantops.core.security import get_user_from_token
from plantops.db.session import get_db
from plantops.exceptions import AuthenticationError, PermissionDeniedError
from plantops.models.user import User
from plantops.schemas.common import PaginationParams
from plantops.logging_config import get_logger

logger = get_logger(__name__)

# OAuth2 scheme for token authentication
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Session = Depends(get_db)
) -> User:
    """
    Dependency to get the current authenticated user from access token

    Raises:
        TokenExpiredError / InvalidTokenError (401) for a bad token
        AuthenticationError (401) if the user no longer exists
        HTTPException 403 if the account is not active
    """
    user_id = get_user_from_token(token, expected_type="access")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise AuthenticationError("Could not validate credentials")

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive"
        )

    return user


def require_permission(action: str) -> Callable:
    """
    Dependency factory for write endpoints.

    Example:
        @router.post("/", dependencies=[Depends(require_permission("qc:write"))])

    or, when the handler needs the user:

        current_user: User = Depends(require_permission("qc:write"))
    """
    async def checker(current_user: Annotated[User, Depends(get_current_user)]) -> User:
        if not has_permission(current_user.role, action):
            logger.warning(
                f"Denied {action} for user {current_user.id}",
                extra={"role": current_user.role, "action": action},
            )
            raise PermissionDeniedError(
                f"Role '{current_user.role}' may not perform {action}",
                action=action,
            )
        return current_user

    return checker


def get_pagination_params(
    offset: int = Query(
        default=0,
        ge=0,
        description="Number of records to skip (for pagination)"
    ),
    limit: int = Query(
        default=50,
        ge=1,
        le=500,
        description="Maximum number of records to return (1-500)"
    )
) -> PaginationParams:
    """
    Dependency for standardized pagination parameters.

    Example:
        @router.get("/work-orders")
        async def list_work_orders(
            pagination: Annotated[PaginationParams, Depends(get_pagination_params)],
            db: Session = Depends(get_db)
        ):
            ...
    """
    return PaginationParams(offset=offset, limit=limit)

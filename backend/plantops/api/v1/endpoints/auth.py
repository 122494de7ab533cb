"""
Authentication endpoints

Password login (OAuth2 form) returning a bearer token, and the current
user's profile.
"""
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from plantops.api.v1.deps import get_current_user
from plantops.core.limiter import limiter
from plantops.core.security import create_access_token
from plantops.core.settings import settings
from plantops.db.session import get_db
from plantops.models.user import User
from plantops.schemas.auth import TokenResponse, UserResponse
from plantops.services import user_service
from plantops.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/login", response_model=TokenResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)  # type: ignore
async def login(
    request: Request,
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    db: Session = Depends(get_db),
):
    """
    Exchange email (sent as `username`) and password for an access token.

    Raises:
        InvalidCredentialsError (401) for unknown email, wrong password or
        an inactive account
    """
    user = user_service.authenticate(db, form_data.username, form_data.password)
    db.commit()
    token = create_access_token(user.id, extra_claims={"role": user.role})
    logger.info(f"User {user.id} logged in", extra={"role": user.role})
    return TokenResponse(access_token=token)


@router.get("/me", response_model=UserResponse)
async def read_me(current_user: Annotated[User, Depends(get_current_user)]):
    return current_user

"""
Password hashing and JWT access tokens
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
import jwt

from plantops.core.settings import settings
from plantops.exceptions import InvalidTokenError, TokenExpiredError
from plantops.logging_config import get_logger

logger = get_logger(__name__)


def hash_password(password: str) -> str:
    """Hash a password with bcrypt using the configured cost factor."""
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database
        logger.warning("Password hash could not be parsed")
        return False


def create_access_token(
    user_id: int,
    expires_delta: Optional[timedelta] = None,
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Create a signed access token for a user.

    Args:
        user_id: ID stored in the `sub` claim
        expires_delta: Override for ACCESS_TOKEN_EXPIRE_MINUTES
        extra_claims: Additional claims (e.g. role) to embed

    Returns:
        Encoded JWT string
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "type": "access",
        "iat": now,
        "exp": expire,
    }
    if extra_claims:
        payload.update(extra_claims)
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and verify a token.

    Raises:
        TokenExpiredError: the exp claim has passed
        InvalidTokenError: bad signature or malformed token
    """
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError as e:
        logger.info("Rejected expired token")
        raise TokenExpiredError() from e
    except jwt.PyJWTError as e:
        logger.info("Rejected invalid token")
        raise InvalidTokenError() from e


def get_user_from_token(token: str, expected_type: str = "access") -> int:
    """Extract the user ID from a verified token of the expected type."""
    payload = decode_access_token(token)
    if payload.get("type") != expected_type:
        raise InvalidTokenError(f"Expected an {expected_type} token")
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidTokenError("Token has no valid subject") from e

"""
JWT Authentication Middleware.

Validates the HS256 identity token carrying the admin's uid (``sub``) and
email. Tokens are issued by the identity provider; create_access_token
produces the same shape for that collaborator and for tests.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Header, HTTPException, Request
from jose import JWTError, jwt

logger = logging.getLogger(__name__)

# JWT Configuration
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24  # 1 day


@dataclass
class Identity:
    uid: str
    email: Optional[str] = None


def _get_secret_key() -> str:
    """Lazy-load the secret key to support testing."""
    from storefront.config import get_settings
    return get_settings().SECRET_KEY


def create_access_token(uid: str, email: Optional[str] = None, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed JWT for an identity.

    Args:
        uid: The identity-provider user id.
        email: The verified email, if known.
        expires_delta: Optional custom expiration time.

    Returns:
        A signed JWT string.
    """
    to_encode = {"sub": uid}
    if email:
        to_encode["email"] = email

    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode["exp"] = expire

    return jwt.encode(to_encode, _get_secret_key(), algorithm=ALGORITHM)


async def get_current_identity(
    request: Request,
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> Identity:
    """
    FastAPI dependency that extracts and validates the caller's identity.
    Supports both 'Authorization: Bearer' header and 'auth_token' cookie.
    """
    credentials_exception = HTTPException(
        status_code=401,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token = None

    # 1. Try Authorization Header
    if authorization and authorization.startswith("Bearer "):
        token = authorization[7:]

    # 2. Try HttpOnly Cookie (Fallback)
    if not token:
        token = request.cookies.get("auth_token")

    if not token:
        raise credentials_exception

    try:
        payload = jwt.decode(token, _get_secret_key(), algorithms=[ALGORITHM])
    except JWTError:
        raise credentials_exception

    uid = payload.get("sub")
    if uid is None:
        raise credentials_exception

    logger.debug(f"Authenticated identity: {uid}")
    return Identity(uid=uid, email=payload.get("email"))

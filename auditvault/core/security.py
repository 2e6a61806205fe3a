"""
Password hashing and bearer-token handling.

Passwords are stored as bcrypt hashes (passlib).  Sessions are stateless
HS256 JWTs carrying the user id (``sub``), email and role; the role in the
token is informational only, authorization always uses the role loaded from
the database for the request.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from auditvault.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

TOKEN_TYPE = "access"


def hash_password(password: str) -> str:
    """Hash a password for storing."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a stored hash."""
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(
    subject: str,
    claims: Optional[Dict[str, Any]] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed access token for ``subject`` (the user id).

    Args:
        subject: Value of the ``sub`` claim.
        claims: Extra claims (email, role) copied into the payload.
        expires_delta: Lifetime; defaults to ``ACCESS_TOKEN_EXPIRE_MINUTES``.
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode: Dict[str, Any] = dict(claims or {})
    to_encode.update({"sub": subject, "exp": expire, "type": TOKEN_TYPE})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Verify signature, expiry and token type.

    Returns the payload, or ``None`` if the token is invalid in any way.
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != TOKEN_TYPE or not payload.get("sub"):
        return None
    return payload

"""
Shared FastAPI dependencies: the auth service and the current user.

Every route except ``/auth/login`` and ``/auth/register`` depends on
:func:`get_current_user`.
"""

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from auditvault.core.exceptions import AuthenticationException
from auditvault.db.session import get_db
from auditvault.models.user import User
from auditvault.repositories.user_repo import UserRepository
from auditvault.services.auth_service import AuthService

# auto_error=False so a missing header goes through our 401 envelope.
bearer_scheme = HTTPBearer(auto_error=False)


def get_auth_service(db: AsyncSession = Depends(get_db)) -> AuthService:
    """Build an AuthService wired to the current request's DB session."""
    return AuthService(UserRepository(User, db))


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """Resolve the bearer token to an ACTIVE user, or raise 401."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationException("Not authenticated")
    return await auth_service.resolve_token(credentials.credentials)

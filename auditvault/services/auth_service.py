"""
Auth service — registration, login and bearer-token resolution.

Tokens are stateless JWTs (see ``auditvault.core.security``).  Every request
re-loads the user from the database, so a rejected or deleted account loses
access immediately even while its token is still unexpired.
"""

import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from auditvault.core.config import settings
from auditvault.core.exceptions import (
    AuthenticationException,
    ConflictException,
    ValidationException,
)
from auditvault.core.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from auditvault.models.user import User, UserRole, UserStatus
from auditvault.repositories.user_repo import UserRepository
from auditvault.schemas.auth import LoginRequest, RegisterRequest, TokenResponse

logger = logging.getLogger(__name__)

# Roles a visitor may pick when registering.
SELF_SERVICE_ROLES = frozenset(
    {UserRole.AUDITOR, UserRole.COMPLIANCE_OFFICER, UserRole.FUND_MANAGER}
)


class AuthService:
    def __init__(self, user_repo: UserRepository):
        self._repo = user_repo

    async def register(self, data: RegisterRequest) -> User:
        """
        Create a PENDING account.

        Raises :class:`ValidationException` for a non-selectable role and
        :class:`ConflictException` when the email is taken.
        """
        if data.role not in SELF_SERVICE_ROLES:
            raise ValidationException(f"Role {data.role.value} cannot be requested at registration")

        email = data.email.lower()
        if await self._repo.get_by_email(email):
            raise ConflictException(f"A user with email '{email}' already exists")

        user = User(
            email=email,
            name=data.name,
            password_hash=hash_password(data.password),
            role=data.role,
            status=UserStatus.PENDING,
        )
        try:
            created = await self._repo.create(user)
        except IntegrityError as exc:
            # Concurrent registration won the race for the unique index.
            await self._repo.db.rollback()
            logger.warning("IntegrityError registering %s: %s", email, exc)
            raise ConflictException(f"A user with email '{email}' already exists")
        logger.info("Registered user %s (%s), awaiting review", created.id, created.role.value)
        return created

    async def login(self, data: LoginRequest) -> TokenResponse:
        """Exchange credentials for a bearer token; only ACTIVE accounts may log in."""
        user = await self._repo.get_by_email(data.email)
        if not user or not verify_password(data.password, user.password_hash):
            logger.warning("Failed login for %s", data.email)
            raise AuthenticationException("Invalid email or password")
        if not user.is_active:
            logger.warning("Login refused for %s account %s", user.status.value, user.id)
            raise AuthenticationException(
                f"Account is {user.status.value.lower()}; an administrator must approve it"
            )

        token = create_access_token(
            str(user.id), claims={"email": user.email, "role": user.role.value}
        )
        logger.info("User %s logged in", user.id)
        return TokenResponse(
            access_token=token, expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
        )

    async def resolve_token(self, token: str) -> User:
        """Return the ACTIVE user a bearer token belongs to, or raise 401."""
        payload = decode_access_token(token)
        if payload is None:
            raise AuthenticationException("Invalid or expired token")
        try:
            user_id = UUID(payload["sub"])
        except ValueError:
            raise AuthenticationException("Invalid or expired token")

        user = await self._repo.get(user_id)
        if not user or not user.is_active:
            raise AuthenticationException("User not found or inactive")
        return user

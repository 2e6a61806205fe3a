"""
User domain model.

Represents an account persisted in the ``users`` table.  The role decides
what the user may do (see ``auditvault.core.permissions``); the status gates
login until an administrator or compliance officer approves the account.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime
from sqlmodel import Field, SQLModel


class UserRole(str, Enum):
    """Roles known to the permission table."""

    ADMIN = "ADMIN"
    AUDITOR = "AUDITOR"
    COMPLIANCE_OFFICER = "COMPLIANCE_OFFICER"
    FUND_MANAGER = "FUND_MANAGER"


class UserStatus(str, Enum):
    """Account review states."""

    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    REJECTED = "REJECTED"


class User(SQLModel, table=True):
    """
    SQLModel / SQLAlchemy table definition for users.

    Constraints:
    - ``email`` has a unique index; duplicate registrations are rejected at DB level.
    - ``password_hash`` is a bcrypt hash and never leaves the service layer.
    """

    __tablename__ = "users"  # type: ignore[assignment]

    __table_args__ = (
        CheckConstraint("length(email) > 0", name="ck_users_email_not_empty"),
        CheckConstraint("length(name) > 0", name="ck_users_name_not_empty"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    email: str = Field(unique=True, index=True, max_length=320)
    name: str = Field(max_length=255)
    password_hash: str = Field(max_length=255)
    role: UserRole = Field(default=UserRole.AUDITOR, index=True)
    status: UserStatus = Field(default=UserStatus.PENDING, index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
        index=True,
    )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    def __repr__(self) -> str:
        return f"<User id={self.id} email='{self.email}' role={self.role.value}>"

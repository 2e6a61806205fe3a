"""
User API endpoints.

- GET  /users               — List accounts (optionally by status)
- GET  /users/{id}          — Retrieve one account
- POST /users/{id}/status   — Approve or reject an account
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from auditvault.api.deps import get_current_user
from auditvault.db.session import get_db
from auditvault.models.user import User, UserStatus
from auditvault.repositories.user_repo import UserRepository
from auditvault.schemas.common import ErrorResponse
from auditvault.schemas.user import UserResponse, UserStatusUpdate
from auditvault.services.user_service import UserService

router = APIRouter()


# ── Dependency injection ──


def _get_user_service(db: AsyncSession = Depends(get_db)) -> UserService:
    return UserService(UserRepository(User, db))


# ── Endpoints ──


@router.get(
    "",
    response_model=List[UserResponse],
    summary="List users",
    description="Requires the ADMIN or COMPLIANCE_OFFICER role.",
    responses={403: {"model": ErrorResponse, "description": "Role not allowed"}},
)
async def list_users(
    status: Optional[UserStatus] = Query(None, description="Filter by account status"),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Max records to return"),
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(_get_user_service),
) -> List[UserResponse]:
    return await service.list_users(current_user, status=status, skip=skip, limit=limit)


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    summary="Get a specific user",
    responses={404: {"model": ErrorResponse, "description": "User not found"}},
)
async def get_user(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(_get_user_service),
) -> UserResponse:
    return await service.get_user(user_id)


@router.post(
    "/{user_id}/status",
    response_model=UserResponse,
    summary="Approve or reject an account",
    responses={
        403: {"model": ErrorResponse, "description": "Role not allowed"},
        404: {"model": ErrorResponse, "description": "User not found"},
        422: {"model": ErrorResponse, "description": "Cannot review own account"},
    },
)
async def update_user_status(
    user_id: UUID,
    body: UserStatusUpdate,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(_get_user_service),
) -> UserResponse:
    return await service.update_status(user_id, body.status, current_user)

"""
Fund API endpoints.

- GET    /funds          — List funds (fund managers see only their own)
- POST   /funds          — Create a fund
- GET    /funds/{id}     — Retrieve a specific fund
- PATCH  /funds/{id}     — Partially update a fund
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from auditvault.api.deps import get_current_user
from auditvault.db.session import get_db
from auditvault.models.fund import Fund
from auditvault.models.user import User
from auditvault.repositories.fund_repo import FundRepository
from auditvault.repositories.user_repo import UserRepository
from auditvault.schemas.common import ErrorResponse, ValidationErrorResponse
from auditvault.schemas.fund import FundCreate, FundResponse, FundUpdate
from auditvault.services.fund_service import FundService

router = APIRouter()


# ── Dependency injection ──
# A fresh service per request, wired to that request's DB session; tests
# swap it out through ``app.dependency_overrides``.


def _get_fund_service(db: AsyncSession = Depends(get_db)) -> FundService:
    """Build a FundService wired to the current request's DB session."""
    return FundService(FundRepository(Fund, db), UserRepository(User, db))


# ── Endpoints ──


@router.get(
    "",
    response_model=List[FundResponse],
    summary="List funds",
    description=(
        "Returns funds ordered by code.  FUND_MANAGER users only see the "
        "funds they manage."
    ),
)
async def list_funds(
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Max records to return"),
    current_user: User = Depends(get_current_user),
    service: FundService = Depends(_get_fund_service),
) -> List[FundResponse]:
    return await service.find_all(current_user, skip=skip, limit=limit)


@router.post(
    "",
    response_model=FundResponse,
    status_code=201,
    summary="Create a new fund",
    description="Requires the ADMIN or COMPLIANCE_OFFICER role.",
    responses={
        403: {"model": ErrorResponse, "description": "Role not allowed"},
        409: {"model": ErrorResponse, "description": "Duplicate fund code"},
        422: {"model": ValidationErrorResponse, "description": "Validation error"},
    },
)
async def create_fund(
    fund: FundCreate,
    current_user: User = Depends(get_current_user),
    service: FundService = Depends(_get_fund_service),
) -> FundResponse:
    return await service.create(fund, current_user)


@router.get(
    "/{fund_id}",
    response_model=FundResponse,
    summary="Get a specific fund",
    responses={404: {"model": ErrorResponse, "description": "Fund not found"}},
)
async def get_fund(
    fund_id: UUID,
    current_user: User = Depends(get_current_user),
    service: FundService = Depends(_get_fund_service),
) -> FundResponse:
    return await service.get(fund_id)


@router.patch(
    "/{fund_id}",
    response_model=FundResponse,
    summary="Update a fund",
    description=(
        "Partial update: only the fields present in the body change.  "
        "``manager_ids`` replaces the whole manager set."
    ),
    responses={
        403: {"model": ErrorResponse, "description": "Role not allowed"},
        404: {"model": ErrorResponse, "description": "Fund not found"},
        409: {"model": ErrorResponse, "description": "Duplicate fund code"},
    },
)
async def update_fund(
    fund_id: UUID,
    fund_update: FundUpdate,
    current_user: User = Depends(get_current_user),
    service: FundService = Depends(_get_fund_service),
) -> FundResponse:
    return await service.update(fund_id, fund_update, current_user)

"""
Auth API endpoints.

- POST /auth/register  — Request an account (starts PENDING)
- POST /auth/login     — Exchange credentials for a bearer token
- GET  /auth/profile   — The authenticated user
"""

from fastapi import APIRouter, Depends

from auditvault.api.deps import get_auth_service, get_current_user
from auditvault.models.user import User
from auditvault.schemas.auth import LoginRequest, RegisterRequest, TokenResponse
from auditvault.schemas.common import ErrorResponse, ValidationErrorResponse
from auditvault.schemas.user import UserResponse
from auditvault.services.auth_service import AuthService

router = APIRouter()


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=201,
    summary="Register a new account",
    description=(
        "Creates a PENDING account.  An administrator or compliance officer "
        "must approve it before the user can log in."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Role cannot be self-assigned"},
        409: {"model": ErrorResponse, "description": "Email already registered"},
        422: {"model": ValidationErrorResponse, "description": "Validation error"},
    },
)
async def register(
    data: RegisterRequest,
    service: AuthService = Depends(get_auth_service),
) -> UserResponse:
    return await service.register(data)


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Log in",
    responses={401: {"model": ErrorResponse, "description": "Invalid credentials or inactive account"}},
)
async def login(
    data: LoginRequest,
    service: AuthService = Depends(get_auth_service),
) -> TokenResponse:
    return await service.login(data)


@router.get(
    "/profile",
    response_model=UserResponse,
    summary="Current user",
    responses={401: {"model": ErrorResponse, "description": "Not authenticated"}},
)
async def profile(current_user: User = Depends(get_current_user)) -> UserResponse:
    return current_user

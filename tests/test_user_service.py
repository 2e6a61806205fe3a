"""
Unit tests for UserService — account directory and review.
"""

from unittest.mock import AsyncMock

import pytest

from auditvault.core.exceptions import (
    AuthorizationException,
    BusinessRuleViolation,
    NotFoundException,
)
from auditvault.models.user import UserRole, UserStatus
from auditvault.services.user_service import UserService

from .conftest import USER_ID_2, make_user


@pytest.fixture()
def user_repo():
    repo = AsyncMock()
    repo.update.side_effect = lambda user: user
    return repo


@pytest.fixture()
def user_service(user_repo):
    return UserService(user_repo)


class TestListUsers:
    @pytest.mark.asyncio
    async def test_compliance_officer_lists_pending(
        self, user_service, user_repo, compliance_officer
    ):
        user_repo.list_users.return_value = [make_user(status=UserStatus.PENDING)]

        result = await user_service.list_users(compliance_officer, status=UserStatus.PENDING)

        assert len(result) == 1
        user_repo.list_users.assert_awaited_once_with(
            status=UserStatus.PENDING, skip=0, limit=100
        )

    @pytest.mark.asyncio
    async def test_auditor_cannot_list(self, user_service, user_repo, auditor):
        with pytest.raises(AuthorizationException):
            await user_service.list_users(auditor)
        user_repo.list_users.assert_not_awaited()


class TestGetUser:
    @pytest.mark.asyncio
    async def test_not_found(self, user_service, user_repo):
        user_repo.get.return_value = None

        with pytest.raises(NotFoundException, match="User"):
            await user_service.get_user(USER_ID_2)


class TestUpdateStatus:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("outcome", [UserStatus.ACTIVE, UserStatus.REJECTED])
    async def test_admin_reviews_pending_account(self, user_service, user_repo, admin, outcome):
        pending = make_user(id=USER_ID_2, role=UserRole.FUND_MANAGER, status=UserStatus.PENDING)
        user_repo.get.return_value = pending

        result = await user_service.update_status(USER_ID_2, outcome, admin)

        assert result.status == outcome
        user_repo.update.assert_awaited_once_with(pending)

    @pytest.mark.asyncio
    async def test_fund_manager_cannot_review(self, user_service, user_repo, fund_manager):
        with pytest.raises(AuthorizationException):
            await user_service.update_status(USER_ID_2, UserStatus.ACTIVE, fund_manager)
        user_repo.update.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cannot_review_own_account(self, user_service, user_repo, admin):
        user_repo.get.return_value = admin

        with pytest.raises(BusinessRuleViolation):
            await user_service.update_status(admin.id, UserStatus.REJECTED, admin)
        user_repo.update.assert_not_awaited()

"""
Integration tests for the API endpoints using httpx AsyncClient.

These tests exercise the full FastAPI request → endpoint → service pipeline
with mocked service layers (and a fixed current user) to isolate from the
database.
"""

from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from auditvault.api.deps import get_auth_service, get_current_user
from auditvault.core.exceptions import (
    AuthenticationException,
    AuthorizationException,
    ConflictException,
    NotFoundException,
    UpstreamException,
    ValidationException,
    add_exception_handlers,
)
from auditvault.models.audit_log import AuditAction
from auditvault.models.document import DocumentStatus
from auditvault.models.user import UserRole, UserStatus
from auditvault.schemas.auth import TokenResponse

from .conftest import (
    DOCUMENT_ID,
    FUND_ID,
    USER_ID_2,
    make_audit_entry,
    make_document,
    make_fund,
    make_user,
)

# ────────────────────────────────────────────────────────────────────────────
# Test app factory
# ────────────────────────────────────────────────────────────────────────────


def _make_test_app() -> FastAPI:
    """
    Build a minimal FastAPI app with the real routers but
    NO database or lifespan — services will be injected via overrides.
    """
    from auditvault.api.v1.api import api_router

    app = FastAPI()
    add_exception_handlers(app)
    app.include_router(api_router, prefix="/api/v1")
    return app


class _EndpointTest:
    """Common setup: real routers, mocked service, authenticated caller."""

    @pytest.fixture(autouse=True)
    def _setup(self):
        self.app = _make_test_app()
        self.mock_service = AsyncMock()
        self.user = make_user(role=UserRole.AUDITOR)
        self.app.dependency_overrides[get_current_user] = lambda: self.user
        self.app.dependency_overrides[get_auth_service] = lambda: AsyncMock()

    def _override(self, factory):
        self.app.dependency_overrides[factory] = lambda: self.mock_service

    async def _request(self, method: str, url: str, **kwargs):
        transport = ASGITransport(app=self.app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            return await client.request(method, url, **kwargs)


# ────────────────────────────────────────────────────────────────────────────
# Authentication
# ────────────────────────────────────────────────────────────────────────────


class TestAuthentication:
    @pytest.fixture(autouse=True)
    def _setup(self):
        self.app = _make_test_app()
        self.auth_service = AsyncMock()
        self.app.dependency_overrides[get_auth_service] = lambda: self.auth_service

    async def _request(self, method: str, url: str, **kwargs):
        transport = ASGITransport(app=self.app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            return await client.request(method, url, **kwargs)

    @pytest.mark.asyncio
    async def test_missing_token_is_401(self):
        resp = await self._request("GET", "/api/v1/documents")

        assert resp.status_code == 401
        assert resp.json() == {"error": True, "message": "Not authenticated"}
        assert resp.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_invalid_token_is_401(self):
        self.auth_service.resolve_token.side_effect = AuthenticationException(
            "Invalid or expired token"
        )

        resp = await self._request(
            "GET", "/api/v1/funds", headers={"Authorization": "Bearer garbage"}
        )

        assert resp.status_code == 401
        self.auth_service.resolve_token.assert_awaited_once_with("garbage")

    @pytest.mark.asyncio
    async def test_login_200(self):
        self.auth_service.login.return_value = TokenResponse(access_token="jwt", expires_in=3600)

        resp = await self._request(
            "POST",
            "/api/v1/auth/login",
            json={"email": "auditor@example.com", "password": "password123"},
        )

        assert resp.status_code == 200
        assert resp.json() == {"access_token": "jwt", "token_type": "bearer", "expires_in": 3600}

    @pytest.mark.asyncio
    async def test_login_bad_credentials_401(self):
        self.auth_service.login.side_effect = AuthenticationException("Invalid email or password")

        resp = await self._request(
            "POST", "/api/v1/auth/login", json={"email": "a@example.com", "password": "x"}
        )

        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_register_201_pending(self):
        self.auth_service.register.return_value = make_user(
            role=UserRole.FUND_MANAGER, status=UserStatus.PENDING
        )

        resp = await self._request(
            "POST",
            "/api/v1/auth/register",
            json={
                "email": "fund_manager@example.com",
                "password": "password123",
                "name": "Test User",
                "role": "FUND_MANAGER",
            },
        )

        assert resp.status_code == 201
        body = resp.json()
        assert body["status"] == "PENDING"
        assert "password_hash" not in body

    @pytest.mark.asyncio
    async def test_register_short_password_422(self):
        resp = await self._request(
            "POST",
            "/api/v1/auth/register",
            json={"email": "x@example.com", "password": "short", "name": "X"},
        )

        assert resp.status_code == 422
        self.auth_service.register.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_profile_returns_current_user(self):
        user = make_user(role=UserRole.ADMIN)
        self.app.dependency_overrides[get_current_user] = lambda: user

        resp = await self._request("GET", "/api/v1/auth/profile")

        assert resp.status_code == 200
        assert resp.json()["role"] == "ADMIN"


# ────────────────────────────────────────────────────────────────────────────
# Documents endpoint tests
# ────────────────────────────────────────────────────────────────────────────


class TestDocumentsEndpoints(_EndpointTest):
    """Tests for /api/v1/documents endpoints."""

    @pytest.fixture(autouse=True)
    def _override_service(self, _setup):
        from auditvault.api.v1.endpoints.documents import _get_document_service

        self._override(_get_document_service)

    @pytest.mark.asyncio
    async def test_list_documents_200(self):
        self.mock_service.find_all.return_value = [make_document(fund=make_fund())]

        resp = await self._request(
            "GET", "/api/v1/documents", params={"status": "PENDING", "type": "KIID"}
        )

        assert resp.status_code == 200
        data = resp.json()
        assert len(data) == 1
        assert data[0]["title"] == "Q1 2025 Report"
        assert data[0]["fund"]["code"] == "GF-001"
        kwargs = self.mock_service.find_all.await_args.kwargs
        assert kwargs["status"] == DocumentStatus.PENDING
        assert kwargs["doc_type"].value == "KIID"

    @pytest.mark.asyncio
    async def test_list_documents_invalid_status_422(self):
        resp = await self._request("GET", "/api/v1/documents", params={"status": "DONE"})

        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_create_document_201(self):
        self.mock_service.create.return_value = make_document()

        resp = await self._request(
            "POST",
            "/api/v1/documents",
            data={
                "title": "Q1 2025 Report",
                "fund_id": str(FUND_ID),
                "type": "QUARTERLY_REPORT",
                "period_start": "2025-01-01",
                "period_end": "2025-03-31",
            },
            files={"file": ("report.pdf", b"%PDF-1.4 test", "application/pdf")},
        )

        assert resp.status_code == 201
        assert resp.json()["status"] == "PENDING"
        doc_in, payload, user = self.mock_service.create.await_args.args
        assert doc_in.fund_id == FUND_ID
        assert payload.filename == "report.pdf"
        assert payload.data == b"%PDF-1.4 test"
        assert user is self.user

    @pytest.mark.asyncio
    async def test_create_document_validation_400(self):
        self.mock_service.create.side_effect = ValidationException(
            "title is required", details=["title is required", "type is required"]
        )

        resp = await self._request(
            "POST",
            "/api/v1/documents",
            files={"file": ("report.pdf", b"%PDF", "application/pdf")},
        )

        assert resp.status_code == 400
        assert resp.json()["details"] == ["title is required", "type is required"]

    @pytest.mark.asyncio
    async def test_create_document_storage_failure_502(self):
        self.mock_service.create.side_effect = UpstreamException(
            "Failed to store the uploaded file after 5 attempts"
        )

        resp = await self._request(
            "POST",
            "/api/v1/documents",
            data={"title": "T"},
            files={"file": ("report.pdf", b"%PDF", "application/pdf")},
        )

        assert resp.status_code == 502

    @pytest.mark.asyncio
    async def test_get_document_with_history(self):
        self.mock_service.find_one.return_value = (
            make_document(),
            [
                make_audit_entry(
                    id=2,
                    action=AuditAction.STATUS_CHANGED,
                    details={"oldStatus": "PENDING", "newStatus": "APPROVED", "comment": None},
                ),
                make_audit_entry(id=1),
            ],
        )

        resp = await self._request("GET", f"/api/v1/documents/{DOCUMENT_ID}")

        assert resp.status_code == 200
        logs = resp.json()["audit_logs"]
        assert [entry["action"] for entry in logs] == ["STATUS_CHANGED", "CREATED"]
        assert logs[0]["details"]["newStatus"] == "APPROVED"
        assert logs[0]["user"]["role"] == "AUDITOR"

    @pytest.mark.asyncio
    async def test_get_document_404(self):
        self.mock_service.find_one.side_effect = NotFoundException("Document", DOCUMENT_ID)

        resp = await self._request("GET", f"/api/v1/documents/{DOCUMENT_ID}")

        assert resp.status_code == 404
        assert resp.json()["error"] is True

    @pytest.mark.asyncio
    async def test_history_200(self):
        self.mock_service.get_history.return_value = [make_audit_entry()]

        resp = await self._request("GET", f"/api/v1/documents/{DOCUMENT_ID}/history")

        assert resp.status_code == 200
        assert resp.json()[0]["details"] == {"fileKey": make_document().file_key}

    @pytest.mark.asyncio
    async def test_download_streams_file(self):
        async def _chunks():
            yield b"%PDF-"
            yield b"1.4"

        self.mock_service.open_download.return_value = (make_document(), _chunks())

        resp = await self._request("GET", f"/api/v1/documents/{DOCUMENT_ID}/download")

        assert resp.status_code == 200
        assert resp.content == b"%PDF-1.4"
        assert resp.headers["content-type"] == "application/pdf"
        assert 'filename="report.pdf"' in resp.headers["content-disposition"]

    @pytest.mark.asyncio
    async def test_update_status_200(self):
        self.mock_service.update_status.return_value = make_document(
            status=DocumentStatus.APPROVED
        )

        resp = await self._request(
            "PATCH",
            f"/api/v1/documents/{DOCUMENT_ID}/status",
            json={"status": "APPROVED", "comment": "All figures verified"},
        )

        assert resp.status_code == 200
        assert resp.json()["status"] == "APPROVED"
        self.mock_service.update_status.assert_awaited_once_with(
            DOCUMENT_ID, DocumentStatus.APPROVED, "All figures verified", self.user
        )

    @pytest.mark.asyncio
    async def test_update_status_forbidden_403(self):
        self.mock_service.update_status.side_effect = AuthorizationException(
            "Your role is not allowed to set document status to APPROVED"
        )

        resp = await self._request(
            "PATCH", f"/api/v1/documents/{DOCUMENT_ID}/status", json={"status": "APPROVED"}
        )

        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_update_status_unknown_value_422(self):
        resp = await self._request(
            "PATCH", f"/api/v1/documents/{DOCUMENT_ID}/status", json={"status": "DONE"}
        )

        assert resp.status_code == 422
        self.mock_service.update_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_204(self):
        resp = await self._request("DELETE", f"/api/v1/documents/{DOCUMENT_ID}")

        assert resp.status_code == 204
        assert resp.content == b""
        self.mock_service.remove.assert_awaited_once_with(DOCUMENT_ID)


# ────────────────────────────────────────────────────────────────────────────
# Funds endpoint tests
# ────────────────────────────────────────────────────────────────────────────


class TestFundsEndpoints(_EndpointTest):
    """Tests for /api/v1/funds endpoints."""

    @pytest.fixture(autouse=True)
    def _override_service(self, _setup):
        from auditvault.api.v1.endpoints.funds import _get_fund_service

        self._override(_get_fund_service)

    @pytest.mark.asyncio
    async def test_list_funds_200(self):
        self.mock_service.find_all.return_value = [make_fund()]

        resp = await self._request("GET", "/api/v1/funds")

        assert resp.status_code == 200
        assert resp.json()[0]["code"] == "GF-001"

    @pytest.mark.asyncio
    async def test_create_fund_201(self):
        self.mock_service.create.return_value = make_fund(code="GF-009", name="New Fund")

        resp = await self._request(
            "POST", "/api/v1/funds", json={"code": "gf-009", "name": "New Fund"}
        )

        assert resp.status_code == 201
        fund_in = self.mock_service.create.await_args.args[0]
        assert fund_in.code == "GF-009"

    @pytest.mark.asyncio
    async def test_create_fund_blank_name_422(self):
        resp = await self._request("POST", "/api/v1/funds", json={"code": "GF-9", "name": "  "})

        assert resp.status_code == 422
        self.mock_service.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_create_fund_forbidden_403(self):
        self.mock_service.create.side_effect = AuthorizationException(
            "Your role is not allowed to create funds"
        )

        resp = await self._request("POST", "/api/v1/funds", json={"code": "GF-9", "name": "F"})

        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_create_fund_duplicate_409(self):
        self.mock_service.create.side_effect = ConflictException(
            "A fund with code 'GF-001' already exists"
        )

        resp = await self._request("POST", "/api/v1/funds", json={"code": "GF-001", "name": "F"})

        assert resp.status_code == 409

    @pytest.mark.asyncio
    async def test_get_fund_404(self):
        self.mock_service.get.side_effect = NotFoundException("Fund", FUND_ID)

        resp = await self._request("GET", f"/api/v1/funds/{FUND_ID}")

        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_update_fund_200(self):
        self.mock_service.update.return_value = make_fund(name="Renamed")

        resp = await self._request("PATCH", f"/api/v1/funds/{FUND_ID}", json={"name": "Renamed"})

        assert resp.status_code == 200
        assert resp.json()["name"] == "Renamed"


# ────────────────────────────────────────────────────────────────────────────
# Users endpoint tests
# ────────────────────────────────────────────────────────────────────────────


class TestUsersEndpoints(_EndpointTest):
    @pytest.fixture(autouse=True)
    def _override_service(self, _setup):
        from auditvault.api.v1.endpoints.users import _get_user_service

        self._override(_get_user_service)

    @pytest.mark.asyncio
    async def test_approve_user_200(self):
        self.mock_service.update_status.return_value = make_user(
            id=USER_ID_2, role=UserRole.FUND_MANAGER, status=UserStatus.ACTIVE
        )

        resp = await self._request(
            "POST", f"/api/v1/users/{USER_ID_2}/status", json={"status": "ACTIVE"}
        )

        assert resp.status_code == 200
        assert resp.json()["status"] == "ACTIVE"

    @pytest.mark.asyncio
    async def test_pending_is_not_a_review_outcome(self):
        resp = await self._request(
            "POST", f"/api/v1/users/{USER_ID_2}/status", json={"status": "PENDING"}
        )

        assert resp.status_code == 422
        self.mock_service.update_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_list_users_forbidden_403(self):
        self.mock_service.list_users.side_effect = AuthorizationException(
            "Your role is not allowed to list users"
        )

        resp = await self._request("GET", "/api/v1/users")

        assert resp.status_code == 403


# ────────────────────────────────────────────────────────────────────────────
# Chat endpoint tests
# ────────────────────────────────────────────────────────────────────────────


class TestChatEndpoints(_EndpointTest):
    @pytest.mark.asyncio
    async def test_models_200(self):
        resp = await self._request("GET", "/api/v1/chat/models")

        assert resp.status_code == 200
        assert "openai/gpt-3.5-turbo" in resp.json()["models"]

    @pytest.mark.asyncio
    async def test_completion_unavailable_503(self):
        from auditvault.api.v1.endpoints.chat import _get_chat_service

        self._override(_get_chat_service)
        self.mock_service.complete.side_effect = UpstreamException(
            "Rate limit exceeded. Please try again later.", status_code=503
        )

        resp = await self._request(
            "POST",
            "/api/v1/chat/completions",
            json={"messages": [{"role": "user", "content": "hi"}]},
        )

        assert resp.status_code == 503
        assert resp.json()["message"].startswith("Rate limit exceeded")

    @pytest.mark.asyncio
    async def test_empty_messages_422(self):
        from auditvault.api.v1.endpoints.chat import _get_chat_service

        self._override(_get_chat_service)

        resp = await self._request("POST", "/api/v1/chat/completions", json={"messages": []})

        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_delete_other_users_session_403(self):
        from auditvault.api.v1.endpoints.chat import _get_chat_session_service

        self._override(_get_chat_session_service)
        self.mock_service.delete.side_effect = AuthorizationException("Access denied")

        resp = await self._request("DELETE", f"/api/v1/chat/sessions/{DOCUMENT_ID}")

        assert resp.status_code == 403
        assert resp.json()["message"] == "Access denied"


# ────────────────────────────────────────────────────────────────────────────
# Health check
# ────────────────────────────────────────────────────────────────────────────


class TestHealth:
    @pytest.mark.asyncio
    async def test_health_reports_database_and_breaker(self):
        from auditvault.main import APP_VERSION, app

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get("/health")

        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["database"] is True
        assert body["version"] == APP_VERSION
        assert body["circuit_breaker"]["name"] == "database"
        assert "X-Request-ID" in resp.headers

"""Tests for admin authentication and the admin API gate."""

from datetime import timedelta

import pytest
from fastapi import HTTPException
from httpx import AsyncClient

from contractor_crm.core import auth
from contractor_crm.core.auth import is_allowed_admin, require_admin, set_mock_jwks
from contractor_crm.core.config import settings
from tests.helpers.jwt_helpers import MockJWTGenerator

LEADS_URL = "/api/v1/crm/leads"


class TestIsAllowedAdmin:
    """Tests for the admin allowlist check."""

    @pytest.mark.parametrize("email", ["owner@example.com", "OWNER@EXAMPLE.COM", " office@example.com "])
    def test_allowlisted(self, email: str) -> None:
        """Test that allowlisted emails match regardless of case and whitespace."""
        assert is_allowed_admin(email) is True

    @pytest.mark.parametrize("email", [None, "", "someone@example.com"])
    def test_not_allowlisted(self, email: str | None) -> None:
        """Test that missing or unknown emails are refused."""
        assert is_allowed_admin(email) is False

    def test_empty_allowlist_denies_everyone(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that no configured admins means no admin access."""
        monkeypatch.setattr(settings, "ADMIN_EMAILS", [])
        assert is_allowed_admin("owner@example.com") is False


class TestRequireAdmin:
    """Tests for require_admin."""

    @pytest.mark.asyncio
    async def test_returns_identity(self) -> None:
        """Test that an allowlisted payload yields a normalized identity."""
        admin = await require_admin({"sub": "auth0|1", "email": "Owner@Example.com"})

        assert admin.subject == "auth0|1"
        assert admin.email == "owner@example.com"

    @pytest.mark.asyncio
    async def test_missing_subject(self) -> None:
        """Test that a token without sub is a 401."""
        with pytest.raises(HTTPException) as exc_info:
            await require_admin({"email": "owner@example.com"})
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_missing_email(self) -> None:
        """Test that a token without an email claim is a 403."""
        with pytest.raises(HTTPException) as exc_info:
            await require_admin({"sub": "auth0|1"})
        assert exc_info.value.status_code == 403
        assert exc_info.value.detail == "Admin privileges required"


class TestSetMockJwks:
    """Tests for the DEBUG-only JWKS override."""

    def test_refused_outside_debug(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that mock keys cannot be installed in production mode."""
        monkeypatch.setattr(settings, "DEBUG", False)
        with pytest.raises(RuntimeError, match="only be called in DEBUG mode"):
            set_mock_jwks({"keys": []})


class TestAdminEndpointsAuth:
    """Tests for authentication on the admin CRM endpoints."""

    @pytest.mark.asyncio
    async def test_missing_token(self, async_client: AsyncClient) -> None:
        """Test that a request without a bearer token is a 401."""
        response = await async_client.get(LEADS_URL)
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_garbage_token(self, async_client: AsyncClient) -> None:
        """Test that an unparseable token is a 401."""
        response = await async_client.get(LEADS_URL, headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_expired_token(self, async_client: AsyncClient) -> None:
        """Test that an expired token is a 401."""
        token = MockJWTGenerator.generate("auth0|admin-1", email="owner@example.com", expires_in=timedelta(seconds=-60))

        response = await async_client.get(LEADS_URL, headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_wrong_audience(self, async_client: AsyncClient) -> None:
        """Test that a token for another API is a 401."""
        token = MockJWTGenerator.generate("auth0|admin-1", email="owner@example.com", audience="https://other.api")

        response = await async_client.get(LEADS_URL, headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_non_admin_forbidden(self, async_client: AsyncClient, non_admin_headers: dict[str, str]) -> None:
        """Test that a valid token for a non-admin is a 403."""
        response = await async_client.get(LEADS_URL, headers=non_admin_headers)

        assert response.status_code == 403
        assert response.json()["detail"] == "Admin privileges required"

    @pytest.mark.asyncio
    async def test_admin_allowed(self, async_client: AsyncClient, admin_headers: dict[str, str]) -> None:
        """Test that an allowlisted admin gets through."""
        response = await async_client.get(LEADS_URL, headers=admin_headers)
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_public_endpoint_needs_no_token(self, async_client: AsyncClient) -> None:
        """Test that the widget config endpoint is public."""
        response = await async_client.get("/api/v1/crm/turnstile")
        assert response.status_code == 200


class TestAdminRateLimit:
    """Tests for the admin API rate limit."""

    @pytest.mark.asyncio
    async def test_admin_requests_limited(
        self, async_client: AsyncClient, admin_headers: dict[str, str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that admins over the per-IP budget get a 429 with rate limit headers."""
        monkeypatch.setattr(settings, "ADMIN_API_LIMIT", 2)

        statuses = [(await async_client.get(LEADS_URL, headers=admin_headers)).status_code for _ in range(3)]

        assert statuses == [200, 200, 429]
        response = await async_client.get(LEADS_URL, headers=admin_headers)
        assert response.json()["detail"] == "Too many requests. Please try again later."
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert "Retry-After" in response.headers

    @pytest.mark.asyncio
    async def test_limit_applies_before_authentication(
        self, async_client: AsyncClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that unauthenticated floods are limited too."""
        monkeypatch.setattr(settings, "ADMIN_API_LIMIT", 1)

        first = await async_client.get(LEADS_URL)
        second = await async_client.get(LEADS_URL)

        assert first.status_code == 401
        assert second.status_code == 429

    @pytest.mark.asyncio
    async def test_budget_shared_across_ids(
        self, async_client: AsyncClient, admin_headers: dict[str, str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that different ids on one route template share a budget."""
        monkeypatch.setattr(settings, "ADMIN_API_LIMIT", 1)

        first = await async_client.get(f"{LEADS_URL}/00000000-0000-0000-0000-000000000001", headers=admin_headers)
        second = await async_client.get(f"{LEADS_URL}/00000000-0000-0000-0000-000000000002", headers=admin_headers)

        assert first.status_code == 404
        assert second.status_code == 429


def test_mock_jwks_installed() -> None:
    """Test that the session fixture installed the generator's keys."""
    assert auth._mock_jwks == MockJWTGenerator.get_mock_jwks()

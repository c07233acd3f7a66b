"""Pytest configuration and fixtures."""

import os

# Configure the environment BEFORE any contractor_crm imports; settings load on import
os.environ["DEBUG"] = "true"
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["AUTH0_DOMAIN"] = "test.auth0.com"
os.environ["AUTH0_API_AUDIENCE"] = "https://api.contractor-crm.test"
os.environ["ADMIN_EMAILS"] = "owner@example.com,Office@Example.com"
os.environ["SECRET_PII_HASH"] = "test-pii-hash-secret-at-least-32-characters"
os.environ["SECRET_TURNSTILE_SECRET_KEY"] = "test-turnstile-secret"
os.environ["TURNSTILE_SITE_KEY"] = "test-site-key"
os.environ["TURNSTILE_TEST_BYPASS"] = "true"
os.environ["OTEL_ENABLED"] = "false"

from collections.abc import AsyncGenerator, Callable, Generator
from typing import Any

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from contractor_crm.api.dependencies import get_rate_limiter, get_turnstile_verifier
from contractor_crm.core.auth import clear_jwks_cache, set_mock_jwks
from contractor_crm.core.database import get_db
from contractor_crm.main import app
from contractor_crm.models import Base
from contractor_crm.services.rate_limiter import RateLimiter
from contractor_crm.services.turnstile_service import TurnstileVerifier
from tests.helpers.jwt_helpers import MockJWTGenerator

ADMIN_EMAIL = "owner@example.com"
SITEVERIFY_URL = "https://challenges.cloudflare.com/turnstile/v0/siteverify"

TurnstileHandler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture(scope="session", autouse=True)
def setup_mock_jwks() -> Generator[None]:
    """Install the mock JWKS so admin tokens signed by MockJWTGenerator verify."""
    clear_jwks_cache()
    set_mock_jwks(MockJWTGenerator.get_mock_jwks())
    yield
    clear_jwks_cache()


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """
    In-memory SQLite database with every table created.

    StaticPool keeps a single connection so the schema survives across
    sessions within one test.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Database session shared by the test body and the app under test."""
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def rate_limiter() -> RateLimiter:
    """Fresh limiter per test so budgets never leak between tests."""
    return RateLimiter()


@pytest.fixture
def turnstile_handler() -> TurnstileHandler:
    """Siteverify stub that accepts every token. Override in a test to change the answer."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": True, "hostname": "example.com"})

    return handler


@pytest.fixture
async def turnstile_verifier(turnstile_handler: TurnstileHandler) -> AsyncGenerator[TurnstileVerifier]:
    """Verifier whose upstream calls go to the stub handler."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(turnstile_handler)) as http_client:
        yield TurnstileVerifier(
            "test-turnstile-secret",
            environment="test",
            bypass_enabled=False,
            site_key="test-site-key",
            verify_url=SITEVERIFY_URL,
            http_client=http_client,
        )


@pytest.fixture
async def async_client(
    db_session: AsyncSession,
    rate_limiter: RateLimiter,
    turnstile_verifier: TurnstileVerifier,
) -> AsyncGenerator[AsyncClient]:
    """HTTP client for the app with database, limiter and verifier overridden."""

    async def override_get_db() -> AsyncGenerator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    app.dependency_overrides[get_turnstile_verifier] = lambda: turnstile_verifier

    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict[str, str]:
    """Bearer headers for an allowlisted admin."""
    token = MockJWTGenerator.generate(subject="auth0|admin-1", email=ADMIN_EMAIL)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def non_admin_headers() -> dict[str, str]:
    """Bearer headers for a signed-in user who is not on the allowlist."""
    token = MockJWTGenerator.generate(subject="auth0|user-1", email="someone@example.com")
    return {"Authorization": f"Bearer {token}"}


def lead_form(**overrides: Any) -> dict[str, Any]:
    """Valid contact form body; keyword arguments replace or add fields."""
    body: dict[str, Any] = {
        "fullName": "Jane Homeowner",
        "email": "jane@example.com",
        "phone": "(415) 555-2671",
        "message": "Looking to remodel our kitchen this spring.",
        "serviceType": "Kitchen Remodel",
        "turnstileToken": "valid-token",
    }
    body.update(overrides)
    return body

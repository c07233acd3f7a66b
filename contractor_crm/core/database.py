"""Async database engine and session management.

The engine and session factory are created on first use rather than at
import, so every forked uvicorn worker builds its own connection pool on its
own event loop.
"""

import threading
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from contractor_crm.core.config import settings

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None
_init_lock = threading.Lock()


def _engine_options() -> dict[str, Any]:
    """Pool options for the current mode; DEBUG runs without a pool."""
    if settings.DEBUG:
        # Pooled connections outlive pytest-asyncio's per-test event loops
        return {"poolclass": NullPool}
    return {
        "pool_size": settings.DATABASE_POOL_SIZE,
        "max_overflow": settings.DATABASE_MAX_OVERFLOW,
        "pool_pre_ping": True,
    }


def get_engine() -> AsyncEngine:
    """
    Return the process-wide async engine, creating it on first call.

    Returns:
        AsyncEngine bound to ``settings.DATABASE_URL``
    """
    global _engine  # noqa: PLW0603
    if _engine is None:
        with _init_lock:
            if _engine is None:
                _engine = create_async_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO, **_engine_options())
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the process-wide session factory (objects stay usable after commit)."""
    global _session_factory  # noqa: PLW0603
    if _session_factory is None:
        engine = get_engine()
        with _init_lock:
            if _session_factory is None:
                _session_factory = async_sessionmaker(
                    engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                    autoflush=False,
                )
    return _session_factory


async def dispose_engine() -> None:
    """Close pooled connections and forget the engine. No-op if none was created."""
    global _engine, _session_factory  # noqa: PLW0603
    engine = _engine
    _engine = None
    _session_factory = None
    if engine is not None:
        await engine.dispose()


async def get_db() -> AsyncGenerator[AsyncSession]:
    """
    FastAPI dependency yielding one session per request.

    Yields:
        AsyncSession that is closed when the request finishes
    """
    async with get_session_factory()() as session:
        yield session

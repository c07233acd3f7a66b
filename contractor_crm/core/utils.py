"""Core utility functions."""

from sqlalchemy.engine import make_url

# Async driver -> sync driver used for migrations; None drops the driver suffix
_SYNC_DRIVERS = {
    "asyncpg": "psycopg",
    "aiosqlite": None,
}


def convert_async_db_url_to_sync(database_url: str) -> str:
    """
    Swap an async driver in a SQLAlchemy URL for its sync counterpart.

    ``postgresql+asyncpg://`` becomes ``postgresql+psycopg://`` and
    ``sqlite+aiosqlite://`` becomes ``sqlite://``. Other URLs are returned
    unchanged.
    """
    url = make_url(database_url)
    if "+" not in url.drivername or url.get_driver_name() not in _SYNC_DRIVERS:
        return database_url
    sync_driver = _SYNC_DRIVERS[url.get_driver_name()]
    backend = url.get_backend_name()
    drivername = f"{backend}+{sync_driver}" if sync_driver else backend
    return url.set(drivername=drivername).render_as_string(hide_password=False)

"""Alembic environment for the CRM schema.

The application talks to the database through an async driver; migrations
run on the matching sync driver against the same URL.
"""

import logging
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from contractor_crm.core.config import settings
from contractor_crm.core.utils import convert_async_db_url_to_sync
from contractor_crm.models import Base  # registers every table on Base.metadata

logger = logging.getLogger("alembic.env")

config = context.config
config.set_main_option("sqlalchemy.url", convert_async_db_url_to_sync(settings.DATABASE_URL))

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit migration SQL to stdout without connecting."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply pending migrations over a live connection and log each step."""
    engine = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    applied: list[str] = []

    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            on_version_apply=lambda step, **_: applied.append(step.up_revision_id),
        )
        start = context.get_context().get_current_revision()
        head = context.script.get_current_head()
        logger.info("Migrating CRM schema from %s to %s", start or "empty database", head)

        with context.begin_transaction():
            context.run_migrations()

    if applied:
        logger.info("Applied %d migration(s): %s", len(applied), ", ".join(applied))
    else:
        logger.info("Schema already at %s", head)


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()

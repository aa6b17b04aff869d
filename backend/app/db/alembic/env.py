"""Alembic migration environment.

Migrations always target ``DATABASE_URL`` from the app settings, rewritten to
a sync driver. SQLite runs in batch mode so column changes can be replayed
through table copies.
"""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine
from sqlalchemy.pool import NullPool

from backend.app.config import get_settings
from backend.app.db.engine import normalize_sync_url
from backend.app.db.models import Base

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def migration_url() -> str:
    database_url = get_settings().database_url
    if not database_url:
        raise RuntimeError("DATABASE_URL must be set to run migrations")
    return normalize_sync_url(database_url)


def configure_options(url: str) -> dict[str, object]:
    return {
        "target_metadata": Base.metadata,
        "compare_type": True,
        "render_as_batch": url.startswith("sqlite"),
    }


def run_offline(url: str) -> None:
    """Emit migration SQL to stdout without connecting."""
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **configure_options(url),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_online(url: str) -> None:
    """Apply migrations over a single short-lived connection."""
    engine = create_engine(url, poolclass=NullPool)
    try:
        with engine.connect() as connection:
            context.configure(connection=connection, **configure_options(url))
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


url = migration_url()
if context.is_offline_mode():
    run_offline(url)
else:
    run_online(url)

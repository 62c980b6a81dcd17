"""Alembic environment for the credential store: DATABASE_URL and metadata come from the app."""

from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine
from sqlalchemy.pool import NullPool

from app.core.config import settings
from app.models import Base, User  # noqa: F401

LOGGING_SECTIONS = ("loggers", "handlers", "formatters")

config = context.config
if config.config_file_name is not None and all(
    config.file_config.has_section(section) for section in LOGGING_SECTIONS
):
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _store_url() -> str:
    """An explicit sqlalchemy.url (set by callers of alembic.command) wins over settings."""
    return config.get_main_option("sqlalchemy.url") or settings.DATABASE_URL


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def run_migrations_offline() -> None:
    """Emit SQL for the credential store without connecting."""
    url = _store_url()
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=_is_sqlite(url),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Connect to the credential store and apply migrations."""
    url = _store_url()
    connectable = create_engine(url, poolclass=NullPool)
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=_is_sqlite(url),
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()

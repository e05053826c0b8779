"""
Alembic Environment for the Catalog Database

Migrations only touch the SQL catalog (the `books` table). The connection
URL comes from library_api settings (DATABASE_URL), never from alembic.ini,
so migrations run against the same database the API serves.

SQLite databases (local development, tests) are migrated in batch mode,
since SQLite cannot ALTER most column properties in place.

Usage:
    alembic upgrade head
    alembic upgrade head --sql > catalog.sql   # offline, review first
    alembic revision --autogenerate -m "add books column"
"""

from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool

from alembic import context
from library_api.config import get_settings
from library_api.database import Base
from library_api.models import Book  # noqa: F401 - registers the books table

config = context.config
config.set_main_option("sqlalchemy.url", get_settings().database_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def run_migrations_offline() -> None:
    """Emit the migration SQL instead of executing it."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        render_as_batch=_is_sqlite(url),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Connect to the catalog database and apply migrations."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()

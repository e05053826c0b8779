"""
Database Configuration Module

SQLAlchemy 2.0 setup for the SQL catalog backend.

We use SYNCHRONOUS SQLAlchemy with psycopg2 for PostgreSQL (SQLite works for
tests and local experiments). The catalog adapter runs each query in a worker
thread with its own session, so the async request path never blocks on it
and concurrent queries never share a session.

Unlike a classic per-request `get_db` dependency, the engine and session
factory are created by the application factory and handed to the catalog
adapter; nothing here is created at import time.
"""

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from library_api.config import Settings


# =============================================================================
# Base Model Class
# =============================================================================
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Alembic uses Base.metadata to discover tables for migrations.
    """
    pass


# =============================================================================
# Engine & Session Factory
# =============================================================================
def create_catalog_engine(settings: Settings) -> Engine:
    """
    Create the SQLAlchemy engine for the catalog database.

    Key parameters:
    - pool_size / max_overflow: connection pool bounds (PostgreSQL only)
    - pool_pre_ping: test connection health before using it
    - echo: log all SQL statements in debug mode

    SQLite does not accept pool sizing arguments, and its connections must be
    usable from the worker threads the adapter runs queries in.

    Args:
        settings: Application settings

    Returns:
        Configured Engine
    """
    if settings.database_url.startswith("sqlite"):
        return create_engine(
            settings.database_url,
            connect_args={"check_same_thread": False},
            echo=settings.debug,
        )

    return create_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        echo=settings.debug,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    """
    Create a session factory bound to the engine.

    - autocommit=False: we control when to commit
    - autoflush=False: no implicit flushes before queries
    - expire_on_commit=False: rows stay readable after the session closes
    """
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


def create_tables(engine: Engine) -> None:
    """
    Create all database tables.

    WARNING: In production, use Alembic migrations instead!
    """
    Base.metadata.create_all(bind=engine)


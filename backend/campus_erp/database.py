"""
Database connection and session management module.

Uses SQLAlchemy for the local key-value table. Supports PostgreSQL and
SQLite (the default, one file per installation).
Engines are built through make_engine() so tests can point a store at an
in-memory database without touching the module-level engine.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from sqlalchemy.pool import StaticPool

from campus_erp.config import DATABASE_URL


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


def make_engine(url: str = DATABASE_URL):
    """
    Create a SQLAlchemy engine with the right options for the backend.

    SQLite does not support pool_size, max_overflow, or pool_pre_ping.
    In-memory SQLite gets a StaticPool so every session shares one
    connection (and therefore one database).
    """
    engine_kwargs = {"echo": False}

    if url.startswith("postgresql"):
        engine_kwargs.update({
            "pool_size": 10,
            "max_overflow": 20,
            "pool_pre_ping": True,
        })
    elif url.startswith("sqlite"):
        # SQLite needs check_same_thread=False for FastAPI (multi-threaded)
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            engine_kwargs["poolclass"] = StaticPool

    engine = create_engine(url, **engine_kwargs)

    # Enable WAL mode for file-backed SQLite
    if url.startswith("sqlite") and ":memory:" not in url and url != "sqlite://":
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    return engine


def make_session_factory(engine):
    """Session factory bound to the given engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def create_tables(engine):
    """
    Create all database tables directly (used for SQLite local dev).
    For PostgreSQL, use Alembic migrations instead.
    """
    # Import models so they are registered with Base.metadata
    from campus_erp.models import StorageEntry  # noqa: F401
    Base.metadata.create_all(bind=engine)

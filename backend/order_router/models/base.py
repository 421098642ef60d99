"""SQLAlchemy base, async engine setup, DecimalText type, and SQLite pragmas."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import String, TypeDecorator

DEFAULT_BUSY_TIMEOUT_MS = 5000


class DecimalText(TypeDecorator[Decimal]):
    """Store Python Decimal as TEXT in SQLite for exact precision.

    Order amounts must use this type so the submitted value is
    persisted without binary floating-point truncation.
    """

    impl = String
    cache_ok = True

    def process_bind_param(
        self,
        value: Decimal | None,
        dialect: Any,
    ) -> str | None:
        if value is None:
            return None
        return str(value)

    def process_result_value(
        self,
        value: str | None,
        dialect: Any,
    ) -> Decimal | None:
        if value is None:
            return None
        return Decimal(value)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def set_sqlite_pragmas(
    dbapi_connection: Any,
    connection_record: Any,
) -> None:
    """Set SQLite pragmas on every new connection.

    SQLite pragmas are per-connection, not per-database, so they must
    be set every time.
    """
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute(f"PRAGMA busy_timeout={DEFAULT_BUSY_TIMEOUT_MS}")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def register_engine_events(engine: Engine) -> None:
    """Register SQLite pragma listener on an engine."""
    event.listen(engine, "connect", set_sqlite_pragmas)


def create_engine(url: str) -> AsyncEngine:
    """Create an async engine; file-backed SQLite gets WAL pragmas."""
    engine = create_async_engine(url, echo=False)
    if url.startswith("sqlite") and ":///" in url:
        register_engine_events(engine.sync_engine)
    return engine


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    # Imported for their side effect of populating Base.metadata
    import order_router.models.job  # noqa: F401
    import order_router.models.order  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

"""Shared test fixtures for order-router."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterator
from pathlib import Path

import pytest
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from order_router.models import Base, init_db
from order_router.models.base import create_engine, make_session_factory
from order_router.orders.pipeline import OrderPipeline
from order_router.orders.store import OrderStore
from order_router.venues.fake.client import FakeVenueClient
from tests.factories import RecordingNotifier, make_pipeline_config, make_quote


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """Drop handlers bound to streams a test (e.g. CliRunner) has closed."""
    yield
    logging.getLogger().handlers.clear()
    structlog.reset_defaults()


@pytest.fixture
async def db_session_factory() -> async_sessionmaker[AsyncSession]:
    """Create in-memory async SQLite with all tables."""
    engine = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def file_session_factory(
    tmp_path: Path,
) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """File-backed SQLite for tests that run concurrent sessions."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    await init_db(engine)
    try:
        yield make_session_factory(engine)
    finally:
        await engine.dispose()


@pytest.fixture
def store(db_session_factory: async_sessionmaker[AsyncSession]) -> OrderStore:
    return OrderStore(db_session_factory)


@pytest.fixture
def venues() -> FakeVenueClient:
    """Raydium effective 0.99750 beats Meteora effective 0.98703."""
    return FakeVenueClient(
        quotes={
            "Raydium": make_quote(venue="Raydium", price="1.00", fee="0.0025"),
            "Meteora": make_quote(venue="Meteora", price="0.99", fee="0.003"),
        }
    )


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def pipeline(
    venues: FakeVenueClient,
    store: OrderStore,
    notifier: RecordingNotifier,
) -> OrderPipeline:
    return OrderPipeline(venues, store, notifier, make_pipeline_config())

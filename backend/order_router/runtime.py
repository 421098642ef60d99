"""Process wiring: one engine, store, queue, notifier and pipeline."""

from __future__ import annotations

import random
from dataclasses import dataclass
from pathlib import Path
from typing import Self

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine

from order_router.config import AppConfig
from order_router.models.base import create_engine, init_db, make_session_factory
from order_router.notify.notifier import StatusNotifier
from order_router.notify.server import StatusServer
from order_router.orders.pipeline import OrderPipeline
from order_router.orders.service import OrderService
from order_router.orders.store import OrderStore
from order_router.queue.job_queue import JobQueue
from order_router.queue.worker import Worker
from order_router.venues.mock.client import MockVenueClient
from order_router.venues.venue_client import VenueClient

log = structlog.get_logger()


@dataclass
class Runtime:
    """Shared process-wide resources, built from AppConfig."""

    config: AppConfig
    engine: AsyncEngine
    store: OrderStore
    queue: JobQueue
    notifier: StatusNotifier
    venues: VenueClient
    pipeline: OrderPipeline
    service: OrderService

    @classmethod
    def build(
        cls,
        config: AppConfig,
        venues: VenueClient | None = None,
        database_url: str | None = None,
    ) -> Runtime:
        if database_url is None:
            Path(config.db_path).parent.mkdir(parents=True, exist_ok=True)
            database_url = config.database_url
        engine = create_engine(database_url)
        session_factory = make_session_factory(engine)
        store = OrderStore(session_factory)
        queue = JobQueue(session_factory, config.queue)
        notifier = StatusNotifier()
        venue_client = venues or MockVenueClient(config.mock_venue, rng=random.Random())
        pipeline = OrderPipeline(venue_client, store, notifier, config.pipeline)
        return cls(
            config=config,
            engine=engine,
            store=store,
            queue=queue,
            notifier=notifier,
            venues=venue_client,
            pipeline=pipeline,
            service=OrderService(store, queue),
        )

    def make_worker(self) -> Worker:
        return Worker.from_config(
            self.queue,
            self.pipeline.handle_job,
            self.config.queue,
            on_stalled=self.pipeline.handle_stalled,
        )

    def make_status_server(self) -> StatusServer:
        return StatusServer(
            self.notifier,
            self.config.notifier.host,
            self.config.notifier.port,
        )

    async def __aenter__(self) -> Self:
        await init_db(self.engine)
        await self.venues.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        await self.venues.disconnect()
        await self.engine.dispose()

"""Click CLI commands for order-router."""

from __future__ import annotations

import asyncio
import contextlib
import signal
from typing import TYPE_CHECKING

import click

from order_router.config import AppConfig
from order_router.utils.logging import setup_logging

if TYPE_CHECKING:
    from order_router.orders.types import OrderRecord
    from order_router.runtime import Runtime


def _load_config() -> AppConfig:
    config = AppConfig()
    setup_logging(level=config.log_level, log_format=config.log_format)
    return config


def _build_runtime(config: AppConfig) -> Runtime:
    from order_router.runtime import Runtime

    return Runtime.build(config)


def _print_order(record: OrderRecord) -> None:
    click.echo(f"Order:     {record.order_id}")
    click.echo(f"Pair:      {record.token_in} -> {record.token_out}")
    click.echo(f"Amount:    {record.amount}")
    click.echo(f"Status:    {record.status.value}")
    click.echo(f"Provider:  {record.provider or '-'}")
    click.echo(f"Tx hash:   {record.tx_hash or '-'}")
    click.echo(f"Updated:   {record.updated_at}")


@click.group()
def cli() -> None:
    """Order-router: best-price token swaps across simulated venues."""


@cli.command("init-db")
def init_db_command() -> None:
    """Create the order and job tables."""
    config = _load_config()

    async def _run() -> None:
        async with _build_runtime(config):
            pass

    asyncio.run(_run())
    click.echo(f"Database initialized at {config.db_path}")


@cli.command()
@click.option("--token-in", required=True, help="Token to sell (e.g. SOL).")
@click.option("--token-out", required=True, help="Token to buy (e.g. USDC).")
@click.option("--amount", required=True, type=str, help="Amount of token-in.")
@click.option(
    "--wait/--no-wait",
    default=False,
    help="Process the queue in-process until the order settles.",
)
def submit(token_in: str, token_out: str, amount: str, wait: bool) -> None:
    """Submit a swap order."""
    from order_router.orders.service import InvalidOrderError

    config = _load_config()

    async def _run() -> OrderRecord | None:
        async with _build_runtime(config) as runtime:
            order_id = await runtime.service.submit_order(token_in, token_out, amount)
            click.echo(f"Order queued: {order_id}")
            if wait:
                await runtime.make_worker().run_until_idle()
            return await runtime.service.get_order(order_id)

    try:
        record = asyncio.run(_run())
    except InvalidOrderError as e:
        raise click.ClickException(str(e)) from e

    if record is not None:
        _print_order(record)


@cli.command()
@click.option(
    "--until-idle",
    is_flag=True,
    default=False,
    help="Exit once the queue is drained instead of running forever.",
)
@click.option(
    "--serve/--no-serve",
    default=True,
    help="Run the WebSocket status server alongside the worker.",
)
def worker(until_idle: bool, serve: bool) -> None:
    """Run the order worker (and the status server)."""
    config = _load_config()

    async def _run() -> None:
        async with _build_runtime(config) as runtime:
            server = runtime.make_status_server() if serve else None
            order_worker = runtime.make_worker()
            if server is not None:
                await server.start()
                click.echo(
                    f"Status updates: ws://{config.notifier.host}:{server.port}"
                    "/ws/orders/{order_id}"
                )

            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                with contextlib.suppress(NotImplementedError):
                    loop.add_signal_handler(
                        sig, lambda: asyncio.ensure_future(order_worker.close())
                    )
            try:
                await order_worker.run(until_idle=until_idle)
            finally:
                if server is not None:
                    await server.stop()

    asyncio.run(_run())


@cli.command()
@click.argument("order_id")
def status(order_id: str) -> None:
    """Show the persisted state of an order."""
    config = _load_config()

    async def _run() -> OrderRecord | None:
        async with _build_runtime(config) as runtime:
            return await runtime.service.get_order(order_id)

    record = asyncio.run(_run())
    if record is None:
        raise click.ClickException(f"Order not found: {order_id}")
    _print_order(record)


@cli.command()
def config() -> None:
    """Show current configuration."""
    cfg = AppConfig()

    click.echo("=== Order-Router Configuration ===\n")

    click.echo(f"Log Level:    {cfg.log_level}")
    click.echo(f"Log Format:   {cfg.log_format}")
    click.echo(f"DB Path:      {cfg.db_path}")
    click.echo("")

    click.echo("[Queue]")
    click.echo(f"  Name:          {cfg.queue.name}")
    click.echo(f"  Attempts:      {cfg.queue.attempts}")
    click.echo(
        f"  Backoff:       {cfg.queue.backoff_type} {cfg.queue.backoff_delay_ms}ms"
    )
    click.echo(f"  Concurrency:   {cfg.queue.concurrency}")
    click.echo(
        f"  Rate Limit:    {cfg.queue.limiter_max} jobs / "
        f"{cfg.queue.limiter_duration_ms}ms"
    )
    click.echo("")

    click.echo("[Pipeline]")
    click.echo(f"  Venues:              {', '.join(cfg.pipeline.venues)}")
    click.echo(f"  Intermediate Stages: {cfg.pipeline.intermediate_stages}")
    click.echo(f"  Require All Quotes:  {cfg.pipeline.require_all_quotes}")
    click.echo(f"  Quote Timeout:       {cfg.pipeline.quote_timeout_s or 'none'}")
    click.echo(f"  Execute Timeout:     {cfg.pipeline.execute_timeout_s or 'none'}")
    click.echo("")

    click.echo("[Notifier]")
    click.echo(f"  Listen:     {cfg.notifier.host}:{cfg.notifier.port}")

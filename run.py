#!/usr/bin/env python3
"""
Portfolio Sync Runner.

Loads the configuration, mirrors balances and open orders, and logs every
sync pass until interrupted.
"""

import argparse
import asyncio
import os
import signal
import sys

# Allow running from a checkout without installing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "src"))

from dotenv import load_dotenv

from portfolio_sync.app import PortfolioSyncApp
from portfolio_sync.config import ConfigError, load_config
from portfolio_sync.core import configure_logging, get_logger
from portfolio_sync.core.models import SyncResult
from portfolio_sync.sync import CoordinatorStatus

load_dotenv()

logger = get_logger("portfolio_sync.run")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Mirror portfolio balances and open orders")
    parser.add_argument(
        "-c", "--config",
        default=os.getenv("PORTFOLIO_SYNC_CONFIG", "config/config.yaml"),
        help="Path to the YAML configuration file",
    )
    parser.add_argument(
        "-e", "--env",
        default=os.getenv("PORTFOLIO_SYNC_ENV"),
        help="Environment overlay (loads config.<env>.yaml)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Load balances, sync open orders once and exit",
    )
    parser.add_argument("--log-level", default=None, help="Override the configured log level")
    return parser.parse_args(argv)


def log_results(results: list[SyncResult]) -> None:
    for r in results:
        if r.error:
            logger.warning(f"  {r.item_name}: error - {r.error} ({r.elapsed_ms}ms)")
        elif r.warning:
            logger.warning(f"  {r.item_name}: {r.warning.value} ({r.elapsed_ms}ms)")
        else:
            cached = " [cached]" if r.from_cache else ""
            logger.info(f"  {r.item_name}: {r.count} open orders ({r.elapsed_ms}ms){cached}")


def log_status(status: CoordinatorStatus) -> None:
    if status.error:
        logger.warning(f"Balances: {status.error}")


async def run(args: argparse.Namespace) -> int:
    try:
        config = load_config(args.config, env=args.env)
    except ConfigError as e:
        logger.error(str(e))
        return 1

    configure_logging(args.log_level or config.logging.level, config.logging.file)
    logger.info(f"Configuration: {config.api}")

    app = PortfolioSyncApp(
        config,
        on_sync_complete=log_results,
        on_status_change=log_status,
    )

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # add_signal_handler is unavailable on Windows event loops
            pass

    async with app:
        snapshot = app.coordinator.snapshot
        if snapshot is not None:
            summary = snapshot.summary
            logger.info(
                f"Portfolio: ${summary.total_usd} across "
                f"{summary.ok_count}/{summary.exchanges_count} exchanges"
            )

        if args.once:
            await app.synchronizer.sync_now()
            return 0 if app.coordinator.error is None else 1

        logger.info("Running, press Ctrl+C to stop")
        await stop_event.wait()

    return 0


def main() -> None:
    args = parse_args()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()

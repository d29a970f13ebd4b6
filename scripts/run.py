#!/usr/bin/env python3
"""Alerting entrypoint — wires the alerting stack and runs its periodic tasks.

Usage::

    # Run with default config
    python scripts/run.py

    # Custom config file
    python scripts/run.py --config config/settings.yaml

    # Override log level
    python scripts/run.py --log-level DEBUG

    # Run every check once and exit
    python scripts/run.py --once
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys

import structlog

from src.alerting.factory import create_alerting_stack
from src.core.config import load_settings
from src.core.logging import setup_logging

logger = structlog.get_logger(__name__)


async def run(args: argparse.Namespace) -> int:
    """Start the alerting stack and run until interrupted."""
    settings = load_settings(args.config)
    setup_logging(level=args.log_level, config=settings.logging)

    stack = create_alerting_stack(settings)
    logger.info(
        "alerting_starting",
        metrics_api=settings.metrics_api.base_url,
        services=len(settings.services),
        email=settings.smtp.enabled,
        sms=settings.sms_gateway.enabled,
    )

    if args.once:
        try:
            await stack.service.force_check()
            await stack.lifecycle.run_escalation_sweep()
            await stack.dispatcher.drain()
            dashboard = await stack.service.dashboard()
            logger.info(
                "alerting_check_complete",
                active=dashboard.summary.total,
                critical=dashboard.summary.critical,
                warning=dashboard.summary.warning,
                queued=stack.dispatcher.queue_size,
            )
        finally:
            await stack.close()
        return 0

    await stack.start()
    logger.info("alerting_running")

    # ── Wait for shutdown signal ─────────────────────────────────
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("shutdown_signal_received")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows: signal handlers not supported on ProactorEventLoop
            pass

    try:
        await stop_event.wait()
    except KeyboardInterrupt:
        logger.info("keyboard_interrupt")

    # ── Graceful shutdown ────────────────────────────────────────
    logger.info("alerting_shutting_down")
    pending = stack.dispatcher.queue_size
    await stack.close()

    stats = await stack.service.notification_stats()
    logger.info(
        "alerting_stopped",
        dropped_jobs=pending,
        notifications_sent=stats.notifications_sent,
        failed_notifications=stats.failed_notifications,
    )
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Run the delivery alerting service.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override: DEBUG, INFO, WARNING, ERROR",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run every check once, drain due notifications and exit",
    )
    args = parser.parse_args()

    code = asyncio.run(run(args))
    sys.exit(code)


if __name__ == "__main__":
    main()

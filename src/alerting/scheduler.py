"""Periodic alerting tasks — metrics check, service health, escalation and cleanup."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from src.alerting.lifecycle import AlertLifecycleManager
from src.core.config import ScheduleConfig
from src.notify.dispatcher import NotificationDispatcher

logger = structlog.get_logger(__name__)

TickFn = Callable[[], Awaitable[object]]


class PeriodicTask:
    """Runs *fn* every *interval_secs* until stopped.

    The first run happens as soon as the task starts.  An exception inside
    one run is logged and the loop carries on with the next interval.
    """

    def __init__(self, name: str, fn: TickFn, interval_secs: float) -> None:
        self.name = name
        self._fn = fn
        self._interval_secs = interval_secs
        self._task: asyncio.Task[None] | None = None
        self._running = False
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop(), name=f"alerting:{self.name}")

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _loop(self) -> None:
        while self._running:
            try:
                await self._fn()
                self.runs += 1
            except asyncio.CancelledError:
                return
            except Exception:
                logger.exception("periodic_task_error", task=self.name)
            await asyncio.sleep(self._interval_secs)


class AlertingScheduler:
    """Owns the background tasks that drive the alerting core.

    Usage::

        scheduler = AlertingScheduler(lifecycle, dispatcher, settings.schedule)
        await scheduler.start()
        # ...
        await scheduler.stop()

    The notification queue drain is the dispatcher's own loop; the
    scheduler starts and stops it together with its own tasks.
    """

    def __init__(
        self,
        lifecycle: AlertLifecycleManager,
        dispatcher: NotificationDispatcher,
        config: ScheduleConfig | None = None,
    ) -> None:
        cfg = config or ScheduleConfig()
        self._lifecycle = lifecycle
        self._dispatcher = dispatcher
        self._tasks = [
            PeriodicTask("metrics_check", self.metrics_tick, cfg.metrics_check_secs),
            PeriodicTask("service_health", self.service_health_tick, cfg.service_health_secs),
            PeriodicTask("escalation_sweep", self.escalation_tick, cfg.escalation_sweep_secs),
            PeriodicTask("cleanup", self.cleanup_tick, cfg.cleanup_secs),
        ]
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def tasks(self) -> list[PeriodicTask]:
        return list(self._tasks)

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        await self._dispatcher.start()
        for task in self._tasks:
            await task.start()
        logger.info("alerting_scheduler_started", tasks=[t.name for t in self._tasks])

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        for task in self._tasks:
            await task.stop()
        await self._dispatcher.stop()
        logger.info("alerting_scheduler_stopped")

    # ── Ticks ───────────────────────────────────────────────────

    async def metrics_tick(self) -> None:
        await self._lifecycle.check_delivery_metrics()
        await self._lifecycle.run_auto_resolution()

    async def service_health_tick(self) -> None:
        await self._lifecycle.check_service_health()

    async def escalation_tick(self) -> None:
        await self._lifecycle.run_escalation_sweep()
        await self._lifecycle.notify_pending_escalations()

    async def cleanup_tick(self) -> None:
        await self._lifecycle.cleanup_old_alerts()

    async def run_all_checks(self) -> None:
        """Run the metrics and service-health checks once, right now."""
        await self.metrics_tick()
        await self.service_health_tick()

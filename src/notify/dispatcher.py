"""Notification dispatcher — drains the job queue and fans out to channels."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Mapping
from typing import Any

import structlog

from src.alerting.exceptions import AlertingError
from src.alerting.store import AlertFilter, AlertStore
from src.alerting.types import Alert, AlertStatus, NotificationRecord
from src.core.logging import audit_logger
from src.notify.channels import ChannelSender
from src.notify.exceptions import NotificationError, UnsupportedChannelError
from src.notify.formatters import (
    render_chat_payload,
    render_email,
    render_sms,
    render_webhook_payload,
)
from src.notify.types import (
    AdminContacts,
    Channel,
    ChannelStats,
    DeliveryOutcome,
    NotificationJob,
    NotificationStats,
    SendResult,
)

logger = structlog.get_logger(__name__)

ContentRenderer = Callable[[Alert], Any]

RENDERERS: dict[str, ContentRenderer] = {
    Channel.EMAIL: render_email,
    Channel.SMS: render_sms,
    Channel.CHAT: render_chat_payload,
    Channel.WEBHOOK: render_webhook_payload,
}


class NotificationQueue:
    """Async-safe in-memory job list. Not persisted across restarts.

    Every access goes through one ``asyncio.Lock`` so a push never lands
    between the two halves of ``pop_due``.
    """

    def __init__(self) -> None:
        self._jobs: list[NotificationJob] = []
        self._lock = asyncio.Lock()

    async def push(self, job: NotificationJob) -> None:
        async with self._lock:
            self._jobs.append(job)

    async def pop_due(self, now: float) -> list[NotificationJob]:
        """Remove and return every job whose scheduled time has arrived."""
        async with self._lock:
            due = [j for j in self._jobs if j.is_due(now)]
            self._jobs = [j for j in self._jobs if not j.is_due(now)]
        return due

    async def snapshot(self) -> list[NotificationJob]:
        async with self._lock:
            return [j.model_copy() for j in self._jobs]

    def __len__(self) -> int:
        return len(self._jobs)


class NotificationDispatcher:
    """Delivers queued notification jobs on a fixed interval.

    - Each due job is delivered on every channel in its rule; a failing
      channel never blocks its siblings.
    - All outcomes for a job are appended to the alert in one store update.
    - A job where every channel failed is re-queued ``retry_delay_minutes``
      later until the rule's ``max_retries`` is used up; partial success
      counts as delivered.
    """

    def __init__(
        self,
        store: AlertStore,
        senders: Mapping[str, ChannelSender] | None = None,
        contacts: AdminContacts | None = None,
        retry_delay_minutes: float = 5.0,
        interval_secs: float = 30.0,
    ) -> None:
        self._store = store
        self._senders: dict[str, ChannelSender] = dict(senders or {})
        self._contacts = contacts or AdminContacts()
        self._retry_delay_secs = retry_delay_minutes * 60
        self._interval_secs = interval_secs
        self._queue = NotificationQueue()
        self._drain_lock = asyncio.Lock()
        self._drain_requested = False
        self._task: asyncio.Task[None] | None = None
        self._running = False

    # ── Queue access ────────────────────────────────────────────

    @property
    def queue_size(self) -> int:
        return len(self._queue)

    async def pending_jobs(self) -> list[NotificationJob]:
        return await self._queue.snapshot()

    async def enqueue(self, job: NotificationJob) -> None:
        await self._queue.push(job)
        logger.debug(
            "notification_enqueued",
            alert_id=job.alert_id,
            attempts=job.attempts,
            scheduled_for=job.scheduled_for,
        )

    # ── Contacts ────────────────────────────────────────────────

    @property
    def contacts(self) -> AdminContacts:
        return self._contacts.model_copy(deep=True)

    def update_contacts(self, **changes: list[str]) -> AdminContacts:
        """Replace recipient lists for the given channels without a restart."""
        self._contacts = self._contacts.merged(changes)
        logger.info("admin_contacts_updated", channels=sorted(changes))
        return self.contacts

    # ── Draining ────────────────────────────────────────────────

    async def drain(self, now: float | None = None) -> int:
        """Process every due job; returns how many jobs were processed.

        A drain requested while another is running is folded into the
        running one, which makes one more pass before returning.
        """
        if self._drain_lock.locked():
            self._drain_requested = True
            return 0

        processed = 0
        async with self._drain_lock:
            while True:
                self._drain_requested = False
                processed += await self._drain_once(now)
                if not self._drain_requested:
                    break
        return processed

    async def _drain_once(self, now: float | None) -> int:
        tick = now if now is not None else time.time()
        jobs = await self._queue.pop_due(tick)
        for job in jobs:
            try:
                await self.process_job(job, now=tick)
            except Exception:
                logger.exception("notification_job_error", alert_id=job.alert_id)
        return len(jobs)

    async def process_job(
        self,
        job: NotificationJob,
        now: float | None = None,
    ) -> list[DeliveryOutcome]:
        """Deliver one job, record outcomes, and re-queue if every channel failed."""
        now = now if now is not None else time.time()

        try:
            alert = await self._store.get(job.alert_id)
        except AlertingError:
            logger.exception("notification_alert_load_failed", alert_id=job.alert_id)
            alert = None
        if alert is None:
            logger.warning("notification_alert_missing", alert_id=job.alert_id)
            return []
        if alert.status == AlertStatus.RESOLVED or alert.is_suppressed(now):
            logger.info(
                "notification_skipped",
                alert_id=alert.alert_id,
                status=alert.status.value,
                suppressed=alert.is_suppressed(now),
            )
            return []

        outcomes = await self.deliver(alert, job.rule.channels)
        await self._record(alert.alert_id, outcomes, now)

        attempts = job.attempts + 1
        all_failed = not any(o.success for o in outcomes)
        if all_failed and attempts < job.rule.max_retries:
            retry = NotificationJob(
                alert_id=job.alert_id,
                rule=job.rule,
                attempts=attempts,
                created_at=job.created_at,
                scheduled_for=now + self._retry_delay_secs,
            )
            await self.enqueue(retry)
            logger.warning(
                "notification_retry_scheduled",
                alert_id=job.alert_id,
                attempts=attempts,
                max_retries=job.rule.max_retries,
            )
        elif all_failed:
            logger.error(
                "notification_retries_exhausted",
                alert_id=job.alert_id,
                attempts=attempts,
            )

        audit_logger().info(
            "notification_processed",
            alert_id=job.alert_id,
            attempts=attempts,
            results=[{"channel": o.channel, "success": o.success} for o in outcomes],
        )
        return outcomes

    async def deliver(self, alert: Alert, channels: list[str]) -> list[DeliveryOutcome]:
        """Send *alert* on each channel independently; one outcome per channel."""
        outcomes: list[DeliveryOutcome] = []
        for channel in channels:
            try:
                outcome = await self._deliver_channel(alert, channel)
            except NotificationError as exc:
                logger.warning("channel_unavailable", channel=channel, error=str(exc))
                outcome = DeliveryOutcome(channel=channel, success=False, error=str(exc))
            except Exception as exc:
                logger.exception("channel_dispatch_error", channel=channel, alert_id=alert.alert_id)
                outcome = DeliveryOutcome(channel=channel, success=False, error=str(exc))
            outcomes.append(outcome)
        return outcomes

    async def _deliver_channel(self, alert: Alert, channel: str) -> DeliveryOutcome:
        sender = self._senders.get(channel)
        renderer = RENDERERS.get(channel)
        if sender is None or renderer is None:
            raise UnsupportedChannelError(channel)

        recipients = self._contacts.for_channel(channel)
        if not recipients:
            return DeliveryOutcome(
                channel=channel,
                success=False,
                error=f"{channel} recipients not configured",
            )

        content = renderer(alert)
        results: list[tuple[str, SendResult]] = []
        for recipient in recipients:
            try:
                result = await sender.send(recipient, content)
            except Exception as exc:
                logger.exception("channel_send_exception", channel=channel, recipient=recipient)
                result = SendResult(success=False, error=str(exc) or type(exc).__name__)
            results.append((recipient, result))

        # First successful recipient wins; otherwise report the first failure.
        recipient, result = next(
            ((r, res) for r, res in results if res.success),
            results[0],
        )
        return DeliveryOutcome(
            channel=channel,
            recipient=recipient,
            success=result.success,
            error=result.error,
        )

    async def _record(
        self,
        alert_id: str,
        outcomes: list[DeliveryOutcome],
        now: float,
    ) -> None:
        if not outcomes:
            return
        records = [
            NotificationRecord(
                channel=o.channel,
                recipient=o.recipient,
                success=o.success,
                error=o.error,
                timestamp=now,
            )
            for o in outcomes
        ]
        try:
            await self._store.update(alert_id, push={"notifications_sent": records})
        except AlertingError:
            logger.exception("notification_record_failed", alert_id=alert_id)

    # ── Stats ───────────────────────────────────────────────────

    async def get_notification_stats(
        self,
        hours: float = 24.0,
        now: float | None = None,
    ) -> NotificationStats:
        now = now if now is not None else time.time()
        alerts = await self._store.find_many(AlertFilter(created_after=now - hours * 3600))

        stats = NotificationStats(total_alerts=len(alerts), queue_size=self.queue_size)
        for alert in alerts:
            for record in alert.notifications_sent:
                stats.notifications_sent += 1
                channel = stats.channel_breakdown.setdefault(record.channel, ChannelStats())
                channel.total += 1
                if record.success:
                    stats.successful_notifications += 1
                    channel.successful += 1
                else:
                    stats.failed_notifications += 1
                    channel.failed += 1
        return stats

    # ── Lifecycle ───────────────────────────────────────────────

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def close(self) -> None:
        await self.stop()
        for name, sender in self._senders.items():
            try:
                await sender.close()
            except Exception:
                logger.exception("channel_close_error", channel=name)

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.drain()
            except asyncio.CancelledError:
                return
            except Exception:
                logger.exception("notification_drain_error")
            await asyncio.sleep(self._interval_secs)

"""Notification router — maps alert severity to a channel set and schedule."""

from __future__ import annotations

import time

import structlog

from src.alerting.types import (
    Alert,
    AlertSeverity,
    AlertSource,
    AlertType,
    generate_alert_id,
)
from src.core.config import NotificationsConfig
from src.core.logging import audit_logger
from src.notify.dispatcher import NotificationDispatcher
from src.notify.types import DeliveryOutcome, NotificationJob, NotificationRule

logger = structlog.get_logger(__name__)


class NotificationRouter:
    """Builds notification jobs from the severity rule table.

    - CRITICAL alerts are scheduled now and trigger an immediate drain.
    - WARNING / INFO alerts are scheduled after the rule's delay and go out
      on a later dispatcher tick.
    - Suppressed or resolved alerts are not routed.
    """

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        config: NotificationsConfig | None = None,
    ) -> None:
        cfg = config or NotificationsConfig()
        self._dispatcher = dispatcher
        self._rules: dict[str, NotificationRule] = {
            severity: NotificationRule.from_config(rule)
            for severity, rule in cfg.rules.items()
        }

    def rule_for(self, severity: AlertSeverity | str) -> NotificationRule | None:
        rule = self._rules.get(str(severity))
        return rule.model_copy(deep=True) if rule is not None else None

    async def route(
        self,
        alert: Alert,
        severity: AlertSeverity | None = None,
        now: float | None = None,
    ) -> NotificationJob | None:
        """Enqueue a notification job for *alert*; returns the job, or None if skipped.

        *severity* overrides the alert's own severity when picking the rule
        (escalated alerts are routed with a more urgent rule).
        """
        now = now if now is not None else time.time()
        severity = severity or alert.severity
        if alert.is_suppressed(now) or not alert.is_open:
            logger.info(
                "notification_not_routed",
                alert_id=alert.alert_id,
                status=alert.status.value,
                suppressed=alert.is_suppressed(now),
            )
            return None

        rule = self.rule_for(severity)
        if rule is None:
            logger.warning("notification_rule_missing", severity=str(severity))
            return None

        scheduled_for = now if rule.immediate else now + rule.delay_minutes * 60
        job = NotificationJob(
            alert_id=alert.alert_id,
            rule=rule,
            attempts=0,
            created_at=now,
            scheduled_for=scheduled_for,
        )
        await self._dispatcher.enqueue(job)
        audit_logger().info(
            "notification_queued",
            alert_id=alert.alert_id,
            severity=str(severity),
            scheduled_for=scheduled_for,
        )

        if severity == AlertSeverity.CRITICAL:
            await self._dispatcher.drain(now)
        return job

    async def send_test_notification(
        self,
        severity: AlertSeverity = AlertSeverity.INFO,
        title: str = "Test Alert",
        description: str = "This is a test alert notification",
    ) -> list[DeliveryOutcome]:
        """Deliver a transient test alert right away on the severity's channels.

        The test alert is never persisted and never retried.
        """
        rule = self.rule_for(severity)
        if rule is None:
            return []
        test_alert = Alert(
            alert_id=generate_alert_id(prefix="TEST"),
            type=AlertType.SYSTEM_DEGRADATION,
            severity=severity,
            title=title,
            description=description,
            source=AlertSource.MANUAL_TEST,
            affected_services=["test"],
            context={"test_mode": True},
        )
        outcomes = await self._dispatcher.deliver(test_alert, rule.channels)
        logger.info(
            "test_notification_sent",
            alert_id=test_alert.alert_id,
            results=[{"channel": o.channel, "success": o.success} for o in outcomes],
        )
        return outcomes

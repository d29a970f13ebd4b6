"""Operator-facing facade over the lifecycle manager, dispatcher and router.

Each method is a thin pass-through suitable for an HTTP layer.  Mutating
operations never raise for policy or lookup problems; they return an
``OperationResult`` with ``success=False`` and the reason.
"""

from __future__ import annotations

from collections.abc import Awaitable
from typing import Any

import structlog

from src.alerting.exceptions import (
    AlertingError,
    AlertNotFoundError,
    InvalidTransitionError,
)
from src.alerting.lifecycle import AlertLifecycleManager
from src.alerting.scheduler import AlertingScheduler
from src.alerting.types import (
    Alert,
    AlertDashboard,
    AlertMetricsBucket,
    AlertSeverity,
    AlertType,
    OperationResult,
)
from src.notify.dispatcher import NotificationDispatcher
from src.notify.router import NotificationRouter
from src.notify.types import AdminContacts, DeliveryOutcome, NotificationStats

logger = structlog.get_logger(__name__)


class AlertingService:
    """Entry point for everything an operator can ask of the alerting core."""

    def __init__(
        self,
        lifecycle: AlertLifecycleManager,
        dispatcher: NotificationDispatcher,
        router: NotificationRouter,
        scheduler: AlertingScheduler | None = None,
    ) -> None:
        self._lifecycle = lifecycle
        self._dispatcher = dispatcher
        self._router = router
        self._scheduler = scheduler

    @property
    def lifecycle(self) -> AlertLifecycleManager:
        return self._lifecycle

    # ── Queries ─────────────────────────────────────────────────

    async def list_active(self, severity: AlertSeverity | None = None) -> list[Alert]:
        return await self._lifecycle.store.get_active_alerts(severity)

    async def get_alert(self, alert_id: str) -> Alert | None:
        return await self._lifecycle.store.get(alert_id)

    async def metrics_summary(self, hours: float = 24.0) -> list[AlertMetricsBucket]:
        return await self._lifecycle.store.get_alert_metrics(hours=hours)

    async def alerts_by_type(self, alert_type: AlertType, hours: float = 24.0) -> list[Alert]:
        return await self._lifecycle.store.get_alerts_by_type(alert_type, hours=hours)

    async def notification_stats(self, hours: float = 24.0) -> NotificationStats:
        return await self._dispatcher.get_notification_stats(hours=hours)

    async def dashboard(self) -> AlertDashboard:
        return await self._lifecycle.get_dashboard()

    # ── Transitions ─────────────────────────────────────────────

    async def acknowledge(
        self,
        alert_id: str,
        user_id: str | None,
        username: str,
        notes: str = "",
    ) -> OperationResult:
        return await self._run(
            "acknowledge",
            alert_id,
            self._lifecycle.acknowledge(alert_id, user_id, username, notes),
            "Alert acknowledged successfully",
        )

    async def resolve(
        self,
        alert_id: str,
        user_id: str | None,
        username: str,
        resolution: str,
        notes: str = "",
    ) -> OperationResult:
        return await self._run(
            "resolve",
            alert_id,
            self._lifecycle.resolve(alert_id, user_id, username, resolution, notes),
            "Alert resolved successfully",
        )

    async def escalate(
        self,
        alert_id: str,
        reason: str = "Manual escalation",
        escalated_by: str = "system",
    ) -> OperationResult:
        return await self._run(
            "escalate",
            alert_id,
            self._lifecycle.escalate(alert_id, reason, escalated_by),
            "Alert escalated successfully",
        )

    async def suppress(
        self,
        alert_id: str,
        duration_minutes: float | None = None,
        reason: str = "",
    ) -> OperationResult:
        return await self._run(
            "suppress",
            alert_id,
            self._lifecycle.suppress(alert_id, duration_minutes, reason),
            "Alert suppressed successfully",
        )

    async def _run(
        self,
        operation: str,
        alert_id: str,
        call: Awaitable[Alert],
        message: str,
    ) -> OperationResult:
        try:
            alert = await call
        except (AlertNotFoundError, InvalidTransitionError) as exc:
            logger.info(
                "alert_operation_rejected",
                operation=operation,
                alert_id=alert_id,
                error=str(exc),
            )
            return OperationResult(success=False, error=str(exc))
        except AlertingError as exc:
            logger.exception("alert_operation_failed", operation=operation, alert_id=alert_id)
            return OperationResult(success=False, error=str(exc))
        return OperationResult(success=True, alert=alert, message=message)

    # ── Other operations ────────────────────────────────────────

    async def create_manual_alert(
        self,
        alert_type: AlertType,
        severity: AlertSeverity,
        title: str,
        description: str,
        affected_services: list[str] | None = None,
        metrics: dict[str, Any] | None = None,
        context: dict[str, Any] | None = None,
    ) -> OperationResult:
        try:
            alert = await self._lifecycle.create_manual_alert(
                alert_type,
                severity,
                title,
                description,
                affected_services=affected_services,
                metrics=metrics,
                context=context,
            )
        except AlertingError as exc:
            logger.exception("manual_alert_failed", type=str(alert_type))
            return OperationResult(success=False, error=str(exc))
        return OperationResult(success=True, alert=alert, message="Alert created successfully")

    async def test_notification(
        self,
        severity: AlertSeverity = AlertSeverity.INFO,
        title: str = "Test Alert",
        description: str = "This is a test alert notification",
    ) -> list[DeliveryOutcome]:
        return await self._router.send_test_notification(severity, title, description)

    async def force_check(self) -> None:
        """Run the metrics and service-health checks immediately."""
        if self._scheduler is not None:
            await self._scheduler.run_all_checks()
            return
        await self._lifecycle.check_delivery_metrics()
        await self._lifecycle.run_auto_resolution()
        await self._lifecycle.check_service_health()

    def update_contacts(self, **changes: list[str]) -> AdminContacts:
        return self._dispatcher.update_contacts(**changes)

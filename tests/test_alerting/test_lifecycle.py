"""Tests for AlertLifecycleManager — raise/merge, transitions, escalation, auto-resolution."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from src.alerting.exceptions import AlertNotFoundError, InvalidTransitionError
from src.alerting.lifecycle import (
    AUTO_RESOLUTION_NOTES,
    AlertLifecycleManager,
    escalated_severity,
)
from src.alerting.providers import StaticMetricsProvider, StaticServiceConfigProvider
from src.alerting.store import InMemoryAlertStore
from src.alerting.types import (
    AlertMetrics,
    AlertSeverity,
    AlertSource,
    AlertStatus,
    AlertType,
    Finding,
)
from src.core.config import LifecycleConfig
from src.core.types import (
    DeliveryMetrics,
    DeliveryStats,
    HealthStatus,
    ServiceConfiguration,
    ValidationStatus,
)
from src.notify.channels import ChannelSender
from src.notify.dispatcher import NotificationDispatcher
from src.notify.router import NotificationRouter
from src.notify.types import AdminContacts, Channel, SendResult

T0 = 1_700_000_000.0
MINUTE = 60.0


# ── Helpers ─────────────────────────────────────────────────────


class FakeSender(ChannelSender):
    """In-memory sender for testing."""

    def __init__(self, channel: Channel, fail: bool = False) -> None:
        self.channel = channel
        self.sent: list[tuple[str, Any]] = []
        self._fail = fail

    async def send(self, recipient: str, content: Any) -> SendResult:
        self.sent.append((recipient, content))
        if self._fail:
            return SendResult(success=False, error="fake failure")
        return SendResult(success=True)


class Harness:
    def __init__(self, lifecycle_config: LifecycleConfig | None = None) -> None:
        self.store = InMemoryAlertStore()
        self.metrics = StaticMetricsProvider()
        self.services = StaticServiceConfigProvider([
            ServiceConfiguration(
                service_name="twilio",
                health_status=HealthStatus.HEALTHY,
                validation_status=ValidationStatus.VALID,
                last_validated=T0,
            ),
        ])
        self.senders = {c: FakeSender(c) for c in (Channel.EMAIL, Channel.SMS, Channel.CHAT)}
        self.dispatcher = NotificationDispatcher(
            store=self.store,
            senders=self.senders,
            contacts=AdminContacts(
                email=["ops@example.com"],
                sms=["+15550100"],
                chat=["https://chat.example.com/hook"],
            ),
        )
        self.router = NotificationRouter(self.dispatcher)
        self.manager = AlertLifecycleManager(
            store=self.store,
            metrics_provider=self.metrics,
            service_provider=self.services,
            router=self.router,
            lifecycle=lifecycle_config,
        )

    def sent(self, channel: Channel) -> int:
        return len(self.senders[channel].sent)


def _finding(
    severity: AlertSeverity = AlertSeverity.CRITICAL,
    services: list[str] | None = None,
    failure_rate: float | None = 80.0,
    context: dict[str, Any] | None = None,
    alert_type: AlertType = AlertType.DELIVERY_FAILURE_RATE,
    key: str = "delivery_failure_rate",
) -> Finding:
    return Finding(
        type=alert_type,
        severity=severity,
        title="High Delivery Failure Rate Detected",
        description="Delivery failure rate is high",
        source=AlertSource.DELIVERY_METRICS,
        dedup_key=key,
        affected_services=services if services is not None else ["all"],
        metrics=AlertMetrics(failure_rate=failure_rate),
        context=context or {},
    )


def _snapshot(total: int, failed: int) -> DeliveryMetrics:
    return DeliveryMetrics(delivery=DeliveryStats(
        total_attempts=total,
        failed_attempts=failed,
        successful_attempts=total - failed,
    ))


# ── Raising and merging ─────────────────────────────────────────


class TestRaiseFinding:
    async def test_creates_and_notifies_critical(self) -> None:
        h = Harness()
        alert = await h.manager.raise_finding(_finding(), now=T0)
        assert alert is not None
        assert alert.alert_id.startswith("ALT-")
        assert alert.status == AlertStatus.ACTIVE
        assert alert.escalation_level == 1
        assert alert.created_at == T0

        assert h.sent(Channel.EMAIL) == 1
        assert h.sent(Channel.SMS) == 1
        assert h.sent(Channel.CHAT) == 1
        stored = await h.store.get(alert.alert_id)
        assert stored is not None
        assert [r.channel for r in stored.notifications_sent] == ["email", "sms", "chat"]
        assert all(r.success for r in stored.notifications_sent)

    async def test_warning_is_queued_not_sent(self) -> None:
        h = Harness()
        await h.manager.raise_finding(_finding(severity=AlertSeverity.WARNING), now=T0)
        assert h.sent(Channel.EMAIL) == 0
        assert h.dispatcher.queue_size == 1
        assert (await h.dispatcher.pending_jobs())[0].scheduled_for == T0 + 5 * MINUTE

    async def test_cooldown_suppresses_repeat(self) -> None:
        h = Harness()
        first = await h.manager.raise_finding(_finding(), now=T0)
        second = await h.manager.raise_finding(_finding(), now=T0 + 5 * MINUTE)
        assert first is not None
        assert second is None
        assert len(h.store) == 1

    async def test_merge_after_cooldown(self) -> None:
        h = Harness()
        first = await h.manager.raise_finding(
            _finding(context={"a": 1, "b": 1}), now=T0,
        )
        merged = await h.manager.raise_finding(
            _finding(failure_rate=90.0, context={"b": 2}), now=T0 + 16 * MINUTE,
        )
        assert first is not None and merged is not None
        assert merged.alert_id == first.alert_id
        assert merged.context == {"a": 1, "b": 2}
        assert merged.metrics.failure_rate == 90.0
        assert len(h.store) == 1
        # Merging never sends a new notification.
        assert h.sent(Channel.EMAIL) == 1

    async def test_merge_keeps_metrics_when_finding_has_none(self) -> None:
        h = Harness()
        first, _ = await h.manager.create_alert(_finding(failure_rate=80.0), now=T0)
        merged, created = await h.manager.create_alert(_finding(failure_rate=None), now=T0)
        assert created is False
        assert merged.alert_id == first.alert_id
        assert merged.metrics.failure_rate == 80.0

    async def test_cooldown_restarted_after_merge(self) -> None:
        h = Harness()
        await h.manager.raise_finding(_finding(), now=T0)
        await h.manager.raise_finding(_finding(), now=T0 + 16 * MINUTE)
        assert h.manager.cooldowns.expires_at("delivery_failure_rate") == T0 + 31 * MINUTE

    async def test_resolved_alert_is_not_merged(self) -> None:
        h = Harness()
        first, _ = await h.manager.create_alert(_finding(), now=T0)
        await h.manager.resolve(first.alert_id, "u1", "alice", "fixed", now=T0 + MINUTE)
        second, created = await h.manager.create_alert(_finding(), now=T0 + 2 * MINUTE)
        assert created is True
        assert second.alert_id != first.alert_id

    async def test_overlapping_services_merge(self) -> None:
        h = Harness()
        first, _ = await h.manager.create_alert(
            _finding(services=["twilio", "sendgrid"], alert_type=AlertType.SERVICE_UNAVAILABLE),
            now=T0,
        )
        second, created = await h.manager.create_alert(
            _finding(services=["sendgrid"], alert_type=AlertType.SERVICE_UNAVAILABLE),
            now=T0,
        )
        assert created is False
        assert second.alert_id == first.alert_id

    async def test_different_type_does_not_merge(self) -> None:
        h = Harness()
        await h.manager.create_alert(_finding(), now=T0)
        _, created = await h.manager.create_alert(
            _finding(alert_type=AlertType.NO_DELIVERIES, key="no_deliveries"), now=T0,
        )
        assert created is True

    async def test_empty_service_list_never_merges(self) -> None:
        h = Harness()
        first, _ = await h.manager.create_alert(_finding(services=[]), now=T0)
        second, created = await h.manager.create_alert(_finding(services=[]), now=T0)
        assert created is True
        assert second.alert_id != first.alert_id


class TestSpecialAlerts:
    async def test_manual_alert_is_marked_and_routed(self) -> None:
        h = Harness()
        alert = await h.manager.create_manual_alert(
            AlertType.SYSTEM_DEGRADATION,
            AlertSeverity.CRITICAL,
            "Manual check",
            "Operator raised",
            affected_services=["twilio"],
            context={"ticket": "OPS-1"},
            now=T0,
        )
        assert alert.source == AlertSource.MANUAL
        assert alert.context == {"ticket": "OPS-1", "manually_created": True}
        assert h.sent(Channel.EMAIL) == 1

    async def test_user_escalation_priority(self) -> None:
        h = Harness()
        high = await h.manager.create_user_escalation_alert(
            "user-1", "Cannot log in", priority="high", now=T0,
        )
        normal = await h.manager.create_user_escalation_alert(
            "user-2", "Question", now=T0,
        )
        assert high.severity == AlertSeverity.CRITICAL
        assert normal.severity == AlertSeverity.WARNING
        assert high.type == AlertType.USER_ESCALATION
        assert high.affected_users == ["user-1"]
        assert high.context["reason"] == "Cannot log in"


# ── Operator transitions ────────────────────────────────────────


class TestTransitions:
    async def test_acknowledge(self) -> None:
        h = Harness()
        alert, _ = await h.manager.create_alert(_finding(), now=T0)
        acked = await h.manager.acknowledge(alert.alert_id, "u1", "alice", "looking", now=T0 + 60)
        assert acked.status == AlertStatus.ACKNOWLEDGED
        assert acked.acknowledged_by is not None
        assert acked.acknowledged_by.username == "alice"
        assert acked.acknowledged_by.notes == "looking"

    async def test_acknowledge_twice_rejected(self) -> None:
        h = Harness()
        alert, _ = await h.manager.create_alert(_finding(), now=T0)
        await h.manager.acknowledge(alert.alert_id, "u1", "alice")
        with pytest.raises(InvalidTransitionError):
            await h.manager.acknowledge(alert.alert_id, "u1", "alice")

    async def test_acknowledge_resolved_rejected(self) -> None:
        h = Harness()
        alert, _ = await h.manager.create_alert(_finding(), now=T0)
        await h.manager.resolve(alert.alert_id, "u1", "alice", "fixed")
        with pytest.raises(InvalidTransitionError):
            await h.manager.acknowledge(alert.alert_id, "u1", "alice")

    async def test_resolve_records_resolution_time(self) -> None:
        h = Harness()
        alert, _ = await h.manager.create_alert(_finding(), now=T0)
        resolved = await h.manager.resolve(
            alert.alert_id, "u1", "alice", "restarted worker", "notes", now=T0 + 600,
        )
        assert resolved.status == AlertStatus.RESOLVED
        assert resolved.resolution_time == 600
        assert resolved.auto_resolved is False
        assert resolved.resolved_by is not None
        assert resolved.resolved_by.resolution == "restarted worker"
        assert resolved.resolved_by.resolution_notes == "notes"

    async def test_resolve_acknowledged_alert(self) -> None:
        h = Harness()
        alert, _ = await h.manager.create_alert(_finding(), now=T0)
        await h.manager.acknowledge(alert.alert_id, "u1", "alice")
        resolved = await h.manager.resolve(alert.alert_id, "u1", "alice", "done")
        assert resolved.status == AlertStatus.RESOLVED

    async def test_resolve_twice_rejected(self) -> None:
        h = Harness()
        alert, _ = await h.manager.create_alert(_finding(), now=T0)
        await h.manager.resolve(alert.alert_id, "u1", "alice", "fixed")
        with pytest.raises(InvalidTransitionError):
            await h.manager.resolve(alert.alert_id, "u1", "alice", "fixed again")

    async def test_unknown_alert(self) -> None:
        h = Harness()
        with pytest.raises(AlertNotFoundError):
            await h.manager.acknowledge("ALT-missing", "u1", "alice")

    async def test_suppress_defaults_to_sixty_minutes(self) -> None:
        h = Harness()
        alert, _ = await h.manager.create_alert(_finding(), now=T0)
        suppressed = await h.manager.suppress(alert.alert_id, reason="maintenance", now=T0)
        assert suppressed.suppressed_until == T0 + 60 * MINUTE
        assert suppressed.suppression_reason == "maintenance"
        assert suppressed.status == AlertStatus.ACTIVE

    async def test_suppress_resolved_rejected(self) -> None:
        h = Harness()
        alert, _ = await h.manager.create_alert(_finding(), now=T0)
        await h.manager.resolve(alert.alert_id, "u1", "alice", "fixed")
        with pytest.raises(InvalidTransitionError):
            await h.manager.suppress(alert.alert_id, 30)


# ── Escalation ──────────────────────────────────────────────────


class TestEscalation:
    def test_escalated_severity(self) -> None:
        assert escalated_severity(AlertSeverity.WARNING, 1) == AlertSeverity.WARNING
        assert escalated_severity(AlertSeverity.WARNING, 2) == AlertSeverity.CRITICAL
        assert escalated_severity(AlertSeverity.INFO, 2) == AlertSeverity.WARNING
        assert escalated_severity(AlertSeverity.CRITICAL, 3) == AlertSeverity.CRITICAL

    async def test_escalate_caps_at_three(self) -> None:
        h = Harness()
        alert, _ = await h.manager.create_alert(_finding(), now=T0)
        await h.manager.escalate(alert.alert_id, "slow", now=T0)
        third = await h.manager.escalate(alert.alert_id, "slower", now=T0)
        assert third.escalation_level == 3
        with pytest.raises(InvalidTransitionError):
            await h.manager.escalate(alert.alert_id, "again", now=T0)
        with pytest.raises(InvalidTransitionError):
            await h.manager.escalate(alert.alert_id, "and again", now=T0)

        stored = await h.store.get(alert.alert_id)
        assert stored is not None
        assert stored.escalation_level == 3
        assert [r.level for r in stored.escalation_history] == [2, 3]

    async def test_concurrent_escalations_keep_history(self) -> None:
        h = Harness()
        gate = asyncio.Event()

        class GatedSender(FakeSender):
            async def send(self, recipient: str, content: Any) -> SendResult:
                await gate.wait()
                return await super().send(recipient, content)

        h.dispatcher._senders[Channel.EMAIL] = GatedSender(Channel.EMAIL)
        alert, _ = await h.manager.create_alert(_finding(), now=T0)

        first = asyncio.create_task(h.manager.escalate(alert.alert_id, "first", now=T0))
        await asyncio.sleep(0.01)
        second = await h.manager.escalate(alert.alert_id, "second", now=T0)
        assert second.escalation_level == 3
        gate.set()
        await first

        stored = await h.store.get(alert.alert_id)
        assert stored is not None
        assert stored.escalation_level == 3
        assert [(r.level, r.reason) for r in stored.escalation_history] == [
            (2, "first"),
            (3, "second"),
        ]
        assert all(r.notifications_sent for r in stored.escalation_history)

    async def test_escalate_notifies_with_more_urgent_rule(self) -> None:
        h = Harness()
        alert, _ = await h.manager.create_alert(
            _finding(severity=AlertSeverity.WARNING), now=T0,
        )
        escalated = await h.manager.escalate(alert.alert_id, "no response", "bob", now=T0)
        # Warning at level 2 is routed with the critical rule, which includes SMS.
        assert h.sent(Channel.SMS) == 1
        assert escalated.severity == AlertSeverity.WARNING
        record = escalated.escalation_history[-1]
        assert record.level == 2
        assert record.reason == "no response"
        assert record.escalated_by == "bob"
        assert record.notifications_sent == ["email", "sms", "chat"]

    async def test_escalate_resolved_rejected(self) -> None:
        h = Harness()
        alert, _ = await h.manager.create_alert(_finding(), now=T0)
        await h.manager.resolve(alert.alert_id, "u1", "alice", "fixed")
        with pytest.raises(InvalidTransitionError):
            await h.manager.escalate(alert.alert_id)

    async def test_sweep_escalates_old_alert(self) -> None:
        h = Harness()
        alert = await h.manager.raise_finding(_finding(), now=T0)
        assert alert is not None

        assert await h.manager.run_escalation_sweep(now=T0 + 10 * MINUTE) == []
        escalated = await h.manager.run_escalation_sweep(now=T0 + 31 * MINUTE)
        assert [a.alert_id for a in escalated] == [alert.alert_id]
        assert escalated[0].escalation_level == 2
        assert escalated[0].escalation_history[-1].reason == "Automatic escalation due to age"

    async def test_sweep_skips_capped_alerts(self) -> None:
        h = Harness()
        capped, _ = await h.manager.create_alert(_finding(), now=T0)
        await h.manager.escalate(capped.alert_id, now=T0)
        await h.manager.escalate(capped.alert_id, now=T0)
        assert await h.manager.run_escalation_sweep(now=T0 + 3600) == []

    async def test_sweep_escalates_info_alerts(self) -> None:
        h = Harness()
        info, _ = await h.manager.create_alert(
            _finding(severity=AlertSeverity.INFO, alert_type=AlertType.NO_DELIVERIES),
            now=T0,
        )
        escalated = await h.manager.run_escalation_sweep(now=T0 + 31 * MINUTE)
        assert [a.alert_id for a in escalated] == [info.alert_id]
        assert escalated[0].escalation_level == 2
        # Info at level 2 is routed with the warning rule, which has no SMS.
        assert escalated[0].escalation_history[-1].notifications_sent == ["email", "chat"]
        assert h.sent(Channel.SMS) == 0

    async def test_sweep_skips_suppressed_alerts(self) -> None:
        h = Harness()
        alert, _ = await h.manager.create_alert(_finding(), now=T0)
        await h.manager.suppress(alert.alert_id, 120, now=T0)
        assert await h.manager.run_escalation_sweep(now=T0 + 31 * MINUTE) == []

    async def test_pending_escalation_notified_after_suppression(self) -> None:
        h = Harness()
        alert, _ = await h.manager.create_alert(_finding(), now=T0)
        await h.manager.suppress(alert.alert_id, 10, now=T0)
        escalated = await h.manager.escalate(alert.alert_id, now=T0)
        assert escalated.escalation_history[-1].notifications_sent == []
        assert h.sent(Channel.EMAIL) == 0

        assert await h.manager.notify_pending_escalations(now=T0 + 5 * MINUTE) == 0
        assert await h.manager.notify_pending_escalations(now=T0 + 11 * MINUTE) == 1
        assert h.sent(Channel.EMAIL) == 1
        stored = await h.store.get(alert.alert_id)
        assert stored is not None
        assert stored.escalation_history[-1].notifications_sent == ["email", "sms", "chat"]
        # Already stamped; nothing left to send.
        assert await h.manager.notify_pending_escalations(now=T0 + 12 * MINUTE) == 0


# ── Auto-resolution ─────────────────────────────────────────────


class TestAutoResolution:
    async def test_resolves_when_failure_rate_recovers(self) -> None:
        h = Harness()
        alert, _ = await h.manager.create_alert(_finding(), now=T0)
        h.metrics.set_delivery(_snapshot(100, 40))

        resolved = await h.manager.run_auto_resolution(now=T0 + 600)

        assert [a.alert_id for a in resolved] == [alert.alert_id]
        stored = await h.store.get(alert.alert_id)
        assert stored is not None
        assert stored.status == AlertStatus.RESOLVED
        assert stored.auto_resolved is True
        assert stored.resolution_time == 600
        assert stored.resolved_by is not None
        assert stored.resolved_by.username == "system"
        assert stored.resolved_by.resolution == "Delivery failure rate improved to 40.0%"
        assert stored.resolved_by.resolution_notes == AUTO_RESOLUTION_NOTES

    async def test_stays_open_while_condition_persists(self) -> None:
        h = Harness()
        alert, _ = await h.manager.create_alert(_finding(), now=T0)
        h.metrics.set_delivery(_snapshot(100, 60))
        assert await h.manager.run_auto_resolution(now=T0 + 600) == []
        stored = await h.store.get(alert.alert_id)
        assert stored is not None
        assert stored.status == AlertStatus.ACTIVE

    async def test_inputs_fetched_once_per_sweep(self) -> None:
        h = Harness()
        await h.manager.create_alert(_finding(services=["a"]), now=T0)
        await h.manager.create_alert(_finding(services=["b"]), now=T0)
        h.metrics.set_delivery(_snapshot(100, 60))
        await h.manager.run_auto_resolution(now=T0 + 600)
        assert h.metrics.calls == [("delivery", 1.0)]

    async def test_service_alert_resolves_when_healthy(self) -> None:
        h = Harness()
        alert, _ = await h.manager.create_alert(
            _finding(services=["twilio"], alert_type=AlertType.SERVICE_UNAVAILABLE),
            now=T0,
        )
        resolved = await h.manager.run_auto_resolution(now=T0 + 60)
        assert [a.alert_id for a in resolved] == [alert.alert_id]
        assert resolved[0].resolved_by is not None
        assert resolved[0].resolved_by.resolution == "twilio service health restored"

    async def test_no_deliveries_uses_recent_window(self) -> None:
        h = Harness()
        await h.manager.create_alert(
            _finding(alert_type=AlertType.NO_DELIVERIES, key="no_deliveries"), now=T0,
        )
        h.metrics.set_delivery(_snapshot(10, 10))
        h.metrics.set_delivery(_snapshot(4, 2), window_hours=0.5)
        resolved = await h.manager.run_auto_resolution(now=T0 + 60)
        assert len(resolved) == 1
        assert ("delivery", 0.5) in h.metrics.calls

    async def test_fetch_failure_leaves_alerts_open(self) -> None:
        h = Harness()
        await h.manager.create_alert(_finding(), now=T0)

        async def broken(window_hours: float) -> DeliveryMetrics:
            raise ConnectionError("metrics down")

        h.metrics.get_delivery_metrics = broken  # type: ignore[method-assign]
        assert await h.manager.run_auto_resolution(now=T0 + 60) == []


# ── Periodic checks ─────────────────────────────────────────────


class TestChecks:
    async def test_check_delivery_metrics_raises_critical(self) -> None:
        h = Harness()
        h.metrics.set_delivery(_snapshot(100, 80))
        findings = await h.manager.check_delivery_metrics(now=T0)
        assert len(findings) == 1
        active = await h.store.get_active_alerts()
        assert len(active) == 1
        assert active[0].severity == AlertSeverity.CRITICAL
        assert active[0].metrics.failure_rate == pytest.approx(80.0)

    async def test_healthy_metrics_raise_nothing(self) -> None:
        h = Harness()
        h.metrics.set_delivery(_snapshot(10, 0))
        assert await h.manager.check_delivery_metrics(now=T0) == []
        assert len(h.store) == 0

    async def test_metrics_failure_raises_degradation_warning(self) -> None:
        h = Harness()

        async def broken(window_hours: float) -> DeliveryMetrics:
            raise ConnectionError("connection refused")

        h.metrics.get_delivery_metrics = broken  # type: ignore[method-assign]
        findings = await h.manager.check_delivery_metrics(now=T0)
        assert [f.dedup_key for f in findings] == ["metrics_collection"]
        active = await h.store.get_active_alerts()
        assert active[0].type == AlertType.SYSTEM_DEGRADATION
        assert active[0].severity == AlertSeverity.WARNING

    async def test_check_service_health(self) -> None:
        h = Harness()
        h.services.set_services([
            ServiceConfiguration(
                service_name="twilio",
                health_status=HealthStatus.DOWN,
                validation_status=ValidationStatus.INVALID,
            ),
        ])
        findings = await h.manager.check_service_health(now=T0)
        assert {f.dedup_key for f in findings} == {"invalid_config_twilio", "insufficient_services"}
        assert len(h.store) == 2


# ── Housekeeping ────────────────────────────────────────────────


class TestHousekeeping:
    async def test_cleanup_disabled_by_default(self) -> None:
        h = Harness()
        result = await h.manager.cleanup_old_alerts(now=T0)
        assert result.enabled is False
        assert result.deleted_count == 0

    async def test_cleanup_reports_without_deleting(self) -> None:
        h = Harness(LifecycleConfig(retention_days=30))
        old, _ = await h.manager.create_alert(_finding(), now=T0 - 40 * 86400)
        await h.manager.resolve(old.alert_id, "u1", "alice", "fixed", now=T0 - 39 * 86400)
        await h.manager.create_alert(_finding(services=["x"]), now=T0)

        result = await h.manager.cleanup_old_alerts(now=T0)

        assert result.enabled is True
        assert result.eligible_count == 1
        assert result.deleted_count == 0
        assert len(h.store) == 2

    async def test_dashboard(self) -> None:
        h = Harness()
        await h.manager.create_alert(_finding(), now=T0)
        await h.manager.create_alert(
            _finding(severity=AlertSeverity.WARNING, alert_type=AlertType.NO_DELIVERIES),
            now=T0,
        )
        dashboard = await h.manager.get_dashboard(now=T0 + 60)
        assert dashboard.summary.total == 2
        assert dashboard.summary.critical == 1
        assert dashboard.summary.warning == 1
        assert len(dashboard.active_alerts) == 2
        assert dashboard.metrics["critical_active"].count == 1
        assert len(dashboard.recent_alerts) == 2

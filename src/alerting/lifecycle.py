"""Alert lifecycle manager — raise, merge, transition, escalate and auto-resolve alerts."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any

import structlog

from src.alerting.cooldown import CooldownTable
from src.alerting.evaluator import (
    evaluate_delivery,
    evaluate_failures,
    evaluate_service_health,
    metrics_failure_finding,
)
from src.alerting.exceptions import (
    AlertingError,
    AlertNotFoundError,
    InvalidTransitionError,
)
from src.alerting.providers import MetricsProvider, ServiceConfigProvider
from src.alerting.recovery import (
    assess_recovery,
    needs_delivery_window,
    needs_failures,
    needs_recent_window,
    needs_service,
    primary_service,
)
from src.alerting.store import AlertFilter, AlertStore
from src.alerting.types import (
    OPEN_STATUSES,
    SYSTEM_USERNAME,
    Acknowledgement,
    Alert,
    AlertDashboard,
    AlertSeverity,
    AlertSource,
    AlertStatus,
    AlertSummary,
    AlertType,
    CleanupResult,
    EscalationRecord,
    Finding,
    Resolution,
    generate_alert_id,
)
from src.core.config import LifecycleConfig, ResolutionConfig, ThresholdsConfig
from src.core.logging import audit_logger
from src.core.types import DeliveryMetrics, FailureAnalysis, ServiceConfiguration

if TYPE_CHECKING:
    from src.notify.router import NotificationRouter

logger = structlog.get_logger(__name__)

AUTO_RESOLUTION_NOTES = "Automatically resolved when conditions improved"

# Least to most urgent; an escalation step moves one place to the right.
_URGENCY = (AlertSeverity.INFO, AlertSeverity.WARNING, AlertSeverity.CRITICAL)


def escalated_severity(severity: AlertSeverity, level: int) -> AlertSeverity:
    """Severity whose notification rule is used for an alert at *level*."""
    index = min(_URGENCY.index(severity) + max(level - 1, 0), len(_URGENCY) - 1)
    return _URGENCY[index]


def _has_metrics(finding: Finding) -> bool:
    return bool(finding.metrics.model_dump(exclude_none=True))


class _RecoveryInputs:
    """Per-sweep cache so each input is fetched at most once."""

    def __init__(
        self,
        metrics: MetricsProvider,
        services: ServiceConfigProvider,
        thresholds: ThresholdsConfig,
        resolution: ResolutionConfig,
    ) -> None:
        self._metrics = metrics
        self._services = services
        self._thresholds = thresholds
        self._resolution = resolution
        self._cache: dict[str, Any] = {}

    async def _once(self, key: str, fetch: Any) -> Any:
        if key not in self._cache:
            try:
                self._cache[key] = await fetch()
            except Exception:
                logger.exception("recovery_input_fetch_failed", input=key)
                self._cache[key] = None
        return self._cache[key]

    async def current(self) -> DeliveryMetrics | None:
        window = self._thresholds.metrics_window_hours
        return await self._once(
            "current", lambda: self._metrics.get_delivery_metrics(window),
        )

    async def recent(self) -> DeliveryMetrics | None:
        window = self._resolution.recent_success_window_hours
        return await self._once(
            "recent", lambda: self._metrics.get_delivery_metrics(window),
        )

    async def failures(self) -> FailureAnalysis | None:
        window = self._thresholds.metrics_window_hours
        return await self._once(
            "failures", lambda: self._metrics.get_failure_analysis(window),
        )

    async def service(self, name: str) -> ServiceConfiguration | None:
        return await self._once(
            f"service:{name}", lambda: self._services.get_service(name),
        )


class AlertLifecycleManager:
    """Owns every alert state change.

    - Findings pass through a per-key cooldown, then merge into an open alert
      of the same type with overlapping services, or create a new alert.
    - Only newly created alerts are handed to the notification router.
    - Operator transitions (acknowledge, resolve, escalate, suppress) are
      validated here and raise ``InvalidTransitionError`` when not allowed.
    - The periodic sweeps (checks, escalation, auto-resolution) isolate
      per-item errors so one bad alert never aborts the rest.

    Usage::

        manager = AlertLifecycleManager(store, metrics, services, router=router)
        await manager.check_delivery_metrics()
        await manager.run_escalation_sweep()
    """

    def __init__(
        self,
        store: AlertStore,
        metrics_provider: MetricsProvider,
        service_provider: ServiceConfigProvider,
        router: NotificationRouter | None = None,
        thresholds: ThresholdsConfig | None = None,
        resolution: ResolutionConfig | None = None,
        lifecycle: LifecycleConfig | None = None,
        cooldowns: CooldownTable | None = None,
    ) -> None:
        self._store = store
        self._metrics = metrics_provider
        self._services = service_provider
        self._router = router
        self._thresholds = thresholds or ThresholdsConfig()
        self._resolution = resolution or ResolutionConfig()
        self._lifecycle = lifecycle or LifecycleConfig()
        self._cooldowns = (
            cooldowns if cooldowns is not None
            else CooldownTable(self._lifecycle.cooldown_minutes)
        )
        # Serialises check-then-write sequences (merge lookups, transitions).
        self._lock = asyncio.Lock()

    @property
    def store(self) -> AlertStore:
        return self._store

    @property
    def cooldowns(self) -> CooldownTable:
        return self._cooldowns

    # ── Raising alerts ──────────────────────────────────────────

    async def raise_finding(
        self,
        finding: Finding,
        now: float | None = None,
    ) -> Alert | None:
        """Turn a finding into an alert unless its dedup key is cooling down.

        Returns the created or merged alert, or None when suppressed by the
        cooldown.  The cooldown is restarted after both a merge and a create.
        """
        now = now if now is not None else time.time()
        if await self._cooldowns.is_active(finding.dedup_key, now):
            logger.debug("finding_in_cooldown", dedup_key=finding.dedup_key)
            return None

        alert, created = await self._create_or_merge(finding, now)
        await self._cooldowns.set(finding.dedup_key, now=now)
        if created:
            await self._route(alert, now=now)
        return alert

    async def create_alert(
        self,
        finding: Finding,
        now: float | None = None,
    ) -> tuple[Alert, bool]:
        """Create or merge without consulting the cooldown or routing.

        Returns ``(alert, created)``.
        """
        now = now if now is not None else time.time()
        return await self._create_or_merge(finding, now)

    async def create_manual_alert(
        self,
        alert_type: AlertType,
        severity: AlertSeverity,
        title: str,
        description: str,
        affected_services: list[str] | None = None,
        metrics: dict[str, Any] | None = None,
        context: dict[str, Any] | None = None,
        now: float | None = None,
    ) -> Alert:
        """Operator-created alert. Always routed, even when merged."""
        now = now if now is not None else time.time()
        finding = Finding(
            type=alert_type,
            severity=severity,
            title=title,
            description=description,
            source=AlertSource.MANUAL,
            dedup_key=f"manual_{alert_type}",
            affected_services=list(affected_services or []),
            metrics=metrics or {},
            context={**(context or {}), "manually_created": True},
        )
        alert, _ = await self._create_or_merge(finding, now)
        await self._route(alert, now=now)
        return alert

    async def create_user_escalation_alert(
        self,
        user_id: str,
        reason: str,
        priority: str = "normal",
        analysis: dict[str, Any] | None = None,
        now: float | None = None,
    ) -> Alert:
        """Alert raised when a user asks for human help."""
        now = now if now is not None else time.time()
        finding = Finding(
            type=AlertType.USER_ESCALATION,
            severity=AlertSeverity.CRITICAL if priority == "high" else AlertSeverity.WARNING,
            title="User Requested Escalation",
            description=f"User escalation: {reason}",
            source=AlertSource.USER_ESCALATION,
            dedup_key=f"user_escalation_{user_id}",
            affected_users=[user_id],
            context={
                "user_id": user_id,
                "reason": reason,
                "priority": priority,
                "analysis": analysis or {},
            },
        )
        alert, created = await self._create_or_merge(finding, now)
        if created:
            await self._route(alert, now=now)
        return alert

    async def _create_or_merge(self, finding: Finding, now: float) -> tuple[Alert, bool]:
        async with self._lock:
            existing = None
            # An alert with no affected services never merges.
            if finding.affected_services:
                existing = await self._store.find_one(AlertFilter(
                    type=finding.type,
                    statuses=set(OPEN_STATUSES),
                    services=finding.affected_services,
                ))

            if existing is not None:
                changes: dict[str, Any] = {
                    "context": {**existing.context, **finding.context},
                    "updated_at": now,
                }
                if _has_metrics(finding):
                    changes["metrics"] = finding.metrics
                merged = await self._store.update(existing.alert_id, set_fields=changes)
                audit_logger().info(
                    "alert_merged",
                    alert_id=merged.alert_id,
                    type=merged.type.value,
                    dedup_key=finding.dedup_key,
                )
                return merged, False

            alert = Alert(
                alert_id=generate_alert_id(now=now),
                type=finding.type,
                severity=finding.severity,
                title=finding.title,
                description=finding.description,
                source=finding.source,
                affected_services=list(finding.affected_services),
                affected_users=list(finding.affected_users),
                metrics=finding.metrics,
                context=dict(finding.context),
                created_at=now,
                updated_at=now,
            )
            created = await self._store.create(alert)

        logger.info(
            "alert_created",
            alert_id=created.alert_id,
            type=created.type.value,
            severity=created.severity.value,
        )
        audit_logger().info(
            "alert_created",
            alert_id=created.alert_id,
            type=created.type.value,
            severity=created.severity.value,
            source=created.source.value,
            affected_services=created.affected_services,
        )
        return created, True

    async def _route(
        self,
        alert: Alert,
        severity: AlertSeverity | None = None,
        now: float | None = None,
    ) -> list[str] | None:
        """Hand *alert* to the router; returns the routed channels, or None."""
        if self._router is None:
            return None
        try:
            job = await self._router.route(alert, severity=severity, now=now)
        except Exception:
            logger.exception("alert_routing_failed", alert_id=alert.alert_id)
            return None
        return list(job.rule.channels) if job is not None else None

    # ── Operator transitions ────────────────────────────────────

    async def _require(self, alert_id: str) -> Alert:
        alert = await self._store.get(alert_id)
        if alert is None:
            raise AlertNotFoundError(alert_id)
        return alert

    async def acknowledge(
        self,
        alert_id: str,
        user_id: str | None,
        username: str,
        notes: str = "",
        now: float | None = None,
    ) -> Alert:
        """Move an ACTIVE alert to ACKNOWLEDGED."""
        now = now if now is not None else time.time()
        async with self._lock:
            alert = await self._require(alert_id)
            if alert.status != AlertStatus.ACTIVE:
                raise InvalidTransitionError(
                    f"Alert {alert_id} is {alert.status.value}; only active alerts "
                    "can be acknowledged"
                )
            updated = await self._store.update(alert_id, set_fields={
                "status": AlertStatus.ACKNOWLEDGED,
                "acknowledged_by": Acknowledgement(
                    user_id=user_id,
                    username=username,
                    acknowledged_at=now,
                    notes=notes,
                ),
                "updated_at": now,
            })

        audit_logger().info(
            "alert_acknowledged",
            alert_id=alert_id,
            user_id=user_id,
            username=username,
        )
        return updated

    async def resolve(
        self,
        alert_id: str,
        user_id: str | None,
        username: str,
        resolution: str,
        notes: str = "",
        now: float | None = None,
    ) -> Alert:
        """Resolve an ACTIVE or ACKNOWLEDGED alert."""
        now = now if now is not None else time.time()
        async with self._lock:
            alert = await self._require(alert_id)
            if alert.status == AlertStatus.RESOLVED:
                raise InvalidTransitionError(f"Alert {alert_id} is already resolved")
            updated = await self._mark_resolved(
                alert,
                Resolution(
                    user_id=user_id,
                    username=username,
                    resolved_at=now,
                    resolution=resolution,
                    resolution_notes=notes,
                ),
                auto=False,
                now=now,
            )
        return updated

    async def _mark_resolved(
        self,
        alert: Alert,
        resolution: Resolution,
        auto: bool,
        now: float,
    ) -> Alert:
        updated = await self._store.update(alert.alert_id, set_fields={
            "status": AlertStatus.RESOLVED,
            "resolved_by": resolution,
            "auto_resolved": auto,
            "resolution_time": now - alert.created_at,
            "updated_at": now,
        })
        audit_logger().info(
            "alert_resolved",
            alert_id=alert.alert_id,
            username=resolution.username,
            resolution=resolution.resolution,
            auto_resolved=auto,
            resolution_time=updated.resolution_time,
        )
        return updated

    async def escalate(
        self,
        alert_id: str,
        reason: str = "Manual escalation",
        escalated_by: str = SYSTEM_USERNAME,
        now: float | None = None,
    ) -> Alert:
        """Raise an open alert one escalation level and re-notify.

        Notifications use the rule for the escalated urgency: each level
        above 1 moves one severity step towards critical.
        """
        now = now if now is not None else time.time()
        max_level = self._lifecycle.max_escalation_level
        async with self._lock:
            alert = await self._require(alert_id)
            if alert.status == AlertStatus.RESOLVED:
                raise InvalidTransitionError(f"Alert {alert_id} is resolved")
            if alert.escalation_level >= max_level:
                raise InvalidTransitionError(
                    f"Alert {alert_id} is already at the maximum escalation level"
                )
            level = alert.escalation_level + 1
            escalated = await self._store.update(
                alert_id,
                set_fields={"escalation_level": level, "updated_at": now},
                push={"escalation_history": [EscalationRecord(
                    level=level,
                    reason=reason,
                    escalated_by=escalated_by,
                    timestamp=now,
                )]},
            )

        logger.warning(
            "alert_escalated",
            alert_id=alert_id,
            level=level,
            reason=reason,
        )
        audit_logger().info(
            "alert_escalated",
            alert_id=alert_id,
            level=level,
            reason=reason,
            escalated_by=escalated_by,
        )
        return await self._notify_escalation(escalated, level, now)

    async def _notify_escalation(self, alert: Alert, level: int, now: float) -> Alert:
        """Route an escalated alert and stamp the channels on the record for *level*.

        The stamp re-reads the alert under the lock, so records appended by a
        concurrent escalation while routing was in flight are kept.
        """
        severity = escalated_severity(alert.severity, level)
        channels = await self._route(alert, severity=severity, now=now)
        if not channels:
            return alert

        async with self._lock:
            current = await self._require(alert.alert_id)
            history = [record.model_copy() for record in current.escalation_history]
            target = next((r for r in reversed(history) if r.level == level), None)
            if target is None:
                return current
            target.notifications_sent = channels
            return await self._store.update(
                alert.alert_id,
                set_fields={"escalation_history": history, "updated_at": now},
            )

    async def suppress(
        self,
        alert_id: str,
        duration_minutes: float | None = None,
        reason: str = "",
        now: float | None = None,
    ) -> Alert:
        """Silence notifications and escalation for an open alert until a deadline."""
        now = now if now is not None else time.time()
        minutes = (
            duration_minutes if duration_minutes is not None
            else self._lifecycle.default_suppress_minutes
        )
        if minutes <= 0:
            raise InvalidTransitionError("Suppression duration must be positive")

        async with self._lock:
            alert = await self._require(alert_id)
            if alert.status == AlertStatus.RESOLVED:
                raise InvalidTransitionError(
                    f"Alert {alert_id} is resolved and cannot be suppressed"
                )
            until = now + minutes * 60
            updated = await self._store.update(alert_id, set_fields={
                "suppressed_until": until,
                "suppression_reason": reason or None,
                "updated_at": now,
            })

        audit_logger().info(
            "alert_suppressed",
            alert_id=alert_id,
            suppressed_until=until,
            reason=reason,
        )
        return updated

    # ── Periodic checks ─────────────────────────────────────────

    async def check_delivery_metrics(self, now: float | None = None) -> list[Finding]:
        """Evaluate delivery metrics and failure analysis; raise any findings.

        A failed metrics fetch raises a metrics-collection finding instead.
        A failed failure-analysis fetch is logged and skipped.
        """
        now = now if now is not None else time.time()
        window = self._thresholds.metrics_window_hours
        try:
            snapshot = await self._metrics.get_delivery_metrics(window)
        except Exception as exc:
            logger.exception("delivery_metrics_fetch_failed")
            findings = [metrics_failure_finding(exc)]
        else:
            findings = evaluate_delivery(snapshot, self._thresholds)
            try:
                analysis = await self._metrics.get_failure_analysis(window)
            except Exception:
                logger.exception("failure_analysis_fetch_failed")
            else:
                findings.extend(evaluate_failures(analysis, self._thresholds))

        await self._raise_all(findings, now)
        return findings

    async def check_service_health(self, now: float | None = None) -> list[Finding]:
        """Evaluate service configuration records and raise any findings."""
        now = now if now is not None else time.time()
        try:
            configs = await self._services.list_services()
        except Exception:
            logger.exception("service_config_fetch_failed")
            return []

        findings = evaluate_service_health(configs, self._thresholds, now)
        await self._raise_all(findings, now)
        return findings

    async def _raise_all(self, findings: list[Finding], now: float) -> None:
        for finding in findings:
            try:
                await self.raise_finding(finding, now=now)
            except Exception:
                logger.exception("raise_finding_failed", dedup_key=finding.dedup_key)

    # ── Escalation sweep ────────────────────────────────────────

    async def run_escalation_sweep(self, now: float | None = None) -> list[Alert]:
        """Escalate every open alert past the age threshold, whatever its severity.

        Suppressed alerts are skipped.  Alerts already at the level cap are
        skipped rather than reported as errors.
        """
        now = now if now is not None else time.time()
        try:
            candidates = await self._store.get_escalation_candidates(
                max_age_minutes=self._lifecycle.escalation_age_minutes,
                max_level=self._lifecycle.max_escalation_level,
                now=now,
            )
        except AlertingError:
            logger.exception("escalation_candidates_failed")
            return []

        escalated: list[Alert] = []
        for alert in candidates:
            if alert.is_suppressed(now):
                continue
            try:
                escalated.append(await self.escalate(
                    alert.alert_id,
                    reason="Automatic escalation due to age",
                    now=now,
                ))
            except InvalidTransitionError as exc:
                logger.debug("escalation_skipped", alert_id=alert.alert_id, reason=str(exc))
            except Exception:
                logger.exception("escalation_failed", alert_id=alert.alert_id)

        if escalated:
            logger.info("escalation_sweep_complete", escalated=len(escalated))
        return escalated

    async def notify_pending_escalations(self, now: float | None = None) -> int:
        """Re-route escalated alerts whose latest escalation sent nothing.

        Returns the number of alerts that were routed.
        """
        now = now if now is not None else time.time()
        try:
            alerts = await self._store.find_many(AlertFilter(statuses=set(OPEN_STATUSES)))
        except AlertingError:
            logger.exception("pending_escalations_query_failed")
            return 0

        routed = 0
        for alert in alerts:
            if alert.escalation_level <= 1 or not alert.escalation_history:
                continue
            if alert.escalation_history[-1].notifications_sent or alert.is_suppressed(now):
                continue
            try:
                level = alert.escalation_history[-1].level
                updated = await self._notify_escalation(alert, level, now)
            except Exception:
                logger.exception("pending_escalation_failed", alert_id=alert.alert_id)
                continue
            stamped = [r for r in updated.escalation_history if r.level == level]
            if stamped and stamped[-1].notifications_sent:
                routed += 1
        return routed

    # ── Auto-resolution ─────────────────────────────────────────

    async def run_auto_resolution(self, now: float | None = None) -> list[Alert]:
        """Resolve open alerts whose triggering condition has improved."""
        now = now if now is not None else time.time()
        try:
            alerts = await self._store.get_active_alerts()
        except AlertingError:
            logger.exception("auto_resolution_query_failed")
            return []

        inputs = _RecoveryInputs(
            self._metrics, self._services, self._thresholds, self._resolution,
        )
        resolved: list[Alert] = []
        for alert in alerts:
            try:
                message = await self._assess(alert, inputs)
                if message is None:
                    continue
                result = await self._auto_resolve(alert.alert_id, message, now)
            except Exception:
                logger.exception("auto_resolution_failed", alert_id=alert.alert_id)
                continue
            if result is not None:
                resolved.append(result)

        if resolved:
            logger.info("auto_resolution_complete", resolved=len(resolved))
        return resolved

    async def _assess(self, alert: Alert, inputs: _RecoveryInputs) -> str | None:
        current = await inputs.current() if needs_delivery_window(alert) else None
        recent = await inputs.recent() if needs_recent_window(alert) else None
        failures = await inputs.failures() if needs_failures(alert) else None
        service = None
        if needs_service(alert):
            name = primary_service(alert)
            service = await inputs.service(name) if name else None
        return assess_recovery(
            alert,
            self._resolution,
            current=current,
            recent=recent,
            service=service,
            failures=failures,
        )

    async def _auto_resolve(self, alert_id: str, message: str, now: float) -> Alert | None:
        async with self._lock:
            alert = await self._store.get(alert_id)
            # Resolved by an operator while the sweep was running.
            if alert is None or alert.status == AlertStatus.RESOLVED:
                return None
            return await self._mark_resolved(
                alert,
                Resolution(
                    username=SYSTEM_USERNAME,
                    resolved_at=now,
                    resolution=message,
                    resolution_notes=AUTO_RESOLUTION_NOTES,
                ),
                auto=True,
                now=now,
            )

    # ── Housekeeping and queries ────────────────────────────────

    async def cleanup_old_alerts(self, now: float | None = None) -> CleanupResult:
        """Report resolved alerts past the retention period.

        Alerts are never deleted here; with no retention period configured
        the policy is disabled.
        """
        retention_days = self._lifecycle.retention_days
        if retention_days is None:
            logger.info("alert_cleanup_disabled")
            return CleanupResult(enabled=False, message="Alert cleanup is disabled")

        now = now if now is not None else time.time()
        cutoff = now - retention_days * 86400
        resolved = await self._store.find_many(AlertFilter(
            statuses={AlertStatus.RESOLVED},
            created_before=cutoff,
        ))
        eligible = [
            a for a in resolved
            if a.resolved_by is None or a.resolved_by.resolved_at < cutoff
        ]
        logger.info(
            "alert_cleanup_report",
            retention_days=retention_days,
            eligible=len(eligible),
        )
        return CleanupResult(
            enabled=True,
            eligible_count=len(eligible),
            message=(
                f"{len(eligible)} resolved alert(s) older than {retention_days} days; "
                "alerts are retained"
            ),
        )

    async def get_dashboard(
        self,
        hours: float = 24.0,
        now: float | None = None,
    ) -> AlertDashboard:
        """Open alert counts, up to 20 open alerts, metrics and the 10 newest alerts."""
        now = now if now is not None else time.time()
        active = await self._store.get_active_alerts()
        buckets = await self._store.get_alert_metrics(hours=hours, now=now)
        recent = await self._store.recent(limit=10)

        summary = AlertSummary(
            total=len(active),
            critical=sum(1 for a in active if a.severity == AlertSeverity.CRITICAL),
            warning=sum(1 for a in active if a.severity == AlertSeverity.WARNING),
            info=sum(1 for a in active if a.severity == AlertSeverity.INFO),
        )
        return AlertDashboard(
            summary=summary,
            active_alerts=active[:20],
            metrics={f"{b.severity.value}_{b.status.value}": b for b in buckets},
            recent_alerts=recent,
            generated_at=now,
        )

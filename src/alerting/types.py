"""Domain types for alerts and threshold findings."""

from __future__ import annotations

import secrets
import string
import time
import uuid
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

SYSTEM_USERNAME = "system"

_ID_ALPHABET = string.ascii_uppercase + string.digits


class AlertType(StrEnum):
    DELIVERY_FAILURE_RATE = "delivery_failure_rate"
    SERVICE_UNAVAILABLE = "service_unavailable"
    NO_DELIVERIES = "no_deliveries"
    HIGH_ERROR_COUNT = "high_error_count"
    CONFIGURATION_INVALID = "configuration_invalid"
    SYSTEM_DEGRADATION = "system_degradation"
    USER_ESCALATION = "user_escalation"


class AlertSeverity(StrEnum):
    """Alert severity as routed to notification channels."""

    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class AlertStatus(StrEnum):
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class AlertSource(StrEnum):
    """Subsystem an alert originated from."""

    DELIVERY_METRICS = "delivery_metrics"
    SERVICE_MONITOR = "service_monitor"
    SYSTEM_HEALTH = "system_health"
    USER_ESCALATION = "user_escalation"
    MANUAL = "manual"
    MANUAL_TEST = "manual_test"


OPEN_STATUSES = frozenset({AlertStatus.ACTIVE, AlertStatus.ACKNOWLEDGED})


def generate_alert_id(prefix: str = "ALT", now: float | None = None) -> str:
    """Return an externally visible id like ``ALT-1718000000000-4KQ9ZB``."""
    millis = int((now if now is not None else time.time()) * 1000)
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    return f"{prefix}-{millis}-{suffix}"


class AlertMetrics(BaseModel):
    """Quantitative payload attached to an alert."""

    failure_rate: float | None = None
    error_count: int | None = None
    affected_deliveries: int | None = None
    time_range: str | None = None
    threshold: float | None = None
    actual_value: float | None = None


class NotificationRecord(BaseModel):
    """One channel delivery outcome recorded on an alert."""

    channel: str
    recipient: str | None = None
    success: bool
    error: str | None = None
    timestamp: float = Field(default_factory=time.time)


class EscalationRecord(BaseModel):
    level: int
    reason: str
    escalated_by: str = SYSTEM_USERNAME
    timestamp: float = Field(default_factory=time.time)
    notifications_sent: list[str] = Field(default_factory=list)


class Acknowledgement(BaseModel):
    user_id: str | None = None
    username: str
    acknowledged_at: float = Field(default_factory=time.time)
    notes: str = ""


class Resolution(BaseModel):
    user_id: str | None = None
    username: str
    resolved_at: float = Field(default_factory=time.time)
    resolution: str = ""
    resolution_notes: str = ""


class Alert(BaseModel):
    """A tracked abnormal condition, persisted in the alert store."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    alert_id: str = Field(default_factory=generate_alert_id)
    type: AlertType
    severity: AlertSeverity = AlertSeverity.WARNING
    status: AlertStatus = AlertStatus.ACTIVE
    title: str
    description: str
    source: AlertSource
    affected_services: list[str] = Field(default_factory=list)
    affected_users: list[str] = Field(default_factory=list)
    metrics: AlertMetrics = Field(default_factory=AlertMetrics)
    context: dict[str, Any] = Field(default_factory=dict)
    escalation_level: int = Field(default=1, ge=1, le=3)
    escalation_history: list[EscalationRecord] = Field(default_factory=list)
    notifications_sent: list[NotificationRecord] = Field(default_factory=list)
    acknowledged_by: Acknowledgement | None = None
    resolved_by: Resolution | None = None
    auto_resolved: bool = False
    resolution_time: float | None = None
    suppressed_until: float | None = None
    suppression_reason: str | None = None
    created_at: float = Field(default_factory=time.time)
    updated_at: float = Field(default_factory=time.time)

    @property
    def is_open(self) -> bool:
        """Active or acknowledged — eligible for merge and escalation."""
        return self.status in OPEN_STATUSES

    def age(self, now: float | None = None) -> float:
        """Seconds since creation."""
        return (now if now is not None else time.time()) - self.created_at

    def is_suppressed(self, now: float | None = None) -> bool:
        if self.suppressed_until is None:
            return False
        return (now if now is not None else time.time()) < self.suppressed_until

    def overlaps(self, services: list[str]) -> bool:
        """Whether any of *services* is among this alert's affected services."""
        return bool(set(self.affected_services) & set(services))


class Finding(BaseModel):
    """Transient threshold breach reported by the evaluator."""

    type: AlertType
    severity: AlertSeverity
    title: str
    description: str
    source: AlertSource
    dedup_key: str
    affected_services: list[str] = Field(default_factory=list)
    affected_users: list[str] = Field(default_factory=list)
    metrics: AlertMetrics = Field(default_factory=AlertMetrics)
    context: dict[str, Any] = Field(default_factory=dict)


class AlertMetricsBucket(BaseModel):
    """Alert counts for one (severity, status) group."""

    severity: AlertSeverity
    status: AlertStatus
    count: int
    avg_resolution_time: float | None = None


class OperationResult(BaseModel):
    """Outcome of an operator-invoked operation."""

    success: bool
    alert: Alert | None = None
    error: str | None = None
    message: str | None = None


class CleanupResult(BaseModel):
    enabled: bool
    deleted_count: int = 0
    eligible_count: int = 0
    message: str = ""


class AlertSummary(BaseModel):
    total: int = 0
    critical: int = 0
    warning: int = 0
    info: int = 0


class AlertDashboard(BaseModel):
    """Operator overview: open alert counts, open alerts, metrics and recent history."""

    summary: AlertSummary = Field(default_factory=AlertSummary)
    active_alerts: list[Alert] = Field(default_factory=list)
    metrics: dict[str, AlertMetricsBucket] = Field(default_factory=dict)
    recent_alerts: list[Alert] = Field(default_factory=list)
    generated_at: float = Field(default_factory=time.time)

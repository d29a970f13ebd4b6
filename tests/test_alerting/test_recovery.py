"""Tests for recovery assessment — per-type auto-resolution rules."""

from __future__ import annotations

from src.alerting.recovery import assess_recovery
from src.alerting.types import Alert, AlertSeverity, AlertSource, AlertType
from src.core.config import ResolutionConfig
from src.core.types import (
    DeliveryMetrics,
    DeliveryStats,
    FailureAnalysis,
    FailureBreakdown,
    HealthStatus,
    ServiceConfiguration,
    ValidationStatus,
)


def _alert(alert_type: AlertType, services: list[str] | None = None) -> Alert:
    return Alert(
        type=alert_type,
        severity=AlertSeverity.CRITICAL,
        title="t",
        description="d",
        source=AlertSource.DELIVERY_METRICS,
        affected_services=services or ["all"],
    )


def _metrics(total: int, failed: int, hours: float = 1.0) -> DeliveryMetrics:
    return DeliveryMetrics(
        time_range_hours=hours,
        delivery=DeliveryStats(
            total_attempts=total,
            failed_attempts=failed,
            successful_attempts=total - failed,
        ),
    )


class TestDeliveryFailureRate:
    def test_resolves_below_threshold(self) -> None:
        message = assess_recovery(
            _alert(AlertType.DELIVERY_FAILURE_RATE),
            ResolutionConfig(),
            current=_metrics(100, 40),
        )
        assert message == "Delivery failure rate improved to 40.0%"

    def test_stays_open_at_threshold(self) -> None:
        message = assess_recovery(
            _alert(AlertType.DELIVERY_FAILURE_RATE),
            ResolutionConfig(),
            current=_metrics(100, 50),
        )
        assert message is None

    def test_lower_resolve_threshold(self) -> None:
        message = assess_recovery(
            _alert(AlertType.DELIVERY_FAILURE_RATE),
            ResolutionConfig(failure_rate_below=30),
            current=_metrics(100, 40),
        )
        assert message is None

    def test_missing_input_never_resolves(self) -> None:
        assert assess_recovery(_alert(AlertType.DELIVERY_FAILURE_RATE), ResolutionConfig()) is None


class TestNoDeliveries:
    def test_resolves_on_recent_success(self) -> None:
        message = assess_recovery(
            _alert(AlertType.NO_DELIVERIES),
            ResolutionConfig(),
            recent=_metrics(10, 7, hours=0.5),
        )
        assert message == "Successful deliveries resumed: 3 in last 30 minutes"

    def test_stays_open_without_success(self) -> None:
        message = assess_recovery(
            _alert(AlertType.NO_DELIVERIES),
            ResolutionConfig(),
            recent=_metrics(10, 10, hours=0.5),
        )
        assert message is None


class TestServiceRules:
    def test_service_unavailable_needs_healthy_and_valid(self) -> None:
        alert = _alert(AlertType.SERVICE_UNAVAILABLE, ["twilio"])
        healthy = ServiceConfiguration(
            service_name="twilio",
            health_status=HealthStatus.HEALTHY,
            validation_status=ValidationStatus.VALID,
        )
        degraded = healthy.model_copy(update={"health_status": HealthStatus.DEGRADED})
        assert assess_recovery(alert, ResolutionConfig(), service=healthy) == (
            "twilio service health restored"
        )
        assert assess_recovery(alert, ResolutionConfig(), service=degraded) is None

    def test_configuration_invalid_needs_valid(self) -> None:
        alert = _alert(AlertType.CONFIGURATION_INVALID, ["twilio"])
        service = ServiceConfiguration(
            service_name="twilio",
            validation_status=ValidationStatus.VALID,
        )
        assert assess_recovery(alert, ResolutionConfig(), service=service) == (
            "twilio configuration validated successfully"
        )

    def test_missing_service_never_resolves(self) -> None:
        alert = _alert(AlertType.SERVICE_UNAVAILABLE, ["twilio"])
        assert assess_recovery(alert, ResolutionConfig(), service=None) is None


class TestErrorCount:
    def test_resolves_when_count_drops(self) -> None:
        alert = _alert(AlertType.HIGH_ERROR_COUNT, ["twilio"])
        analysis = FailureAnalysis(breakdown=[
            FailureBreakdown(service="twilio", error_type="timeout", count=5),
            FailureBreakdown(service="twilio", error_type="auth", count=4),
            FailureBreakdown(service="sendgrid", count=100),
        ])
        assert assess_recovery(alert, ResolutionConfig(), failures=analysis) == (
            "twilio error count dropped to 9"
        )

    def test_stays_open_when_count_high(self) -> None:
        alert = _alert(AlertType.HIGH_ERROR_COUNT, ["twilio"])
        analysis = FailureAnalysis(breakdown=[FailureBreakdown(service="twilio", count=25)])
        assert assess_recovery(alert, ResolutionConfig(), failures=analysis) is None


class TestNoRule:
    def test_user_escalation_left_for_operator(self) -> None:
        message = assess_recovery(
            _alert(AlertType.USER_ESCALATION),
            ResolutionConfig(),
            current=_metrics(100, 0),
            recent=_metrics(10, 0),
        )
        assert message is None

"""Recovery assessment — decides whether an active alert's condition has cleared."""

from __future__ import annotations

from src.alerting.types import Alert, AlertType
from src.core.config import ResolutionConfig
from src.core.types import (
    DeliveryMetrics,
    FailureAnalysis,
    HealthStatus,
    ServiceConfiguration,
    ValidationStatus,
)


def delivery_failure_recovered(
    current: DeliveryMetrics,
    config: ResolutionConfig,
) -> str | None:
    # No attempts in the window counts as a 0% failure rate.
    rate = current.delivery.failure_rate or 0.0
    if rate < config.failure_rate_below:
        return f"Delivery failure rate improved to {rate:.1f}%"
    return None


def deliveries_resumed(recent: DeliveryMetrics) -> str | None:
    successes = recent.delivery.successful_attempts
    if successes > 0:
        minutes = round(recent.time_range_hours * 60)
        return f"Successful deliveries resumed: {successes} in last {minutes} minutes"
    return None


def service_recovered(service: ServiceConfiguration | None) -> str | None:
    if (
        service is not None
        and service.health_status == HealthStatus.HEALTHY
        and service.validation_status == ValidationStatus.VALID
    ):
        return f"{service.service_name} service health restored"
    return None


def configuration_recovered(service: ServiceConfiguration | None) -> str | None:
    if service is not None and service.validation_status == ValidationStatus.VALID:
        return f"{service.service_name} configuration validated successfully"
    return None


def error_count_recovered(
    service_name: str,
    analysis: FailureAnalysis,
    config: ResolutionConfig,
) -> str | None:
    count = sum(e.count for e in analysis.breakdown if e.service == service_name)
    if count < config.error_count_below:
        return f"{service_name} error count dropped to {count}"
    return None


def primary_service(alert: Alert) -> str | None:
    return alert.affected_services[0] if alert.affected_services else None


def needs_delivery_window(alert: Alert) -> bool:
    return alert.type == AlertType.DELIVERY_FAILURE_RATE


def needs_recent_window(alert: Alert) -> bool:
    return alert.type == AlertType.NO_DELIVERIES


def needs_service(alert: Alert) -> bool:
    return alert.type in (AlertType.SERVICE_UNAVAILABLE, AlertType.CONFIGURATION_INVALID)


def needs_failures(alert: Alert) -> bool:
    return alert.type == AlertType.HIGH_ERROR_COUNT


def assess_recovery(
    alert: Alert,
    config: ResolutionConfig,
    *,
    current: DeliveryMetrics | None = None,
    recent: DeliveryMetrics | None = None,
    service: ServiceConfiguration | None = None,
    failures: FailureAnalysis | None = None,
) -> str | None:
    """Return a resolution message if *alert*'s condition has measurably improved.

    Only the inputs relevant to the alert's type are consulted; a missing
    input means "cannot tell" and never resolves the alert.  Alert types
    without a recovery rule (system degradation, user escalation) are left
    for an operator.
    """
    if alert.type == AlertType.DELIVERY_FAILURE_RATE:
        return delivery_failure_recovered(current, config) if current else None
    if alert.type == AlertType.NO_DELIVERIES:
        return deliveries_resumed(recent) if recent else None
    if alert.type == AlertType.SERVICE_UNAVAILABLE:
        return service_recovered(service)
    if alert.type == AlertType.CONFIGURATION_INVALID:
        return configuration_recovered(service)
    if alert.type == AlertType.HIGH_ERROR_COUNT:
        name = primary_service(alert)
        if name is None or failures is None:
            return None
        return error_count_recovered(name, failures, config)
    return None

"""Threshold evaluator — pure functions mapping metrics to findings.

Every rule is evaluated independently; a single pass may return several
findings.  Nothing here performs I/O or touches shared state, so the
lifecycle manager can call these from any tick.
"""

from __future__ import annotations

import time

from src.core.config import ThresholdsConfig
from src.core.types import (
    DeliveryMetrics,
    DeliveryStats,
    FailureAnalysis,
    ServiceConfiguration,
    ServiceStats,
    ValidationStatus,
)
from src.alerting.types import (
    AlertMetrics,
    AlertSeverity,
    AlertSource,
    AlertType,
    Finding,
)

ALL_SERVICES = "all"


def _window_label(hours: float) -> str:
    if hours == 1:
        return "1 hour"
    if hours < 1:
        return f"{round(hours * 60)} minutes"
    return f"{hours:g} hours"


# ── Dedup keys ──────────────────────────────────────────────────


def dedup_key(kind: str, service: str | None = None) -> str:
    """Build the cooldown / merge key for a finding kind and primary service."""
    if service is None or service == ALL_SERVICES:
        return kind
    return f"{kind}_{service}"


# ── Delivery rules ──────────────────────────────────────────────


def check_overall_failure_rate(
    stats: DeliveryStats,
    thresholds: ThresholdsConfig,
    window_hours: float = 1.0,
) -> Finding | None:
    """Critical at >= critical_failure_rate, warning at >= warning_failure_rate."""
    failure_rate = stats.failure_rate
    if failure_rate is None:
        return None

    if failure_rate >= thresholds.critical_failure_rate:
        severity = AlertSeverity.CRITICAL
        threshold = thresholds.critical_failure_rate
    elif failure_rate >= thresholds.warning_failure_rate:
        severity = AlertSeverity.WARNING
        threshold = thresholds.warning_failure_rate
    else:
        return None

    window = _window_label(window_hours)
    return Finding(
        type=AlertType.DELIVERY_FAILURE_RATE,
        severity=severity,
        title="High Delivery Failure Rate Detected",
        description=(
            f"Delivery failure rate is {failure_rate:.1f}% "
            f"(threshold: {threshold:g}%) over the last {window}"
        ),
        source=AlertSource.DELIVERY_METRICS,
        dedup_key=dedup_key("delivery_failure_rate"),
        affected_services=[ALL_SERVICES],
        metrics=AlertMetrics(
            failure_rate=failure_rate,
            error_count=stats.failed_attempts,
            affected_deliveries=stats.total_attempts,
            time_range=window,
            threshold=threshold,
            actual_value=failure_rate,
        ),
        context={
            "total_attempts": stats.total_attempts,
            "successful_attempts": stats.successful_attempts,
            "failed_attempts": stats.failed_attempts,
            "average_delivery_time": stats.average_delivery_time,
        },
    )


def check_service_failure_rate(
    service: ServiceStats,
    thresholds: ThresholdsConfig,
    window_hours: float = 1.0,
) -> Finding | None:
    """Per-service failure rate, ignoring services with too few attempts."""
    if service.total_attempts < thresholds.min_service_attempts:
        return None
    failure_rate = service.failure_rate
    if failure_rate < thresholds.service_failure_rate:
        return None

    name = service.service_name
    severity = (
        AlertSeverity.CRITICAL
        if failure_rate >= thresholds.service_critical_failure_rate
        else AlertSeverity.WARNING
    )
    window = _window_label(window_hours)
    return Finding(
        type=AlertType.SERVICE_UNAVAILABLE,
        severity=severity,
        title=f"{name} Service Experiencing High Failure Rate",
        description=(
            f"{name} service has a {failure_rate:.1f}% failure rate "
            f"over the last {window}"
        ),
        source=AlertSource.SERVICE_MONITOR,
        dedup_key=dedup_key("service_failure", name),
        affected_services=[name],
        metrics=AlertMetrics(
            failure_rate=failure_rate,
            error_count=service.failed_attempts,
            affected_deliveries=service.total_attempts,
            time_range=window,
            threshold=thresholds.service_failure_rate,
            actual_value=failure_rate,
        ),
        context={
            "service_name": name,
            "total_attempts": service.total_attempts,
            "successful_attempts": service.successful_attempts,
            "failed_attempts": service.failed_attempts,
            "average_delivery_time": service.average_delivery_time,
        },
    )


def check_no_deliveries(
    stats: DeliveryStats,
    window_hours: float = 1.0,
) -> Finding | None:
    """Critical when there were attempts but none succeeded."""
    if stats.total_attempts <= 0 or stats.successful_attempts != 0:
        return None

    window = _window_label(window_hours)
    return Finding(
        type=AlertType.NO_DELIVERIES,
        severity=AlertSeverity.CRITICAL,
        title="No Successful Deliveries Detected",
        description=(
            f"No successful deliveries in the last {window} "
            f"despite {stats.total_attempts} attempts"
        ),
        source=AlertSource.DELIVERY_METRICS,
        dedup_key=dedup_key("no_deliveries"),
        affected_services=[ALL_SERVICES],
        metrics=AlertMetrics(
            failure_rate=100.0,
            error_count=stats.failed_attempts,
            affected_deliveries=stats.total_attempts,
            time_range=window,
            threshold=0,
            actual_value=0,
        ),
        context={
            "total_attempts": stats.total_attempts,
            "failed_attempts": stats.failed_attempts,
            "time_range": window,
        },
    )


def evaluate_delivery(
    snapshot: DeliveryMetrics,
    thresholds: ThresholdsConfig,
) -> list[Finding]:
    """Apply the overall, per-service and no-delivery rules to a snapshot."""
    window = snapshot.time_range_hours
    findings: list[Finding] = []

    overall = check_overall_failure_rate(snapshot.delivery, thresholds, window)
    if overall is not None:
        findings.append(overall)

    for service in snapshot.services:
        finding = check_service_failure_rate(service, thresholds, window)
        if finding is not None:
            findings.append(finding)

    no_deliveries = check_no_deliveries(snapshot.delivery, window)
    if no_deliveries is not None:
        findings.append(no_deliveries)

    return findings


# ── Error-count rule ────────────────────────────────────────────


def evaluate_failures(
    analysis: FailureAnalysis,
    thresholds: ThresholdsConfig,
) -> list[Finding]:
    """Critical finding per breakdown entry at or above critical_error_count."""
    window = _window_label(analysis.time_range_hours)
    findings: list[Finding] = []
    for entry in analysis.breakdown:
        if entry.count < thresholds.critical_error_count:
            continue
        name = entry.service
        findings.append(Finding(
            type=AlertType.HIGH_ERROR_COUNT,
            severity=AlertSeverity.CRITICAL,
            title=f"High Error Count for {name}",
            description=f"{name} has generated {entry.count} errors in the last {window}",
            source=AlertSource.DELIVERY_METRICS,
            dedup_key=dedup_key("high_errors", name),
            affected_services=[name],
            metrics=AlertMetrics(
                error_count=entry.count,
                time_range=window,
                threshold=thresholds.critical_error_count,
                actual_value=entry.count,
            ),
            context={
                "service_name": name,
                "error_type": entry.error_type,
                "percentage": entry.percentage,
                "examples": entry.examples,
            },
        ))
    return findings


# ── Service-health rules ────────────────────────────────────────


def evaluate_service_health(
    configs: list[ServiceConfiguration],
    thresholds: ThresholdsConfig,
    now: float | None = None,
) -> list[Finding]:
    """Stale validation, invalid configuration and healthy-service count."""
    now = now if now is not None else time.time()
    stale_after = thresholds.stale_validation_minutes * 60
    findings: list[Finding] = []
    active = 0

    for config in configs:
        if not config.is_enabled:
            continue
        name = config.service_name
        if config.is_active:
            active += 1

        age = config.validation_age(now)
        if age is not None and age > stale_after:
            findings.append(Finding(
                type=AlertType.CONFIGURATION_INVALID,
                severity=AlertSeverity.WARNING,
                title=f"Stale Service Validation for {name}",
                description=f"{name} validation is {round(age / 60)} minutes old",
                source=AlertSource.SERVICE_MONITOR,
                dedup_key=dedup_key("stale_validation", name),
                affected_services=[name],
                context={
                    "service_name": name,
                    "last_validated": config.last_validated,
                    "validation_age": age,
                    "validation_status": config.validation_status.value,
                },
            ))

        if config.validation_status == ValidationStatus.INVALID:
            findings.append(Finding(
                type=AlertType.CONFIGURATION_INVALID,
                severity=AlertSeverity.CRITICAL,
                title=f"Invalid Configuration for {name}",
                description=f"{name} has invalid configuration and cannot process deliveries",
                source=AlertSource.SERVICE_MONITOR,
                dedup_key=dedup_key("invalid_config", name),
                affected_services=[name],
                context={
                    "service_name": name,
                    "validation_status": config.validation_status.value,
                    "last_error": config.last_error,
                    "error_count": config.error_count,
                },
            ))

    if active < thresholds.min_active_services:
        findings.append(Finding(
            type=AlertType.SYSTEM_DEGRADATION,
            severity=AlertSeverity.CRITICAL,
            title="Insufficient Active Services",
            description=f"Only {active} service(s) are currently active and healthy",
            source=AlertSource.SYSTEM_HEALTH,
            dedup_key=dedup_key("insufficient_services"),
            affected_services=[ALL_SERVICES],
            context={
                "active_services": active,
                "total_services": len(configs),
                "threshold": thresholds.min_active_services,
            },
        ))

    return findings


def metrics_failure_finding(error: Exception | str) -> Finding:
    """Warning raised when metrics collection itself is failing."""
    message = str(error)
    return Finding(
        type=AlertType.SYSTEM_DEGRADATION,
        severity=AlertSeverity.WARNING,
        title="Metrics Collection Error",
        description=f"Failed to collect delivery metrics: {message}",
        source=AlertSource.DELIVERY_METRICS,
        dedup_key=dedup_key("metrics_collection"),
        affected_services=[ALL_SERVICES],
        context={"error": message},
    )


def evaluate(
    snapshot: DeliveryMetrics,
    analysis: FailureAnalysis | None,
    configs: list[ServiceConfiguration] | None,
    thresholds: ThresholdsConfig,
    now: float | None = None,
) -> list[Finding]:
    """Run every rule against the given inputs and return all findings."""
    findings = evaluate_delivery(snapshot, thresholds)
    if analysis is not None:
        findings.extend(evaluate_failures(analysis, thresholds))
    if configs is not None:
        findings.extend(evaluate_service_health(configs, thresholds, now))
    return findings

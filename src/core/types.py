"""Shared domain types — delivery metrics snapshots and service configuration."""

from __future__ import annotations

import time
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
    """Accepts both snake_case names and the camelCase keys used on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Delivery metrics ────────────────────────────────────────────


class DeliveryStats(_WireModel):
    """Aggregate delivery counters for a lookback window."""

    total_attempts: int = 0
    successful_attempts: int = 0
    failed_attempts: int = 0
    average_delivery_time: float = 0.0

    @property
    def failure_rate(self) -> float | None:
        """Failed attempts as a percentage, or None with no attempts."""
        if self.total_attempts <= 0:
            return None
        return (self.failed_attempts / self.total_attempts) * 100.0


class ServiceStats(_WireModel):
    """Per-service delivery counters for a lookback window."""

    service_name: str
    total_attempts: int = 0
    successful_attempts: int = 0
    failed_attempts: int = 0
    success_rate: float = 100.0
    average_delivery_time: float = 0.0

    @property
    def failure_rate(self) -> float:
        return 100.0 - self.success_rate


class DeliveryMetrics(_WireModel):
    """Point-in-time metrics snapshot from the metrics provider."""

    time_range_hours: float = 1.0
    delivery: DeliveryStats = Field(default_factory=DeliveryStats)
    services: list[ServiceStats] = Field(default_factory=list)
    generated_at: float = Field(default_factory=time.time)


class FailureBreakdown(_WireModel):
    """Error count for one (service, error type) pair."""

    service: str
    error_type: str = "unknown"
    count: int = 0
    percentage: float = 0.0
    examples: list[Any] = Field(default_factory=list)


class FailureAnalysis(_WireModel):
    """Failure breakdown for a lookback window."""

    time_range_hours: float = 1.0
    breakdown: list[FailureBreakdown] = Field(default_factory=list)


# ── Service configuration ───────────────────────────────────────


class HealthStatus(StrEnum):
    """Operational health of a delivery service."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    DOWN = "down"
    UNKNOWN = "unknown"


class ValidationStatus(StrEnum):
    """Result of the last configuration validation."""

    VALID = "valid"
    INVALID = "invalid"
    PENDING = "pending"
    UNKNOWN = "unknown"


class Capability(StrEnum):
    SMS = "sms"
    EMAIL = "email"


class ServiceMetrics(_WireModel):
    """Rolling request counters kept on a service configuration."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    average_response_time: float = 0.0
    last_used: float | None = None


class ServiceConfiguration(_WireModel):
    """Operational record for one delivery service (read-only here)."""

    service_name: str
    is_enabled: bool = True
    is_primary: bool = False
    priority: int = 1
    capabilities: list[Capability] = Field(default_factory=list)
    health_status: HealthStatus = HealthStatus.UNKNOWN
    validation_status: ValidationStatus = ValidationStatus.UNKNOWN
    last_validated: float | None = None
    error_count: int = 0
    last_error: str | None = None
    metrics: ServiceMetrics = Field(default_factory=ServiceMetrics)

    @property
    def is_active(self) -> bool:
        """Enabled and currently healthy."""
        return self.is_enabled and self.health_status == HealthStatus.HEALTHY

    def validation_age(self, now: float | None = None) -> float | None:
        """Seconds since the last validation, or None if never validated."""
        if self.last_validated is None:
            return None
        return (now if now is not None else time.time()) - self.last_validated

"""Core module — config, metric types, logging."""

from src.core.config import Settings, get_settings, load_settings, reset_settings
from src.core.logging import audit_logger, setup_logging
from src.core.types import (
    DeliveryMetrics,
    DeliveryStats,
    FailureAnalysis,
    FailureBreakdown,
    HealthStatus,
    ServiceConfiguration,
    ServiceStats,
    ValidationStatus,
)

__all__ = [
    "DeliveryMetrics",
    "DeliveryStats",
    "FailureAnalysis",
    "FailureBreakdown",
    "HealthStatus",
    "ServiceConfiguration",
    "ServiceStats",
    "Settings",
    "ValidationStatus",
    "audit_logger",
    "get_settings",
    "load_settings",
    "reset_settings",
    "setup_logging",
]

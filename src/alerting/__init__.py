"""Alert evaluation, storage and lifecycle subsystem.

Only the leaf modules are re-exported here; import the lifecycle manager,
scheduler, service and factory from their own modules.
"""

from src.alerting.cooldown import CooldownTable
from src.alerting.evaluator import evaluate, evaluate_delivery, evaluate_service_health
from src.alerting.exceptions import (
    AlertingError,
    AlertNotFoundError,
    AlertStoreError,
    InvalidTransitionError,
    MetricsUnavailableError,
)
from src.alerting.providers import (
    HttpMetricsProvider,
    MetricsProvider,
    ServiceConfigProvider,
    StaticMetricsProvider,
    StaticServiceConfigProvider,
)
from src.alerting.store import AlertFilter, AlertStore, InMemoryAlertStore
from src.alerting.types import (
    Alert,
    AlertSeverity,
    AlertSource,
    AlertStatus,
    AlertType,
    Finding,
    OperationResult,
)

__all__ = [
    "Alert",
    "AlertFilter",
    "AlertNotFoundError",
    "AlertSeverity",
    "AlertSource",
    "AlertStatus",
    "AlertStore",
    "AlertStoreError",
    "AlertType",
    "AlertingError",
    "CooldownTable",
    "Finding",
    "HttpMetricsProvider",
    "InMemoryAlertStore",
    "InvalidTransitionError",
    "MetricsProvider",
    "MetricsUnavailableError",
    "OperationResult",
    "ServiceConfigProvider",
    "StaticMetricsProvider",
    "StaticServiceConfigProvider",
    "evaluate",
    "evaluate_delivery",
    "evaluate_service_health",
]

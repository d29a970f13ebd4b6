"""Alerting exceptions."""

from __future__ import annotations


class AlertingError(Exception):
    """Base exception for alerting errors."""


class AlertNotFoundError(AlertingError):
    """No alert exists with the requested alert id."""

    def __init__(self, alert_id: str) -> None:
        super().__init__(f"Alert not found: {alert_id}")
        self.alert_id = alert_id


class InvalidTransitionError(AlertingError):
    """The requested lifecycle transition is not allowed from the current state."""


class AlertStoreError(AlertingError):
    """The alert store failed to read or write."""


class MetricsUnavailableError(AlertingError):
    """The metrics provider could not produce a snapshot."""

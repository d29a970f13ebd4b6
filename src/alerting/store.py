"""Alert store contract and an in-memory implementation.

The store is the single source of truth for alert state.  Callers always
receive copies; mutations go through :meth:`AlertStore.update`, which
applies ``set`` / ``push`` field changes atomically.
"""

from __future__ import annotations

import abc
import asyncio
import time
from collections import defaultdict
from typing import Any

import structlog
from pydantic import BaseModel, ValidationError

from src.alerting.exceptions import AlertNotFoundError, AlertStoreError
from src.alerting.types import (
    OPEN_STATUSES,
    Alert,
    AlertMetricsBucket,
    AlertSeverity,
    AlertStatus,
    AlertType,
)

logger = structlog.get_logger(__name__)

# Sort rank so critical alerts list first.
SEVERITY_RANK: dict[AlertSeverity, int] = {
    AlertSeverity.CRITICAL: 0,
    AlertSeverity.WARNING: 1,
    AlertSeverity.INFO: 2,
}


class AlertFilter(BaseModel):
    """Field filter understood by every store implementation.

    Unset fields match everything.  ``services`` matches alerts whose
    affected services overlap the given list.
    """

    alert_id: str | None = None
    type: AlertType | None = None
    severity: AlertSeverity | None = None
    severities: set[AlertSeverity] | None = None
    statuses: set[AlertStatus] | None = None
    services: list[str] | None = None
    created_after: float | None = None
    created_before: float | None = None
    max_escalation_level: int | None = None

    def matches(self, alert: Alert) -> bool:
        if self.alert_id is not None and alert.alert_id != self.alert_id:
            return False
        if self.type is not None and alert.type != self.type:
            return False
        if self.severity is not None and alert.severity != self.severity:
            return False
        if self.severities is not None and alert.severity not in self.severities:
            return False
        if self.statuses is not None and alert.status not in self.statuses:
            return False
        if self.services is not None and not alert.overlaps(self.services):
            return False
        if self.created_after is not None and alert.created_at < self.created_after:
            return False
        if self.created_before is not None and alert.created_at > self.created_before:
            return False
        if (
            self.max_escalation_level is not None
            and alert.escalation_level >= self.max_escalation_level
        ):
            return False
        return True


class AlertStore(abc.ABC):
    """Persistence contract for alerts."""

    @abc.abstractmethod
    async def create(self, alert: Alert) -> Alert:
        """Insert a new alert. Raises AlertStoreError on a duplicate alert id."""

    @abc.abstractmethod
    async def find_one(self, flt: AlertFilter) -> Alert | None:
        """Return the first matching alert (newest first), or None."""

    @abc.abstractmethod
    async def find_many(
        self,
        flt: AlertFilter,
        limit: int | None = None,
    ) -> list[Alert]:
        """Return matching alerts, newest first."""

    @abc.abstractmethod
    async def update(
        self,
        alert_id: str,
        set_fields: dict[str, Any] | None = None,
        push: dict[str, list[Any]] | None = None,
    ) -> Alert:
        """Atomically set fields and append to list fields; returns the result."""

    # ── Queries built on the primitives ─────────────────────────

    async def get(self, alert_id: str) -> Alert | None:
        return await self.find_one(AlertFilter(alert_id=alert_id))

    async def get_active_alerts(
        self,
        severity: AlertSeverity | None = None,
    ) -> list[Alert]:
        """Open alerts, most severe first, then newest first."""
        alerts = await self.find_many(
            AlertFilter(statuses=set(OPEN_STATUSES), severity=severity),
        )
        return sorted(alerts, key=lambda a: (SEVERITY_RANK[a.severity], -a.created_at))

    async def get_alerts_by_type(
        self,
        alert_type: AlertType,
        hours: float = 24.0,
        now: float | None = None,
    ) -> list[Alert]:
        now = now if now is not None else time.time()
        return await self.find_many(
            AlertFilter(type=alert_type, created_after=now - hours * 3600),
        )

    async def get_escalation_candidates(
        self,
        max_age_minutes: float = 30.0,
        max_level: int = 3,
        now: float | None = None,
    ) -> list[Alert]:
        """Open alerts of any severity older than *max_age_minutes*, below *max_level*."""
        now = now if now is not None else time.time()
        alerts = await self.find_many(AlertFilter(
            statuses=set(OPEN_STATUSES),
            created_before=now - max_age_minutes * 60,
            max_escalation_level=max_level,
        ))
        return sorted(alerts, key=lambda a: (SEVERITY_RANK[a.severity], a.created_at))

    async def get_alert_metrics(
        self,
        hours: float = 24.0,
        now: float | None = None,
    ) -> list[AlertMetricsBucket]:
        """Alert counts grouped by severity and status, with mean resolution time."""
        now = now if now is not None else time.time()
        alerts = await self.find_many(AlertFilter(created_after=now - hours * 3600))

        groups: dict[tuple[AlertSeverity, AlertStatus], list[Alert]] = defaultdict(list)
        for alert in alerts:
            groups[(alert.severity, alert.status)].append(alert)

        buckets: list[AlertMetricsBucket] = []
        for (severity, status), members in sorted(groups.items()):
            times = [
                a.resolution_time for a in members
                if a.status == AlertStatus.RESOLVED and a.resolution_time is not None
            ]
            buckets.append(AlertMetricsBucket(
                severity=severity,
                status=status,
                count=len(members),
                avg_resolution_time=sum(times) / len(times) if times else None,
            ))
        return buckets

    async def recent(self, limit: int = 10) -> list[Alert]:
        return await self.find_many(AlertFilter(), limit=limit)


class InMemoryAlertStore(AlertStore):
    """Process-local store; every read returns a deep copy."""

    def __init__(self) -> None:
        self._alerts: dict[str, Alert] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._alerts)

    async def create(self, alert: Alert) -> Alert:
        async with self._lock:
            if alert.alert_id in self._alerts:
                raise AlertStoreError(f"Duplicate alert id: {alert.alert_id}")
            stored = alert.model_copy(deep=True)
            self._alerts[stored.alert_id] = stored
            return stored.model_copy(deep=True)

    async def find_one(self, flt: AlertFilter) -> Alert | None:
        found = await self.find_many(flt, limit=1)
        return found[0] if found else None

    async def find_many(
        self,
        flt: AlertFilter,
        limit: int | None = None,
    ) -> list[Alert]:
        async with self._lock:
            matched = [a for a in self._alerts.values() if flt.matches(a)]
        matched.sort(key=lambda a: a.created_at, reverse=True)
        if limit is not None:
            matched = matched[:limit]
        return [a.model_copy(deep=True) for a in matched]

    async def update(
        self,
        alert_id: str,
        set_fields: dict[str, Any] | None = None,
        push: dict[str, list[Any]] | None = None,
    ) -> Alert:
        async with self._lock:
            current = self._alerts.get(alert_id)
            if current is None:
                raise AlertNotFoundError(alert_id)

            data = current.model_dump()
            for key, value in (set_fields or {}).items():
                data[key] = _dump(value)
            for key, items in (push or {}).items():
                data[key] = list(data.get(key) or []) + [_dump(i) for i in items]
            if "updated_at" not in (set_fields or {}):
                data["updated_at"] = time.time()

            try:
                updated = Alert.model_validate(data)
            except ValidationError as exc:
                raise AlertStoreError(f"Invalid update for {alert_id}: {exc}") from exc

            self._alerts[alert_id] = updated
            return updated.model_copy(deep=True)


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, list):
        return [_dump(v) for v in value]
    return value

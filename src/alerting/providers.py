"""Metrics and service-configuration providers consumed by the alerting core."""

from __future__ import annotations

import abc
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from src.alerting.exceptions import MetricsUnavailableError
from src.core.config import MetricsApiConfig
from src.core.types import (
    DeliveryMetrics,
    FailureAnalysis,
    ServiceConfiguration,
)

logger = structlog.get_logger(__name__)


class MetricsProvider(abc.ABC):
    """Point-in-time delivery aggregates for a lookback window."""

    @abc.abstractmethod
    async def get_delivery_metrics(self, window_hours: float) -> DeliveryMetrics:
        """Return delivery and per-service counters. Raises MetricsUnavailableError."""

    @abc.abstractmethod
    async def get_failure_analysis(self, window_hours: float) -> FailureAnalysis:
        """Return the error breakdown. Raises MetricsUnavailableError."""

    async def close(self) -> None:
        """Release resources (HTTP clients, etc.)."""


class ServiceConfigProvider(abc.ABC):
    """Read-only access to delivery service configuration records."""

    @abc.abstractmethod
    async def list_services(self) -> list[ServiceConfiguration]:
        """Return every configured service."""

    async def get_service(self, service_name: str) -> ServiceConfiguration | None:
        for config in await self.list_services():
            if config.service_name == service_name:
                return config
        return None


class StaticMetricsProvider(MetricsProvider):
    """Serves snapshots set by the caller; used in tests and dry runs.

    Snapshots can be keyed by window so the recovery check (30-minute window)
    can see different numbers than the main check (1-hour window).
    """

    def __init__(
        self,
        delivery: DeliveryMetrics | None = None,
        failures: FailureAnalysis | None = None,
    ) -> None:
        self._delivery: dict[float | None, DeliveryMetrics] = {
            None: delivery or DeliveryMetrics(),
        }
        self._failures = failures or FailureAnalysis()
        self.calls: list[tuple[str, float]] = []

    def set_delivery(
        self,
        metrics: DeliveryMetrics,
        window_hours: float | None = None,
    ) -> None:
        self._delivery[window_hours] = metrics

    def set_failures(self, analysis: FailureAnalysis) -> None:
        self._failures = analysis

    async def get_delivery_metrics(self, window_hours: float) -> DeliveryMetrics:
        self.calls.append(("delivery", window_hours))
        return self._delivery.get(window_hours, self._delivery[None])

    async def get_failure_analysis(self, window_hours: float) -> FailureAnalysis:
        self.calls.append(("failures", window_hours))
        return self._failures


class StaticServiceConfigProvider(ServiceConfigProvider):
    def __init__(self, services: list[ServiceConfiguration] | None = None) -> None:
        self._services = list(services or [])

    def set_services(self, services: list[ServiceConfiguration]) -> None:
        self._services = list(services)

    async def list_services(self) -> list[ServiceConfiguration]:
        return [s.model_copy(deep=True) for s in self._services]


class HttpMetricsProvider(MetricsProvider):
    """Reads the delivery-metrics REST API.

    Usage::

        provider = HttpMetricsProvider(settings.metrics_api)
        metrics = await provider.get_delivery_metrics(1)
        await provider.close()

    Accepts either a bare JSON body or the ``{"success": ..., "data": {...}}``
    envelope.  Per-service rows keyed by ``_id`` are mapped to ``serviceName``.
    """

    def __init__(
        self,
        config: MetricsApiConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._http = client

    def _client(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            headers: dict[str, str] = {"Accept": "application/json"}
            api_key = self._config.api_key.get_secret_value()
            if api_key:
                headers["Authorization"] = f"Bearer {api_key}"
            self._http = httpx.AsyncClient(
                headers=headers,
                timeout=httpx.Timeout(self._config.timeout_secs),
            )
        return self._http

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def get_delivery_metrics(self, window_hours: float) -> DeliveryMetrics:
        body = await self._get_json("", window_hours)
        services = body.get("services")
        if isinstance(services, list):
            body["services"] = [_normalise_service_row(row) for row in services]
        body.setdefault("timeRangeHours", window_hours)
        try:
            return DeliveryMetrics.model_validate(body)
        except ValidationError as exc:
            raise MetricsUnavailableError(f"Malformed delivery metrics: {exc}") from exc

    async def get_failure_analysis(self, window_hours: float) -> FailureAnalysis:
        body = await self._get_json("/failures", window_hours)
        body.setdefault("timeRangeHours", window_hours)
        try:
            return FailureAnalysis.model_validate(body)
        except ValidationError as exc:
            raise MetricsUnavailableError(f"Malformed failure analysis: {exc}") from exc

    async def _get_json(self, path: str, window_hours: float) -> dict[str, Any]:
        url = self._config.base_url.rstrip("/") + path
        try:
            response = await self._client().get(url, params={"timeRange": window_hours})
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise MetricsUnavailableError(
                f"Metrics API returned {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise MetricsUnavailableError(f"Metrics API request failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise MetricsUnavailableError("Metrics API returned invalid JSON") from exc

        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            if body.get("success") is False:
                raise MetricsUnavailableError(
                    f"Metrics API reported failure: {body.get('error', 'unknown')}"
                )
            body = body["data"]
        if not isinstance(body, dict):
            logger.warning("metrics_api_unexpected_body", url=url, kind=type(body).__name__)
            raise MetricsUnavailableError("Metrics API returned an unexpected body")
        return body


def _normalise_service_row(row: Any) -> Any:
    if isinstance(row, dict) and "serviceName" not in row and "_id" in row:
        row = {**row, "serviceName": row["_id"]}
    return row

"""Pydantic settings loaded from YAML configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, SecretStr, field_validator

from src.core.types import ServiceConfiguration

_settings: Settings | None = None

_DEFAULT_CONFIG_PATH = Path("config/settings.yaml")


class ThresholdsConfig(BaseModel):
    """Thresholds that raise alerts."""

    critical_failure_rate: float = 75.0
    warning_failure_rate: float = 50.0
    service_failure_rate: float = 80.0
    service_critical_failure_rate: float = 90.0
    min_service_attempts: int = 5
    critical_error_count: int = 25
    stale_validation_minutes: float = 30.0
    min_active_services: int = 1
    metrics_window_hours: float = 1.0


class ResolutionConfig(BaseModel):
    """Thresholds that auto-resolve alerts.

    Kept separate from ``ThresholdsConfig`` so raise and resolve levels can
    be tuned independently (e.g. a lower resolve rate to avoid flapping).
    """

    failure_rate_below: float = 50.0
    recent_success_window_hours: float = 0.5
    error_count_below: int = 25


class LifecycleConfig(BaseModel):
    """Alert lifecycle policy."""

    cooldown_minutes: float = 15.0
    escalation_age_minutes: float = 30.0
    max_escalation_level: int = 3
    default_suppress_minutes: float = 60.0
    # None disables cleanup entirely.
    retention_days: int | None = None


class ScheduleConfig(BaseModel):
    """Intervals for the periodic tasks, in seconds."""

    metrics_check_secs: float = 300.0
    service_health_secs: float = 120.0
    queue_drain_secs: float = 30.0
    escalation_sweep_secs: float = 600.0
    cleanup_secs: float = 86400.0


class NotificationRuleConfig(BaseModel):
    """Channel set and timing for one severity."""

    channels: list[str]
    immediate: bool = False
    delay_minutes: float = 0.0
    escalation_minutes: float = 60.0
    max_retries: int = 1


def _default_rules() -> dict[str, NotificationRuleConfig]:
    return {
        "critical": NotificationRuleConfig(
            channels=["email", "sms", "chat"],
            immediate=True,
            escalation_minutes=15.0,
            max_retries=3,
        ),
        "warning": NotificationRuleConfig(
            channels=["email", "chat"],
            delay_minutes=5.0,
            escalation_minutes=60.0,
            max_retries=2,
        ),
        "info": NotificationRuleConfig(
            channels=["email"],
            delay_minutes=15.0,
            escalation_minutes=240.0,
            max_retries=1,
        ),
    }


class NotificationsConfig(BaseModel):
    """Severity routing table and retry policy."""

    retry_delay_minutes: float = 5.0
    rules: dict[str, NotificationRuleConfig] = Field(default_factory=_default_rules)

    @field_validator("rules")
    @classmethod
    def _merge_default_rules(
        cls, v: dict[str, NotificationRuleConfig]
    ) -> dict[str, NotificationRuleConfig]:
        """Overlay configured severities on the defaults instead of replacing them."""
        return {**_default_rules(), **v}


class ContactsConfig(BaseModel):
    """Initial admin recipient lists per channel."""

    email: list[str] = ["admin@example.com", "support@example.com"]
    sms: list[str] = ["+1234567890"]
    chat_webhook: list[str] = []
    webhook: list[str] = []


class SmtpConfig(BaseModel):
    """Outbound SMTP server for email alerts."""

    enabled: bool = False
    host: str = "localhost"
    port: int = 587
    username: str = ""
    password: SecretStr = SecretStr("")
    use_tls: bool = True
    from_address: str = "alerts@example.com"
    timeout_secs: float = 10.0


class SmsGatewayConfig(BaseModel):
    """HTTP SMS gateway used for SMS alerts."""

    enabled: bool = False
    url: str = ""
    api_key: SecretStr = SecretStr("")
    sender_id: str = "ALERTS"
    timeout_secs: float = 10.0


class MetricsApiConfig(BaseModel):
    """Delivery metrics HTTP API."""

    base_url: str = "http://localhost:5000/api/delivery-metrics"
    api_key: SecretStr = SecretStr("")
    timeout_secs: float = 10.0


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"


class Settings(BaseModel):
    """Root settings container."""

    thresholds: ThresholdsConfig = ThresholdsConfig()
    resolution: ResolutionConfig = ResolutionConfig()
    lifecycle: LifecycleConfig = LifecycleConfig()
    schedule: ScheduleConfig = ScheduleConfig()
    notifications: NotificationsConfig = NotificationsConfig()
    contacts: ContactsConfig = ContactsConfig()
    smtp: SmtpConfig = SmtpConfig()
    sms_gateway: SmsGatewayConfig = SmsGatewayConfig()
    metrics_api: MetricsApiConfig = MetricsApiConfig()
    logging: LoggingConfig = LoggingConfig()
    services: list[ServiceConfiguration] = []


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from a YAML file and cache globally.

    Args:
        path: Path to YAML config. Defaults to config/settings.yaml.

    Returns:
        Parsed Settings instance.
    """
    global _settings  # noqa: PLW0603

    config_path = Path(path) if path else _DEFAULT_CONFIG_PATH

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f)
            if isinstance(raw, dict):
                data = raw

    _settings = Settings(**data)
    return _settings


def get_settings() -> Settings:
    """Return the cached settings, loading defaults if not yet loaded."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the cached settings (useful for testing)."""
    global _settings  # noqa: PLW0603
    _settings = None

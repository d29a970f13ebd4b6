"""Domain types for notification routing and delivery."""

from __future__ import annotations

import time
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from src.core.config import ContactsConfig, NotificationRuleConfig


class Channel(StrEnum):
    EMAIL = "email"
    SMS = "sms"
    CHAT = "chat"
    WEBHOOK = "webhook"


class NotificationRule(BaseModel):
    """Routing policy for one severity, copied onto each job at enqueue time."""

    channels: list[str]
    immediate: bool = False
    delay_minutes: float = 0.0
    escalation_minutes: float = 60.0
    max_retries: int = 1

    @classmethod
    def from_config(cls, config: NotificationRuleConfig) -> NotificationRule:
        return cls(**config.model_dump())


class NotificationJob(BaseModel):
    """One scheduled attempt to deliver one alert. In-memory only."""

    alert_id: str
    rule: NotificationRule
    attempts: int = 0
    created_at: float = Field(default_factory=time.time)
    scheduled_for: float = Field(default_factory=time.time)

    def is_due(self, now: float) -> bool:
        return self.scheduled_for <= now


class SendResult(BaseModel):
    """Envelope every channel sender returns."""

    success: bool
    provider_message_id: str | None = None
    error: str | None = None


class DeliveryOutcome(BaseModel):
    """Aggregated result of one channel for one job."""

    channel: str
    recipient: str | None = None
    success: bool
    error: str | None = None


class EmailContent(BaseModel):
    subject: str
    html: str
    text: str


class AdminContacts(BaseModel):
    """Recipient lists per channel; replaceable at runtime."""

    email: list[str] = Field(default_factory=list)
    sms: list[str] = Field(default_factory=list)
    chat: list[str] = Field(default_factory=list)
    webhook: list[str] = Field(default_factory=list)

    @classmethod
    def from_config(cls, config: ContactsConfig) -> AdminContacts:
        return cls(
            email=list(config.email),
            sms=list(config.sms),
            chat=list(config.chat_webhook),
            webhook=list(config.webhook),
        )

    def for_channel(self, channel: str) -> list[str]:
        if channel not in type(self).model_fields:
            return []
        return list(getattr(self, channel))

    def merged(self, changes: dict[str, Any]) -> AdminContacts:
        """Return a copy with the given channels' recipient lists replaced."""
        unknown = set(changes) - set(type(self).model_fields)
        if unknown:
            raise ValueError(f"Unknown contact channels: {sorted(unknown)}")
        # Validated, so a bare string is rejected instead of split into characters.
        return type(self).model_validate({**self.model_dump(), **changes})


class ChannelStats(BaseModel):
    total: int = 0
    successful: int = 0
    failed: int = 0


class NotificationStats(BaseModel):
    total_alerts: int = 0
    notifications_sent: int = 0
    successful_notifications: int = 0
    failed_notifications: int = 0
    channel_breakdown: dict[str, ChannelStats] = Field(default_factory=dict)
    queue_size: int = 0

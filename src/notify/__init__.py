"""Notification routing, dispatch and channel senders."""

from src.notify.channels import (
    ChannelSender,
    ChatWebhookSender,
    HttpSmsSender,
    SmtpEmailSender,
    WebhookSender,
)
from src.notify.dispatcher import NotificationDispatcher, NotificationQueue
from src.notify.formatters import (
    render_chat_payload,
    render_email,
    render_sms,
    render_webhook_payload,
)
from src.notify.router import NotificationRouter
from src.notify.types import (
    AdminContacts,
    Channel,
    DeliveryOutcome,
    NotificationJob,
    NotificationRule,
    SendResult,
)

__all__ = [
    "AdminContacts",
    "Channel",
    "ChannelSender",
    "ChatWebhookSender",
    "DeliveryOutcome",
    "HttpSmsSender",
    "NotificationDispatcher",
    "NotificationJob",
    "NotificationQueue",
    "NotificationRouter",
    "NotificationRule",
    "SendResult",
    "SmtpEmailSender",
    "WebhookSender",
    "render_chat_payload",
    "render_email",
    "render_sms",
    "render_webhook_payload",
]

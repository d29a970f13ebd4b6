"""Notification exceptions."""

from __future__ import annotations


class NotificationError(Exception):
    """Base exception for notification delivery errors."""


class UnsupportedChannelError(NotificationError):
    """No sender or renderer is registered for the channel."""

    def __init__(self, channel: str) -> None:
        super().__init__(f"Unsupported channel: {channel}")
        self.channel = channel

"""Channel senders — SMTP email, SMS gateway, chat webhook, generic webhook.

Each sender takes already-rendered content plus one recipient and reports a
``SendResult``.  Senders never raise for delivery problems; failures come
back as ``SendResult(success=False, error=...)``.
"""

from __future__ import annotations

import abc
import asyncio
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import Any

import aiohttp
import structlog

from src.core.config import SmsGatewayConfig, SmtpConfig
from src.notify.types import Channel, EmailContent, SendResult

logger = structlog.get_logger(__name__)

USER_AGENT = "DeliveryAlerting/1.0"


class ChannelSender(abc.ABC):
    """Base class for notification transports."""

    channel: Channel

    @abc.abstractmethod
    async def send(self, recipient: str, content: Any) -> SendResult:
        """Deliver *content* to *recipient*."""

    async def close(self) -> None:
        """Release resources (HTTP sessions, etc.)."""


class _HttpSender(ChannelSender):
    """Shared aiohttp session handling for HTTP-based transports."""

    def __init__(self, timeout_secs: float = 10.0) -> None:
        self._timeout = aiohttp.ClientTimeout(total=timeout_secs)
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                headers={"User-Agent": USER_AGENT},
            )
        return self._session

    async def _post_json(
        self,
        url: str,
        payload: dict[str, Any],
        ok_statuses: tuple[int, ...] = (200, 201, 202, 204),
        headers: dict[str, str] | None = None,
    ) -> SendResult:
        try:
            session = self._get_session()
            async with session.post(url, json=payload, headers=headers) as resp:
                if resp.status in ok_statuses:
                    message_id = None
                    if resp.content_type == "application/json":
                        body = await resp.json()
                        if isinstance(body, dict):
                            raw_id = body.get("id") or body.get("messageId") or body.get("sid")
                            message_id = str(raw_id) if raw_id else None
                    return SendResult(success=True, provider_message_id=message_id)
                body_text = await resp.text()
                logger.warning(
                    "channel_send_failed",
                    channel=self.channel.value,
                    status=resp.status,
                    body=body_text[:200],
                )
                return SendResult(
                    success=False,
                    error=f"HTTP {resp.status}: {resp.reason or 'error'}",
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.warning("channel_send_error", channel=self.channel.value, error=str(exc))
            return SendResult(success=False, error=str(exc) or type(exc).__name__)

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None


class SmtpEmailSender(ChannelSender):
    """Sends multipart HTML/text email through an SMTP relay.

    ``smtplib`` is blocking, so each send runs in the default executor.
    """

    channel = Channel.EMAIL

    def __init__(self, config: SmtpConfig) -> None:
        self._config = config

    async def send(self, recipient: str, content: EmailContent) -> SendResult:
        loop = asyncio.get_running_loop()
        try:
            message_id = await loop.run_in_executor(
                None, self._send_sync, recipient, content,
            )
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("email_send_error", recipient=recipient, error=str(exc))
            return SendResult(success=False, error=str(exc) or type(exc).__name__)
        return SendResult(success=True, provider_message_id=message_id)

    def _send_sync(self, recipient: str, content: EmailContent) -> str:
        cfg = self._config
        msg = MIMEMultipart("alternative")
        msg["Subject"] = content.subject
        msg["From"] = cfg.from_address
        msg["To"] = recipient
        msg["Message-ID"] = make_msgid()
        msg.attach(MIMEText(content.text, "plain"))
        msg.attach(MIMEText(content.html, "html"))

        with smtplib.SMTP(cfg.host, cfg.port, timeout=cfg.timeout_secs) as server:
            if cfg.use_tls:
                server.starttls()
            password = cfg.password.get_secret_value()
            if cfg.username and password:
                server.login(cfg.username, password)
            server.sendmail(cfg.from_address, [recipient], msg.as_string())
        return msg["Message-ID"]


class HttpSmsSender(_HttpSender):
    """Posts SMS messages to an HTTP SMS gateway."""

    channel = Channel.SMS

    def __init__(self, config: SmsGatewayConfig) -> None:
        super().__init__(timeout_secs=config.timeout_secs)
        self._config = config

    async def send(self, recipient: str, content: str) -> SendResult:
        if not self._config.url:
            return SendResult(success=False, error="SMS gateway URL not configured")
        headers: dict[str, str] = {}
        api_key = self._config.api_key.get_secret_value()
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        payload = {
            "to": recipient,
            "from": self._config.sender_id,
            "message": content,
        }
        return await self._post_json(self._config.url, payload, headers=headers)


class ChatWebhookSender(_HttpSender):
    """Posts attachment payloads to a chat incoming-webhook URL (the recipient)."""

    channel = Channel.CHAT

    async def send(self, recipient: str, content: dict[str, Any]) -> SendResult:
        return await self._post_json(recipient, content, ok_statuses=(200, 204))


class WebhookSender(_HttpSender):
    """Posts the alert document to a generic webhook URL (the recipient)."""

    channel = Channel.WEBHOOK

    async def send(self, recipient: str, content: dict[str, Any]) -> SendResult:
        return await self._post_json(recipient, content)

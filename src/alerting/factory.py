"""Convenience factory for wiring the alerting stack."""

from __future__ import annotations

from dataclasses import dataclass

from src.alerting.lifecycle import AlertLifecycleManager
from src.alerting.providers import (
    HttpMetricsProvider,
    MetricsProvider,
    ServiceConfigProvider,
    StaticServiceConfigProvider,
)
from src.alerting.scheduler import AlertingScheduler
from src.alerting.service import AlertingService
from src.alerting.store import AlertStore, InMemoryAlertStore
from src.core.config import Settings
from src.notify.channels import (
    ChannelSender,
    ChatWebhookSender,
    HttpSmsSender,
    SmtpEmailSender,
    WebhookSender,
)
from src.notify.dispatcher import NotificationDispatcher
from src.notify.router import NotificationRouter
from src.notify.types import AdminContacts, Channel


@dataclass
class AlertingStack:
    """Every wired component, so callers can start, inspect and close them."""

    store: AlertStore
    metrics_provider: MetricsProvider
    service_provider: ServiceConfigProvider
    dispatcher: NotificationDispatcher
    router: NotificationRouter
    lifecycle: AlertLifecycleManager
    scheduler: AlertingScheduler
    service: AlertingService

    async def start(self) -> None:
        await self.scheduler.start()

    async def close(self) -> None:
        await self.scheduler.stop()
        await self.dispatcher.close()
        await self.metrics_provider.close()


def build_senders(settings: Settings) -> dict[str, ChannelSender]:
    """Senders for every transport that is configured.

    Email and SMS need an enabled transport; chat and webhook senders use
    the recipient URL directly and are always available.
    """
    senders: dict[str, ChannelSender] = {
        Channel.CHAT: ChatWebhookSender(),
        Channel.WEBHOOK: WebhookSender(),
    }
    if settings.smtp.enabled:
        senders[Channel.EMAIL] = SmtpEmailSender(settings.smtp)
    if settings.sms_gateway.enabled:
        senders[Channel.SMS] = HttpSmsSender(settings.sms_gateway)
    return senders


def create_alerting_stack(
    settings: Settings,
    metrics_provider: MetricsProvider | None = None,
    service_provider: ServiceConfigProvider | None = None,
    store: AlertStore | None = None,
    senders: dict[str, ChannelSender] | None = None,
) -> AlertingStack:
    """Build the store, dispatcher, router, lifecycle manager and scheduler from config."""
    if store is None:
        store = InMemoryAlertStore()
    metrics_provider = metrics_provider or HttpMetricsProvider(settings.metrics_api)
    service_provider = service_provider or StaticServiceConfigProvider(settings.services)

    dispatcher = NotificationDispatcher(
        store=store,
        senders=senders if senders is not None else build_senders(settings),
        contacts=AdminContacts.from_config(settings.contacts),
        retry_delay_minutes=settings.notifications.retry_delay_minutes,
        interval_secs=settings.schedule.queue_drain_secs,
    )
    router = NotificationRouter(dispatcher, settings.notifications)
    lifecycle = AlertLifecycleManager(
        store=store,
        metrics_provider=metrics_provider,
        service_provider=service_provider,
        router=router,
        thresholds=settings.thresholds,
        resolution=settings.resolution,
        lifecycle=settings.lifecycle,
    )
    scheduler = AlertingScheduler(lifecycle, dispatcher, settings.schedule)
    service = AlertingService(lifecycle, dispatcher, router, scheduler)

    return AlertingStack(
        store=store,
        metrics_provider=metrics_provider,
        service_provider=service_provider,
        dispatcher=dispatcher,
        router=router,
        lifecycle=lifecycle,
        scheduler=scheduler,
        service=service,
    )

"""Notification publishers: webhook over HTTP, or log-only when none is configured."""

import logging

import httpx

from stayledger.collaborators.base import NotificationPublisher, event_envelope
from stayledger.config import settings
from stayledger.domain.events import DomainEvent

logger = logging.getLogger(__name__)


class WebhookNotificationPublisher(NotificationPublisher):
    """POSTs each event to the notification service's webhook."""

    def __init__(self, url: str, timeout: float | None = None,
                 client: httpx.AsyncClient | None = None) -> None:
        self.url = url
        self.timeout = timeout or settings.collaborator_timeout_seconds
        self._http_client = client

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Lazy-load HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def close(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def publish(self, event: DomainEvent) -> None:
        response = await self.http_client.post(self.url, json=event_envelope(event))
        response.raise_for_status()


class LoggingNotificationPublisher(NotificationPublisher):
    async def publish(self, event: DomainEvent) -> None:
        logger.info(f"EVENT {event.event_type}: {event.to_payload()}")


def build_publisher() -> NotificationPublisher:
    if settings.notification_webhook_url:
        return WebhookNotificationPublisher(settings.notification_webhook_url)
    return LoggingNotificationPublisher()

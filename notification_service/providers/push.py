import logging

import httpx

from ..config import PushSettings
from ..formatter import FormattedNotification
from ..models import NotificationType
from .base import DeliveryResult, Provider

logger = logging.getLogger(__name__)


class PushProvider(Provider):
    """Sends push notifications to a device token over an FCM-style HTTP API."""

    type = NotificationType.PUSH

    def __init__(self, settings: PushSettings, breaker=None, client: httpx.AsyncClient | None = None):
        super().__init__(breaker)
        self.settings = settings
        self._client = client

    def is_configured(self) -> bool:
        return bool(self.settings.api_url and self.settings.server_key)

    def initialize(self) -> bool:
        if super().initialize() and self._client is None:
            self._client = httpx.AsyncClient(timeout=10.0)
        return self.enabled

    async def deliver(self, notification: FormattedNotification) -> DeliveryResult:
        payload = {
            "to": notification.channel,
            "notification": {
                "title": notification.subject or "",
                "body": notification.body,
            },
            "data": notification.metadata,
        }
        resp = await self._client.post(
            self.settings.api_url,
            json=payload,
            headers={"Authorization": f"key={self.settings.server_key}"},
        )
        if resp.is_success:
            logger.info(f"✅ Push sent to device {notification.channel[:12]}")
            return DeliveryResult(True, f"status {resp.status_code}")

        logger.error(f"❌ Push service responded with status {resp.status_code}: {resp.text}")
        return DeliveryResult(False, f"status {resp.status_code}")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()

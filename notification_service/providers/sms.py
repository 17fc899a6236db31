import logging

import httpx

from ..config import SmsSettings
from ..formatter import FormattedNotification
from ..models import NotificationType
from .base import DeliveryResult, Provider

logger = logging.getLogger(__name__)


class SmsProvider(Provider):
    """Sends text messages through a Twilio-style HTTP gateway."""

    type = NotificationType.SMS

    def __init__(self, settings: SmsSettings, breaker=None, client: httpx.AsyncClient | None = None):
        super().__init__(breaker)
        self.settings = settings
        self._client = client

    def is_configured(self) -> bool:
        s = self.settings
        return bool(s.api_url and s.account_sid and s.auth_token and s.from_number)

    def initialize(self) -> bool:
        if super().initialize() and self._client is None:
            self._client = httpx.AsyncClient(timeout=10.0)
        return self.enabled

    async def deliver(self, notification: FormattedNotification) -> DeliveryResult:
        # SMS ignores the subject
        resp = await self._client.post(
            self.settings.api_url,
            data={
                "To": notification.channel,
                "From": self.settings.from_number,
                "Body": notification.body,
            },
            auth=(self.settings.account_sid, self.settings.auth_token),
        )
        if resp.is_success:
            logger.info(f"✅ SMS sent to {notification.channel}")
            return DeliveryResult(True, f"status {resp.status_code}")

        logger.error(f"❌ SMS gateway responded with status {resp.status_code}: {resp.text}")
        return DeliveryResult(False, f"status {resp.status_code}")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()

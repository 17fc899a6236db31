import logging
from email.message import EmailMessage

import aiosmtplib

from ..config import SmtpSettings
from ..formatter import FormattedNotification
from ..models import NotificationType
from .base import DeliveryResult, Provider

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "Notification"


class EmailProvider(Provider):
    type = NotificationType.EMAIL

    def __init__(self, settings: SmtpSettings, breaker=None):
        super().__init__(breaker)
        self.settings = settings

    def is_configured(self) -> bool:
        s = self.settings
        return bool(s.host and s.user and s.password)

    async def deliver(self, notification: FormattedNotification) -> DeliveryResult:
        message = EmailMessage()
        message["From"] = self.settings.sender or self.settings.user
        message["To"] = notification.channel
        message["Subject"] = notification.subject or DEFAULT_SUBJECT
        message.set_content(notification.body)

        await aiosmtplib.send(
            message,
            hostname=self.settings.host,
            port=self.settings.port,
            start_tls=True,
            username=self.settings.user,
            password=self.settings.password,
        )
        logger.info(f"✅ Email sent to {notification.channel}")
        return DeliveryResult(True, "sent")

import asyncio
import logging
from typing import Mapping

from .errors import BrokerConnectionError, ProviderError, ValidationError
from .formatter import format_notification
from .models import NotificationType, decode_envelope
from .providers import Provider
from .routing import queues_for

logger = logging.getLogger(__name__)


class ChannelConsumer:
    """Consumes one channel's queues and hands each message to its provider.

    Each message ends either acknowledged (the provider accepted it) or
    rejected without requeue. Provider failures are retried in-process with
    exponential backoff before the final reject; malformed messages and
    disabled providers are rejected straight away.
    """

    def __init__(self, notification_type, provider: Provider, broker, retry_attempts=3, retry_delay=1.0):
        self.type = NotificationType(notification_type)
        self.provider = provider
        self.broker = broker
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay = retry_delay
        self.queue_names = queues_for(self.type)

    async def start(self):
        await self.broker.consume(self.queue_names, self.on_message)
        logger.info(f"📨 {self.type.value} consumer listening on queues: {', '.join(self.queue_names)}")

    async def on_message(self, message):
        try:
            notification = decode_envelope(message.body)
        except ValidationError as e:
            logger.error(f"❌ Rejecting undecodable message on {self.type.value} queue: {e}")
            await message.reject(requeue=False)
            return

        if notification.type is not self.type:
            logger.error(
                f"❌ Rejecting {notification.notification_id}: {notification.type.value} "
                f"message on {self.type.value} queue"
            )
            await message.reject(requeue=False)
            return

        logger.info(f"📩 Received {self.type.value} notification {notification.notification_id}")

        try:
            await self.deliver(format_notification(notification))
        except ProviderError as e:
            logger.error(f"❌ Dropping notification {notification.notification_id}: {e}")
            await message.reject(requeue=False)
            return

        await message.ack()
        logger.info(f"✅ Notification {notification.notification_id} delivered and acknowledged")

    async def deliver(self, formatted):
        """Send through the provider, retrying failures with backoff.

        Raises ``ProviderError`` once every attempt has failed.
        """
        last_error = None
        for attempt in range(1, self.retry_attempts + 1):
            try:
                result = await self.provider.send(formatted)
            except Exception as e:
                last_error = f"{type(e).__name__}: {e}"
            else:
                if result.success:
                    return result
                last_error = result.detail or "provider reported failure"

            if not self.provider.enabled:
                break

            logger.warning(
                f"{self.type.value} attempt {attempt}/{self.retry_attempts} failed for "
                f"{formatted.notification_id}: {last_error}"
            )
            if attempt < self.retry_attempts:
                await asyncio.sleep(self.retry_delay * 2 ** (attempt - 1))

        raise ProviderError(f"{self.type.value} delivery failed: {last_error}")


def build_consumers(broker, providers: Mapping[NotificationType, Provider], settings):
    return [
        ChannelConsumer(
            kind,
            provider,
            broker,
            retry_attempts=settings.provider_max_attempts,
            retry_delay=settings.provider_retry_delay,
        )
        for kind, provider in providers.items()
    ]


async def start_consumers(broker, providers: Mapping[NotificationType, Provider], settings):
    """Bind one consumer per channel; returns the consumers that started.

    A channel that cannot bind is logged and skipped so the others still run.
    """
    started = []
    for consumer in build_consumers(broker, providers, settings):
        try:
            await consumer.start()
        except BrokerConnectionError as e:
            logger.error(f"❌ {consumer.type.value} consumer failed to start: {e}")
            continue
        started.append(consumer)
    return started

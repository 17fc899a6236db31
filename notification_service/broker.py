import asyncio
import logging
from typing import Awaitable, Callable, Iterable

from aio_pika import DeliveryMode, Message, connect_robust
from aio_pika.abc import AbstractIncomingMessage
from aio_pika.exceptions import AMQPError, ChannelInvalidStateError

from .config import Settings
from .errors import BrokerConnectionError, PublishError
from .routing import QUEUE_NAMES

logger = logging.getLogger(__name__)

# A closed channel raises ChannelInvalidStateError, a RuntimeError
BROKER_ERRORS = (AMQPError, ChannelInvalidStateError, OSError, asyncio.TimeoutError)

MessageHandler = Callable[[AbstractIncomingMessage], Awaitable[None]]


class RabbitBroker:
    """Durable queues on RabbitMQ.

    One robust connection is opened at startup and shared: publishing goes
    through a single channel and every consumer gets its own channel on the
    same connection, so prefetch limits apply per channel.
    """

    def __init__(self, url, ssl=False, prefetch_count=1, max_priority=None, queue_names=QUEUE_NAMES):
        self.url = url
        self.ssl = ssl
        self.prefetch_count = prefetch_count
        self.max_priority = max_priority
        self.queue_names = tuple(queue_names)
        self.connection = None
        self._publish_channel = None
        self._consumer_channels = []

    @classmethod
    def from_settings(cls, settings: Settings) -> "RabbitBroker":
        return cls(
            settings.rabbitmq_url,
            ssl=settings.rabbitmq_ssl,
            prefetch_count=settings.prefetch_count,
            max_priority=settings.max_priority,
        )

    @property
    def queue_arguments(self):
        if self.max_priority:
            return {"x-max-priority": self.max_priority}
        return None

    async def connect(self) -> None:
        """Open the shared connection and declare every durable queue."""
        try:
            self.connection = await connect_robust(self.url, ssl=self.ssl)
            self._publish_channel = await self.connection.channel()
            await self.declare_queues()
        except BROKER_ERRORS as e:
            logger.error(f"❌ RabbitMQ connection failed: {e}")
            raise BrokerConnectionError(f"RabbitMQ connection failed: {e}") from e
        logger.info(f"✅ Connected to RabbitMQ, declared {len(self.queue_names)} queues")

    async def declare_queues(self) -> None:
        for name in self.queue_names:
            await self._publish_channel.declare_queue(
                name, durable=True, arguments=self.queue_arguments
            )

    async def publish(self, queue_name: str, body: bytes, priority: int, message_id: str | None = None) -> None:
        if self._publish_channel is None:
            raise PublishError("Broker is not connected", notification_id=message_id)

        message = Message(
            body,
            delivery_mode=DeliveryMode.PERSISTENT,
            priority=priority,
            message_id=message_id,
            content_type="application/json",
        )
        try:
            await self._publish_channel.default_exchange.publish(message, routing_key=queue_name)
        except BROKER_ERRORS as e:
            raise PublishError(f"Publish to {queue_name} failed: {e}", notification_id=message_id) from e

    async def consume(self, queue_names: Iterable[str], handler: MessageHandler) -> None:
        """Start delivering messages from ``queue_names`` to ``handler``."""
        if self.connection is None:
            raise BrokerConnectionError("Broker is not connected")
        queue_names = tuple(queue_names)

        try:
            channel = await self.connection.channel()
            await channel.set_qos(prefetch_count=self.prefetch_count)
            for name in queue_names:
                queue = await channel.declare_queue(
                    name, durable=True, arguments=self.queue_arguments
                )
                await queue.consume(handler)
        except BROKER_ERRORS as e:
            raise BrokerConnectionError(f"Could not consume from {', '.join(queue_names)}: {e}") from e
        self._consumer_channels.append(channel)

    async def close(self) -> None:
        if self.connection is not None:
            await self.connection.close()
            self.connection = None
            self._publish_channel = None
            self._consumer_channels.clear()

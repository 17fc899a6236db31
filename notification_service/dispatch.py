import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Protocol

from .errors import PublishError
from .models import NotificationRequest, encode_envelope
from .routing import priority_weight, route
from .store import NotificationStore

logger = logging.getLogger(__name__)


class QueuePublisher(Protocol):
    async def publish(self, queue_name: str, body: bytes, priority: int, message_id: str | None = None) -> None:
        ...


class DispatchService:
    """Persists a request, then publishes it to its channel queue.

    The record is always written before anything is published. Errors from
    either step reach the caller unchanged: ``StorageError`` means nothing
    was queued, ``PublishError`` means the record exists but is not queued.
    """

    def __init__(self, store: NotificationStore, broker: QueuePublisher):
        self.store = store
        self.broker = broker

    async def dispatch(self, request: NotificationRequest | Mapping[str, Any]) -> str:
        request = NotificationRequest.parse(request)

        notification_id = await self.store.insert(request)
        logger.info(f"Persisted notification {notification_id} for user {request.user_id}")

        if request.scheduled_at is not None and _is_future(request.scheduled_at):
            logger.info(
                f"Notification {notification_id} is scheduled for {request.scheduled_at.isoformat()}; "
                "delivery is not deferred"
            )

        queue_name = route(request.type, request.priority)
        body = encode_envelope(notification_id, request)
        try:
            await self.broker.publish(
                queue_name,
                body,
                priority=priority_weight(request.priority),
                message_id=notification_id,
            )
        except PublishError as e:
            e.notification_id = notification_id
            logger.error(f"❌ Notification {notification_id} persisted but not queued: {e}")
            raise

        logger.info(f"📤 Enqueued notification {notification_id} on {queue_name}")
        return notification_id


def _is_future(moment: datetime) -> bool:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment > datetime.now(timezone.utc)

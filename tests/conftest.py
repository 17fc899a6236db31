"""Shared fakes for the dispatch pipeline tests.

The broker, store and incoming-message fakes implement just enough of the
aio-pika and store interfaces for the dispatch service and channel consumers.
"""

from __future__ import annotations

import asyncio
import uuid

import pytest

from notification_service.errors import PublishError, StorageError
from notification_service.models import NotificationPreferences, NotificationType
from notification_service.providers.base import DeliveryResult, Provider
from notification_service.routing import QUEUE_NAMES


class FakeMessage:
    """Stand-in for ``aio_pika.IncomingMessage``."""

    def __init__(self, body: bytes, priority: int | None = None, message_id: str | None = None):
        self.body = body
        self.priority = priority
        self.message_id = message_id
        self.acked = False
        self.rejected = False
        self.requeue = None
        self.settled = asyncio.Event()

    async def ack(self):
        self.acked = True
        self.settled.set()

    async def reject(self, requeue: bool = False):
        self.rejected = True
        self.requeue = requeue
        self.settled.set()


class InMemoryBroker:
    """Durable-queue fake: FIFO lists per queue name, one handler per queue."""

    def __init__(self, fail_publish: bool = False, events: list | None = None):
        self.queues: dict[str, list[FakeMessage]] = {name: [] for name in QUEUE_NAMES}
        self.handlers = {}
        self.delivered: dict[str, list[FakeMessage]] = {}
        self.fail_publish = fail_publish
        self.events = events if events is not None else []

    async def publish(self, queue_name, body, priority, message_id=None):
        if self.fail_publish:
            raise PublishError("broker unavailable", notification_id=message_id)
        self.events.append(("publish", message_id))
        self.queues[queue_name].append(FakeMessage(body, priority, message_id))

    async def consume(self, queue_names, handler):
        for name in queue_names:
            self.handlers[name] = handler

    def put(self, queue_name: str, body: bytes) -> FakeMessage:
        message = FakeMessage(body)
        self.queues[queue_name].append(message)
        return message

    async def _drain_queue(self, name):
        handler = self.handlers[name]
        while self.queues[name]:
            message = self.queues[name].pop(0)
            self.delivered.setdefault(name, []).append(message)
            await handler(message)

    async def drain(self):
        """Deliver every queued message, each queue on its own task."""
        await asyncio.gather(*(self._drain_queue(name) for name in self.handlers))


class InMemoryStore:
    def __init__(self, fail: bool = False, events: list | None = None):
        self.records = {}
        self.preferences = {}
        self.fail = fail
        self.events = events if events is not None else []

    async def insert(self, request):
        if self.fail:
            raise StorageError("database unavailable")
        notification_id = str(uuid.uuid4())
        self.records[notification_id] = request
        self.events.append(("insert", notification_id))
        return notification_id

    async def lookup_preferences(self, user_id):
        return self.preferences.get(user_id, NotificationPreferences(user_id=user_id))


class RecordingProvider(Provider):
    """Provider whose outcomes are scripted per call.

    Each entry in ``outcomes`` is ``True``/``False`` for a reported result or
    an exception instance to raise; the last entry repeats.
    """

    def __init__(self, notification_type, outcomes=(True,), enabled=True):
        self.type = NotificationType(notification_type)
        super().__init__()
        self.outcomes = list(outcomes)
        self.configured = enabled
        self.sent = []
        self.initialize()

    def is_configured(self):
        return self.configured

    async def deliver(self, notification):
        self.sent.append(notification)
        index = min(len(self.sent), len(self.outcomes)) - 1
        outcome = self.outcomes[index]
        if isinstance(outcome, Exception):
            raise outcome
        return DeliveryResult(outcome, "ok" if outcome else "rejected by transport")


class StalledProvider(RecordingProvider):
    """Never returns from the transport call."""

    async def deliver(self, notification):
        self.sent.append(notification)
        await asyncio.Event().wait()


@pytest.fixture
def events():
    return []


@pytest.fixture
def broker(events):
    return InMemoryBroker(events=events)


@pytest.fixture
def store(events):
    return InMemoryStore(events=events)


@pytest.fixture
def email_request():
    return {
        "userId": "user-1",
        "type": "email",
        "channel": "a@b.com",
        "subject": "Welcome {{name}}",
        "message": "Hi {{name}}",
        "templateData": {"name": "Amina"},
        "priority": "urgent",
    }

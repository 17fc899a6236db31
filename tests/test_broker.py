from unittest.mock import AsyncMock, MagicMock

import pytest
from aio_pika import DeliveryMode
from aio_pika.exceptions import AMQPConnectionError, ChannelInvalidStateError

from notification_service.broker import RabbitBroker
from notification_service.errors import BrokerConnectionError, PublishError
from notification_service.routing import QUEUE_NAMES


def _fake_connection():
    channel = MagicMock()
    channel.declare_queue = AsyncMock(return_value=MagicMock(consume=AsyncMock()))
    channel.set_qos = AsyncMock()
    channel.default_exchange.publish = AsyncMock()
    connection = MagicMock()
    connection.channel = AsyncMock(return_value=channel)
    connection.close = AsyncMock()
    return connection, channel


@pytest.fixture
def fake_connection(monkeypatch):
    connection, channel = _fake_connection()
    monkeypatch.setattr("notification_service.broker.connect_robust", AsyncMock(return_value=connection))
    return connection, channel


async def test_connect_declares_all_durable_queues(fake_connection):
    _, channel = fake_connection
    broker = RabbitBroker("amqp://localhost/")

    await broker.connect()

    declared = [call.args[0] for call in channel.declare_queue.call_args_list]
    assert declared == list(QUEUE_NAMES)
    for call in channel.declare_queue.call_args_list:
        assert call.kwargs["durable"] is True
        assert call.kwargs["arguments"] is None


async def test_max_priority_is_declared_on_queues(fake_connection):
    _, channel = fake_connection
    broker = RabbitBroker("amqp://localhost/", max_priority=10)

    await broker.connect()

    assert channel.declare_queue.call_args.kwargs["arguments"] == {"x-max-priority": 10}


async def test_connection_failure_is_fatal(monkeypatch):
    monkeypatch.setattr(
        "notification_service.broker.connect_robust",
        AsyncMock(side_effect=AMQPConnectionError("refused")),
    )
    broker = RabbitBroker("amqp://localhost/")

    with pytest.raises(BrokerConnectionError):
        await broker.connect()
    assert broker.connection is None


async def test_publish_sends_a_persistent_message(fake_connection):
    _, channel = fake_connection
    broker = RabbitBroker("amqp://localhost/")
    await broker.connect()

    await broker.publish("notifications.sms", b"{}", priority=7, message_id="n-1")

    call = channel.default_exchange.publish.call_args
    message = call.args[0]
    assert call.kwargs["routing_key"] == "notifications.sms"
    assert message.body == b"{}"
    assert message.delivery_mode == DeliveryMode.PERSISTENT
    assert message.priority == 7
    assert message.message_id == "n-1"


async def test_publish_failure_raises_publish_error(fake_connection):
    _, channel = fake_connection
    channel.default_exchange.publish.side_effect = ConnectionResetError("gone")
    broker = RabbitBroker("amqp://localhost/")
    await broker.connect()

    with pytest.raises(PublishError) as exc:
        await broker.publish("notifications.sms", b"{}", priority=5, message_id="n-2")
    assert exc.value.notification_id == "n-2"


async def test_publish_on_a_closed_channel_raises_publish_error(fake_connection):
    _, channel = fake_connection
    channel.default_exchange.publish.side_effect = ChannelInvalidStateError("No active transport in channel")
    broker = RabbitBroker("amqp://localhost/")
    await broker.connect()

    with pytest.raises(PublishError) as exc:
        await broker.publish("notifications.email.urgent", b"{}", priority=10, message_id="n-3")
    assert exc.value.notification_id == "n-3"


async def test_publish_before_connect_fails():
    with pytest.raises(PublishError):
        await RabbitBroker("amqp://localhost/").publish("notifications.sms", b"{}", priority=5)


async def test_consume_opens_a_channel_per_consumer(fake_connection):
    connection, channel = fake_connection
    broker = RabbitBroker("amqp://localhost/", prefetch_count=1)
    await broker.connect()
    handler = AsyncMock()

    await broker.consume(("notifications.email", "notifications.email.urgent"), handler)

    assert connection.channel.await_count == 2
    channel.set_qos.assert_awaited_once_with(prefetch_count=1)
    queue = channel.declare_queue.return_value
    assert queue.consume.await_count == 2
    queue.consume.assert_awaited_with(handler)


async def test_consume_requires_connection():
    with pytest.raises(BrokerConnectionError):
        await RabbitBroker("amqp://localhost/").consume(("notifications.sms",), AsyncMock())


async def test_consume_on_a_closed_channel_raises_connection_error(fake_connection):
    _, channel = fake_connection
    broker = RabbitBroker("amqp://localhost/")
    await broker.connect()
    channel.set_qos.side_effect = ChannelInvalidStateError("Channel closed by RPC timeout")

    with pytest.raises(BrokerConnectionError):
        await broker.consume(("notifications.sms", "notifications.sms.urgent"), AsyncMock())

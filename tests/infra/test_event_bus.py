# tests/infra/test_event_bus.py
"""
Тесты шины событий RabbitMQ.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from ev_platform.infra.event_bus import EventBus
from ev_platform.shared.events.base import IntegrationEvent


class FakeProcess:
    """Имитирует message.process(): фиксирует, было ли исключение."""

    def __init__(self) -> None:
        self.rejected = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.rejected = exc_type is not None
        return False


def make_message(body: bytes) -> MagicMock:
    message = MagicMock()
    message.body = body
    message.message_id = "msg-1"
    message.process = MagicMock(return_value=FakeProcess())
    return message


@pytest.fixture
def event_bus() -> EventBus:
    EventBus._instance = None
    bus = EventBus()
    yield bus
    EventBus._instance = None


@pytest.fixture
def connected_bus(event_bus: EventBus) -> EventBus:
    connection = MagicMock()
    connection.is_closed = False
    event_bus._connection = connection
    event_bus._channel = AsyncMock()
    event_bus._exchange = AsyncMock()
    return event_bus


class TestPublish:
    """Тесты публикации."""

    @pytest.mark.asyncio
    async def test_publish_without_connection(self, event_bus: EventBus) -> None:
        assert await event_bus.publish(IntegrationEvent(type="city.created")) is False

    @pytest.mark.asyncio
    async def test_publish_uses_event_type_as_routing_key(self, connected_bus: EventBus) -> None:
        event = IntegrationEvent(type="city.updated")

        assert await connected_bus.publish(event) is True

        message = connected_bus._exchange.publish.await_args.args[0]
        assert connected_bus._exchange.publish.await_args.kwargs["routing_key"] == "city.updated"
        assert message.message_id == event.event_id
        assert json.loads(message.body)["type"] == "city.updated"

    @pytest.mark.asyncio
    async def test_publish_error_returns_false(self, connected_bus: EventBus) -> None:
        connected_bus._exchange.publish.side_effect = RuntimeError("channel closed")
        assert await connected_bus.publish(IntegrationEvent(type="city.created")) is False


class TestSubscribe:
    """Тесты подписки и dead-letter очереди."""

    @pytest.mark.asyncio
    async def test_dead_letter_queue_declared(self, connected_bus: EventBus) -> None:
        queue = AsyncMock()
        connected_bus._channel.declare_queue = AsyncMock(return_value=queue)

        await connected_bus.subscribe("city.*", AsyncMock(), queue_name="client_store.city_sync", dead_letter=True)

        declared = [call.args[0] for call in connected_bus._channel.declare_queue.await_args_list]
        assert declared == ["client_store.city_sync.dlq", "client_store.city_sync"]
        arguments = connected_bus._channel.declare_queue.await_args_list[1].kwargs["arguments"]
        assert arguments["x-dead-letter-exchange"] == "ev.events.dlx"
        queue.consume.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_subscribe_without_connection_is_noop(self, event_bus: EventBus) -> None:
        await event_bus.subscribe("city.*", AsyncMock())
        assert event_bus._handlers == {}


class TestConsumer:
    """Тесты обработки входящих сообщений."""

    @pytest.mark.asyncio
    async def test_handler_receives_payload(self, event_bus: EventBus) -> None:
        handler = AsyncMock()
        event_bus._handlers["city.*"] = [handler]
        message = make_message(b'{"type": "city.created"}')

        await event_bus._make_consumer("city.*")(message)

        handler.assert_awaited_once_with({"type": "city.created"})
        message.process.assert_called_once_with(requeue=False)
        assert message.process.return_value.rejected is False

    @pytest.mark.asyncio
    async def test_handler_error_rejects_message(self, event_bus: EventBus) -> None:
        event_bus._handlers["city.*"] = [AsyncMock(side_effect=RuntimeError("failed"))]
        message = make_message(b'{"type": "city.created"}')

        with pytest.raises(RuntimeError):
            await event_bus._make_consumer("city.*")(message)

        assert message.process.return_value.rejected is True

    @pytest.mark.asyncio
    async def test_invalid_json_rejected(self, event_bus: EventBus) -> None:
        event_bus._handlers["city.*"] = [AsyncMock()]
        message = make_message(b"not json")

        with pytest.raises(json.JSONDecodeError):
            await event_bus._make_consumer("city.*")(message)

        assert message.process.return_value.rejected is True

# ev_platform/infra/event_bus.py
"""
Шина событий на базе RabbitMQ.
Topic-exchange для интеграционных событий между сервисами.
Очереди подписчиков могут иметь dead-letter exchange: сообщение,
обработчик которого завершился исключением, уходит в DLQ без повторной постановки.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Awaitable, Callable

import aio_pika
from aio_pika import ExchangeType, Message
from aio_pika.abc import AbstractChannel, AbstractConnection, AbstractExchange, AbstractQueue

from ev_platform.common.constants import TypeMsg
from ev_platform.common.logger import log_error, log_info

if TYPE_CHECKING:
    from ev_platform.shared.events.base import IntegrationEvent


# Обработчик получает разобранный JSON сообщения
EventHandler = Callable[[dict[str, Any]], Awaitable[None]]


class EventBus:
    """
    Шина событий на базе RabbitMQ (Singleton на процесс).

    - публикация событий в topic-exchange (routing_key = тип события)
    - подписка очередей по шаблону routing_key
    - dead-letter очередь для необработанных сообщений
    """

    _instance: EventBus | None = None
    _connection: AbstractConnection | None = None
    _channel: AbstractChannel | None = None
    _exchange: AbstractExchange | None = None

    def __new__(cls) -> EventBus:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._connection = None
        self._channel = None
        self._exchange = None
        self._exchange_name = "ev.events"
        self._dead_letter_exchange_name = "ev.events.dlx"
        self._handlers: dict[str, list[EventHandler]] = {}
        self._queues: dict[str, AbstractQueue] = {}

    @property
    def is_connected(self) -> bool:
        """Проверяет, активно ли соединение."""
        return self._connection is not None and not self._connection.is_closed

    async def connect(
        self,
        url: str | None = None,
        exchange_name: str | None = None,
        dead_letter_exchange_name: str | None = None,
        prefetch_count: int = 10,
    ) -> None:
        """
        Подключается к RabbitMQ и объявляет exchange.

        Args:
            url: URL RabbitMQ (если None, всё берётся из конфига)
            exchange_name: Имя основного exchange
            dead_letter_exchange_name: Имя dead-letter exchange
            prefetch_count: Количество сообщений для prefetch
        """
        if self.is_connected:
            return

        if url is None:
            from ev_platform.config import settings
            url = settings.rabbitmq.url
            exchange_name = settings.rabbitmq.RABBITMQ_EXCHANGE
            dead_letter_exchange_name = settings.rabbitmq.RABBITMQ_DEAD_LETTER_EXCHANGE
            prefetch_count = settings.rabbitmq.RABBITMQ_PREFETCH_COUNT

        if exchange_name:
            self._exchange_name = exchange_name
        if dead_letter_exchange_name:
            self._dead_letter_exchange_name = dead_letter_exchange_name

        await log_info("Подключение к RabbitMQ...", type_msg=TypeMsg.INFO)

        self._connection = await aio_pika.connect_robust(url)
        self._channel = await self._connection.channel()
        await self._channel.set_qos(prefetch_count=prefetch_count)

        self._exchange = await self._channel.declare_exchange(
            self._exchange_name,
            ExchangeType.TOPIC,
            durable=True,
        )

        await log_info("Подключение к RabbitMQ установлено", type_msg=TypeMsg.INFO)

    async def disconnect(self) -> None:
        """Закрывает соединение с RabbitMQ."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            self._channel = None
            self._exchange = None
            self._queues = {}
            self._handlers = {}
            await log_info("Соединение с RabbitMQ закрыто", type_msg=TypeMsg.INFO)

    async def publish(self, event: IntegrationEvent) -> bool:
        """
        Публикует событие в exchange.

        Returns:
            True, если брокер принял сообщение
        """
        if not self.is_connected or self._exchange is None:
            await log_error(f"Событие {event.event_id} не опубликовано: нет соединения с RabbitMQ")
            return False

        try:
            message = Message(
                body=event.to_json().encode(),
                content_type="application/json",
                message_id=event.event_id,
                type=event.routing_key,
                timestamp=datetime.now(timezone.utc),
                delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            )
            await self._exchange.publish(message, routing_key=event.routing_key)
        except Exception as e:
            await log_error(f"Ошибка публикации события {event.event_id}: {e}")
            return False

        await log_info(f"Событие опубликовано: {event.routing_key} ({event.event_id})", type_msg=TypeMsg.DEBUG)
        return True

    async def subscribe(
        self,
        routing_key: str,
        handler: EventHandler,
        queue_name: str | None = None,
        dead_letter: bool = False,
    ) -> None:
        """
        Подписывает обработчик на события по шаблону routing_key.

        Args:
            routing_key: Шаблон ключа (например, "city.*")
            handler: Асинхронный обработчик; исключение отклоняет сообщение
            queue_name: Имя очереди (если None, генерируется из шаблона)
            dead_letter: Создать DLQ и направлять в неё отклонённые сообщения
        """
        if not self.is_connected or self._channel is None or self._exchange is None:
            await log_error("Не удалось подписаться: нет соединения с RabbitMQ")
            return

        self._handlers.setdefault(routing_key, []).append(handler)

        if queue_name is None:
            queue_name = "ev." + routing_key.replace("*", "all").replace("#", "any").replace(".", "_")

        if queue_name not in self._queues:
            arguments: dict[str, Any] = {}
            if dead_letter:
                arguments = await self._declare_dead_letter(queue_name)

            queue = await self._channel.declare_queue(queue_name, durable=True, arguments=arguments or None)
            await queue.bind(self._exchange, routing_key=routing_key)
            self._queues[queue_name] = queue

            await queue.consume(self._make_consumer(routing_key))

        await log_info(f"Подписка на события: {routing_key} -> {queue_name}", type_msg=TypeMsg.DEBUG)

    async def _declare_dead_letter(self, queue_name: str) -> dict[str, Any]:
        """Объявляет DLX и DLQ для очереди, возвращает аргументы основной очереди."""
        assert self._channel is not None
        dlx = await self._channel.declare_exchange(
            self._dead_letter_exchange_name,
            ExchangeType.DIRECT,
            durable=True,
        )
        dlq_name = f"{queue_name}.dlq"
        dlq = await self._channel.declare_queue(dlq_name, durable=True)
        await dlq.bind(dlx, routing_key=queue_name)
        return {
            "x-dead-letter-exchange": self._dead_letter_exchange_name,
            "x-dead-letter-routing-key": queue_name,
        }

    def _make_consumer(self, routing_key: str) -> Callable[[aio_pika.abc.AbstractIncomingMessage], Awaitable[None]]:
        """Создаёт consumer: ack при успехе, reject без requeue при исключении."""
        async def consumer(message: aio_pika.abc.AbstractIncomingMessage) -> None:
            async with message.process(requeue=False):
                try:
                    payload = json.loads(message.body.decode())
                except (UnicodeDecodeError, json.JSONDecodeError) as e:
                    await log_error(f"Невалидное сообщение {message.message_id}: {e}")
                    raise

                for handler in self._handlers.get(routing_key, []):
                    try:
                        await handler(payload)
                    except Exception as e:
                        await log_error(
                            f"Обработчик {getattr(handler, '__name__', handler)} не обработал "
                            f"сообщение {message.message_id}: {e}"
                        )
                        raise

        return consumer

    async def health_check(self) -> bool:
        """True, если соединение с RabbitMQ активно."""
        return self.is_connected


_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Возвращает глобальный экземпляр EventBus."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


async def init_event_bus() -> None:
    """Подключается к RabbitMQ по настройкам из конфигурации."""
    from ev_platform.config import settings

    await get_event_bus().connect(
        url=settings.rabbitmq.url,
        exchange_name=settings.rabbitmq.RABBITMQ_EXCHANGE,
        dead_letter_exchange_name=settings.rabbitmq.RABBITMQ_DEAD_LETTER_EXCHANGE,
        prefetch_count=settings.rabbitmq.RABBITMQ_PREFETCH_COUNT,
    )
    await log_info(
        f"RabbitMQ подключён: {settings.rabbitmq.RABBITMQ_HOST}:{settings.rabbitmq.RABBITMQ_PORT}",
        type_msg=TypeMsg.INFO,
    )


async def close_event_bus() -> None:
    """Закрывает подключение к RabbitMQ."""
    await get_event_bus().disconnect()

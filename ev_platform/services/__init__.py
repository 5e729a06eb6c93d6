# ev_platform/services/__init__.py
"""
Микросервисы платформы.

Архитектура:
- Каждый сервис это независимое FastAPI-приложение
- Общая PostgreSQL с логическим разделением по схемам
- Синхронизация городов: HTTP push + RabbitMQ, журнал событий у источника
- Redis для учёта обработанных событий

Сервисы:
- vehicle_service: система учёта городов, журнал и рассылка событий
- client_store_service: клиенты, сопоставления клиент-райдер, реплика городов
"""

__all__: list[str] = []

# ev_platform/common/constants.py
"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class UserRole(str, Enum):
    """Роли сотрудников back-office (из JWT)."""
    ADMIN = "admin"
    MANAGER = "manager"
    OPERATOR = "operator"
    VIEWER = "viewer"


# Имя сервиса-источника событий городов
VEHICLE_SERVICE_SOURCE = "vehicle-service"

# Заголовки служебных HTTP-запросов синхронизации
HEADER_EVENT_SOURCE = "X-Event-Source"
HEADER_EVENT_ID = "X-Event-Id"
HEADER_EVENT_TYPE = "X-Event-Type"

# Путь эндпоинта приёма событий городов у подписчиков
CITY_SYNC_PATH = "/internal/city-sync"

# triggeredBy принудительной пересылки из vehicle-service: подписчик
# применяет такой снимок даже при совпадающей версии
SYNC_RECOVERY_TRIGGER = "sync-recovery"

from enum import Enum


class VerificationStatus(str, Enum):
    """Статусы проверки сопоставления клиент-райдер."""
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"

    def __str__(self) -> str:
        return self.value


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"

    def __str__(self) -> str:
        return self.value


class ServiceStatus(str, Enum):
    """Состояние сервиса в отчётах о синхронизации."""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value

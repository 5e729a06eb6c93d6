# ev_platform/shared/models/common.py
"""
Общие модели ответов для всех сервисов.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from ev_platform.shared.events.base import CamelModel


class PaginationParams(CamelModel):
    """Параметры пагинации."""

    page: int = Field(default=1, ge=1, description="Номер страницы")
    limit: int = Field(default=50, ge=1, le=500, description="Размер страницы")

    @property
    def offset(self) -> int:
        """Смещение для SQL-запроса."""
        return (self.page - 1) * self.limit


class PaginationMeta(CamelModel):
    """Сведения о странице в ответе."""

    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int

    @classmethod
    def create(cls, total: int, pagination: PaginationParams) -> "PaginationMeta":
        return cls(
            current_page=pagination.page,
            total_pages=(total + pagination.limit - 1) // pagination.limit,
            total_items=total,
            items_per_page=pagination.limit,
        )


class ApiResponse(CamelModel):
    """
    Стандартная обёртка успешного ответа:
    {"success": true, "message": ..., "data": ..., "count": ..., "pagination": ...}
    """

    success: bool = True
    message: str | None = None
    data: Any = None
    count: int | None = None
    pagination: PaginationMeta | None = None

    @classmethod
    def of(cls, data: Any, message: str | None = None, with_count: bool = False, **kwargs: Any) -> "ApiResponse":
        """Ответ с данными; для списков with_count добавляет поле count."""
        if with_count and isinstance(data, list):
            kwargs["count"] = len(data)
        return cls(message=message, data=data, **kwargs)


class HealthStatus(CamelModel):
    """Статус здоровья сервиса."""

    service: str
    status: str = "healthy"  # healthy, degraded, unhealthy
    version: str | None = None
    dependencies: dict[str, str] = Field(default_factory=dict)

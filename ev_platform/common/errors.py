# ev_platform/common/errors.py
"""
Прикладные ошибки API и глобальные обработчики исключений FastAPI.

Все ошибки отдаются в едином формате:
    {"success": false, "error": {"code": ..., "message": ...}, "timestamp": ...}
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import asyncpg
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ev_platform.common.logger import log_error, log_warning


# =============================================================================
# ИСКЛЮЧЕНИЯ
# =============================================================================

class ApiError(Exception):
    """Базовая прикладная ошибка с HTTP-статусом и машинным кодом."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.details = details


class ValidationError(ApiError):
    status_code = 400
    code = "VALIDATION_ERROR"


class AuthError(ApiError):
    status_code = 401
    code = "UNAUTHORIZED"


class NotFoundError(ApiError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(ApiError):
    status_code = 409
    code = "CONFLICT"


# =============================================================================
# ФОРМИРОВАНИЕ ОТВЕТА
# =============================================================================

def _is_production() -> bool:
    from ev_platform.config import settings
    return settings.system.is_production


def error_payload(code: str, message: str, details: Any = None) -> dict[str, Any]:
    """Формирует тело ответа с ошибкой."""
    error: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return {
        "success": False,
        "error": error,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def error_response(status_code: int, code: str, message: str, details: Any = None) -> JSONResponse:
    """Формирует JSONResponse с ошибкой; в production скрывает текст 500-х ошибок."""
    if status_code >= 500 and _is_production():
        message = "Internal server error"
        details = None
    return JSONResponse(status_code=status_code, content=error_payload(code, message, details))


def map_database_error(exc: asyncpg.PostgresError) -> tuple[int, str]:
    """Сопоставляет ошибку PostgreSQL со статусом и кодом ответа."""
    if isinstance(exc, asyncpg.UniqueViolationError):
        return 409, "DUPLICATE_ENTRY"
    if isinstance(exc, asyncpg.ForeignKeyViolationError):
        return 400, "FOREIGN_KEY_ERROR"
    if isinstance(exc, asyncpg.NoDataFoundError):
        return 404, "NOT_FOUND"
    return 500, "DATABASE_ERROR"


# =============================================================================
# ОБРАБОТЧИКИ
# =============================================================================

async def _handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    log = log_error if exc.status_code >= 500 else log_warning
    await log(
        f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}",
        extra={"code": exc.code},
    )
    return error_response(exc.status_code, exc.code, exc.message, exc.details)


async def _handle_database_error(request: Request, exc: asyncpg.PostgresError) -> JSONResponse:
    status_code, code = map_database_error(exc)
    await log_error(
        f"{request.method} {request.url.path} -> ошибка БД {code}: {exc}",
        extra={"sqlstate": getattr(exc, "sqlstate", None)},
    )
    details = None if status_code >= 500 else getattr(exc, "constraint_name", None)
    return error_response(status_code, code, str(exc), details)


async def _handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
    return error_response(exc.status_code, code, str(exc.detail))


async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    await log_warning(f"{request.method} {request.url.path} -> невалидный запрос")
    return error_response(400, "VALIDATION_ERROR", "Invalid request", jsonable_errors(exc))


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    await log_error(
        f"{request.method} {request.url.path} -> необработанная ошибка: {exc}",
        exc_info=True,
    )
    message = str(exc)
    # Сообщения вида "... not found" трактуются как 404
    if "not found" in message.lower():
        return error_response(404, "NOT_FOUND", message)
    return error_response(500, "INTERNAL_ERROR", message or "Internal server error")


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """Упрощает список ошибок валидации для ответа."""
    return [
        {"field": ".".join(str(part) for part in err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]


def install_exception_handlers(app: FastAPI) -> None:
    """Регистрирует глобальные обработчики исключений приложения."""
    app.add_exception_handler(ApiError, _handle_api_error)
    app.add_exception_handler(asyncpg.PostgresError, _handle_database_error)
    app.add_exception_handler(StarletteHTTPException, _handle_http_error)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
    app.add_exception_handler(Exception, _handle_unexpected)

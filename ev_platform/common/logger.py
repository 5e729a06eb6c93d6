# ev_platform/common/logger.py
"""
Структурированное логирование сервисов платформы.

Консоль: цветной текст (разработка) или JSON (production).
Файлы (LOG_TO_FILE): общий лог сервиса и отдельный лог ошибок, ротация по размеру.
Поля трассировки синхронизации (event_id, city_id, correlation_id) из extra
выносятся в JSON на верхний уровень, чтобы событие можно было проследить
от vehicle-service до реплики.
"""

from __future__ import annotations

import inspect
import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from ev_platform.common.constants import TypeMsg

DEFAULT_LOGGER_NAME = "ev_platform"

TRACE_FIELDS = ("event_id", "city_id", "correlation_id")

NOISY_LOGGERS = ("asyncpg", "redis", "aio_pika", "aiormq", "httpx", "uvicorn.access")

_LEVELS = {
    TypeMsg.DEBUG: logging.DEBUG,
    TypeMsg.INFO: logging.INFO,
    TypeMsg.WARNING: logging.WARNING,
    TypeMsg.ERROR: logging.ERROR,
    TypeMsg.CRITICAL: logging.CRITICAL,
}

# Файловые хендлеры общие для всех логгеров процесса
_file_handlers: list[logging.Handler] | None = None
_loggers: dict[str, logging.Logger] = {}
_initialized = False


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        extra = dict(getattr(record, "extra_data", None) or {})
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "service": os.getenv("SERVICE_NAME", DEFAULT_LOGGER_NAME),
            "message": record.getMessage(),
        }
        for field in TRACE_FIELDS:
            if extra.get(field) is not None:
                entry[field] = extra.pop(field)
        if extra:
            entry["extra"] = extra
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Читаемый вывод для локальной разработки."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    GRAY = "\033[90m"

    def format(self, record: logging.LogRecord) -> str:
        extra = getattr(record, "extra_data", None) or {}
        color = self.COLORS.get(record.levelname, self.GRAY)
        when = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")

        where = ""
        if extra.get("caller_function"):
            where = f" {self.GRAY}[{extra.get('caller_module')}.{extra['caller_function']}:{extra.get('caller_line')}]{self.RESET}"

        trace = " ".join(f"{field}={extra[field]}" for field in TRACE_FIELDS if extra.get(field))
        line = f"{when} {color}{record.levelname:<8}{self.RESET}{where} {record.getMessage()}"
        if trace:
            line += f" {self.GRAY}({trace}){self.RESET}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _logging_section() -> Any:
    """Секция logging настроек; None, если конфиг ещё не загружается (ранний старт)."""
    try:
        from ev_platform.config import settings
    except Exception:
        return None
    return settings.logging


def _formatter(log_format: str) -> logging.Formatter:
    return JsonFormatter() if log_format == "json" else ColoredFormatter()


def _build_file_handlers(section: Any) -> list[logging.Handler]:
    """Лог сервиса (logs/app_<service>.log) и общий лог ошибок."""
    path = Path(section.LOG_FILE_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)

    service = os.getenv("SERVICE_NAME")
    main_file = path.with_name(f"{path.stem}_{service}{path.suffix}") if service else path

    handlers: list[logging.Handler] = []
    for filename, level in ((main_file, logging.NOTSET), (path.with_name("error.log"), logging.ERROR)):
        handler = RotatingFileHandler(
            filename,
            maxBytes=section.LOG_MAX_BYTES,
            backupCount=section.LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        handler.setLevel(level)
        handler.setFormatter(_formatter(section.LOG_FORMAT))
        handlers.append(handler)
    return handlers


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """Настроенный логгер; хендлеры добавляются один раз на имя."""
    global _file_handlers

    if name in _loggers:
        return _loggers[name]

    section = _logging_section()
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, section.LOG_LEVEL.upper(), logging.DEBUG) if section else logging.DEBUG)

    if not logger.handlers:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(_formatter(section.LOG_FORMAT if section else "colored"))
        logger.addHandler(console)

        if section is not None and section.LOG_TO_FILE:
            if _file_handlers is None:
                _file_handlers = _build_file_handlers(section)
            for handler in _file_handlers:
                logger.addHandler(handler)

    logger.propagate = False
    _loggers[name] = logger
    return logger


def setup_logging() -> None:
    """Инициализация при старте процесса. Повторный вызов ничего не делает."""
    global _initialized
    if _initialized:
        return
    _initialized = True

    get_logger(DEFAULT_LOGGER_NAME)
    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _caller() -> dict[str, Any]:
    """Первый кадр стека за пределами этого модуля."""
    frame = inspect.currentframe()
    try:
        while frame is not None and frame.f_globals.get("__name__") == __name__:
            frame = frame.f_back
        if frame is None:
            return {}
        return {
            "caller_function": frame.f_code.co_name,
            "caller_module": frame.f_globals.get("__name__", "unknown"),
            "caller_line": frame.f_lineno,
        }
    finally:
        del frame


def _emit(
    level: int,
    message: str,
    logger_name: str,
    extra: dict[str, Any] | None,
    exc_info: bool = False,
) -> None:
    get_logger(logger_name).log(
        level,
        message,
        extra={"extra_data": {**_caller(), **(extra or {})}},
        exc_info=exc_info,
    )


async def log_info(
    message: str,
    *,
    type_msg: TypeMsg = TypeMsg.INFO,
    logger_name: str = DEFAULT_LOGGER_NAME,
    extra: dict[str, Any] | None = None,
) -> None:
    """
    Основная функция логирования.

    Args:
        message: Текст сообщения
        type_msg: Уровень
        logger_name: Имя логгера
        extra: Дополнительные поля (event_id, city_id, correlation_id попадают в трассировку)
    """
    _emit(_LEVELS.get(type_msg, logging.INFO), message, logger_name, extra)


async def log_debug(
    message: str,
    logger_name: str = DEFAULT_LOGGER_NAME,
    extra: dict[str, Any] | None = None,
) -> None:
    _emit(logging.DEBUG, message, logger_name, extra)


async def log_warning(
    message: str,
    logger_name: str = DEFAULT_LOGGER_NAME,
    extra: dict[str, Any] | None = None,
) -> None:
    _emit(logging.WARNING, message, logger_name, extra)


async def log_error(
    message: str,
    logger_name: str = DEFAULT_LOGGER_NAME,
    extra: dict[str, Any] | None = None,
    exc_info: bool = False,
) -> None:
    """ERROR; exc_info=True добавляет трейсбек текущего исключения."""
    _emit(logging.ERROR, message, logger_name, extra, exc_info)

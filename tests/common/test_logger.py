# tests/common/test_logger.py
"""
Тесты форматтеров и хелперов логирования.
"""

from __future__ import annotations

import json
import logging
from unittest.mock import patch

import pytest

from ev_platform.common.constants import TypeMsg
from ev_platform.common.logger import ColoredFormatter, JsonFormatter, log_error, log_info


def make_record(extra_data: dict | None = None, exc_info=None) -> logging.LogRecord:
    record = logging.LogRecord("ev_platform", logging.WARNING, __file__, 10, "city sync skipped", None, exc_info)
    if extra_data is not None:
        record.extra_data = extra_data
    return record


class TestJsonFormatter:
    """Тесты JsonFormatter."""

    def test_trace_fields_promoted(self) -> None:
        entry = json.loads(JsonFormatter().format(make_record({
            "event_id": "e-1",
            "city_id": "c-1",
            "caller_function": "process_event",
        })))

        assert entry["level"] == "WARNING"
        assert entry["message"] == "city sync skipped"
        assert entry["event_id"] == "e-1"
        assert entry["city_id"] == "c-1"
        assert entry["extra"] == {"caller_function": "process_event"}
        assert "correlation_id" not in entry

    def test_exception_included(self) -> None:
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            import sys
            record = make_record(exc_info=sys.exc_info())

        entry = json.loads(JsonFormatter().format(record))
        assert "RuntimeError: boom" in entry["exception"]


class TestColoredFormatter:
    """Тесты ColoredFormatter."""

    def test_trace_suffix(self) -> None:
        line = ColoredFormatter().format(make_record({"event_id": "e-1"}))
        assert "city sync skipped" in line
        assert "event_id=e-1" in line


class TestLogHelpers:
    """Тесты асинхронных хелперов."""

    @pytest.mark.asyncio
    async def test_level_and_caller(self) -> None:
        with patch.object(logging.Logger, "log") as log:
            await log_info("hello", type_msg=TypeMsg.WARNING, extra={"city_id": "c-1"})

        level, message = log.call_args.args
        extra_data = log.call_args.kwargs["extra"]["extra_data"]
        assert (level, message) == (logging.WARNING, "hello")
        assert extra_data["city_id"] == "c-1"
        assert extra_data["caller_function"] == "test_level_and_caller"

    @pytest.mark.asyncio
    async def test_error_with_traceback(self) -> None:
        with patch.object(logging.Logger, "log") as log:
            await log_error("failed", exc_info=True)

        assert log.call_args.args[0] == logging.ERROR
        assert log.call_args.kwargs["exc_info"] is True

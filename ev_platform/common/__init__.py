# ev_platform/common/__init__.py
"""
Общие утилиты, константы, логгер и ошибки API.
"""

from ev_platform.common.logger import get_logger, log_info, log_error, log_warning, log_debug
from ev_platform.common.constants import TypeMsg

__all__ = [
    "get_logger",
    "log_info",
    "log_error",
    "log_warning",
    "log_debug",
    "TypeMsg",
]

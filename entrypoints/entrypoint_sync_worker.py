#!/usr/bin/env python3
# entrypoint_sync_worker.py
"""
Точка входа для запуска воркера синхронизации городов.
"""

import asyncio
import sys
from pathlib import Path

# Добавляем корневую директорию проекта в путь
sys.path.insert(0, str(Path(__file__).parent.parent.resolve()))

from main import main


if __name__ == "__main__":
    try:
        asyncio.run(main(mode="sync_worker"))
    except KeyboardInterrupt:
        print("\nПолучен сигнал остановки, завершение работы...")

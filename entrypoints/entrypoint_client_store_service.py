#!/usr/bin/env python3
# entrypoint_client_store_service.py
"""
Точка входа для запуска Client Store Service.
Порт по умолчанию: 4006
"""

import asyncio
import sys
from pathlib import Path

# Добавляем корневую директорию проекта в путь
sys.path.insert(0, str(Path(__file__).parent.parent.resolve()))

from main import main


if __name__ == "__main__":
    try:
        asyncio.run(main(mode="client_store_service"))
    except KeyboardInterrupt:
        print("\nПолучен сигнал остановки, завершение работы...")

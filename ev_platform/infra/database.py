# ev_platform/infra/database.py
"""
Менеджер базы данных PostgreSQL.
Пул соединений asyncpg, повтор при обрыве связи, транзакции и применение схемы.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from functools import wraps
from typing import Any, AsyncGenerator, Callable, TypeVar

import asyncpg
from asyncpg import Connection, Pool, Record

from ev_platform.common.constants import TypeMsg
from ev_platform.common.logger import log_error, log_info, log_warning

T = TypeVar("T")

# Ключ advisory-лока для миграций
SCHEMA_LOCK_ID = 740_512_001

_CONNECTION_ERRORS = (
    asyncpg.PostgresConnectionError,
    asyncpg.InterfaceError,
    ConnectionRefusedError,
    OSError,
)


def retry_on_connection_error(
    max_attempts: int = 3,
    delay: float = 1.0,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Декоратор повтора при ошибках подключения.
    Задержка растёт линейно: delay, 2*delay, ...

    Args:
        max_attempts: Максимальное количество попыток
        delay: Базовая задержка между попытками (секунды)
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            last_error: Exception | None = None

            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except _CONNECTION_ERRORS as e:
                    last_error = e
                    if attempt < max_attempts:
                        await log_warning(f"Ошибка подключения к БД (попытка {attempt}/{max_attempts}): {e}")
                        await asyncio.sleep(delay * attempt)
                    else:
                        await log_error(f"БД недоступна после {max_attempts} попыток: {e}")

            raise last_error  # type: ignore

        return wrapper  # type: ignore

    return decorator


class DatabaseManager:
    """
    Менеджер подключений к PostgreSQL (Singleton на процесс).
    """

    _instance: DatabaseManager | None = None
    _pool: Pool | None = None

    def __new__(cls) -> DatabaseManager:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._pool = None

    @property
    def pool(self) -> Pool:
        """Возвращает пул соединений."""
        if self._pool is None:
            raise RuntimeError("Пул соединений не инициализирован. Вызовите connect() сначала.")
        return self._pool

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    @retry_on_connection_error(max_attempts=3, delay=1.0)
    async def connect(
        self,
        dsn: str | None = None,
        min_size: int = 5,
        max_size: int = 20,
        command_timeout: int = 60,
    ) -> None:
        """
        Создаёт пул соединений.

        Args:
            dsn: Строка подключения (если None, берётся из конфига вместе с размерами пула)
            min_size: Минимальный размер пула
            max_size: Максимальный размер пула
            command_timeout: Таймаут команд (секунды)
        """
        if self._pool is not None:
            return

        if dsn is None:
            from ev_platform.config import settings
            dsn = settings.database.dsn
            min_size = settings.database.DB_MIN_POOL_SIZE
            max_size = settings.database.DB_MAX_POOL_SIZE
            command_timeout = settings.database.DB_COMMAND_TIMEOUT

        await log_info("Подключение к PostgreSQL...", type_msg=TypeMsg.INFO)

        self._pool = await asyncpg.create_pool(
            dsn=dsn,
            min_size=min_size,
            max_size=max_size,
            command_timeout=command_timeout,
        )

        await log_info("Подключение к PostgreSQL установлено", type_msg=TypeMsg.INFO)

    async def disconnect(self) -> None:
        """Закрывает пул соединений."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            await log_info("Соединение с PostgreSQL закрыто", type_msg=TypeMsg.INFO)

    @asynccontextmanager
    async def acquire(self) -> AsyncGenerator[Connection, None]:
        """
        Соединение из пула.

        Example:
            async with db.acquire() as conn:
                row = await conn.fetchrow("SELECT * FROM client_store.cities WHERE id = $1", city_id)
        """
        async with self.pool.acquire() as connection:
            yield connection

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[Connection, None]:
        """
        Соединение в транзакции: commit при успехе, rollback при исключении.

        Example:
            async with db.transaction() as conn:
                await conn.execute("UPDATE vehicle.cities ...")
                await conn.execute("INSERT INTO vehicle.city_event_log ...")
        """
        async with self.pool.acquire() as connection:
            async with connection.transaction():
                yield connection

    @retry_on_connection_error()
    async def execute(self, query: str, *args: Any) -> str:
        """Выполняет запрос без возврата данных, возвращает статус команды."""
        async with self.acquire() as conn:
            return await conn.execute(query, *args)

    @retry_on_connection_error()
    async def fetch(self, query: str, *args: Any) -> list[Record]:
        """Выполняет запрос и возвращает все строки."""
        async with self.acquire() as conn:
            return await conn.fetch(query, *args)

    @retry_on_connection_error()
    async def fetchrow(self, query: str, *args: Any) -> Record | None:
        """Выполняет запрос и возвращает одну строку или None."""
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args)

    @retry_on_connection_error()
    async def fetchval(self, query: str, *args: Any, column: int = 0) -> Any:
        """Выполняет запрос и возвращает одно значение."""
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args, column=column)

    async def health_check(self) -> bool:
        """True, если БД отвечает на SELECT 1."""
        try:
            return await self.fetchval("SELECT 1") == 1
        except Exception as e:
            await log_error(f"Health check PostgreSQL failed: {e}")
            return False


_db_manager: DatabaseManager | None = None


def get_db() -> DatabaseManager:
    """Возвращает глобальный экземпляр DatabaseManager."""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager


async def init_db(apply_schema: bool = True) -> None:
    """
    Подключается к БД по настройкам и применяет схему.
    """
    from ev_platform.config import settings

    db = get_db()
    await db.connect(
        dsn=settings.database.dsn,
        min_size=settings.database.DB_MIN_POOL_SIZE,
        max_size=settings.database.DB_MAX_POOL_SIZE,
        command_timeout=settings.database.DB_COMMAND_TIMEOUT,
    )

    if apply_schema:
        await _init_schema(db)


async def _init_schema(db: DatabaseManager) -> None:
    """Применяет migrations/init.sql под advisory-локом."""
    from ev_platform.config.loader import get_project_root

    schema_path = get_project_root() / "migrations" / "init.sql"
    if not schema_path.exists():
        await log_error(f"Файл схемы БД не найден: {schema_path}")
        return

    with open(schema_path, "r", encoding="utf-8") as f:
        schema_sql = f.read()

    await log_info("Применение схемы БД...", type_msg=TypeMsg.INFO)

    try:
        # xact-лок держится до конца транзакции: параллельные сервисы ждут друг друга
        async with db.transaction() as conn:
            await conn.execute("SELECT pg_advisory_xact_lock($1)", SCHEMA_LOCK_ID)
            await conn.execute(schema_sql)
    except (asyncpg.DeadlockDetectedError, asyncpg.DuplicateObjectError) as e:
        await log_warning(f"Схема уже применяется другим процессом: {e}")
        return

    await log_info("Схема БД успешно применена", type_msg=TypeMsg.INFO)


async def close_db() -> None:
    """Закрывает подключение к базе данных."""
    await get_db().disconnect()

from typing import Optional

from ev_platform.infra.database import DatabaseManager
from ev_platform.shared.models.mapping_dto import ClientDTO


class ClientRepository:
    def __init__(self, db: DatabaseManager):
        self.db = db

    async def get_by_id(self, client_id: str) -> Optional[ClientDTO]:
        """Клиент по ID."""
        query = """
            SELECT id, name, client_code, client_type, is_active
            FROM client_store.clients
            WHERE id = $1
        """
        async with self.db.acquire() as conn:
            record = await conn.fetchrow(query, client_id)
            return ClientDTO(**dict(record)) if record else None

    async def exists(self, client_id: str) -> bool:
        query = "SELECT EXISTS(SELECT 1 FROM client_store.clients WHERE id = $1)"
        async with self.db.acquire() as conn:
            return bool(await conn.fetchval(query, client_id))

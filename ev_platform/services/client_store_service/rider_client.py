# ev_platform/services/client_store_service/rider_client.py
"""
Клиент внутреннего API rider-service.

Любой сбой (404, таймаут, сеть, неожиданное тело) сворачивается в None:
вызывающий код отличает только «райдер найден» и «не найден».
"""

from __future__ import annotations

from typing import Any

import httpx

from ev_platform.common.logger import log_error, log_warning
from ev_platform.shared.models.rider_ids import InternalRiderId, PublicRiderId


class RiderServiceClient:
    def __init__(self, base_url: str, timeout: float = 5.0, http: httpx.AsyncClient | None = None):
        self.base_url = base_url.rstrip("/")
        self.http = http or httpx.AsyncClient(timeout=timeout)

    async def _get_data(self, path: str) -> dict[str, Any] | None:
        url = f"{self.base_url}{path}"
        try:
            response = await self.http.get(url)
        except httpx.TimeoutException:
            await log_warning(f"Таймаут запроса к rider-service: {url}")
            return None
        except httpx.HTTPError as e:
            await log_error(f"rider-service недоступен ({url}): {e}")
            return None

        if response.status_code != 200:
            await log_warning(f"rider-service ответил {response.status_code}: {url}")
            return None

        try:
            body = response.json()
        except ValueError:
            await log_warning(f"rider-service вернул не JSON: {url}")
            return None

        if not isinstance(body, dict) or not body.get("success"):
            return None
        data = body.get("data")
        return data if isinstance(data, dict) else None

    async def resolve_public_rider_id(self, public_rider_id: PublicRiderId) -> InternalRiderId | None:
        """Публичный идентификатор -> внутренний UUID или None."""
        data = await self._get_data(f"/internal/riders/public/{public_rider_id}")
        if not data or not data.get("id"):
            return None
        return InternalRiderId(str(data["id"]))

    async def get_rider_by_id(self, rider_id: InternalRiderId) -> dict[str, Any] | None:
        return await self._get_data(f"/internal/riders/{rider_id}")

    async def validate_public_rider_id(self, public_rider_id: PublicRiderId) -> bool:
        return await self.resolve_public_rider_id(public_rider_id) is not None

    async def close(self) -> None:
        await self.http.aclose()

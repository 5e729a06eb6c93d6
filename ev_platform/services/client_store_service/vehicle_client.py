# ev_platform/services/client_store_service/vehicle_client.py
"""
HTTP-клиент внутреннего API vehicle-service (источник данных о городах).
"""

from __future__ import annotations

import httpx

from ev_platform.common.logger import log_error, log_warning
from ev_platform.shared.events.city_events import CityEventData


class VehicleServiceError(Exception):
    """vehicle-service недоступен или ответил ошибкой."""
    pass


class VehicleServiceClient:
    def __init__(self, base_url: str, timeout: float = 5.0, http: httpx.AsyncClient | None = None):
        self.base_url = base_url.rstrip("/")
        self.http = http or httpx.AsyncClient(timeout=timeout)

    async def get_city(self, city_id: str) -> CityEventData | None:
        """
        Текущее состояние города в системе учёта.

        Returns:
            Снимок города или None, если город не найден

        Raises:
            VehicleServiceError: сетевая ошибка или неожиданный ответ
        """
        url = f"{self.base_url}/internal/cities/{city_id}"
        try:
            response = await self.http.get(url)
        except httpx.HTTPError as e:
            await log_error(f"vehicle-service недоступен ({url}): {e}")
            raise VehicleServiceError(str(e)) from e

        if response.status_code == 404:
            await log_warning(f"Город {city_id} не найден в vehicle-service")
            return None
        if response.status_code != 200:
            raise VehicleServiceError(f"vehicle-service вернул {response.status_code}")

        body = response.json()
        if not body.get("success") or not body.get("data"):
            raise VehicleServiceError("Некорректный ответ vehicle-service")
        return CityEventData.model_validate(body["data"])

    async def close(self) -> None:
        await self.http.aclose()

# ev_platform/shared/models/__init__.py
"""
Общие DTO и Pydantic-модели для межсервисного взаимодействия.
"""

from ev_platform.shared.models.common import (
    ApiResponse,
    HealthStatus,
    PaginationMeta,
    PaginationParams,
)
from ev_platform.shared.models.enums import VerificationStatus
from ev_platform.shared.models.rider_ids import InternalRiderId, PublicRiderId

__all__ = [
    "ApiResponse",
    "HealthStatus",
    "PaginationMeta",
    "PaginationParams",
    "VerificationStatus",
    "InternalRiderId",
    "PublicRiderId",
]

# ev_platform/common/security.py
"""
Проверка Bearer JWT для административных эндпоинтов.
"""

from __future__ import annotations

from typing import Any

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from ev_platform.common.errors import AuthError


class CurrentUser(BaseModel):
    """Пользователь, извлечённый из токена."""
    id: str
    email: str | None = None
    role: str | None = None
    team_id: str | None = None


_bearer = HTTPBearer(auto_error=False)


def decode_token(token: str, secret: str, algorithm: str = "HS256") -> CurrentUser:
    """
    Декодирует и проверяет JWT.

    Raises:
        AuthError: токен просрочен, подделан или не содержит идентификатора
    """
    try:
        payload: dict[str, Any] = jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthError("Token expired", code="TOKEN_EXPIRED")
    except jwt.InvalidTokenError:
        raise AuthError("Invalid token", code="INVALID_TOKEN")

    user_id = payload.get("id") or payload.get("userId") or payload.get("sub")
    if not user_id:
        raise AuthError("Invalid token", code="INVALID_TOKEN")

    return CurrentUser(
        id=str(user_id),
        email=payload.get("email"),
        role=payload.get("role"),
        team_id=payload.get("teamId"),
    )


async def require_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> CurrentUser:
    """FastAPI-зависимость: требует валидный Bearer токен."""
    from ev_platform.config import settings

    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise AuthError("Authorization token required", code="TOKEN_REQUIRED")

    return decode_token(
        credentials.credentials,
        settings.security.JWT_SECRET,
        settings.security.JWT_ALGORITHM,
    )

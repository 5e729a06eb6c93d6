# tests/common/test_security.py
"""
Тесты проверки Bearer JWT.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from ev_platform.common.errors import AuthError, install_exception_handlers
from ev_platform.common.security import CurrentUser, decode_token, require_user
from ev_platform.config import settings

SECRET = "unit-test-secret-with-sufficient-length"


def make_token(payload: dict, secret: str = SECRET) -> str:
    return jwt.encode(payload, secret, algorithm="HS256")


class TestDecodeToken:
    """Тесты decode_token."""

    def test_valid_token(self) -> None:
        token = make_token({"id": "u-1", "email": "ops@example.com", "role": "admin", "teamId": "t-1"})
        user = decode_token(token, SECRET)
        assert user == CurrentUser(id="u-1", email="ops@example.com", role="admin", team_id="t-1")

    def test_sub_used_as_id(self) -> None:
        assert decode_token(make_token({"sub": "u-2"}), SECRET).id == "u-2"

    def test_expired_token(self) -> None:
        expired = datetime.now(timezone.utc) - timedelta(minutes=1)
        with pytest.raises(AuthError) as exc_info:
            decode_token(make_token({"id": "u-1", "exp": expired}), SECRET)
        assert exc_info.value.code == "TOKEN_EXPIRED"

    def test_wrong_secret(self) -> None:
        token = make_token({"id": "u-1"}, secret="another-secret-with-sufficient-length")
        with pytest.raises(AuthError) as exc_info:
            decode_token(token, SECRET)
        assert exc_info.value.code == "INVALID_TOKEN"

    def test_token_without_id(self) -> None:
        with pytest.raises(AuthError):
            decode_token(make_token({"email": "x@example.com"}), SECRET)


class TestRequireUser:
    """Тесты зависимости require_user."""

    @pytest.fixture
    def client(self) -> TestClient:
        app = FastAPI()
        install_exception_handlers(app)

        @app.get("/me")
        async def me(user: CurrentUser = Depends(require_user)):
            return {"id": user.id}

        return TestClient(app)

    def test_missing_token(self, client: TestClient) -> None:
        response = client.get("/me")
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "TOKEN_REQUIRED"

    def test_valid_token(self, client: TestClient) -> None:
        token = make_token({"id": "u-9"}, secret=settings.security.JWT_SECRET)
        response = client.get("/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json() == {"id": "u-9"}

    def test_garbage_token(self, client: TestClient) -> None:
        response = client.get("/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_TOKEN"

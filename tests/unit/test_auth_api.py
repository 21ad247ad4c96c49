"""API tests for the auth router's profile and user-admin endpoints."""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import HTTPException
from httpx import AsyncClient

from src.main import app
from src.ms_common.database import get_db_session
from src.ms_common.enums import UserRole
from src.ms_common.errors import AccountDisabledError
from src.ms_gateway.auth.dependencies import get_current_user
from src.ms_gateway.auth.jwt_handler import create_access_token
from src.ms_gateway.user.db_models import UserModel


def _user(username: str, role: UserRole = UserRole.CUSTOMER) -> UserModel:
    user = UserModel()
    user.id = uuid.uuid4()
    user.username = username
    user.email = f"{username}@example.com"
    user.full_name = None
    user.role = role.value
    user.is_active = True
    return user


def _scalar(value: UserModel | None) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


@pytest.fixture
def session() -> AsyncMock:
    db = AsyncMock()

    async def _db():
        yield db

    app.dependency_overrides[get_db_session] = _db
    return db


def _login_as(user: UserModel) -> UserModel:
    app.dependency_overrides[get_current_user] = lambda: user
    return user


class TestMe:
    async def test_returns_profile(self, client: AsyncClient) -> None:
        user = _login_as(_user("satriani"))

        resp = await client.get("/api/v1/auth/me")

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["user_id"] == str(user.id)
        assert data["role"] == "CUSTOMER"

    async def test_requires_token(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/auth/me")
        assert resp.status_code == 401


class TestListUsers:
    async def test_customer_forbidden(self, client: AsyncClient) -> None:
        _login_as(_user("satriani"))
        resp = await client.get("/api/v1/auth/users")
        assert resp.status_code == 403
        assert resp.json()["code"] == 1006

    async def test_admin_lists_users(self, client: AsyncClient, session: AsyncMock) -> None:
        _login_as(_user("boss", UserRole.ADMIN))
        listed = [_user("a_player"), _user("b_player")]
        count = MagicMock()
        count.scalar_one.return_value = 2
        page = MagicMock()
        page.scalars.return_value.all.return_value = listed
        session.execute = AsyncMock(side_effect=[count, page])

        resp = await client.get("/api/v1/auth/users?role=CUSTOMER")

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["total"] == 2
        assert [u["username"] for u in data["items"]] == ["a_player", "b_player"]


class TestUpdateUser:
    async def test_admin_disables_customer(
        self, client: AsyncClient, session: AsyncMock
    ) -> None:
        _login_as(_user("boss", UserRole.ADMIN))
        target = _user("satriani")
        session.execute = AsyncMock(return_value=_scalar(target))

        resp = await client.patch(
            f"/api/v1/auth/users/{target.id}", json={"is_active": False}
        )

        assert resp.status_code == 200
        assert resp.json()["data"]["is_active"] is False
        session.commit.assert_awaited_once()

    async def test_admin_cannot_disable_self(
        self, client: AsyncClient, session: AsyncMock
    ) -> None:
        admin = _login_as(_user("boss", UserRole.ADMIN))
        session.execute = AsyncMock(return_value=_scalar(admin))

        resp = await client.patch(
            f"/api/v1/auth/users/{admin.id}", json={"is_active": False}
        )

        assert resp.status_code == 422
        assert resp.json()["code"] == 1008

    async def test_unknown_user(self, client: AsyncClient, session: AsyncMock) -> None:
        _login_as(_user("boss", UserRole.ADMIN))
        session.execute = AsyncMock(return_value=_scalar(None))

        resp = await client.patch(
            f"/api/v1/auth/users/{uuid.uuid4()}", json={"role": "ADMIN"}
        )

        assert resp.status_code == 404
        assert resp.json()["code"] == 1007


class TestGetCurrentUser:
    async def test_resolves_active_user(self) -> None:
        user = _user("satriani")
        db = AsyncMock()
        db.get = AsyncMock(return_value=user)

        resolved = await get_current_user(create_access_token(str(user.id)), db)

        assert resolved is user
        db.get.assert_awaited_once_with(UserModel, user.id)

    async def test_non_uuid_subject_is_unauthorized(self) -> None:
        db = AsyncMock()
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(create_access_token("not-a-uuid"), db)
        assert exc_info.value.status_code == 401
        db.get.assert_not_awaited()

    async def test_disabled_user_rejected(self) -> None:
        user = _user("satriani")
        user.is_active = False
        db = AsyncMock()
        db.get = AsyncMock(return_value=user)

        with pytest.raises(AccountDisabledError):
            await get_current_user(create_access_token(str(user.id)), db)

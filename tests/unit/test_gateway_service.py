"""Unit tests for user service (mocked DB)."""

import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from jose import jwt

from src.ms_common.enums import UserRole
from src.ms_common.errors import (
    AccountDisabledError,
    EmailExistsError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    SelfDemotionError,
    UsernameExistsError,
    UserNotFoundError,
)
from src.ms_gateway.auth.jwt_handler import create_access_token, create_refresh_token
from src.ms_gateway.user.db_models import UserModel
from src.ms_gateway.user.service import UserService


def _make_user(is_active: bool = True, role: str = UserRole.CUSTOMER.value) -> UserModel:
    user = UserModel()
    user.id = uuid.uuid4()
    user.username = "hendrix"
    user.email = "jimi@example.com"
    user.full_name = "Jimi Hendrix"
    user.password_hash = "$2b$12$fakehash"
    user.role = role
    user.is_active = is_active
    return user


def _result(value: UserModel | None) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


@pytest.fixture
def mock_db() -> AsyncMock:
    db = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture
def service() -> UserService:
    return UserService()


class TestRegister:
    async def test_duplicate_username_raises_error(
        self, service: UserService, mock_db: AsyncMock
    ) -> None:
        mock_db.execute = AsyncMock(return_value=_result(_make_user()))

        with pytest.raises(UsernameExistsError):
            await service.register("hendrix", "new@example.com", "Purple9Haze", mock_db)

    async def test_duplicate_email_raises_error(
        self, service: UserService, mock_db: AsyncMock
    ) -> None:
        mock_db.execute = AsyncMock(side_effect=[_result(None), _result(_make_user())])

        with pytest.raises(EmailExistsError):
            await service.register("newuser", "jimi@example.com", "Purple9Haze", mock_db)

    async def test_new_user_is_customer(
        self, service: UserService, mock_db: AsyncMock
    ) -> None:
        mock_db.execute = AsyncMock(side_effect=[_result(None), _result(None)])

        with patch("src.ms_gateway.user.service.hash_password", return_value="hashed"):
            user = await service.register(
                "newuser", "new@example.com", "Purple9Haze", mock_db, full_name="New User"
            )

        assert user.role == UserRole.CUSTOMER.value
        assert user.full_name == "New User"
        assert user.password_hash == "hashed"
        mock_db.add.assert_called_once_with(user)
        mock_db.flush.assert_awaited_once()


class TestLogin:
    async def test_wrong_username_raises_credentials_error(
        self, service: UserService, mock_db: AsyncMock
    ) -> None:
        mock_db.execute = AsyncMock(return_value=_result(None))

        with pytest.raises(InvalidCredentialsError):
            await service.login("nobody", "Purple9Haze", mock_db)

    async def test_wrong_password_raises_credentials_error(
        self, service: UserService, mock_db: AsyncMock
    ) -> None:
        mock_db.execute = AsyncMock(return_value=_result(_make_user()))

        with (
            patch("src.ms_gateway.user.service.verify_password", return_value=False),
            pytest.raises(InvalidCredentialsError),
        ):
            await service.login("hendrix", "WrongPass1", mock_db)

    async def test_disabled_account_raises_error(
        self, service: UserService, mock_db: AsyncMock
    ) -> None:
        mock_db.execute = AsyncMock(return_value=_result(_make_user(is_active=False)))

        with (
            patch("src.ms_gateway.user.service.verify_password", return_value=True),
            pytest.raises(AccountDisabledError),
        ):
            await service.login("hendrix", "Purple9Haze", mock_db)

    async def test_success_returns_token_pair_with_role(
        self, service: UserService, mock_db: AsyncMock
    ) -> None:
        user = _make_user(role=UserRole.ADMIN.value)
        mock_db.execute = AsyncMock(return_value=_result(user))

        with patch("src.ms_gateway.user.service.verify_password", return_value=True):
            returned_user, access, refresh = await service.login(
                "hendrix", "Purple9Haze", mock_db
            )

        assert returned_user is user
        assert access != refresh
        assert jwt.get_unverified_claims(access)["role"] == "ADMIN"


class TestRefresh:
    async def test_invalid_refresh_token_raises_error(
        self, service: UserService, mock_db: AsyncMock
    ) -> None:
        with pytest.raises(InvalidRefreshTokenError):
            await service.refresh("not.a.real.token", mock_db)

    async def test_access_token_used_as_refresh_raises_error(
        self, service: UserService, mock_db: AsyncMock
    ) -> None:
        with pytest.raises(InvalidRefreshTokenError):
            await service.refresh(create_access_token("user-123"), mock_db)

    async def test_deleted_user_raises_error(
        self, service: UserService, mock_db: AsyncMock
    ) -> None:
        mock_db.execute = AsyncMock(return_value=_result(None))
        with pytest.raises(InvalidRefreshTokenError):
            await service.refresh(create_refresh_token(str(uuid.uuid4())), mock_db)

    async def test_new_access_token_reflects_current_role(
        self, service: UserService, mock_db: AsyncMock
    ) -> None:
        user = _make_user(role=UserRole.ADMIN.value)
        mock_db.execute = AsyncMock(return_value=_result(user))

        access = await service.refresh(create_refresh_token(str(user.id)), mock_db)

        claims = jwt.get_unverified_claims(access)
        assert claims["sub"] == str(user.id)
        assert claims["role"] == "ADMIN"


class TestGetUser:
    async def test_malformed_id_is_not_found(
        self, service: UserService, mock_db: AsyncMock
    ) -> None:
        with pytest.raises(UserNotFoundError):
            await service.get_user("not-a-uuid", mock_db)
        mock_db.execute.assert_not_awaited()

    async def test_missing_user_is_not_found(
        self, service: UserService, mock_db: AsyncMock
    ) -> None:
        mock_db.execute = AsyncMock(return_value=_result(None))
        with pytest.raises(UserNotFoundError):
            await service.get_user(str(uuid.uuid4()), mock_db)


class TestListUsers:
    async def test_returns_users_and_total(
        self, service: UserService, mock_db: AsyncMock
    ) -> None:
        users = [_make_user(), _make_user(role=UserRole.ADMIN.value)]
        count_result = MagicMock()
        count_result.scalar_one.return_value = 7
        page_result = MagicMock()
        page_result.scalars.return_value.all.return_value = users
        mock_db.execute = AsyncMock(side_effect=[count_result, page_result])

        items, total = await service.list_users(mock_db, limit=2)

        assert items == users
        assert total == 7


class TestAdminUpdateUser:
    async def test_promotes_customer_and_commits(
        self, service: UserService, mock_db: AsyncMock
    ) -> None:
        admin = _make_user(role=UserRole.ADMIN.value)
        target = _make_user()
        mock_db.execute = AsyncMock(return_value=_result(target))

        updated = await service.admin_update_user(
            admin, str(target.id), mock_db, role=UserRole.ADMIN
        )

        assert updated.role == "ADMIN"
        mock_db.commit.assert_awaited_once()
        mock_db.rollback.assert_not_awaited()

    async def test_password_is_rehashed(
        self, service: UserService, mock_db: AsyncMock
    ) -> None:
        admin = _make_user(role=UserRole.ADMIN.value)
        target = _make_user()
        mock_db.execute = AsyncMock(return_value=_result(target))

        with patch("src.ms_gateway.user.service.hash_password", return_value="rehashed"):
            await service.admin_update_user(
                admin, str(target.id), mock_db, password="NewStrings4"
            )

        assert target.password_hash == "rehashed"

    async def test_no_changes_skips_commit(
        self, service: UserService, mock_db: AsyncMock
    ) -> None:
        admin = _make_user(role=UserRole.ADMIN.value)
        target = _make_user()
        mock_db.execute = AsyncMock(return_value=_result(target))

        await service.admin_update_user(
            admin, str(target.id), mock_db, role=UserRole.CUSTOMER, is_active=True
        )

        mock_db.commit.assert_not_awaited()

    async def test_admin_cannot_disable_self(
        self, service: UserService, mock_db: AsyncMock
    ) -> None:
        admin = _make_user(role=UserRole.ADMIN.value)
        mock_db.execute = AsyncMock(return_value=_result(admin))

        with pytest.raises(SelfDemotionError):
            await service.admin_update_user(admin, str(admin.id), mock_db, is_active=False)
        assert admin.is_active is True

    async def test_admin_cannot_demote_self(
        self, service: UserService, mock_db: AsyncMock
    ) -> None:
        admin = _make_user(role=UserRole.ADMIN.value)
        mock_db.execute = AsyncMock(return_value=_result(admin))

        with pytest.raises(SelfDemotionError):
            await service.admin_update_user(
                admin, str(admin.id), mock_db, role=UserRole.CUSTOMER
            )

    async def test_commit_failure_rolls_back(
        self, service: UserService, mock_db: AsyncMock
    ) -> None:
        admin = _make_user(role=UserRole.ADMIN.value)
        target = _make_user()
        mock_db.execute = AsyncMock(return_value=_result(target))
        mock_db.commit = AsyncMock(side_effect=RuntimeError("connection lost"))

        with pytest.raises(RuntimeError):
            await service.admin_update_user(
                admin, str(target.id), mock_db, is_active=False
            )
        mock_db.rollback.assert_awaited_once()

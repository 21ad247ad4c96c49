"""Unit tests for ms_gateway Pydantic schemas."""

import uuid
from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from src.ms_common.enums import UserRole
from src.ms_gateway.user.db_models import UserModel
from src.ms_gateway.user.schemas import (
    AdminUserUpdateRequest,
    RegisterRequest,
    RegisterResponse,
    UserInfo,
)


class TestRegisterRequest:
    def test_valid_input(self) -> None:
        req = RegisterRequest(
            username="hendrix",
            email="jimi@example.com",
            password="Purple9Haze",
            full_name="Jimi Hendrix",
        )
        assert req.username == "hendrix"
        assert req.full_name == "Jimi Hendrix"

    def test_full_name_optional(self) -> None:
        req = RegisterRequest(username="hendrix", email="a@b.com", password="Purple9Haze")
        assert req.full_name is None

    def test_username_too_short(self) -> None:
        with pytest.raises(ValidationError):
            RegisterRequest(username="ab", email="a@b.com", password="Purple9Haze")

    def test_username_invalid_chars(self) -> None:
        with pytest.raises(ValidationError):
            RegisterRequest(username="jimi!", email="a@b.com", password="Purple9Haze")

    def test_invalid_email(self) -> None:
        with pytest.raises(ValidationError):
            RegisterRequest(username="hendrix", email="not-an-email", password="Purple9Haze")

    def test_password_too_short(self) -> None:
        with pytest.raises(ValidationError):
            RegisterRequest(username="hendrix", email="a@b.com", password="Ab1")

    def test_password_no_uppercase(self) -> None:
        with pytest.raises(ValidationError):
            RegisterRequest(username="hendrix", email="a@b.com", password="purple9haze")

    def test_password_no_digit(self) -> None:
        with pytest.raises(ValidationError):
            RegisterRequest(username="hendrix", email="a@b.com", password="PurpleHaze")


class TestAdminUserUpdateRequest:
    def test_all_fields_optional(self) -> None:
        req = AdminUserUpdateRequest()
        assert req.model_dump(exclude_unset=True) == {}

    def test_role_parsed_to_enum(self) -> None:
        req = AdminUserUpdateRequest(role="ADMIN")
        assert req.role is UserRole.ADMIN

    def test_unknown_role_rejected(self) -> None:
        with pytest.raises(ValidationError):
            AdminUserUpdateRequest(role="ROADIE")

    def test_weak_password_rejected(self) -> None:
        with pytest.raises(ValidationError):
            AdminUserUpdateRequest(password="alllowercase1")


class TestUserInfo:
    def test_from_model(self) -> None:
        user = UserModel()
        user.id = uuid.UUID("6f1c2b7e-0d4a-4c55-9a57-1f0e5d3a9b01")
        user.username = "hendrix"
        user.email = "jimi@example.com"
        user.full_name = None
        user.role = "CUSTOMER"
        user.is_active = False
        user.created_at = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

        info = UserInfo.from_model(user)
        registered = RegisterResponse.from_model(user)

        assert info.user_id == "6f1c2b7e-0d4a-4c55-9a57-1f0e5d3a9b01"
        assert info.is_active is False
        assert registered.created_at == "2026-03-01T12:00:00+00:00"
        assert registered.username == "hendrix"

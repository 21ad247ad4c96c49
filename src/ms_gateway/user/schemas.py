"""Request/response models for accounts: sign-up, sign-in and user admin."""

import re

from pydantic import BaseModel, EmailStr, Field, field_validator

from src.ms_common.enums import UserRole
from src.ms_gateway.user.db_models import UserModel


def _check_password_strength(v: str) -> str:
    if not re.search(r"[A-Z]", v):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", v):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"\d", v):
        raise ValueError("Password must contain at least one digit")
    return v


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=64, pattern=r"^[a-zA-Z0-9_]+$")
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    full_name: str | None = Field(None, max_length=128)

    @field_validator("password")
    @classmethod
    def password_complexity(cls, v: str) -> str:
        return _check_password_strength(v)


class LoginRequest(BaseModel):
    username: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class AdminUserUpdateRequest(BaseModel):
    """Partial update applied by an administrator; omitted fields are left alone."""

    role: UserRole | None = None
    is_active: bool | None = None
    full_name: str | None = Field(None, max_length=128)
    password: str | None = Field(None, min_length=8, max_length=128)

    @field_validator("password")
    @classmethod
    def password_complexity(cls, v: str | None) -> str | None:
        return None if v is None else _check_password_strength(v)


class UserInfo(BaseModel):
    user_id: str
    username: str
    email: str
    full_name: str | None = None
    role: str
    is_active: bool = True

    @classmethod
    def from_model(cls, user: UserModel) -> "UserInfo":
        return cls(
            user_id=str(user.id),
            username=user.username,
            email=user.email,
            full_name=user.full_name,
            role=user.role,
            is_active=user.is_active,
        )


class RegisterResponse(UserInfo):
    created_at: str

    @classmethod
    def from_model(cls, user: UserModel) -> "RegisterResponse":
        return cls(
            **UserInfo.from_model(user).model_dump(),
            created_at=user.created_at.isoformat(),
        )


class UserListResponse(BaseModel):
    items: list[UserInfo]
    total: int


class LoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int = 1800
    user: UserInfo


class RefreshResponse(BaseModel):
    access_token: str
    expires_in: int = 1800

"""Who is calling: bearer-token user resolution, admin guard, customer scoping.

    @router.get("/orders")
    async def list_orders(user: Annotated[UserModel, Depends(get_current_user)]):
        scope = customer_scope(user)   # None for admins
"""

import uuid
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from src.ms_common.database import get_db_session
from src.ms_common.errors import (
    AccountDisabledError,
    AdminRequiredError,
    InvalidCredentialsError,
)
from src.ms_gateway.auth.jwt_handler import decode_token
from src.ms_gateway.user.db_models import UserModel

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> UserModel:
    """Active user behind the bearer token; 401 if unknown, 403 if disabled."""
    try:
        subject = decode_token(token, expected_type="access").get("sub")
        user_id = uuid.UUID(str(subject))
    except (InvalidCredentialsError, ValueError):
        raise _unauthorized() from None

    user = await db.get(UserModel, user_id)
    if user is None:
        raise _unauthorized()
    if not user.is_active:
        raise AccountDisabledError()
    return user


async def require_admin(
    current_user: Annotated[UserModel, Depends(get_current_user)],
) -> UserModel:
    if not current_user.is_admin:
        raise AdminRequiredError()
    return current_user


def customer_scope(user: UserModel) -> str | None:
    """Customer id that reads and writes are restricted to; None for admins."""
    return None if user.is_admin else str(user.id)

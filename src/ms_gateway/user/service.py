"""Store accounts: customer sign-up, sign-in, token refresh and user admin.

Registration runs inside the router's `async with db.begin()` block and only
flushes. Admin updates share the session that authenticated the caller, so
they commit or roll back themselves.
"""

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

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
from src.ms_gateway.auth.jwt_handler import (
    create_access_token,
    create_refresh_token,
    decode_token,
)
from src.ms_gateway.auth.password import hash_password, verify_password
from src.ms_gateway.user.db_models import UserModel

logger = logging.getLogger(__name__)


class UserService:
    """Stateless; one module-level instance serves every request."""

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        db: AsyncSession,
        full_name: str | None = None,
    ) -> UserModel:
        """Register a new CUSTOMER. Admins are promoted out of band."""
        # DB UNIQUE constraints are the final guard
        result = await db.execute(
            select(UserModel).where(UserModel.username == username)
        )
        if result.scalar_one_or_none() is not None:
            raise UsernameExistsError()

        result = await db.execute(
            select(UserModel).where(UserModel.email == email)
        )
        if result.scalar_one_or_none() is not None:
            raise EmailExistsError()

        user = UserModel(
            username=username,
            email=email,
            password_hash=hash_password(password),
            full_name=full_name,
            role=UserRole.CUSTOMER.value,
            is_active=True,
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)
        logger.info("Registered user %s (%s)", user.username, user.id)
        return user

    async def login(
        self,
        username: str,
        password: str,
        db: AsyncSession,
    ) -> tuple[UserModel, str, str]:
        """Authenticate and return (user, access_token, refresh_token).

        Unknown user and wrong password both raise InvalidCredentialsError so
        usernames cannot be enumerated.
        """
        result = await db.execute(
            select(UserModel).where(UserModel.username == username)
        )
        user = result.scalar_one_or_none()

        if user is None or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()

        if not user.is_active:
            raise AccountDisabledError()

        return (
            user,
            create_access_token(str(user.id), user.role),
            create_refresh_token(str(user.id)),
        )

    async def refresh(self, refresh_token: str, db: AsyncSession) -> str:
        """Validate a refresh token and issue a new access token with the current role."""
        payload = decode_token(refresh_token, expected_type="refresh")
        user_id = str(payload["sub"])

        result = await db.execute(select(UserModel).where(UserModel.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise InvalidRefreshTokenError()
        if not user.is_active:
            raise AccountDisabledError()
        return create_access_token(user_id, user.role)

    async def get_user(self, user_id: str, db: AsyncSession) -> UserModel:
        try:
            key = uuid.UUID(user_id)
        except ValueError:
            raise UserNotFoundError(user_id) from None
        result = await db.execute(select(UserModel).where(UserModel.id == key))
        user = result.scalar_one_or_none()
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def list_users(
        self,
        db: AsyncSession,
        role: UserRole | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[UserModel], int]:
        """Users ordered by username, plus the total matching count."""
        query = select(UserModel)
        count_query = select(func.count()).select_from(UserModel)
        if role is not None:
            query = query.where(UserModel.role == role.value)
            count_query = count_query.where(UserModel.role == role.value)

        total = (await db.execute(count_query)).scalar_one()
        result = await db.execute(
            query.order_by(UserModel.username).limit(limit).offset(offset)
        )
        return list(result.scalars().all()), total

    async def admin_update_user(
        self,
        acting_admin: UserModel,
        user_id: str,
        db: AsyncSession,
        role: UserRole | None = None,
        is_active: bool | None = None,
        full_name: str | None = None,
        password: str | None = None,
    ) -> UserModel:
        """Change role, active flag, display name or password of any account.

        An admin cannot strip their own ADMIN role or disable themselves, so
        the store always keeps at least the acting administrator.
        """
        user = await self.get_user(user_id, db)

        if user.id == acting_admin.id and (
            (role is not None and role != UserRole.ADMIN) or is_active is False
        ):
            raise SelfDemotionError()

        changed = []
        if role is not None and role.value != user.role:
            user.role = role.value
            changed.append("role")
        if is_active is not None and is_active != user.is_active:
            user.is_active = is_active
            changed.append("is_active")
        if full_name is not None:
            user.full_name = full_name
            changed.append("full_name")
        if password is not None:
            user.password_hash = hash_password(password)
            changed.append("password")

        if changed:
            try:
                await db.commit()
            except Exception:
                await db.rollback()
                raise
            await db.refresh(user)
            logger.info(
                "Admin %s updated user %s: %s",
                acting_admin.username,
                user.username,
                ", ".join(changed),
            )
        return user

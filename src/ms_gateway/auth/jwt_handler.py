"""Signed tokens for store customers and administrators.

HS256 with the shared JWT_SECRET, issuer set to APP_NAME. Access tokens carry
the role as an informational claim only: authorization re-reads the role
from the users table (see auth.dependencies), so a demoted admin loses
access on the next request rather than at token expiry.
"""

from datetime import UTC, datetime, timedelta
from typing import Any, Literal

from jose import JWTError, jwt

from config.settings import settings
from src.ms_common.enums import UserRole
from src.ms_common.errors import InvalidCredentialsError, InvalidRefreshTokenError

TokenType = Literal["access", "refresh"]

_ALGORITHM = settings.JWT_ALGORITHM
_ACCESS_EXPIRE = timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
_REFRESH_EXPIRE = timedelta(days=settings.JWT_REFRESH_EXPIRE_DAYS)


def _issue(user_id: str, token_type: TokenType, lifetime: timedelta, **claims: Any) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": user_id,
        "type": token_type,
        "iss": settings.APP_NAME,
        "iat": now,
        "exp": now + lifetime,
        **claims,
    }
    return str(jwt.encode(payload, settings.JWT_SECRET, algorithm=_ALGORITHM))


def create_access_token(user_id: str, role: str = UserRole.CUSTOMER.value) -> str:
    return _issue(user_id, "access", _ACCESS_EXPIRE, role=role)


def create_refresh_token(user_id: str) -> str:
    """Refresh tokens carry no role and are not rotated on use."""
    return _issue(user_id, "refresh", _REFRESH_EXPIRE)


def decode_token(token: str, expected_type: TokenType) -> dict[str, Any]:
    """Verify signature, expiry, issuer and token type.

    A bad access token raises InvalidCredentialsError, a bad refresh token
    InvalidRefreshTokenError, so each endpoint reports the right 401.
    """
    error = InvalidCredentialsError if expected_type == "access" else InvalidRefreshTokenError
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[_ALGORITHM],
            issuer=settings.APP_NAME,
        )
    except JWTError:
        raise error() from None

    if payload.get("type") != expected_type:
        raise error()
    return payload

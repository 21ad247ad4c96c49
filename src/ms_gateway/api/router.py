"""Auth API router: customer sign-up and sign-in, token refresh, own profile,
and the administrator's user management endpoints.

request_id is read from request.state (injected by RequestLogMiddleware).
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.ms_common.database import get_db_session
from src.ms_common.enums import UserRole
from src.ms_common.response import ApiResponse, success_response
from src.ms_gateway.auth.dependencies import get_current_user, require_admin
from src.ms_gateway.user.db_models import UserModel
from src.ms_gateway.user.schemas import (
    AdminUserUpdateRequest,
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    RefreshResponse,
    RegisterRequest,
    RegisterResponse,
    UserInfo,
    UserListResponse,
)
from src.ms_gateway.user.service import UserService

router = APIRouter(prefix="/auth", tags=["auth"])
_service = UserService()


def get_request_id(request: Request) -> str | None:
    """Read request_id injected by RequestLogMiddleware."""
    return getattr(request.state, "request_id", None)


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse,
    summary="Customer registration",
)
async def register(
    request: Request,
    body: RegisterRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    async with db.begin():
        user = await _service.register(
            body.username, body.email, body.password, db, full_name=body.full_name
        )
    return success_response(
        RegisterResponse.from_model(user).model_dump(),
        get_request_id(request),
        "User registered successfully",
    )


@router.post("/login", response_model=ApiResponse, summary="Sign in")
async def login(
    request: Request,
    body: LoginRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    user, access_token, refresh_token = await _service.login(body.username, body.password, db)

    data = LoginResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=settings.JWT_EXPIRE_MINUTES * 60,
        user=UserInfo.from_model(user),
    )
    return success_response(data.model_dump(), get_request_id(request), "Login successful")


@router.post("/refresh", response_model=ApiResponse, summary="Refresh access token")
async def refresh_token(
    request: Request,
    body: RefreshRequest,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    new_access_token = await _service.refresh(body.refresh_token, db)

    data = RefreshResponse(
        access_token=new_access_token,
        expires_in=settings.JWT_EXPIRE_MINUTES * 60,
    )
    return success_response(data.model_dump(), get_request_id(request), "Token refreshed")


@router.get("/me", response_model=ApiResponse, summary="Current user profile")
async def me(
    request: Request,
    current_user: Annotated[UserModel, Depends(get_current_user)],
) -> ApiResponse:
    return success_response(
        UserInfo.from_model(current_user).model_dump(), get_request_id(request)
    )


@router.get("/users", response_model=ApiResponse, summary="List users (admin)")
async def list_users(
    request: Request,
    _admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    role: UserRole | None = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> ApiResponse:
    users, total = await _service.list_users(db, role=role, limit=limit, offset=offset)
    data = UserListResponse(items=[UserInfo.from_model(u) for u in users], total=total)
    return success_response(data.model_dump(), get_request_id(request))


@router.patch(
    "/users/{user_id}", response_model=ApiResponse, summary="Update a user (admin)"
)
async def update_user(
    request: Request,
    user_id: str,
    body: AdminUserUpdateRequest,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    user = await _service.admin_update_user(
        admin,
        user_id,
        db,
        role=body.role,
        is_active=body.is_active,
        full_name=body.full_name,
        password=body.password,
    )
    return success_response(
        UserInfo.from_model(user).model_dump(), get_request_id(request), "User updated"
    )

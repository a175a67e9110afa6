"""FastAPI router for user registration, lookup, login, and token refresh."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Header, HTTPException, Response

from fluffy.application.dto.user_models import (
    LoginResponse,
    LoginUserRequest,
    RefreshTokenRequest,
    RegisterUserRequest,
    TokenResponse,
    UserResponse,
)
from fluffy.application.services.user_service import (
    LoginOutcome,
    RefreshOutcome,
    RegisterOutcome,
    RegisterUserInput,
    UserService,
)
from fluffy.infrastructure.http.auth_guard import (
    AccessTokenGuard,
    InvalidAuthTokenError,
    MissingAuthTokenError,
)

USER_BASE_PATH = "/api/v1/user"


def build_user_router(
    *,
    user_service: UserService,
    auth_guard: AccessTokenGuard,
) -> APIRouter:
    """Build router exposing the v1 user and auth endpoints."""

    router = APIRouter(prefix=USER_BASE_PATH, tags=["user"])

    @router.get("/me", response_model=UserResponse)
    async def get_current_user(
        authorization: Annotated[str | None, Header()] = None,
    ) -> UserResponse:
        try:
            user = await auth_guard.require_user(authorization_header=authorization)
        except (MissingAuthTokenError, InvalidAuthTokenError) as exc:
            raise HTTPException(
                status_code=401,
                detail=str(exc),
                headers={"WWW-Authenticate": "Bearer"},
            ) from exc
        return UserResponse.from_record(user)

    @router.get("/{user_id}", response_model=UserResponse)
    async def get_user(user_id: UUID) -> UserResponse:
        user = await user_service.get_user_by_id(user_id=user_id)
        if user is None:
            raise HTTPException(status_code=404, detail="user not found")
        return UserResponse.from_record(user)

    @router.post("", response_model=UserResponse, status_code=201)
    async def register_user(payload: RegisterUserRequest, response: Response) -> UserResponse:
        try:
            result = await user_service.register_user(
                RegisterUserInput(
                    email=payload.email,
                    password=payload.password,
                    first_name=payload.first_name,
                    last_name=payload.last_name,
                )
            )
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc

        if result.outcome is RegisterOutcome.EMAIL_ALREADY_REGISTERED:
            raise HTTPException(status_code=409, detail="email already registered")

        assert result.user is not None
        response.headers["Location"] = f"{USER_BASE_PATH}/{result.user.user_id}"
        return UserResponse.from_record(result.user)

    @router.post("/auth/login", response_model=LoginResponse)
    async def login_user(payload: LoginUserRequest) -> LoginResponse:
        result = await user_service.login_user(email=payload.email, password=payload.password)
        if result.outcome is not LoginOutcome.SUCCESS:
            raise HTTPException(status_code=401, detail="invalid credentials")

        assert result.user is not None
        assert result.tokens is not None
        return LoginResponse(
            access_token=result.tokens.access_token,
            refresh_token=result.tokens.refresh_token,
            user=UserResponse.from_record(result.user),
        )

    @router.post("/auth/refresh-token", response_model=TokenResponse)
    async def refresh_token(payload: RefreshTokenRequest) -> TokenResponse:
        result = await user_service.refresh_user_token(
            access_token=payload.access_token,
            refresh_token=payload.refresh_token,
        )
        if result.outcome is not RefreshOutcome.SUCCESS:
            raise HTTPException(status_code=401, detail="invalid token")

        assert result.tokens is not None
        return TokenResponse(
            access_token=result.tokens.access_token,
            refresh_token=result.tokens.refresh_token,
        )

    return router

"""api entrypoint and HTTP route wiring."""

from __future__ import annotations

import logging
from datetime import timedelta

import uvicorn
from fastapi import FastAPI

from fluffy.application.ports.token_service_port import TokenServicePort
from fluffy.application.ports.user_repository_port import UserRepositoryPort
from fluffy.application.services.user_service import UserService
from fluffy.config.settings import Settings, load_settings
from fluffy.infrastructure.db.session import create_session_factory
from fluffy.infrastructure.db.user_repository import SqlAlchemyUserRepository
from fluffy.infrastructure.http.auth_guard import AccessTokenGuard
from fluffy.infrastructure.http.request_logging import register_request_logging
from fluffy.infrastructure.http.user_router import build_user_router
from fluffy.infrastructure.logging import configure_logging
from fluffy.infrastructure.security.password_hasher import (
    PasswordHashingParameters,
    Pbkdf2PasswordHasher,
)
from fluffy.infrastructure.security.token_service import JwtTokenService

API_HOST = "0.0.0.0"
API_PORT = 8000
logger = logging.getLogger(__name__)


def build_user_repository(database_url: str) -> UserRepositoryPort:
    """Build user repository with SQLAlchemy session factory."""

    session_factory = create_session_factory(database_url)
    return SqlAlchemyUserRepository(session_factory)


def build_user_service(
    *,
    settings: Settings,
    users: UserRepositoryPort,
    token_service: TokenServicePort,
) -> UserService:
    """Build user service from settings-driven hasher and token lifetimes."""

    password_hasher = Pbkdf2PasswordHasher(
        PasswordHashingParameters(iterations=settings.password_hash_iterations)
    )
    return UserService(
        users=users,
        password_hasher=password_hasher,
        token_service=token_service,
        refresh_token_ttl=timedelta(days=settings.refresh_token_ttl_days),
    )


def create_app(
    *,
    settings: Settings | None = None,
    user_service: UserService | None = None,
    user_repository: UserRepositoryPort | None = None,
    token_service: TokenServicePort | None = None,
) -> FastAPI:
    """Create FastAPI app exposing the v1 user and auth routes."""

    if settings is None:
        settings = load_settings()
    configure_logging(level=settings.log_level)

    if user_repository is None:
        user_repository = build_user_repository(settings.database_url)
    if token_service is None:
        token_service = JwtTokenService.from_settings(settings)
    if user_service is None:
        user_service = build_user_service(
            settings=settings,
            users=user_repository,
            token_service=token_service,
        )

    app = FastAPI(title="Fluffy API")
    register_request_logging(app)
    app.include_router(
        build_user_router(
            user_service=user_service,
            auth_guard=AccessTokenGuard(
                token_service=token_service,
                user_repository=user_repository,
            ),
        )
    )
    logger.info(
        "api_app_created issuer=%s audience=%s",
        settings.token_issuer,
        settings.token_audience,
    )
    return app


def run_asgi_server(*, host: str = API_HOST, port: int = API_PORT) -> None:
    """Run the API as a long-lived ASGI process using application factory mode."""

    uvicorn.run(
        "apps.api.main:create_app",
        host=host,
        port=port,
        factory=True,
    )


def main() -> None:
    """Run api runtime process."""

    run_asgi_server()


if __name__ == "__main__":
    main()

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from pathlib import Path
from uuid import UUID

import pytest
import sqlalchemy as sa
from alembic.config import Config
from fastapi.testclient import TestClient

from alembic import command
from apps.api.main import create_app
from fluffy.config.settings import Settings
from fluffy.domain.auth.claims import Claim, ClaimTypes
from fluffy.infrastructure.security.token_service import JwtTokenService

SECRET_KEY = "integration-secret-" * 4
ISSUER = "fluffy-api"
AUDIENCE = "fluffy-clients"
REGISTER_PAYLOAD = {
    "email": "a@example.com",
    "password": "correct-password",
    "first_name": "Ada",
    "last_name": "Lovelace",
}


def _upgrade_head(tmp_path: Path, filename: str) -> tuple[str, str]:
    db_path = tmp_path / filename
    sync_url = f"sqlite+pysqlite:///{db_path}"
    async_url = f"sqlite+aiosqlite:///{db_path}"

    alembic_config = Config("alembic.ini")
    alembic_config.set_main_option("sqlalchemy.url", sync_url)
    alembic_config.attributes["configure_logger"] = False
    command.upgrade(alembic_config, "head")

    return sync_url, async_url


def _settings(async_url: str) -> Settings:
    return Settings(
        _env_file=None,
        DATABASE_URL=async_url,
        TOKEN_SECRET_KEY=SECRET_KEY,
        TOKEN_ISSUER=ISSUER,
        TOKEN_AUDIENCE=AUDIENCE,
        PASSWORD_HASH_ITERATIONS=1_000,
    )  # type: ignore[call-arg]


def _build_client(async_url: str, *, token_service: JwtTokenService | None = None) -> TestClient:
    return TestClient(create_app(settings=_settings(async_url), token_service=token_service))


def _user_row(sync_url: str) -> sa.RowMapping:
    with sa.create_engine(sync_url).begin() as connection:
        return connection.execute(
            sa.text(
                "SELECT id, email, last_login_at, refresh_token, refresh_token_expires_at "
                "FROM users WHERE email = 'a@example.com'"
            )
        ).mappings().one()


def test_routes_are_registered_under_v1_user_prefix(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "routes.db")
    app = create_app(settings=_settings(async_url))

    paths = app.openapi()["paths"]

    assert "post" in paths["/api/v1/user"]
    assert "get" in paths["/api/v1/user/{user_id}"]
    assert "get" in paths["/api/v1/user/me"]
    assert "post" in paths["/api/v1/user/auth/login"]
    assert "post" in paths["/api/v1/user/auth/refresh-token"]


def test_migrations_keep_existing_root_log_handlers(tmp_path: Path) -> None:
    root_logger = logging.getLogger()
    handler = logging.NullHandler()
    root_logger.addHandler(handler)
    try:
        _upgrade_head(tmp_path, "handlers.db")
        assert handler in root_logger.handlers
    finally:
        root_logger.removeHandler(handler)


def test_register_then_duplicate_registration_conflicts(tmp_path: Path) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, "register.db")

    with _build_client(async_url) as client:
        created = client.post("/api/v1/user", json=REGISTER_PAYLOAD)
        duplicate = client.post("/api/v1/user", json=REGISTER_PAYLOAD)
        fetched = client.get(f"/api/v1/user/{created.json()['id']}")

    assert created.status_code == 201
    body = created.json()
    assert body["email"] == "a@example.com"
    assert body["last_login_at"] is None
    assert "password" not in body
    assert created.headers["location"] == f"/api/v1/user/{body['id']}"
    assert duplicate.status_code == 409
    assert fetched.status_code == 200
    assert fetched.json() == body

    with sa.create_engine(sync_url).begin() as connection:
        count = connection.execute(sa.text("SELECT COUNT(*) FROM users")).scalar_one()
        password_hash = connection.execute(sa.text("SELECT password_hash FROM users")).scalar_one()
    assert count == 1
    assert password_hash != "correct-password"


def test_register_rejects_invalid_payload(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "register_invalid.db")

    with _build_client(async_url) as client:
        missing_field = client.post("/api/v1/user", json={"email": "a@example.com"})
        blank_password = client.post("/api/v1/user", json={**REGISTER_PAYLOAD, "password": "  "})

    assert missing_field.status_code == 422
    assert blank_password.status_code == 422


def test_get_unknown_user_returns_404(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "unknown.db")

    with _build_client(async_url) as client:
        response = client.get("/api/v1/user/00000000-0000-0000-0000-000000000000")

    assert response.status_code == 404


def test_login_with_wrong_password_is_unauthorized_and_writes_nothing(tmp_path: Path) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, "login_wrong.db")

    with _build_client(async_url) as client:
        client.post("/api/v1/user", json=REGISTER_PAYLOAD)
        response = client.post(
            "/api/v1/user/auth/login",
            json={"email": "a@example.com", "password": "wrong-password"},
        )

    assert response.status_code == 401
    assert "access_token" not in response.json()
    row = _user_row(sync_url)
    assert row["last_login_at"] is None
    assert row["refresh_token"] is None
    assert row["refresh_token_expires_at"] is None


def test_login_returns_tokens_and_records_session(tmp_path: Path) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, "login.db")

    with _build_client(async_url) as client:
        client.post("/api/v1/user", json=REGISTER_PAYLOAD)
        response = client.post(
            "/api/v1/user/auth/login",
            json={"email": "A@Example.com", "password": "correct-password"},
        )
        me = client.get(
            "/api/v1/user/me",
            headers={"Authorization": f"Bearer {response.json()['access_token']}"},
        )

    assert response.status_code == 200
    body = response.json()
    assert body["access_token"].count(".") == 2
    assert body["refresh_token"]
    assert body["user"]["email"] == "a@example.com"
    assert body["user"]["last_login_at"] is not None

    row = _user_row(sync_url)
    assert row["last_login_at"] is not None
    assert row["refresh_token"] == body["refresh_token"]
    assert row["refresh_token_expires_at"] is not None

    assert me.status_code == 200
    assert me.json()["id"] == body["user"]["id"]


def test_me_requires_valid_bearer_token(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "me.db")

    with _build_client(async_url) as client:
        missing = client.get("/api/v1/user/me")
        garbage = client.get("/api/v1/user/me", headers={"Authorization": "Bearer x.y.z"})

    assert missing.status_code == 401
    assert garbage.status_code == 401
    assert garbage.headers["www-authenticate"] == "Bearer"


def test_refresh_rotates_pair_and_rejects_replayed_refresh_token(tmp_path: Path) -> None:
    sync_url, async_url = _upgrade_head(tmp_path, "refresh.db")

    with _build_client(async_url) as client:
        client.post("/api/v1/user", json=REGISTER_PAYLOAD)
        login = client.post(
            "/api/v1/user/auth/login",
            json={"email": "a@example.com", "password": "correct-password"},
        ).json()

        stale = client.post(
            "/api/v1/user/auth/refresh-token",
            json={"access_token": login["access_token"], "refresh_token": "stale-token"},
        )
        refreshed = client.post(
            "/api/v1/user/auth/refresh-token",
            json={
                "access_token": login["access_token"],
                "refresh_token": login["refresh_token"],
            },
        )
        replayed = client.post(
            "/api/v1/user/auth/refresh-token",
            json={
                "access_token": login["access_token"],
                "refresh_token": login["refresh_token"],
            },
        )

    assert stale.status_code == 401
    assert refreshed.status_code == 200
    pair = refreshed.json()
    assert pair["access_token"] != login["access_token"]
    assert pair["refresh_token"] != login["refresh_token"]
    assert replayed.status_code == 401
    assert _user_row(sync_url)["refresh_token"] == pair["refresh_token"]


def test_refresh_accepts_expired_access_token(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "refresh_expired.db")

    with _build_client(async_url) as client:
        registered = client.post("/api/v1/user", json=REGISTER_PAYLOAD).json()
        login = client.post(
            "/api/v1/user/auth/login",
            json={"email": "a@example.com", "password": "correct-password"},
        ).json()
        expired_signer = JwtTokenService(
            secret_key=SECRET_KEY,
            issuer=ISSUER,
            audience=AUDIENCE,
            now=lambda: datetime.now(tz=UTC) - timedelta(hours=1),
        )
        expired_access_token = expired_signer.generate_access_token(
            [Claim(ClaimTypes.NAME_IDENTIFIER, str(UUID(registered["id"])))]
        )
        response = client.post(
            "/api/v1/user/auth/refresh-token",
            json={"access_token": expired_access_token, "refresh_token": login["refresh_token"]},
        )

    assert response.status_code == 200


def test_refresh_with_forged_access_token_is_unauthorized(tmp_path: Path) -> None:
    _, async_url = _upgrade_head(tmp_path, "refresh_forged.db")

    with _build_client(async_url) as client:
        registered = client.post("/api/v1/user", json=REGISTER_PAYLOAD).json()
        login = client.post(
            "/api/v1/user/auth/login",
            json={"email": "a@example.com", "password": "correct-password"},
        ).json()
        forger = JwtTokenService(
            secret_key="forger-secret-" * 5,
            issuer=ISSUER,
            audience=AUDIENCE,
        )
        forged = forger.generate_access_token(
            [Claim(ClaimTypes.NAME_IDENTIFIER, registered["id"])]
        )
        response = client.post(
            "/api/v1/user/auth/refresh-token",
            json={"access_token": forged, "refresh_token": login["refresh_token"]},
        )

    assert response.status_code == 401


def test_requests_are_logged_with_timing(
    tmp_path: Path,
    caplog: pytest.LogCaptureFixture,
) -> None:
    _, async_url = _upgrade_head(tmp_path, "request_logging.db")

    with _build_client(async_url) as client:
        with caplog.at_level(logging.INFO, logger="fluffy.infrastructure.http.request_logging"):
            client.get("/api/v1/user/00000000-0000-0000-0000-000000000000")

    messages = [record.getMessage() for record in caplog.records]
    assert any(
        message.startswith("request_started method=GET path=/api/v1/user/") for message in messages
    )
    assert any(
        "request_completed method=GET" in message and "status=404" in message
        for message in messages
    )

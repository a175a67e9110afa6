"""Runtime settings loaded from environment variables."""

from functools import lru_cache
from typing import Annotated

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

NonEmptyStr = Annotated[str, Field(min_length=1)]
NonNegativeInt = Annotated[int, Field(ge=0)]
PositiveInt = Annotated[int, Field(gt=0)]

# HS512 needs a key at least as long as its 64-byte digest.
MIN_TOKEN_SECRET_LENGTH = 64


class Settings(BaseSettings):
    """Environment-driven application settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: NonEmptyStr = Field(validation_alias="DATABASE_URL")
    token_secret_key: Annotated[str, Field(min_length=MIN_TOKEN_SECRET_LENGTH)] = Field(
        validation_alias="TOKEN_SECRET_KEY",
    )
    token_issuer: NonEmptyStr = Field(validation_alias="TOKEN_ISSUER")
    token_audience: NonEmptyStr = Field(validation_alias="TOKEN_AUDIENCE")
    access_token_ttl_minutes: PositiveInt = Field(
        default=15,
        validation_alias="ACCESS_TOKEN_TTL_MINUTES",
    )
    refresh_token_ttl_days: PositiveInt = Field(
        default=7,
        validation_alias="REFRESH_TOKEN_TTL_DAYS",
    )
    token_clock_skew_seconds: NonNegativeInt = Field(
        default=60,
        validation_alias="TOKEN_CLOCK_SKEW_SECONDS",
    )
    password_hash_iterations: PositiveInt = Field(
        default=10_000,
        validation_alias="PASSWORD_HASH_ITERATIONS",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Load and cache application settings."""

    return Settings()  # type: ignore[call-arg]

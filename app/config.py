"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="Andrate", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_bearer: str | None = Field(
        default=None,
        alias="TMDB_BEARER",
        validation_alias=AliasChoices("TMDB_BEARER", "TMDB_READ_ACCESS_TOKEN"),
    )
    anilist_api_url: HttpUrl = Field(
        default="https://graphql.anilist.co", alias="ANILIST_API_URL"
    )

    provider_timeout_seconds: float = Field(
        default=15.0, alias="PROVIDER_TIMEOUT", gt=0, le=120
    )
    provider_retry_limit: int = Field(
        default=2, alias="PROVIDER_RETRY_LIMIT", ge=0, le=10
    )
    provider_retry_backoff_seconds: float = Field(
        default=0.5, alias="PROVIDER_RETRY_BACKOFF", ge=0, le=30
    )

    global_search_debounce_ms: int = Field(
        default=500, alias="GLOBAL_SEARCH_DEBOUNCE_MS", ge=0, le=10_000
    )
    browse_search_debounce_ms: int = Field(
        default=300, alias="BROWSE_SEARCH_DEBOUNCE_MS", ge=0, le=10_000
    )
    min_query_length: int = Field(default=3, alias="MIN_QUERY_LENGTH", ge=1, le=50)

    anime_search_page_size: int = Field(
        default=12, alias="ANIME_SEARCH_PAGE_SIZE", ge=1, le=50
    )
    anime_discover_page_size: int = Field(
        default=24, alias="ANIME_DISCOVER_PAGE_SIZE", ge=1, le=50
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./andrate.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("tmdb_api_key", "tmdb_bearer", mode="before")
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if value is None:
            return None
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value

    @property
    def has_tmdb_credentials(self) -> bool:
        return bool(self.tmdb_bearer or self.tmdb_api_key)

    @property
    def global_search_debounce_seconds(self) -> float:
        return self.global_search_debounce_ms / 1000

    @property
    def browse_search_debounce_seconds(self) -> float:
        return self.browse_search_debounce_ms / 1000

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()

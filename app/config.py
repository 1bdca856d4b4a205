"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Iterable, Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .services.relays import DEFAULT_RELAY_ORDER, RELAY_NAMES, ProxyChain


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="CHUM Movies", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    api_layout: Literal["gogophim", "kkphim", "nguonc"] = Field(
        default="gogophim", alias="API_LAYOUT"
    )
    api_base_url: HttpUrl | None = Field(default=None, alias="API_BASE_URL")
    request_timeout_seconds: float = Field(
        default=8.0, alias="REQUEST_TIMEOUT", gt=0, le=60
    )
    relay_proxies: Annotated[tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_RELAY_ORDER, alias="RELAY_PROXIES"
    )

    auto_load_ceiling: int = Field(default=5, alias="AUTO_LOAD_CEILING", ge=1, le=20)
    page_size: int = Field(default=24, alias="PAGE_SIZE", ge=1, le=100)
    search_limit: int = Field(default=20, alias="SEARCH_LIMIT", ge=1, le=100)
    suggestion_limit: int = Field(default=8, alias="SUGGESTION_LIMIT", ge=1, le=50)
    featured_limit: int = Field(default=5, alias="FEATURED_LIMIT", ge=1, le=20)
    max_sessions: int = Field(default=256, alias="MAX_SESSIONS", ge=1)

    default_theme: Literal["light", "dark"] = Field(
        default="dark", alias="DEFAULT_THEME"
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///./chummovies.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("relay_proxies", mode="before")
    @classmethod
    def _parse_relay_proxies(cls, value: object) -> tuple[str, ...]:
        """Normalise relay selections, keeping the configured order."""

        if value is None:
            return DEFAULT_RELAY_ORDER
        if isinstance(value, str):
            raw_values = [part.strip() for part in value.split(",")]
        elif isinstance(value, Iterable):
            raw_values = [str(part).strip() for part in value]
        else:
            raise TypeError("RELAY_PROXIES must be a string or iterable of strings")

        cleaned: list[str] = []
        for entry in raw_values:
            name = entry.lower().replace("_", "-")
            if not name:
                continue
            if name in {"none", "off"}:
                return ()
            if name not in RELAY_NAMES:
                raise ValueError(f"Unknown relay proxy configured: {entry}")
            if name not in cleaned:
                cleaned.append(name)
        if not cleaned:
            return DEFAULT_RELAY_ORDER
        return tuple(cleaned)

    @property
    def proxy_chain(self) -> ProxyChain:
        """Return the relay chain in configured preference order."""

        return ProxyChain.from_names(self.relay_proxies)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()

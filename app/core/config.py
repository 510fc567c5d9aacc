from __future__ import annotations

from pathlib import Path

from pydantic import AliasChoices, Field

from pydantic_settings import BaseSettings, SettingsConfigDict

ROOT_DIR = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    JWT_SECRET_KEY: str = Field(
        default="change-me",
        validation_alias=AliasChoices("JWT_SECRET_KEY", "SUPABASE_JWT_SECRET"),
    )
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str | None = None

    CORS_ORIGINS: str = ""
    TRUST_PROXY_HEADERS: bool = False

    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100
    MAX_SEARCH_TERMS: int = 20
    MAX_FILTER_TAGS: int = 20
    TICKET_READ_ISOLATION: str = "REPEATABLE READ"


settings = Settings()

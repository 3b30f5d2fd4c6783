# app/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - DATABASE_URL (Postgres in production, SQLite for local runs/tests)
      - JWT_SECRET (secret used by the auth service to sign access tokens)

    Optional:
      - SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY (only used for
        medication image uploads to Supabase Storage)
    """

    PROJECT_NAME: str = "Pharmacy Cart API"
    API_PREFIX: str = "/api"

    # DB config
    DATABASE_URL: str

    # JWT verification (tokens are issued by the auth service)
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"

    # Supabase Storage (medication images)
    SUPABASE_URL: str | None = None
    SUPABASE_SERVICE_ROLE_KEY: str | None = None
    STORAGE_BUCKET: str = "assets"

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
    ]

    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()

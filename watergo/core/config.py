# watergo/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized server settings loaded from environment.

    Required env vars (.env):
      - DATABASE_URL (Postgres connection string; SQLite accepted for local runs)
      - JWT_SECRET (signing secret shared with the auth provider)

    Optional:
      - JWT_ALG (defaults to HS256)
      - ORDER_NUMBER_RETRIES (attempts when two checkouts race for a number)
    """

    PROJECT_NAME: str = "WaterGo Orders API"
    API_V1_STR: str = "/api/v1"

    DATABASE_URL: str

    # JWT verification (backend-side)
    JWT_SECRET: str
    JWT_ALG: str = "HS256"

    ORDER_NUMBER_RETRIES: int = 3

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()

# watergo/client/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """
    Settings for the customer app / operator console side.

    Env vars use the WATERGO_ prefix, e.g. WATERGO_API_BASE_URL.
    """

    API_BASE_URL: str = "http://localhost:8000/api/v1"
    API_TOKEN: str | None = None
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Tracking poll
    POLL_INTERVAL_SECONDS: float = 10.0
    POLL_BACKOFF_AFTER_FAILURES: int = 3
    POLL_MAX_INTERVAL_SECONDS: float = 60.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="WATERGO_",
        extra="ignore",
    )


@lru_cache
def get_client_settings() -> ClientSettings:
    return ClientSettings()

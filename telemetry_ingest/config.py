from pydantic import AnyUrl
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Literal

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    SERVICE_PORT: int = 8080
    LOG_JSON: bool = True
    LOG_LEVEL: str = "INFO"
    # Storage adapter selection: "memory" or "redis"
    STORE_ADAPTER: Literal["memory", "redis"] = "memory"
    REDIS_URL: AnyUrl | None = None
    REDIS_KEY_PREFIX: str = "telemetry"
    REDIS_SOCKET_TIMEOUT: float = 5.0
    # Ingestion limits and policy
    MAX_BATCH_SIZE: int = 5000
    MAX_REQUEST_SIZE: int = 4 * 1024 * 1024
    MAX_EVENT_DURATION_MS: int = 6 * 60 * 60 * 1000
    FUTURE_TOLERANCE_MINUTES: int = 15
    INGEST_TIMEOUT_SECONDS: float = 10.0
    # Authentication
    API_KEYS: str = ""  # Comma-separated list of API keys
    REQUIRE_AUTH: bool = False  # Whether to enforce authentication

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

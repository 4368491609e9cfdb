"""Application configuration pulled from environment variables via pydantic."""
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="config")


class Settings(BaseSettings):
    """Environment-driven configuration for the B-Reserve offline core."""
    model_config = SettingsConfigDict(env_prefix="BRESERVE_", extra="ignore")

    log_level: str = "INFO"

    exchange_cache_backend: str = "file"  # options: memory, file, redis
    exchange_cache_dir: str = ".breserve/local_storage"
    exchange_cache_redis_url: str | None = None

    currency_source: str = "edge_function"  # options: edge_function, exchangerate_api
    currency_function_url: str = "http://localhost:54321/functions/v1/currency-exchange"
    exchangerate_api_url: str = "https://api.exchangerate-api.com/v4/latest"

    supabase_url: str = "http://localhost:54321"
    supabase_anon_key: str | None = None

    offline_database_url: str = "sqlite:///.breserve/b-reserve-offline.db"

    http_timeout_seconds: float = 15.0
    http_max_retries: int = 3
    http_retry_initial_delay: float = 1.0

    @field_validator("currency_function_url", "exchangerate_api_url", "supabase_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs to avoid double slashes."""
        return str(v).rstrip("/")

    @field_validator("exchange_cache_backend", "currency_source", mode="after")
    @classmethod
    def lowercase_choice(cls, v: str) -> str:
        """Backend names are matched case-insensitively."""
        return str(v).strip().lower()


settings = Settings()


if __name__ == "__main__":
    logger.setLevel("DEBUG")
    logger.debug(f"Loaded settings: {settings.model_dump_json(indent=4)}")

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str
    redis_url: str = "redis://localhost:6379/0"
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "info"
    company_name: str = "JARVIS"
    bitrix_timeout_ms: int = 8000
    max_body_bytes: int = 2 * 1024 * 1024  # 2 MiB

    model_config = {"env_file": ".env", "extra": "ignore"}

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.strip().lower() or "info"

    @field_validator("bitrix_timeout_ms")
    @classmethod
    def positive_timeout(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("BITRIX_TIMEOUT_MS must be positive")
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]

from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    car_api_key: str = Field(default="", alias="CAR_API_KEY")
    car_api_base_url: str = Field(default="https://carapi.app/api", alias="CAR_API_BASE_URL")

    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=5000, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    # Local dev server and the deployed frontend.
    cors_allowed_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["http://localhost:3000", "https://rent-a-ride-mfvw.onrender.com"],
        alias="CORS_ALLOWED_ORIGINS",
    )

    compression_min_size: int = Field(default=1024, alias="COMPRESSION_MIN_SIZE")
    compression_level: int = Field(default=6, ge=1, le=9, alias="COMPRESSION_LEVEL")

    slow_request_threshold_ms: float = Field(default=1000.0, alias="SLOW_REQUEST_THRESHOLD_MS")
    stats_log_interval: int = Field(default=1000, gt=0, alias="STATS_LOG_INTERVAL")
    error_log_interval: int = Field(default=50, gt=0, alias="ERROR_LOG_INTERVAL")
    memory_log_sample_rate: float = Field(default=0.0001, alias="MEMORY_LOG_SAMPLE_RATE")
    health_paths: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["/health"],
        alias="HEALTH_PATHS",
    )

    @field_validator("cors_allowed_origins", "health_paths", mode="before")
    @classmethod
    def _split_csv(cls, value: object) -> object:
        # Comma-separated in the environment, e.g. "http://a,http://b".
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

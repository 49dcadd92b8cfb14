from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServiceSettings(BaseSettings):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["text", "json"] = "text"
    environment: str = "development"
    db_path: str = "./db/ridepool.db"
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)

    model_config = SettingsConfigDict(env_prefix="RIDEPOOL_")


class OSRMSettings(BaseSettings):
    base_url: str = "http://localhost:5000"
    timeout: float = Field(default=5.0, gt=0.0, le=60.0)

    # Retry configuration for transient OSRM failures
    max_retries: int = Field(default=3, ge=0, le=10)
    retry_base_delay: float = Field(default=0.5, ge=0.1, le=5.0)
    retry_multiplier: float = Field(default=2.0, ge=1.0, le=5.0)

    model_config = SettingsConfigDict(env_prefix="OSRM_")

    @field_validator("base_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("OSRM base URL must start with http:// or https://")
        return v.rstrip("/")


class PoolingSettings(BaseSettings):
    """Pooling feasibility thresholds."""

    max_detour_km: float = Field(
        gt=0.0,
        description="Largest extra road distance a pooled passenger may add to an active ride",
    )
    direction_threshold_degrees: float = Field(
        default=45.0,
        ge=0.0,
        le=180.0,
        description="Largest bearing difference between the active ride and the new trip",
    )

    model_config = SettingsConfigDict(env_prefix="POOLING_")


class MatchingSettings(BaseSettings):
    """Driver lookup and collaborator call configuration."""

    driver_search_radius_km: float = Field(default=5.0, gt=0.0, le=50.0)
    collaborator_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=120.0,
        description="Upper bound for every routing, ETA, fare, locator and notifier call",
    )
    h3_resolution: int = Field(default=9, ge=0, le=15)

    model_config = SettingsConfigDict(env_prefix="MATCHING_")


class RedisSettings(BaseSettings):
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: str = ""

    model_config = SettingsConfigDict(env_prefix="REDIS_")

    @model_validator(mode="after")
    def validate_credentials_provided(self) -> "RedisSettings":
        if not self.password:
            raise ValueError("Required credential not provided: REDIS_PASSWORD")
        return self


class APISettings(BaseSettings):
    key: str = ""

    model_config = SettingsConfigDict(env_prefix="API_")

    @model_validator(mode="after")
    def validate_credentials_provided(self) -> "APISettings":
        if not self.key:
            raise ValueError("Required credential not provided: API_KEY")
        return self


class CORSSettings(BaseSettings):
    origins: str = "http://localhost:5173,http://localhost:3000"

    model_config = SettingsConfigDict(env_prefix="CORS_")

    @property
    def origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.origins.split(",") if origin.strip()]


class Settings(BaseSettings):
    service: ServiceSettings = Field(default_factory=ServiceSettings)
    osrm: OSRMSettings = Field(default_factory=OSRMSettings)
    pooling: PoolingSettings = Field(default_factory=PoolingSettings)  # type: ignore[arg-type]
    matching: MatchingSettings = Field(default_factory=MatchingSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    api: APISettings = Field(default_factory=APISettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        case_sensitive=False,
    )


def get_settings() -> Settings:
    """Load and validate settings from environment variables."""
    return Settings()

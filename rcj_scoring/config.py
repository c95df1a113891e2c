"""Application configuration with validation."""
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Scoring engine settings, read from the environment and `.env`."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "RCJ Scoring Engine"
    APP_VERSION: str = "1.0.0"
    APP_ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = False
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "json"

    # Store
    STORE_BACKEND: Literal["snowflake", "memory"] = "snowflake"
    STORE_MAX_CONNECTIONS: int = Field(default=8, ge=1, le=64)

    # Snowflake
    SNOWFLAKE_ACCOUNT: Optional[str] = None
    SNOWFLAKE_USER: Optional[str] = None
    SNOWFLAKE_PASSWORD: Optional[SecretStr] = None
    SNOWFLAKE_DATABASE: Optional[str] = None
    SNOWFLAKE_SCHEMA: Optional[str] = None
    SNOWFLAKE_WAREHOUSE: Optional[str] = None
    SNOWFLAKE_ROLE: Optional[str] = None

    # Transactions
    TX_MAX_RETRIES: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Retries after the first attempt on serialization conflicts",
    )
    TX_RETRY_BACKOFF_SECONDS: float = Field(default=0.05, ge=0.0, le=5.0)
    TX_RETRY_BACKOFF_MAX_SECONDS: float = Field(default=1.0, ge=0.0, le=30.0)

    # Scoring
    DISPLAY_DECIMAL_PLACES: int = Field(default=2, ge=0, le=5)
    STRICT_SECTION_COUNT: bool = False
    DANCE_LEAGUE: Literal["Soccer", "Rescue", "OnStage"] = "OnStage"

    @model_validator(mode="after")
    def validate_snowflake_settings(self):
        """Snowflake credentials are required when it backs the store."""
        if self.STORE_BACKEND == "snowflake":
            missing = [
                name
                for name in ("SNOWFLAKE_ACCOUNT", "SNOWFLAKE_USER", "SNOWFLAKE_PASSWORD")
                if getattr(self, name) is None
            ]
            if missing:
                raise ValueError(f"Snowflake backend requires: {', '.join(missing)}")
        return self

    @model_validator(mode="after")
    def validate_production_settings(self):
        if self.APP_ENV == "production":
            if self.DEBUG:
                raise ValueError("DEBUG must be False in production")
            if self.STORE_BACKEND == "memory":
                raise ValueError("The memory store cannot back a production deployment")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()

from enum import Enum

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class Settings(BaseSettings):
    database_url: str = Field(default="sqlite:///./crm.db", alias="DATABASE_URL")

    # JWT Configuration
    secret_key: str = Field(alias="SECRET_KEY")
    algorithm: str = Field(default="HS256", alias="ALGORITHM")
    access_token_expire_minutes: int = Field(default=60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # Controls how much failure detail reaches API clients
    environment: Environment = Field(default=Environment.PRODUCTION, alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Frontend URL used as the single allowed CORS origin
    frontend_url: str | None = Field(default=None, alias="FRONTEND_URL")

    @field_validator("environment", mode="before")
    @classmethod
    def coerce_environment(cls, v: str | Environment | None) -> Environment:
        """Anything that is not explicitly development is treated as production."""
        if isinstance(v, Environment):
            return v
        if v is not None and str(v).strip().lower() in ("development", "dev"):
            return Environment.DEVELOPMENT
        return Environment.PRODUCTION

    @field_validator("frontend_url", mode="before")
    @classmethod
    def empty_str_to_none(cls, v: str | None) -> str | None:
        """Convert empty strings to None for optional string fields."""
        if v == "":
            return None
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()

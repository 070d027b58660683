from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_PROJECT_NAME = "Warehouse Auth API"
DEFAULT_API_V1_PREFIX = "/api/v1"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', extra='ignore')

    PROJECT_NAME: str = DEFAULT_PROJECT_NAME
    API_V1_PREFIX: str = DEFAULT_API_V1_PREFIX
    ENV: str = 'development'
    DEBUG: bool = False

    DATABASE_URL: str = 'sqlite:///./warehouse.db'
    DB_TIMEOUT_SECONDS: float = 10.0
    LOG_LEVEL: str = 'INFO'
    CORS_ORIGINS: Annotated[list[str], NoDecode] = ['*']

    SECRET_KEY: str = 'change-me'
    ALGORITHM: str = 'HS256'
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60 * 24, ge=1, le=60 * 24)
    REFRESH_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 30
    AUTH_LOCK_TIMEOUT_SECONDS: float = 5.0
    AUTO_CREATE_TABLES: bool = False

    BLOCK_SWEEP_ENABLED: bool = True
    BLOCK_SWEEP_INTERVAL_SECONDS: int = Field(default=300, ge=1)
    BLOCK_SWEEP_TIMEOUT_SECONDS: float = 60.0
    BLOCK_SWEEP_RECORD_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, value):  # type: ignore[override]
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return []
            if value == '*':
                return ['*']
            return [item.strip() for item in value.split(',') if item.strip()]
        return value


settings = Settings()

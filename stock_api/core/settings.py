from __future__ import annotations

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    APP_TITLE: str = Field("stock-api")
    APP_VERSION: str = Field("0.1.0")
    LOG_LEVEL: str = Field("INFO")
    HOST: str = Field("0.0.0.0")
    PORT: int = Field(3000)

    # Static frontend (index.html); skipped when the directory is missing
    STATIC_DIR: Optional[str] = Field("public")

    # comma separated; "*" allows any origin
    CORS_ORIGINS: str = Field("*")

    # 0 = disabled
    MAX_BODY_SIZE_BYTES: int = Field(0, ge=0)

    # DB
    DATABASE_URL: str = Field("sqlite:///./stock.db", description="mysql+pymysql://root:<PASS>@localhost/gestao_stock")
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = Field(10, ge=1)
    DB_MAX_OVERFLOW: int = Field(0, ge=0)
    DB_POOL_TIMEOUT: float = Field(30.0, gt=0)
    DB_POOL_RECYCLE: int = 1800
    DB_DISABLE_PRE_PING: bool = False
    DB_CREATE_ALL: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()

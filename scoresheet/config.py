from typing import List, Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    ENV: Literal["dev", "test", "production"] = "dev"
    APP_TITLE: str = "Scoresheet API"
    APP_VERSION: str = "1.0.0"

    DATABASE_URL: str = "sqlite:///scoresheet.db"
    SQL_ECHO: bool = False

    # Comma separated in the environment
    CORS_ORIGINS: List[str] = ["http://localhost:5173"]

    SESSION_COOKIE_NAME: str = "sessionId"
    SESSION_COOKIE_SAMESITE: Literal["lax", "strict", "none"] = "lax"
    # None means "secure in production only"
    SESSION_COOKIE_SECURE: Optional[bool] = None
    SESSION_TTL_SECONDS: int = 60 * 60
    REMEMBER_ME_TTL_SECONDS: int = 7 * 24 * 60 * 60
    SESSION_SWEEP_INTERVAL_SECONDS: float = 60 * 60

    MIN_PASSWORD_LENGTH: int = 6

    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _split_origins(cls, v):
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @property
    def cookie_secure(self) -> bool:
        if self.SESSION_COOKIE_SECURE is not None:
            return self.SESSION_COOKIE_SECURE
        return self.ENV == "production"


settings = Settings()

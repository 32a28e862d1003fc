from typing import List, Optional

from pydantic import Field, SecretStr, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOCAL_DEV_ORIGINS = ["http://localhost:5173", "http://localhost:3000"]


class Settings(BaseSettings):
    PROJECT_NAME: str = "Contact Relay API"
    VERSION: str = "1.0.0"

    # --- Environment & Debug ---
    ENVIRONMENT: str = "local"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = "logs/contact_api.log"  # empty disables file logging
    PORT: int = 5000

    # --- Record Store ---
    DATABASE_URL: str = "sqlite:///./contact_submissions.db"
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_PRE_PING: bool = True
    STORE_CREATE_SCHEMA: bool = True
    STORE_TIMEOUT_SECONDS: float = 10.0

    # --- Mail relay ---
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USE_TLS: bool = True
    SMTP_TIMEOUT_SECONDS: float = 15.0
    MAIL_USER: Optional[str] = None
    MAIL_PASS: Optional[SecretStr] = None
    MAIL_RECEIVER: Optional[str] = None
    MAIL_SENDER_NAME: str = "Portfolio Contact"

    # --- CORS ---
    ALLOWED_ORIGINS: List[str] = Field(
        default_factory=list,
        validate_default=True,
        description="List of allowed CORS origins. Configure in .env",
    )
    ALLOWED_METHODS: List[str] = Field(
        default_factory=lambda: ["GET", "POST"],
        description="Allowed HTTP methods for CORS.",
    )
    ALLOWED_HEADERS: List[str] = Field(
        default_factory=lambda: ["Content-Type", "Accept"],
        description="Allowed HTTP headers for CORS.",
    )

    # --- Rate Limiting / Proxy ---
    CONTACT_RATE_LIMIT: int = 5
    CONTACT_RATE_WINDOW_SECONDS: int = 15 * 60
    REDIS_URL: Optional[str] = None
    TRUSTED_PROXIES: List[str] = Field(
        default_factory=lambda: ["127.0.0.1", "10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16"],
        description="CIDR ranges of trusted reverse proxies for X-Forwarded-For",
    )

    # --- Request limits ---
    MAX_BODY_BYTES: int = 10 * 1024 * 1024

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, extra="ignore"
    )

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def default_allowed_origins(
        cls, v: Optional[List[str]], info: ValidationInfo
    ) -> Optional[List[str]]:
        env = info.data.get("ENVIRONMENT") or "local"
        if env != "production":
            if v is None:
                return list(LOCAL_DEV_ORIGINS)
            if isinstance(v, str) and v.strip() in ("", "[]"):
                return list(LOCAL_DEV_ORIGINS)
            if isinstance(v, list) and len(v) == 0:
                return list(LOCAL_DEV_ORIGINS)
        return v

    @field_validator("CONTACT_RATE_LIMIT", "CONTACT_RATE_WINDOW_SECONDS", "MAX_BODY_BYTES")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @property
    def mail_configured(self) -> bool:
        return bool(self.MAIL_USER and self.MAIL_PASS and self.MAIL_RECEIVER)


settings = Settings()

# shifted_app/core/config.py
from __future__ import annotations
import logging
from typing import List, Literal

from pydantic import Field, AliasChoices, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    env: str = Field(default="dev", validation_alias=AliasChoices("env", "ENV"))
    log_level: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL"))

    # --- datastore (hosted postgres in prod, sqlite locally) ---
    database_url: str = Field(
        default="",
        validation_alias=AliasChoices("DATABASE_URL", "SHIFTED_DATABASE_URL"),
    )

    # --- smtp (old ZOHO_* names still read) ---
    smtp_host: str = Field(default="", validation_alias=AliasChoices("SMTP_HOST", "ZOHO_SMTP_HOST"))
    smtp_port: int = Field(default=587, validation_alias=AliasChoices("SMTP_PORT", "ZOHO_SMTP_PORT"))
    smtp_user: str = Field(default="", validation_alias=AliasChoices("SMTP_USER", "ZOHO_SMTP_USER"))
    smtp_pass: str = Field(default="", validation_alias=AliasChoices("SMTP_PASS", "ZOHO_SMTP_PASS"))
    mail_from_email: str = Field(
        default="",
        validation_alias=AliasChoices("MAIL_FROM_EMAIL", "ZOHO_FROM_EMAIL"),
    )
    mail_from_name: str = Field(
        default="Shifted Dating",
        validation_alias=AliasChoices("MAIL_FROM_NAME", "ZOHO_FROM_NAME"),
    )
    smtp_timeout_seconds: float = Field(default=12.0, validation_alias=AliasChoices("SMTP_TIMEOUT_SECONDS"))
    email_task_timeout_seconds: float = Field(
        default=20.0,
        validation_alias=AliasChoices("EMAIL_TASK_TIMEOUT_SECONDS"),
    )
    email_queue_size: int = Field(default=100, validation_alias=AliasChoices("EMAIL_QUEUE_SIZE"))
    email_debug: bool = Field(default=False, validation_alias=AliasChoices("WAITLIST_EMAIL_DEBUG"))
    support_email: str = Field(
        default="support@shifteddating.com",
        validation_alias=AliasChoices("SUPPORT_EMAIL"),
    )

    # --- waitlist ---
    waitlist_rate_limit: int = Field(default=10, validation_alias=AliasChoices("WAITLIST_RATE_LIMIT"))
    waitlist_rate_window_seconds: int = Field(
        default=600,
        validation_alias=AliasChoices("WAITLIST_RATE_WINDOW_SECONDS"),
    )

    # --- auth bridge / deep links ---
    site_url: str = Field(default="https://www.shifteddating.com", validation_alias=AliasChoices("SITE_URL"))
    app_scheme: str = Field(default="shifted", validation_alias=AliasChoices("APP_SCHEME"))
    bridge_next_default: str = Field(
        default="profile-setup",
        validation_alias=AliasChoices("BRIDGE_NEXT_DEFAULT"),
    )
    bridge_token_strategy: Literal["reference", "direct"] = Field(
        default="reference",
        validation_alias=AliasChoices("BRIDGE_TOKEN_STRATEGY"),
    )
    recovery_bridge_ttl_seconds: int = Field(
        default=600,
        validation_alias=AliasChoices("RECOVERY_BRIDGE_TTL_SECONDS"),
    )
    apple_app_ids_raw: str = Field(default="", validation_alias=AliasChoices("APPLE_APP_IDS"))
    cors_origins_raw: str = Field(default="", validation_alias=AliasChoices("CORS_ORIGINS"))

    # Derived/normalized
    aasa_app_ids: List[str] = []
    allowed_origins: List[str] = []

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _normalize(self):
        self.site_url = self.site_url.strip().rstrip("/")
        self.app_scheme = self.app_scheme.strip().rstrip(":/")
        self.database_url = self.database_url.strip()

        # sender falls back to the smtp login
        if not self.mail_from_email:
            self.mail_from_email = self.smtp_user

        self.aasa_app_ids = [a.strip() for a in self.apple_app_ids_raw.split(",") if a.strip()]
        self.allowed_origins = [o.strip().rstrip("/") for o in self.cors_origins_raw.split(",") if o.strip()]
        return self

    @property
    def backend_configured(self) -> bool:
        return bool(self.database_url)

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_pass)


settings = Settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger("shifted")

from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration read from the environment (and .env, if present)."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Auth
    secret_key: str | None = None  # Required to issue tokens
    jwt_algorithm: str = "HS256"
    token_expire_hours: int = 24

    database_url: str = "sqlite:///./timecapsule.db"

    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/0"

    # celery | thread | off
    scheduler_backend: str = "celery"
    scheduler_interval_seconds: float = 60.0
    unlock_cron_minute: str = "*"

    max_message_length: int = 5000
    upload_dir: str = "uploads"

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    mail_from: str = ""  # Falls back to smtp_user

    @field_validator("scheduler_backend")
    @classmethod
    def _lower_backend(cls, value: str) -> str:
        return value.strip().lower()

    @model_validator(mode="after")
    def _default_sender(self) -> "Settings":
        if not self.mail_from:
            self.mail_from = self.smtp_user
        return self

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.mail_from)


@lru_cache
def get_settings() -> Settings:
    return Settings()

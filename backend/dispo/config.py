import re

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings

DEFAULT_SECRET_KEY = "dev-secret-key-change-in-production"

_HHMM = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


class Settings(BaseSettings):
    # App
    environment: str = "development"
    log_level: str = "INFO"
    log_format: str = "text"  # "text" or "json"

    # Auth
    secret_key: str = DEFAULT_SECRET_KEY
    token_verification: bool = False
    access_token_expire_minutes: int = 30

    # Security
    allowed_origins: str = "http://localhost:5173,http://localhost:3000"

    # Notifications
    notifications_enabled: bool = True
    digest_schedule: str = "18:30"
    notification_storage: str = "memory"  # "memory" or "redis"
    redis_url: str = "redis://localhost:6379/0"

    # Email
    email_provider: str = "mock"  # "mock" or "brevo"
    email_send_timeout_seconds: float = 10.0
    email_sender_address: str = "disposition@stadtwerke-augsburg.de"
    email_sender_name: str = "Disposition SWA"
    brevo_api_url: str = "https://api.brevo.com/v3/smtp/email"
    brevo_api_key: str = ""

    model_config = {"env_file": ".env", "extra": "ignore"}

    @field_validator("digest_schedule")
    @classmethod
    def _validate_digest_schedule(cls, value: str) -> str:
        if not _HHMM.match(value):
            raise ValueError(f"digest_schedule must be HH:MM, got {value!r}")
        return value

    @model_validator(mode="after")
    def _validate_production(self):
        if self.email_provider == "brevo" and not self.brevo_api_key:
            raise ValueError("EMAIL_PROVIDER=brevo requires BREVO_API_KEY")
        if self.environment == "production":
            if self.secret_key == DEFAULT_SECRET_KEY:
                raise ValueError(
                    "Production requires a non-default SECRET_KEY"
                )
            if not self.token_verification:
                raise ValueError(
                    "Production requires TOKEN_VERIFICATION=true (unsigned bearer tokens are dev-only)"
                )
        return self


settings = Settings()

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_env: str = "development"
    log_level: str = "INFO"
    log_format: str = "json"
    database_url: str = "sqlite:///./supportdesk.db"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:8000,http://127.0.0.1:8000"

    cron_secret: str = "change-me-cron"

    operator_name: str = "Your support specialist"
    operator_email: str = "support@example.com"
    operator_phone: str | None = None
    dashboard_url: str = "http://localhost:3000/support-admin"

    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    notification_email_from: str = "bot@example.com"

    twilio_account_sid: str | None = None
    twilio_auth_token: str | None = None
    twilio_phone_number: str | None = None
    twilio_api_base_url: str = "https://api.twilio.com/2010-04-01"

    conversation_webhook_url: str | None = None
    notification_timeout_seconds: float = 10.0

    followup_threshold_minutes: int = 15
    followup_realert_after: int = 2
    followup_batch_size: int = 100

    rate_limit_enabled: bool = True
    rate_limit_requests_per_minute: int = 300
    rate_limit_exempt_paths: str = "/,/v1/health,/v1/metrics,/docs,/openapi.json"
    redis_url: str | None = None

    @field_validator("log_format", mode="before")
    @classmethod
    def normalize_log_format(cls, value: str | None) -> str:
        if not isinstance(value, str) or value.strip().lower() not in {"json", "text"}:
            return "json"
        return value.strip().lower()

    @property
    def cors_origins_list(self) -> list[str]:
        if self.app_env == "production":
            return [item.strip() for item in self.cors_origins.split(",") if item.strip()]
        dev_defaults = ["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:8000", "http://127.0.0.1:8000"]
        custom = [item.strip() for item in self.cors_origins.split(",") if item.strip()]
        return sorted(set(dev_defaults + custom))

    @property
    def rate_limit_exempt_paths_list(self) -> list[str]:
        return [item.strip() for item in self.rate_limit_exempt_paths.split(",") if item.strip()]

    @property
    def sms_configured(self) -> bool:
        return bool(self.twilio_account_sid and self.twilio_auth_token and self.twilio_phone_number)

    def validate_production_safety(self) -> None:
        if self.app_env != "production":
            return
        if self.cron_secret in {"", "change-me-cron"}:
            raise ValueError("Unsafe cron secret for production")
        if "*" in self.cors_origins:
            raise ValueError("Unsafe CORS wildcard for production")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

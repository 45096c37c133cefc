import json

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_ALLOWED_ORIGINS = ["*"]


class Settings(BaseSettings):
    database_url: str = "sqlite:///./campus_events.db"
    secret_key: str = ""
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7
    allowed_origins: list[str] = DEFAULT_ALLOWED_ORIGINS
    auto_create_tables: bool = True
    auto_run_migrations: bool = False
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000

    auth_rate_limit: int = 20
    auth_rate_window_seconds: int = 60

    recommendation_fallback_limit: int = 5

    # `allowed_origins` supports comma-separated strings or JSON lists; disable pydantic-settings JSON decoding
    # so our validator can handle both formats.
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
        enable_decoding=False,
        env_ignore_empty=True,
    )

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_allowed_origins(cls, value):
        if value is None or value == "":
            return list(DEFAULT_ALLOWED_ORIGINS)

        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return [origin for origin in parsed if origin]
            except json.JSONDecodeError:
                pass

            parsed = [origin.strip() for origin in value.split(",")]
            return [origin for origin in parsed if origin]

        if isinstance(value, (list, tuple)):
            return [origin for origin in value if origin]

        raise ValueError("allowed_origins must be a list or comma-separated string")

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value):
        if value is None or value == "":
            return "INFO"
        return str(value).strip().upper()


settings = Settings()

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    environment: str = "dev"
    base_url: str = "http://localhost:8000"
    secret_key: str = "change-me"

    database_url: str = "sqlite:///./currency_exchange.db"
    sqlite_busy_timeout_seconds: float = 30.0

    log_level: str = "INFO"

    init_admin_email: str | None = None
    init_admin_password: str | None = None

    access_token_exp_minutes: int = 60 * 24

    conversion_scale: int = 6
    exchange_update_max_attempts: int = 3
    seed_default_currencies: bool = True


settings = Settings()

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Ledger Core API"
    app_version: str = "0.1.0"
    app_env: str = "local"
    app_debug: bool = True
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    database_url: str = "sqlite+pysqlite:///./ledger.db"
    jwt_secret: str = "replace-me"
    jwt_algorithm: str = "HS256"
    metrics_enabled: bool = False
    otel_enabled: bool = False
    otel_service_name: str = "ledgercore"
    otel_exporter_otlp_endpoint: str | None = None
    otel_console_exporter: bool = False
    audit_backend: str = "memory"
    ledger_post_max_retries: int = 3
    default_currency: str = "RWF"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)


@lru_cache
def get_settings() -> Settings:
    return Settings()

from pydantic_settings import BaseSettings, SettingsConfigDict

import os

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./smo_social.db"
    timezone: str = "UTC"
    uploads_dir: str = "uploads"
    version: str = "1.0.1"

    # Used to build public media URLs and the ajaxurl handed to the front-end
    public_base_url: str = os.getenv("BASE_URL", "http://localhost:8000")

    secret_key: str = "change-me-in-production-for-jwt"
    admin_api_key: str | None = os.getenv("ADMIN_API_KEY")
    superadmin_email: str | None = None
    superadmin_password: str | None = None

    openai_api_key: str | None = os.getenv("OPENAI_API_KEY")
    openai_model: str = "gpt-4o-mini"

    graph_api_url: str = "https://graph.facebook.com/v24.0"
    platform_request_timeout: float = 30.0

    log_level: str = "INFO"
    log_ingest_url: str | None = None
    log_ingest_token: str | None = None

    analytics_cache_ttl: int = 1800
    analytics_rate_limit: int = 100
    analytics_rate_window: int = 3600

    media_max_upload_bytes: int = 10 * 1024 * 1024

    memory_monitoring_enabled: bool = True

settings = Settings()

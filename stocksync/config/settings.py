from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    database_url: str = "sqlite:///./stocksync.db"
    # Injected as the URL password when set (managed Postgres service role)
    database_service_credential: str = ""
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    debug: bool = False

    # CORS - dealership site and local admin dev server
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8888"]

    # JWT Authentication (staff tokens for the manual sync trigger)
    jwt_secret_key: str = "stocksync-dev-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60

    # Listings provider API
    provider_api_key: str = ""
    provider_api_secret: str = ""
    provider_advertiser_id: str = ""
    provider_environment: str = "sandbox"  # "sandbox" or "production"
    provider_sandbox_base_url: str = "https://api-sandbox.autotrader.co.uk"
    provider_production_base_url: str = "https://api.autotrader.co.uk"
    provider_max_retries: int = 3
    provider_base_delay_seconds: float = 1.0
    provider_max_retry_after_seconds: float = 60.0  # cap on a 429 Retry-After
    provider_timeout_seconds: float = 30.0
    provider_page_size: int = 100
    provider_correlation_header: str = "X-Correlation-Id"

    # Inbound webhooks
    provider_webhook_secret: str = ""
    provider_signature_header: str = "X-Provider-Signature"

    # Redis / Celery
    redis_url: str = ""
    celery_broker_url: str = ""
    celery_result_backend: str = ""
    sync_interval_minutes: int = 30

    # Environment
    environment: str = "development"
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def is_deployed(self) -> bool:
        return self.environment.lower() in ("production", "staging")

    @property
    def provider_base_url(self) -> str:
        if self.provider_environment.lower() == "production":
            return self.provider_production_base_url.rstrip("/")
        return self.provider_sandbox_base_url.rstrip("/")

    @property
    def effective_celery_broker(self) -> str:
        return self.celery_broker_url or self.redis_url or "memory://"

    @property
    def effective_celery_backend(self) -> str:
        return self.celery_result_backend or self.redis_url or "cache+memory://"

    def validate_provider(self) -> None:
        """Raise if the provider credentials needed for a sync are missing."""
        missing = [
            name.upper()
            for name in ("provider_api_key", "provider_api_secret", "provider_advertiser_id")
            if not getattr(self, name)
        ]
        if missing:
            raise ValueError(f"Missing required provider settings: {', '.join(missing)}")
        if self.provider_environment.lower() not in ("sandbox", "production"):
            raise ValueError("PROVIDER_ENVIRONMENT must be 'sandbox' or 'production'")

    def validate_production(self) -> None:
        """Raise if production is using insecure defaults."""
        if self.is_production and self.jwt_secret_key == "stocksync-dev-secret-change-in-production":
            raise ValueError("JWT_SECRET_KEY must be changed from the default in production")
        if self.is_production and not self.provider_webhook_secret:
            raise ValueError("PROVIDER_WEBHOOK_SECRET must be set in production")
        if self.is_production and self.provider_environment.lower() != "production":
            raise ValueError("PROVIDER_ENVIRONMENT must be 'production' in production")
        if self.is_production and not self.redis_url:
            raise ValueError("REDIS_URL must be set in production")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()

"""Central environment-driven settings for the webhook bridge.

The process loads this once at startup. Behavior is controlled by environment
variables (see `.env.example`).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class CommonSettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "orderbridge"
    log_level: str = "INFO"
    redis_url: str = "redis://redis:6379/0"
    klaviyo_api_key: str
    klaviyo_base_url: str = "https://a.klaviyo.com/api"
    klaviyo_revision: str = "2023-10-15"
    klaviyo_timeout_seconds: float = 30.0
    klaviyo_max_attempts: int = 3
    klaviyo_retry_delay_seconds: float = 0.1
    idempotency_ttl_seconds: int = 30 * 86400
    otel_exporter_otlp_endpoint: str | None = None
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = CommonSettings()

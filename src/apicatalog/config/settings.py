"""
Application settings using Pydantic.

Provides environment-based configuration loading with APICATALOG_ prefix.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./apicatalog.db"
    catalog_backend: str = "sql"  # sql, memory
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout: int = 30
    db_pool_recycle: int = 1800

    # Debug / logging
    debug: bool = False
    log_level: str = "INFO"

    # API
    api_prefix: str = "/api/v1"
    cors_origins: list[str] = []

    # Kubernetes discovery
    kubeconfig: str | None = None
    k8s_context: str | None = None
    k8s_namespace: str | None = None
    k8s_label_selector: str | None = None
    k8s_default_description_path: str = "/v3/api-docs"
    k8s_excluded_namespaces: list[str] = ["kube-system"]
    k8s_timeout_seconds: int = 30

    # Optional override for where specifications are fetched from.
    # Placeholders: {service-name}, {namespace}, {cluster-ip}, {port}
    description_url_template: str | None = None

    # Specification fetching
    fetch_max_concurrent_requests: int = 10
    fetch_timeout_seconds: int = 30
    fetch_retry_attempts: int = 3

    # Failure backoff
    backoff_max_failures: int = 3
    backoff_base_seconds: int = 60
    backoff_max_seconds: int = 3600

    # Scheduled refresh
    refresh_enabled: bool = True
    refresh_interval_ms: int = 600_000

    # Operation invocation
    invoke_timeout_seconds: int = 30

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "APICATALOG_"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "reliefweb-posting-rights"
    environment: str = "dev"
    api_key_header: str = "X-API-Key"
    client_id_header: str = "X-Client-Id"
    database_url: str | None = None
    database_pool_min_size: int = 1
    database_pool_max_size: int = 10
    privileged_domains: list[str] = []
    privileged_domain_default_rights: dict[str, str] | str = {}
    otel_enabled: bool = True
    otel_service_name: str = "reliefweb-posting-rights"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_prefix="RW_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()

"""Application configuration models for the edge service."""

from __future__ import annotations

from typing import Dict, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def env_field(default, env_name: str):
    return Field(default, validation_alias=env_name)


class EdgeSettings(BaseSettings):
    """Runtime settings for the content edge service."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", populate_by_name=True)

    bind_host: str = env_field("0.0.0.0", "GHCDN_BIND_HOST")
    port: int = env_field(8787, "GHCDN_PORT")
    redis_url: Optional[str] = env_field(None, "GHCDN_REDIS_URL")
    primary_origin_template: str = env_field(
        "https://raw.githubusercontent.com/{path}",
        "GHCDN_PRIMARY_ORIGIN",
    )
    fallback_origin_template: str = env_field(
        "https://cdn.jsdelivr.net/gh/{path}",
        "GHCDN_FALLBACK_ORIGIN",
    )
    origin_timeout_seconds: float = env_field(30.0, "GHCDN_ORIGIN_TIMEOUT")
    cache_ttl_seconds: int = env_field(60 * 60 * 24 * 7, "GHCDN_CACHE_TTL")
    weak_etag_threshold_bytes: int = env_field(512 * 1024, "GHCDN_WEAK_ETAG_THRESHOLD")
    brotli_quality: int = env_field(11, "GHCDN_BROTLI_QUALITY")
    invalidate_compressed_on_prewarm: bool = env_field(False, "GHCDN_INVALIDATE_COMPRESSED_ON_PREWARM")
    shutdown_drain_seconds: float = env_field(5.0, "GHCDN_SHUTDOWN_DRAIN_SECONDS")
    metrics_token: Optional[SecretStr] = env_field(None, "GHCDN_METRICS_TOKEN")
    log_level: str = env_field("INFO", "GHCDN_LOG_LEVEL")
    otel_exporter_endpoint: Optional[str] = env_field(None, "GHCDN_OTEL_EXPORTER_ENDPOINT")
    otel_exporter_headers: Optional[str] = env_field(None, "GHCDN_OTEL_EXPORTER_HEADERS")
    otel_sampler_ratio: float = env_field(0.1, "GHCDN_OTEL_SAMPLER_RATIO")

    @field_validator("primary_origin_template", "fallback_origin_template")
    @classmethod
    def _require_path_placeholder(cls, value: str) -> str:
        if "{path}" not in value:
            raise ValueError("origin template must contain a {path} placeholder")
        return value

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log level must be one of {', '.join(LOG_LEVELS)}")
        return level

    @field_validator("otel_sampler_ratio")
    @classmethod
    def _clamp_sampler_ratio(cls, value: float) -> float:
        return max(0.0, min(1.0, value))

    @field_validator("brotli_quality")
    @classmethod
    def _clamp_brotli_quality(cls, value: int) -> int:
        return max(0, min(11, value))

    @field_validator("cache_ttl_seconds")
    @classmethod
    def _positive_ttl(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("cache TTL must be positive")
        return value

    @property
    def otel_headers(self) -> Dict[str, str]:
        """Exporter headers parsed from ``key=value,key=value``."""
        headers: Dict[str, str] = {}
        for item in (self.otel_exporter_headers or "").split(","):
            key, _, value = item.partition("=")
            if key.strip() and value.strip():
                headers[key.strip()] = value.strip()
        return headers

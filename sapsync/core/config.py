"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    api_key_required: bool = Field(
        True,
        description="Whether API key authentication is required on admin routes",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid admin API keys",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable per-action rate limiting on guarded operations",
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )
    rate_limit_key_prefix: str = Field(
        "sapsync:rate",
        description="Namespace prepended to every rate limit counter key",
    )
    counter_store: str = Field(
        "memory",
        description="Counter store backend for rate limiting (memory, redis)",
    )
    redis_url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL used when counter_store=redis",
    )
    identity_strategy: str = Field(
        "remote_addr",
        description=(
            "Client identity resolution (remote_addr, forwarded_for). "
            "remote_addr falls back to loopback and is meant for development."
        ),
    )
    trusted_proxies: str | None = Field(
        None,
        description="Comma-separated proxy addresses whose X-Forwarded-For is honoured",
    )
    host: str = Field("127.0.0.1", description="Bind address when run with python -m sapsync.main")
    port: int = Field(8000, description="Bind port when run with python -m sapsync.main")

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Per-action request budgets, all counted per window."""

    window_seconds: int = Field(
        60,
        description="Window length shared by all action budgets",
    )
    test_connection: int = Field(5, description="SAP connection tests per window")
    manual_sync: int = Field(3, description="Manual single-entity syncs per window")
    bulk_sync: int = Field(2, description="Bulk product syncs / auto-mapping runs per window")
    product_mapping: int = Field(10, description="Manual product mappings per window")
    retry_dead_letter: int = Field(3, description="Dead letter re-enqueues per window")

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )

    def budget_for(self, action: str) -> int:
        """Return the configured request budget for a named action."""

        value = getattr(self, action, None)
        if not isinstance(value, int) or action == "window_seconds":
            raise KeyError(f"No rate limit configured for action '{action}'")
        return value


class QueueSettings(BaseSettings):
    """Event queue retry budget and backoff table."""

    max_attempts: int = Field(
        5,
        description="Failed attempts before an event is moved to the dead letter store",
    )
    retry_delays: str = Field(
        "60,300,900,3600,7200",
        description="Comma-separated retry delays in seconds, indexed by attempt",
    )
    batch_size: int = Field(10, description="Events handed to the dispatcher per cycle")
    lock_timeout: int = Field(
        300,
        description="Seconds a claimed event may stay processing before it is released again",
    )

    model_config = SettingsConfigDict(
        env_prefix="QUEUE_",
        case_sensitive=False,
    )

    @property
    def retry_delay_seconds(self) -> list[int]:
        return [int(item) for item in self.retry_delays.split(",") if item.strip()]


class CircuitBreakerSettings(BaseSettings):
    """SAP circuit breaker thresholds."""

    failure_threshold: int = Field(5, description="Failures within the window that open the circuit")
    failure_window: int = Field(60, description="Seconds over which failures are counted")
    cooldown: int = Field(30, description="Seconds the circuit stays open before a trial request")
    key_prefix: str = Field("sapsync:circuit", description="Namespace for circuit state keys")

    model_config = SettingsConfigDict(
        env_prefix="CIRCUIT_",
        case_sensitive=False,
    )


class SyncLogSettings(BaseSettings):
    """Structured sync log (entity-level audit trail) configuration."""

    enabled: bool = Field(True, description="Persist sync log entries")
    retention_days: int = Field(30, description="Days to keep sync log entries")
    max_payload_size: int = Field(
        65536,
        description="Maximum stored size of request/response payloads in characters",
    )

    model_config = SettingsConfigDict(
        env_prefix="SYNC_LOG_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Process logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format (json, plain)")
    output: str = Field("stdout", description="Log destination (stdout, file)")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(10_485_760, description="Rotate log file after this many bytes (0 disables)")
    backup_count: int = Field(5, description="Rotated log files to keep")
    request_id_header: str = Field("X-Request-ID", description="Correlation header name")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.

    Environments:
    - development: Local development (DEBUG=true)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=AppSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    queue: QueueSettings = Field(default_factory=QueueSettings)
    circuit: CircuitBreakerSettings = Field(default_factory=CircuitBreakerSettings)
    sync_log: SyncLogSettings = Field(default_factory=SyncLogSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _get_env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value


def _get_env_bool(name: str, default: bool) -> bool:
    raw = _get_env(name, None)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_env_int(name: str, default: int) -> int:
    raw = _get_env(name, None)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_env_float(name: str, default: float) -> float:
    raw = _get_env(name, None)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_env_list(name: str, default: tuple[str, ...] = ()) -> tuple[str, ...]:
    raw = _get_env(name, None)
    if raw is None:
        return default
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def clamp_ttl_days(value: int) -> int:
    return max(1, min(30, int(value)))


@dataclass(frozen=True)
class Settings:
    api_key: str | None
    rate_limit: str
    rate_limit_enabled: bool
    log_level: str
    sentry_dsn: str | None
    cache_db_path: str
    cache_ttl_days: int
    cache_purge_interval_s: int
    store_max_item_bytes: int
    store_max_total_bytes: int
    store_timeout_s: float
    analysis_enabled: bool
    analysis_mode: str
    analysis_timeout_s: float
    retry_attempts: int
    retry_base_delay_s: float
    extract_preview_limit: int
    cors_allowed_origins: tuple[str, ...]
    cors_allow_origin_regex: str | None


settings = Settings(
    api_key=_get_env("API_KEY"),
    rate_limit=_get_env("RATE_LIMIT", "30/minute") or "30/minute",
    rate_limit_enabled=_get_env_bool("RATE_LIMIT_ENABLED", True),
    log_level=_get_env("LOG_LEVEL", "INFO") or "INFO",
    sentry_dsn=_get_env("SENTRY_DSN"),
    cache_db_path=_get_env("CACHE_DB_PATH", "data/profile_cache.db") or "data/profile_cache.db",
    cache_ttl_days=clamp_ttl_days(_get_env_int("CACHE_TTL_DAYS", 7)),
    cache_purge_interval_s=_get_env_int("CACHE_PURGE_INTERVAL_S", 3600),
    store_max_item_bytes=_get_env_int("STORE_MAX_ITEM_BYTES", 64 * 1024),
    store_max_total_bytes=_get_env_int("STORE_MAX_TOTAL_BYTES", 5 * 1024 * 1024),
    store_timeout_s=_get_env_float("STORE_TIMEOUT_S", 5.0),
    analysis_enabled=_get_env_bool("ANALYSIS_ENABLED", False),
    analysis_mode=(_get_env("ANALYSIS_MODE", "section") or "section").strip().lower(),
    analysis_timeout_s=_get_env_float("ANALYSIS_TIMEOUT_S", 45.0),
    retry_attempts=_get_env_int("RETRY_ATTEMPTS", 3),
    retry_base_delay_s=_get_env_float("RETRY_BASE_DELAY_S", 0.5),
    extract_preview_limit=_get_env_int("EXTRACT_PREVIEW_LIMIT", 5),
    cors_allowed_origins=_get_env_list("CORS_ALLOWED_ORIGINS", ("http://localhost:3000",)),
    cors_allow_origin_regex=_get_env("CORS_ALLOW_ORIGIN_REGEX", r"^chrome-extension://[a-z]{32}$"),
)

if settings.analysis_mode not in {"section", "profile"}:
    raise RuntimeError("ANALYSIS_MODE must be either 'section' or 'profile'.")

if settings.retry_attempts < 1:
    raise RuntimeError("RETRY_ATTEMPTS must be at least 1.")

"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from lessonstream.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

_PROVIDERS = {"gemini", "openrouter"}


@dataclass(frozen=True)
class Settings:
  """Typed settings for the lessonstream service."""

  environment: str
  debug: bool
  allowed_origins: tuple[str, ...]
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  provider: str
  gemini_api_key: str | None
  openrouter_api_key: str | None
  openrouter_base_url: str | None
  fast_model: str | None
  quality_model: str | None
  completion_timeout_seconds: float
  max_output_tokens: int
  firebase_project_id: str | None
  firebase_service_account_json_path: str | None
  cache_enabled: bool
  cache_ttl_seconds: int
  cache_max_entries: int
  prompt_version: str
  skeleton_source_chars: int
  step_source_chars: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    raise ValueError("LESSONSTREAM_ALLOWED_ORIGINS must be set to one or more origins.")

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("LESSONSTREAM_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("LESSONSTREAM_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None, *, default: bool = False) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return default

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  return value or None


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("LESSONSTREAM_ENV", "development").lower()
  debug = _parse_bool(os.getenv("LESSONSTREAM_DEBUG"))
  allowed_origins = _parse_origins(os.getenv("LESSONSTREAM_ALLOWED_ORIGINS"))

  log_max_bytes = _positive_int("LESSONSTREAM_LOG_MAX_BYTES", "5242880")
  log_backup_count = int(os.getenv("LESSONSTREAM_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("LESSONSTREAM_LOG_BACKUP_COUNT must be zero or a positive integer.")
  # Allow opt-in logging of 4xx HTTPExceptions for diagnostics.
  log_http_4xx = _parse_bool(os.getenv("LESSONSTREAM_LOG_HTTP_4XX"))

  provider = (os.getenv("LESSONSTREAM_PROVIDER") or "gemini").strip().lower()
  if provider not in _PROVIDERS:
    raise ValueError(f"LESSONSTREAM_PROVIDER must be one of {sorted(_PROVIDERS)}.")

  completion_timeout_seconds = float(os.getenv("LESSONSTREAM_COMPLETION_TIMEOUT_SECONDS", "90"))
  if completion_timeout_seconds <= 0:
    raise ValueError("LESSONSTREAM_COMPLETION_TIMEOUT_SECONDS must be positive.")

  # Seven days mirrors how long generated skeletons stay useful for repeat requests.
  cache_ttl_seconds = _positive_int("LESSONSTREAM_CACHE_TTL_SECONDS", str(7 * 24 * 3600))

  return Settings(
    environment=environment,
    debug=debug,
    allowed_origins=allowed_origins,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=log_http_4xx,
    provider=provider,
    gemini_api_key=_optional_str(os.getenv("GEMINI_API_KEY")),
    openrouter_api_key=_optional_str(os.getenv("OPENROUTER_API_KEY")),
    openrouter_base_url=_optional_str(os.getenv("OPENROUTER_BASE_URL")),
    fast_model=_optional_str(os.getenv("LESSONSTREAM_FAST_MODEL")),
    quality_model=_optional_str(os.getenv("LESSONSTREAM_QUALITY_MODEL")),
    completion_timeout_seconds=completion_timeout_seconds,
    max_output_tokens=_positive_int("LESSONSTREAM_MAX_OUTPUT_TOKENS", "16384"),
    firebase_project_id=_optional_str(os.getenv("FIREBASE_PROJECT_ID")),
    firebase_service_account_json_path=_optional_str(os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON_PATH")),
    cache_enabled=_parse_bool(os.getenv("LESSONSTREAM_CACHE_ENABLED"), default=True),
    cache_ttl_seconds=cache_ttl_seconds,
    cache_max_entries=_positive_int("LESSONSTREAM_CACHE_MAX_ENTRIES", "512"),
    prompt_version=(os.getenv("LESSONSTREAM_PROMPT_VERSION") or "v4").strip(),
    skeleton_source_chars=_positive_int("LESSONSTREAM_SKELETON_SOURCE_CHARS", "15000"),
    step_source_chars=_positive_int("LESSONSTREAM_STEP_SOURCE_CHARS", "3000"),
  )

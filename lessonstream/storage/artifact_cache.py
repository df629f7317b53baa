"""Artifact cache: read-before-generate / write-after-generate storage."""

from __future__ import annotations

import hashlib
import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Protocol

from lessonstream.ai.pipeline.contracts import GenerationRequest, StepSpec

logger = logging.getLogger(__name__)

FOCUS_KEY_CHARS = 50
PLAN_DIGEST_CHARS = 12


class ArtifactCache(Protocol):
  """Repository contract for generated artifacts."""

  async def get(self, key: str) -> Any | None:
    """Fetch a live artifact or None."""

  async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
    """Store an artifact for `ttl_seconds` (or the default TTL)."""


@dataclass
class _Entry:
  value: Any
  expires_at: float


class InMemoryArtifactCache:
  """Process-local TTL store bounded by entry count; oldest entries are evicted first."""

  def __init__(self, *, ttl_seconds: int, max_entries: int, namespace: str = "", clock: Any = time.monotonic) -> None:
    if max_entries <= 0:
      raise ValueError("max_entries must be positive")
    self._ttl_seconds = ttl_seconds
    self._max_entries = max_entries
    self._namespace = namespace
    self._clock = clock
    self._entries: OrderedDict[str, _Entry] = OrderedDict()

  def _full_key(self, key: str) -> str:
    return f"{self._namespace}:{key}" if self._namespace else key

  def __len__(self) -> int:
    return len(self._entries)

  async def get(self, key: str) -> Any | None:
    full_key = self._full_key(key)
    entry = self._entries.get(full_key)
    if entry is None:
      return None
    if entry.expires_at <= self._clock():
      del self._entries[full_key]
      return None
    return entry.value

  async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
    full_key = self._full_key(key)
    ttl = self._ttl_seconds if ttl_seconds is None else ttl_seconds
    self._entries.pop(full_key, None)
    self._entries[full_key] = _Entry(value=value, expires_at=self._clock() + ttl)
    while len(self._entries) > self._max_entries:
      evicted, _ = self._entries.popitem(last=False)
      logger.debug("Evicted cached artifact %s", evicted)


async def cache_get(cache: ArtifactCache | None, key: str) -> Any | None:
  """Read from the cache; any cache failure counts as a miss."""
  if cache is None:
    return None
  try:
    return await cache.get(key)
  except Exception:  # noqa: BLE001
    logger.warning("Artifact cache read failed for %s; treating as miss.", key, exc_info=True)
    return None


async def cache_set(cache: ArtifactCache | None, key: str, value: Any) -> None:
  """Write to the cache; failures are logged and otherwise ignored."""
  if cache is None:
    return
  try:
    await cache.set(key, value)
  except Exception:  # noqa: BLE001
    logger.warning("Artifact cache write failed for %s.", key, exc_info=True)


def _normalize(value: str) -> str:
  return " ".join(value.strip().lower().split())


def subject_token(request: GenerationRequest) -> str:
  """Topic text for topic requests, a digest of the document for source-text requests."""
  if request.topic and request.topic.strip():
    return _normalize(request.topic)
  digest = hashlib.sha256((request.source_text or "").encode("utf-8")).hexdigest()[:16]
  return f"src-{digest}"


def _level_suffix(request: GenerationRequest) -> str:
  return f":{request.level}" if request.level else ""


_DEFAULT_SHAPING: dict[str, Any] = {"product_type": "activity", "tone": None, "subject": None, "bloom_weights": None, "allowed_interactions": None}


def _plan_suffix(request: GenerationRequest) -> str:
  """Digest of the request fields that reshape a plan beyond subject, grade, length and mode."""
  shaping = {
    "product_type": request.product_type,
    "tone": _normalize(request.tone) if request.tone else None,
    "subject": _normalize(request.subject) if request.subject else None,
    "bloom_weights": request.bloom_weights.model_dump() if request.bloom_weights else None,
    "allowed_interactions": sorted(request.allowed_interactions) if request.allowed_interactions is not None else None,
  }
  if shaping == _DEFAULT_SHAPING:
    return ""
  digest = hashlib.sha256(json.dumps(shaping, sort_keys=True, ensure_ascii=False).encode("utf-8")).hexdigest()[:PLAN_DIGEST_CHARS]
  return f":p-{digest}"


def skeleton_key(request: GenerationRequest) -> str:
  return f"skeleton:{subject_token(request)}:{_normalize(request.grade_level)}:{request.length}:{request.mode}{_level_suffix(request)}{_plan_suffix(request)}"


def step_key(request: GenerationRequest, step: StepSpec) -> str:
  focus = _normalize(step.narrative_focus or step.title)[:FOCUS_KEY_CHARS]
  return (
    f"step:{step.step_number}:{subject_token(request)}:{_normalize(request.grade_level)}:{focus}"
    f":{step.bloom_level}:{step.suggested_interaction}:{request.mode}{_level_suffix(request)}{_plan_suffix(request)}"
  )

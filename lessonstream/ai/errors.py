"""Error taxonomy for the generation pipeline."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

_RATE_LIMIT_HINTS: tuple[str, ...] = ("429", "rate limit", "too many requests", "quota", "resource exhausted")

_TRANSPORT_HINTS: tuple[str, ...] = (
  "timeout",
  "timed out",
  "connection",
  "network",
  "service unavailable",
  "bad gateway",
  "gateway",
  "503",
  "502",
  "500",
)

_AUTH_HINTS: tuple[str, ...] = ("api key", "unauthorized", "forbidden", "permission denied", "401", "403")


class FailureKind(str, Enum):
  """Why a completion call produced no usable text."""

  TIMEOUT = "timeout"
  RATE_LIMITED = "rate_limited"
  TRANSPORT = "transport"
  PROVIDER = "provider"
  EMPTY = "empty"
  AUTHENTICATION = "authentication"


class OrchestrationError(RuntimeError):
  """Raised when a request cannot be orchestrated at all."""

  status_code = 500


class RequestShapeError(OrchestrationError):
  """Raised when the generation request is malformed."""

  status_code = 400


class AuthenticationError(OrchestrationError):
  """Raised when the caller's credential is missing or rejected."""

  status_code = 401


def _match_hint(message: str, hints: Iterable[str]) -> bool:
  """Return True when any hint appears in the message."""
  return any(hint in message for hint in hints)


def classify_provider_failure(exc: BaseException) -> FailureKind:
  """Map a provider exception onto a failure kind using its message."""
  if isinstance(exc, TimeoutError):
    return FailureKind.TIMEOUT
  message = str(exc).lower()
  if _match_hint(message, _RATE_LIMIT_HINTS):
    return FailureKind.RATE_LIMITED
  if _match_hint(message, _AUTH_HINTS):
    return FailureKind.AUTHENTICATION
  if _match_hint(message, _TRANSPORT_HINTS) or isinstance(exc, ConnectionError | OSError):
    return FailureKind.TRANSPORT
  return FailureKind.PROVIDER

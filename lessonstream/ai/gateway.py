"""Two-tier model gateway with a fixed temperature policy.

The gateway is built once at startup and handed to the orchestrator. Each call
streams deltas to an optional sink while accumulating the full buffer; provider
failures and timeouts come back as a failed `GatewayOutcome` instead of raising.
Errors raised by the sink itself belong to the caller and propagate unchanged.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from lessonstream.ai.errors import FailureKind, classify_provider_failure
from lessonstream.ai.providers.base import AIModel
from lessonstream.telemetry.context import get_llm_call_context

logger = logging.getLogger(__name__)

EXAM_TEMPERATURE = 0.3
DEFAULT_TEMPERATURE = 0.7
CREATIVE_TEMPERATURE = 0.8

TokenSink = Callable[[str], Awaitable[None]] | None


class _SinkFailure(Exception):
  """Wraps an error raised by the caller's token sink so it is not taken for a provider failure."""

  def __init__(self, error: Exception) -> None:
    super().__init__(str(error))
    self.error = error


class ModelTier(str, Enum):
  """Named capability tiers."""

  FAST = "fast"
  QUALITY = "quality"


def resolve_temperature(mode: str, *, creative: bool = False) -> float:
  """Pick the sampling temperature for a call; exam mode always wins."""
  if mode == "exam":
    return EXAM_TEMPERATURE
  if creative:
    return CREATIVE_TEMPERATURE
  return DEFAULT_TEMPERATURE


@dataclass(frozen=True)
class GatewayOutcome:
  """Result of one completion call."""

  text: str
  tier: ModelTier
  model: str
  elapsed_ms: float
  failure: FailureKind | None = None
  error: str | None = None

  @property
  def ok(self) -> bool:
    return self.failure is None


class ModelGateway:
  """Routes completions to the fast or quality model."""

  def __init__(self, *, fast: AIModel, quality: AIModel, timeout_seconds: float, max_output_tokens: int = 16384) -> None:
    self._models = {ModelTier.FAST: fast, ModelTier.QUALITY: quality}
    self._timeout_seconds = timeout_seconds
    self._max_output_tokens = max_output_tokens

  def model_name(self, tier: ModelTier) -> str:
    return getattr(self._models[tier], "name", "unknown")

  async def complete(self, prompt: str, *, tier: ModelTier, temperature: float, on_token: TokenSink = None) -> GatewayOutcome:
    """Run one completion and return the accumulated text or a typed failure."""
    model = self._models[tier]
    model_name = self.model_name(tier)
    call = get_llm_call_context()
    label = call.describe() if call else "agent=unknown"
    started = time.perf_counter()
    buffer: list[str] = []

    def _elapsed() -> float:
      return round((time.perf_counter() - started) * 1000, 1)

    logger.info("Completion start tier=%s model=%s temperature=%.1f %s", tier.value, model_name, temperature, label)
    try:
      async with asyncio.timeout(self._timeout_seconds):
        async for delta in model.stream(prompt, temperature=temperature, max_output_tokens=self._max_output_tokens):
          buffer.append(delta)
          if on_token is not None:
            try:
              await on_token(delta)
            except Exception as exc:
              raise _SinkFailure(exc) from exc
    except _SinkFailure as failure:
      raise failure.error from None
    except TimeoutError:
      logger.warning("Completion timed out after %.0fs tier=%s model=%s %s", self._timeout_seconds, tier.value, model_name, label)
      return GatewayOutcome(text="", tier=tier, model=model_name, elapsed_ms=_elapsed(), failure=FailureKind.TIMEOUT, error="timeout")
    except Exception as exc:  # noqa: BLE001
      # Provider SDKs raise their own hierarchies; fold them into a typed outcome.
      kind = classify_provider_failure(exc)
      log = logger.error if kind is FailureKind.AUTHENTICATION else logger.warning
      log("Completion failed kind=%s tier=%s model=%s %s error=%s", kind.value, tier.value, model_name, label, exc)
      return GatewayOutcome(text="", tier=tier, model=model_name, elapsed_ms=_elapsed(), failure=kind, error=str(exc))

    text = "".join(buffer)
    if not text.strip():
      logger.warning("Completion returned no text tier=%s model=%s %s", tier.value, model_name, label)
      return GatewayOutcome(text="", tier=tier, model=model_name, elapsed_ms=_elapsed(), failure=FailureKind.EMPTY, error="empty completion")

    logger.info("Completion done tier=%s model=%s chars=%d took=%.1fms %s", tier.value, model_name, len(text), _elapsed(), label)
    return GatewayOutcome(text=text, tier=tier, model=model_name, elapsed_ms=_elapsed())

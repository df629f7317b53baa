"""Base class for AI agents."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from lessonstream.ai.gateway import GatewayOutcome, ModelGateway, ModelTier, TokenSink
from lessonstream.ai.json_parser import recover_json
from lessonstream.ai.pipeline.contracts import GenerationRequest, RequestContext
from lessonstream.config import Settings
from lessonstream.storage.artifact_cache import ArtifactCache
from lessonstream.telemetry.context import llm_call_context

InputT = TypeVar("InputT")
OutputT = TypeVar("OutputT")
UsageSink = Callable[[dict[str, Any]], None] | None
JsonDict = dict[str, Any]


class BaseAgent(ABC, Generic[InputT, OutputT]):
  """Base agent with shared dependencies."""

  name: str

  def __init__(self, *, gateway: ModelGateway, settings: Settings, cache: ArtifactCache | None = None, use: UsageSink = None) -> None:
    self._gateway = gateway
    self._settings = settings
    self._cache = cache
    self._usage_sink = use

  @abstractmethod
  async def run(self, input_data: InputT, ctx: RequestContext) -> OutputT:
    """Run the agent on input data."""

  def _record_usage(self, *, purpose: str, call_index: str, outcome: GatewayOutcome) -> None:
    if not self._usage_sink:
      return
    payload = {
      "model": outcome.model,
      "tier": outcome.tier.value,
      "agent": self.name,
      "purpose": purpose,
      "call_index": call_index,
      "elapsed_ms": round(outcome.elapsed_ms, 1),
      "failure": outcome.failure.value if outcome.failure else None,
    }
    self._usage_sink(payload)

  async def _complete_json(
    self,
    prompt: str,
    *,
    request: GenerationRequest,
    ctx: RequestContext,
    tier: ModelTier,
    temperature: float,
    purpose: str,
    call_index: str,
    on_token: TokenSink = None,
  ) -> tuple[JsonDict | None, GatewayOutcome]:
    """Run one gateway call and recover a JSON object; failed calls parse to None."""
    with llm_call_context(agent=self.name, topic=request.subject_label, request_id=ctx.request_id, purpose=purpose, call_index=call_index):
      outcome = await self._gateway.complete(prompt, tier=tier, temperature=temperature, on_token=on_token)
    self._record_usage(purpose=purpose, call_index=call_index, outcome=outcome)
    if not outcome.ok:
      return None, outcome
    return recover_json(outcome.text), outcome

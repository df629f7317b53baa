"""Context helpers for correlating LLM calls with upstream requests."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass


@dataclass(frozen=True)
class LlmCallContext:
  """Metadata stamped on every gateway call for log correlation."""

  agent: str
  topic: str | None
  request_id: str | None
  purpose: str | None
  call_index: str | None

  def describe(self) -> str:
    return f"agent={self.agent} purpose={self.purpose} call={self.call_index} request_id={self.request_id}"


_CURRENT_LLM_CONTEXT: ContextVar[LlmCallContext | None] = ContextVar("llm_call_context", default=None)


def get_llm_call_context() -> LlmCallContext | None:
  """Return the active LLM call context, if any."""
  return _CURRENT_LLM_CONTEXT.get()


@contextmanager
def llm_call_context(*, agent: str, topic: str | None, request_id: str | None, purpose: str | None, call_index: str | None) -> Iterator[LlmCallContext]:
  """Set call metadata for downstream gateway calls and reset it afterward."""
  context = LlmCallContext(agent=agent, topic=topic, request_id=request_id, purpose=purpose, call_index=call_index)
  token = _CURRENT_LLM_CONTEXT.set(context)

  try:
    yield context

  finally:
    _CURRENT_LLM_CONTEXT.reset(token)

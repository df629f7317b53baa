"""Base interfaces for AI providers and models."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Protocol


class ModelResponse(Protocol):
  """Response contract for buffered model outputs."""

  content: str
  usage: dict[str, int] | None


@dataclass
class SimpleModelResponse:
  """Minimal model response structure."""

  content: str
  usage: dict[str, int] | None = None


class AIModel(ABC):
  """Abstract base class for streaming text-completion models."""

  name: str

  @abstractmethod
  def stream(self, prompt: str, *, temperature: float, max_output_tokens: int) -> AsyncIterator[str]:
    """Yield text deltas for the prompt as the provider produces them."""

  async def generate(self, prompt: str, *, temperature: float, max_output_tokens: int) -> ModelResponse:
    """Buffer a full completion from the token stream."""
    parts = [delta async for delta in self.stream(prompt, temperature=temperature, max_output_tokens=max_output_tokens)]
    return SimpleModelResponse(content="".join(parts))


class Provider(ABC):
  """Abstract base class for AI providers."""

  name: str

  @abstractmethod
  def get_model(self, model: str | None = None) -> AIModel:
    """Return the model client for the provider."""

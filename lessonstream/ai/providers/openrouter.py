"""OpenRouter provider implementation using the openai SDK."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from typing import Final

from openai import AsyncOpenAI

from lessonstream.ai.providers.base import AIModel, Provider

logger = logging.getLogger(__name__)


class OpenRouterModel(AIModel):
  """OpenRouter model client over the OpenAI-compatible streaming API."""

  def __init__(self, name: str, api_key: str | None = None, base_url: str | None = None) -> None:
    self.name: str = name

    api_key = api_key or os.getenv("OPENROUTER_API_KEY")
    if not api_key:
      raise ValueError("OPENROUTER_API_KEY environment variable is required")

    # Optional attribution headers recognised by OpenRouter.
    default_headers = {}
    referer = os.getenv("OPENROUTER_HTTP_REFERER")
    if referer:
      default_headers["HTTP-Referer"] = referer
    title = os.getenv("OPENROUTER_TITLE")
    if title:
      default_headers["X-Title"] = title

    self._client = AsyncOpenAI(api_key=api_key, base_url=base_url or "https://openrouter.ai/api/v1", default_headers=default_headers or None)

  async def stream(self, prompt: str, *, temperature: float, max_output_tokens: int) -> AsyncIterator[str]:
    """Stream text deltas from OpenRouter."""
    response = await self._client.chat.completions.create(model=self.name, messages=[{"role": "user", "content": prompt}], temperature=temperature, max_tokens=max_output_tokens, stream=True)
    async for chunk in response:
      if not chunk.choices:
        continue
      delta = chunk.choices[0].delta.content
      if delta:
        yield delta


class OpenRouterProvider(Provider):
  """OpenRouter provider."""

  _DEFAULT_MODEL: Final[str] = "openai/gpt-4o-mini"

  def __init__(self, api_key: str | None = None, base_url: str | None = None) -> None:
    self.name: str = "openrouter"
    self._api_key = api_key
    self._base_url = base_url

  def get_model(self, model: str | None = None) -> AIModel:
    """Return an OpenRouter model client; OpenRouter validates model ids server-side."""
    return OpenRouterModel(model or self._DEFAULT_MODEL, api_key=self._api_key, base_url=self._base_url)

"""Gemini provider implementation using the google-genai SDK."""

from __future__ import annotations

import logging
import os
import warnings
from collections.abc import AsyncIterator
from typing import Final

from pydantic.warnings import ArbitraryTypeWarning

with warnings.catch_warnings():
  warnings.filterwarnings("ignore", message=r"<built-in function any> is not a Python type.*", category=ArbitraryTypeWarning)
  from google import genai
  from google.genai import types

from lessonstream.ai.providers.base import AIModel, Provider

logger = logging.getLogger(__name__)


class GeminiModel(AIModel):
  """Gemini model client streaming through the async client."""

  def __init__(self, name: str, api_key: str | None = None) -> None:
    self.name: str = name

    api_key = api_key or os.getenv("GEMINI_API_KEY")
    if not api_key:
      raise ValueError("GEMINI_API_KEY environment variable is required")

    self._client = genai.Client(api_key=api_key)

  async def stream(self, prompt: str, *, temperature: float, max_output_tokens: int) -> AsyncIterator[str]:
    """Stream text deltas from Gemini."""
    config = types.GenerateContentConfig(temperature=temperature, max_output_tokens=max_output_tokens)
    # Use the async client to avoid blocking the asyncio event loop.
    response = await self._client.aio.models.generate_content_stream(model=self.name, contents=prompt, config=config)
    chunks = 0
    async for chunk in response:
      text = chunk.text
      if text:
        chunks += 1
        yield text
      if chunk.usage_metadata and chunk.usage_metadata.total_token_count:
        logger.debug("Gemini usage model=%s total_tokens=%s", self.name, chunk.usage_metadata.total_token_count)
    logger.debug("Gemini stream finished model=%s chunks=%d", self.name, chunks)


class GeminiProvider(Provider):
  """Gemini provider."""

  _DEFAULT_MODEL: Final[str] = "gemini-2.5-flash"
  _AVAILABLE_MODELS: Final[set[str]] = {"gemini-2.5-pro", "gemini-2.5-flash", "gemini-2.5-flash-lite", "gemini-2.0-flash", "gemini-2.0-flash-lite"}

  def __init__(self, api_key: str | None = None) -> None:
    self.name: str = "gemini"
    self._api_key = api_key

  def get_model(self, model: str | None = None) -> AIModel:
    """Return a Gemini model client."""
    model_name = model or self._DEFAULT_MODEL
    if model_name not in self._AVAILABLE_MODELS:
      raise ValueError(f"Unsupported Gemini model '{model_name}'.")
    return GeminiModel(model_name, api_key=self._api_key)

"""Routing utilities for provider/model selection."""

from __future__ import annotations

from enum import Enum

from lessonstream.ai.gateway import ModelGateway
from lessonstream.ai.providers.base import Provider
from lessonstream.ai.providers.gemini import GeminiProvider
from lessonstream.ai.providers.openrouter import OpenRouterProvider
from lessonstream.config import Settings


class ProviderMode(str, Enum):
  """Supported provider modes."""

  GEMINI = "gemini"
  OPENROUTER = "openrouter"


# Default (fast, quality) model pairs per provider.
_TIER_DEFAULTS: dict[ProviderMode, tuple[str, str]] = {
  ProviderMode.GEMINI: ("gemini-2.5-flash", "gemini-2.5-pro"),
  ProviderMode.OPENROUTER: ("openai/gpt-4o-mini", "openai/gpt-4o"),
}


def get_provider_for_mode(mode: str | ProviderMode, settings: Settings) -> Provider:
  """Return a provider instance for the given mode."""
  key = mode.value if isinstance(mode, ProviderMode) else mode
  if key == ProviderMode.GEMINI.value:
    return GeminiProvider(api_key=settings.gemini_api_key)
  if key == ProviderMode.OPENROUTER.value:
    return OpenRouterProvider(api_key=settings.openrouter_api_key, base_url=settings.openrouter_base_url)
  raise ValueError(f"Unsupported provider mode '{mode}'.")


def build_gateway(settings: Settings) -> ModelGateway:
  """Construct the process-wide gateway from settings."""
  mode = ProviderMode(settings.provider)
  provider = get_provider_for_mode(mode, settings)
  fast_default, quality_default = _TIER_DEFAULTS[mode]
  fast = provider.get_model(settings.fast_model or fast_default)
  quality = provider.get_model(settings.quality_model or quality_default)
  return ModelGateway(fast=fast, quality=quality, timeout_seconds=settings.completion_timeout_seconds, max_output_tokens=settings.max_output_tokens)

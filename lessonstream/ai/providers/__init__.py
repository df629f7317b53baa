"""Provider implementations."""

from lessonstream.ai.providers.base import AIModel, ModelResponse, Provider, SimpleModelResponse
from lessonstream.ai.providers.gemini import GeminiModel, GeminiProvider
from lessonstream.ai.providers.openrouter import OpenRouterModel, OpenRouterProvider

__all__ = ["AIModel", "ModelResponse", "SimpleModelResponse", "Provider", "GeminiModel", "GeminiProvider", "OpenRouterModel", "OpenRouterProvider"]

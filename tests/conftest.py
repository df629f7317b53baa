"""Shared fixtures: scripted models, a gateway built from them and an orchestrator."""

from __future__ import annotations

import os
from dataclasses import replace

# Ensure required settings are available before importing the application package.
os.environ["LESSONSTREAM_ALLOWED_ORIGINS"] = "http://localhost"
os.environ["LESSONSTREAM_PROVIDER"] = "gemini"

import pytest  # noqa: E402

from lessonstream.ai.gateway import ModelGateway  # noqa: E402
from lessonstream.ai.orchestrator import GenerationOrchestrator  # noqa: E402
from lessonstream.config import Settings, get_settings  # noqa: E402
from tests.fakes import ScriptedModel, multiple_choice_reply, skeleton_reply  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
def settings() -> Settings:
  return replace(get_settings(), cache_enabled=False, completion_timeout_seconds=5.0)


@pytest.fixture
def fast_model() -> ScriptedModel:
  return ScriptedModel("fake-fast", lambda _prompt: skeleton_reply(3))


@pytest.fixture
def quality_model() -> ScriptedModel:
  return ScriptedModel("fake-quality", multiple_choice_reply)


@pytest.fixture
def gateway(fast_model: ScriptedModel, quality_model: ScriptedModel, settings: Settings) -> ModelGateway:
  return ModelGateway(fast=fast_model, quality=quality_model, timeout_seconds=settings.completion_timeout_seconds)


@pytest.fixture
def orchestrator(gateway: ModelGateway, settings: Settings) -> GenerationOrchestrator:
  return GenerationOrchestrator(gateway=gateway, settings=settings)

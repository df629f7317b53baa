"""Unit tests for skeleton planning."""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime

import pytest

from lessonstream.ai.agents.planner import SkeletonPlanner, build_skeleton
from lessonstream.ai.gateway import ModelGateway
from lessonstream.ai.pipeline.bloom import bloom_sequence
from lessonstream.ai.pipeline.contracts import BloomWeights, RequestContext
from lessonstream.config import Settings
from lessonstream.storage.artifact_cache import InMemoryArtifactCache
from tests.fakes import ScriptedModel, make_request, skeleton_reply


def _ctx() -> RequestContext:
  return RequestContext(request_id="req-1", created_at=datetime.now(UTC))


def test_extra_steps_are_dropped_and_numbers_rewritten() -> None:
  parsed = {"unit_title": "מים", "steps": [{"step_number": 9, "title": f"כותרת {i}"} for i in range(6)]}
  skeleton = build_skeleton(parsed, make_request(), ["Remember", "Analyze", "Create"])
  assert [step.step_number for step in skeleton.steps] == [1, 2, 3]
  assert [step.bloom_level for step in skeleton.steps] == ["Remember", "Analyze", "Create"]
  assert skeleton.title == "מים"
  assert not skeleton.synthesized


def test_missing_steps_are_padded_with_placeholders() -> None:
  parsed = {"steps": [{"title": "היחיד"}]}
  skeleton = build_skeleton(parsed, make_request(length="medium"), ["Remember"] * 5)
  assert len(skeleton.steps) == 5
  assert skeleton.steps[0].title == "היחיד"
  assert skeleton.steps[4].title == "שלב 5: מחזור המים"


def test_disallowed_interaction_is_replaced() -> None:
  parsed = {"steps": [{"title": "א", "suggested_interaction_type": "memory_game"}]}
  request = make_request(allowed_interactions=("ordering",))
  skeleton = build_skeleton(parsed, request, ["Remember", "Analyze", "Create"])
  assert skeleton.steps[0].suggested_interaction == "ordering"


def test_unusable_payload_yields_placeholder_skeleton() -> None:
  skeleton = build_skeleton({"steps": "nope"}, make_request(), ["Remember", "Analyze", "Create"])
  assert skeleton.synthesized
  assert len(skeleton.steps) == 3
  assert all(step.bloom_level == "Remember" and step.suggested_interaction == "multiple_choice" for step in skeleton.steps)


@pytest.mark.anyio
async def test_planner_uses_fast_tier_and_caches_real_skeletons(settings: Settings) -> None:
  fast = ScriptedModel("fast", lambda _prompt: skeleton_reply(3))
  quality = ScriptedModel("quality", lambda _prompt: "unused")
  gateway = ModelGateway(fast=fast, quality=quality, timeout_seconds=1.0)
  cache = InMemoryArtifactCache(ttl_seconds=60, max_entries=8)
  planner = SkeletonPlanner(gateway=gateway, settings=settings, cache=cache)

  first = await planner.run(make_request(), _ctx())
  second = await planner.run(make_request(), _ctx())

  assert len(fast.prompts) == 1
  assert quality.prompts == []
  assert not first.cached
  assert second.cached
  assert second.skeleton == first.skeleton


@pytest.mark.anyio
async def test_planner_does_not_reuse_skeleton_across_bloom_weights(settings: Settings) -> None:
  fast = ScriptedModel("fast", lambda _prompt: skeleton_reply(3))
  gateway = ModelGateway(fast=fast, quality=ScriptedModel("quality", lambda _prompt: "unused"), timeout_seconds=1.0)
  cache = InMemoryArtifactCache(ttl_seconds=60, max_entries=8)
  planner = SkeletonPlanner(gateway=gateway, settings=settings, cache=cache)
  weighted = make_request(bloom_weights=BloomWeights(knowledge=100, application=0, evaluation=0))

  await planner.run(make_request(), _ctx())
  result = await planner.run(weighted, _ctx())

  assert not result.cached
  assert len(fast.prompts) == 2
  assert [step.bloom_level for step in result.skeleton.steps] == bloom_sequence(weighted)


@pytest.mark.anyio
async def test_planner_never_caches_placeholders(settings: Settings) -> None:
  fast = ScriptedModel("fast", lambda _prompt: "I cannot help with that.")
  gateway = ModelGateway(fast=fast, quality=fast, timeout_seconds=1.0)
  cache = InMemoryArtifactCache(ttl_seconds=60, max_entries=8)
  planner = SkeletonPlanner(gateway=gateway, settings=replace(settings, cache_enabled=True), cache=cache)

  result = await planner.run(make_request(), _ctx())

  assert result.skeleton.synthesized
  assert len(result.skeleton.steps) == 3
  assert len(cache) == 0

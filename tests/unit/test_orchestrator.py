"""Unit tests for orchestration event order and degradation."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import msgspec
import pytest

from lessonstream.ai.errors import RequestShapeError
from lessonstream.ai.gateway import EXAM_TEMPERATURE, ModelGateway
from lessonstream.ai.orchestrator import GENERIC_FAILURE_MESSAGE, GenerationOrchestrator
from lessonstream.config import Settings
from lessonstream.storage.artifact_cache import InMemoryArtifactCache
from lessonstream.streaming.events import StreamEvent
from tests.fakes import ScriptedModel, make_request, multiple_choice_reply, skeleton_reply


async def _collect(orchestrator: GenerationOrchestrator, kind: str, **overrides: Any) -> list[StreamEvent]:
  stream = orchestrator.open_stream(kind, make_request(**overrides), request_id="req-1", subject="teacher-1")
  return [event async for event in stream]


def _content(event: StreamEvent) -> Any:
  return msgspec.json.decode(event.content)


@pytest.mark.anyio
async def test_activity_stream_orders_skeleton_steps_and_done(orchestrator: GenerationOrchestrator) -> None:
  events = await _collect(orchestrator, "activity")
  types = [event.type for event in events]

  assert types[0] == "progress"
  assert types.index("skeleton_complete") < min(index for index, kind in enumerate(types) if kind == "step_complete")
  assert types.count("step_complete") == 3
  assert types[-1] == "done"
  assert [event.sequence for event in events] == list(range(1, len(events) + 1))

  done = _content(events[-1])
  assert [step["step_number"] for step in done["steps"]] == [1, 2, 3]
  assert done["metadata"]["stepCount"] == 3
  assert done["metadata"]["method"] == "streaming"
  assert done["skeleton"]["steps"][0]["suggested_interaction_type"] == "multiple_choice"
  assert done["steps"][0]["content"]["type"] == "multiple_choice"


@pytest.mark.anyio
async def test_failed_steps_degrade_to_placeholders(settings: Settings, fast_model: ScriptedModel) -> None:
  quality = ScriptedModel("quality", lambda _prompt: RuntimeError("503 service unavailable"))
  orchestrator = GenerationOrchestrator(gateway=ModelGateway(fast=fast_model, quality=quality, timeout_seconds=1.0), settings=settings)

  events = await _collect(orchestrator, "activity")

  steps = [event for event in events if event.type == "step_complete"]
  assert len(steps) == 3
  assert all(event.metadata["synthesized"] for event in steps)
  assert events[-1].type == "done"


@pytest.mark.anyio
async def test_unparseable_skeleton_still_yields_exact_step_count(settings: Settings, quality_model: ScriptedModel) -> None:
  fast = ScriptedModel("fast", lambda _prompt: "no json at all")
  orchestrator = GenerationOrchestrator(gateway=ModelGateway(fast=fast, quality=quality_model, timeout_seconds=1.0), settings=settings)

  events = await _collect(orchestrator, "activity", length="medium")

  skeleton = next(event for event in events if event.type == "skeleton_complete")
  assert skeleton.metadata["synthesized"] is True
  assert skeleton.metadata["stepCount"] == 5
  assert len(_content(events[-1])["steps"]) == 5


@pytest.mark.anyio
async def test_exam_mode_strips_scaffolding_and_uses_low_temperature(orchestrator: GenerationOrchestrator, quality_model: ScriptedModel, fast_model: ScriptedModel) -> None:
  events = await _collect(orchestrator, "activity", mode="exam")

  for event in events:
    if event.type == "step_complete":
      step = _content(event)
      assert step["teach_content"] == ""
      assert step["hints"] == []
  assert set(quality_model.temperatures) == {EXAM_TEMPERATURE}
  assert set(fast_model.temperatures) == {EXAM_TEMPERATURE}


@pytest.mark.anyio
async def test_differentiated_stream_scopes_steps_to_levels(orchestrator: GenerationOrchestrator) -> None:
  events = await _collect(orchestrator, "differentiated")
  types = [event.type for event in events]

  assert types.count("level_start") == 3
  assert types.count("level_complete") == 3
  assert types.count("step_complete") == 9
  assert types[-1] == "done"
  for level in ("support", "core", "enrichment"):
    scoped = [event.type for event in events if event.metadata.get("level") == level]
    assert scoped.index("skeleton_complete") < scoped.index("step_complete")
    assert scoped[-1] == "level_complete"

  done = _content(events[-1])
  assert set(done["levels"]) == {"support", "core", "enrichment"}
  assert {step["level"] for step in done["levels"]["support"]["steps"]} == {"support"}
  assert done["levels"]["enrichment"]["skeleton"]["steps"][0]["bloom_level"] == "Evaluate"


@pytest.mark.anyio
async def test_lesson_stream_emits_both_parts(settings: Settings, fast_model: ScriptedModel) -> None:
  def _lesson(prompt: str) -> str:
    if "opening half" in prompt:
      return json.dumps({"lesson_metadata": {"title": "מים בטבע"}, "hook": {"content": "שאלה מפתיעה"}, "direct_instruction": "הסבר"}, ensure_ascii=False)
    return "not json"

  quality = ScriptedModel("quality", _lesson)
  orchestrator = GenerationOrchestrator(gateway=ModelGateway(fast=fast_model, quality=quality, timeout_seconds=1.0), settings=settings)

  events = await _collect(orchestrator, "lesson")
  types = [event.type for event in events]

  assert {"part1_complete", "part2_complete"} <= set(types)
  assert types[-1] == "done"
  done = _content(events[-1])
  assert done["title"] == "מים בטבע"
  assert done["direct_instruction"]["content"] == "הסבר"
  assert done["metadata"]["synthesizedParts"] == ["part2"]
  assert fast_model.prompts == []


@pytest.mark.anyio
async def test_podcast_stream_forwards_token_deltas(settings: Settings, fast_model: ScriptedModel) -> None:
  chunks = ['{"title": "פרק 1", "lines": [', '{"speaker": "דן", "text": "שלום!"},', '{"speaker": "נועה", "text": "היי", "emotion": "סקרנית"}]}']
  quality = ScriptedModel("quality", lambda _prompt: chunks)
  orchestrator = GenerationOrchestrator(gateway=ModelGateway(fast=fast_model, quality=quality, timeout_seconds=1.0), settings=settings)

  events = await _collect(orchestrator, "podcast")

  deltas = [event for event in events if event.type == "progress" and "chunkIndex" in event.metadata]
  assert [event.content for event in deltas] == chunks
  assert [event.metadata["chunkIndex"] for event in deltas] == [1, 2, 3]
  script = _content(events[-1])
  assert script["title"] == "פרק 1"
  assert [line["emotion"] for line in script["lines"]] == ["ניטרלי", "סקרנית"]
  assert quality.temperatures == [0.8]


@pytest.mark.anyio
async def test_second_run_is_served_from_cache(settings: Settings, fast_model: ScriptedModel, quality_model: ScriptedModel) -> None:
  cache = InMemoryArtifactCache(ttl_seconds=60, max_entries=32, namespace="v4")
  orchestrator = GenerationOrchestrator(gateway=ModelGateway(fast=fast_model, quality=quality_model, timeout_seconds=1.0), settings=settings, cache=cache)

  await _collect(orchestrator, "activity")
  calls = (len(fast_model.prompts), len(quality_model.prompts))
  events = await _collect(orchestrator, "activity")

  assert (len(fast_model.prompts), len(quality_model.prompts)) == calls == (1, 3)
  skeleton = next(event for event in events if event.type == "skeleton_complete")
  assert skeleton.metadata["cached"] is True
  assert events[-1].type == "done"


@pytest.mark.anyio
async def test_unexpected_failure_ends_with_generic_error(orchestrator: GenerationOrchestrator, monkeypatch: pytest.MonkeyPatch) -> None:
  async def _explode(*_args: Any, **_kwargs: Any) -> None:
    raise RuntimeError("secret internal detail")

  monkeypatch.setattr(orchestrator, "_run_activity", _explode)
  events = await _collect(orchestrator, "activity")

  assert [event.type for event in events] == ["error"]
  assert events[0].content == GENERIC_FAILURE_MESSAGE
  assert "secret" not in events[0].to_sse()


@pytest.mark.anyio
async def test_disconnect_lets_background_work_finish(settings: Settings, fast_model: ScriptedModel) -> None:
  quality = ScriptedModel("quality", multiple_choice_reply, delay=0.05)
  orchestrator = GenerationOrchestrator(gateway=ModelGateway(fast=fast_model, quality=quality, timeout_seconds=1.0), settings=settings)

  stream = orchestrator.open_stream("activity", make_request(), request_id="req-1")
  first = await stream.__anext__()
  assert first.type == "progress"
  await stream.aclose()

  for _ in range(100):
    if not orchestrator._background:
      break
    await asyncio.sleep(0.02)
  assert not orchestrator._background
  assert len(quality.prompts) == 3


def test_invalid_requests_are_rejected_before_streaming(orchestrator: GenerationOrchestrator) -> None:
  with pytest.raises(RequestShapeError):
    orchestrator.open_stream("quiz", make_request(), request_id="req-1")
  with pytest.raises(RequestShapeError):
    orchestrator.open_stream("differentiated", make_request(level="core"), request_id="req-1")

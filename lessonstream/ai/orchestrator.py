"""Generation orchestrator: composes planner, expander and publisher per request."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

from lessonstream.ai.agents.lesson_writer import LessonPartWriter
from lessonstream.ai.agents.planner import SkeletonPlanner
from lessonstream.ai.agents.podcast import PodcastWriter
from lessonstream.ai.agents.step_builder import StepBuilder
from lessonstream.ai.errors import RequestShapeError
from lessonstream.ai.expander import ContentExpander
from lessonstream.ai.gateway import ModelGateway
from lessonstream.ai.pipeline.bloom import LEVEL_BANDS, resolve_step_count
from lessonstream.ai.pipeline.contracts import GenerationRequest, LessonPartInput, RequestContext, Skeleton
from lessonstream.config import Settings
from lessonstream.core.json import to_builtins
from lessonstream.schema.interactions import StepContent
from lessonstream.schema.products import LessonPart
from lessonstream.storage.artifact_cache import ArtifactCache
from lessonstream.streaming.events import EventType, StreamEvent
from lessonstream.streaming.publisher import EventPublisher

logger = logging.getLogger(__name__)

StreamKind = Literal["activity", "differentiated", "lesson", "podcast"]
STREAM_KINDS: tuple[str, ...] = ("activity", "differentiated", "lesson", "podcast")

LEVEL_NAMES: dict[str, str] = {"support": "רמה תומכת", "core": "רמת ליבה", "enrichment": "רמת העשרה"}
GENERIC_FAILURE_MESSAGE = "Generation failed"
METHOD = "streaming"


@dataclass(frozen=True)
class ActivityResult:
  """A skeleton with its expanded steps, in step order."""

  skeleton: Skeleton
  steps: list[StepContent]


@dataclass
class _RunState:
  """Mutable state for one orchestration run."""

  ctx: RequestContext
  publisher: EventPublisher
  started: float = field(default_factory=time.perf_counter)
  usage: list[dict[str, Any]] = field(default_factory=list)

  def elapsed_ms(self) -> int:
    return round((time.perf_counter() - self.started) * 1000)


@dataclass
class _AgentsBundle:
  planner: SkeletonPlanner
  expander: ContentExpander
  lesson_writer: LessonPartWriter
  podcast: PodcastWriter


def activity_payload(request: GenerationRequest, result: ActivityResult, generation_ms: int) -> dict[str, Any]:
  """Aggregate clients receive in the terminal `done` event."""
  return {
    "title": result.skeleton.title,
    "steps": [to_builtins(step) for step in result.steps],
    "skeleton": result.skeleton.as_wire(),
    "metadata": {
      "topic": request.subject_label,
      "gradeLevel": request.grade_level,
      "stepCount": len(result.steps),
      "generationTime": generation_ms,
      "method": METHOD,
      "mode": request.mode,
    },
  }


def lesson_payload(request: GenerationRequest, part1: LessonPart, part2: LessonPart, generation_ms: int) -> dict[str, Any]:
  metadata_section = part1.sections.get("lesson_metadata") or {}
  title = metadata_section.get("title") if isinstance(metadata_section.get("title"), str) else None
  return {
    "title": title or request.subject_label,
    **part1.sections,
    **part2.sections,
    "metadata": {
      "topic": request.subject_label,
      "gradeLevel": request.grade_level,
      "generationTime": generation_ms,
      "method": METHOD,
      "synthesizedParts": [part.part for part in (part1, part2) if part.synthesized],
    },
  }


class GenerationOrchestrator:
  """Drives one generation request from skeleton to terminal event.

  Built once at startup with the shared gateway and cache. Request-shape
  problems raise `RequestShapeError` from `open_stream` before any event
  exists; everything after that degrades to synthesized content.
  """

  def __init__(self, *, gateway: ModelGateway, settings: Settings, cache: ArtifactCache | None = None) -> None:
    self._gateway = gateway
    self._settings = settings
    self._cache = cache
    self._background: set[asyncio.Task[None]] = set()

  def _initialize_agents(self, usage_sink: Callable[[dict[str, Any]], None]) -> _AgentsBundle:
    shared = {"gateway": self._gateway, "settings": self._settings, "cache": self._cache, "use": usage_sink}
    return _AgentsBundle(
      planner=SkeletonPlanner(**shared),
      expander=ContentExpander(StepBuilder(**shared)),
      lesson_writer=LessonPartWriter(**shared),
      podcast=PodcastWriter(**shared),
    )

  def validate(self, kind: str, request: GenerationRequest) -> None:
    """Reject requests whose derived parameters cannot be resolved."""
    if kind not in STREAM_KINDS:
      raise RequestShapeError(f"Unsupported stream kind '{kind}'.")
    try:
      resolve_step_count(request.length)
    except ValueError as exc:
      raise RequestShapeError(str(exc)) from exc
    if kind == "differentiated" and request.level is not None:
      raise RequestShapeError("Differentiated requests cannot pin a single level.")

  def open_stream(self, kind: StreamKind, request: GenerationRequest, *, request_id: str, subject: str | None = None) -> AsyncIterator[StreamEvent]:
    """Validate the request and return the event iterator for its run."""
    self.validate(kind, request)
    ctx = RequestContext(request_id=request_id, subject=subject, created_at=datetime.now(UTC), metadata={"kind": kind})
    return self._deliver(kind, request, ctx)

  async def _deliver(self, kind: StreamKind, request: GenerationRequest, ctx: RequestContext) -> AsyncIterator[StreamEvent]:
    publisher = EventPublisher(request_id=ctx.request_id)
    # The run is not tied to the consumer: a disconnect lets in-flight work finish into a closed channel.
    task = asyncio.create_task(self._drive(kind, request, ctx, publisher))
    self._background.add(task)
    task.add_done_callback(self._background.discard)
    try:
      async for event in publisher.events():
        yield event
    finally:
      if not publisher.finished:
        logger.info("Client left %s stream early (request_id=%s); discarding remaining events.", kind, ctx.request_id)
      publisher.close()

  async def _drive(self, kind: StreamKind, request: GenerationRequest, ctx: RequestContext, publisher: EventPublisher) -> None:
    state = _RunState(ctx=ctx, publisher=publisher)
    agents = self._initialize_agents(state.usage.append)
    runners: dict[str, Callable[[GenerationRequest, _RunState, _AgentsBundle], Awaitable[None]]] = {
      "activity": self._run_activity,
      "differentiated": self._run_differentiated,
      "lesson": self._run_lesson,
      "podcast": self._run_podcast,
    }
    logger.info("Starting %s generation (request_id=%s, topic=%s, mode=%s, length=%s).", kind, ctx.request_id, request.subject_label[:50], request.mode, request.length)
    try:
      await runners[kind](request, state, agents)
    except Exception:  # noqa: BLE001
      logger.error("Orchestration of %s failed (request_id=%s).", kind, ctx.request_id, exc_info=True)
      await publisher.publish(EventType.ERROR, GENERIC_FAILURE_MESSAGE, {"requestId": ctx.request_id})
      return
    logger.info("Finished %s generation in %d ms with %d model calls (request_id=%s).", kind, state.elapsed_ms(), len(state.usage), ctx.request_id)

  async def _run_level(self, request: GenerationRequest, state: _RunState, agents: _AgentsBundle) -> ActivityResult:
    """Skeleton (blocking) then parallel expansion for one request or level."""
    scope = {"level": request.level} if request.level else {}
    publisher = state.publisher

    plan = await agents.planner.run(request, state.ctx)
    skeleton = plan.skeleton
    await publisher.publish(
      EventType.SKELETON_COMPLETE,
      skeleton.as_wire(),
      {**scope, "stepCount": len(skeleton.steps), "elapsedMs": round(plan.elapsed_ms), "cached": plan.cached, "synthesized": skeleton.synthesized},
    )
    await publisher.publish(EventType.PROGRESS, f"מייצר {len(skeleton.steps)} שלבים...", {**scope, "phase": "steps"})

    async def _on_step(step: StepContent, total: int) -> None:
      metadata = {**scope, "stepNumber": step.step_number, "totalSteps": total, "synthesized": step.synthesized}
      await publisher.publish(EventType.STEP_COMPLETE, to_builtins(step), metadata)

    steps = await agents.expander.expand(request, skeleton, state.ctx, on_step=_on_step)
    return ActivityResult(skeleton=skeleton, steps=steps)

  async def _run_activity(self, request: GenerationRequest, state: _RunState, agents: _AgentsBundle) -> None:
    await state.publisher.publish(EventType.PROGRESS, "מתכנן את מבנה הפעילות...", {"phase": "skeleton"})
    result = await self._run_level(request, state, agents)
    payload = activity_payload(request, result, state.elapsed_ms())
    await state.publisher.publish(EventType.DONE, payload, {"stepCount": len(result.steps), "generationTime": payload["metadata"]["generationTime"], "llmCalls": len(state.usage)})

  async def _run_differentiated(self, request: GenerationRequest, state: _RunState, agents: _AgentsBundle) -> None:
    publisher = state.publisher
    await publisher.publish(EventType.PROGRESS, "מייצר שלוש רמות...", {"phase": "levels", "totalExpected": len(LEVEL_BANDS)})
    results: dict[str, dict[str, Any]] = {}

    async def _level(level: str) -> None:
      await publisher.publish(EventType.LEVEL_START, f"מייצר תוכן ל{LEVEL_NAMES[level]}...", {"level": level})
      level_request = request.for_level(level)
      result = await self._run_level(level_request, state, agents)
      payload = activity_payload(level_request, result, state.elapsed_ms())
      results[level] = payload
      await publisher.publish(EventType.LEVEL_COMPLETE, payload, {"level": level})

    async with asyncio.TaskGroup() as group:
      for level in LEVEL_BANDS:
        group.create_task(_level(level))

    done = {
      "title": results["core"]["title"],
      "levels": {level: results[level] for level in LEVEL_BANDS},
      "metadata": {"topic": request.subject_label, "gradeLevel": request.grade_level, "levels": len(results), "generationTime": state.elapsed_ms(), "method": METHOD},
    }
    await publisher.publish(EventType.DONE, done, {"totalExpected": len(LEVEL_BANDS), "llmCalls": len(state.usage)})

  async def _run_lesson(self, request: GenerationRequest, state: _RunState, agents: _AgentsBundle) -> None:
    publisher = state.publisher
    await publisher.publish(EventType.PROGRESS, "מייצר מערך שיעור...", {"phase": "lesson"})
    parts: dict[str, LessonPart] = {}
    events = {"part1": EventType.PART1_COMPLETE, "part2": EventType.PART2_COMPLETE}

    async def _part(name: str) -> None:
      part = await agents.lesson_writer.run(LessonPartInput(request=request, part=name), state.ctx)
      parts[name] = part
      await publisher.publish(events[name], to_builtins(part), {"part": name, "synthesized": part.synthesized})

    async with asyncio.TaskGroup() as group:
      for name in events:
        group.create_task(_part(name))

    payload = lesson_payload(request, parts["part1"], parts["part2"], state.elapsed_ms())
    await publisher.publish(EventType.DONE, payload, {"generationTime": payload["metadata"]["generationTime"], "llmCalls": len(state.usage)})

  async def _run_podcast(self, request: GenerationRequest, state: _RunState, agents: _AgentsBundle) -> None:
    publisher = state.publisher
    await publisher.publish(EventType.PROGRESS, "מתחיל לייצר סקריפט פודקאסט...", {"itemType": "podcast"})
    chunk_index = 0

    async def _on_token(delta: str) -> None:
      nonlocal chunk_index
      chunk_index += 1
      await publisher.publish(EventType.PROGRESS, delta, {"itemType": "podcast", "chunkIndex": chunk_index})

    script = await agents.podcast.run(request, state.ctx, on_token=_on_token)
    await publisher.publish(EventType.DONE, to_builtins(script), {"itemType": "podcast", "synthesized": script.synthesized, "chunks": chunk_index})

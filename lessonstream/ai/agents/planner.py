"""Skeleton planner agent."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from lessonstream.ai.agents.base import BaseAgent
from lessonstream.ai.gateway import ModelTier, resolve_temperature
from lessonstream.ai.pipeline.bloom import DEFAULT_BLOOM_LEVEL, bloom_sequence, resolve_step_count, suggest_interaction
from lessonstream.ai.pipeline.contracts import GenerationRequest, RequestContext, Skeleton, StepSpec
from lessonstream.ai.prompts import render_skeleton_prompt
from lessonstream.schema.interactions import FALLBACK_KIND, normalize_interaction_tag
from lessonstream.storage.artifact_cache import cache_get, cache_set, skeleton_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanResult:
  """A resolved skeleton plus how it was obtained."""

  skeleton: Skeleton
  elapsed_ms: float
  cached: bool = False


def placeholder_step(step_number: int, topic: str) -> StepSpec:
  return StepSpec(step_number=step_number, title=f"שלב {step_number}: {topic}", narrative_focus=topic, bloom_level=DEFAULT_BLOOM_LEVEL, suggested_interaction=FALLBACK_KIND)


def placeholder_skeleton(request: GenerationRequest, step_count: int) -> Skeleton:
  """Generic skeleton with exactly `step_count` steps."""
  topic = request.subject_label
  steps = tuple(placeholder_step(number, topic) for number in range(1, step_count + 1))
  return Skeleton(title=topic, steps=steps, synthesized=True)


def _string_list(value: Any) -> tuple[str, ...]:
  if isinstance(value, str):
    return (value.strip(),) if value.strip() else ()
  if isinstance(value, list):
    return tuple(item.strip() for item in value if isinstance(item, str) and item.strip())
  return ()


def _pick_interaction(raw: dict[str, Any], bloom_level: str, position: int, request: GenerationRequest) -> str:
  raw_tag = raw.get("suggested_interaction_type") or raw.get("suggested_interaction") or raw.get("interaction_type")
  if isinstance(raw_tag, str) and raw_tag.strip():
    tag = normalize_interaction_tag(raw_tag)
    allowed = [normalize_interaction_tag(item) for item in request.allowed_interactions or ()]
    if not allowed or tag in allowed:
      return tag
  return suggest_interaction(bloom_level, position, mode=request.mode, allowed=request.allowed_interactions)


def build_skeleton(parsed: dict[str, Any] | None, request: GenerationRequest, bloom_levels: list[str]) -> Skeleton:
  """Shape a recovered planner payload into a skeleton with exactly len(bloom_levels) steps.

  Extra raw steps are ignored, missing ones are padded with placeholders, step
  numbers are rewritten to 1..N and bloom levels follow the planned sequence.
  A payload without a usable step array yields the placeholder skeleton.
  """
  step_count = len(bloom_levels)
  raw_steps = parsed.get("steps") if isinstance(parsed, dict) else None
  usable = [step for step in raw_steps if isinstance(step, dict)] if isinstance(raw_steps, list) else []
  if not usable:
    return placeholder_skeleton(request, step_count)

  topic = request.subject_label
  specs: list[StepSpec] = []
  for index in range(step_count):
    number = index + 1
    if index >= len(usable):
      specs.append(placeholder_step(number, topic))
      continue
    raw = usable[index]
    bloom_level = bloom_levels[index]
    title = raw.get("title") if isinstance(raw.get("title"), str) and raw["title"].strip() else f"שלב {number}: {topic}"
    focus = raw.get("narrative_focus") if isinstance(raw.get("narrative_focus"), str) else ""
    specs.append(
      StepSpec(
        step_number=number,
        title=title.strip(),
        narrative_focus=focus.strip(),
        forbidden_topics=_string_list(raw.get("forbidden_topics")),
        bloom_level=bloom_level,
        suggested_interaction=_pick_interaction(raw, bloom_level, index, request),
      )
    )

  title = parsed.get("unit_title") or parsed.get("title")
  unit_title = title.strip() if isinstance(title, str) and title.strip() else topic
  return Skeleton(title=unit_title, steps=tuple(specs))


class SkeletonPlanner(BaseAgent[GenerationRequest, PlanResult]):
  """Plan the step skeleton on the fast tier."""

  name = "Planner"

  async def run(self, input_data: GenerationRequest, ctx: RequestContext) -> PlanResult:
    request = input_data
    started = time.perf_counter()
    step_count = resolve_step_count(request.length)
    key = skeleton_key(request)

    cached = await cache_get(self._cache, key)
    if cached is not None:
      try:
        skeleton = Skeleton.model_validate(cached)
      except ValidationError:
        logger.warning("Discarding malformed cached skeleton %s.", key)
      else:
        if len(skeleton.steps) == step_count:
          return PlanResult(skeleton=skeleton, elapsed_ms=(time.perf_counter() - started) * 1000, cached=True)

    bloom_levels = bloom_sequence(request)
    prompt = render_skeleton_prompt(request, step_count=step_count, bloom_levels=bloom_levels, source_chars=self._settings.skeleton_source_chars)
    level = request.level or "single"
    parsed, outcome = await self._complete_json(
      prompt,
      request=request,
      ctx=ctx,
      tier=ModelTier.FAST,
      temperature=resolve_temperature(request.mode),
      purpose=f"skeleton_{level}",
      call_index=f"skeleton/{level}",
    )
    if parsed is None:
      logger.warning("Skeleton unrecoverable (failure=%s); using placeholder skeleton.", outcome.failure.value if outcome.failure else "parse")

    skeleton = build_skeleton(parsed, request, bloom_levels)
    if not skeleton.synthesized:
      await cache_set(self._cache, key, skeleton.model_dump(mode="json"))
    return PlanResult(skeleton=skeleton, elapsed_ms=(time.perf_counter() - started) * 1000)

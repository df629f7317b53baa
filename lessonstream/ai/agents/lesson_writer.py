"""Lesson plan part agent."""

from __future__ import annotations

import logging
from typing import Any

from lessonstream.ai.agents.base import BaseAgent
from lessonstream.ai.gateway import ModelTier, resolve_temperature
from lessonstream.ai.pipeline.contracts import GenerationRequest, LessonPartInput, RequestContext
from lessonstream.ai.prompts import render_lesson_part1_prompt, render_lesson_part2_prompt
from lessonstream.schema.products import PART_SECTIONS, SECTION_TITLES, LessonPart

logger = logging.getLogger(__name__)

_RENDERERS = {"part1": render_lesson_part1_prompt, "part2": render_lesson_part2_prompt}


def placeholder_section(name: str, topic: str) -> dict[str, Any]:
  return {"title": SECTION_TITLES[name], "content": f"{SECTION_TITLES[name]}: {topic}"}


def placeholder_part(part: str, request: GenerationRequest) -> LessonPart:
  topic = request.subject_label
  return LessonPart(part=part, sections={name: placeholder_section(name, topic) for name in PART_SECTIONS[part]}, synthesized=True)


def build_part(parsed: dict[str, Any] | None, part: str, request: GenerationRequest) -> LessonPart:
  """Keep recovered sections, fill missing ones, or synthesize the whole part."""
  if not isinstance(parsed, dict):
    return placeholder_part(part, request)
  sections: dict[str, dict[str, Any]] = {}
  recovered = 0
  for name in PART_SECTIONS[part]:
    value = parsed.get(name)
    if isinstance(value, dict) and value:
      sections[name] = value
      recovered += 1
    elif isinstance(value, str) and value.strip():
      sections[name] = {"title": SECTION_TITLES[name], "content": value.strip()}
      recovered += 1
    else:
      sections[name] = placeholder_section(name, request.subject_label)
  if recovered == 0:
    return placeholder_part(part, request)
  return LessonPart(part=part, sections=sections)


class LessonPartWriter(BaseAgent[LessonPartInput, LessonPart]):
  """Write one half of a lesson plan."""

  name = "LessonWriter"

  async def run(self, input_data: LessonPartInput, ctx: RequestContext) -> LessonPart:
    request = input_data.request
    prompt = _RENDERERS[input_data.part](request, source_chars=self._settings.skeleton_source_chars)
    parsed, outcome = await self._complete_json(
      prompt,
      request=request,
      ctx=ctx,
      tier=ModelTier.QUALITY,
      temperature=resolve_temperature(request.mode),
      purpose=f"lesson_{input_data.part}",
      call_index=f"{input_data.part}/2",
    )
    part = build_part(parsed, input_data.part, request)
    if part.synthesized:
      logger.warning("Lesson %s unrecoverable (failure=%s); using placeholder.", input_data.part, outcome.failure.value if outcome.failure else "parse")
    return part

"""Podcast script agent."""

from __future__ import annotations

import logging
from typing import Any

from lessonstream.ai.agents.base import BaseAgent
from lessonstream.ai.gateway import ModelTier, TokenSink, resolve_temperature
from lessonstream.ai.pipeline.contracts import GenerationRequest, RequestContext
from lessonstream.ai.prompts import render_podcast_prompt
from lessonstream.schema.products import DEFAULT_EMOTION, PODCAST_HOSTS, PodcastLine, PodcastScript

logger = logging.getLogger(__name__)


def placeholder_script(request: GenerationRequest) -> PodcastScript:
  topic = request.subject_label
  first, second = PODCAST_HOSTS
  lines = [
    PodcastLine(speaker=first, text=f"היום אנחנו צוללים לנושא {topic}.", emotion="נלהב"),
    PodcastLine(speaker=second, text=f"בואו נבין יחד מה חשוב לדעת על {topic}."),
  ]
  return PodcastScript(title=topic, lines=lines, synthesized=True)


def build_script(parsed: dict[str, Any] | None, request: GenerationRequest) -> PodcastScript:
  raw_lines = parsed.get("lines") if isinstance(parsed, dict) else None
  lines: list[PodcastLine] = []
  for raw in raw_lines if isinstance(raw_lines, list) else []:
    if not isinstance(raw, dict):
      continue
    speaker = raw.get("speaker")
    text = raw.get("text")
    if not (isinstance(speaker, str) and speaker.strip() and isinstance(text, str) and text.strip()):
      continue
    emotion = raw.get("emotion")
    lines.append(PodcastLine(speaker=speaker.strip(), text=text.strip(), emotion=emotion.strip() if isinstance(emotion, str) and emotion.strip() else DEFAULT_EMOTION))
  if not lines:
    return placeholder_script(request)
  title = parsed.get("title") if isinstance(parsed, dict) else None
  return PodcastScript(title=title.strip() if isinstance(title, str) and title.strip() else request.subject_label, lines=lines)


class PodcastWriter(BaseAgent[GenerationRequest, PodcastScript]):
  """Write a two-host dialogue with the creative temperature."""

  name = "Podcast"

  async def run(self, input_data: GenerationRequest, ctx: RequestContext, *, on_token: TokenSink = None) -> PodcastScript:
    prompt = render_podcast_prompt(input_data, source_chars=self._settings.skeleton_source_chars)
    parsed, outcome = await self._complete_json(
      prompt,
      request=input_data,
      ctx=ctx,
      tier=ModelTier.QUALITY,
      temperature=resolve_temperature(input_data.mode, creative=True),
      purpose="podcast_script",
      call_index="1/1",
      on_token=on_token,
    )
    script = build_script(parsed, input_data)
    if script.synthesized:
      logger.warning("Podcast script unrecoverable (failure=%s); using placeholder.", outcome.failure.value if outcome.failure else "parse")
    return script

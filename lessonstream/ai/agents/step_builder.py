"""Step content agent."""

from __future__ import annotations

import logging

import msgspec

from lessonstream.ai.agents.base import BaseAgent
from lessonstream.ai.gateway import ModelTier, resolve_temperature
from lessonstream.ai.pipeline.contracts import RequestContext, StepInput
from lessonstream.ai.prompts import render_step_prompt
from lessonstream.ai.repair import enforce_exam, repair_step
from lessonstream.core.json import to_builtins
from lessonstream.schema.interactions import StepContent
from lessonstream.storage.artifact_cache import cache_get, cache_set, step_key

logger = logging.getLogger(__name__)


class StepBuilder(BaseAgent[StepInput, StepContent]):
  """Generate, recover and repair one planned step on the quality tier."""

  name = "StepBuilder"

  async def run(self, input_data: StepInput, ctx: RequestContext) -> StepContent:
    request = input_data.request
    spec = input_data.step
    key = step_key(request, spec)

    cached = await cache_get(self._cache, key)
    if cached is not None:
      try:
        step = msgspec.convert(cached, type=StepContent)
      except msgspec.ValidationError:
        logger.warning("Discarding malformed cached step %s.", key)
      else:
        return enforce_exam(step) if request.mode == "exam" else step

    prompt = render_step_prompt(request, spec, source_chars=self._settings.step_source_chars)
    level = request.level or "single"
    parsed, _ = await self._complete_json(
      prompt,
      request=request,
      ctx=ctx,
      tier=ModelTier.QUALITY,
      temperature=resolve_temperature(request.mode),
      purpose=f"step_{spec.step_number}_{level}",
      call_index=f"{spec.step_number}/{level}",
    )
    step = repair_step(parsed, spec, mode=request.mode, topic=request.subject_label)
    if request.level is not None:
      step = msgspec.structs.replace(step, level=request.level)
    if not step.synthesized:
      await cache_set(self._cache, key, to_builtins(step))
    return step

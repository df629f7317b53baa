"""Parallel content expansion: one task per planned step, joined at a barrier."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

import msgspec

from lessonstream.ai.agents.step_builder import StepBuilder
from lessonstream.ai.pipeline.contracts import GenerationRequest, RequestContext, Skeleton, StepInput, StepSpec
from lessonstream.ai.repair import synthesize_step
from lessonstream.schema.interactions import StepContent

logger = logging.getLogger(__name__)

StepCallback = Callable[[StepContent, int], Awaitable[None]] | None


class ContentExpander:
  """Fan out step generation for a resolved skeleton."""

  def __init__(self, builder: StepBuilder) -> None:
    self._builder = builder

  async def expand(self, request: GenerationRequest, skeleton: Skeleton, ctx: RequestContext, *, on_step: StepCallback = None) -> list[StepContent]:
    """Generate every step concurrently and return them in step order.

    Siblings never wait on each other; `on_step` fires as each one finishes.
    """
    results: dict[int, StepContent] = {}
    total = len(skeleton.steps)

    async with asyncio.TaskGroup() as group:
      for spec in skeleton.steps:
        group.create_task(self._expand_one(request, spec, ctx, results, total, on_step))

    return [results[spec.step_number] for spec in skeleton.steps]

  async def _expand_one(self, request: GenerationRequest, spec: StepSpec, ctx: RequestContext, results: dict[int, StepContent], total: int, on_step: StepCallback) -> None:
    try:
      step = await self._builder.run(StepInput(request=request, step=spec), ctx)
    except Exception:  # noqa: BLE001
      logger.error("Step %s failed unexpectedly; using placeholder.", spec.step_number, exc_info=True)
      step = synthesize_step(spec, mode=request.mode, topic=request.subject_label)
      if request.level is not None:
        step = msgspec.structs.replace(step, level=request.level)
    results[spec.step_number] = step
    if on_step is not None:
      await on_step(step, total)

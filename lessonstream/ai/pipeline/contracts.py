"""Shared data contracts for the generation pipeline."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

Mode = Literal["learning", "exam"]
LengthBucket = Literal["short", "medium", "long"]
ProductType = Literal["activity", "lesson", "exam"]
PedagogicalLevel = Literal["support", "core", "enrichment"]


class BloomWeights(BaseModel):
  """Percent weights for the knowledge / application / evaluation bands."""

  model_config = ConfigDict(frozen=True)

  knowledge: int = Field(ge=0, le=100)
  application: int = Field(ge=0, le=100)
  evaluation: int = Field(ge=0, le=100)

  @model_validator(mode="after")
  def _require_weight(self) -> BloomWeights:
    if self.knowledge + self.application + self.evaluation <= 0:
      raise ValueError("bloom weights must not all be zero")
    return self


class GenerationRequest(BaseModel):
  """Inputs for one generation job."""

  model_config = ConfigDict(frozen=True)

  grade_level: str = Field(min_length=1)
  topic: str | None = None
  source_text: str | None = None
  subject: str | None = None
  mode: Mode = "learning"
  product_type: ProductType = "activity"
  length: LengthBucket = "medium"
  tone: str | None = None
  bloom_weights: BloomWeights | None = None
  allowed_interactions: tuple[str, ...] | None = None
  level: PedagogicalLevel | None = None

  @model_validator(mode="after")
  def _topic_xor_source(self) -> GenerationRequest:
    has_topic = bool(self.topic and self.topic.strip())
    has_source = bool(self.source_text and self.source_text.strip())
    if has_topic == has_source:
      raise ValueError("exactly one of topic or source_text is required")
    return self

  @property
  def subject_label(self) -> str:
    """Human label for the subject context, used in prompts and placeholders."""
    if self.topic and self.topic.strip():
      return self.topic.strip()
    first_line = (self.source_text or "").strip().splitlines()[0] if self.source_text else ""
    return first_line[:60] or "source text"

  def for_level(self, level: PedagogicalLevel) -> GenerationRequest:
    return self.model_copy(update={"level": level})


class RequestContext(BaseModel):
  """Context metadata carried through one orchestration run."""

  request_id: str
  subject: str | None = None
  created_at: datetime
  metadata: dict[str, Any] = Field(default_factory=dict)


class StepSpec(BaseModel):
  """One planned step of a skeleton."""

  model_config = ConfigDict(frozen=True)

  step_number: int = Field(ge=1)
  title: str
  narrative_focus: str = ""
  forbidden_topics: tuple[str, ...] = ()
  bloom_level: str
  suggested_interaction: str


class Skeleton(BaseModel):
  """Ordered step plan; immutable once validated."""

  model_config = ConfigDict(frozen=True)

  title: str
  steps: tuple[StepSpec, ...]
  synthesized: bool = False

  @model_validator(mode="after")
  def _contiguous_steps(self) -> Skeleton:
    numbers = [step.step_number for step in self.steps]
    if numbers != list(range(1, len(numbers) + 1)):
      raise ValueError(f"step numbers must run 1..N, got {numbers}")
    return self

  def as_wire(self) -> dict[str, Any]:
    """Serialize with the field names clients already consume."""
    return {
      "unit_title": self.title,
      "synthesized": self.synthesized,
      "steps": [
        {
          "step_number": step.step_number,
          "title": step.title,
          "narrative_focus": step.narrative_focus,
          "forbidden_topics": list(step.forbidden_topics),
          "bloom_level": step.bloom_level,
          "suggested_interaction_type": step.suggested_interaction,
        }
        for step in self.steps
      ],
    }


class StepInput(BaseModel):
  """One step-expansion job."""

  model_config = ConfigDict(frozen=True)

  request: GenerationRequest
  step: StepSpec


class LessonPartInput(BaseModel):
  """One lesson-part generation job."""

  model_config = ConfigDict(frozen=True)

  request: GenerationRequest
  part: Literal["part1", "part2"]

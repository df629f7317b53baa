from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError

from lessonstream.ai.errors import RequestShapeError
from lessonstream.ai.pipeline.bloom import STEP_COUNTS
from lessonstream.ai.pipeline.contracts import GenerationRequest

MAX_SOURCE_TEXT_CHARS = 200_000

_MODE_ALIASES = {"learning": "learning", "exam": "exam", "assessment": "exam", "test": "exam"}


class BloomWeightsBody(BaseModel):
  """Client weights for the knowledge / application / evaluation bands."""

  knowledge: StrictInt = Field(ge=0, le=100)
  application: StrictInt = Field(ge=0, le=100)
  evaluation: StrictInt = Field(ge=0, le=100)
  model_config = ConfigDict(extra="forbid")


class QuestionPreferences(BaseModel):
  """Optional interaction-type preferences."""

  allowed_types: list[StrictStr] | None = Field(default=None, alias="allowedTypes", max_length=8)
  model_config = ConfigDict(extra="ignore", populate_by_name=True)


class StreamRequest(BaseModel):
  """Body shared by every stream route (camelCase on the wire)."""

  topic: StrictStr | None = Field(default=None, max_length=500)
  source_text: StrictStr | None = Field(default=None, alias="sourceText", max_length=MAX_SOURCE_TEXT_CHARS)
  grade_level: StrictStr = Field(alias="gradeLevel", min_length=1, max_length=100)
  subject: StrictStr | None = Field(default=None, max_length=200)
  mode: StrictStr = "learning"
  product_type: StrictStr = Field(default="activity", alias="productType")
  activity_length: StrictStr = Field(default="medium", alias="activityLength")
  tone: StrictStr | None = Field(default=None, max_length=200)
  bloom_weights: BloomWeightsBody | None = Field(default=None, alias="bloomWeights")
  question_preferences: QuestionPreferences | None = Field(default=None, alias="questionPreferences")
  model_config = ConfigDict(extra="ignore", populate_by_name=True)

  def resolved_mode(self) -> str:
    """Exam product types always run in exam mode."""
    if self.product_type.strip().lower() == "exam":
      return "exam"
    mode = _MODE_ALIASES.get(self.mode.strip().lower())
    if mode is None:
      raise RequestShapeError(f"Unsupported mode '{self.mode}'.")
    return mode

  def to_generation_request(self) -> GenerationRequest:
    """Map the wire body onto the internal request; shape problems raise RequestShapeError."""
    length = self.activity_length.strip().lower()
    if length not in STEP_COUNTS:
      raise RequestShapeError(f"Unsupported activityLength '{self.activity_length}'.")
    payload: dict[str, Any] = {
      "grade_level": self.grade_level.strip(),
      "topic": self.topic,
      "source_text": self.source_text,
      "subject": self.subject,
      "mode": self.resolved_mode(),
      "product_type": self.product_type.strip().lower(),
      "length": length,
      "tone": self.tone,
      "bloom_weights": self.bloom_weights.model_dump() if self.bloom_weights else None,
      "allowed_interactions": tuple(self.question_preferences.allowed_types) if self.question_preferences and self.question_preferences.allowed_types else None,
    }
    try:
      return GenerationRequest(**payload)
    except ValidationError as exc:
      reasons = "; ".join(error["msg"] for error in exc.errors())
      raise RequestShapeError(f"Invalid generation request: {reasons}") from exc

"""Derived planning parameters: step counts, bloom sequences and interaction hints."""

from __future__ import annotations

from typing import Final

from lessonstream.ai.pipeline.contracts import BloomWeights, GenerationRequest
from lessonstream.schema.interactions import normalize_interaction_tag

STEP_COUNTS: Final[dict[str, int]] = {"short": 3, "medium": 5, "long": 7}

BANDS: Final[dict[str, tuple[str, str]]] = {
  "knowledge": ("Remember", "Understand"),
  "application": ("Apply", "Analyze"),
  "evaluation": ("Evaluate", "Create"),
}
BAND_ORDER: Final[tuple[str, ...]] = ("knowledge", "application", "evaluation")
# Remainder slots go to the higher-order bands first.
REMAINDER_PRIORITY: Final[tuple[str, ...]] = ("evaluation", "application", "knowledge")

LEARNING_TEMPLATES: Final[dict[int, tuple[str, ...]]] = {
  3: ("Remember", "Analyze", "Create"),
  5: ("Remember", "Remember", "Analyze", "Analyze", "Create"),
  7: ("Remember", "Understand", "Apply", "Analyze", "Analyze", "Evaluate", "Create"),
}
DEFAULT_EXAM_WEIGHTS: Final[BloomWeights] = BloomWeights(knowledge=20, application=40, evaluation=40)

LEVEL_BANDS: Final[dict[str, str]] = {"support": "knowledge", "core": "application", "enrichment": "evaluation"}

_LEARNING_INTERACTIONS: Final[dict[str, tuple[str, ...]]] = {
  "knowledge": ("memory_game", "multiple_choice", "true_false"),
  "application": ("fill_in_blank", "categorization", "ordering", "matching"),
  "evaluation": ("open_question", "multiple_choice"),
}
_EXAM_INTERACTIONS: Final[dict[str, tuple[str, ...]]] = {
  "knowledge": ("multiple_choice", "true_false"),
  "application": ("categorization", "ordering", "fill_in_blank"),
  "evaluation": ("open_question", "multiple_choice"),
}

DEFAULT_BLOOM_LEVEL: Final[str] = "Remember"


def resolve_step_count(length: str) -> int:
  """Map a length bucket onto its fixed step count."""
  try:
    return STEP_COUNTS[length]
  except KeyError as exc:
    raise ValueError(f"Unsupported length '{length}'.") from exc


def band_of(bloom_level: str) -> str:
  """Return the band a bloom level belongs to, defaulting to knowledge."""
  normalized = bloom_level.strip().capitalize()
  for band, levels in BANDS.items():
    if normalized in levels:
      return band
  return "knowledge"


def allocate_weighted(step_count: int, weights: BloomWeights) -> dict[str, int]:
  """Split step slots across bands: floor each share, then hand out remainders by priority."""
  raw = {"knowledge": weights.knowledge, "application": weights.application, "evaluation": weights.evaluation}
  total = sum(raw.values())
  counts = {band: (step_count * raw[band]) // total for band in BAND_ORDER}
  remaining = step_count - sum(counts.values())
  eligible = [band for band in REMAINDER_PRIORITY if raw[band] > 0]
  index = 0
  while remaining > 0:
    counts[eligible[index % len(eligible)]] += 1
    remaining -= 1
    index += 1
  return counts


def _alternate(band: str, count: int) -> list[str]:
  first, second = BANDS[band]
  return [first if i % 2 == 0 else second for i in range(count)]


def weighted_sequence(step_count: int, weights: BloomWeights) -> list[str]:
  """Expand a weighted allocation into an ordered bloom sequence."""
  counts = allocate_weighted(step_count, weights)
  sequence: list[str] = []
  for band in BAND_ORDER:
    sequence.extend(_alternate(band, counts[band]))
  return sequence


def bloom_sequence(request: GenerationRequest) -> list[str]:
  """Resolve the bloom level for every step of a request."""
  step_count = resolve_step_count(request.length)
  if request.level is not None:
    return _alternate(LEVEL_BANDS[request.level], step_count)
  if request.bloom_weights is not None:
    return weighted_sequence(step_count, request.bloom_weights)
  if request.mode == "exam":
    return weighted_sequence(step_count, DEFAULT_EXAM_WEIGHTS)
  return list(LEARNING_TEMPLATES[step_count])


def suggest_interaction(bloom_level: str, position: int, *, mode: str, allowed: tuple[str, ...] | None = None) -> str:
  """Pick an interaction tag for a step, honouring the caller's allowed list."""
  table = _EXAM_INTERACTIONS if mode == "exam" else _LEARNING_INTERACTIONS
  candidates = table[band_of(bloom_level)]
  if allowed:
    permitted = [normalize_interaction_tag(tag) for tag in allowed]
    narrowed = [tag for tag in candidates if tag in permitted]
    if narrowed:
      return narrowed[position % len(narrowed)]
    return permitted[position % len(permitted)]
  return candidates[position % len(candidates)]

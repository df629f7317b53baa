"""Schema validator and repair engine for generated steps.

Every recovered completion goes through `repair_step`, which dispatches on the
normalized interaction tag, coerces the payload into the matching variant and
returns a `StepContent` that satisfies its invariants. When a payload cannot be
coerced the step is replaced by an on-topic placeholder instead of being dropped.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from typing import Any

import msgspec

from lessonstream.ai.pipeline.contracts import StepSpec
from lessonstream.schema.interactions import (
  DEFAULT_CATEGORIZATION_QUESTION,
  DEFAULT_MATCHING_INSTRUCTION,
  DEFAULT_MEMORY_QUESTION,
  DEFAULT_ORDERING_INSTRUCTION,
  DEFAULT_RUBRIC,
  TRUE_FALSE_OPTIONS,
  CategorizedItem,
  Categorization,
  FillInBlank,
  Interaction,
  Matching,
  MatchItem,
  MatchLink,
  MemoryGame,
  MemoryPair,
  MultipleChoice,
  OpenQuestion,
  Ordering,
  StepContent,
  TrueFalse,
  normalize_interaction_tag,
)

logger = logging.getLogger(__name__)

JsonDict = dict[str, Any]
Normalizer = Callable[[JsonDict, StepSpec], Interaction | None]

MIN_FRAGMENT_CHARS = 6

_TRUE_WORDS = frozenset({"true", "yes", "correct", "right", "t", "נכון", "כן", "אמת"})
_FALSE_WORDS = frozenset({"false", "no", "incorrect", "wrong", "f", "לא נכון", "לא", "שקר"})

_BLANK_PLACEHOLDER_RE = re.compile(r"_{3,}")
_BRACKET_RE = re.compile(r"\[([^\[\]]+)\]")
_BULLET_RE = re.compile(r"^\s*[-*•]\s?(.+)$", re.MULTILINE)
_LIST_MARKER_RE = re.compile(r"^\s*(?:\d+[.)]|[-*•])\s*")
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")

_MEMORY_KEY_PAIRS: tuple[tuple[str, str], ...] = (
  ("card_a", "card_b"),
  ("card1", "card2"),
  ("left", "right"),
  ("term", "definition"),
  ("concept", "meaning"),
  ("front", "back"),
)


def _text(value: Any, keys: tuple[str, ...] = ("text", "label", "content")) -> str:
  """Coerce a scalar or rich object into display text."""
  if isinstance(value, str):
    return value.strip()
  if isinstance(value, bool):
    return ""
  if isinstance(value, int | float):
    return str(value)
  if isinstance(value, dict):
    for key in keys:
      found = _text(value.get(key), keys=())
      if found:
        return found
  return ""


def _first_list(data: JsonDict, *keys: str) -> list[Any]:
  for key in keys:
    value = data.get(key)
    if isinstance(value, list) and value:
      return value
  return []


def _first_text(data: JsonDict, *keys: str) -> str:
  for key in keys:
    found = _text(data.get(key), keys=("text",))
    if found:
      return found
  return ""


def _unique(values: list[str]) -> list[str]:
  seen: set[str] = set()
  result: list[str] = []
  for value in values:
    if value and value not in seen:
      seen.add(value)
      result.append(value)
  return result


def _question_text(data: JsonDict) -> str:
  return _first_text(data, "question", "question_text", "text", "instruction")


def merge_wrappers(raw: JsonDict) -> JsonDict:
  """Lift `interaction` and `data` wrapper objects over the top-level payload."""
  merged = dict(raw)
  for wrapper in ("data", "interaction"):
    inner = raw.get(wrapper)
    if isinstance(inner, dict):
      merged.update(inner)
  return merged


def resolve_kind(raw: JsonDict, spec: StepSpec) -> str:
  """Resolve the interaction kind using the payload's tag fields before the planned tag."""
  interaction = raw.get("interaction")
  candidates = [
    interaction.get("type") if isinstance(interaction, dict) else None,
    raw.get("suggested_interaction_type"),
    raw.get("selected_interaction"),
    raw.get("type"),
    spec.suggested_interaction,
  ]
  for candidate in candidates:
    if isinstance(candidate, str) and candidate.strip():
      return normalize_interaction_tag(candidate)
  return normalize_interaction_tag(None)


def resolve_correct_answer(candidate: str, options: list[str]) -> str:
  """Map a proposed answer onto one of the options; falls back to the first option."""
  needle = candidate.strip().lower()
  if needle:
    for option in options:
      if option.lower() == needle:
        return option
    for option in options:
      lowered = option.lower()
      if needle in lowered or lowered in needle:
        return option
    lexicon = _TRUE_WORDS if needle in _TRUE_WORDS else _FALSE_WORDS if needle in _FALSE_WORDS else None
    if lexicon is not None:
      for option in options:
        if option.lower() in lexicon:
          return option
  return options[0]


def _answer_candidate(data: JsonDict, options: list[str]) -> str:
  raw_answer = data.get("correct_answer", data.get("answer"))
  if isinstance(raw_answer, bool):
    word = "true" if raw_answer else "false"
    return word
  answer = _text(raw_answer)
  if answer:
    return answer
  index = data.get("correct_index", data.get("correctIndex"))
  if isinstance(index, int) and not isinstance(index, bool) and 0 <= index < len(options):
    return options[index]
  return ""


def _normalize_choice(data: JsonDict, spec: StepSpec, *, true_false: bool) -> MultipleChoice | TrueFalse | None:
  options: list[str] = []
  flagged: str | None = None
  for option in _first_list(data, "options", "choices", "answers"):
    text = _text(option)
    if not text:
      continue
    options.append(text)
    if flagged is None and isinstance(option, dict) and (option.get("is_correct") is True or option.get("isCorrect") is True):
      flagged = text
  options = _unique(options)
  if true_false and len(options) < 2:
    options = list(TRUE_FALSE_OPTIONS)
  if len(options) < 2:
    return None

  correct = flagged if flagged is not None else resolve_correct_answer(_answer_candidate(data, options), options)
  question = _question_text(data) or spec.title
  variant = TrueFalse if true_false else MultipleChoice
  feedback = {}
  for key in ("feedback_correct", "feedback_incorrect"):
    value = _first_text(data, key)
    if value:
      feedback[key] = value
  return variant(question=question, options=options, correct_answer=correct, **feedback)


def _normalize_multiple_choice(data: JsonDict, spec: StepSpec) -> Interaction | None:
  return _normalize_choice(data, spec, true_false=False)


def _normalize_true_false(data: JsonDict, spec: StepSpec) -> Interaction | None:
  return _normalize_choice(data, spec, true_false=True)


def split_sequence_text(text: str) -> list[str]:
  """Rebuild ordered items from free text: lines first, then sentences."""
  lines = [_LIST_MARKER_RE.sub("", line).strip() for line in text.splitlines()]
  lines = [line for line in lines if line]
  if len(lines) >= 2:
    return lines
  fragments = [fragment.strip() for fragment in _SENTENCE_SPLIT_RE.split(text)]
  return [fragment for fragment in fragments if len(fragment) >= MIN_FRAGMENT_CHARS]


def _normalize_ordering(data: JsonDict, spec: StepSpec) -> Interaction | None:
  item_keys = ("text", "step", "content", "description")
  items = [_text(item, keys=item_keys) for item in _first_list(data, "correct_order", "items", "steps")]
  items = [item for item in items if item]
  instruction = _first_text(data, "instruction", "question", "text")
  if len(items) < 2 and instruction:
    items = split_sequence_text(instruction)
    # The instruction became the items.
    instruction = DEFAULT_ORDERING_INSTRUCTION
  if len(items) < 2:
    return None
  return Ordering(instruction=instruction or DEFAULT_ORDERING_INSTRUCTION, correct_order=items)


def _category_lookup(raw_categories: list[Any]) -> tuple[list[str], dict[str, str]]:
  labels: list[str] = []
  by_id: dict[str, str] = {}
  for category in raw_categories:
    label = _text(category, keys=("label", "name", "text", "title"))
    if not label:
      continue
    labels.append(label)
    if isinstance(category, dict) and category.get("id") is not None:
      by_id[str(category["id"])] = label
  return _unique(labels), by_id


def _assign_category(item: JsonDict, categories: list[str], by_id: dict[str, str]) -> str:
  """Resolve one item's category: explicit field, then positional group, then the first category."""
  explicit = item.get("category_id", item.get("category"))
  if explicit is not None:
    key = _text(explicit, keys=("label", "id"))
    if key in by_id:
      return by_id[key]
    if key in categories:
      return key
  for field in ("group_index", "group"):
    value = item.get(field)
    if isinstance(value, int) and not isinstance(value, bool) and 0 <= value < len(categories):
      return categories[value]
    if isinstance(value, str) and value.strip() in categories:
      return value.strip()
  return categories[0]


def _normalize_categorization(data: JsonDict, spec: StepSpec) -> Interaction | None:
  categories, by_id = _category_lookup(_first_list(data, "categories", "groups"))
  items: list[CategorizedItem] = []

  pairs = data.get("pairs") if isinstance(data.get("pairs"), list) else []
  for pair in pairs:
    if not isinstance(pair, dict):
      continue
    text = _text(pair.get("left", pair.get("item")))
    category = _text(pair.get("right", pair.get("category")))
    if text and category:
      if category not in categories:
        categories.append(category)
      items.append(CategorizedItem(text=text, category=category))

  if len(categories) < 2:
    return None

  for item in _first_list(data, "items"):
    if isinstance(item, dict):
      text = _text(item, keys=("text", "content", "label", "item"))
      if text:
        items.append(CategorizedItem(text=text, category=_assign_category(item, categories, by_id)))
    else:
      text = _text(item)
      if text:
        items.append(CategorizedItem(text=text, category=categories[0]))

  if not items:
    free_text = "\n".join(_first_text(data, key) for key in ("question", "instruction", "text", "teach_content"))
    items = [CategorizedItem(text=match.strip(), category=categories[0]) for match in _BULLET_RE.findall(free_text) if match.strip()]

  if len(items) < 2:
    return None
  question = _first_text(data, "question", "instruction") or DEFAULT_CATEGORIZATION_QUESTION
  return Categorization(question=question, categories=categories, items=items)


def _match_items(raw_items: list[Any], id_for: Callable[[int], str]) -> list[MatchItem]:
  items: list[MatchItem] = []
  for index, raw in enumerate(raw_items):
    text = _text(raw)
    if not text:
      continue
    raw_id = raw.get("id") if isinstance(raw, dict) else None
    items.append(MatchItem(id=str(raw_id) if raw_id is not None else id_for(index), text=text))
  return items


def _placeholder_matching(instruction: str) -> Matching:
  return Matching(
    instruction=instruction,
    left_items=[MatchItem(id="1", text="פריט 1"), MatchItem(id="2", text="פריט 2")],
    right_items=[MatchItem(id="a", text="התאמה 1"), MatchItem(id="b", text="התאמה 2")],
    correct_matches=[MatchLink(left="1", right="a"), MatchLink(left="2", right="b")],
  )


def _normalize_matching(data: JsonDict, spec: StepSpec) -> Interaction | None:
  # Matching expressed as item/category pairs is a categorization task.
  if isinstance(data.get("pairs"), list) and not (data.get("left_items") or data.get("leftItems")):
    return _normalize_categorization(data, spec)

  instruction = _first_text(data, "instruction", "question") or DEFAULT_MATCHING_INSTRUCTION
  left = _match_items(_first_list(data, "left_items", "leftItems"), lambda index: str(index + 1))
  right = _match_items(_first_list(data, "right_items", "rightItems"), lambda index: chr(ord("a") + index % 26))
  if len(left) < 2 or len(right) < 2:
    return _placeholder_matching(instruction)

  left_ids = {item.id for item in left}
  right_ids = {item.id for item in right}
  links: list[MatchLink] = []
  for raw in _first_list(data, "correct_matches", "correctMatches"):
    if isinstance(raw, dict):
      pair = (raw.get("left", raw.get("leftId")), raw.get("right", raw.get("rightId")))
    elif isinstance(raw, list) and len(raw) == 2:
      pair = (raw[0], raw[1])
    else:
      continue
    link = MatchLink(left=str(pair[0]), right=str(pair[1]))
    if link.left in left_ids and link.right in right_ids:
      links.append(link)
  if not links:
    links = [MatchLink(left=a.id, right=b.id) for a, b in zip(left, right, strict=False)]
  return Matching(instruction=instruction, left_items=left, right_items=right, correct_matches=links)


def _answers_list(value: Any) -> list[str]:
  if isinstance(value, list):
    return [_text(item) for item in value if _text(item)]
  single = _text(value)
  return [single] if single else []


def _fill_template(template: str, answers: list[str]) -> str:
  """Replace `_____` placeholders with bracketed answers, left to right."""
  queue = list(answers)

  def _replace(match: re.Match[str]) -> str:
    return f"[{queue.pop(0)}]" if queue else match.group(0)

  return _BLANK_PLACEHOLDER_RE.sub(_replace, template)


def _bracket_sentence(sentence: str, answer: str) -> str:
  if _BLANK_PLACEHOLDER_RE.search(sentence):
    return _fill_template(sentence, [answer])
  if answer in sentence:
    return sentence.replace(answer, f"[{answer}]", 1)
  return f"{sentence} [{answer}]"


def _normalize_fill_in_blank(data: JsonDict, spec: StepSpec) -> Interaction | None:
  text = _first_text(data, "text", "content")
  if not _BRACKET_RE.search(text):
    template = _first_text(data, "text_with_blanks", "sentence")
    answers = _answers_list(data.get("correct_answers", data.get("answers", data.get("answer"))))
    sentences = [_text(item) for item in data.get("sentences", [])] if isinstance(data.get("sentences"), list) else []
    if template and answers:
      text = _fill_template(template, answers)
    elif sentences and answers:
      text = " ".join(_bracket_sentence(sentence, answer) for sentence, answer in zip(sentences, answers, strict=False) if sentence)
    else:
      return None

  hidden = [word.strip() for word in _BRACKET_RE.findall(text) if word.strip()]
  if not hidden:
    return None
  extras = [_text(item) for item in _first_list(data, "distractors", "word_bank", "bank", "options")]
  distractors = _unique([word for word in extras if word and word not in hidden])
  return FillInBlank(text=text, word_bank=_unique(hidden + distractors), distractors=distractors)


def _normalize_open_question(data: JsonDict, spec: StepSpec) -> Interaction | None:
  guidance: str = ""
  for key in ("teacher_guidelines", "model_answer", "answer_key"):
    value = data.get(key)
    if isinstance(value, list):
      value = "\n".join(_text(line) for line in value if _text(line))
    guidance = _text(value)
    if guidance:
      break
  return OpenQuestion(question=_question_text(data) or spec.title, model_answer=guidance or DEFAULT_RUBRIC)


def _memory_pair(raw: Any) -> MemoryPair | None:
  if isinstance(raw, list | tuple) and len(raw) == 2:
    first, second = _text(raw[0]), _text(raw[1])
    return MemoryPair(card_a=first, card_b=second) if first and second else None
  if not isinstance(raw, dict):
    return None
  for left_key, right_key in _MEMORY_KEY_PAIRS:
    first, second = _text(raw.get(left_key)), _text(raw.get(right_key))
    if first and second:
      return MemoryPair(card_a=first, card_b=second)
  return None


def _normalize_memory_game(data: JsonDict, spec: StepSpec) -> Interaction | None:
  pairs = [pair for pair in (_memory_pair(raw) for raw in _first_list(data, "pairs", "cards")) if pair is not None]
  if len(pairs) < 2:
    return None
  return MemoryGame(question=_first_text(data, "question", "instruction") or DEFAULT_MEMORY_QUESTION, pairs=pairs)


_NORMALIZERS: dict[str, Normalizer] = {
  "multiple_choice": _normalize_multiple_choice,
  "true_false": _normalize_true_false,
  "ordering": _normalize_ordering,
  "categorization": _normalize_categorization,
  "matching": _normalize_matching,
  "fill_in_blank": _normalize_fill_in_blank,
  "open_question": _normalize_open_question,
  "memory_game": _normalize_memory_game,
}


def _kind_of(content: Interaction) -> str:
  return content.__struct_config__.tag


def _hints(data: JsonDict) -> list[str]:
  raw = data.get("hints", data.get("progressive_hints"))
  if isinstance(raw, str):
    return [raw.strip()] if raw.strip() else []
  if isinstance(raw, list):
    return [_text(hint) for hint in raw if _text(hint)]
  return []


def enforce_exam(step: StepContent) -> StepContent:
  """Strip teaching scaffolding from an assessment step."""
  return msgspec.structs.replace(step, teach_content="", hints=[])


def synthesize_step(spec: StepSpec, *, mode: str, topic: str) -> StepContent:
  """Build a generic on-topic multiple-choice placeholder for an unrecoverable step."""
  options = [f"תשובה נכונה בנושא {topic}", "תשובה שגויה א", "תשובה שגויה ב", "תשובה שגויה ג"]
  content = MultipleChoice(question=f"שאלה {spec.step_number} בנושא {topic}", options=options, correct_answer=options[0])
  step = StepContent(step_number=spec.step_number, title=spec.title, bloom_level=spec.bloom_level, interaction="multiple_choice", content=content, synthesized=True)
  return enforce_exam(step) if mode == "exam" else step


def repair_step(raw: JsonDict | None, spec: StepSpec, *, mode: str, topic: str) -> StepContent:
  """Coerce a recovered completion into a valid step; never raises on content."""
  if not isinstance(raw, dict):
    logger.warning("Step %s had no recoverable payload; using placeholder.", spec.step_number)
    return synthesize_step(spec, mode=mode, topic=topic)

  data = merge_wrappers(raw)
  kind = resolve_kind(raw, spec)
  content = _NORMALIZERS[kind](data, spec)
  if content is None:
    logger.warning("Step %s could not be repaired as %s; using placeholder.", spec.step_number, kind)
    return synthesize_step(spec, mode=mode, topic=topic)

  step = StepContent(
    step_number=spec.step_number,
    title=_first_text(data, "title", "step_title") or spec.title,
    bloom_level=_first_text(data, "bloom_level") or spec.bloom_level,
    interaction=_kind_of(content),
    content=content,
    teach_content=_first_text(data, "teach_content", "teaching_content", "explanation"),
    teacher_tip=_first_text(data, "teacher_tip", "tip"),
    hints=_hints(data),
    source_reference=_first_text(data, "source_reference", "source_reference_hint", "citation") or None,
  )
  if mode == "exam":
    step = enforce_exam(step)
  return step

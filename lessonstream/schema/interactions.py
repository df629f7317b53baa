from __future__ import annotations

import re
from typing import Annotated, Final

import msgspec

DEFAULT_FEEDBACK_CORRECT: Final[str] = "כל הכבוד! התשובה תואמת את הטקסט."
DEFAULT_FEEDBACK_INCORRECT: Final[str] = "לא מדויק. כדאי לנסות שוב או להיעזר ברמז המודגש."
DEFAULT_RUBRIC: Final[str] = "מה לחפש: תשובה המבוססת על החומר הנלמד, עם נימוק ודוגמה."
DEFAULT_ORDERING_INSTRUCTION: Final[str] = "סדרו את הצעדים הבאים:"
DEFAULT_CATEGORIZATION_QUESTION: Final[str] = "מיינו את הפריטים לקטגוריות:"
DEFAULT_MATCHING_INSTRUCTION: Final[str] = "התאימו בין הפריטים:"
DEFAULT_MEMORY_QUESTION: Final[str] = "מצאו את הזוגות המתאימים:"
TRUE_FALSE_OPTIONS: Final[tuple[str, str]] = ("נכון", "לא נכון")

INTERACTION_KINDS: Final[tuple[str, ...]] = ("multiple_choice", "true_false", "ordering", "categorization", "matching", "fill_in_blank", "open_question", "memory_game")
FALLBACK_KIND: Final[str] = "multiple_choice"

TAG_ALIASES: Final[dict[str, str]] = {
  "fill_in_blanks": "fill_in_blank",
  "fill_blank": "fill_in_blank",
  "fill_blanks": "fill_in_blank",
  "cloze": "fill_in_blank",
  "memory": "memory_game",
  "matching_pairs": "memory_game",
  "sequencing": "ordering",
  "grouping": "categorization",
  "open_ended": "open_question",
  "teach_then_ask": "multiple_choice",
  "matching_lines": "matching",
}

_BLANK_RE = re.compile(r"\[([^\[\]]+)\]")


def normalize_interaction_tag(raw: object) -> str:
  """Fold any interaction tag onto a canonical kind; unknown tags become multiple_choice."""
  if not isinstance(raw, str) or not raw.strip():
    return FALLBACK_KIND
  tag = raw.strip().lower().replace("-", "_").replace(" ", "_")
  tag = TAG_ALIASES.get(tag, tag)
  return tag if tag in INTERACTION_KINDS else FALLBACK_KIND


class Interaction(msgspec.Struct, tag_field="type", kw_only=True):
  """Base for all interaction variants; the tag is the wire `type` field."""


class MultipleChoice(Interaction, tag="multiple_choice"):
  question: str
  options: Annotated[list[str], msgspec.Meta(min_length=2)]
  correct_answer: Annotated[str, msgspec.Meta(description="Always one of `options`")]
  feedback_correct: str = DEFAULT_FEEDBACK_CORRECT
  feedback_incorrect: str = DEFAULT_FEEDBACK_INCORRECT


class TrueFalse(Interaction, tag="true_false"):
  question: str
  options: Annotated[list[str], msgspec.Meta(min_length=2)]
  correct_answer: str
  feedback_correct: str = DEFAULT_FEEDBACK_CORRECT
  feedback_incorrect: str = DEFAULT_FEEDBACK_INCORRECT


class Ordering(Interaction, tag="ordering"):
  instruction: str
  correct_order: Annotated[list[str], msgspec.Meta(min_length=2, description="Items in their correct sequence")]
  feedback_correct: str = DEFAULT_FEEDBACK_CORRECT
  feedback_incorrect: str = DEFAULT_FEEDBACK_INCORRECT


class CategorizedItem(msgspec.Struct):
  text: str
  category: str


class Categorization(Interaction, tag="categorization"):
  question: str
  categories: Annotated[list[str], msgspec.Meta(min_length=2)]
  items: Annotated[list[CategorizedItem], msgspec.Meta(min_length=2)]


class MatchItem(msgspec.Struct):
  id: str
  text: str


class MatchLink(msgspec.Struct):
  left: str
  right: str


class Matching(Interaction, tag="matching"):
  """Line-drawing matching between two columns."""

  instruction: str
  left_items: list[MatchItem]
  right_items: list[MatchItem]
  correct_matches: list[MatchLink]


class FillInBlank(Interaction, tag="fill_in_blank"):
  text: Annotated[str, msgspec.Meta(description="Body text with hidden tokens in [brackets]")]
  word_bank: list[str] = msgspec.field(default_factory=list)
  distractors: list[str] = msgspec.field(default_factory=list)

  def hidden_words(self) -> list[str]:
    return [match.strip() for match in _BLANK_RE.findall(self.text)]


class OpenQuestion(Interaction, tag="open_question"):
  question: str
  model_answer: str = DEFAULT_RUBRIC


class MemoryPair(msgspec.Struct):
  card_a: str
  card_b: str


class MemoryGame(Interaction, tag="memory_game"):
  question: str
  pairs: Annotated[list[MemoryPair], msgspec.Meta(min_length=2)]


ParsedContent = MultipleChoice | TrueFalse | Ordering | Categorization | Matching | FillInBlank | OpenQuestion | MemoryGame


class StepContent(msgspec.Struct, kw_only=True):
  """A planned step together with its validated interaction."""

  step_number: int
  title: str
  bloom_level: str
  interaction: str
  content: ParsedContent
  teach_content: str = ""
  teacher_tip: str = ""
  hints: list[str] = msgspec.field(default_factory=list)
  source_reference: str | None = None
  level: str | None = None
  synthesized: bool = False

from __future__ import annotations

from typing import Any, Final, Literal

import msgspec

LessonPartName = Literal["part1", "part2"]

PART_SECTIONS: Final[dict[str, tuple[str, ...]]] = {
  "part1": ("lesson_metadata", "hook", "direct_instruction"),
  "part2": ("guided_practice", "independent_practice", "discussion", "summary"),
}

SECTION_TITLES: Final[dict[str, str]] = {
  "lesson_metadata": "פרטי השיעור",
  "hook": "פתיחה",
  "direct_instruction": "הוראה",
  "guided_practice": "תרגול מודרך",
  "independent_practice": "תרגול עצמי",
  "discussion": "דיון",
  "summary": "סיכום",
}

PODCAST_HOSTS: Final[tuple[str, str]] = ("דן", "נועה")
DEFAULT_EMOTION: Final[str] = "ניטרלי"


class LessonPart(msgspec.Struct, kw_only=True):
  """One half of a lesson plan, keyed by section name."""

  part: LessonPartName
  sections: dict[str, dict[str, Any]]
  synthesized: bool = False


class PodcastLine(msgspec.Struct):
  speaker: str
  text: str
  emotion: str = DEFAULT_EMOTION


class PodcastScript(msgspec.Struct, kw_only=True):
  title: str
  lines: list[PodcastLine]
  synthesized: bool = False

"""Test doubles for model providers and identity verification."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable
from typing import Any

from lessonstream.ai.pipeline.contracts import GenerationRequest
from lessonstream.ai.providers.base import AIModel

Reply = str | list[str] | BaseException
Responder = Callable[[str], Reply]


class ScriptedModel(AIModel):
  """Model double that answers every prompt through a responder function."""

  def __init__(self, name: str, responder: Responder, *, delay: float = 0.0) -> None:
    self.name = name
    self._responder = responder
    self._delay = delay
    self.prompts: list[str] = []
    self.temperatures: list[float] = []

  async def stream(self, prompt: str, *, temperature: float, max_output_tokens: int) -> AsyncIterator[str]:
    self.prompts.append(prompt)
    self.temperatures.append(temperature)
    if self._delay:
      await asyncio.sleep(self._delay)
    reply = self._responder(prompt)
    if isinstance(reply, BaseException):
      raise reply
    for chunk in [reply] if isinstance(reply, str) else reply:
      yield chunk


class StaticVerifier:
  """Accepts one known token."""

  def __init__(self, token: str = "good-token", subject: str = "teacher-1") -> None:
    self._token = token
    self._subject = subject

  async def verify(self, token: str) -> str | None:
    return self._subject if token == self._token else None


def skeleton_reply(step_count: int, *, title: str = "מחזור המים") -> str:
  steps = [{"title": f"שלב {number}", "narrative_focus": f"מיקוד {number}", "suggested_interaction_type": "multiple_choice"} for number in range(1, step_count + 1)]
  return json.dumps({"unit_title": title, "steps": steps}, ensure_ascii=False)


def multiple_choice_reply(prompt: str) -> str:
  payload = {
    "teach_content": "הסבר קצר",
    "teacher_tip": "שאלו את הכיתה",
    "selected_interaction": "multiple_choice",
    "data": {
      "question": "מה מניע את מחזור המים?",
      "options": ["השמש", "הירח", "הרוח"],
      "correct_answer": "השמש",
      "progressive_hints": ["חפשו בפסקה הראשונה", "מה מחמם את המים?"],
    },
  }
  return json.dumps(payload, ensure_ascii=False)


def make_request(**overrides: Any) -> GenerationRequest:
  values: dict[str, Any] = {"grade_level": "כיתה ה", "topic": "מחזור המים", "length": "short"}
  values.update(overrides)
  return GenerationRequest(**values)

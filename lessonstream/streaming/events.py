"""Server-push event envelope and SSE framing."""

from __future__ import annotations

from enum import Enum
from typing import Any

import msgspec

from lessonstream.core.json import dumps


class EventType(str, Enum):
  PROGRESS = "progress"
  SKELETON_COMPLETE = "skeleton_complete"
  STEP_COMPLETE = "step_complete"
  LEVEL_START = "level_start"
  LEVEL_COMPLETE = "level_complete"
  PART1_COMPLETE = "part1_complete"
  PART2_COMPLETE = "part2_complete"
  DONE = "done"
  ERROR = "error"


TERMINAL_EVENTS = frozenset({EventType.DONE, EventType.ERROR})

SSE_HEADERS: dict[str, str] = {"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"}


class StreamEvent(msgspec.Struct, frozen=True, kw_only=True):
  """One published event. `content` stays an opaque string that clients re-parse."""

  type: str
  content: str
  metadata: dict[str, Any] = msgspec.field(default_factory=dict)
  sequence: int = 0

  @property
  def terminal(self) -> bool:
    return self.type in (EventType.DONE.value, EventType.ERROR.value)

  def envelope(self) -> dict[str, Any]:
    return {"type": self.type, "content": self.content, "metadata": {**self.metadata, "sequence": self.sequence}}

  def to_sse(self) -> str:
    """Frame the event as `event:` / `data:` lines terminated by a blank line."""
    return f"event: {self.type}\ndata: {dumps(self.envelope())}\n\n"


def parse_sse(body: str) -> list[dict[str, Any]]:
  """Split a captured SSE body back into envelopes with their event names."""
  events: list[dict[str, Any]] = []
  for block in body.split("\n\n"):
    name: str | None = None
    data: str | None = None
    for line in block.splitlines():
      if line.startswith("event: "):
        name = line[len("event: "):].strip()
      elif line.startswith("data: "):
        data = line[len("data: "):]
    if name and data is not None:
      events.append({"event": name, **msgspec.json.decode(data)})
  return events

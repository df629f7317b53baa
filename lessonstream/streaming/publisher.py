"""Single serialized publish point for one request's event stream."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from lessonstream.core.json import dumps
from lessonstream.streaming.events import TERMINAL_EVENTS, EventType, StreamEvent

logger = logging.getLogger(__name__)


class EventOrderError(RuntimeError):
  """Raised when a producer publishes a step before its skeleton."""


class EventPublisher:
  """Orders events for one request and hands them to the delivery channel.

  Concurrent producers call `publish`; the lock makes it the only place a
  sequence number is assigned. `skeleton_complete` must precede every
  `step_complete` of the same level scope, and nothing is delivered after a
  terminal event. Once the consumer closes the channel, events are still
  sequenced but discarded.
  """

  def __init__(self, *, request_id: str) -> None:
    self.request_id = request_id
    self._queue: asyncio.Queue[StreamEvent | None] = asyncio.Queue()
    self._lock = asyncio.Lock()
    self._sequence = 0
    self._finished = False
    self._closed = False
    self._skeleton_scopes: set[str | None] = set()

  @property
  def finished(self) -> bool:
    return self._finished

  @property
  def closed(self) -> bool:
    return self._closed

  @property
  def sequence(self) -> int:
    return self._sequence

  async def publish(self, event_type: EventType, content: Any = "", metadata: dict[str, Any] | None = None) -> StreamEvent | None:
    """Sequence and enqueue one event; returns None when it was dropped."""
    meta = dict(metadata or {})
    body = content if isinstance(content, str) else dumps(content)
    async with self._lock:
      if self._finished:
        logger.warning("Dropping %s event after terminal event (request_id=%s).", event_type.value, self.request_id)
        return None

      scope = meta.get("level")
      if event_type is EventType.STEP_COMPLETE and scope not in self._skeleton_scopes:
        raise EventOrderError(f"step_complete published before skeleton_complete (level={scope})")
      if event_type is EventType.SKELETON_COMPLETE:
        self._skeleton_scopes.add(scope)

      self._sequence += 1
      event = StreamEvent(type=event_type.value, content=body, metadata=meta, sequence=self._sequence)
      if event_type in TERMINAL_EVENTS:
        self._finished = True

      if self._closed:
        logger.debug("Channel closed; discarding %s (request_id=%s).", event_type.value, self.request_id)
        return None

      self._queue.put_nowait(event)
      if self._finished:
        self._queue.put_nowait(None)
      return event

  def close(self) -> None:
    """Mark the delivery channel as gone; pending and future events are discarded."""
    if self._closed:
      return
    self._closed = True
    while not self._queue.empty():
      self._queue.get_nowait()
    self._queue.put_nowait(None)

  async def events(self) -> AsyncIterator[StreamEvent]:
    """Yield events in publish order until a terminal event or channel close."""
    while True:
      event = await self._queue.get()
      if event is None:
        return
      yield event

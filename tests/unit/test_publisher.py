"""Unit tests for event ordering and delivery."""

from __future__ import annotations

import pytest

from lessonstream.streaming.events import EventType, StreamEvent, parse_sse
from lessonstream.streaming.publisher import EventOrderError, EventPublisher


async def _drain(publisher: EventPublisher) -> list[StreamEvent]:
  return [event async for event in publisher.events()]


@pytest.mark.anyio
async def test_events_are_sequenced_and_end_at_terminal() -> None:
  publisher = EventPublisher(request_id="req-1")
  await publisher.publish(EventType.PROGRESS, "מתחיל")
  await publisher.publish(EventType.SKELETON_COMPLETE, {"steps": []})
  await publisher.publish(EventType.STEP_COMPLETE, {"step_number": 1})
  await publisher.publish(EventType.DONE, {"title": "x"})

  events = await _drain(publisher)
  assert [event.type for event in events] == ["progress", "skeleton_complete", "step_complete", "done"]
  assert [event.sequence for event in events] == [1, 2, 3, 4]
  assert events[1].content == '{"steps":[]}'
  assert publisher.finished


@pytest.mark.anyio
async def test_step_before_skeleton_is_rejected() -> None:
  publisher = EventPublisher(request_id="req-1")
  with pytest.raises(EventOrderError):
    await publisher.publish(EventType.STEP_COMPLETE, {"step_number": 1})
  assert publisher.sequence == 0


@pytest.mark.anyio
async def test_skeleton_ordering_is_scoped_per_level() -> None:
  publisher = EventPublisher(request_id="req-1")
  await publisher.publish(EventType.SKELETON_COMPLETE, {}, {"level": "support"})
  await publisher.publish(EventType.STEP_COMPLETE, {}, {"level": "support"})
  with pytest.raises(EventOrderError):
    await publisher.publish(EventType.STEP_COMPLETE, {}, {"level": "core"})


@pytest.mark.anyio
async def test_nothing_is_delivered_after_terminal_event() -> None:
  publisher = EventPublisher(request_id="req-1")
  await publisher.publish(EventType.ERROR, "Generation failed")
  assert await publisher.publish(EventType.DONE, {}) is None
  assert await publisher.publish(EventType.PROGRESS, "late") is None

  events = await _drain(publisher)
  assert [event.type for event in events] == ["error"]


@pytest.mark.anyio
async def test_closed_channel_discards_pending_and_future_events() -> None:
  publisher = EventPublisher(request_id="req-1")
  await publisher.publish(EventType.PROGRESS, "one")
  publisher.close()
  assert await publisher.publish(EventType.PROGRESS, "two") is None
  assert publisher.sequence == 2
  assert await _drain(publisher) == []


def test_sse_framing_carries_sequence_in_metadata() -> None:
  event = StreamEvent(type="step_complete", content='{"step_number":1}', metadata={"stepNumber": 1}, sequence=7)
  frame = event.to_sse()
  assert frame.startswith("event: step_complete\ndata: ")
  assert frame.endswith("\n\n")
  [parsed] = parse_sse(frame)
  assert parsed == {"event": "step_complete", "type": "step_complete", "content": '{"step_number":1}', "metadata": {"stepNumber": 1, "sequence": 7}}

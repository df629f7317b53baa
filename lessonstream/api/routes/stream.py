import logging
import uuid
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from lessonstream.ai.orchestrator import GenerationOrchestrator, StreamKind
from lessonstream.api.deps import get_orchestrator
from lessonstream.api.models import StreamRequest
from lessonstream.core.security import get_current_subject
from lessonstream.streaming.events import SSE_HEADERS, StreamEvent

router = APIRouter()
logger = logging.getLogger("lessonstream.api.routes.stream")


async def _sse(events: AsyncIterator[StreamEvent]) -> AsyncIterator[str]:
  async for event in events:
    yield event.to_sse()


def _open_stream(kind: StreamKind, body: StreamRequest, request: Request, subject: str, orchestrator: GenerationOrchestrator) -> StreamingResponse:
  """Validate the body, then hand the run's events to an SSE response."""
  generation_request = body.to_generation_request()
  request_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())
  events = orchestrator.open_stream(kind, generation_request, request_id=request_id, subject=subject)
  logger.info("Opening %s stream request_id=%s subject=%s", kind, request_id, subject)
  return StreamingResponse(_sse(events), media_type="text/event-stream", headers=SSE_HEADERS)


@router.post("/activity")
async def stream_activity(
  body: StreamRequest,
  request: Request,
  subject: str = Depends(get_current_subject),  # noqa: B008
  orchestrator: GenerationOrchestrator = Depends(get_orchestrator),  # noqa: B008
) -> StreamingResponse:
  """Stream a single multi-step activity."""
  return _open_stream("activity", body, request, subject, orchestrator)


@router.post("/differentiated")
async def stream_differentiated(
  body: StreamRequest,
  request: Request,
  subject: str = Depends(get_current_subject),  # noqa: B008
  orchestrator: GenerationOrchestrator = Depends(get_orchestrator),  # noqa: B008
) -> StreamingResponse:
  """Stream support, core and enrichment variants generated concurrently."""
  return _open_stream("differentiated", body, request, subject, orchestrator)


@router.post("/lesson")
async def stream_lesson(
  body: StreamRequest,
  request: Request,
  subject: str = Depends(get_current_subject),  # noqa: B008
  orchestrator: GenerationOrchestrator = Depends(get_orchestrator),  # noqa: B008
) -> StreamingResponse:
  """Stream a two-part lesson plan."""
  return _open_stream("lesson", body, request, subject, orchestrator)


@router.post("/podcast")
async def stream_podcast(
  body: StreamRequest,
  request: Request,
  subject: str = Depends(get_current_subject),  # noqa: B008
  orchestrator: GenerationOrchestrator = Depends(get_orchestrator),  # noqa: B008
) -> StreamingResponse:
  """Stream a two-host podcast script."""
  return _open_stream("podcast", body, request, subject, orchestrator)

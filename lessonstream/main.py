from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from lessonstream.ai.errors import OrchestrationError
from lessonstream.ai.prompts import PROMPT_VERSION
from lessonstream.api.routes import stream
from lessonstream.config import get_settings
from lessonstream.core.exceptions import global_exception_handler, http_exception_handler, orchestration_exception_handler, request_validation_exception_handler
from lessonstream.core.json import StructJSONResponse
from lessonstream.core.lifespan import lifespan
from lessonstream.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware

__version__ = "0.1.0"

settings = get_settings()

app = FastAPI(default_response_class=StructJSONResponse, lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)

app.add_middleware(CORSMiddleware, allow_origins=list(settings.allowed_origins), allow_credentials=True, allow_methods=["GET", "POST", "OPTIONS"], allow_headers=["content-type", "authorization"], expose_headers=["x-request-id"])

# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(OrchestrationError, orchestration_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": __version__, "promptVersion": PROMPT_VERSION}


app.include_router(stream.router, prefix="/v1/stream", tags=["stream"])

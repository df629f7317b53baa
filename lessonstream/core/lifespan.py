import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from lessonstream.ai.gateway import ModelTier
from lessonstream.ai.orchestrator import GenerationOrchestrator
from lessonstream.ai.router import build_gateway
from lessonstream.core.firebase import initialize_firebase
from lessonstream.core.logging import _initialize_logging
from lessonstream.core.security import FirebaseIdentityVerifier
from lessonstream.storage.artifact_cache import InMemoryArtifactCache


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Configure logging and build the process-wide gateway, cache and orchestrator."""
  from lessonstream.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("lessonstream.core.lifespan")
  _initialize_logging(settings)

  if not initialize_firebase(settings):
    logger.warning("Identity verification unavailable until Firebase is configured; stream routes will reject requests.")

  # A gateway that cannot be built (unknown provider, missing key) is fatal at startup.
  gateway = build_gateway(settings)
  cache = None
  if settings.cache_enabled:
    cache = InMemoryArtifactCache(ttl_seconds=settings.cache_ttl_seconds, max_entries=settings.cache_max_entries, namespace=settings.prompt_version)

  app.state.identity_verifier = FirebaseIdentityVerifier()
  app.state.orchestrator = GenerationOrchestrator(gateway=gateway, settings=settings, cache=cache)
  logger.info(
    "Startup complete provider=%s fast=%s quality=%s cache=%s",
    settings.provider,
    gateway.model_name(ModelTier.FAST),
    gateway.model_name(ModelTier.QUALITY),
    "on" if cache is not None else "off",
  )

  yield

  logger.info("Shutting down.")

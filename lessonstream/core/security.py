from __future__ import annotations

from typing import Annotated, Protocol

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.concurrency import run_in_threadpool

from lessonstream.ai.errors import AuthenticationError
from lessonstream.core.firebase import verify_id_token

# auto_error=False so missing credentials flow through AuthenticationError, not a bare 403.
security_scheme = HTTPBearer(auto_error=False)


class IdentityVerifier(Protocol):
  """Maps a bearer token to a subject id, or None when rejected."""

  async def verify(self, token: str) -> str | None: ...


class FirebaseIdentityVerifier:
  """Verifier backed by the Firebase Admin SDK."""

  async def verify(self, token: str) -> str | None:
    # The Admin SDK is blocking; keep it off the event loop.
    decoded_claims = await run_in_threadpool(verify_id_token, token)
    if not decoded_claims:
      return None
    uid = decoded_claims.get("uid")
    return str(uid) if uid else None


def get_identity_verifier(request: Request) -> IdentityVerifier:
  """Return the verifier built at startup."""
  verifier = getattr(request.app.state, "identity_verifier", None)
  return verifier if verifier is not None else FirebaseIdentityVerifier()


async def get_current_subject(
  token: Annotated[HTTPAuthorizationCredentials | None, Depends(security_scheme)],
  verifier: Annotated[IdentityVerifier, Depends(get_identity_verifier)],
) -> str:
  """Resolve the caller's subject before any orchestration work begins."""
  if token is None or not token.credentials:
    raise AuthenticationError("Missing bearer credential.")
  subject = await verifier.verify(token.credentials)
  if not subject:
    raise AuthenticationError("Bearer credential rejected.")
  return subject

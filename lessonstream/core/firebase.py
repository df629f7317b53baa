import logging
from typing import Any

import firebase_admin
from firebase_admin import auth, credentials

from lessonstream.config import Settings, get_settings

logger = logging.getLogger(__name__)


def initialize_firebase(settings: Settings | None = None) -> bool:
  """Initialize the Firebase Admin SDK once; returns whether an app is available."""
  if firebase_admin._apps:
    return True

  settings = settings or get_settings()
  if not settings.firebase_project_id:
    logger.warning("Firebase Project ID not set. Firebase Admin SDK not initialized.")
    return False

  try:
    if settings.firebase_service_account_json_path:
      cred = credentials.Certificate(settings.firebase_service_account_json_path)
      firebase_admin.initialize_app(cred, {"projectId": settings.firebase_project_id})
    else:
      # Application Default Credentials.
      firebase_admin.initialize_app(options={"projectId": settings.firebase_project_id})
  except (ValueError, OSError):
    logger.error("Failed to initialize Firebase Admin SDK.", exc_info=True)
    return False

  logger.info("Firebase Admin SDK initialized successfully.")
  return True


def verify_id_token(id_token: str) -> dict[str, Any] | None:
  """Verify a Firebase ID token, initializing the SDK lazily. Rejections return None."""
  if not firebase_admin._apps and not initialize_firebase():
    return None

  try:
    return auth.verify_id_token(id_token)
  except (auth.InvalidIdTokenError, auth.ExpiredIdTokenError, auth.RevokedIdTokenError, auth.CertificateFetchError, auth.UserDisabledError, ValueError) as exc:
    logger.warning("Token verification failed: %s", type(exc).__name__)
    return None

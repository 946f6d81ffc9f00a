"""Firebase Admin setup and ID-token verification for end-user requests."""

import logging
from typing import Any

import firebase_admin
from firebase_admin import auth, credentials

from reflect.config import Settings, get_settings

logger = logging.getLogger(__name__)

_TOKEN_ERRORS = (ValueError, auth.InvalidIdTokenError, auth.ExpiredIdTokenError, auth.RevokedIdTokenError, auth.UserDisabledError, auth.CertificateFetchError)


def _credential(settings: Settings) -> credentials.Base | None:
  # Application default credentials are picked up when no key file is configured.
  if settings.firebase_service_account_json_path:
    return credentials.Certificate(settings.firebase_service_account_json_path)
  return None


def initialize_firebase(settings: Settings | None = None) -> bool:
  """Initialize the default Firebase app once; returns whether it is available."""
  if firebase_admin._apps:
    return True

  settings = settings or get_settings()
  if not settings.firebase_project_id:
    logger.warning("FIREBASE_PROJECT_ID is not set; user authentication is disabled.")
    return False

  try:
    firebase_admin.initialize_app(_credential(settings), {"projectId": settings.firebase_project_id})
  except (ValueError, OSError) as exc:
    logger.error("Failed to initialize Firebase for project %s: %s", settings.firebase_project_id, exc)
    return False

  logger.info("Firebase initialized for project %s", settings.firebase_project_id)
  return True


def verify_id_token(id_token: str) -> dict[str, Any] | None:
  """Return decoded claims, or None when the token is not acceptable."""
  if not initialize_firebase():
    return None

  try:
    return auth.verify_id_token(id_token, check_revoked=True)
  except _TOKEN_ERRORS as exc:
    logger.warning("Rejected Firebase ID token: %s", type(exc).__name__)
    return None

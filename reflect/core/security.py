from __future__ import annotations

import logging
import secrets
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.concurrency import run_in_threadpool

from reflect.config import Settings, get_settings
from reflect.core.firebase import verify_id_token
from reflect.storage.users_repo import UserProfileRecord

logger = logging.getLogger(__name__)

security_scheme = HTTPBearer()


async def get_current_user(request: Request, token: Annotated[HTTPAuthorizationCredentials, Depends(security_scheme)]) -> UserProfileRecord:
  """Verify a Firebase ID token and resolve the linked profile."""
  decoded_claims = await run_in_threadpool(verify_id_token, token.credentials)
  if not decoded_claims:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication credentials", headers={"WWW-Authenticate": "Bearer"})

  firebase_uid = decoded_claims.get("uid")
  if not firebase_uid:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token claims")

  async with request.app.state.jobs.store_scope() as store:
    user = await store.users.get_user_by_firebase_uid(firebase_uid)

  if user is None:
    # User must explicitly sign up first.
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
  return user


async def require_internal_api_key(settings: Annotated[Settings, Depends(get_settings)], authorization: str | None = Header(default=None)) -> None:
  """Allow only callers presenting the pre-shared internal bearer secret."""
  # Secure-by-default: internal endpoints stay closed until a secret is configured.
  if not settings.internal_api_key:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Internal authentication is not configured.")
  expected_auth = f"Bearer {settings.internal_api_key}"
  if not secrets.compare_digest(authorization or "", expected_auth):
    logger.warning("Unauthorized access attempt to an internal endpoint")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid internal API key.")

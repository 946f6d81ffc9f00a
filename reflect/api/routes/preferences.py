import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import ValidationError

from reflect.api.deps import get_job_runtime
from reflect.api.models import ReflectionPreferencesUpdate
from reflect.core.exceptions import _sanitize_validation_errors
from reflect.core.security import get_current_user
from reflect.jobs.runtime import JobRuntime
from reflect.scheduling.preferences import resolve_preferences
from reflect.storage.users_repo import UserProfileRecord

router = APIRouter()
logger = logging.getLogger("reflect.api.routes.preferences")


@router.get("/reflection-preferences")
async def get_reflection_preferences(  # noqa: B008
  current_user: UserProfileRecord = Depends(get_current_user),  # noqa: B008
  runtime: JobRuntime = Depends(get_job_runtime),  # noqa: B008
) -> dict[str, Any]:
  """Return the caller's preferences with defaults applied."""
  async with runtime.store_scope() as store:
    stored = await store.users.get_reflection_preferences(current_user.id)
  return resolve_preferences(stored).to_storage()


@router.put("/reflection-preferences")
async def update_reflection_preferences(  # noqa: B008
  payload: ReflectionPreferencesUpdate,
  current_user: UserProfileRecord = Depends(get_current_user),  # noqa: B008
  runtime: JobRuntime = Depends(get_job_runtime),  # noqa: B008
) -> dict[str, Any]:
  """Merge a partial update into the stored preferences and save them."""
  async with runtime.store_scope() as store:
    stored = await store.users.get_reflection_preferences(current_user.id)
    merged = resolve_preferences(stored).to_storage()
    merged.update(payload.model_dump(by_alias=True, exclude_unset=True, exclude_none=True))
    try:
      preferences = resolve_preferences(merged)
    except ValidationError as exc:
      raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=_sanitize_validation_errors(exc.errors())) from exc

    updated = await store.users.update_reflection_preferences(current_user.id, preferences.to_storage())
    if updated is None:
      raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

  logger.info("Updated reflection preferences for user %s (%s)", current_user.id, preferences.preferred_time_label)
  return preferences.to_storage()

from __future__ import annotations

import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator

from reflect.jobs.models import OperationType
from reflect.scheduling.preferences import PreferredDay
from reflect.utils.casing import to_camel


class CamelModel(BaseModel):
  """Base for payloads exchanged in camelCase."""

  model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


class CreateOperationRequest(CamelModel):
  """Payload for creating a tracked async operation."""

  operation_type: StrictStr = Field(description="One of the known operation types.", examples=["career_plan_generation"])
  input_data: dict[str, Any] = Field(default_factory=dict, description="Handler-specific input.")
  estimated_duration: int | None = Field(default=None, gt=0, description="Advisory duration in seconds; defaults to the handler estimate.")
  metadata: dict[str, Any] = Field(default_factory=dict)

  @field_validator("operation_type")
  @classmethod
  def validate_operation_type(cls, v: str) -> str:
    known = {item.value for item in OperationType}
    if v not in known:
      raise ValueError(f"Unknown operationType '{v}'. Expected one of: {', '.join(sorted(known))}")
    return v


class OperationCreatedResponse(CamelModel):
  operation_id: str
  status: str
  estimated_duration: int | None
  created_at: datetime.datetime


class WeeklyReflectionTriggerRequest(CamelModel):
  """Optional overrides for a manually triggered weekly reflection."""

  week_start: StrictStr | None = None
  week_end: StrictStr | None = None
  include_integrations: list[str] | None = None
  include_previous_context: bool = True
  test_mode: bool = False


class TaskCallbackPayload(CamelModel):
  """Body delivered by the durable task queue to internal job handlers."""

  operation_id: StrictStr = Field(min_length=1)
  user_id: StrictStr = Field(min_length=1)
  input_data: dict[str, Any] = Field(default_factory=dict)


class ReflectionPreferencesUpdate(CamelModel):
  """Partial update; omitted fields keep their stored values."""

  model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, extra="forbid")
  auto_generate: bool | None = None
  preferred_day: PreferredDay | None = None
  preferred_hour: int | None = Field(default=None, ge=0, le=23)
  timezone: StrictStr | None = None
  include_integrations: list[str] | None = None
  notify_on_generation: bool | None = None

  @field_validator("preferred_day", mode="before")
  @classmethod
  def normalize_day(cls, v: Any) -> Any:
    if isinstance(v, str):
      return v.strip().lower()
    return v

"""Reflection preferences stored on the user profile."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator

from reflect.utils.casing import to_camel

PreferredDay = Literal["monday", "friday", "sunday"]

# Local day numbers with sunday=0.
DAY_NUMBERS: dict[str, int] = {"sunday": 0, "monday": 1, "friday": 5}

DEFAULT_TIMEZONE = "America/New_York"


class ReflectionPreferences(BaseModel):
  model_config = ConfigDict(populate_by_name=True, extra="ignore", alias_generator=to_camel)
  auto_generate: bool = Field(True, description="Generate a reflection automatically each week")
  preferred_day: PreferredDay = Field("friday", description="Local day on which generation runs")
  preferred_hour: int = Field(14, ge=0, le=23, description="Local hour (0-23) at which generation runs")
  timezone: str = Field(DEFAULT_TIMEZONE, description="IANA timezone used to resolve day and hour")
  include_integrations: list[str] = Field(default_factory=list, description="Integrations whose data feeds the reflection")
  notify_on_generation: bool = Field(False, description="Notify the user when a draft is ready")

  @field_validator("preferred_day", mode="before")
  @classmethod
  def normalize_day(cls, v: Any) -> Any:
    if isinstance(v, str):
      return v.strip().lower()
    return v

  @field_validator("timezone")
  @classmethod
  def validate_timezone(cls, v: str) -> str:
    try:
      ZoneInfo(v)
    except (ZoneInfoNotFoundError, ValueError) as exc:
      raise ValueError(f"Unknown timezone: {v}") from exc
    return v

  @property
  def zone(self) -> ZoneInfo:
    return ZoneInfo(self.timezone)

  @property
  def preferred_day_number(self) -> int:
    return DAY_NUMBERS[self.preferred_day]

  @property
  def preferred_time_label(self) -> str:
    return f"{self.preferred_day} {self.preferred_hour:02d}:00"

  def to_storage(self) -> dict[str, Any]:
    return self.model_dump(by_alias=True)


def resolve_preferences(raw: Mapping[str, Any] | None) -> ReflectionPreferences:
  """Validate stored preferences, filling defaults for unset fields."""
  if not raw:
    return ReflectionPreferences()
  present = {key: value for key, value in raw.items() if value is not None}
  return ReflectionPreferences.model_validate(present)

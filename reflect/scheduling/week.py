"""ISO-week and local-time helpers for reflection scheduling."""

from __future__ import annotations

import datetime
from zoneinfo import ZoneInfo

from reflect.scheduling.preferences import ReflectionPreferences


def local_day_number(local: datetime.datetime) -> int:
  """Return the day of week with sunday=0 and saturday=6."""
  return local.isoweekday() % 7


def current_iso_week(now: datetime.datetime, zone: ZoneInfo) -> tuple[int, int]:
  """Return (ISO year, ISO week) of ``now`` in the given timezone."""
  iso = now.astimezone(zone).isocalendar()
  return iso.year, iso.week


def week_bounds(local: datetime.datetime) -> tuple[datetime.datetime, datetime.datetime]:
  """Return Monday 00:00 and Sunday 23:59:59.999999 of the week containing ``local``."""
  monday = local.date() - datetime.timedelta(days=local.weekday())
  start = datetime.datetime.combine(monday, datetime.time.min, tzinfo=local.tzinfo)
  end = datetime.datetime.combine(monday + datetime.timedelta(days=6), datetime.time.max, tzinfo=local.tzinfo)
  return start, end


def is_preferred_time(now: datetime.datetime, preferences: ReflectionPreferences) -> bool:
  """Exact local day and hour match; there is no catch-up window."""
  local = now.astimezone(preferences.zone)
  return local_day_number(local) == preferences.preferred_day_number and local.hour == preferences.preferred_hour


def parse_iso_datetime(raw: str | datetime.datetime | None) -> datetime.datetime | None:
  """Parse an ISO-8601 string (``Z`` suffix accepted); naive values are taken as UTC."""
  if raw is None or raw == "":
    return None
  if isinstance(raw, datetime.datetime):
    parsed = raw
  else:
    parsed = datetime.datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
  if parsed.tzinfo is None:
    parsed = parsed.replace(tzinfo=datetime.UTC)
  return parsed

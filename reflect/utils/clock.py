"""Injectable wall-clock helpers."""

from __future__ import annotations

import datetime
from collections.abc import Callable

Clock = Callable[[], datetime.datetime]


def utc_now() -> datetime.datetime:
  """Return the current time as an aware UTC datetime."""
  return datetime.datetime.now(datetime.UTC)

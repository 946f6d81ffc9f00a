"""Retry logic for provider quota and rate-limit errors."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)

QUOTA_BACKOFF_DELAYS: tuple[int, ...] = (5, 20, 50)


def is_retryable_quota_error(exc: BaseException) -> bool:
  """Return True for 429 / resource-exhausted style provider errors."""
  error_msg = str(exc)
  is_quota_error = "Resource Exhausted" in error_msg or "RESOURCE_EXHAUSTED" in error_msg or "Quota Exceeded" in error_msg
  is_rate_limit = "429" in error_msg or "Too Many Requests" in error_msg
  return is_quota_error or is_rate_limit


async def retry_with_backoff(func: Callable[..., Awaitable[T]], *args, delays: Sequence[float] = QUOTA_BACKOFF_DELAYS, **kwargs) -> T:
  """
  Execute a coroutine function with retries for quota errors.

  Delays: 5s, 20s, 50s, then one final attempt.
  """
  for attempt, delay in enumerate(delays):
    try:
      return await func(*args, **kwargs)
    except Exception as e:
      if not is_retryable_quota_error(e):
        raise
      logger.warning("Retry attempt %d/%d needed. Error: %s. Retrying in %ss...", attempt + 1, len(delays), e, delay)
      await asyncio.sleep(delay)

  # Final attempt
  return await func(*args, **kwargs)

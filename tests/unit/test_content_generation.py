from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from reflect.ai.backoff import is_retryable_quota_error, retry_with_backoff
from reflect.ai.generation import GeminiContentGenerator, UnconfiguredContentGenerator, build_content_generator, strip_markdown_fences


def test_quota_errors_are_retryable() -> None:
  assert is_retryable_quota_error(RuntimeError("429 RESOURCE_EXHAUSTED"))
  assert is_retryable_quota_error(RuntimeError("Too Many Requests"))
  assert not is_retryable_quota_error(RuntimeError("400 INVALID_ARGUMENT"))


@pytest.mark.anyio
async def test_retry_with_backoff_retries_quota_errors_then_succeeds() -> None:
  func = AsyncMock(side_effect=[RuntimeError("429 Too Many Requests"), RuntimeError("Quota Exceeded"), "ok"])
  assert await retry_with_backoff(func, "prompt", delays=(0, 0)) == "ok"
  assert func.await_count == 3


@pytest.mark.anyio
async def test_retry_with_backoff_makes_one_final_attempt() -> None:
  func = AsyncMock(side_effect=RuntimeError("429"))
  with pytest.raises(RuntimeError):
    await retry_with_backoff(func, delays=(0, 0))
  assert func.await_count == 3


@pytest.mark.anyio
async def test_retry_with_backoff_does_not_retry_other_errors() -> None:
  func = AsyncMock(side_effect=ValueError("bad prompt"))
  with pytest.raises(ValueError):
    await retry_with_backoff(func, delays=(0, 0))
  assert func.await_count == 1


def test_strip_markdown_fences() -> None:
  assert strip_markdown_fences("```markdown\n## Done\n```") == "## Done"
  assert strip_markdown_fences("  ## Done  ") == "## Done"


@pytest.mark.anyio
async def test_gemini_generator_uses_async_client() -> None:
  with patch("reflect.ai.generation.genai.Client") as client_cls:
    response = MagicMock(text="## Done\n- a", usage_metadata=None)
    client_cls.return_value.aio.models.generate_content = AsyncMock(return_value=response)
    generator = GeminiContentGenerator("gemini-2.0-flash", "api-key")

    generated = await generator.generate("prompt", temperature=0.2, max_tokens=100)

  assert generated.text == "## Done\n- a"
  assert generated.usage is None
  kwargs = client_cls.return_value.aio.models.generate_content.await_args.kwargs
  assert kwargs["model"] == "gemini-2.0-flash"
  assert kwargs["contents"] == "prompt"
  assert kwargs["config"].temperature == 0.2
  assert kwargs["config"].max_output_tokens == 100


@pytest.mark.anyio
async def test_gemini_generator_rejects_empty_response() -> None:
  with patch("reflect.ai.generation.genai.Client") as client_cls:
    client_cls.return_value.aio.models.generate_content = AsyncMock(return_value=MagicMock(text="  ", usage_metadata=None))
    generator = GeminiContentGenerator("gemini-2.0-flash", "api-key")
    with pytest.raises(RuntimeError, match="empty response"):
      await generator.generate("prompt")


@pytest.mark.anyio
async def test_missing_api_key_yields_failing_generator() -> None:
  generator = build_content_generator("gemini-2.0-flash", None)
  assert isinstance(generator, UnconfiguredContentGenerator)
  with pytest.raises(RuntimeError, match="GEMINI_API_KEY"):
    await generator.generate("prompt")

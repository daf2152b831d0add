"""Shared OpenAI client construction and error translation."""

from typing import Awaitable, Callable, Optional, TypeVar

import openai
from openai import AsyncOpenAI

from session_rag.core.errors import ProviderError

T = TypeVar("T")

PROVIDER_NAME = "openai"


def build_openai_client(
    api_key: Optional[str],
    base_url: Optional[str] = None,
    timeout_seconds: float = 60.0,
) -> AsyncOpenAI:
    """Create the process-wide AsyncOpenAI client.

    SDK-level retries are disabled; ``ProviderGateway`` owns retrying.
    Without a key the client is still built, and requests fail with 401.
    """
    return AsyncOpenAI(
        api_key=api_key or "",
        base_url=base_url,
        timeout=timeout_seconds,
        max_retries=0,
    )


async def call_openai(operation: str, fn: Callable[[], Awaitable[T]]) -> T:
    """Await an SDK call, translating SDK exceptions into ``ProviderError``.

    A timed-out request is reported as status 504 so the retry policy treats
    it like any other gateway timeout.
    """
    try:
        return await fn()
    except openai.APITimeoutError as exc:
        raise ProviderError(f"OpenAI {operation} request timed out", status_code=504) from exc
    except openai.APIStatusError as exc:
        raise ProviderError(
            f"OpenAI {operation} request failed: {exc.status_code} - {exc.message}",
            status_code=exc.status_code,
        ) from exc
    except openai.APIConnectionError as exc:
        raise ProviderError(f"OpenAI {operation} connection error: {exc}") from exc

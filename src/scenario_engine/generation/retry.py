"""Transport-level retry for provider calls (exponential backoff with jitter)."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from scenario_engine.config.settings import Settings
from scenario_engine.exceptions import ProviderTransportError
from scenario_engine.observability.logger import get_logger

logger = get_logger("provider_retry")

T = TypeVar("T")

MAX_BACKOFF_S = 30.0


def _max_attempts(settings: Settings) -> int:
    return max(settings.provider_max_retries, 1)


def retry_budget_s(settings: Settings) -> float:
    """Upper bound on wall time for one call_with_retry: every attempt timing out plus every backoff."""
    base = settings.provider_retry_base_s
    attempts = _max_attempts(settings)
    backoff = sum(min(base * 2**i + base / 2, MAX_BACKOFF_S) for i in range(attempts - 1))
    return settings.provider_timeout_s * attempts + backoff


async def _with_timeout(fn: Callable[[], Awaitable[T]], timeout_s: float) -> T:
    try:
        return await asyncio.wait_for(fn(), timeout=timeout_s)
    except asyncio.TimeoutError as e:
        raise ProviderTransportError(f"timed out after {timeout_s}s") from e


async def call_with_retry(
    fn: Callable[[], Awaitable[T]], settings: Settings, provider: str
) -> T:
    """Await fn(), retrying ProviderTransportError up to provider_max_retries attempts.

    Each attempt is bounded by provider_timeout_s; a timed-out attempt counts as a
    transport failure and is retried like any other.
    """
    base = settings.provider_retry_base_s
    async for attempt in AsyncRetrying(
        retry=retry_if_exception_type(ProviderTransportError),
        stop=stop_after_attempt(_max_attempts(settings)),
        wait=wait_exponential_jitter(initial=base, max=MAX_BACKOFF_S, jitter=base / 2),
        before_sleep=lambda retry_state: logger.warning(
            "provider_retry",
            provider=provider,
            attempt=retry_state.attempt_number,
            error=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        ),
        reraise=True,
    ):
        with attempt:
            return await _with_timeout(fn, settings.provider_timeout_s)
    raise AssertionError("unreachable")

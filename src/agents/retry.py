# src/agents/retry.py — v1
"""Retry policy with exponential backoff for transient agent errors.

Rate limits, server errors and unparseable responses are retried; other
failures surface immediately. Timeouts are enforced by the engine and are
never retried here.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class AgentRetryExhausted(Exception):
    """All retries exhausted for an agent call."""

    def __init__(self, agent: str, error_type: str, attempts: int, last_error: Exception):
        self.agent = agent
        self.error_type = error_type
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Agent '{agent}' failed after {attempts} attempts ({error_type}): {last_error}"
        )


@dataclass(frozen=True)
class RetryConfig:
    """Retry configuration for a specific error type."""

    max_retries: int
    base_delay_s: float
    backoff_factor: float = 2.0
    jitter: bool = True


DEFAULT_RETRY_CONFIGS: dict[str, RetryConfig] = {
    "rate_limit": RetryConfig(max_retries=3, base_delay_s=2.0),
    "server_error": RetryConfig(max_retries=3, base_delay_s=5.0),
    "parse_error": RetryConfig(max_retries=2, base_delay_s=1.0, backoff_factor=1.0),
}


def retry_configs_for(max_retries: int) -> dict[str, RetryConfig]:
    """Default configs with every retry count capped at max_retries."""
    return {
        kind: replace(cfg, max_retries=min(cfg.max_retries, max_retries))
        for kind, cfg in DEFAULT_RETRY_CONFIGS.items()
    }


def classify_error(error: Exception) -> str:
    """Classify an exception into a retry error type."""
    msg = str(error).lower()
    name = type(error).__name__.lower()

    if "timeout" in name or isinstance(error, asyncio.TimeoutError):
        return "timeout"
    if "429" in msg or "rate" in msg or "ratelimit" in name:
        return "rate_limit"
    if any(c in msg for c in ("500", "502", "503", "504", "overloaded", "server")):
        return "server_error"
    if "json" in msg or "parse" in msg or "decode" in msg:
        return "parse_error"
    return "unknown"


def _compute_delay(config: RetryConfig, attempt: int) -> float:
    """Compute delay for a given attempt (0-based)."""
    delay = config.base_delay_s * (config.backoff_factor ** attempt)
    if config.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return delay


async def with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    agent: str = "unknown",
    retry_configs: dict[str, RetryConfig] | None = None,
    **kwargs: Any,
) -> Any:
    """Execute an async function with retry logic.

    Raises:
        AgentRetryExhausted: If the error is not retryable or retries ran out.
    """
    configs = DEFAULT_RETRY_CONFIGS if retry_configs is None else retry_configs
    attempts = 0

    while True:
        try:
            return await fn(*args, **kwargs)
        except Exception as e:
            error_type = classify_error(e)
            attempts += 1
            config = configs.get(error_type)

            if config is None or attempts > config.max_retries:
                raise AgentRetryExhausted(agent, error_type, attempts, e) from e

            delay = _compute_delay(config, attempts - 1)
            logger.warning(
                "Agent '%s' — %s (attempt %d/%d), retrying in %.1fs",
                agent, error_type, attempts, config.max_retries, delay,
            )
            await asyncio.sleep(delay)

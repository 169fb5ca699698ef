"""Retrying HTTP transport with deterministic exponential backoff.

One logical call is executed as up to ``max_retries + 1`` attempts:
  - network failure (httpx.TransportError) → retry, raise TransportError when exhausted
  - status 429/500/502/503/504 → retry, raise ApiError when exhausted
  - any other status → returned immediately; the caller interprets it

Backoff strategy:
  delay(attempt) = min(base_delay_ms * multiplier^attempt, max_delay_ms)

No jitter, so delays are reproducible. The wait is an awaitable sleep: it
suspends only the current task and can be cancelled.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import httpx

from gemini_proxy.core.config import RetryConfig
from gemini_proxy.core.exceptions import ApiError, TransportError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class OutboundRequest:
    """A fully built HTTP request, independent of payload shape."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)
    body: bytes = b""


@dataclass(frozen=True)
class RawResponse:
    status_code: int
    headers: dict[str, str]
    body: bytes

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


def backoff_delay_ms(attempt: int, config: RetryConfig) -> float:
    """Delay before attempt ``attempt + 1``, clamped to ``max_delay_ms``."""
    try:
        delay = config.base_delay_ms * config.backoff_multiplier**attempt
    except OverflowError:
        return float(config.max_delay_ms)
    return float(min(delay, config.max_delay_ms))


class RetryingTransport:
    """Executes one logical HTTP call under a bounded retry policy.

    Usage:
        transport = RetryingTransport()
        raw = await transport.execute(request, RetryConfig())
        if not raw.is_success:
            ...
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        sleep: Sleep = asyncio.sleep,
        timeout: float = 30.0,
    ):
        """
        Args:
            client: Shared client; when None a client is opened per logical call
            sleep: Awaitable used for the backoff wait (seconds)
            timeout: Per-attempt timeout in seconds for clients opened here
        """
        self._client = client
        self._sleep = sleep
        self.timeout = timeout

    async def execute(self, request: OutboundRequest, retry_config: RetryConfig) -> RawResponse:
        """Send ``request``, retrying transient failures.

        Raises:
            TransportError: every attempt failed at the network level.
            ApiError: every attempt returned a retryable status.
        """
        if self._client is not None:
            return await self._execute_with(self._client, request, retry_config)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._execute_with(client, request, retry_config)

    async def _execute_with(
        self,
        client: httpx.AsyncClient,
        request: OutboundRequest,
        retry_config: RetryConfig,
    ) -> RawResponse:
        max_attempts = retry_config.max_retries + 1

        for attempt in range(max_attempts):
            is_last = attempt == retry_config.max_retries

            try:
                resp = await client.request(
                    request.method,
                    request.url,
                    params=request.params or None,
                    headers=request.headers,
                    content=request.body,
                )
            except httpx.TransportError as e:
                if is_last:
                    logger.warning("Network failure after %d attempts: %s", max_attempts, e)
                    raise TransportError(str(e)) from e
                reason = f"{type(e).__name__}: {e}"
            else:
                if resp.status_code not in RETRYABLE_STATUS_CODES:
                    return RawResponse(
                        status_code=resp.status_code,
                        headers=dict(resp.headers),
                        body=resp.content,
                    )
                if is_last:
                    logger.warning(
                        "Retryable status %d persisted after %d attempts",
                        resp.status_code,
                        max_attempts,
                    )
                    raise ApiError(resp.status_code, resp.text)
                reason = f"status {resp.status_code}"

            delay_ms = backoff_delay_ms(attempt, retry_config)
            logger.info(
                "Retrying %s request (attempt %d/%d) in %.1fs after %s",
                request.method,
                attempt + 1,
                retry_config.max_retries,
                delay_ms / 1000,
                reason,
            )
            await self._sleep(delay_ms / 1000)

        # range() always ends in a return or raise above
        raise TransportError("retry loop exited without a result")

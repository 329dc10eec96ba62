"""HTTP GET with bounded exponential-backoff retry.

This module handles:
- Validating the attempt budget before any network activity
- Applying a default per-attempt timeout
- Retrying transport failures with doubling backoff delays
- Keep-alive connection pooling with a socket ceiling

Only transport-level failures are retried. Any response the transport
returns, including 4xx/5xx, is handed back to the caller for inspection.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from types import TracebackType
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from qorecss_deploy.config import Settings
from qorecss_deploy.net.batching import gather_in_batches

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3


class InvalidArgumentError(ValueError):
    """Raised when a caller passes a malformed argument."""

    def __init__(self, message: str, code: str = "invalid_argument") -> None:
        super().__init__(message)
        self.code = code


class NetworkError(Exception):
    """Raised when a request still fails after all attempts."""

    def __init__(
        self,
        message: str,
        url: str,
        attempts: int,
        code: str = "network_error",
    ) -> None:
        """Initialize NetworkError.

        Args:
            message: Error description.
            url: URL that was requested.
            attempts: Number of attempts made.
            code: Error code for structured error handling.
        """
        super().__init__(message)
        self.url = url
        self.attempts = attempts
        self.code = code


class RequestTimeoutError(NetworkError):
    """Raised when the final attempt timed out."""

    def __init__(self, message: str, url: str, attempts: int) -> None:
        super().__init__(message, url=url, attempts=attempts, code="timeout")


def validate_attempts(max_attempts: Any) -> int:
    """Check that an attempt budget is a positive integer.

    Args:
        max_attempts: Value to validate.

    Returns:
        The validated attempt count.

    Raises:
        InvalidArgumentError: If the value is not an int or is below 1.
    """
    if isinstance(max_attempts, bool) or not isinstance(max_attempts, int):
        raise InvalidArgumentError(
            f"max_attempts must be an integer, got {max_attempts!r}"
        )
    if max_attempts < 1:
        raise InvalidArgumentError(f"max_attempts must be >= 1, got {max_attempts}")
    return max_attempts


def _before_sleep_logger(url: str) -> Callable[[RetryCallState], None]:
    """Build a tenacity before_sleep hook that logs the failed attempt."""

    def log_retry(retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        error = outcome.exception() if outcome is not None else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "Attempt %d for %s failed (%s); retrying in %.2fs",
            retry_state.attempt_number,
            url,
            error,
            delay,
        )

    return log_retry


class RetryClient:
    """Pooled async HTTP client that retries transport failures.

    One instance keeps a single httpx.AsyncClient, so connections are
    reused across calls. Use it as an async context manager or call
    aclose() when done.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Settings providing pool size, timeout and backoff.
            transport: Optional transport override (used by tests).
            sleep: Optional coroutine used for backoff waits (used by tests).
        """
        settings = settings or Settings()
        self.timeout = settings.request_timeout
        self.backoff_base = settings.backoff_base
        self.default_attempts = settings.max_attempts
        self.batch_size = settings.queue_limit
        self._sleep = sleep
        limits = httpx.Limits(
            max_connections=settings.socket_limit,
            max_keepalive_connections=settings.socket_limit,
        )
        self._client = httpx.AsyncClient(limits=limits, transport=transport)

    async def __aenter__(self) -> RetryClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close pooled connections."""
        await self._client.aclose()

    async def fetch_with_retry(
        self,
        url: str,
        options: dict[str, Any] | None = None,
        max_attempts: int | None = None,
    ) -> httpx.Response:
        """GET a URL, retrying transport failures with exponential backoff.

        Args:
            url: URL to request.
            options: Extra keyword arguments for httpx (headers, params,
                timeout, ...). A caller-supplied timeout always wins.
            max_attempts: Total attempts including the first one.

        Returns:
            The first response the transport produced.

        Raises:
            InvalidArgumentError: If max_attempts is not a positive integer.
            RequestTimeoutError: If the last attempt timed out.
            NetworkError: If the last attempt failed at the transport level.
        """
        attempts = validate_attempts(
            self.default_attempts if max_attempts is None else max_attempts
        )
        request_options = dict(options or {})
        request_options.setdefault("timeout", self.timeout)

        # Attempt k (1-indexed) is followed by a wait of backoff_base * 2**(k - 1)
        retry_options: dict[str, Any] = {}
        if self._sleep is not None:
            retry_options["sleep"] = self._sleep
        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=self.backoff_base, min=0),
            retry=retry_if_exception_type(httpx.TransportError),
            before_sleep=_before_sleep_logger(url),
            reraise=True,
            **retry_options,
        )

        attempt_number = 0
        try:
            async for attempt in retrying:
                attempt_number = attempt.retry_state.attempt_number
                with attempt:
                    logger.info(
                        "GET %s (attempt %d/%d)", url, attempt_number, attempts
                    )
                    response = await self._client.get(url, **request_options)
        except httpx.TimeoutException as e:
            logger.error("GET %s timed out after %d attempt(s)", url, attempt_number)
            raise RequestTimeoutError(
                f"Timeout requesting {url} after {attempt_number} attempt(s)",
                url=url,
                attempts=attempt_number,
            ) from e
        except httpx.TransportError as e:
            logger.error(
                "GET %s failed after %d attempt(s): %s", url, attempt_number, e
            )
            raise NetworkError(
                f"Network error requesting {url}: {e}",
                url=url,
                attempts=attempt_number,
            ) from e

        logger.info("GET %s returned %d", url, response.status_code)
        return response

    async def fetch_many(
        self,
        urls: Sequence[str],
        options: dict[str, Any] | None = None,
        max_attempts: int | None = None,
    ) -> list[httpx.Response]:
        """Fetch several URLs, at most ``queue_limit`` at a time.

        Args:
            urls: URLs to request.
            options: Extra keyword arguments for every request.
            max_attempts: Attempt budget per URL.

        Returns:
            Responses in the same order as ``urls``.
        """

        def factory(target: str):
            return lambda: self.fetch_with_retry(target, options, max_attempts)

        return await gather_in_batches([factory(u) for u in urls], self.batch_size)


async def fetch_with_retry(
    url: str,
    options: dict[str, Any] | None = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    settings: Settings | None = None,
) -> httpx.Response:
    """One-shot retrying GET using a short-lived RetryClient.

    The attempt budget is checked before a client is created.
    """
    validate_attempts(max_attempts)
    async with RetryClient(settings) as client:
        return await client.fetch_with_retry(url, options, max_attempts)


__all__ = [
    "DEFAULT_MAX_ATTEMPTS",
    "InvalidArgumentError",
    "NetworkError",
    "RequestTimeoutError",
    "RetryClient",
    "fetch_with_retry",
    "validate_attempts",
]

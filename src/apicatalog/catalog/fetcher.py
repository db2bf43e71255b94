from __future__ import annotations

import asyncio

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.get_logger()

DEFAULT_MAX_CONCURRENT_REQUESTS = 10
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_RETRY_ATTEMPTS = 3
AVAILABILITY_TIMEOUT_SECONDS = 5.0


def _retry_logger(url: str):
    def log_retry(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.debug(
            "spec_fetch_retry",
            url=url,
            attempt=retry_state.attempt_number,
            error=str(exc) if exc else None,
        )

    return log_retry


class SpecificationFetcher:
    """
    Fetches raw OpenAPI documents under a process-wide concurrency limit.

    Transport failures (connect errors, timeouts, broken reads) are retried
    with exponential backoff. Error status codes are final and are not
    retried. Every failure resolves to ``None``; callers only learn that no
    document is available.
    """

    def __init__(
        self,
        *,
        max_concurrent_requests: int = DEFAULT_MAX_CONCURRENT_REQUESTS,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        retry_backoff: float = 1.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if max_concurrent_requests <= 0:
            max_concurrent_requests = DEFAULT_MAX_CONCURRENT_REQUESTS
        self._max_concurrent = max_concurrent_requests
        self._semaphore = asyncio.Semaphore(max_concurrent_requests)
        self._timeout = timeout
        self._retry_attempts = max(retry_attempts, 0)
        self._retry_backoff = retry_backoff
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
        )
        self._in_flight = 0
        logger.info(
            "spec_fetcher_initialized",
            max_concurrent_requests=max_concurrent_requests,
            timeout=timeout,
            retry_attempts=self._retry_attempts,
        )

    @property
    def max_concurrent_requests(self) -> int:
        return self._max_concurrent

    @property
    def in_flight(self) -> int:
        """Number of permits currently held."""
        return self._in_flight

    async def fetch(self, url: str) -> str | None:
        """Fetch the document at ``url``; ``None`` when nothing usable came back."""
        if not url:
            raise ValueError("url cannot be empty")

        async with self._semaphore:
            self._in_flight += 1
            try:
                return await self._fetch_with_retry(url)
            finally:
                self._in_flight -= 1

    async def _fetch_with_retry(self, url: str) -> str | None:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(httpx.TransportError),
            stop=stop_after_attempt(self._retry_attempts + 1),
            wait=wait_exponential(
                multiplier=self._retry_backoff,
                min=self._retry_backoff,
                max=self._retry_backoff * 30,
            ),
            before_sleep=_retry_logger(url),
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._client.get(
                        url,
                        headers={"Accept": "application/json"},
                        timeout=self._timeout,
                    )
        except httpx.TransportError as exc:
            logger.warning(
                "spec_fetch_failed",
                url=url,
                error_type=type(exc).__name__,
                error=str(exc),
                attempts=self._retry_attempts + 1,
            )
            return None
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning(
                "spec_fetch_failed", url=url, error_type=type(exc).__name__, error=str(exc)
            )
            return None

        if response.is_error:
            logger.warning("spec_fetch_error_status", url=url, status=response.status_code)
            return None

        body = response.text
        if not body or not body.strip():
            logger.debug("spec_fetch_empty_body", url=url, status=response.status_code)
            return None

        logger.debug("spec_fetched", url=url, size=len(body))
        return body

    async def is_available(self, url: str) -> bool:
        """Cheap HEAD probe; any error counts as unavailable."""
        try:
            response = await self._client.head(url, timeout=AVAILABILITY_TIMEOUT_SECONDS)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.debug("spec_availability_check_failed", url=url, error=str(exc))
            return False
        return response.is_success

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

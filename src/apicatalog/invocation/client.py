from __future__ import annotations

import time
from dataclasses import dataclass, field

import httpx
import structlog

from apicatalog.invocation.invoker import InvocationRequest

logger = structlog.get_logger()

DEFAULT_INVOKE_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True, slots=True)
class InvocationResult:
    """Outcome of one endpoint call. Transport failures carry ``status_code=-1``."""

    status_code: int
    body: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    duration_ms: int = 0
    error: str | None = None

    @classmethod
    def failure(cls, error: str, duration_ms: int) -> InvocationResult:
        return cls(status_code=-1, duration_ms=duration_ms, error=error)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_failure(self) -> bool:
        return self.error is not None or self.status_code < 0

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        return 500 <= self.status_code < 600


class EndpointClient:
    def __init__(
        self,
        *,
        timeout: float = DEFAULT_INVOKE_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def invoke(self, request: InvocationRequest) -> InvocationResult:
        start = time.perf_counter()
        content = request.body if request.body and request.body.strip() else None

        try:
            response = await self._client.request(
                request.method,
                request.url,
                headers=dict(request.headers),
                content=content,
            )
        except httpx.HTTPError as exc:
            duration_ms = int((time.perf_counter() - start) * 1000)
            logger.error(
                "endpoint_invocation_failed",
                method=request.method,
                url=request.url,
                error=str(exc) or type(exc).__name__,
            )
            return InvocationResult.failure(str(exc) or type(exc).__name__, duration_ms)

        duration_ms = int((time.perf_counter() - start) * 1000)
        return InvocationResult(
            status_code=response.status_code,
            body=response.text,
            headers={name: value for name, value in response.headers.items()},
            duration_ms=duration_ms,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

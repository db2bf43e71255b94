"""Tests for the bounded specification fetcher."""

import asyncio

import httpx
import pytest
import respx
from httpx import Response

from apicatalog.catalog.fetcher import SpecificationFetcher

URL = "http://10.0.0.1:8080/v3/api-docs"


def _fetcher(**kwargs) -> SpecificationFetcher:
    kwargs.setdefault("retry_backoff", 0)
    return SpecificationFetcher(**kwargs)


@pytest.mark.asyncio
async def test_fetch_returns_body():
    fetcher = _fetcher()

    with respx.mock:
        route = respx.get(URL).mock(return_value=Response(200, text='{"openapi": "3.0.3"}'))

        body = await fetcher.fetch(URL)

    assert body == '{"openapi": "3.0.3"}'
    assert route.calls.last.request.headers["Accept"] == "application/json"
    await fetcher.aclose()


@pytest.mark.asyncio
async def test_fetch_retries_transport_errors():
    fetcher = _fetcher(retry_attempts=3)

    with respx.mock:
        route = respx.get(URL)
        route.side_effect = [
            httpx.ConnectError("connection refused"),
            httpx.ReadTimeout("timed out"),
            Response(200, text="{}"),
        ]

        body = await fetcher.fetch(URL)

    assert body == "{}"
    assert route.call_count == 3
    await fetcher.aclose()


@pytest.mark.asyncio
async def test_fetch_gives_up_after_retries():
    fetcher = _fetcher(retry_attempts=2)

    with respx.mock:
        route = respx.get(URL).mock(side_effect=httpx.ConnectError("connection refused"))

        body = await fetcher.fetch(URL)

    assert body is None
    assert route.call_count == 3
    await fetcher.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 404, 500, 503])
async def test_fetch_error_status_not_retried(status):
    fetcher = _fetcher(retry_attempts=3)

    with respx.mock:
        route = respx.get(URL).mock(return_value=Response(status, text="nope"))

        body = await fetcher.fetch(URL)

    assert body is None
    assert route.call_count == 1
    await fetcher.aclose()


@pytest.mark.asyncio
async def test_fetch_blank_body_is_none():
    fetcher = _fetcher()

    with respx.mock:
        respx.get(URL).mock(return_value=Response(200, text="   \n"))

        assert await fetcher.fetch(URL) is None
    await fetcher.aclose()


@pytest.mark.asyncio
async def test_fetch_rejects_empty_url():
    fetcher = _fetcher()

    with pytest.raises(ValueError):
        await fetcher.fetch("")
    await fetcher.aclose()


@pytest.mark.asyncio
async def test_concurrency_bounded_by_permits():
    peak = 0
    active = 0
    release = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal peak, active
        active += 1
        peak = max(peak, active)
        await release.wait()
        active -= 1
        return httpx.Response(200, text="{}")

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    fetcher = _fetcher(max_concurrent_requests=2, client=client)

    tasks = [asyncio.create_task(fetcher.fetch(f"http://10.0.0.{i}:80/docs")) for i in range(5)]
    for _ in range(20):
        await asyncio.sleep(0)

    assert fetcher.in_flight == 2
    release.set()
    results = await asyncio.gather(*tasks)

    assert results == ["{}"] * 5
    assert peak == 2
    assert fetcher.in_flight == 0
    await client.aclose()


@pytest.mark.asyncio
async def test_permit_released_on_cancellation():
    started = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        started.set()
        await asyncio.sleep(3600)
        return httpx.Response(200, text="{}")

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    fetcher = _fetcher(max_concurrent_requests=1, client=client)

    task = asyncio.create_task(fetcher.fetch(URL))
    await started.wait()
    assert fetcher.in_flight == 1

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert fetcher.in_flight == 0
    await client.aclose()


@pytest.mark.asyncio
async def test_is_available():
    fetcher = _fetcher()

    with respx.mock:
        respx.head(URL).mock(return_value=Response(200))
        respx.head("http://10.0.0.2:8080/v3/api-docs").mock(return_value=Response(404))
        respx.head("http://10.0.0.3:8080/v3/api-docs").mock(
            side_effect=httpx.ConnectError("refused")
        )

        assert await fetcher.is_available(URL) is True
        assert await fetcher.is_available("http://10.0.0.2:8080/v3/api-docs") is False
        assert await fetcher.is_available("http://10.0.0.3:8080/v3/api-docs") is False
    await fetcher.aclose()


@pytest.mark.asyncio
async def test_aclose_leaves_injected_client_open():
    client = httpx.AsyncClient()
    fetcher = _fetcher(client=client)

    await fetcher.aclose()

    assert not client.is_closed
    await client.aclose()

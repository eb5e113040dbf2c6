from unittest.mock import AsyncMock

import httpx
import pytest

from devtrace.readiness import ReadinessOutcome, is_ready_status, wait_for_ready

URL = "http://localhost:3000"


def counting_client(responder):
    calls = []

    def handler(request):
        calls.append(request)
        return responder(len(calls), request)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler)), calls


class TestIsReadyStatus:
    def test_success_range(self):
        assert is_ready_status(200)
        assert is_ready_status(204)

    def test_not_found_counts_as_ready(self):
        assert is_ready_status(404)

    def test_other_statuses(self):
        assert not is_ready_status(301)
        assert not is_ready_status(500)
        assert not is_ready_status(503)


class TestWaitForReady:
    @pytest.mark.asyncio
    async def test_ready_after_k_attempts(self):
        k = 4
        client, calls = counting_client(
            lambda n, _: httpx.Response(200 if n >= k else 503)
        )
        sleep = AsyncMock()

        result = await wait_for_ready(URL, client=client, sleep=sleep)

        assert result.outcome == ReadinessOutcome.READY
        assert result.ready is True
        assert result.attempts == k
        assert len(calls) == k
        assert all(request.method == "HEAD" for request in calls)
        assert sleep.await_count == k - 1
        assert all(call.args == (1.0,) for call in sleep.await_args_list)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_not_found_is_ready_on_first_attempt(self):
        client, calls = counting_client(lambda n, _: httpx.Response(404))
        result = await wait_for_ready(URL, client=client, sleep=AsyncMock())
        assert result.ready
        assert result.attempts == 1
        assert result.status_code == 404
        await client.aclose()

    @pytest.mark.asyncio
    async def test_never_ready_times_out_after_30_attempts(self):
        def refuse(n, request):
            raise httpx.ConnectError("Connection refused", request=request)

        client, calls = counting_client(refuse)
        sleep = AsyncMock()

        result = await wait_for_ready(URL, client=client, sleep=sleep)

        assert result.outcome == ReadinessOutcome.TIMED_OUT
        assert result.attempts == 30
        assert len(calls) == 30
        assert sleep.await_count == 29
        await client.aclose()

    @pytest.mark.asyncio
    async def test_server_errors_are_not_ready(self):
        client, calls = counting_client(lambda n, _: httpx.Response(500))
        result = await wait_for_ready(URL, max_attempts=3, client=client, sleep=AsyncMock())
        assert result.outcome == ReadinessOutcome.TIMED_OUT
        assert result.status_code == 500
        assert len(calls) == 3
        await client.aclose()

    @pytest.mark.asyncio
    async def test_timeouts_are_not_ready(self):
        def slow(n, request):
            if n == 1:
                raise httpx.ReadTimeout("timed out", request=request)
            return httpx.Response(200)

        client, calls = counting_client(slow)
        result = await wait_for_ready(URL, client=client, sleep=AsyncMock())
        assert result.ready
        assert result.attempts == 2
        await client.aclose()

    @pytest.mark.asyncio
    async def test_to_dict(self):
        client, _ = counting_client(lambda n, _: httpx.Response(200))
        result = await wait_for_ready(URL, client=client, sleep=AsyncMock())
        assert result.to_dict() == {
            "url": URL,
            "outcome": "ready",
            "attempts": 1,
            "status_code": 200,
        }
        await client.aclose()

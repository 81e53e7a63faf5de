"""Tests for the rate-limited, retrying fetcher."""

import asyncio
import time

import httpx
import pytest
from tenacity import RetryCallState

from hacksniffer.config import Settings
from hacksniffer.core.exceptions import FetchError, PolitenessError
from hacksniffer.scrapers.utils.fetcher import FetcherConfig
from hacksniffer.scrapers.utils.rate_limiter import RequestLimiter
from hacksniffer.scrapers.utils.retry import MAX_BACKOFF_SECONDS, http_retrying

URL = "https://devpost.com/hackathons"
ROBOTS = "https://devpost.com/robots.txt"


class TestFetch:
    """Retries, errors and request identity."""

    async def test_success(self, site, make_fetcher):
        site.routes[URL] = "<html>ok</html>"
        fetcher = make_fetcher(site)

        assert await fetcher.fetch(URL, "devpost") == "<html>ok</html>"
        assert site.count(URL) == 1

    async def test_sends_configured_user_agent(self, site, make_fetcher):
        site.routes[URL] = "ok"
        fetcher = make_fetcher(site, user_agent="TestBot/1.0")

        await fetcher.fetch(URL, "devpost")

        assert site.requests[0].headers["User-Agent"] == "TestBot/1.0"

    async def test_retries_until_exhausted(self, site, make_fetcher):
        site.routes[URL] = httpx.Response(503, text="busy")
        fetcher = make_fetcher(site, max_retries=3)

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch(URL, "devpost")

        error = exc_info.value
        assert site.count(URL) == 3
        assert error.attempts == 3
        assert error.source_id == "devpost"
        assert error.url == URL
        assert isinstance(error.cause, httpx.HTTPStatusError)

    async def test_recovers_after_transient_failure(self, make_fetcher):
        calls = []

        class Flaky:
            def handler(self, request):
                calls.append(request)
                if len(calls) == 1:
                    return httpx.Response(500)
                return httpx.Response(200, text="recovered")

        fetcher = make_fetcher(Flaky())

        assert await fetcher.fetch(URL, "devpost") == "recovered"
        assert len(calls) == 2

    async def test_transport_errors_are_retried(self, make_fetcher):
        calls = []

        class Unreachable:
            def handler(self, request):
                calls.append(request)
                raise httpx.ConnectError("connection refused", request=request)

        fetcher = make_fetcher(Unreachable(), max_retries=2)

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch(URL, "devpost")

        assert len(calls) == 2
        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    async def test_max_attempts_override(self, site, make_fetcher):
        fetcher = make_fetcher(site, max_retries=3)

        with pytest.raises(FetchError):
            await fetcher.fetch(URL, "devpost", max_attempts=1)

        assert site.count(URL) == 1

    async def test_refuses_after_shutdown(self, site, make_fetcher):
        site.routes[URL] = "ok"
        fetcher = make_fetcher(site)
        fetcher.begin_shutdown()

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch(URL, "devpost")

        assert exc_info.value.attempts == 0
        assert site.requests == []


class TestPoliteness:
    """robots.txt check before crawling."""

    async def test_disallowed_path_raises(self, site, make_fetcher):
        site.routes[ROBOTS] = "User-agent: *\nDisallow: /hackathons\n"
        fetcher = make_fetcher(site)

        with pytest.raises(PolitenessError) as exc_info:
            await fetcher.check_politeness("devpost", "https://devpost.com", ["/about", "/hackathons"])

        assert exc_info.value.path == "/hackathons"
        assert exc_info.value.source_id == "devpost"

    async def test_allowed_paths_pass(self, site, make_fetcher):
        site.routes[ROBOTS] = "User-agent: *\nDisallow: /admin\n"
        fetcher = make_fetcher(site)

        await fetcher.check_politeness("devpost", "https://devpost.com", ["/hackathons"])

    async def test_missing_robots_allows_with_single_attempt(self, site, make_fetcher):
        fetcher = make_fetcher(site, max_retries=3)

        await fetcher.check_politeness("devpost", "https://devpost.com/", ["/hackathons"])

        assert site.count(ROBOTS) == 1


class TestRequestLimiter:
    """Global concurrency bound and start spacing."""

    async def test_concurrency_bound(self):
        limiter = RequestLimiter(max_concurrency=2, min_interval=0)
        in_flight = 0
        peak = 0

        async def request():
            nonlocal in_flight, peak
            async with limiter.slot():
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1

        await asyncio.gather(*(request() for _ in range(6)))

        assert peak == 2

    async def test_minimum_interval_between_starts(self):
        limiter = RequestLimiter(max_concurrency=3, min_interval=0.05)
        starts = []

        async def request():
            async with limiter.slot():
                starts.append(time.monotonic())

        await asyncio.gather(*(request() for _ in range(3)))

        gaps = [later - earlier for earlier, later in zip(starts, starts[1:])]
        assert all(gap >= 0.04 for gap in gaps)

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            RequestLimiter(max_concurrency=0)
        with pytest.raises(ValueError):
            RequestLimiter(min_interval=-1)


class TestFetcherConfig:
    def test_from_settings_converts_milliseconds(self):
        config = FetcherConfig.from_settings(
            Settings(REQUEST_TIMEOUT_MS=2500, RETRY_DELAY_MS=200, MIN_REQUEST_INTERVAL_MS=0, MAX_RETRIES=5)
        )
        assert config.timeout == 2.5
        assert config.retry_delay == 0.2
        assert config.min_interval == 0.0
        assert config.max_retries == 5


class TestBackoff:
    """Sleep schedule between attempts."""

    @staticmethod
    def _sleeps(retrying, attempts):
        sleeps = []
        for attempt in attempts:
            state = RetryCallState(retry_object=retrying, fn=None, args=(), kwargs={})
            state.attempt_number = attempt
            sleeps.append(retrying.wait(state))
        return sleeps

    def test_delay_doubles_per_attempt(self):
        retrying = http_retrying("devpost", URL, max_attempts=4, retry_delay=1.5)
        assert self._sleeps(retrying, [1, 2, 3]) == [1.5, 3.0, 6.0]

    def test_delay_is_capped(self):
        retrying = http_retrying("devpost", URL, retry_delay=10.0)
        assert self._sleeps(retrying, [8]) == [MAX_BACKOFF_SECONDS]

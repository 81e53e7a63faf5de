"""Pytest configuration and shared fixtures."""

from datetime import datetime, timezone
from typing import Callable, Dict, List, Union

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from hacksniffer.models import Base
from hacksniffer.scrapers.utils.fetcher import Fetcher, FetcherConfig

# Reference "now" for adapters: a March, so MLH lists the same year's season
FIXED_NOW = datetime(2030, 3, 1, 12, 0, tzinfo=timezone.utc)

TEST_USER_AGENT = "HackathonSnifferBot/0.1 (+contact@example.com)"

Route = Union[str, httpx.Response]


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend for tests."""
    return "asyncio"


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


# ============================================================================
# DATABASE
# ============================================================================

@pytest_asyncio.fixture
async def session_factory():
    """In-memory SQLite database shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def test_db(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session


# ============================================================================
# HTTP
# ============================================================================

def fast_config(**overrides) -> FetcherConfig:
    """Fetcher settings without any sleeping between attempts or requests."""
    values = dict(
        user_agent=TEST_USER_AGENT,
        timeout=5.0,
        max_retries=3,
        retry_delay=0.0,
        max_concurrency=3,
        min_interval=0.0,
    )
    values.update(overrides)
    return FetcherConfig(**values)


class FakeSite:
    """Routes absolute URLs to canned responses and records every request.

    Unknown URLs answer 404, which also means "no robots.txt".
    """

    def __init__(self, routes: Dict[str, Route] = None):
        self.routes: Dict[str, Route] = dict(routes or {})
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(str(request.url))
        if route is None:
            return httpx.Response(404, text="not found")
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, text=route)

    @property
    def requested_urls(self) -> List[str]:
        return [str(request.url) for request in self.requests]

    def count(self, url: str) -> int:
        return self.requested_urls.count(url)


@pytest.fixture
def site() -> FakeSite:
    return FakeSite()


@pytest_asyncio.fixture
async def make_fetcher():
    """Build Fetchers on top of a FakeSite; every one is closed after the test."""
    fetchers: List[Fetcher] = []

    def _make(site: FakeSite, **overrides) -> Fetcher:
        fetcher = Fetcher(fast_config(**overrides), transport=httpx.MockTransport(site.handler))
        fetchers.append(fetcher)
        return fetcher

    yield _make

    for fetcher in fetchers:
        await fetcher.aclose()

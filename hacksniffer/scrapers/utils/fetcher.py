"""Rate-limited, retrying HTTP fetcher shared by all source adapters."""

from dataclasses import dataclass
from typing import Iterable, Optional

import httpx
import structlog

from hacksniffer.config import Settings, settings as default_settings
from hacksniffer.core.exceptions import FetchError, PolitenessError
from hacksniffer.scrapers.utils.rate_limiter import RequestLimiter
from hacksniffer.scrapers.utils.retry import http_retrying
from hacksniffer.scrapers.utils.robots import RobotsRules


logger = structlog.get_logger(__name__)


@dataclass
class FetcherConfig:
    """Runtime fetch settings, in seconds rather than milliseconds."""

    user_agent: str = "HackathonSnifferBot/0.1 (+contact@example.com)"
    timeout: float = 15.0
    max_retries: int = 3
    retry_delay: float = 1.0
    max_concurrency: int = 3
    min_interval: float = 1.0

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "FetcherConfig":
        """Build a config from application settings."""
        settings = settings or default_settings
        return cls(
            user_agent=settings.USER_AGENT,
            timeout=settings.REQUEST_TIMEOUT_MS / 1000,
            max_retries=settings.MAX_RETRIES,
            retry_delay=settings.RETRY_DELAY_MS / 1000,
            max_concurrency=settings.MAX_CONCURRENCY,
            min_interval=settings.MIN_REQUEST_INTERVAL_MS / 1000,
        )


class Fetcher:
    """Performs HTTP GETs on behalf of adapters.

    Every attempt, including retries, waits for a slot on the shared
    RequestLimiter, sends the configured User-Agent, and is bounded by
    the request timeout. Non-2xx responses and transport errors are
    retried with exponential backoff.

    Usage:
        async with Fetcher(FetcherConfig.from_settings()) as fetcher:
            html = await fetcher.fetch("https://devpost.com/hackathons", "devpost")
    """

    def __init__(
        self,
        config: Optional[FetcherConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        limiter: Optional[RequestLimiter] = None,
    ):
        """Initialize the fetcher.

        Args:
            config: Fetch settings (defaults to the application settings)
            transport: Optional httpx transport, e.g. httpx.MockTransport in tests
            limiter: Shared limiter; one is created from config if omitted
        """
        self.config = config or FetcherConfig.from_settings()
        self.limiter = limiter or RequestLimiter(
            max_concurrency=self.config.max_concurrency,
            min_interval=self.config.min_interval,
        )
        self._client = httpx.AsyncClient(
            headers={"User-Agent": self.config.user_agent},
            timeout=self.config.timeout,
            follow_redirects=True,
            transport=transport,
        )
        self._shutting_down = False
        self.logger = logger.bind(component="fetcher")

    @property
    def is_shutting_down(self) -> bool:
        return self._shutting_down

    def begin_shutdown(self) -> None:
        """Refuse all fetches started from now on."""
        if not self._shutting_down:
            self._shutting_down = True
            self.logger.info("fetcher_shutdown_requested")

    async def aclose(self) -> None:
        """Stop accepting fetches and close the HTTP client."""
        self._shutting_down = True
        await self._client.aclose()

    async def __aenter__(self) -> "Fetcher":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def _get_once(self, url: str) -> httpx.Response:
        async with self.limiter.slot():
            response = await self._client.get(url)

        if not response.is_success:
            raise httpx.HTTPStatusError(
                f"HTTP {response.status_code} for {url}",
                request=response.request,
                response=response,
            )
        return response

    async def fetch(self, url: str, source_id: str, max_attempts: Optional[int] = None) -> str:
        """Fetch a URL and return its body text.

        Args:
            url: Absolute URL to fetch
            source_id: Source tag of the requesting adapter
            max_attempts: Override of the configured total attempts

        Returns:
            Response body as text

        Raises:
            FetchError: If the fetcher is shutting down or every attempt failed
        """
        if self._shutting_down:
            raise FetchError(source_id, url, 0, RuntimeError("fetcher is shutting down"))

        attempts = max_attempts or self.config.max_retries
        attempts_made = 0

        try:
            async for attempt in http_retrying(
                source_id,
                url,
                max_attempts=attempts,
                retry_delay=self.config.retry_delay,
            ):
                with attempt:
                    attempts_made = attempt.retry_state.attempt_number
                    if attempts_made > 1 and self._shutting_down:
                        raise FetchError(
                            source_id, url, attempts_made - 1, RuntimeError("fetcher is shutting down")
                        )
                    response = await self._get_once(url)
        except httpx.HTTPError as e:
            self.logger.warning(
                "fetch_failed",
                source=source_id,
                url=url,
                attempts=attempts_made,
                error=str(e),
            )
            raise FetchError(source_id, url, attempts_made, e) from e

        self.logger.debug(
            "fetch_succeeded",
            source=source_id,
            url=url,
            status=response.status_code,
            attempts=attempts_made,
        )
        return response.text

    async def check_politeness(self, source_id: str, base_url: str, paths: Iterable[str]) -> None:
        """Verify robots.txt allows every path an adapter is about to crawl.

        robots.txt is fetched once, without retries. A missing or
        unreachable robots.txt means everything is allowed.

        Args:
            source_id: Source tag of the adapter
            base_url: Origin of the source, e.g. "https://devpost.com"
            paths: Request paths the adapter will fetch

        Raises:
            PolitenessError: For the first disallowed path
        """
        paths = list(paths)
        robots_url = base_url.rstrip("/") + "/robots.txt"
        try:
            content = await self.fetch(robots_url, source_id, max_attempts=1)
        except FetchError as e:
            self.logger.info("robots_unavailable", source=source_id, url=robots_url, error=str(e))
            return

        rules = RobotsRules.parse(content, self.config.user_agent)
        for path in paths:
            if not rules.is_allowed(path):
                self.logger.warning("robots_disallowed", source=source_id, path=path)
                raise PolitenessError(source_id, path)

        self.logger.debug("robots_allowed", source=source_id, paths=list(paths))

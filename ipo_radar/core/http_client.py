"""
Page Fetcher for Source HTML

Single entry point for every outbound request the pipeline makes:
- Hard per-request timeout covering the whole exchange (overridable per call)
- Browser-like headers; several sources reject default client signatures
- Uniform soft failure: non-2xx, timeout and network errors produce a
  PageFetchResult with success=False instead of raising
- Concurrent fan-out with fetch_many(); total latency is bounded by the
  slowest page, not the sum

There is deliberately no retry loop. A failed page is a gap for this run and
the next scheduled run fetches it again.

Usage:
    async with PageFetcher(timeout=15.0) as fetcher:
        result = await fetcher.fetch("https://www.ipowatch.in/upcoming-ipo/")
        if result.success:
            soup = BeautifulSoup(result.html, "html.parser")
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence
from urllib.parse import urlparse

import httpx

from ipo_radar.core.config import DEFAULT_USER_AGENT
from ipo_radar.core.exceptions import SourceFetchError

logger = logging.getLogger(__name__)

BROWSER_HEADERS = {
    "User-Agent": DEFAULT_USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}


@dataclass
class PageFetchResult:
    """Outcome of one page retrieval."""
    url: str
    success: bool
    html: Optional[str] = None
    status_code: Optional[int] = None
    error: Optional[SourceFetchError] = None
    elapsed_ms: float = 0.0

    @property
    def host(self) -> str:
        return urlparse(self.url).netloc


class PageFetcher:
    """
    Async HTML fetcher with fail-soft semantics.

    Can be used as an async context manager, or initialized with init() and
    released with close().
    """

    def __init__(
        self,
        timeout: float = 15.0,
        default_headers: Optional[Dict[str, str]] = None,
        user_agent: Optional[str] = None,
    ):
        self.timeout = timeout
        self.default_headers = dict(BROWSER_HEADERS)
        if default_headers:
            self.default_headers.update(default_headers)
        if user_agent:
            self.default_headers["User-Agent"] = user_agent

        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        await self.init()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def init(self):
        """Initialize client without context manager. Must call close() when done."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers=self.default_headers,
                follow_redirects=True,
            )
        return self

    async def close(self):
        """Close the client. Use this when not using context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _failure(
        self,
        url: str,
        reason: str,
        started: float,
        status_code: Optional[int] = None,
    ) -> PageFetchResult:
        error = SourceFetchError(url, reason, status_code=status_code)
        elapsed_ms = (time.monotonic() - started) * 1000
        logger.warning(f"[FETCH] {url}: {reason} ({elapsed_ms:.0f}ms)")
        return PageFetchResult(
            url=url,
            success=False,
            status_code=status_code,
            error=error,
            elapsed_ms=elapsed_ms,
        )

    async def fetch(self, url: str, timeout: Optional[float] = None) -> PageFetchResult:
        """
        Retrieve one HTML page.

        Args:
            url: Page URL
            timeout: Per-call timeout in seconds; defaults to the fetcher timeout

        Returns:
            PageFetchResult; success=False on any HTTP or network failure
        """
        if not self._client:
            await self.init()

        started = time.monotonic()
        effective_timeout = timeout if timeout is not None else self.timeout

        try:
            logger.debug(f"[FETCH] GET {url} (timeout {effective_timeout}s)")
            # Deadline for the whole exchange, not per read
            response = await asyncio.wait_for(
                self._client.get(url, timeout=effective_timeout),
                timeout=effective_timeout,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError):
            return self._failure(url, f"timed out after {effective_timeout}s", started)
        except httpx.HTTPError as e:
            return self._failure(url, f"{type(e).__name__}: {e}", started)

        if not response.is_success:
            return self._failure(
                url,
                f"HTTP {response.status_code}",
                started,
                status_code=response.status_code,
            )

        elapsed_ms = (time.monotonic() - started) * 1000
        logger.debug(f"[FETCH] {url}: HTTP {response.status_code} in {elapsed_ms:.0f}ms")
        return PageFetchResult(
            url=url,
            success=True,
            html=response.text,
            status_code=response.status_code,
            elapsed_ms=elapsed_ms,
        )

    async def fetch_many(
        self,
        urls: Sequence[str],
        timeout: Optional[float] = None,
    ) -> List[PageFetchResult]:
        """Fetch several pages concurrently. Results are in input order."""
        return list(await asyncio.gather(*(self.fetch(url, timeout=timeout) for url in urls)))


def create_page_fetcher(settings) -> PageFetcher:
    """Fetcher configured from Settings (primary timeout, user agent)."""
    return PageFetcher(
        timeout=settings.PRIMARY_FETCH_TIMEOUT,
        user_agent=settings.HTTP_USER_AGENT,
    )

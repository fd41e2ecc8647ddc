# site_ingest/crawler/fetcher.py
"""
Fetcher module: robots exclusion plus a polite GET with a single retry.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, Sequence

from aiohttp import ClientError, ClientSession

from site_ingest.config import IngestConfig
from site_ingest.crawler.models import FetchResult, is_html_type
from site_ingest.crawler.robots import RobotsPolicy
from site_ingest.logger import logger

SleepFn = Callable[[float], Awaitable[None]]


class Fetcher:
    """Fetches one URL at a time; keeps no state between URLs."""

    RETRY_STATUS: Sequence[int] = (429, 503)

    def __init__(
        self,
        session: ClientSession,
        config: IngestConfig,
        *,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.session = session
        self.config = config
        self.robots = RobotsPolicy(session)
        self._sleep = sleep

    async def fetch(self, url: str, *, check_robots: bool = True, retry: bool = True) -> FetchResult:
        """
        Fetch *url* after the robots.txt check.

        429/503 is retried exactly once after ``retry_backoff`` seconds; a second
        429/503 gives ``error: rate_limited``. Any other non-2xx status is final.
        Network errors get the same single retry and then propagate. With
        ``retry=False`` the first 429/503 or network error is final.
        Only HTML bodies are read; other content types come back with ``html=None``.
        """
        if check_robots and await self.robots.blocked(url):
            return FetchResult(status="skipped", url=url, reason="blocked")

        max_attempts = 2 if retry else 1
        attempts = 0
        while True:
            attempts += 1
            try:
                status, content_type, html = await self._get(url)
            except (ClientError, asyncio.TimeoutError) as exc:
                if attempts >= max_attempts:
                    raise
                logger.debug("Network error for %s (%s), retrying in %.1f s", url, exc, self.config.retry_backoff)
                await self._sleep(self.config.retry_backoff)
                continue

            if status in self.RETRY_STATUS:
                if attempts >= max_attempts:
                    logger.warning("Rate limited: %s (HTTP %s, %d attempt(s))", url, status, attempts)
                    return FetchResult(
                        status="error", url=url, reason="rate_limited", http_status=status, attempts=attempts
                    )
                logger.debug("HTTP %s for %s, backing off %.1f s", status, url, self.config.retry_backoff)
                await self._sleep(self.config.retry_backoff)
                continue

            if not 200 <= status < 300:
                return FetchResult(
                    status="error", url=url, reason=f"http_{status}", http_status=status, attempts=attempts
                )
            return FetchResult(
                status="ok",
                url=url,
                html=html,
                http_status=status,
                content_type=content_type,
                attempts=attempts,
            )

    async def _get(self, url: str) -> tuple[int, str, Optional[str]]:
        headers = {"User-Agent": self.config.user_agent}
        async with self.session.get(url, headers=headers, allow_redirects=True) as resp:
            content_type = resp.headers.get("Content-Type", "")
            if 200 <= resp.status < 300 and is_html_type(content_type):
                return resp.status, content_type, await resp.text(errors="replace")
            return resp.status, content_type, None

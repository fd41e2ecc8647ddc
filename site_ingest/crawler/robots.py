"""
robots.txt handling for the politeness fetcher.

Only the blanket exclusion is honoured: a robots.txt with a line that reads
``Disallow: /`` (any letter case) blocks the whole origin. Path-specific rules
are not interpreted.
"""
from __future__ import annotations

import asyncio
from urllib.parse import urlparse, urlunparse

from aiohttp import ClientError, ClientSession

from site_ingest.logger import logger

_DISALLOW_ALL = "disallow: /"


def robots_url(url: str) -> str:
    """Return ``{origin}/robots.txt`` for *url*."""
    parsed = urlparse(url)
    return urlunparse((parsed.scheme, parsed.netloc, "/robots.txt", "", "", ""))


def disallows_all(text: str) -> bool:
    """True if any line of *text* is exactly ``disallow: /`` ignoring case and padding."""
    return any(line.strip().lower() == _DISALLOW_ALL for line in text.splitlines())


class RobotsPolicy:
    """Fetches robots.txt and decides whether an origin may be crawled at all."""

    def __init__(self, session: ClientSession) -> None:
        self.session = session

    async def load(self, url: str) -> str:
        """Return the robots.txt body for *url*'s origin, ``""`` when unavailable."""
        target = robots_url(url)
        try:
            async with self.session.get(target) as resp:
                if 200 <= resp.status < 300:
                    return await resp.text()
                logger.debug("robots.txt %s -> HTTP %s", target, resp.status)
        except (ClientError, asyncio.TimeoutError, UnicodeDecodeError) as exc:
            # unreachable robots.txt means allow all
            logger.debug("robots.txt %s unavailable: %s", target, exc)
        return ""

    async def blocked(self, url: str) -> bool:
        text = await self.load(url)
        if disallows_all(text):
            logger.info("Blocked by robots.txt: %s", url)
            return True
        return False

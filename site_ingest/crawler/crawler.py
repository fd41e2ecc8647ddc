from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import AsyncIterator, Deque, List, Optional, Set, Tuple
from urllib.parse import urlparse

from aiohttp import ClientError

from site_ingest.config import IngestConfig
from site_ingest.crawler.fetcher import Fetcher, SleepFn
from site_ingest.crawler.link_extractor import extract_links
from site_ingest.crawler.models import (
    SOURCE_LIVE_CRAWL,
    CrawlTask,
    NormalizedDocument,
    PageOutcome,
)
from site_ingest.logger import LOGGER_NAME
from site_ingest.parser.html_parser import extract

__all__ = ("Crawler", "LIVE_CRAWL_ID")

LIVE_CRAWL_ID = "LIVE"


class Crawler:
    """
    Breadth-first, same-host traversal bounded by page count and depth.

    One instance drives one run: :meth:`crawl` is an async generator that
    yields documents as pages are extracted and cannot be restarted. Pages are
    fetched one at a time with ``crawl_delay`` seconds between them. The
    terminal state of every dequeued task lands in :attr:`outcomes`.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        config: IngestConfig,
        *,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.fetcher = fetcher
        self.config = config
        self.visited: Set[str] = set()
        self.outcomes: List[PageOutcome] = []
        self.logger = logging.getLogger(LOGGER_NAME)
        self._sleep = sleep
        self._started = False

    async def crawl(
        self,
        seed: str,
        max_pages: Optional[int] = None,
        max_depth: Optional[int] = None,
    ) -> AsyncIterator[NormalizedDocument]:
        if self._started:
            raise RuntimeError("Crawler instances are single-use")
        self._started = True

        max_pages = self.config.max_pages if max_pages is None else max_pages
        max_depth = self.config.max_depth if max_depth is None else max_depth
        host = urlparse(seed).hostname or ""
        self.logger.info("Starting crawl: %s (max_pages=%d, max_depth=%d)", seed, max_pages, max_depth)
        start = time.monotonic()

        if await self.fetcher.robots.blocked(seed):
            self.outcomes.append(PageOutcome(seed, 0, "skipped", reason="blocked"))
            return

        frontier: Deque[CrawlTask] = deque([CrawlTask(seed, 0)])
        emitted = 0
        while frontier and len(self.visited) < max_pages:
            task = frontier.popleft()
            if task.url in self.visited:
                continue
            self.visited.add(task.url)

            processed = await self._process(task)
            if processed is not None:
                document, html = processed
                emitted += 1
                yield document
                if task.depth < max_depth:
                    self._enqueue_links(frontier, task, html, host)
            await self._sleep(self.config.crawl_delay)

        duration = time.monotonic() - start
        self.logger.info(
            "Crawl done: %d documents from %d visited pages in %.2f s", emitted, len(self.visited), duration
        )

    async def _process(self, task: CrawlTask) -> Optional[Tuple[NormalizedDocument, str]]:
        try:
            result = await self.fetcher.fetch(task.url, check_robots=False, retry=False)
        except (ClientError, asyncio.TimeoutError, ValueError) as exc:
            self.logger.warning("Failed %s: %s", task.url, exc)
            self.outcomes.append(PageOutcome(task.url, task.depth, "failed", reason="exception"))
            return None

        if not result.ok:
            self.logger.warning("Failed %s: %s", task.url, result.reason)
            self.outcomes.append(PageOutcome(task.url, task.depth, "failed", reason=result.reason))
            return None
        if not result.is_html:
            self.logger.info("Skipping non-HTML %s (%s)", task.url, result.content_type or "no content-type")
            self.outcomes.append(PageOutcome(task.url, task.depth, "skipped", reason="not_html"))
            return None

        document = extract(
            result.html or "",
            task.url,
            source_tag=SOURCE_LIVE_CRAWL,
            crawl_id=LIVE_CRAWL_ID,
            language=self.config.language,
            text_max_chars=self.config.text_max_chars,
        )
        self.outcomes.append(PageOutcome(task.url, task.depth, "emitted", document_id=document.id))
        return document, result.html or ""

    def _enqueue_links(self, frontier: Deque[CrawlTask], task: CrawlTask, html: str, host: str) -> None:
        added = 0
        for link in extract_links(html, task.url, host):
            if link not in self.visited:
                frontier.append(CrawlTask(link, task.depth + 1))
                added += 1
        self.logger.debug("Queued %d links from %s", added, task.url)

# File: site_ingest/engine.py
"""site_ingest.engine: orchestration of the crawl and single-URL submission paths."""

from __future__ import annotations

import asyncio
import json
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Literal, Optional, Tuple

from aiohttp import ClientError, ClientSession, ClientTimeout

from site_ingest.config import IngestConfig
from site_ingest.crawler.crawler import Crawler
from site_ingest.crawler.fetcher import Fetcher, SleepFn
from site_ingest.crawler.models import SOURCE_USER_SUBMIT, NormalizedDocument, PageOutcome
from site_ingest.logger import logger
from site_ingest.parser.html_parser import extract
from site_ingest.ratelimit import UNKNOWN_CLIENT, TokenBucketLimiter
from site_ingest.sink import IngestSink, MeiliSink, UpsertResult
from site_ingest.utils import is_http_url

__all__ = [
    "CrawlReport",
    "IngestEngine",
    "SubmitOutcome",
    "open_session",
    "run_crawl",
    "run_submit",
    "USER_CRAWL_ID",
]

USER_CRAWL_ID = "USER"

SubmitStatus = Literal["ok", "skipped", "error"]


@dataclass(slots=True)
class SubmitOutcome:
    """Closed-set answer to a single URL submission."""

    status: SubmitStatus
    url: Optional[str] = None
    reason: Optional[str] = None
    document_id: Optional[str] = None
    index_status: Optional[int] = None
    index_body: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(slots=True)
class CrawlReport:
    """Outcome of one crawl run."""

    seed: str
    pages: List[PageOutcome] = field(default_factory=list)

    @property
    def indexed(self) -> int:
        return sum(1 for p in self.pages if p.state == "emitted" and p.indexed)

    @property
    def index_failures(self) -> int:
        return sum(1 for p in self.pages if p.state == "emitted" and p.indexed is False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seed": self.seed,
            "indexed": self.indexed,
            "index_failures": self.index_failures,
            "pages": [p.to_dict() for p in self.pages],
        }

    def json(self, *, pretty: bool = False) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2 if pretty else None)


class IngestEngine:
    """Runs fetch → extract → upsert for crawls and user submissions."""

    def __init__(
        self,
        config: IngestConfig,
        fetcher: Fetcher,
        sink: IngestSink,
        limiter: Optional[TokenBucketLimiter] = None,
        *,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.config = config
        self.fetcher = fetcher
        self.sink = sink
        self.limiter = limiter or TokenBucketLimiter(config.rate_limit_capacity, config.rate_limit_window)
        self._sleep = sleep

    async def submit(self, url: Optional[str], client_id: str = UNKNOWN_CLIENT) -> SubmitOutcome:
        """Index exactly one page; link discovery is not performed."""
        if not url:
            return SubmitOutcome("error", reason="missing_url")
        if not self.limiter.admit(client_id):
            logger.info("Submission from %s rejected by rate limit", client_id)
            return SubmitOutcome("error", url=url, reason="rate_limited")
        if not is_http_url(url):
            logger.warning("Rejected malformed URL %r", url)
            return SubmitOutcome("error", url=url, reason="exception")

        try:
            return await self._submit(url)
        except (ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.warning("Submission of %s failed: %s", url, exc)
            return SubmitOutcome("error", url=url, reason="exception")

    async def _submit(self, url: str) -> SubmitOutcome:
        result = await self.fetcher.fetch(url)
        if result.status != "ok":
            return SubmitOutcome(result.status, url=url, reason=result.reason)

        document = extract(
            result.html or "",
            url,
            source_tag=SOURCE_USER_SUBMIT,
            crawl_id=USER_CRAWL_ID,
            language=self.config.language,
            text_max_chars=self.config.text_max_chars,
        )
        if document.word_count < self.config.min_word_count:
            logger.info("Skipping %s: %d words", url, document.word_count)
            return SubmitOutcome("skipped", url=url, reason="too_short", document_id=document.id)

        upsert = await self._upsert(document)
        if not upsert.ok:
            return SubmitOutcome(
                "error",
                url=url,
                reason="index_failed",
                document_id=document.id,
                index_status=upsert.status,
                index_body=upsert.body,
            )
        logger.info("Indexed submission %s", url)
        return SubmitOutcome("ok", url=url, document_id=document.id)

    async def _upsert(self, document: NormalizedDocument) -> UpsertResult:
        try:
            return await self.sink.upsert_documents([document])
        except Exception as exc:  # any sink failure is reported per document
            logger.warning("Sink raised for %s: %r", document.url, exc)
            return UpsertResult(ok=False, status=0, body=repr(exc))

    async def crawl(
        self,
        seed: str,
        max_pages: Optional[int] = None,
        max_depth: Optional[int] = None,
    ) -> CrawlReport:
        """Crawl from *seed* and upsert every document; page failures never abort the run."""
        crawler = Crawler(self.fetcher, self.config, sleep=self._sleep)
        by_id: Dict[str, bool] = {}
        async for document in crawler.crawl(seed, max_pages, max_depth):
            upsert = await self._upsert(document)
            by_id[document.id] = upsert.ok
            if upsert.ok:
                logger.info("Indexed: %s", document.url)
            else:
                logger.warning("Index failed for %s: HTTP %s %s", document.url, upsert.status, upsert.body)

        for outcome in crawler.outcomes:
            if outcome.state == "emitted" and outcome.document_id is not None:
                outcome.indexed = by_id.get(outcome.document_id)
        report = CrawlReport(seed=seed, pages=list(crawler.outcomes))
        logger.info("Crawl of %s indexed %d page(s)", seed, report.indexed)
        return report


def open_session(config: IngestConfig) -> ClientSession:
    """Client session shared by fetcher and sink for one command."""
    return ClientSession(
        timeout=ClientTimeout(total=config.timeout),
        headers={"User-Agent": config.user_agent},
        raise_for_status=False,
    )


async def run_crawl(
    cfg: IngestConfig,
    seed: str,
    max_pages: Optional[int] = None,
    max_depth: Optional[int] = None,
) -> CrawlReport:
    async with open_session(cfg) as session:
        engine = IngestEngine(cfg, Fetcher(session, cfg), MeiliSink(session, cfg))
        return await engine.crawl(seed, max_pages, max_depth)


async def run_submit(cfg: IngestConfig, submissions: Iterable[Tuple[str, str]]) -> List[SubmitOutcome]:
    """
    Submit each ``(url, client_id)`` pair in order.

    One engine, and so one rate limiter, serves the whole batch.
    """
    outcomes: List[SubmitOutcome] = []
    async with open_session(cfg) as session:
        engine = IngestEngine(cfg, Fetcher(session, cfg), MeiliSink(session, cfg))
        for url, client_id in submissions:
            outcomes.append(await engine.submit(url, client_id))
    return outcomes

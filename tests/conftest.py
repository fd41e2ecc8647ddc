# File: tests/conftest.py
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Sequence

import pytest
import pytest_asyncio
from aiohttp import ClientSession, ClientTimeout, web

from site_ingest.config import IngestConfig
from site_ingest.crawler.models import NormalizedDocument
from site_ingest.sink import UpsertResult


@pytest.fixture()
def config() -> IngestConfig:
    """Default waits; tests pass ``fake_sleep`` so nothing actually sleeps."""
    return IngestConfig(timeout=5.0, crawl_delay=1.0, retry_backoff=1.5, user_agent="TestAgent/1.0")


@pytest.fixture()
def sleeps() -> List[float]:
    """Records every requested sleep instead of waiting."""
    return []


@pytest.fixture()
def fake_sleep(sleeps):
    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    return _sleep


@pytest_asyncio.fixture
async def session() -> AsyncIterator[ClientSession]:
    async with ClientSession(timeout=ClientTimeout(total=5)) as s:
        yield s


@asynccontextmanager
async def _serve(app: web.Application) -> AsyncIterator[str]:
    """Start *app* on an ephemeral port, yield its base URL, ensure cleanup."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    port = runner.addresses[0][1]
    try:
        yield f"http://127.0.0.1:{port}"
    finally:
        await runner.cleanup()


@pytest.fixture()
def serve():
    return _serve


class RecordingSink:
    """In-memory sink; URLs in *fail_urls* are answered with HTTP 500."""

    def __init__(self, fail_urls: Sequence[str] = ()) -> None:
        self.batches: List[List[NormalizedDocument]] = []
        self.fail_urls = set(fail_urls)

    async def upsert_documents(self, docs: Sequence[NormalizedDocument]) -> UpsertResult:
        self.batches.append(list(docs))
        if any(d.url in self.fail_urls for d in docs):
            return UpsertResult(ok=False, status=500, body="index exploded")
        return UpsertResult(ok=True, status=202, body='{"taskUid": 1}')

    @property
    def documents(self) -> List[NormalizedDocument]:
        return [d for batch in self.batches for d in batch]


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


def words(n: int) -> str:
    return " ".join(f"word{i}" for i in range(n))


def html_page(body: str, title: str = "") -> str:
    head = f"<title>{title}</title>" if title else ""
    return f"<html><head>{head}</head><body>{body}</body></html>"

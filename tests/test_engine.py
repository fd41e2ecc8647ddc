"""Tests for the submission and crawl paths of IngestEngine."""
from __future__ import annotations

from collections import Counter

import pytest
from aiohttp import web

from site_ingest.crawler.fetcher import Fetcher
from site_ingest.engine import IngestEngine
from site_ingest.sink import MeiliSink, UpsertResult
from site_ingest.ratelimit import TokenBucketLimiter
from site_ingest.utils import fingerprint

from conftest import RecordingSink, html_page, words


def content_site(hits: Counter, robots: str | None = None, rate_limited: bool = False) -> web.Application:
    app = web.Application()

    async def long_page(_):
        hits["/long"] += 1
        return web.Response(text=html_page(words(29), "Long"), content_type="text/html")

    async def short_page(_):
        hits["/short"] += 1
        return web.Response(text=html_page(words(29)), content_type="text/html")

    async def titled(_):
        hits["/titled"] += 1
        return web.Response(text=html_page(words(29), "Two words"), content_type="text/html")

    async def busy(_):
        hits["/busy"] += 1
        return web.Response(status=503)

    async def root(request):
        hits["/"] += 1
        return web.Response(
            text=html_page(f'{words(40)} <a href="/long">l</a><a href="/short">s</a>', "Root"),
            content_type="text/html",
        )

    app.router.add_get("/", root)
    app.router.add_get("/long", long_page)
    app.router.add_get("/short", short_page)
    app.router.add_get("/busy", busy)
    app.router.add_get("/titled", titled)
    if robots is not None:
        async def robots_txt(_):
            return web.Response(text=robots, content_type="text/plain")

        app.router.add_get("/robots.txt", robots_txt)
    return app


def make_engine(session, config, sink, fake_sleep, limiter=None) -> IngestEngine:
    return IngestEngine(config, Fetcher(session, config, sleep=fake_sleep), sink, limiter, sleep=fake_sleep)


# --------------------------------------------------------------------------- #
#                               Submission path                               #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_submit_indexes_page(serve, session, config, sink, fake_sleep):
    hits: Counter = Counter()
    async with serve(content_site(hits)) as base:
        outcome = await make_engine(session, config, sink, fake_sleep).submit(f"{base}/long", "10.0.0.1")

    assert outcome.status == "ok"
    assert outcome.reason is None
    [doc] = sink.documents
    assert doc.id == fingerprint(f"{base}/long") == outcome.document_id
    assert doc.title == "Long"
    assert doc.word_count == 30
    assert doc.source_tag == "user-submit"
    assert doc.crawl_id == "USER"


@pytest.mark.asyncio()
async def test_resubmission_reuses_id(serve, session, config, sink, fake_sleep):
    hits: Counter = Counter()
    async with serve(content_site(hits)) as base:
        engine = make_engine(session, config, sink, fake_sleep)
        first = await engine.submit(f"{base}/long")
        second = await engine.submit(f"{base}/long")

    assert first.status == second.status == "ok"
    assert [d.id for d in sink.documents] == [first.document_id, first.document_id]


@pytest.mark.asyncio()
async def test_submission_does_not_follow_links(serve, session, config, sink, fake_sleep):
    hits: Counter = Counter()
    async with serve(content_site(hits)) as base:
        await make_engine(session, config, sink, fake_sleep).submit(f"{base}/")

    assert hits == Counter({"/": 1})
    assert len(sink.documents) == 1


@pytest.mark.asyncio()
async def test_word_count_gate(serve, session, config, sink, fake_sleep):
    hits: Counter = Counter()
    async with serve(content_site(hits)) as base:
        engine = make_engine(session, config, sink, fake_sleep)
        short = await engine.submit(f"{base}/short")
        long = await engine.submit(f"{base}/long")
        titled = await engine.submit(f"{base}/titled")

    assert (short.status, short.reason) == ("skipped", "too_short")
    assert long.status == "ok"
    assert titled.status == "ok"
    assert [d.url for d in sink.documents] == [f"{base}/long", f"{base}/titled"]
    assert [d.word_count for d in sink.documents] == [30, 31]


@pytest.mark.asyncio()
async def test_submit_blocked_by_robots(serve, session, config, sink, fake_sleep):
    hits: Counter = Counter()
    async with serve(content_site(hits, robots="User-agent: *\nDisallow: /")) as base:
        outcome = await make_engine(session, config, sink, fake_sleep).submit(f"{base}/long")

    assert (outcome.status, outcome.reason) == ("skipped", "blocked")
    assert hits["/long"] == 0
    assert sink.documents == []


@pytest.mark.asyncio()
async def test_submit_rate_limited_by_origin(serve, session, config, sink, fake_sleep):
    hits: Counter = Counter()
    async with serve(content_site(hits)) as base:
        outcome = await make_engine(session, config, sink, fake_sleep).submit(f"{base}/busy")

    assert (outcome.status, outcome.reason) == ("error", "rate_limited")
    assert hits["/busy"] == 2


@pytest.mark.asyncio()
async def test_admission_control(serve, session, config, sink, fake_sleep):
    limiter = TokenBucketLimiter(capacity=2, window=60.0, clock=lambda: 0.0)
    hits: Counter = Counter()
    async with serve(content_site(hits)) as base:
        engine = make_engine(session, config, sink, fake_sleep, limiter)
        results = [await engine.submit(f"{base}/long", "10.0.0.1") for _ in range(3)]
        other = await engine.submit(f"{base}/long", "10.0.0.2")

    assert [r.status for r in results] == ["ok", "ok", "error"]
    assert results[-1].reason == "rate_limited"
    assert other.status == "ok"
    assert hits["/long"] == 3


@pytest.mark.asyncio()
@pytest.mark.parametrize("url", [None, ""])
async def test_missing_url(session, config, sink, fake_sleep, url):
    outcome = await make_engine(session, config, sink, fake_sleep).submit(url)
    assert (outcome.status, outcome.reason) == ("error", "missing_url")


@pytest.mark.asyncio()
@pytest.mark.parametrize("url", ["not a url", "ftp://a.example/file", "http://"])
async def test_malformed_url(session, config, sink, fake_sleep, url):
    outcome = await make_engine(session, config, sink, fake_sleep).submit(url)
    assert (outcome.status, outcome.reason) == ("error", "exception")


@pytest.mark.asyncio()
async def test_http_error_is_surfaced(serve, session, config, sink, fake_sleep):
    hits: Counter = Counter()
    async with serve(content_site(hits)) as base:
        outcome = await make_engine(session, config, sink, fake_sleep).submit(f"{base}/nowhere")
    assert (outcome.status, outcome.reason) == ("error", "http_404")


@pytest.mark.asyncio()
async def test_network_failure_maps_to_exception(session, config, sink, fake_sleep):
    outcome = await make_engine(session, config, sink, fake_sleep).submit("http://127.0.0.1:1/")
    assert (outcome.status, outcome.reason) == ("error", "exception")


@pytest.mark.asyncio()
async def test_index_failure_carries_upstream_response(serve, session, config, fake_sleep):
    hits: Counter = Counter()
    async with serve(content_site(hits)) as base:
        sink = RecordingSink(fail_urls=[f"{base}/long"])
        outcome = await make_engine(session, config, sink, fake_sleep).submit(f"{base}/long")

    assert (outcome.status, outcome.reason) == ("error", "index_failed")
    assert outcome.index_status == 500
    assert outcome.index_body == "index exploded"
    assert outcome.to_dict()["index_status"] == 500


# --------------------------------------------------------------------------- #
#                                 Crawl path                                  #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_crawl_upserts_each_document(serve, session, config, sink, fake_sleep):
    hits: Counter = Counter()
    async with serve(content_site(hits)) as base:
        report = await make_engine(session, config, sink, fake_sleep).crawl(f"{base}/", max_pages=5, max_depth=1)

    assert [d.url for d in sink.documents] == [f"{base}/", f"{base}/long", f"{base}/short"]
    assert all(len(batch) == 1 for batch in sink.batches)
    assert report.indexed == 3
    assert report.index_failures == 0


@pytest.mark.asyncio()
async def test_crawl_survives_index_failure(serve, session, config, fake_sleep):
    hits: Counter = Counter()
    async with serve(content_site(hits)) as base:
        sink = RecordingSink(fail_urls=[f"{base}/long"])
        report = await make_engine(session, config, sink, fake_sleep).crawl(f"{base}/")

    assert len(sink.documents) == 3
    assert report.indexed == 2
    assert report.index_failures == 1
    failed = [p for p in report.pages if p.indexed is False]
    assert [p.url for p in failed] == [f"{base}/long"]
    data = report.to_dict()
    assert data["indexed"] == 2
    assert len(data["pages"]) == 3


@pytest.mark.asyncio()
async def test_crawl_survives_raising_sink(serve, session, config, fake_sleep):
    class RaisingSink(RecordingSink):
        async def upsert_documents(self, docs):
            self.batches.append(list(docs))
            if any(d.url.endswith("/long") for d in docs):
                raise RuntimeError("sink went away")
            return UpsertResult(ok=True, status=202)

    hits: Counter = Counter()
    async with serve(content_site(hits)) as base:
        sink = RaisingSink()
        report = await make_engine(session, config, sink, fake_sleep).crawl(f"{base}/")

    assert [d.url for d in sink.documents] == [f"{base}/", f"{base}/long", f"{base}/short"]
    assert hits["/short"] == 1
    assert report.indexed == 2
    assert report.index_failures == 1
    assert [p.url for p in report.pages if p.indexed is False] == [f"{base}/long"]


@pytest.mark.asyncio()
async def test_submit_with_raising_sink_reports_index_failed(serve, session, config, fake_sleep):
    class RaisingSink:
        async def upsert_documents(self, docs):
            raise RuntimeError("sink went away")

    hits: Counter = Counter()
    async with serve(content_site(hits)) as base:
        outcome = await make_engine(session, config, RaisingSink(), fake_sleep).submit(f"{base}/long")

    assert (outcome.status, outcome.reason) == ("error", "index_failed")
    assert outcome.index_status == 0
    assert "sink went away" in outcome.index_body


@pytest.mark.asyncio()
async def test_crawl_continues_when_index_answers_undecodable_error(serve, session, config, fake_sleep):
    app = web.Application()

    async def root(_):
        return web.Response(text=html_page(f'{words(40)} <a href="/a">a</a>', "Root"), content_type="text/html")

    async def page_a(_):
        return web.Response(text=html_page(words(40), "A"), content_type="text/html")

    async def documents(_):
        return web.Response(status=500, body=b"\xff\xfe\xfa bad", content_type="text/plain", charset="utf-8")

    app.router.add_get("/", root)
    app.router.add_get("/a", page_a)
    app.router.add_post("/indexes/pages/documents", documents)

    async with serve(app) as base:
        cfg = config.model_copy(update={"index_url": base})
        engine = make_engine(session, cfg, MeiliSink(session, cfg), fake_sleep)
        report = await engine.crawl(f"{base}/", max_pages=5, max_depth=1)

    assert [(p.url, p.state, p.indexed) for p in report.pages] == [
        (f"{base}/", "emitted", False),
        (f"{base}/a", "emitted", False),
    ]
    assert report.index_failures == 2

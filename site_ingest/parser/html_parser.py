# === FILE: site_ingest/parser/html_parser.py ===
"""HTML → :class:`NormalizedDocument` extraction.

The extractor is a pure function of the markup and the page URL (the capture
timestamp can be injected). It never raises on broken markup: a page that the
parser chokes on degrades to an empty title and text.

Limits are part of the document contract:

* title: first ``<title>``, whitespace collapsed, at most 200 characters;
* meta description: ``<meta name="description">`` content, at most 300;
* text: every text node of the document (title included) once scripts,
  styles, comments and the doctype are gone, whitespace collapsed, capped (8000 by default).
"""
from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Optional

from bs4 import BeautifulSoup
from bs4.element import Comment, Doctype

from site_ingest.crawler.models import SOURCE_LIVE_CRAWL, NormalizedDocument
from site_ingest.logger import logger
from site_ingest.utils import (
    collapse_whitespace,
    country_from_tld,
    extract_domain,
    fingerprint,
    top_level_domain,
)

__all__: Sequence[str] = ("extract", "parse_parts", "TITLE_MAX_CHARS", "META_MAX_CHARS", "TEXT_MAX_CHARS")

TITLE_MAX_CHARS = 200
META_MAX_CHARS = 300
TEXT_MAX_CHARS = 8000

_DESCRIPTION_RE = re.compile(r"^\s*description\s*$", re.IGNORECASE)
_INVISIBLE_TAGS = ["script", "style"]


def parse_parts(html: str, text_max_chars: int = TEXT_MAX_CHARS) -> tuple[str, str, str]:
    """Return ``(title, meta_description, text)`` of *html*."""
    soup = BeautifulSoup(html or "", "html.parser")

    title_tag = soup.find("title")
    title = collapse_whitespace(title_tag.get_text()) if title_tag else ""

    meta_tag = soup.find("meta", attrs={"name": _DESCRIPTION_RE})
    meta = ""
    if meta_tag is not None:
        content = meta_tag.get("content")
        if isinstance(content, str):
            meta = content.strip()[:META_MAX_CHARS]

    for element in soup(_INVISIBLE_TAGS):
        element.decompose()
    for comment in soup.find_all(string=lambda s: isinstance(s, (Comment, Doctype))):
        comment.extract()

    text = collapse_whitespace(soup.get_text(" "))[:text_max_chars].strip()
    return title[:TITLE_MAX_CHARS], meta, text


def extract(
    html: str,
    url: str,
    *,
    source_tag: str = SOURCE_LIVE_CRAWL,
    crawl_id: str = "LIVE",
    language: str = "en",
    text_max_chars: int = TEXT_MAX_CHARS,
    captured_at: Optional[datetime] = None,
) -> NormalizedDocument:
    """Build the normalized document for *url* from its raw *html*."""
    try:
        title, meta, text = parse_parts(html, text_max_chars)
    except Exception as exc:  # parser failures degrade to an empty document
        logger.warning("Extraction degraded for %s: %s", url, exc)
        title, meta, text = "", "", ""

    domain = extract_domain(url)
    tld = top_level_domain(domain)
    stamp = captured_at or datetime.now(timezone.utc)
    return NormalizedDocument(
        id=fingerprint(url),
        url=url,
        title=title or url,
        text=text,
        meta_description=meta,
        word_count=len(text.split()),
        domain=domain,
        top_level_domain=tld,
        country_hint=country_from_tld(tld),
        language=language,
        last_modified=stamp.isoformat(),
        source_tag=source_tag,
        crawl_id=crawl_id,
    )

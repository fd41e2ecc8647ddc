"""
Data models for the SiteIngest crawler.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal, Optional

FetchStatus = Literal["ok", "skipped", "error"]
PageState = Literal["emitted", "skipped", "failed"]

SOURCE_LIVE_CRAWL = "live-crawl"
SOURCE_USER_SUBMIT = "user-submit"


def is_html_type(content_type: str) -> bool:
    """True for text/html and XHTML content types."""
    return "html" in content_type.lower()


@dataclass(frozen=True, slots=True)
class CrawlTask:
    """A discovered URL waiting in the frontier."""

    url: str
    depth: int


@dataclass(slots=True)
class FetchResult:
    """What the fetcher got for one URL."""

    status: FetchStatus
    url: str
    html: Optional[str] = None
    reason: Optional[str] = None
    http_status: Optional[int] = None
    content_type: str = ""
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def is_html(self) -> bool:
        return is_html_type(self.content_type)


@dataclass(slots=True)
class NormalizedDocument:
    """Canonical unit pushed to the search index."""

    id: str
    url: str
    title: str
    text: str
    meta_description: str
    word_count: int
    domain: str
    top_level_domain: str
    country_hint: str
    language: str
    last_modified: str
    source_tag: str
    crawl_id: str

    def as_index_document(self) -> dict[str, Any]:
        """Payload in the field names the search index is queried with."""
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "meta_desc": self.meta_description,
            "text": self.text,
            "word_count": self.word_count,
            "lang": self.language,
            "last_modified": self.last_modified,
            "crawl_id": self.crawl_id,
            "domain": self.domain,
            "tld": self.top_level_domain,
            "country_hint": self.country_hint,
            "source": self.source_tag,
        }


@dataclass(slots=True)
class PageOutcome:
    """Terminal state of one crawl task."""

    url: str
    depth: int
    state: PageState
    reason: Optional[str] = None
    document_id: Optional[str] = None
    indexed: Optional[bool] = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

# File: site_ingest/utils.py
"""site_ingest.utils: URL helpers shared by the extractor and the engine."""

from __future__ import annotations

import hashlib
from typing import Mapping, Optional, Sequence
from urllib.parse import urlparse

__all__: Sequence[str] = (
    "COUNTRY_BY_TLD",
    "UNSPECIFIED_COUNTRY",
    "fingerprint",
    "extract_domain",
    "top_level_domain",
    "country_from_tld",
    "is_http_url",
    "collapse_whitespace",
)

UNSPECIFIED_COUNTRY = "UNSPEC"

COUNTRY_BY_TLD: Mapping[str, str] = {
    "uk": "UK",
    "us": "US",
    "ae": "AE",
    "de": "DE",
    "fr": "FR",
    "it": "IT",
    "es": "ES",
}


def fingerprint(url: str) -> str:
    """Stable document id for *url*: ``u_`` + SHA-1 hex digest of the literal string."""
    return "u_" + hashlib.sha1(url.encode("utf-8")).hexdigest()


def extract_domain(url: str) -> str:
    """Hostname of *url*, ``""`` when it cannot be parsed."""
    try:
        return urlparse(url).hostname or ""
    except ValueError:
        return ""


def top_level_domain(domain: str) -> str:
    """Last dot-delimited label; ``""`` for single-label hosts."""
    labels = domain.split(".")
    return labels[-1] if len(labels) > 1 else ""


def country_from_tld(tld: Optional[str]) -> str:
    return COUNTRY_BY_TLD.get((tld or "").lower(), UNSPECIFIED_COUNTRY)


def is_http_url(url: str) -> bool:
    """True for absolute http(s) URLs with a host."""
    try:
        parsed = urlparse(url)
        return parsed.scheme in ("http", "https") and bool(parsed.hostname)
    except ValueError:
        return False


def collapse_whitespace(text: str) -> str:
    """Runs of whitespace (including non-breaking spaces) become one space; ends trimmed."""
    return " ".join(text.split())

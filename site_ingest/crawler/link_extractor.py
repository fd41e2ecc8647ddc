"""
Link discovery for the traversal engine.
"""
from __future__ import annotations

from typing import List
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup
from bs4.element import Tag


def extract_links(html: str, page_url: str, host: str) -> List[str]:
    """
    Return absolute http(s) links of *html* whose hostname equals *host*.

    Every anchor ``href`` is resolved against *page_url*. URLs are kept literally
    (no trailing-slash, query or fragment normalisation), in document order.
    """
    soup = BeautifulSoup(html, "html.parser")
    links: List[str] = []
    for tag in soup.find_all("a", href=True):
        if not isinstance(tag, Tag):
            continue
        href_val = tag.get("href")
        if not isinstance(href_val, str):
            continue
        raw = href_val.strip()
        if not raw or raw.startswith(("mailto:", "javascript:")):
            continue
        try:
            absolute = urljoin(page_url, raw)
            parsed = urlparse(absolute)
            hostname = parsed.hostname
        except ValueError:
            continue
        if parsed.scheme in ("http", "https") and hostname == host:
            links.append(absolute)
    return links

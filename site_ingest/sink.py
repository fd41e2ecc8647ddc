# site_ingest/sink.py
"""
Search index client: document upserts plus the thin search passthrough.

The ingestion code only depends on :class:`IngestSink`; :class:`MeiliSink`
talks to a Meilisearch-compatible HTTP API.
"""
from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

from aiohttp import ClientError, ClientSession

from site_ingest.config import IngestConfig
from site_ingest.crawler.models import NormalizedDocument
from site_ingest.logger import logger

SNIPPET_MAX_CHARS = 280
MAX_SEARCH_LIMIT = 50


@dataclass(slots=True)
class UpsertResult:
    ok: bool
    status: int = 0
    body: str = ""


class IngestSink(Protocol):
    async def upsert_documents(self, docs: Sequence[NormalizedDocument]) -> UpsertResult: ...


def build_filter(
    lang: Optional[str] = None,
    country: Optional[str] = None,
    tld: Optional[str] = None,
    after: Optional[str] = None,
) -> Optional[str]:
    """Index filter expression joining the given conditions with AND."""
    parts: List[str] = []
    if lang:
        parts.append(f'lang = "{lang}"')
    if country:
        parts.append(f'country_hint = "{country}"')
    if tld:
        parts.append(f'tld = "{tld}"')
    if after:
        parts.append(f"last_modified >= {json.dumps(after)}")
    return " AND ".join(parts) if parts else None


def _to_hit(raw: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "url": raw.get("url"),
        "title": raw.get("title") or raw.get("domain") or raw.get("url"),
        "snippet": (raw.get("meta_desc") or raw.get("text") or "")[:SNIPPET_MAX_CHARS],
        "lang": raw.get("lang"),
        "country_hint": raw.get("country_hint"),
        "last_modified": raw.get("last_modified"),
        "crawl_id": raw.get("crawl_id"),
        "score": raw.get("_rankingScore") or 0,
    }


class MeiliSink:
    """Upserts documents into ``{index_url}/indexes/{index_name}``."""

    def __init__(self, session: ClientSession, config: IngestConfig) -> None:
        self.session = session
        self.config = config

    @property
    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.config.index_key}", "Content-Type": "application/json"}

    @property
    def _index_base(self) -> str:
        return f"{self.config.index_url}/indexes/{self.config.index_name}"

    async def upsert_documents(self, docs: Sequence[NormalizedDocument]) -> UpsertResult:
        """POST *docs*; a non-2xx answer comes back with its status and body."""
        payload = [doc.as_index_document() for doc in docs]
        try:
            async with self.session.post(
                f"{self._index_base}/documents", json=payload, headers=self._headers
            ) as resp:
                body = await resp.text(errors="replace")
                if 200 <= resp.status < 300:
                    logger.debug("Upserted %d document(s): HTTP %s", len(payload), resp.status)
                    return UpsertResult(ok=True, status=resp.status, body=body)
                logger.warning("Index rejected %d document(s): HTTP %s %s", len(payload), resp.status, body)
                return UpsertResult(ok=False, status=resp.status, body=body)
        except (ClientError, asyncio.TimeoutError) as exc:
            logger.warning("Index unreachable: %s", exc)
            return UpsertResult(ok=False, status=0, body=str(exc))

    async def search(
        self,
        q: str,
        filters: Optional[Dict[str, Optional[str]]] = None,
        limit: int = 10,
    ) -> List[Dict[str, Any]]:
        """Forward a query to the index and map its hits; empty *q* gives ``[]``."""
        if not q:
            return []
        filters = filters or {}
        body: Dict[str, Any] = {
            "q": q,
            "limit": max(1, min(limit, MAX_SEARCH_LIMIT)),
        }
        expr = build_filter(**filters)
        if expr:
            body["filter"] = expr
        if filters.get("after"):
            body["sort"] = ["last_modified:desc"]
        async with self.session.post(f"{self._index_base}/search", json=body, headers=self._headers) as resp:
            try:
                data = await resp.json(content_type=None)
            except (ValueError, ClientError):
                data = {}
        hits = data.get("hits", []) if isinstance(data, dict) else []
        return [_to_hit(h) for h in hits]

    async def health(self) -> str:
        try:
            async with self.session.get(
                f"{self.config.index_url}/health", headers={"Authorization": f"Bearer {self.config.index_key}"}
            ) as resp:
                data = await resp.json(content_type=None)
                return str(data.get("status", "unknown")) if isinstance(data, dict) else "unknown"
        except (ClientError, asyncio.TimeoutError, ValueError):
            return "down"


__all__ = ["IngestSink", "MeiliSink", "UpsertResult", "build_filter"]

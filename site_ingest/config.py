# === FILE: site_ingest/config.py ===
"""
Loading and validation of the SiteIngest configuration.
Pydantic describes the schema and checks the data.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

# environment overrides for the index connection
_ENV_OVERRIDES = {"MEILI_URL": "index_url", "MEILI_KEY": "index_key"}


class IngestConfig(BaseModel):
    """Settings shared by the crawl and submission paths."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    user_agent: str = Field(
        "EngineBot/0.1 (+https://example.com/bot)", min_length=1, description="User-Agent header."
    )
    timeout: float = Field(10.0, gt=0, description="Transport timeout per request (seconds).")
    max_pages: int = Field(25, ge=1, description="Hard limit on pages visited per crawl.")
    max_depth: int = Field(1, ge=0, description="Maximum link depth from the seed.")
    crawl_delay: float = Field(1.0, ge=0, description="Pause after every crawled page (seconds).")
    retry_backoff: float = Field(1.5, ge=0, description="Wait before the single retry on 429/503.")
    rate_limit_capacity: int = Field(6, ge=1, description="Submissions per client per window.")
    rate_limit_window: float = Field(60.0, gt=0, description="Seconds for a full bucket refill.")
    text_max_chars: int = Field(8000, ge=1, description="Cap on extracted body text.")
    min_word_count: int = Field(30, ge=0, description="Minimum words for a submission to be indexed.")
    language: str = Field("en", min_length=1, description="Language stamped on every document.")
    index_url: str = Field("http://localhost:7700", description="Search index base URL.")
    index_key: str = Field("supersecret", description="Bearer key for the search index.")
    index_name: str = Field("pages", min_length=1, description="Index receiving the documents.")

    @field_validator("index_url", mode="before")
    def _strip_trailing_slash(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.rstrip("/")
        return v


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of YAML must be a mapping, got {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of JSON must be a mapping, got {type(data).__name__}")
    return data


def _apply_env(data: dict[str, Any]) -> dict[str, Any]:
    merged = dict(data)
    for env_name, field in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            merged[field] = value
    return merged


def load_config(path: Union[str, Path, None] = None) -> IngestConfig:
    """
    Read YAML or JSON and return a validated IngestConfig.

    Without *path* the default ``configs/default.yaml`` is used when present,
    otherwise the model defaults apply. ``MEILI_URL`` and ``MEILI_KEY`` from the
    environment take precedence over the file.
    """
    if path is None:
        if not _DEFAULT_CFG.exists():
            return IngestConfig(**_apply_env({}))
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Unsupported config format: {suffix}")

    try:
        return IngestConfig(**_apply_env(data))
    except ValidationError:
        raise


__all__ = ["IngestConfig", "load_config"]

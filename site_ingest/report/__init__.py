"""site_ingest.report: JSON and HTML crawl reports used by the CLI."""

from site_ingest.report.html_report import render_html
from site_ingest.report.json_report import render_json

__all__ = ["render_json", "render_html"]

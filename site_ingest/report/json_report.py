# site_ingest/report/json_report.py

"""
JSON report of a crawl run.
"""
import json
from pathlib import Path

from site_ingest.engine import CrawlReport


def render_json(report: CrawlReport, output_path: Path | str) -> Path:
    """
    Save *report* as JSON at *output_path* and return the path.

    Example:
    ```python
    from site_ingest.report.json_report import render_json
    report_path = render_json(report, 'reports/crawl.json')
    ```
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    with output.open('w', encoding='utf-8') as f:
        json.dump(report.to_dict(), f, ensure_ascii=False, indent=2)

    return output

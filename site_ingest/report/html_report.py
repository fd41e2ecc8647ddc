# File: site_ingest/report/html_report.py
"""site_ingest.report.html_report: HTML crawl report rendered with Jinja2."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from site_ingest.engine import CrawlReport

DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"


def render_html(
    report: CrawlReport,
    template_dir: Union[Path, str, None],
    output_path: Union[Path, str],
) -> Path:
    """Render ``report.html.j2`` from *template_dir* and save it at *output_path*.

    Args:
        report: the CrawlReport of a finished run.
        template_dir: directory with Jinja2 templates; ``None`` uses the bundled one.
        output_path: path of the resulting HTML file.

    Returns:
        Path of the saved HTML file.
    """
    template_dir = Path(template_dir) if template_dir else DEFAULT_TEMPLATE_DIR
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    env = Environment(
        loader=FileSystemLoader(str(template_dir)),
        autoescape=select_autoescape(["html", "xml", "j2"]),
    )
    template = env.get_template("report.html.j2")

    context: dict[str, Any] = {
        "seed": report.seed,
        "indexed": report.indexed,
        "index_failures": report.index_failures,
        "pages": [p.to_dict() for p in report.pages],
    }

    output_path.write_text(template.render(**context), encoding="utf-8")
    return output_path

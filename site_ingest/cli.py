#!/usr/bin/env python3
"""
Command line entry point for SiteIngest.

Commands:
  crawl SEED    Crawl same-host pages from SEED and upsert them into the index
  submit URLS   Index pages one by one (rate limited, robots-aware, word-count gated)
  search QUERY  Query the search index
  config        Show the effective configuration

Global options:
  --config PATH       YAML/JSON config (default: configs/default.yaml if present)
  --log-level LEVEL   Logging level (DEBUG, INFO, ...)
  --log-file PATH     Log file (stdout only when omitted)
  --log-format FORMAT Logging format string

Example:
  site-ingest crawl https://example.com/ --max-pages 10 --json crawl.json --pretty
"""
import asyncio
import json
import sys
from pathlib import Path

import click

from site_ingest import __version__
from site_ingest.config import load_config
from site_ingest.engine import open_session, run_crawl, run_submit
from site_ingest.logger import init_logging
from site_ingest.ratelimit import client_id_from
from site_ingest.report.html_report import render_html
from site_ingest.report.json_report import render_json
from site_ingest.sink import MeiliSink

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


async def run_search(cfg, query, filters, limit):
    async with open_session(cfg) as session:
        return await MeiliSink(session, cfg).search(query, filters, limit)


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='SiteIngest, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Path to a YAML or JSON config file.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Logging level'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Log file path (stdout when omitted)'
)
@click.option(
    '--log-format', 'log_format',
    default='%(asctime)s %(levelname)s %(message)s',
    show_default=True,
    help='Logging format string'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """SiteIngest command group."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    try:
        cfg = load_config(config_path)
    except Exception as e:
        print_error(f'Failed to load configuration: {e}')
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


@cli.command('crawl', context_settings=CONTEXT_SETTINGS)
@click.argument('seed')
@click.option('--max-pages', 'max_pages', type=click.IntRange(min=1), default=None,
              help='Page limit (overrides max_pages)')
@click.option('--max-depth', 'max_depth', type=click.IntRange(min=0), default=None,
              help='Depth limit (overrides max_depth)')
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Save the JSON report to a file'
)
@click.option(
    '--html', '-h', 'html_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Save the HTML report to a file'
)
@click.option(
    '--template', '-t', 'template_dir',
    default=None,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help='Directory with Jinja2 templates (bundled template when omitted)'
)
@click.option('--pretty', is_flag=True, help='Indent JSON output')
@click.pass_context
def crawl(ctx, seed, max_pages, max_depth, json_output, html_output, template_dir, pretty):
    """Crawl from SEED and index every page found."""
    cfg = ctx.obj['config']
    try:
        report = asyncio.run(run_crawl(cfg, seed, max_pages, max_depth))
    except Exception as e:
        print_error(f'Crawl failed: {e}')

    if not json_output and not html_output:
        click.echo(report.json(pretty=pretty))
        return

    if json_output:
        try:
            click.echo(f'JSON report: {render_json(report, json_output)}')
        except Exception as e:
            print_error(f'Failed to save JSON: {e}')

    if html_output:
        try:
            click.echo(f'HTML report: {render_html(report, template_dir, html_output)}')
        except Exception as e:
            print_error(f'Failed to save HTML: {e}')


def _submissions(urls, forwarded_for, client_id, read_stdin):
    """(url, client_id) pairs; stdin lines read ``URL [FORWARDED-FOR]``."""
    pairs = [
        (url, client_id_from({'X-Forwarded-For': forwarded_for} if forwarded_for else {}, client_id))
        for url in urls
    ]
    if read_stdin:
        for line in click.get_text_stream('stdin'):
            parts = line.split(None, 1)
            if not parts:
                continue
            fwd = parts[1].strip() if len(parts) > 1 else forwarded_for
            pairs.append((parts[0], client_id_from({'X-Forwarded-For': fwd} if fwd else {}, client_id)))
    return pairs or [('', client_id_from({}, client_id))]


@cli.command('submit', context_settings=CONTEXT_SETTINGS)
@click.argument('urls', nargs=-1)
@click.option('--client-id', 'client_id', default=None,
              help='Peer address of the caller (rate limit key when no forwarded address is given)')
@click.option('--forwarded-for', 'forwarded_for', default=None,
              help='X-Forwarded-For value; its first entry is the rate limit key')
@click.option('--stdin', 'read_stdin', is_flag=True,
              help='Also read "URL [FORWARDED-FOR]" lines from stdin')
@click.pass_context
def submit(ctx, urls, client_id, forwarded_for, read_stdin):
    """Index each page in URLS, one JSON line per page.

    All submissions of one invocation share a single rate limiter.
    """
    cfg = ctx.obj['config']
    outcomes = asyncio.run(run_submit(cfg, _submissions(urls, forwarded_for, client_id, read_stdin)))
    for outcome in outcomes:
        click.echo(json.dumps(outcome.to_dict(), ensure_ascii=False))
    if any(outcome.status == 'error' for outcome in outcomes):
        sys.exit(1)


@cli.command('search', context_settings=CONTEXT_SETTINGS)
@click.argument('query')
@click.option('--limit', '-k', 'limit', type=int, default=10, show_default=True, help='Maximum hits (capped at 50)')
@click.option('--lang', default=None, help='Language filter')
@click.option('--country', default=None, help='Country hint filter')
@click.option('--tld', default=None, help='Top-level domain filter')
@click.option('--after', default=None, help='Only documents modified at or after this ISO timestamp')
@click.option('--pretty', is_flag=True, help='Indent JSON output')
@click.pass_context
def search(ctx, query, limit, lang, country, tld, after, pretty):
    """Query the search index."""
    cfg = ctx.obj['config']
    filters = {'lang': lang, 'country': country, 'tld': tld, 'after': after}
    try:
        hits = asyncio.run(run_search(cfg, query, filters, limit))
    except Exception as e:
        print_error(f'Search failed: {e}')
    click.echo(json.dumps(hits, ensure_ascii=False, indent=2 if pretty else None))


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Print the effective configuration as JSON."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()

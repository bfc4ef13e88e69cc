"""
pickport CLI

Command-line front end that produces candidates with the bundled sources
and prints the exported report.

Usage::

    pickport lines "def \\w+" ./src       # Grouped, numbered line matches
    rg --vimgrep TODO | pickport grep    # Flat grep report from stdin
    pickport xref parse_config ./src     # Reference listing for a symbol
"""

import logging
import sys

import click

from pickport.client import Pickport
from pickport.core.config import PickportConfig
from pickport.core.engine import Candidate
from pickport.core.export import ReportBuffer, ReportFormatter
from pickport.core.sources import (
    grep_candidates, line_candidates, read_grep_lines, xref_candidates, xref_fetcher,
)
from pickport.exceptions import PickportError


# ---------------------------------------------------------------------------
# Logging helpers
# ---------------------------------------------------------------------------

def _configure_logging(config: PickportConfig, verbose: bool) -> None:
    """Set up logging for the CLI session."""
    level = logging.DEBUG if verbose else getattr(logging, config.log_level, logging.INFO)
    logging.basicConfig(level=level, format=config.log_format, stream=sys.stderr)


def _make_client(verbose: bool) -> Pickport:
    config = PickportConfig.from_env()
    _configure_logging(config, verbose)
    try:
        return Pickport(config=config, validate_on_init=True)
    except PickportError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1)


def _emit(buffer: ReportBuffer, fmt: str) -> None:
    if fmt == "json":
        click.echo(ReportFormatter.format_json(buffer))
    else:
        click.echo(ReportFormatter.format_text(buffer))


_format_option = click.option(
    "-f", "--format", "fmt", type=click.Choice(["text", "json"]),
    default="text", help="Output format.",
)
_verbose_option = click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")


# ---------------------------------------------------------------------------
# Top-level group
# ---------------------------------------------------------------------------

@click.group()
@click.version_option(package_name="pickport")
def cli():
    """pickport: export search candidates into navigable reports."""


# ---------------------------------------------------------------------------
# pickport lines
# ---------------------------------------------------------------------------

@cli.command()
@click.argument("pattern")
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True))
@click.option("-i", "--ignore-case", is_flag=True, help="Match case-insensitively.")
@_format_option
@_verbose_option
def lines(pattern: str, paths: tuple, ignore_case: bool, fmt: str, verbose: bool):
    """Export lines matching PATTERN in PATHS as a grouped report."""
    client = _make_client(verbose)
    client.open(paths)
    candidates = line_candidates(client.workspace, pattern, ignore_case=ignore_case)
    try:
        buf = client.export_lines(candidates)
    except PickportError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1)
    _emit(buf, fmt)


# ---------------------------------------------------------------------------
# pickport grep
# ---------------------------------------------------------------------------

@cli.command()
@click.argument("source", type=click.File("r"), default="-")
@_format_option
@_verbose_option
def grep(source, fmt: str, verbose: bool):
    """Export grep-style SOURCE lines (default: stdin) as a flat report."""
    client = _make_client(verbose)
    candidates = grep_candidates(read_grep_lines(source))
    try:
        buf = client.export_grep(candidates)
    except PickportError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1)
    _emit(buf, fmt)


# ---------------------------------------------------------------------------
# pickport xref
# ---------------------------------------------------------------------------

@cli.command()
@click.argument("symbol")
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True))
@click.option("-q", "--query", default="", help="Filter references by these words.")
@_format_option
@_verbose_option
def xref(symbol: str, paths: tuple, query: str, fmt: str, verbose: bool):
    """Export references to SYMBOL in PATHS, filtered by --query."""
    client = _make_client(verbose)
    client.open(paths)
    fetcher = xref_fetcher(client.workspace, symbol)
    candidates = xref_candidates(fetcher())
    _export(client, candidates, fmt, fetcher=fetcher, query=query)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _export(client: Pickport, candidates: list[Candidate], fmt: str, **kwargs) -> None:
    if not candidates:
        click.echo("No matches found.", err=True)
        raise SystemExit(1)
    try:
        buf = client.export(candidates, **kwargs)
    except PickportError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1)
    _emit(buf, fmt)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    cli()

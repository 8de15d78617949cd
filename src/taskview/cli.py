"""Typer-based CLI entry point."""

from __future__ import annotations

import functools
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich import print
from rich.console import Console
from rich.table import Table

from .domain.formatting import PlainRecordFormatter
from .engine import TaskViewEngine
from .errors import InvalidRecordError, InvalidSorterError, SettingsError, TaskViewError
from .infrastructure.memory_provider import InMemoryRecordProvider
from .settings.manager import SettingsManager
from .utils.console_logger import ensure_console_logger

app = typer.Typer(help="Filter, sort and page through a TaskWarrior export")


def _handle_errors(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (InvalidRecordError, InvalidSorterError, SettingsError) as exc:
            typer.echo(f"Error: {exc}", err=True)
            raise typer.Exit(1) from exc
        except TaskViewError as exc:
            typer.echo(f"Unexpected error: {exc}", err=True)
            raise typer.Exit(1) from exc
        except (OSError, json.JSONDecodeError) as exc:
            typer.echo(f"Error: cannot read export: {exc}", err=True)
            raise typer.Exit(1) from exc

    return wrapper


def _build_engine(export_file: Path, settings_file: Optional[Path], width: int, height: int, tags: bool) -> TaskViewEngine:
    if settings_file is not None:
        settings = SettingsManager(settings_file)
        settings.load()
    else:
        settings = SettingsManager.from_dict(None)
    provider = InMemoryRecordProvider.from_export_file(export_file)
    engine = TaskViewEngine(settings=settings, provider=provider, formatter=PlainRecordFormatter(show_tags=tags))
    engine.viewport.resize(width, height)
    engine.load_records(provider.get_records())
    return engine


def _report_rejected(parsed) -> None:
    for rejected in parsed.rejected:
        typer.echo(f"Ignored {rejected.token!r}: {rejected.reason}", err=True)


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output")) -> None:
    ensure_console_logger(
        logging.getLogger("taskview"),
        "taskview-cli",
        level=logging.DEBUG if verbose else logging.WARNING,
    )


@app.command()
@_handle_errors
def query(
    export_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Output of `task export`"),
    text: str = typer.Argument("", help="Filter query, e.g. 'status:pending +work'"),
    sort: Optional[str] = typer.Option(None, "--sort", help="urgency, due or project"),
    desc: bool = typer.Option(False, "--desc", help="Sort descending"),
    width: int = typer.Option(80, "--width", min=1),
    height: int = typer.Option(24, "--height", min=1),
    offset: int = typer.Option(0, "--offset", min=0, help="First result row to show"),
    tags: bool = typer.Option(False, "--tags", help="Append tags to each row"),
    settings_file: Optional[Path] = typer.Option(None, "--settings", help="Settings JSON file"),
) -> None:
    """Print one viewport of the filtered, sorted records."""

    engine = _build_engine(export_file, settings_file, width, height, tags)
    try:
        parsed = engine.query(text)
        _report_rejected(parsed)
        if sort:
            engine.set_sort(sort, descending=desc)
        engine.viewport.scroll_to(offset)
        for line in engine.render():
            typer.echo(line.rstrip())
        last = min(engine.viewport.scroll_position + engine.viewport.height, engine.results.get_total_count())
        typer.echo(
            f"-- {engine.viewport.scroll_position + 1 if last else 0}-{last} "
            f"of {engine.results.get_total_count()} ({engine.records.get_total_count()} total)",
            err=True,
        )
    finally:
        engine.shutdown()


@app.command()
@_handle_errors
def stats(
    export_file: Path = typer.Argument(..., exists=True, dir_okay=False),
    text: str = typer.Argument(""),
    repeat: int = typer.Option(2, "--repeat", min=1, help="Evaluate the query this many times"),
) -> None:
    """Show cache and pipeline statistics after running *text*."""

    engine = _build_engine(export_file, None, 80, 24, False)
    try:
        parsed = engine.query(text)
        _report_rejected(parsed)
        for _ in range(repeat - 1):
            engine.refresh()
        data = engine.statistics()
    finally:
        engine.shutdown()

    cache = data["cache"]
    table = Table(title="taskview statistics")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Records", str(data["records"]))
    table.add_row("Results", str(data["results"]))
    table.add_row("Filters", ", ".join(data["filters"]) or "-")
    table.add_row("Cache hits", str(cache["hits"]))
    table.add_row("Cache misses", str(cache["misses"]))
    table.add_row("Cache evictions", str(cache["evictions"]))
    table.add_row("Total requests", str(cache["total_requests"]))
    table.add_row("Hit rate", f"{cache['hit_rate']:.3f}")
    table.add_row("Cache entries", str(cache["memory_usage"]["entry_count"]))
    table.add_row("Cache memory (MB)", f"{cache['memory_usage']['total_mb']:.3f}")
    table.add_row("Filter time (avg ms)", f"{data['performance']['average_duration_ms']:.3f}")
    Console().print(table)
    if parsed.ok:
        print("[green]Query parsed cleanly")


if __name__ == "__main__":
    app()

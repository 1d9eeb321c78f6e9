"""
CLI interface for the calendar index.

Usage:
    calindex day 2024-05-01 --vault ~/notes
    calindex ranges 2024-03-01 2024-03-31
    calindex tasks 2024-05-03
    calindex holidays 2024
    calindex check
"""

import json
import os
from dataclasses import asdict
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from .config import get_home_dir, load_or_default_settings
from .index import IndexService
from .logging_config import configure_ops_log, configure_quiet_mode, enable_debug_mode
from .types import DateKey, iter_days, to_date_key
from .vault import MarkdownVault


# Longest span the ranges command will lay out
MAX_RANGE_DAYS = 366


# Set CALINDEX_VERBOSE=1 to enable debug mode via environment
if os.environ.get("CALINDEX_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        print(f"calindex {version('calindex')}")
        raise typer.Exit()


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


# Global state for CLI options
_json_output = False
_vault_override: Optional[Path] = None
_config_override: Optional[Path] = None
_ops_log_handler = None


def _json_callback(value: bool):
    global _json_output
    _json_output = value


def _vault_callback(value: Optional[Path]):
    global _vault_override
    _vault_override = value


def _config_callback(value: Optional[Path]):
    global _config_override
    _config_override = value


app = typer.Typer(
    name="calindex",
    help="Date-keyed views over a Markdown vault.",
    no_args_is_help=True,
    rich_markup_mode=None,
)


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enable debug-level logging to stderr",
        callback=_verbose_callback,
        is_eager=True,
    )] = False,
    output_json: Annotated[bool, typer.Option(
        "--json", "-j",
        help="Output as JSON",
        callback=_json_callback,
        is_eager=True,
    )] = False,
    version: Annotated[Optional[bool], typer.Option(
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    )] = None,
    vault: Annotated[Optional[Path], typer.Option(
        "--vault", "-V",
        envvar="CALINDEX_VAULT",
        help="Vault directory (default: current directory)",
        callback=_vault_callback,
        is_eager=True,
    )] = None,
    config: Annotated[Optional[Path], typer.Option(
        "--config", "-c",
        help="Directory holding calendar.toml (default: the vault)",
        callback=_config_callback,
        is_eager=True,
    )] = None,
):
    """Date-keyed views over a Markdown vault."""


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def _parse_day(value: str) -> DateKey:
    key = to_date_key(value)
    if key is None:
        typer.echo(f"Error: not a date (expected YYYY-MM-DD): {value}", err=True)
        raise typer.Exit(1)
    return key


def _get_index(*years: int) -> IndexService:
    """Index the vault and prepare recurrence and holidays for ``years``."""
    global _ops_log_handler
    root = (_vault_override or Path.cwd()).expanduser()
    if not root.is_dir():
        typer.echo(f"Error: vault not found: {root}", err=True)
        raise typer.Exit(1)
    try:
        settings = load_or_default_settings(_config_override or root)
    except (ValueError, OSError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if _ops_log_handler is None:
        _ops_log_handler = configure_ops_log(get_home_dir())

    vault = MarkdownVault(root)
    index = IndexService(settings=settings, source=vault)
    index.index_vault()
    for year in sorted(set(years)):
        index.ensure_year_cached(year)
        if settings.holiday_sources:
            index.set_holidays_for_year(
                year, vault.load_holidays(year, settings.holiday_sources, settings.holiday_folder))
    return index


def _emit(data, lines: list[str]) -> None:
    if _json_output:
        typer.echo(json.dumps(data, indent=2, ensure_ascii=False))
    else:
        typer.echo("\n".join(lines) if lines else "Nothing on this day.")


def day_summary(index: IndexService, key: DateKey) -> dict:
    """Everything the index knows about one day, as plain data."""
    slots = index.get_range_slots(key)
    return {
        "date": key,
        "status": asdict(index.get_date_status(key)),
        "notes": [asdict(n) for n in index.get_notes_for_date(key)],
        "ranges": [
            {**asdict(r), "lane": slots.get(r.path), "emerging": index.is_range_emergence(r.path, key)}
            for r in index.get_ranges_for_date(key)
        ],
        "tasks": [asdict(t) for t in index.get_tasks_for_date(key)],
        "holidays": [asdict(h) for h in index.get_holidays_for_date(key)],
        "symbols": [asdict(s) for s in index.get_display_symbols(key)],
    }


def render_day(summary: dict) -> list[str]:
    lines = []
    status = summary["status"]
    flags = [name for name, on in (("daily note", status["is_daily_note"]),
                                   ("dated", status["has_property"])) if on]
    lines.append(f"{summary['date']}" + (f"  ({', '.join(flags)})" if flags else ""))
    for h in summary["holidays"]:
        lines.append(f"  holiday  {h['name']}" + (f" [{h['country_code']}]" if h["country_code"] else ""))
    for n in summary["notes"]:
        mark = n["symbol"] or "•"
        extra = " (recurring)" if n["recurring"] else ""
        lines.append(f"  {mark} {n['name']}{extra}  {n['path']}")
    for r in summary["ranges"]:
        lane = "-" if r["lane"] is None else str(r["lane"])
        lines.append(f"  lane {lane}  {r['name']}  {r['date_start']}..{r['date_end']}")
    for t in summary["tasks"]:
        lines.append(f"  [{t['status']}] {t['name']}" + (f"  due {t['due']}" if t["due"] else ""))
    return lines


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------

@app.command()
def day(
    date: Annotated[str, typer.Argument(help="Day to show (YYYY-MM-DD)")],
):
    """Show notes, ranges, tasks and holidays on one day."""
    key = _parse_day(date)
    index = _get_index(int(key[:4]))
    summary = day_summary(index, key)
    _emit(summary, render_day(summary))


@app.command()
def ranges(
    start: Annotated[str, typer.Argument(help="First day (YYYY-MM-DD)")],
    end: Annotated[str, typer.Argument(help="Last day (YYYY-MM-DD)")],
):
    """Lay out range lanes day by day."""
    first, last = _parse_day(start), _parse_day(end)
    if first > last:
        typer.echo("Error: start is after end", err=True)
        raise typer.Exit(1)
    days = list(iter_days(first, last))
    if len(days) > MAX_RANGE_DAYS:
        typer.echo(f"Error: span longer than {MAX_RANGE_DAYS} days", err=True)
        raise typer.Exit(1)

    index = _get_index()
    data = []
    lines = []
    for key in days:
        slots = index.get_range_slots(key)
        overflow = index.get_range_overflow(key)
        if not slots and not overflow:
            continue
        data.append({"date": key, "lanes": slots, "overflow": overflow})
        by_lane = sorted(slots.items(), key=lambda kv: kv[1])
        cells = " | ".join(f"{lane}:{path}" for path, lane in by_lane)
        more = f"  +{len(overflow)} more" if overflow else ""
        lines.append(f"{key}  {cells}{more}")
    _emit(data, lines)


@app.command()
def tasks(
    date: Annotated[str, typer.Argument(help="Day to show (YYYY-MM-DD)")],
    open_only: Annotated[bool, typer.Option(
        "--open", "-o",
        help="Show only open/todo tasks",
    )] = False,
):
    """List tasks on a day, including carried-forward ones."""
    key = _parse_day(date)
    index = _get_index()
    items = index.get_tasks_for_date(key)
    if open_only:
        items = [t for t in items if t.is_open]
    lines = [
        f"[{t.status}] {t.name}"
        + (f"  scheduled {t.scheduled}" if t.scheduled else "")
        + (f"  due {t.due}" if t.due else "")
        for t in items
    ]
    _emit([asdict(t) for t in items], lines)


@app.command()
def holidays(
    year: Annotated[int, typer.Argument(help="Year to list")],
):
    """List stored holidays for a year."""
    index = _get_index(year)
    data = []
    for key in iter_days(f"{year:04d}-01-01", f"{year:04d}-12-31"):
        for h in index.get_holidays_for_date(key):
            data.append(asdict(h))
    _emit(data, [f"{h['date']}  {h['name']}" for h in data])


@app.command()
def check():
    """Index the vault and report what was found."""
    index = _get_index()
    counts = index.stats()
    _emit(counts, [f"{k}: {v}" for k, v in counts.items()])


def main():
    try:
        app()
    except SystemExit:
        raise  # Let typer handle exit codes
    except KeyboardInterrupt:
        raise SystemExit(130)  # Standard exit code for Ctrl+C
    except Exception as e:
        # Log full traceback to file, show clean message to user
        from .errors import log_exception
        log_path = log_exception(e, context="calindex CLI")
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()

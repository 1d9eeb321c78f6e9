"""
Calendar Index

Date-keyed views over a collection of documents with structured metadata:
point notes, multi-day ranges with stacked lanes, recurring events and tasks.

Quick Start:
    from calindex import IndexService, MarkdownVault

    index = IndexService(source=MarkdownVault("~/notes"))
    index.index_vault()
    index.ensure_year_cached(2024)
    index.get_notes_for_date("2024-05-01")

CLI Usage:
    calindex day 2024-05-01 --vault ~/notes
    calindex ranges 2024-03-01 2024-03-31
    calindex tasks 2024-05-03 --json

Environment Variables:
    CALINDEX_VAULT    - Default vault directory for the CLI
    CALINDEX_HOME     - State directory (default ~/.calindex)
    CALINDEX_VERBOSE  - Set to 1 for debug logging
"""

from .config import CalendarSettings, DateProperty, MarkerStyle, TaskMarkers
from .index import IndexService, RenderOptions, Subscription
from .types import (
    DateKey,
    DateStatus,
    DisplaySymbol,
    Document,
    Holiday,
    NoteRecord,
    RangeRecord,
    RecurrenceRule,
    TaskRecord,
)
from .vault import MarkdownVault

__version__ = "0.1.0"
__all__ = [
    "IndexService",
    "RenderOptions",
    "Subscription",
    "MarkdownVault",
    "CalendarSettings",
    "DateProperty",
    "MarkerStyle",
    "TaskMarkers",
    "DateKey",
    "DateStatus",
    "DisplaySymbol",
    "Document",
    "Holiday",
    "NoteRecord",
    "RangeRecord",
    "RecurrenceRule",
    "TaskRecord",
]

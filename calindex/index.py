"""
Calendar index facade.

IndexService turns document metadata into day-keyed views. Each document is
split into facets (point notes, ranges, recurrence, tasks) that are handed to
the four managers; reads merge the managers' answers back together.

Every document edit is a full remove-and-reinsert of that document's
contributions: simple, and fast enough at hand-written vault sizes.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from .config import CalendarSettings, MarkerStyle
from .notes import NoteManager
from .protocol import ChangeListener, DocumentSource
from .ranges import RangeManager, build_range
from .recurrence import RecurrenceManager
from .tasks import TaskManager
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
    extract_tags,
    is_date_key,
    parse_minutes,
    to_date_key,
)

logger = logging.getLogger(__name__)


# Documents with this tag (case-insensitive) are indexed as tasks
TASK_TAG = "#task"

# Color for tag symbols when neither the note nor the tag has one
MUTED_COLOR = "var(--text-muted)"

# How many times listeners may re-trigger each other within one dispatch
# before further notifications are dropped
MAX_DISPATCH_DEPTH = 64


@dataclass
class RenderOptions:
    """How get_display_symbols projects notes onto icons and dots."""
    tag_appearance: dict[str, MarkerStyle] = field(default_factory=dict)
    default_dot_color: str = "var(--color-red-text)"
    collapse_duplicates: bool = False
    max_count: int = 5
    dots_only_for_tags: bool = False
    dots_only_for_properties: bool = False

    @classmethod
    def from_settings(cls, settings: CalendarSettings) -> "RenderOptions":
        return cls(
            tag_appearance=dict(settings.tag_appearance),
            default_dot_color=settings.default_dot_color,
            collapse_duplicates=settings.collapse_duplicate_symbols,
            max_count=settings.max_symbols,
            dots_only_for_tags=settings.dots_only_for_tags,
            dots_only_for_properties=settings.dots_only_for_properties,
        )


class Subscription:
    """
    Handle for a registered change listener.

    Calling the handle (or cancel()) removes the listener.
    """

    def __init__(self, registry: list["Subscription"], callback: ChangeListener):
        self._registry = registry
        self.callback = callback

    @property
    def active(self) -> bool:
        return any(s is self for s in self._registry)

    def cancel(self) -> bool:
        """Remove the listener. Returns False if it was already removed."""
        for i, sub in enumerate(self._registry):
            if sub is self:
                del self._registry[i]
                return True
        return False

    __call__ = cancel


@dataclass
class _Change:
    """What one write operation touched."""
    dates: set[DateKey] = field(default_factory=set)
    global_change: bool = False
    lanes_dirty: bool = False


class IndexService:
    """
    In-memory calendar index over a set of documents.

    Single writer: every call runs to completion before returning. Listeners
    are notified after the index is consistent; notifications raised from
    inside a listener are queued and delivered after the current round.
    """

    def __init__(
        self,
        settings: Optional[CalendarSettings] = None,
        source: Optional[DocumentSource] = None,
    ):
        self._settings = settings or CalendarSettings()
        self._source = source

        self._notes = NoteManager()
        self._ranges = RangeManager()
        self._recurrence = RecurrenceManager()
        self._tasks = TaskManager()

        # year -> date -> holidays, stored as given
        self._holidays: dict[int, dict[DateKey, list[Holiday]]] = {}

        self._listeners: list[Subscription] = []
        # (payload, depth): depth counts listener-triggered hops from the
        # original write
        self._pending: deque[tuple[Optional[list[DateKey]], int]] = deque()
        self._dispatching = False
        self._dispatch_depth = 0

        # Renamed paths whose metadata may still be stale
        self._awaiting_fresh: set[str] = set()
        self._document_count = 0

    # -------------------------------------------------------------------------
    # Configuration and subscription
    # -------------------------------------------------------------------------

    @property
    def settings(self) -> CalendarSettings:
        return self._settings

    def set_settings(self, settings: CalendarSettings) -> None:
        """Replace settings. Already-indexed documents keep their facets
        until the next index_vault()."""
        self._settings = settings

    @property
    def cached_years(self) -> frozenset[int]:
        return self._recurrence.cached_years

    def subscribe(self, callback: ChangeListener) -> Subscription:
        """
        Register a change listener.

        The callback receives a list of changed DateKeys, or None when the
        change may affect any day (ranges, recurrence, holidays, rebuilds).

        Returns:
            A Subscription; call it to unsubscribe
        """
        sub = Subscription(self._listeners, callback)
        self._listeners.append(sub)
        return sub

    def _notify(self, changed: Optional[list[DateKey]]) -> None:
        if self._dispatching:
            depth = self._dispatch_depth + 1
            if depth > MAX_DISPATCH_DEPTH:
                logger.warning(
                    "Dropping change notification: listeners re-triggered indexing %d levels deep",
                    depth,
                )
                return
            self._pending.append((changed, depth))
            return
        self._pending.append((changed, 0))
        self._dispatching = True
        try:
            while self._pending:
                payload, self._dispatch_depth = self._pending.popleft()
                for sub in list(self._listeners):
                    if not sub.active:
                        continue
                    try:
                        sub.callback(None if payload is None else list(payload))
                    except Exception:
                        logger.exception("Change listener %r failed", sub.callback)
        finally:
            self._dispatching = False
            self._dispatch_depth = 0
            self._pending.clear()

    def _publish(self, change: _Change) -> None:
        if change.global_change:
            self._notify(None)
        elif change.dates:
            self._notify(sorted(change.dates))

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_date_status(self, key: DateKey) -> DateStatus:
        status = self._notes.get_date_status(key)
        if not status.has_property and self._recurrence.get_notes_for_date(key):
            return DateStatus(has_property=True, is_daily_note=status.is_daily_note, tags=status.tags)
        return status

    def get_notes_for_date(self, key: DateKey) -> list[NoteRecord]:
        """
        Notes on a day: plain notes, then recurring ones, then task markers.

        A recurring occurrence is dropped when the same document already has
        a plain note on that day.
        """
        specific = self._notes.get_notes_for_date(key)
        specific_paths = {n.path for n in specific}
        recurring = [
            n for n in self._recurrence.get_notes_for_date(key)
            if n.path not in specific_paths
        ]
        return [*specific, *recurring, *self._task_markers(key)]

    def _task_markers(self, key: DateKey) -> list[NoteRecord]:
        markers = self._settings.task_markers
        result = []

        def marker(task: TaskRecord, style: MarkerStyle) -> NoteRecord:
            # Empty tags keep tag icon rules from restyling the marker
            return NoteRecord(path=task.path, name=task.name, color=style.color,
                              symbol=style.symbol, tags=())

        for task in self._tasks.get_tasks_for_date(key):
            if task.is_open and task.scheduled == key and markers.scheduled:
                result.append(marker(task, markers.scheduled))
            if task.is_open and task.due == key and markers.due:
                result.append(marker(task, markers.due))
            if task.completed_on(key) and markers.completed:
                result.append(marker(task, markers.completed))
        return result

    def get_ranges_for_date(self, key: DateKey) -> list[RangeRecord]:
        return self._ranges.get_ranges_for_date(key)

    def get_range_slots(self, key: DateKey) -> dict[str, int]:
        return self._ranges.get_range_slots(key)

    def get_range_overflow(self, key: DateKey) -> list[str]:
        return self._ranges.get_overflow(key)

    def is_range_emergence(self, path: str, key: DateKey) -> bool:
        return self._ranges.is_emergence(path, key)

    def get_tasks_for_date(self, key: DateKey) -> list[TaskRecord]:
        return self._tasks.get_tasks_for_date(key)

    def stats(self) -> dict[str, int]:
        """Counts of what the index currently holds."""
        return {
            "documents": self._document_count,
            "dated_notes": len(self._notes.note_paths()),
            "ranges": len(self._ranges.all_ranges()),
            "recurring": len(self._recurrence.recurring_paths()),
            "tasks": len(self._tasks.all_tasks()),
            "cached_years": len(self._recurrence.cached_years),
        }

    def get_holidays_for_date(self, key: DateKey) -> list[Holiday]:
        try:
            year = int(key.split("-", 1)[0])
        except ValueError:
            return []
        return list(self._holidays.get(year, {}).get(key, ()))

    def get_display_symbols(
        self,
        key: DateKey,
        options: Optional[RenderOptions] = None,
    ) -> list[DisplaySymbol]:
        """
        Project a day's notes onto symbols and dots.

        The first tag with a configured symbol wins; otherwise the note's own
        (property) symbol is used. Symbols sort before plain dots and the
        result is capped at ``options.max_count``.
        """
        if options is None:
            options = RenderOptions.from_settings(self._settings)

        displays: list[DisplaySymbol] = []
        for note in self.get_notes_for_date(key):
            symbol = None
            color = None
            from_tag = from_property = False

            for tag in note.tags:
                style = options.tag_appearance.get(tag)
                if style and style.symbol:
                    symbol = style.symbol
                    color = note.color or style.color or MUTED_COLOR
                    from_tag = True
                    break

            if not symbol and note.symbol:
                symbol = note.symbol
                from_property = True

            if (from_tag and options.dots_only_for_tags) or (from_property and options.dots_only_for_properties):
                symbol = None

            displays.append(DisplaySymbol(symbol=symbol, color=color or note.color or options.default_dot_color))

        if options.collapse_duplicates:
            seen: set[str] = set()
            collapsed = []
            for d in displays:
                if d.symbol is not None:
                    if d.symbol in seen:
                        continue
                    seen.add(d.symbol)
                collapsed.append(d)
            displays = collapsed

        displays.sort(key=lambda d: d.symbol is None)
        return displays[:max(options.max_count, 0)]

    # -------------------------------------------------------------------------
    # Indexing
    # -------------------------------------------------------------------------

    def index_vault(self, documents: Optional[Iterable[Document]] = None) -> int:
        """
        Rebuild the index from scratch.

        Holidays and already-expanded recurrence years are kept. A document
        that fails to index is logged and skipped.

        Returns:
            Number of documents processed
        """
        if documents is None:
            if self._source is None:
                raise ValueError("No documents given and no document source configured")
            documents = self._source.documents()

        self.clear_documents()
        count = 0
        for doc in documents:
            self._index_document(doc, _Change())
            count += 1
        self._ranges.assign_lanes()
        self._document_count = count
        logger.info("Indexed %d documents (%d ranges)", count, len(self._ranges.all_ranges()))
        self._notify(None)
        return count

    def index_file(self, doc: Document) -> None:
        """Re-index one document: drop its old facets, extract current ones."""
        change = _Change()
        self._index_document(doc, change)
        if change.lanes_dirty:
            self._ranges.assign_lanes()
        self._publish(change)

    def remove_file(self, path: str) -> None:
        change = _Change()
        self._cleanup(path, change)
        self._awaiting_fresh.discard(path)
        if change.lanes_dirty:
            self._ranges.assign_lanes()
        self._publish(change)

    def rename_file(self, doc: Document, old_path: str) -> None:
        """
        Move a document's facets from ``old_path`` to ``doc.path``.

        Right after a rename the host may still report the old metadata, so
        the new path is marked as awaiting fresh metadata; the host calls
        confirm_metadata_fresh() once its metadata has caught up.
        """
        change = _Change()
        self._cleanup(old_path, change)
        self._awaiting_fresh.discard(old_path)
        self._index_document(doc, change)
        self._awaiting_fresh.add(doc.path)
        if change.lanes_dirty:
            self._ranges.assign_lanes()
        self._publish(change)

    def confirm_metadata_fresh(self, doc: Document) -> bool:
        """
        Re-index a renamed document with confirmed-current metadata.

        Returns:
            True if the document was awaiting confirmation and was re-indexed
        """
        if doc.path not in self._awaiting_fresh:
            return False
        self._awaiting_fresh.discard(doc.path)
        self.index_file(doc)
        return True

    def awaiting_fresh_metadata(self) -> frozenset[str]:
        return frozenset(self._awaiting_fresh)

    def ensure_year_cached(self, year: int) -> None:
        if self._recurrence.ensure_year_cached(year):
            self._notify(None)

    def set_holidays_for_year(self, year: int, holidays: dict[DateKey, list[Holiday]]) -> None:
        self._holidays[year] = {key: list(items) for key, items in holidays.items()}
        self._notify(None)

    def clear_documents(self) -> None:
        """Forget every indexed document (holidays and cached years stay)."""
        self._notes.clear()
        self._ranges.clear()
        self._recurrence.clear()
        self._tasks.clear()
        self._awaiting_fresh.clear()

    def clear(self) -> None:
        self.clear_documents()
        self._holidays.clear()

    # -------------------------------------------------------------------------
    # Facet extraction
    # -------------------------------------------------------------------------

    def _cleanup(self, path: str, change: _Change) -> None:
        change.dates.update(self._notes.cleanup_file(path))

        if self._recurrence.cleanup_file(path):
            change.global_change = True

        if self._ranges.remove_range(path):
            change.global_change = True
            change.lanes_dirty = True

        task = self._tasks.get_task(path)
        if task is not None:
            change.dates.update(self._tasks.dates_for_path(path))
            if task.scheduled:
                # Carry-forward reaches every later day
                change.global_change = True
            self._tasks.remove_tasks_for_file(path)

    def _index_document(self, doc: Document, change: _Change) -> None:
        self._cleanup(doc.path, change)
        try:
            self._extract(doc, change)
        except Exception:
            logger.warning("Failed to index %s, skipping it", doc.path, exc_info=True)
            self._cleanup(doc.path, change)

    def _extract(self, doc: Document, change: _Change) -> None:
        md: dict[str, Any] = doc.metadata or {}
        path, name = doc.path, doc.basename
        tags = extract_tags(md)
        color = md.get("color") if isinstance(md.get("color"), str) else None

        if is_date_key(name) and to_date_key(name):
            self._notes.mark_daily_note(name, path)
            change.dates.add(name)

        # Point notes; the first dated property also anchors a recurrence rule
        anchor = to_date_key(md.get("date"))
        anchor_color, anchor_symbol = color, None
        if anchor:
            self._notes.add_note(anchor, NoteRecord(path=path, name=name, color=color, tags=tags))
            change.dates.add(anchor)

        for prop in self._settings.custom_date_properties:
            key = to_date_key(md.get(prop.name))
            if key is None:
                continue
            prop_color = color or prop.color
            if anchor is None:
                anchor, anchor_color, anchor_symbol = key, prop_color, prop.symbol
            note = NoteRecord(path=path, name=name, color=prop_color, symbol=prop.symbol,
                              tags=tags, recurring=prop.recurring)
            if prop.recurring:
                self._recurrence.add_legacy(key, note)
                change.global_change = True
            else:
                self._notes.add_note(key, note)
                change.dates.add(key)

        rule_text = md.get("recurrence")
        if isinstance(rule_text, str) and rule_text.strip():
            self._recurrence.add_rule(RecurrenceRule(
                path=path,
                rule=rule_text,
                anchor=anchor,
                note=NoteRecord(path=path, name=name, color=anchor_color, symbol=anchor_symbol,
                                tags=tags, recurring=True),
            ))
            change.global_change = True

        # Ranges; finished work does not get a scheduled bar
        done = md.get("status") == "done"
        record = build_range(
            path, name,
            date_start=md.get("dateStart"),
            date_end=md.get("dateEnd"),
            scheduled=None if done else md.get("scheduled"),
            time_estimate=md.get("timeEstimate"),
            color=color,
            tags=tags,
        )
        if record is not None and self._ranges.add_range(record):
            change.global_change = True
            change.lanes_dirty = True

        if any(t.lower() == TASK_TAG for t in tags):
            task = _build_task(doc, md, tags, color)
            self._tasks.add_task(task)
            change.dates.update(self._tasks.dates_for_path(path))
            if task.scheduled:
                change.global_change = True


def _date_list(value: Any) -> tuple[DateKey, ...]:
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        value = [value]
    keys = []
    for item in value:
        key = to_date_key(item)
        if key and key not in keys:
            keys.append(key)
    return tuple(keys)


def _build_task(doc: Document, md: dict[str, Any], tags: tuple[str, ...], color: Optional[str]) -> TaskRecord:
    projects = md.get("projects")
    priority = md.get("priority")
    return TaskRecord(
        path=doc.path,
        name=doc.basename,
        status=str(md.get("status") or "todo"),
        priority=str(priority) if priority is not None else None,
        scheduled=to_date_key(md.get("scheduled")),
        due=to_date_key(md.get("due")),
        completed_date=to_date_key(md.get("completedDate")),
        complete_instances=_date_list(md.get("complete_instances")),
        projects=tuple(str(p) for p in projects) if isinstance(projects, list) else (),
        time_estimate=parse_minutes(md.get("timeEstimate")),
        color=color,
        tags=tags,
        recurring=bool(md.get("recurrence")),
    )

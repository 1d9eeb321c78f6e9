"""
Data types for the calendar index.

All day-level keys are canonical ``YYYY-MM-DD`` strings (DateKey). Zero-padded
ISO dates sort lexicographically in chronological order, so plain string
comparison is used throughout for "before"/"after" checks.
"""

import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Iterator, Optional


DateKey = str

# Daily notes are documents whose basename is exactly a DateKey
_DATE_KEY_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')

# Leading integer of a minute estimate ("90", "90m", " 45 ")
_LEADING_INT_RE = re.compile(r'^\s*([+-]?\d+)')


def is_date_key(value: str) -> bool:
    """Check if a string has DateKey shape (does not validate the calendar)."""
    return bool(_DATE_KEY_RE.match(value))


def to_date_key(value: Any) -> Optional[DateKey]:
    """Normalize a metadata value to a DateKey.

    Accepts ``date``/``datetime`` objects (YAML loaders produce these) and
    strings. A time component after ``T`` or a space is dropped. Returns None
    for anything that does not resolve to a real calendar day: user-authored
    metadata is expected to be occasionally invalid.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str):
        return None
    text = value.strip().split("T", 1)[0].split(" ", 1)[0]
    if not _DATE_KEY_RE.match(text):
        return None
    try:
        return date.fromisoformat(text).isoformat()
    except ValueError:
        return None


def parse_date_key(key: DateKey) -> date:
    """Parse a DateKey. Raises ValueError when malformed."""
    return date.fromisoformat(key)


def add_days(key: DateKey, days: int) -> DateKey:
    return (parse_date_key(key) + timedelta(days=days)).isoformat()


def iter_days(start: DateKey, end: DateKey) -> Iterator[DateKey]:
    """Yield every DateKey from start to end inclusive."""
    current = parse_date_key(start)
    last = parse_date_key(end)
    while current <= last:
        yield current.isoformat()
        current += timedelta(days=1)


def span_days(start: DateKey, end: DateKey) -> int:
    """Inclusive day count of a span (a single day is 1)."""
    return (parse_date_key(end) - parse_date_key(start)).days + 1


def month_day(key: DateKey) -> Optional[str]:
    """The ``MM-DD`` part of a DateKey, used for annual repetition."""
    parts = key.split("-")
    if len(parts) != 3:
        return None
    return f"{parts[1]}-{parts[2]}"


def parse_minutes(value: Any) -> Optional[int]:
    """Read a positive minute estimate from an int or a string like ``"90m"``.

    Returns None for missing, non-numeric, non-finite, zero or negative
    estimates.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, (int, float)):
        minutes = int(value)
    else:
        match = _LEADING_INT_RE.match(str(value))
        if not match:
            return None
        minutes = int(match.group(1))
    return minutes if minutes > 0 else None


def end_date_from_duration(start: DateKey, minutes: int) -> Optional[DateKey]:
    """Inclusive end day of a span starting at ``start`` 00:00.

    One minute is subtracted before truncating to a day, so exact day
    multiples land on the right inclusive end: 1440 minutes from 2025-01-01
    ends on 2025-01-01, 1441 minutes ends on 2025-01-02.

    Returns None when the end falls outside the representable calendar.
    """
    begin = datetime.combine(parse_date_key(start), datetime.min.time())
    try:
        end = begin + timedelta(minutes=minutes - 1)
    except OverflowError:
        return None
    return end.date().isoformat()


def extract_tags(metadata: Optional[dict]) -> tuple[str, ...]:
    """Collect tags from ``tags`` or ``tag`` (list or comma string), ``#``-prefixed."""
    if not metadata:
        return ()
    raw: list[str] = []
    for key in ("tags", "tag"):
        value = metadata.get(key)
        if isinstance(value, (list, tuple)):
            raw = [str(t) for t in value if t is not None]
            break
        if isinstance(value, str):
            raw = [t.strip() for t in value.split(",")]
            break
    tags = []
    for t in raw:
        t = t.strip()
        if not t:
            continue
        tag = t if t.startswith("#") else f"#{t}"
        if tag not in tags:
            tags.append(tag)
    return tuple(tags)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Document:
    """
    A document as supplied by the host storage layer.

    Only structured metadata is read; document text is never parsed.
    """
    path: str
    basename: str
    metadata: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)


@dataclass(frozen=True)
class NoteRecord:
    """A point-date annotation contributed by one document."""
    path: str
    name: str
    color: Optional[str] = None
    symbol: Optional[str] = None
    tags: tuple[str, ...] = ()
    recurring: bool = False


@dataclass(frozen=True)
class DateStatus:
    """Aggregate metadata for one day."""
    has_property: bool = False
    is_daily_note: bool = False
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class RangeRecord:
    """A multi-day span, inclusive on both ends."""
    path: str
    name: str
    date_start: DateKey
    date_end: DateKey
    color: Optional[str] = None
    tags: tuple[str, ...] = ()

    @property
    def duration_days(self) -> int:
        return span_days(self.date_start, self.date_end)


@dataclass(frozen=True)
class RecurrenceRule:
    """A repetition rule anchored at a start date.

    ``note`` is what every generated occurrence shows on the calendar.
    """
    path: str
    rule: str
    anchor: Optional[DateKey]
    note: NoteRecord


@dataclass(frozen=True)
class TaskRecord:
    """A task document with its date axes."""
    path: str
    name: str
    status: str = "todo"
    priority: Optional[str] = None
    scheduled: Optional[DateKey] = None
    due: Optional[DateKey] = None
    completed_date: Optional[DateKey] = None
    complete_instances: tuple[DateKey, ...] = ()
    projects: tuple[str, ...] = ()
    time_estimate: Optional[int] = None
    color: Optional[str] = None
    tags: tuple[str, ...] = ()
    recurring: bool = False

    @property
    def is_open(self) -> bool:
        return self.status in ("open", "todo")

    def completed_on(self, key: DateKey) -> bool:
        return self.completed_date == key or key in self.complete_instances


@dataclass(frozen=True)
class Holiday:
    """A holiday entry, stored verbatim from the holiday overlay."""
    date: DateKey
    name: str
    color: Optional[str] = None
    country_code: Optional[str] = None


@dataclass(frozen=True)
class DisplaySymbol:
    """One icon/dot to draw in a day cell."""
    symbol: Optional[str]
    color: Optional[str]

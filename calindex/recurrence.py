"""
Recurring notes: legacy annual repetition and rule-based occurrences.

Legacy recurrence is keyed by month-day (``MM-DD``) and needs no expansion.
Rule-based recurrence (RFC 5545 RRULE text, parsed with dateutil) is
expanded one calendar year at a time and cached. The set of expanded years
belongs to the manager and only grows: clearing documents keeps it so a
rebuild re-expands the same window.
"""

import logging
import re
from datetime import MAXYEAR, MINYEAR, datetime, time
from typing import Optional, Union

from dateutil.rrule import rrule, rruleset, rrulestr

from .types import DateKey, NoteRecord, RecurrenceRule, month_day, parse_date_key

logger = logging.getLogger(__name__)


# A leading DTSTART component, either ";"-joined or on its own line
_DTSTART_PREFIX_RE = re.compile(r'^\s*DTSTART(?:;[A-Z-]+=[^:;\n]*)*:[^;\n]*[;\n]\s*', re.IGNORECASE)

Rule = Union[rrule, rruleset]


def strip_dtstart(text: str) -> str:
    """Drop a redundant leading ``DTSTART...`` component from rule text.

    Other tools write rules as ``DTSTART:20240101T000000Z;FREQ=WEEKLY``;
    when the start date comes from a separate property the prefix must go
    before parsing.
    """
    return _DTSTART_PREFIX_RE.sub("", text, count=1)


def compile_rule(text: str, anchor: Optional[DateKey]) -> Optional[Rule]:
    """
    Parse rule text into a dateutil rule.

    With an anchor, any embedded DTSTART is stripped and the anchor (at
    midnight) is the start. Without one, an embedded DTSTART is honored with
    its timezone dropped. With neither there is nothing to expand.

    Raises:
        ValueError: If the rule text is malformed
    """
    text = text.strip()
    if not text:
        return None
    if anchor:
        dtstart = datetime.combine(parse_date_key(anchor), time())
        return rrulestr(strip_dtstart(text), dtstart=dtstart, ignoretz=True)
    match = _DTSTART_PREFIX_RE.match(text)
    if match:
        # "DTSTART:...;FREQ=..." -> the two-line form rrulestr understands
        rest = text[match.end():]
        if not rest.upper().startswith("RRULE:"):
            rest = f"RRULE:{rest}"
        return rrulestr(f"{match.group(0).strip().rstrip(';')}\n{rest}", ignoretz=True)
    if "DTSTART" in text.upper():
        return rrulestr(text, ignoretz=True)
    return None


class RecurrenceManager:
    """
    Holds legacy month-day notes and per-document rules with their
    per-year occurrence cache.
    """

    def __init__(self):
        # Legacy: "MM-DD" -> notes
        self._legacy: dict[str, list[NoteRecord]] = {}
        self._legacy_by_path: dict[str, set[str]] = {}

        # Rules
        self._rules: dict[str, RecurrenceRule] = {}
        self._compiled: dict[str, Rule] = {}
        self._occurrences: dict[DateKey, list[NoteRecord]] = {}
        self._generated_by_path: dict[str, set[DateKey]] = {}
        self._cached_years: set[int] = set()

    def clear(self) -> None:
        """Forget all documents. Cached years are kept."""
        self._legacy.clear()
        self._legacy_by_path.clear()
        self._rules.clear()
        self._compiled.clear()
        self._occurrences.clear()
        self._generated_by_path.clear()

    @property
    def cached_years(self) -> frozenset[int]:
        return frozenset(self._cached_years)

    def has_recurrence(self, path: str) -> bool:
        return path in self._legacy_by_path or path in self._rules

    def recurring_paths(self) -> set[str]:
        return set(self._legacy_by_path) | set(self._rules)

    def get_rule(self, path: str) -> Optional[RecurrenceRule]:
        return self._rules.get(path)

    def dates_for_path(self, path: str) -> set[DateKey]:
        """Generated occurrence days of ``path`` (legacy entries excluded)."""
        return set(self._generated_by_path.get(path, ()))

    # -------------------------------------------------------------------------
    # Legacy recurrence
    # -------------------------------------------------------------------------

    def add_legacy(self, key: DateKey, note: NoteRecord) -> None:
        mmdd = month_day(key)
        if mmdd is None:
            return
        self._legacy.setdefault(mmdd, []).append(note)
        self._legacy_by_path.setdefault(note.path, set()).add(mmdd)

    # -------------------------------------------------------------------------
    # Rule-based recurrence
    # -------------------------------------------------------------------------

    def add_rule(self, rule: RecurrenceRule) -> bool:
        """
        Register a document's rule, replacing any previous one.

        If years are already cached the rule is expanded for all of them.

        Returns:
            True if the rule parsed and can produce occurrences
        """
        self._drop_generated(rule.path)
        self._rules[rule.path] = rule
        self._compiled.pop(rule.path, None)
        try:
            compiled = compile_rule(rule.rule, rule.anchor)
        except (ValueError, TypeError, OverflowError) as e:
            logger.warning("Invalid recurrence rule for %s (%r): %s", rule.path, rule.rule, e)
            return False
        if compiled is None:
            logger.debug("Recurrence for %s has no start date, skipping", rule.path)
            return False
        self._compiled[rule.path] = compiled
        if self._cached_years:
            self._materialize(rule.path, sorted(self._cached_years))
        return True

    def ensure_year_cached(self, year: int) -> bool:
        """
        Expand every rule for ``year`` and its neighbours if not done yet.

        Returns:
            True if any year was newly expanded
        """
        needed = [
            y for y in (year - 1, year, year + 1)
            if MINYEAR <= y <= MAXYEAR and y not in self._cached_years
        ]
        if not needed:
            return False
        for path in list(self._compiled):
            self._materialize(path, needed)
        self._cached_years.update(needed)
        logger.debug("Cached recurrence years %s for %d rules", needed, len(self._compiled))
        return True

    def _materialize(self, path: str, years: list[int]) -> None:
        compiled = self._compiled[path]
        note = self._rules[path].note
        generated = self._generated_by_path.setdefault(path, set())
        try:
            for year in years:
                window_start = datetime(year, 1, 1)
                window_end = datetime(year, 12, 31, 23, 59, 59)
                for occurrence in compiled.between(window_start, window_end, inc=True):
                    key = occurrence.date().isoformat()
                    bucket = self._occurrences.setdefault(key, [])
                    if not any(n.path == path for n in bucket):
                        bucket.append(note)
                    generated.add(key)
        except (ValueError, TypeError, OverflowError) as e:
            logger.warning("Failed to expand recurrence for %s: %s", path, e)
        if not generated:
            self._generated_by_path.pop(path, None)

    def _drop_generated(self, path: str) -> bool:
        dates = self._generated_by_path.pop(path, None)
        if not dates:
            return False
        for key in dates:
            bucket = self._occurrences.get(key)
            if bucket is None:
                continue
            remaining = [n for n in bucket if n.path != path]
            if remaining:
                self._occurrences[key] = remaining
            else:
                del self._occurrences[key]
        return True

    # -------------------------------------------------------------------------
    # Cleanup and reads
    # -------------------------------------------------------------------------

    def cleanup_file(self, path: str) -> bool:
        """Remove every contribution of ``path``. Returns True if any existed."""
        changed = False

        for mmdd in self._legacy_by_path.pop(path, set()):
            changed = True
            notes = self._legacy.get(mmdd)
            if notes is None:
                continue
            remaining = [n for n in notes if n.path != path]
            if remaining:
                self._legacy[mmdd] = remaining
            else:
                del self._legacy[mmdd]

        if self._rules.pop(path, None) is not None:
            changed = True
        self._compiled.pop(path, None)
        if self._drop_generated(path):
            changed = True
        return changed

    def get_notes_for_date(self, key: DateKey) -> list[NoteRecord]:
        """Legacy notes for the month-day followed by generated occurrences."""
        mmdd = month_day(key)
        legacy = self._legacy.get(mmdd, []) if mmdd else []
        return [*legacy, *self._occurrences.get(key, ())]

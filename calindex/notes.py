"""
Point-note registry with per-date aggregate status.
"""

from typing import Optional

from .types import DateKey, DateStatus, NoteRecord


_EMPTY_STATUS = DateStatus()


class NoteManager:
    """
    Maps each day to the notes dated on it and to an aggregate DateStatus.

    A reverse index (path -> dates) keeps cleanup proportional to what the
    document contributed.
    """

    def __init__(self):
        self._status: dict[DateKey, DateStatus] = {}
        self._notes_by_date: dict[DateKey, list[NoteRecord]] = {}
        self._dates_by_path: dict[str, set[DateKey]] = {}
        # date -> paths whose basename is that date
        self._daily_notes: dict[DateKey, set[str]] = {}
        self._daily_by_path: dict[str, DateKey] = {}

    def clear(self) -> None:
        self._status.clear()
        self._notes_by_date.clear()
        self._dates_by_path.clear()
        self._daily_notes.clear()
        self._daily_by_path.clear()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_date_status(self, key: DateKey) -> DateStatus:
        return self._status.get(key, _EMPTY_STATUS)

    def get_notes_for_date(self, key: DateKey) -> list[NoteRecord]:
        return list(self._notes_by_date.get(key, ()))

    def dates_for_path(self, path: str) -> set[DateKey]:
        dates = set(self._dates_by_path.get(path, ()))
        daily = self._daily_by_path.get(path)
        if daily:
            dates.add(daily)
        return dates

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def add_note(self, key: DateKey, note: NoteRecord) -> None:
        """Register a note on a day and merge its tags into the day's status."""
        existing = self._status.get(key, _EMPTY_STATUS)
        tags = list(existing.tags)
        tags.extend(t for t in note.tags if t not in tags)
        self._status[key] = DateStatus(
            has_property=True,
            is_daily_note=existing.is_daily_note,
            tags=tuple(tags),
        )
        self._dates_by_path.setdefault(note.path, set()).add(key)
        self._notes_by_date.setdefault(key, []).append(note)

    def mark_daily_note(self, key: DateKey, path: str) -> None:
        """Flag a day as having a daily note, contributed by ``path``."""
        self._daily_notes.setdefault(key, set()).add(path)
        self._daily_by_path[path] = key
        existing = self._status.get(key, _EMPTY_STATUS)
        self._status[key] = DateStatus(
            has_property=existing.has_property,
            is_daily_note=True,
            tags=existing.tags,
        )

    def cleanup_file(self, path: str) -> list[DateKey]:
        """
        Remove every contribution of ``path``.

        Returns:
            Sorted list of the days whose status may have changed
        """
        affected: set[DateKey] = set()

        for key in self._dates_by_path.pop(path, set()):
            affected.add(key)
            notes = self._notes_by_date.get(key)
            if notes is not None:
                remaining = [n for n in notes if n.path != path]
                if remaining:
                    self._notes_by_date[key] = remaining
                else:
                    del self._notes_by_date[key]

        daily = self._daily_by_path.pop(path, None)
        if daily is not None:
            affected.add(daily)
            owners = self._daily_notes.get(daily)
            if owners is not None:
                owners.discard(path)
                if not owners:
                    del self._daily_notes[daily]

        for key in affected:
            self._recalculate(key)
        return sorted(affected)

    def _recalculate(self, key: DateKey) -> None:
        notes = self._notes_by_date.get(key, [])
        is_daily = key in self._daily_notes
        if not notes and not is_daily:
            self._status.pop(key, None)
            return
        tags: list[str] = []
        for note in notes:
            tags.extend(t for t in note.tags if t not in tags)
        self._status[key] = DateStatus(
            has_property=bool(notes),
            is_daily_note=is_daily,
            tags=tuple(tags),
        )

    def note_paths(self) -> set[str]:
        """Paths with at least one dated note."""
        return set(self._dates_by_path)

    def daily_note_date(self, path: str) -> Optional[DateKey]:
        return self._daily_by_path.get(path)

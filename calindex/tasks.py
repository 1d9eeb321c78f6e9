"""
Task index over scheduled, due and completion dates.
"""

from typing import Optional

from .types import DateKey, TaskRecord, end_date_from_duration, iter_days


class TaskManager:
    """
    Buckets each task under every day it touches and keeps one canonical
    record per path for carry-forward queries.
    """

    def __init__(self):
        self._tasks_by_date: dict[DateKey, list[TaskRecord]] = {}
        self._dates_by_path: dict[str, set[DateKey]] = {}
        self._tasks: dict[str, TaskRecord] = {}

    def clear(self) -> None:
        self._tasks_by_date.clear()
        self._dates_by_path.clear()
        self._tasks.clear()

    def add_task(self, task: TaskRecord) -> None:
        """
        Index a task. A previous record for the same path is replaced.

        Days indexed:
        - the scheduled span (``scheduled`` through the end implied by the
          minute estimate, one day without an estimate)
        - the due date
        - the completion date and every completed instance
        """
        if task.path in self._tasks:
            self.remove_tasks_for_file(task.path)
        self._tasks[task.path] = task

        if task.scheduled:
            end = task.scheduled
            if task.time_estimate:
                # An estimate past the end of the calendar counts as one day
                end = end_date_from_duration(task.scheduled, task.time_estimate) or task.scheduled
            for key in iter_days(task.scheduled, end):
                self._add_to_date(key, task)
        if task.due:
            self._add_to_date(task.due, task)
        if task.completed_date:
            self._add_to_date(task.completed_date, task)
        for key in task.complete_instances:
            self._add_to_date(key, task)

    def _add_to_date(self, key: DateKey, task: TaskRecord) -> None:
        bucket = self._tasks_by_date.setdefault(key, [])
        if not any(t.path == task.path for t in bucket):
            bucket.append(task)
        self._dates_by_path.setdefault(task.path, set()).add(key)

    def remove_tasks_for_file(self, path: str) -> bool:
        """Remove a task and all of its buckets. Returns True if it existed."""
        existed = self._tasks.pop(path, None) is not None
        for key in self._dates_by_path.pop(path, set()):
            bucket = self._tasks_by_date.get(key)
            if bucket is None:
                continue
            remaining = [t for t in bucket if t.path != path]
            if remaining:
                self._tasks_by_date[key] = remaining
            else:
                del self._tasks_by_date[key]
        return existed

    def all_tasks(self) -> list[TaskRecord]:
        return list(self._tasks.values())

    def get_task(self, path: str) -> Optional[TaskRecord]:
        return self._tasks.get(path)

    def dates_for_path(self, path: str) -> set[DateKey]:
        return set(self._dates_by_path.get(path, ()))

    def get_tasks_for_date(self, key: DateKey) -> list[TaskRecord]:
        """
        Tasks bucketed on ``key``, then every task scheduled on or before it.

        Carry-forward is unbounded: an unfinished task keeps showing up on
        later days regardless of due date or duration. Hiding completed work
        is up to the caller.
        """
        result = list(self._tasks_by_date.get(key, ()))
        seen = {t.path for t in result}
        for task in self._tasks.values():
            if task.scheduled and task.scheduled <= key and task.path not in seen:
                result.append(task)
                seen.add(task.path)
        return result

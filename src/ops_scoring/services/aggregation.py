from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ops_scoring.services.tasks import NormalizedTask, SourceKind


def percentage(part: int, whole: int) -> int:
    """
    ``round(part / whole * 100)`` with halves rounded up; 0 for an empty whole.

    >>> percentage(1, 8)
    13
    >>> percentage(0, 0)
    0
    """
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)


@dataclass(frozen=True)
class SourceStats:
    total: int = 0
    completed: int = 0
    on_time: int = 0
    items: tuple[NormalizedTask, ...] = ()

    @property
    def score_percentage(self) -> int:
        return percentage(self.completed, self.total)

    @property
    def on_time_percentage(self) -> int:
        return percentage(self.on_time, self.completed)


def aggregate_source(tasks: Iterable[NormalizedTask]) -> SourceStats:
    items = tuple(tasks)
    return SourceStats(
        total=len(items),
        completed=sum(1 for task in items if task.is_completed),
        on_time=sum(1 for task in items if task.is_completed and task.is_on_time),
        items=items,
    )


def aggregate_user(tasks: Iterable[NormalizedTask]) -> dict[SourceKind, SourceStats]:
    by_source: dict[SourceKind, list[NormalizedTask]] = {kind: [] for kind in SourceKind}
    for task in tasks:
        by_source[task.source_kind].append(task)
    return {kind: aggregate_source(by_source[kind]) for kind in SourceKind}


def combine(stats: Iterable[SourceStats]) -> SourceStats:
    total = completed = on_time = 0
    items: list[NormalizedTask] = []
    for entry in stats:
        total += entry.total
        completed += entry.completed
        on_time += entry.on_time
        items.extend(entry.items)
    return SourceStats(total=total, completed=completed, on_time=on_time, items=tuple(items))

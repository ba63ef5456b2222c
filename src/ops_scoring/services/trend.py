from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from ops_scoring.services.aggregation import aggregate_source
from ops_scoring.services.date_classifier import in_range
from ops_scoring.services.periods import Period
from ops_scoring.services.tasks import NormalizedTask


@dataclass(frozen=True)
class TrendPoint:
    label: str
    score: int
    on_time: int
    start: datetime | None = None


def compose_trend(tasks: Sequence[NormalizedTask], periods: Sequence[Period]) -> list[TrendPoint]:
    """One point per period, positionally aligned with ``periods``."""
    points: list[TrendPoint] = []
    for period in periods:
        stats = aggregate_source(
            task for task in tasks if in_range(task.planned_at, task.actual_at, period)
        )
        points.append(TrendPoint(period.label, stats.score_percentage, stats.on_time_percentage, period.start))
    return points

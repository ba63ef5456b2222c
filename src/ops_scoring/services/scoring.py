from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Any, Iterable, Mapping, Sequence

import pandas as pd

from ops_scoring.services.aggregation import SourceStats, aggregate_user, combine
from ops_scoring.services.date_classifier import DateParser, DateRange, time_remaining
from ops_scoring.services.dates import parse_date_string, parse_sheet_date
from ops_scoring.services.periods import FilterMode, Period, plan_periods
from ops_scoring.services.tasks import (
    DEFAULT_PIPELINE_STEPS,
    NormalizedTask,
    SourceKind,
    StepConfig,
    expand_pipeline_steps,
    normalize_checklists,
    normalize_delegations,
    parse_step_config,
)
from ops_scoring.services.trend import TrendPoint, compose_trend

LOGGER = logging.getLogger(__name__)

RED_BAND_BELOW = 34
YELLOW_BAND_BELOW = 76

LEADERBOARD_COLUMNS = [
    "Rank",
    "User",
    "Total tasks",
    "Completed",
    "On time",
    "Score %",
    "On-time %",
    "Delegations",
    "Checklists",
    "Pipeline steps",
    "Band",
]


@dataclass(frozen=True)
class UserScore:
    user: Any
    total_tasks: int
    completed_tasks: int
    on_time_tasks: int
    score_percentage: int
    on_time_percentage: int
    per_source_stats: dict[SourceKind, SourceStats]
    trend: list[TrendPoint]

    @property
    def username(self) -> str:
        return _username(self.user)

    @property
    def delegation(self) -> SourceStats:
        return self.per_source_stats[SourceKind.DELEGATION]

    @property
    def checklist(self) -> SourceStats:
        return self.per_source_stats[SourceKind.CHECKLIST]

    @property
    def pipeline(self) -> SourceStats:
        return self.per_source_stats[SourceKind.PIPELINE]


def _username(user: Any) -> str:
    if isinstance(user, str):
        return user
    if isinstance(user, Mapping):
        return str(user.get("username") or "")
    return str(getattr(user, "username", "") or "")


def _filter_users(users: Iterable[Any], search: str | None) -> list[Any]:
    query = (search or "").strip().lower()
    if not query:
        return list(users)
    return [user for user in users if query in _username(user).lower()]


def score_user(user: Any, tasks: Sequence[NormalizedTask], periods: Sequence[Period]) -> UserScore:
    per_source = aggregate_user(tasks)
    overall = combine(per_source.values())
    return UserScore(
        user=user,
        total_tasks=overall.total,
        completed_tasks=overall.completed,
        on_time_tasks=overall.on_time,
        score_percentage=overall.score_percentage,
        on_time_percentage=overall.on_time_percentage,
        per_source_stats=per_source,
        trend=compose_trend(tasks, periods),
    )


def rank_scores(scores: Iterable[UserScore]) -> list[UserScore]:
    # sorted() is stable, so tied users keep their input order
    return sorted(scores, key=lambda score: score.score_percentage, reverse=True)


def compute_scores(
    users: Iterable[Any],
    delegations: Sequence[Mapping[str, Any]] | None,
    checklists: Sequence[Mapping[str, Any]] | None,
    orders: Sequence[Mapping[str, Any]] | None,
    step_config: Iterable[StepConfig | Mapping[str, Any]] | None,
    date_range: DateRange,
    filter_mode: FilterMode | str,
    *,
    search: str | None = None,
    max_steps: int = DEFAULT_PIPELINE_STEPS,
    parse_date: DateParser = parse_date_string,
    parse_step_date: DateParser = parse_sheet_date,
) -> list[UserScore]:
    """
    Ranked per-user scorecards for ``date_range``.

    Pure over its arguments: inputs are only read, nothing is cached between
    calls, and malformed records are left out rather than failing the batch.
    """
    periods = plan_periods(filter_mode, date_range)
    config = parse_step_config(step_config)

    scores: list[UserScore] = []
    for user in _filter_users(users or [], search):
        username = _username(user)
        tasks = (
            normalize_delegations(delegations, username, date_range, parse_date)
            + normalize_checklists(checklists, username, date_range, parse_date)
            + expand_pipeline_steps(orders, config, username, date_range, max_steps, parse_step_date)
        )
        scores.append(score_user(user, tasks, periods))

    ranked = rank_scores(scores)
    LOGGER.info(
        "Scored %d users for %s..%s (%s, %d periods).",
        len(ranked),
        date_range.date_from,
        date_range.date_to,
        FilterMode.parse(filter_mode).value,
        len(periods),
    )
    return ranked


def score_band(value: float) -> str:
    if value < RED_BAND_BELOW:
        return "red"
    if value < YELLOW_BAND_BELOW:
        return "yellow"
    return "green"


def _fraction(stats: SourceStats) -> str:
    return f"{stats.completed}/{stats.total}"


def scores_to_frame(scores: Sequence[UserScore]) -> pd.DataFrame:
    rows = [
        {
            "Rank": rank,
            "User": score.username,
            "Total tasks": score.total_tasks,
            "Completed": score.completed_tasks,
            "On time": score.on_time_tasks,
            "Score %": score.score_percentage,
            "On-time %": score.on_time_percentage,
            "Delegations": _fraction(score.delegation),
            "Checklists": _fraction(score.checklist),
            "Pipeline steps": _fraction(score.pipeline),
            "Band": score_band(score.score_percentage),
        }
        for rank, score in enumerate(scores, start=1)
    ]
    return pd.DataFrame(rows, columns=LEADERBOARD_COLUMNS)


def _bucket_labels(trend: Sequence[TrendPoint]) -> list[str]:
    labels = [point.label for point in trend]
    repeated = [label for label, count in Counter(labels).items() if count > 1]
    if not repeated:
        return labels
    # month labels repeat once the range spans more than a year
    return [
        f"{point.label} {point.start:%Y}" if point.start is not None else point.label
        for point in trend
    ]


def trend_to_frame(score: UserScore) -> pd.DataFrame:
    """
    Trend points in period order.

    ``Bucket`` is the axis label: the period label, suffixed with the year
    when the same label would otherwise appear twice.
    """
    return pd.DataFrame(
        [
            {
                "Bucket": bucket,
                "Period": point.label,
                "Start": point.start,
                "Score %": point.score,
                "On-time %": point.on_time,
            }
            for bucket, point in zip(_bucket_labels(score.trend), score.trend)
        ],
        columns=["Bucket", "Period", "Start", "Score %", "On-time %"],
    )


def _hours_left(task: NormalizedTask, now: datetime | None) -> float | None:
    if now is None or task.is_completed:
        return None
    remaining = time_remaining(task.planned_at, now)
    if remaining is None:
        return None
    return round(remaining.total_seconds() / 3600, 1)


def tasks_to_frame(stats: SourceStats, now: datetime | None = None) -> pd.DataFrame:
    columns = ["ID", "Title", "Status", "Planned / due", "Actual / updated", "Completed", "On time", "Hours left"]
    rows = [
        {
            "ID": task.record_id,
            "Title": task.title if task.party_name is None else f"{task.party_name}: {task.title}",
            "Status": task.status,
            "Planned / due": task.planned_at,
            "Actual / updated": task.actual_at,
            "Completed": "Yes" if task.is_completed else "No",
            "On time": "Yes" if task.is_completed and task.is_on_time else "No",
            # negative once the due day has passed
            "Hours left": _hours_left(task, now),
        }
        for task in stats.items
    ]
    return pd.DataFrame(rows, columns=columns)

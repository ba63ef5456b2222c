from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
import logging
import math
from typing import Any, Iterable, Mapping, Sequence

from ops_scoring.services.date_classifier import DateParser, end_of_day, in_range, is_on_time
from ops_scoring.services.dates import parse_date_string, parse_sheet_date
from ops_scoring.services.normalize import normalize_key

LOGGER = logging.getLogger(__name__)

DEFAULT_PIPELINE_STEPS = 8
COMPLETED_STATUS = "completed"
TAT_UNITS = {"hours", "days"}

DELEGATION_OWNER_FIELDS = ("assigned_to", "assignee_name")
CHECKLIST_OWNER_FIELDS = ("assignee", "assignee_name")


class SourceKind(str, Enum):
    DELEGATION = "delegation"
    CHECKLIST = "checklist"
    PIPELINE = "pipeline"


class PipelineStatus(str, Enum):
    PENDING = "Pending"
    ON_TIME = "On Time"
    DELAYED = "Delayed"


@dataclass(frozen=True)
class StepConfig:
    step: int
    step_name: str
    doer_name: str
    tat_value: float | None = None
    tat_unit: str | None = None


@dataclass(frozen=True)
class NormalizedTask:
    source_kind: SourceKind
    owner_username: str
    planned_at: datetime | None
    actual_at: datetime | None
    is_completed: bool
    is_on_time: bool
    record_id: str = ""
    title: str = ""
    status: str = ""
    step_number: int | None = None
    step_name: str | None = None
    party_name: str | None = None


def _to_float(value: Any) -> float | None:
    if value in (None, "") or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def _to_int(value: Any) -> int | None:
    number = _to_float(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def _first(row: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = row.get(key)
        if value not in (None, ""):
            return value
    return None


def _step_config_from_row(row: Mapping[str, Any]) -> StepConfig | None:
    step = _to_int(row.get("step"))
    doer_name = _first(row, "doerName", "doer_name")
    if step is None or step < 1 or not normalize_key(doer_name):
        return None
    tat_unit = _first(row, "tatUnit", "tat_unit")
    return StepConfig(
        step=step,
        step_name=str(_first(row, "stepName", "step_name") or f"Step {step}"),
        doer_name=str(doer_name).strip(),
        tat_value=_to_float(_first(row, "tatValue", "tat_value")),
        tat_unit=str(tat_unit).strip().lower() if tat_unit else None,
    )


def parse_step_config(rows: Iterable[StepConfig | Mapping[str, Any]] | None) -> list[StepConfig]:
    config: list[StepConfig] = []
    for row in rows or []:
        if isinstance(row, StepConfig):
            config.append(row)
            continue
        parsed = _step_config_from_row(row) if isinstance(row, Mapping) else None
        if parsed is None:
            LOGGER.warning("Skipping unusable step configuration row: %r", row)
            continue
        config.append(parsed)
    return config


def validate_step_config(rows: Any) -> list[StepConfig]:
    """Strict parsing used before configuration is saved."""
    if not isinstance(rows, (list, tuple)):
        raise ValueError("Invalid configuration data")
    config: list[StepConfig] = []
    for row in rows:
        if not isinstance(row, Mapping):
            raise ValueError("Invalid configuration data")
        required = (
            row.get("step"),
            _first(row, "stepName", "step_name"),
            _first(row, "doerName", "doer_name"),
            _first(row, "tatValue", "tat_value"),
            _first(row, "tatUnit", "tat_unit"),
        )
        if any(value in (None, "") for value in required):
            raise ValueError("Missing required fields in configuration")
        parsed = _step_config_from_row(row)
        if parsed is None:
            raise ValueError("Missing required fields in configuration")
        if parsed.tat_value is None or parsed.tat_value <= 0:
            raise ValueError("TAT value must be greater than 0")
        if parsed.tat_unit not in TAT_UNITS:
            raise ValueError('TAT unit must be either "hours" or "days"')
        config.append(parsed)
    return config


def build_key_index(item: Mapping[str, Any]) -> dict[str, Any]:
    """Lower-cased view of a sheet row; the first spelling of a key wins."""
    index: dict[str, Any] = {}
    for key, value in item.items():
        if isinstance(key, str):
            index.setdefault(normalize_key(key), value)
    return index


def _record_owner(record: Mapping[str, Any], fallback_fields: Sequence[str]) -> str:
    doer = normalize_key(record.get("doer_name"))
    if doer:
        return doer
    for field in fallback_fields:
        owner = normalize_key(record.get(field))
        if owner:
            return owner
    return ""


def _normalize_records(
    records: Iterable[Mapping[str, Any]] | None,
    username: str,
    window: Any,
    source_kind: SourceKind,
    owner_fields: Sequence[str],
    title_fields: Sequence[str],
    parse_date: DateParser,
) -> list[NormalizedTask]:
    target = normalize_key(username)
    if not target:
        return []

    tasks: list[NormalizedTask] = []
    for record in records or []:
        if not isinstance(record, Mapping):
            LOGGER.debug("Skipping non-mapping %s record: %r", source_kind.value, record)
            continue
        if _record_owner(record, owner_fields) != target:
            continue
        due_at = parse_date(record.get("due_date"))
        updated_at = parse_date(record.get("updated_at"))
        if not in_range(due_at, updated_at, window):
            continue
        status = str(record.get("status") or "")
        completed = normalize_key(status) == COMPLETED_STATUS
        tasks.append(
            NormalizedTask(
                source_kind=source_kind,
                owner_username=username,
                planned_at=due_at,
                actual_at=updated_at,
                is_completed=completed,
                is_on_time=completed and is_on_time(due_at, updated_at),
                record_id=str(record.get("id") or ""),
                title=str(_first(record, *title_fields) or ""),
                status=status,
            )
        )
    return tasks


def normalize_delegations(
    delegations: Iterable[Mapping[str, Any]] | None,
    username: str,
    window: Any,
    parse_date: DateParser = parse_date_string,
) -> list[NormalizedTask]:
    return _normalize_records(
        delegations,
        username,
        window,
        SourceKind.DELEGATION,
        DELEGATION_OWNER_FIELDS,
        ("delegation_name", "description"),
        parse_date,
    )


def normalize_checklists(
    checklists: Iterable[Mapping[str, Any]] | None,
    username: str,
    window: Any,
    parse_date: DateParser = parse_date_string,
) -> list[NormalizedTask]:
    return _normalize_records(
        checklists,
        username,
        window,
        SourceKind.CHECKLIST,
        CHECKLIST_OWNER_FIELDS,
        ("question", "description"),
        parse_date,
    )


def classify_step(planned_at: datetime | None, actual_at: datetime | None) -> PipelineStatus:
    if actual_at is None:
        return PipelineStatus.PENDING
    if planned_at is None:
        return PipelineStatus.ON_TIME
    if actual_at <= end_of_day(planned_at):
        return PipelineStatus.ON_TIME
    return PipelineStatus.DELAYED


def _owned_steps(config: Sequence[StepConfig], username: str, max_steps: int) -> list[StepConfig]:
    by_step: dict[int, StepConfig] = {}
    for entry in config:
        by_step.setdefault(entry.step, entry)

    missing = [step for step in range(1, max_steps + 1) if step not in by_step]
    if missing:
        LOGGER.debug("No doer configured for pipeline steps %s.", missing)

    target = normalize_key(username)
    return [
        by_step[step]
        for step in range(1, max_steps + 1)
        if step in by_step and normalize_key(by_step[step].doer_name) == target
    ]


def expand_pipeline_steps(
    orders: Iterable[Mapping[str, Any]] | None,
    step_config: Iterable[StepConfig | Mapping[str, Any]] | None,
    username: str,
    window: Any,
    max_steps: int = DEFAULT_PIPELINE_STEPS,
    parse_date: DateParser = parse_sheet_date,
) -> list[NormalizedTask]:
    """
    One task per (order item, configured step) owned by ``username``.

    Step columns ``planned_<n>``/``actual_<n>`` are matched regardless of key
    casing. A step with neither date carries nothing to place in a window
    and is dropped; otherwise it is kept when either date is in ``window``.
    """
    if not normalize_key(username):
        return []
    steps = _owned_steps(parse_step_config(step_config), username, max_steps)
    if not steps:
        return []

    tasks: list[NormalizedTask] = []
    for order in orders or []:
        if not isinstance(order, Mapping):
            LOGGER.debug("Skipping non-mapping order: %r", order)
            continue
        items = order.get("items")
        if not isinstance(items, (list, tuple)):
            LOGGER.debug("Order %s has no items list; skipped.", order.get("id"))
            continue
        for item in items:
            if not isinstance(item, Mapping):
                continue
            keys = build_key_index(item)
            for config in steps:
                planned_at = parse_date(keys.get(f"planned_{config.step}"))
                actual_at = parse_date(keys.get(f"actual_{config.step}"))
                if planned_at is None and actual_at is None:
                    continue
                if not in_range(planned_at, actual_at, window):
                    continue
                status = classify_step(planned_at, actual_at)
                tasks.append(
                    NormalizedTask(
                        source_kind=SourceKind.PIPELINE,
                        owner_username=username,
                        planned_at=planned_at,
                        actual_at=actual_at,
                        is_completed=actual_at is not None,
                        is_on_time=status is PipelineStatus.ON_TIME,
                        record_id=str(item.get("id") or order.get("id") or ""),
                        title=config.step_name,
                        status=status.value,
                        step_number=config.step,
                        step_name=config.step_name,
                        party_name=order.get("party_name"),
                    )
                )
    return tasks

from __future__ import annotations

import argparse
from datetime import date
import logging
import os
from pathlib import Path
from typing import Any

from ops_scoring.data.db import connect, init_db
from ops_scoring.data.repositories import load_score_inputs
from ops_scoring.data.seed import seed_from_csv
from ops_scoring.services.date_classifier import DateRange
from ops_scoring.services.periods import FilterMode, default_range
from ops_scoring.services.scoring import compute_scores, scores_to_frame
from ops_scoring.services.tasks import DEFAULT_PIPELINE_STEPS

LOGGER = logging.getLogger(__name__)


def _parse_day(value: str | None, flag: str) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValueError(f"Invalid date for {flag} (expected YYYY-MM-DD): {value}") from exc


def _pipeline_steps() -> int:
    raw = os.getenv("OPS_SCORING_PIPELINE_STEPS")
    if not raw:
        return DEFAULT_PIPELINE_STEPS
    try:
        steps = int(raw)
    except ValueError:
        LOGGER.warning("OPS_SCORING_PIPELINE_STEPS=%r is not a number; using %d.", raw, DEFAULT_PIPELINE_STEPS)
        return DEFAULT_PIPELINE_STEPS
    return max(steps, 1)


def resolve_range(
    mode: FilterMode,
    today: date,
    date_from: date | None,
    date_to: date | None,
) -> DateRange:
    if date_from or date_to:
        if not (date_from and date_to):
            raise ValueError("Both --from and --to are required for an explicit range.")
        if date_to < date_from:
            raise ValueError("--to must not be earlier than --from.")
        return DateRange(date_from, date_to)
    return default_range(mode, today)


def _get_db_connection() -> Any:
    data_dir = Path(os.getenv("OPS_SCORING_DATA_DIR", "./data"))
    db_path = Path(os.getenv("OPS_SCORING_DB_PATH", data_dir / "app.db"))
    con = connect(db_path)
    init_db(con)
    return con


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Print the per-user performance score leaderboard.")
    parser.add_argument(
        "--mode",
        choices=[mode.value for mode in FilterMode],
        default=FilterMode.MONTH.value,
        help="Period filter (default: month).",
    )
    parser.add_argument("--from", dest="date_from", help="Range start (YYYY-MM-DD).")
    parser.add_argument("--to", dest="date_to", help="Range end (YYYY-MM-DD).")
    parser.add_argument("--today", help="Override today date (YYYY-MM-DD).")
    parser.add_argument("--search", help="Only users whose name contains this text.")
    parser.add_argument("--csv", type=Path, help="Also write the leaderboard to this CSV file.")
    parser.add_argument("--seed-dir", type=Path, help="Load CSV seed files into the database first.")
    return parser


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    parser = build_parser()
    args = parser.parse_args(argv)

    mode = FilterMode.parse(args.mode)
    try:
        today = _parse_day(args.today, "--today") or date.today()
        date_range = resolve_range(
            mode,
            today,
            _parse_day(args.date_from, "--from"),
            _parse_day(args.date_to, "--to"),
        )
    except ValueError as exc:
        parser.error(str(exc))

    con = _get_db_connection()
    if args.seed_dir:
        counts = seed_from_csv(con, args.seed_dir)
        LOGGER.info("Seeded: %s", counts)

    inputs = load_score_inputs(con)
    scores = compute_scores(
        inputs["users"],
        inputs["delegations"],
        inputs["checklists"],
        inputs["orders"],
        inputs["step_config"],
        date_range,
        mode,
        search=args.search,
        max_steps=_pipeline_steps(),
    )

    frame = scores_to_frame(scores)
    if frame.empty:
        LOGGER.info("No users to score.")
    else:
        print(frame.to_string(index=False))

    if args.csv:
        frame.to_csv(args.csv, index=False)
        LOGGER.info("Leaderboard written to %s", args.csv)
    con.close()


if __name__ == "__main__":
    main()

import sys
import unittest
from datetime import date, datetime
from pathlib import Path

import pandas as pd

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from ops_scoring.services.date_classifier import DateRange
from ops_scoring.services.scoring import (
    LEADERBOARD_COLUMNS,
    compute_scores,
    rank_scores,
    score_band,
    scores_to_frame,
    tasks_to_frame,
    trend_to_frame,
)
from ops_scoring.services.tasks import SourceKind

MARCH = DateRange(date(2024, 3, 1), date(2024, 3, 31))

USERS = [
    {"id": "u1", "username": "asha", "email": "asha@example.com"},
    {"id": "u2", "username": "Ravi", "email": "ravi@example.com"},
    {"id": "u3", "username": "meera", "email": "meera@example.com"},
]

STEP_CONFIG = [
    {"step": 3, "stepName": "Dispatch", "doerName": "ravi"},
]


class ScenarioTests(unittest.TestCase):
    def test_delegation_completed_on_due_day(self) -> None:
        delegations = [
            {
                "id": "D1",
                "doer_name": "asha",
                "status": "completed",
                "due_date": "2024-03-10",
                "updated_at": "2024-03-10T23:59:59",
            }
        ]
        scores = compute_scores(USERS, delegations, [], [], [], MARCH, "month")
        asha = next(score for score in scores if score.username == "asha")
        self.assertEqual((asha.total_tasks, asha.completed_tasks, asha.on_time_tasks), (1, 1, 1))
        self.assertEqual(asha.score_percentage, 100)
        self.assertEqual(asha.on_time_percentage, 100)
        self.assertEqual([point.label for point in asha.trend], ["W1", "W2", "W3", "W4", "W5"])
        self.assertEqual(asha.trend[1].score, 100)

    def test_delayed_pipeline_step(self) -> None:
        orders = [{"id": "O1", "party_name": "Acme", "items": [{"planned_3": "2024-03-05", "actual_3": "2024-03-08"}]}]
        scores = compute_scores(USERS, [], [], orders, STEP_CONFIG, MARCH, "month")
        ravi = next(score for score in scores if score.username == "Ravi")
        self.assertEqual(ravi.pipeline.total, 1)
        self.assertEqual(ravi.pipeline.completed, 1)
        self.assertEqual(ravi.pipeline.on_time, 0)
        self.assertEqual(ravi.pipeline.items[0].status, "Delayed")
        self.assertEqual(ravi.on_time_percentage, 0)

    def test_checklist_without_dates_never_counts(self) -> None:
        checklists = [{"id": "C1", "assignee": "meera", "status": "completed"}]
        for mode in ("week", "month", "custom", "tillDate"):
            with self.subTest(mode=mode):
                scores = compute_scores(USERS, [], checklists, [], [], MARCH, mode)
                self.assertTrue(all(score.total_tasks == 0 for score in scores))

    def test_long_custom_range_trend_is_monthly(self) -> None:
        date_range = DateRange(date(2024, 1, 1), date(2024, 3, 1))
        scores = compute_scores(USERS, [], [], [], [], date_range, "custom")
        self.assertEqual([point.label for point in scores[0].trend], ["Jan", "Feb", "Mar"])

    def test_ties_keep_input_order(self) -> None:
        delegations = []
        for owner in ("asha", "ravi", "meera"):
            statuses = ["completed", "completed", "completed", "pending"]
            if owner == "meera":
                statuses = ["completed", "pending", "pending", "pending"]
            for index, status in enumerate(statuses):
                delegations.append(
                    {"id": f"{owner}-{index}", "doer_name": owner, "status": status, "due_date": "2024-03-12"}
                )
        users = [USERS[2], USERS[0], USERS[1]]
        scores = compute_scores(users, delegations, [], [], [], MARCH, "month")
        self.assertEqual([score.username for score in scores], ["asha", "Ravi", "meera"])
        self.assertEqual([score.score_percentage for score in scores], [75, 75, 25])


class ComputeScoresTests(unittest.TestCase):
    def test_empty_collections_give_zero_stats(self) -> None:
        scores = compute_scores(USERS, [], [], [], [], MARCH, "month")
        self.assertEqual(len(scores), 3)
        for score in scores:
            self.assertEqual(score.total_tasks, 0)
            self.assertEqual(score.score_percentage, 0)
            self.assertEqual(score.on_time_percentage, 0)
            self.assertEqual(set(score.per_source_stats), set(SourceKind))
            self.assertEqual(len(score.trend), 5)

    def test_idempotent_and_inputs_untouched(self) -> None:
        delegations = [{"id": "D1", "doer_name": "asha", "status": "completed", "due_date": "2024-03-10"}]
        orders = [{"id": "O1", "party_name": "Acme", "items": [{"PLANNED_3": "2024-03-05"}]}]
        snapshot = repr((delegations, orders))
        first = compute_scores(USERS, delegations, [], orders, STEP_CONFIG, MARCH, "month")
        second = compute_scores(USERS, delegations, [], orders, STEP_CONFIG, MARCH, "month")
        self.assertEqual(first, second)
        self.assertEqual(repr((delegations, orders)), snapshot)

    def test_percentages_stay_in_bounds(self) -> None:
        delegations = [
            {"id": "D1", "doer_name": "asha", "status": "completed", "due_date": "2024-03-10", "updated_at": "2024-03-20"},
            {"id": "D2", "doer_name": "asha", "status": "open", "due_date": "2024-03-11"},
        ]
        for score in compute_scores(USERS, delegations, [], [], [], MARCH, "custom"):
            self.assertTrue(0 <= score.score_percentage <= 100)
            self.assertTrue(0 <= score.on_time_percentage <= 100)
            for point in score.trend:
                self.assertTrue(0 <= point.score <= 100)
                self.assertTrue(0 <= point.on_time <= 100)

    def test_search_filters_users(self) -> None:
        scores = compute_scores(USERS, [], [], [], [], MARCH, "month", search="RAV")
        self.assertEqual([score.username for score in scores], ["Ravi"])

    def test_plain_usernames_are_accepted(self) -> None:
        delegations = [{"id": "D1", "doer_name": "asha", "status": "completed", "due_date": "2024-03-10"}]
        scores = compute_scores(["asha", "ravi"], delegations, None, None, None, MARCH, "month")
        self.assertEqual(scores[0].user, "asha")
        self.assertEqual(scores[0].completed_tasks, 1)

    def test_rank_scores_descending(self) -> None:
        scores = compute_scores(USERS, [{"id": "D1", "doer_name": "meera", "status": "completed", "due_date": "2024-03-02"}], [], [], [], MARCH, "month")
        self.assertEqual(rank_scores(scores)[0].username, "meera")


class PresentationTests(unittest.TestCase):
    def test_score_band_thresholds(self) -> None:
        self.assertEqual(score_band(33), "red")
        self.assertEqual(score_band(34), "yellow")
        self.assertEqual(score_band(75), "yellow")
        self.assertEqual(score_band(76), "green")

    def test_frames(self) -> None:
        delegations = [{"id": "D1", "doer_name": "asha", "status": "completed", "due_date": "2024-03-10"}]
        scores = compute_scores(USERS, delegations, [], [], [], MARCH, "month")
        frame = scores_to_frame(scores)
        self.assertEqual(list(frame.columns), LEADERBOARD_COLUMNS)
        self.assertEqual(list(frame["Rank"]), [1, 2, 3])
        self.assertEqual(frame.iloc[0]["User"], "asha")
        self.assertEqual(frame.iloc[0]["Delegations"], "1/1")

        trend = trend_to_frame(scores[0])
        self.assertEqual(list(trend["Period"]), ["W1", "W2", "W3", "W4", "W5"])

        tasks = tasks_to_frame(scores[0].delegation)
        self.assertEqual(list(tasks["ID"]), ["D1"])
        self.assertEqual(list(tasks["On time"]), ["No"])

    def test_trend_buckets_stay_unique_across_years(self) -> None:
        date_range = DateRange(date(2023, 1, 1), date(2024, 3, 1))
        (score,) = compute_scores(["asha"], [], [], [], [], date_range, "custom")
        trend = trend_to_frame(score)
        self.assertEqual(len(trend), 15)
        self.assertEqual(list(trend["Bucket"][:2]), ["Jan 2023", "Feb 2023"])
        self.assertEqual(list(trend["Bucket"][-3:]), ["Jan 2024", "Feb 2024", "Mar 2024"])
        self.assertTrue(trend["Bucket"].is_unique)
        self.assertEqual(list(trend["Period"][-3:]), ["Jan", "Feb", "Mar"])

    def test_hours_left_only_for_pending_tasks(self) -> None:
        delegations = [
            {"id": "D1", "doer_name": "asha", "status": "completed", "due_date": "2024-03-10", "updated_at": "2024-03-09"},
            {"id": "D2", "doer_name": "asha", "status": "pending", "due_date": "2024-03-10"},
            {"id": "D3", "doer_name": "asha", "status": "pending", "due_date": "2024-03-08"},
        ]
        (score,) = compute_scores(["asha"], delegations, [], [], [], MARCH, "month")
        tasks = tasks_to_frame(score.delegation, now=datetime(2024, 3, 10, 12, 0))
        hours = dict(zip(tasks["ID"], tasks["Hours left"]))
        self.assertTrue(pd.isna(hours["D1"]))
        self.assertEqual(hours["D2"], 12.0)
        self.assertEqual(hours["D3"], -36.0)
        self.assertTrue(tasks_to_frame(score.delegation)["Hours left"].isna().all())

    def test_empty_leaderboard_has_columns(self) -> None:
        frame = scores_to_frame([])
        self.assertTrue(frame.empty)
        self.assertEqual(list(frame.columns), LEADERBOARD_COLUMNS)


if __name__ == "__main__":
    unittest.main()

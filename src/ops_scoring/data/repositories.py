from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Mapping

from ops_scoring.services.tasks import StepConfig, validate_step_config

LOGGER = logging.getLogger(__name__)


def _decode_items(order_id: Any, payload: str | None) -> list[dict[str, Any]]:
    if not payload:
        return []
    try:
        items = json.loads(payload)
    except (TypeError, ValueError):
        LOGGER.warning("Order %s has malformed items_json; treated as empty.", order_id)
        return []
    if not isinstance(items, list):
        LOGGER.warning("Order %s items_json is not a list; treated as empty.", order_id)
        return []
    return [item for item in items if isinstance(item, dict)]


class UserRepository:
    def __init__(self, con: sqlite3.Connection) -> None:
        self.con = con

    def list_users(self, active_only: bool = True) -> list[dict[str, Any]]:
        query = """
            SELECT id, username, email, role_name, image_url, active
            FROM users
        """
        if active_only:
            query += " WHERE active = 1"
        query += " ORDER BY username"
        try:
            cur = self.con.execute(query)
            return [dict(row) for row in cur.fetchall()]
        except sqlite3.Error:
            return []


class DelegationRepository:
    def __init__(self, con: sqlite3.Connection) -> None:
        self.con = con

    def list_delegations(self) -> list[dict[str, Any]]:
        try:
            cur = self.con.execute(
                """
                SELECT id,
                       delegation_name,
                       description,
                       status,
                       doer_name,
                       assigned_to,
                       due_date,
                       updated_at
                FROM delegations
                ORDER BY id
                """
            )
            return [dict(row) for row in cur.fetchall()]
        except sqlite3.Error:
            return []


class ChecklistRepository:
    def __init__(self, con: sqlite3.Connection) -> None:
        self.con = con

    def list_checklists(self) -> list[dict[str, Any]]:
        try:
            cur = self.con.execute(
                """
                SELECT id,
                       question,
                       status,
                       assignee,
                       doer_name,
                       due_date,
                       updated_at
                FROM checklists
                ORDER BY id
                """
            )
            return [dict(row) for row in cur.fetchall()]
        except sqlite3.Error:
            return []


class OrderRepository:
    def __init__(self, con: sqlite3.Connection) -> None:
        self.con = con

    def list_orders(self) -> list[dict[str, Any]]:
        try:
            cur = self.con.execute(
                """
                SELECT id, party_name, items_json
                FROM o2d_orders
                ORDER BY id
                """
            )
            rows = [dict(row) for row in cur.fetchall()]
        except sqlite3.Error:
            return []
        return [
            {
                "id": row["id"],
                "party_name": row["party_name"],
                "items": _decode_items(row["id"], row.get("items_json")),
            }
            for row in rows
        ]


class StepConfigRepository:
    def __init__(self, con: sqlite3.Connection) -> None:
        self.con = con

    def list_config(self) -> list[dict[str, Any]]:
        try:
            cur = self.con.execute(
                """
                SELECT step, step_name, doer_name, tat_value, tat_unit
                FROM o2d_step_config
                ORDER BY step
                """
            )
            rows = [dict(row) for row in cur.fetchall()]
        except sqlite3.Error:
            return []
        return [
            {
                "step": row["step"],
                "stepName": row["step_name"],
                "doerName": row["doer_name"],
                "tatValue": row["tat_value"],
                "tatUnit": row["tat_unit"],
            }
            for row in rows
        ]

    def upsert_step(self, row: Mapping[str, Any]) -> StepConfig:
        """Validate one step row and insert or replace it; raises ValueError."""
        (entry,) = validate_step_config([row])
        with self.con:
            self.con.execute(
                """
                INSERT INTO o2d_step_config (step, step_name, doer_name, tat_value, tat_unit)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(step) DO UPDATE SET
                    step_name = excluded.step_name,
                    doer_name = excluded.doer_name,
                    tat_value = excluded.tat_value,
                    tat_unit = excluded.tat_unit
                """,
                (entry.step, entry.step_name, entry.doer_name, entry.tat_value, entry.tat_unit),
            )
        return entry

    def delete_step(self, step: int) -> None:
        with self.con:
            self.con.execute("DELETE FROM o2d_step_config WHERE step = ?", (step,))


def load_score_inputs(con: sqlite3.Connection) -> dict[str, list[dict[str, Any]]]:
    return {
        "users": UserRepository(con).list_users(),
        "delegations": DelegationRepository(con).list_delegations(),
        "checklists": ChecklistRepository(con).list_checklists(),
        "orders": OrderRepository(con).list_orders(),
        "step_config": StepConfigRepository(con).list_config(),
    }

from __future__ import annotations

from pathlib import Path
import sqlite3

import pandas as pd

SEED_FILES = (
    ("users", "users.csv", "id"),
    ("delegations", "delegations.csv", "id"),
    ("checklists", "checklists.csv", "id"),
    ("o2d_orders", "o2d_orders.csv", "id"),
    ("o2d_step_config", "o2d_step_config.csv", "step"),
)


def _read_csv(path: Path) -> pd.DataFrame:
    if not path.exists():
        return pd.DataFrame()
    # dates stay text; the scoring engine parses them itself
    df = pd.read_csv(path, sep=None, engine="python", dtype=str, keep_default_na=False)
    df.columns = [c.strip().lstrip("\ufeff") for c in df.columns]
    return df.replace({"": None})


def _upsert_df(con: sqlite3.Connection, table: str, df: pd.DataFrame, key: str = "id") -> int:
    if df.empty:
        return 0
    if key not in df.columns:
        raise ValueError(f"Seed for {table} requires column '{key}'")

    cols = list(df.columns)
    placeholders = ", ".join(["?"] * len(cols))
    col_list = ", ".join(cols)

    update_cols = [c for c in cols if c != key]
    set_clause = ", ".join([f"{c}=excluded.{c}" for c in update_cols])
    conflict = f"DO UPDATE SET {set_clause}" if update_cols else "DO NOTHING"

    sql = f"""
    INSERT INTO {table} ({col_list})
    VALUES ({placeholders})
    ON CONFLICT({key}) {conflict};
    """

    rows = [
        tuple(None if pd.isna(v) else v for v in row)
        for row in df[cols].itertuples(index=False, name=None)
    ]
    con.executemany(sql, rows)
    con.commit()
    return len(rows)


def seed_from_csv(con: sqlite3.Connection, sample_dir: Path) -> dict[str, int]:
    counts: dict[str, int] = {}
    for table, filename, key in SEED_FILES:
        counts[table] = _upsert_df(con, table, _read_csv(sample_dir / filename), key)
    return counts

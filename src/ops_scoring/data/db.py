from __future__ import annotations

from pathlib import Path
import sqlite3

SCHEMA_VERSION = 1

SCHEMA_SQL = """
PRAGMA foreign_keys = ON;

CREATE TABLE IF NOT EXISTS users (
  id TEXT PRIMARY KEY,
  username TEXT NOT NULL UNIQUE,
  email TEXT,
  role_name TEXT,
  image_url TEXT,
  active INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS delegations (
  id TEXT PRIMARY KEY,
  delegation_name TEXT NOT NULL DEFAULT '',
  description TEXT,
  status TEXT NOT NULL DEFAULT 'pending',
  doer_name TEXT,
  assigned_to TEXT,
  due_date TEXT,
  updated_at TEXT
);

CREATE TABLE IF NOT EXISTS checklists (
  id TEXT PRIMARY KEY,
  question TEXT NOT NULL DEFAULT '',
  status TEXT NOT NULL DEFAULT 'pending',
  assignee TEXT,
  doer_name TEXT,
  due_date TEXT,
  updated_at TEXT
);

CREATE TABLE IF NOT EXISTS o2d_orders (
  id TEXT PRIMARY KEY,
  party_name TEXT NOT NULL DEFAULT '',
  items_json TEXT NOT NULL DEFAULT '[]'
);

CREATE TABLE IF NOT EXISTS o2d_step_config (
  step INTEGER PRIMARY KEY,
  step_name TEXT NOT NULL,
  doer_name TEXT NOT NULL,
  tat_value REAL,
  tat_unit TEXT
);

CREATE INDEX IF NOT EXISTS idx_delegations_doer ON delegations (doer_name);
CREATE INDEX IF NOT EXISTS idx_checklists_doer ON checklists (doer_name);
"""


def connect(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    con = sqlite3.connect(db_path.as_posix())
    con.row_factory = sqlite3.Row
    con.execute("PRAGMA foreign_keys=ON;")
    return con


def _get_user_version(con: sqlite3.Connection) -> int:
    row = con.execute("PRAGMA user_version;").fetchone()
    return int(row[0]) if row else 0


def _set_user_version(con: sqlite3.Connection, version: int) -> None:
    con.execute(f"PRAGMA user_version = {version};")


def init_db(con: sqlite3.Connection) -> None:
    con.executescript(SCHEMA_SQL)
    if _get_user_version(con) < SCHEMA_VERSION:
        _set_user_version(con, SCHEMA_VERSION)
    con.commit()

"""
db.py
SQLite helpers + initialization (creates DB/tables, seeds access passwords, etc.)
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime

from config import Config

logger = logging.getLogger(__name__)

DB_FILE = Config.DB_FILE


@contextmanager
def get_conn():
    conn = sqlite3.connect(DB_FILE, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def execute(sql: str, params: tuple = ()) -> int:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.lastrowid


def executemany(sql: str, seq_of_params: list[tuple]) -> None:
    with get_conn() as conn:
        conn.executemany(sql, seq_of_params)


def insert_many(sql: str, seq_of_params: list[tuple]) -> list[int]:
    """Insert several rows in one commit and return their ids in order."""
    with get_conn() as conn:
        return [conn.execute(sql, params).lastrowid for params in seq_of_params]


def fetch_one(sql: str, params: tuple = ()):
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchone()


def fetch_all(sql: str, params: tuple = ()) -> list[sqlite3.Row]:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchall()


def _create_tables() -> None:
    execute(
        """
        CREATE TABLE IF NOT EXISTS access_roles (
            role TEXT PRIMARY KEY CHECK(role IN ('admin','readonly')),
            password_hash TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS members (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS cashier_days (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            date TEXT NOT NULL,
            description TEXT NOT NULL,
            dues_amount INTEGER
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS transactions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            kind TEXT NOT NULL CHECK(kind IN ('Income','Expense')),
            amount INTEGER NOT NULL CHECK(amount > 0),
            date TEXT NOT NULL,
            description TEXT NOT NULL,
            member_id INTEGER,
            treasurer TEXT CHECK(treasurer IN ('Treasurer 1','Treasurer 2')),
            batch_id TEXT,
            cashier_day_id INTEGER,
            FOREIGN KEY(member_id) REFERENCES members(id),
            FOREIGN KEY(cashier_day_id) REFERENCES cashier_days(id) ON DELETE SET NULL
        )
        """
    )

    # Key/value table: the settings singleton plus internal flags
    execute(
        """
        CREATE TABLE IF NOT EXISTS app_settings (
            key TEXT PRIMARY KEY,
            value TEXT
        )
        """
    )


def get_setting(key: str, default: str | None = None) -> str | None:
    row = fetch_one("SELECT value FROM app_settings WHERE key = ?", (key,))
    if row:
        return row["value"]
    return default


def set_setting(key: str, value: str | None) -> None:
    execute(
        """
        INSERT INTO app_settings(key, value) VALUES(?, ?)
        ON CONFLICT(key) DO UPDATE SET value=excluded.value
        """,
        (key, value),
    )


def init_db(default_hashes: dict[str, str]) -> None:
    """
    Initialize the database.
    - Create tables
    - Seed a password hash for each access role that has none
    - Force an admin password change when the admin password was just seeded
    """
    _create_tables()

    now = datetime.utcnow().isoformat(timespec="seconds")
    for role, password_hash in default_hashes.items():
        if fetch_one("SELECT role FROM access_roles WHERE role = ?", (role,)):
            continue
        execute(
            "INSERT INTO access_roles(role, password_hash, created_at) VALUES(?,?,?)",
            (role, password_hash, now),
        )
        logger.info("Seeded default password for role %s", role)
        if role == "admin":
            set_setting("force_password_change", "1")

    if get_setting("force_password_change") is None:
        set_setting("force_password_change", "0")


def is_force_password_change() -> bool:
    return get_setting("force_password_change") == "1"


def clear_force_password_change() -> None:
    set_setting("force_password_change", "0")

"""
db.py
SQLite record store: table setup plus generic select/insert/update/delete
with simple eq/gte/lte/lt filters.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterable

import config

logger = logging.getLogger(__name__)

DB_FILE = config.DB_FILE

# Allowed columns per table (guards the dynamic SQL below)
TABLES: dict[str, tuple[str, ...]] = {
    "profiles": (
        "id", "username", "password_hash", "full_name", "is_admin", "created_at", "updated_at",
    ),
    "payments": (
        "id", "user_id", "amount", "payment_date", "payment_month", "created_at", "created_by",
    ),
    "expenses": (
        "id", "description", "amount", "expense_date", "image_url", "created_at", "created_by",
    ),
}

FILTER_OPS = {"eq": "=", "gte": ">=", "lte": "<=", "lt": "<"}


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


def fetch_one(sql: str, params: tuple = ()):
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchone()


def fetch_all(sql: str, params: tuple = ()) -> list[sqlite3.Row]:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchall()


def _now() -> str:
    return datetime.now().isoformat(timespec="seconds")


def _check_table(table: str) -> tuple[str, ...]:
    if table not in TABLES:
        raise ValueError(f"Unknown table: {table}")
    return TABLES[table]


def _check_columns(table: str, columns: Iterable[str]) -> list[str]:
    allowed = _check_table(table)
    cols = list(columns)
    for c in cols:
        if c not in allowed:
            raise ValueError(f"Unknown column for {table}: {c}")
    return cols


# ---------- Generic CRUD ----------

def select(
    table: str,
    columns: Iterable[str] | None = None,
    filters: Iterable[tuple[str, str, Any]] = (),
    order: tuple[str, str] | None = None,
) -> list[sqlite3.Row]:
    """
    SELECT with AND-ed filters.

    filters: (op, column, value) with op in eq/gte/lte/lt
    order: (column, "asc"|"desc")
    """
    _check_table(table)
    cols = _check_columns(table, columns) if columns else ["*"]
    sql = f"SELECT {', '.join(cols)} FROM {table} WHERE 1=1"
    params: list[Any] = []

    for op, column, value in filters:
        if op not in FILTER_OPS:
            raise ValueError(f"Unknown filter op: {op}")
        _check_columns(table, [column])
        sql += f" AND {column} {FILTER_OPS[op]} ?"
        params.append(value)

    if order:
        column, direction = order
        _check_columns(table, [column])
        direction = direction.lower()
        if direction not in ("asc", "desc"):
            raise ValueError(f"Unknown order direction: {direction}")
        # id as tie-breaker keeps listings stable
        sql += f" ORDER BY {column} {direction.upper()}, id {direction.upper()}"

    return fetch_all(sql, tuple(params))


def insert(table: str, row: dict[str, Any]) -> int:
    data = dict(row)
    if "created_at" in _check_table(table):
        data.setdefault("created_at", _now())
    cols = _check_columns(table, data.keys())
    placeholders = ", ".join("?" for _ in cols)
    new_id = execute(
        f"INSERT INTO {table}({', '.join(cols)}) VALUES({placeholders})",
        tuple(data[c] for c in cols),
    )
    logger.info("Inserted %s id=%s", table, new_id)
    return new_id


def update(table: str, row_id: int, fields: dict[str, Any]) -> int:
    data = dict(fields)
    data.pop("id", None)
    if "updated_at" in _check_table(table):
        data["updated_at"] = _now()
    cols = _check_columns(table, data.keys())
    if not cols:
        return 0
    assignments = ", ".join(f"{c}=?" for c in cols)
    with get_conn() as conn:
        cur = conn.execute(
            f"UPDATE {table} SET {assignments} WHERE id=?",
            tuple(data[c] for c in cols) + (row_id,),
        )
        count = cur.rowcount
    if count == 0:
        logger.warning("Update matched no rows: %s id=%s", table, row_id)
    else:
        logger.info("Updated %s id=%s", table, row_id)
    return count


def delete(table: str, row_id: int) -> int:
    _check_table(table)
    with get_conn() as conn:
        cur = conn.execute(f"DELETE FROM {table} WHERE id=?", (row_id,))
        count = cur.rowcount
    if count == 0:
        logger.warning("Delete matched no rows: %s id=%s", table, row_id)
    else:
        logger.info("Deleted %s id=%s", table, row_id)
    return count


def get_by_id(table: str, row_id: int):
    rows = select(table, filters=[("eq", "id", row_id)])
    return rows[0] if rows else None


# ---------- Schema ----------

def _create_tables() -> None:
    execute(
        """
        CREATE TABLE IF NOT EXISTS profiles (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            username TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            full_name TEXT NOT NULL,
            is_admin INTEGER NOT NULL DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS payments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            amount REAL NOT NULL CHECK(amount >= 0),
            payment_date TEXT NOT NULL,
            payment_month TEXT NOT NULL,
            created_at TEXT NOT NULL,
            created_by INTEGER,
            FOREIGN KEY(user_id) REFERENCES profiles(id) ON DELETE CASCADE,
            FOREIGN KEY(created_by) REFERENCES profiles(id) ON DELETE SET NULL
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS expenses (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            description TEXT NOT NULL,
            amount REAL NOT NULL CHECK(amount >= 0),
            expense_date TEXT NOT NULL,
            image_url TEXT,
            created_at TEXT NOT NULL,
            created_by INTEGER,
            FOREIGN KEY(created_by) REFERENCES profiles(id) ON DELETE SET NULL
        )
        """
    )

    execute("CREATE INDEX IF NOT EXISTS ix_payments_user ON payments(user_id)")
    execute("CREATE INDEX IF NOT EXISTS ix_payments_month ON payments(payment_month)")
    execute("CREATE INDEX IF NOT EXISTS ix_expenses_date ON expenses(expense_date)")

    # Small settings table (used to force password change on first login)
    execute(
        """
        CREATE TABLE IF NOT EXISTS app_settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        """
    )


def _get_setting(key: str, default: str | None = None) -> str | None:
    row = fetch_one("SELECT value FROM app_settings WHERE key = ?", (key,))
    if row:
        return str(row["value"])
    return default


def _set_setting(key: str, value: str) -> None:
    execute(
        """
        INSERT INTO app_settings(key, value) VALUES(?, ?)
        ON CONFLICT(key) DO UPDATE SET value=excluded.value
        """,
        (key, value),
    )


def init_db(default_admin_hash: str) -> None:
    """
    Initialize the database.
    - Create tables
    - Insert default admin profile (admin/<default password>) if no profile exists
    - Force password change on first login
    """
    _create_tables()

    admin = fetch_one("SELECT id FROM profiles LIMIT 1")
    if not admin:
        insert(
            "profiles",
            {
                "username": "admin",
                "password_hash": default_admin_hash,
                "full_name": "Yönetici",
                "is_admin": 1,
            },
        )
        _set_setting("force_password_change", "1")
    elif _get_setting("force_password_change") is None:
        _set_setting("force_password_change", "0")


def is_force_password_change() -> bool:
    return _get_setting("force_password_change") == "1"


def clear_force_password_change() -> None:
    _set_setting("force_password_change", "0")

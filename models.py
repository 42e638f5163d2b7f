"""
models.py
Record schemas for the store rows (profiles, payments, expenses).
Rows are parsed here so the rest of the app never touches raw dict shapes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Mapping

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

MONTH_NAMES = [
    "Ocak", "Şubat", "Mart", "Nisan", "Mayıs", "Haziran",
    "Temmuz", "Ağustos", "Eylül", "Ekim", "Kasım", "Aralık",
]


def _get(row: Mapping[str, Any], key: str, default: Any = None) -> Any:
    # sqlite3.Row has no .get()
    try:
        return row[key]
    except (KeyError, IndexError):
        return default


def _required(row: Mapping[str, Any], key: str) -> Any:
    value = _get(row, key)
    if value is None or value == "":
        raise ValueError(f"Missing field: {key}")
    return value


def _amount(row: Mapping[str, Any]) -> float:
    try:
        value = float(_required(row, "amount"))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid amount: {_get(row, 'amount')!r}") from exc
    if value < 0:
        raise ValueError(f"Amount must be >= 0, got {value}")
    return value


def _iso_date(row: Mapping[str, Any], key: str) -> str:
    value = _required(row, key)
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    if not _DATE_RE.match(text):
        raise ValueError(f"Malformed {key}: {value!r}")
    date.fromisoformat(text)  # rejects impossible days like 2024-02-30
    return text


@dataclass(frozen=True)
class Profile:
    id: int
    full_name: str
    is_admin: bool
    created_at: str | None = None
    username: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Profile":
        return cls(
            id=int(_required(row, "id")),
            full_name=str(_get(row, "full_name") or ""),
            is_admin=bool(_get(row, "is_admin") or False),
            created_at=_get(row, "created_at"),
            username=_get(row, "username"),
        )


@dataclass(frozen=True)
class Payment:
    id: int
    user_id: int
    amount: float
    payment_date: str
    payment_month: str  # period key, always YYYY-MM-01
    created_by: int | None = None
    created_at: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Payment":
        month = _iso_date(row, "payment_month")
        created_by = _get(row, "created_by")
        return cls(
            id=int(_required(row, "id")),
            user_id=int(_required(row, "user_id")),
            amount=_amount(row),
            payment_date=_iso_date(row, "payment_date"),
            payment_month=month[:8] + "01",
            created_by=int(created_by) if created_by is not None else None,
            created_at=_get(row, "created_at"),
        )


@dataclass(frozen=True)
class Expense:
    id: int
    description: str
    amount: float
    expense_date: str
    image_url: str | None = None
    created_by: int | None = None
    created_at: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Expense":
        created_by = _get(row, "created_by")
        return cls(
            id=int(_required(row, "id")),
            description=str(_get(row, "description") or ""),
            amount=_amount(row),
            expense_date=_iso_date(row, "expense_date"),
            image_url=_get(row, "image_url") or None,
            created_by=int(created_by) if created_by is not None else None,
            created_at=_get(row, "created_at"),
        )

"""
ledger.py
Dues ledger aggregation: period keys, monthly/yearly summary with carry-over,
non-payers per month, per-member payment matrix, list filtering + paging.

Everything here is a pure function over already-fetched records.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Iterator, Mapping, Sequence, TypeVar

import config
from models import MONTH_NAMES, Expense, Payment, Profile

logger = logging.getLogger(__name__)

T = TypeVar("T")

_PERIOD_RE = re.compile(r"^(\d{4})-(\d{2})(?:-(\d{2}))?$")
_DATETIME_RE = re.compile(r"^\d{4}-\d{2}-\d{2}[T ]")


# ---------- Period keys ----------

def parse_period(value: Any) -> tuple[int, int]:
    """
    Map a date-ish value to (year, month).
    Accepts date/datetime, 'YYYY-MM', 'YYYY-MM-DD' and ISO datetimes.
    Raises ValueError for anything else.
    """
    if isinstance(value, (date, datetime)):
        return value.year, value.month
    if not isinstance(value, str):
        raise ValueError(f"Malformed period: {value!r}")

    text = value.strip()
    m = _PERIOD_RE.match(text)
    if not m:
        # full ISO datetime, e.g. 2024-03-01T10:00:00
        if not _DATETIME_RE.match(text):
            raise ValueError(f"Malformed period: {value!r}")
        try:
            moment = datetime.fromisoformat(text)
        except ValueError:
            raise ValueError(f"Malformed period: {value!r}") from None
        return moment.year, moment.month
    year, month = int(m.group(1)), int(m.group(2))
    if m.group(3):
        date(year, month, int(m.group(3)))  # validates month and day together
    elif not 1 <= month <= 12:
        raise ValueError(f"Month out of range: {value!r}")
    return year, month


def month_key(year: int, month: int) -> str:
    """Period key as stored in payments.payment_month."""
    if not 1 <= month <= 12:
        raise ValueError(f"Month out of range: {month}")
    return f"{year:04d}-{month:02d}-01"


def _periods(records: Iterable[T], field: str) -> Iterator[tuple[tuple[int, int], T]]:
    # Unparseable records are skipped, never fatal
    for record in records:
        value = getattr(record, field)
        try:
            yield parse_period(value), record
        except ValueError:
            logger.warning(
                "Skipping %s id=%s: bad %s %r",
                type(record).__name__, getattr(record, "id", None), field, value,
            )


def parse_rows(model: type[T], rows: Iterable[Mapping[str, Any]]) -> list[T]:
    """Parse store rows into `model`, dropping (and logging) rows that don't fit the schema."""
    out: list[T] = []
    for row in rows:
        try:
            out.append(model.from_row(row))
        except (TypeError, ValueError) as exc:
            logger.warning("Skipping %s row: %s", model.__name__, exc)
    return out


# ---------- Monthly / yearly summary ----------

@dataclass(frozen=True)
class MonthRow:
    month: int
    name: str
    total_payments: float
    total_expenses: float
    balance: float


@dataclass(frozen=True)
class YearSummary:
    year: int
    rows: tuple[MonthRow, ...]
    total_payments: float
    total_expenses: float
    previous_balance: float

    @property
    def balance(self) -> float:
        return self.total_payments - self.total_expenses

    @property
    def final_balance(self) -> float:
        return self.balance + self.previous_balance


def carry_over_balance(payments: Iterable[Payment], expenses: Iterable[Expense], year: int) -> float:
    """Net balance of every year before `year` (all-time, not only the previous year)."""
    income = sum(p.amount for (y, _), p in _periods(payments, "payment_month") if y < year)
    spent = sum(e.amount for (y, _), e in _periods(expenses, "expense_date") if y < year)
    return income - spent


def year_summary(payments: Sequence[Payment], expenses: Sequence[Expense], year: int) -> YearSummary:
    income = [0.0] * 12
    spent = [0.0] * 12

    for (y, m), p in _periods(payments, "payment_month"):
        if y == year:
            income[m - 1] += p.amount
    for (y, m), e in _periods(expenses, "expense_date"):
        if y == year:
            spent[m - 1] += e.amount

    rows = tuple(
        MonthRow(
            month=i + 1,
            name=MONTH_NAMES[i],
            total_payments=income[i],
            total_expenses=spent[i],
            balance=income[i] - spent[i],
        )
        for i in range(12)
    )
    return YearSummary(
        year=year,
        rows=rows,
        total_payments=sum(income),
        total_expenses=sum(spent),
        previous_balance=carry_over_balance(payments, expenses, year),
    )


# ---------- Non-payers ----------

@dataclass(frozen=True)
class MonthNonPayers:
    month: int
    name: str
    members: tuple[Profile, ...]


def _last_due_month(year: int, today: date) -> int:
    if year < today.year:
        return 12
    if year == today.year:
        return today.month
    return 0


def unpaid_by_month(
    members: Sequence[Profile],
    payments: Iterable[Payment],
    year: int,
    today: date | None = None,
) -> list[MonthNonPayers]:
    """
    Members without any payment for each month of `year`.
    Months after today's month (current year) are not due yet and left out;
    a future year has no due months at all.
    """
    today = today or date.today()
    paid: dict[int, set[int]] = {m: set() for m in range(1, 13)}
    for (y, m), p in _periods(payments, "payment_month"):
        if y == year:
            paid[m].add(p.user_id)

    return [
        MonthNonPayers(
            month=m,
            name=MONTH_NAMES[m - 1],
            members=tuple(member for member in members if member.id not in paid[m]),
        )
        for m in range(1, _last_due_month(year, today) + 1)
    ]


def outstanding_months(result: Iterable[MonthNonPayers]) -> list[MonthNonPayers]:
    return [r for r in result if r.members]


# ---------- Per-member matrix ----------

@dataclass(frozen=True)
class MatrixCell:
    month: int
    name: str
    is_paid: bool
    amount: float
    installments: int


@dataclass(frozen=True)
class YearRow:
    year: int
    cells: tuple[MatrixCell, ...]


def payment_matrix(payments: Iterable[Payment], today: date | None = None) -> list[YearRow]:
    """Current year and the one before it, 12 cells each. Pass one member's payments."""
    today = today or date.today()
    years = (today.year, today.year - 1)

    amounts: dict[tuple[int, int], float] = {}
    counts: dict[tuple[int, int], int] = {}
    for key, p in _periods(payments, "payment_month"):
        if key[0] in years:
            amounts[key] = amounts.get(key, 0.0) + p.amount
            counts[key] = counts.get(key, 0) + 1

    return [
        YearRow(
            year=y,
            cells=tuple(
                MatrixCell(
                    month=m,
                    name=MONTH_NAMES[m - 1],
                    is_paid=counts.get((y, m), 0) > 0,
                    amount=amounts.get((y, m), 0.0),
                    installments=counts.get((y, m), 0),
                )
                for m in range(1, 13)
            ),
        )
        for y in years
    ]


def total_paid(payments: Iterable[Payment]) -> float:
    return sum(p.amount for p in payments)


# ---------- Filtering & paging ----------

def filter_payments(
    payments: Iterable[Payment],
    user_id: int | None = None,
    payment_date: str | date | None = None,
    payment_month: str | date | None = None,
) -> list[Payment]:
    """Equality filters; None (or empty) means "don't filter"."""
    out = list(payments)
    if user_id is not None:
        out = [p for p in out if p.user_id == user_id]
    if payment_date:
        wanted = payment_date.isoformat() if isinstance(payment_date, date) else str(payment_date)
        out = [p for p in out if p.payment_date == wanted]
    if payment_month:
        key = parse_period(payment_month)
        out = [p for k, p in _periods(out, "payment_month") if k == key]
    return out


def expenses_in_month(expenses: Iterable[Expense], year: int, month: int) -> list[Expense]:
    return [e for key, e in _periods(expenses, "expense_date") if key == (year, month)]


@dataclass(frozen=True)
class Page:
    rows: tuple
    page: int
    total_pages: int
    total_rows: int


def paginate(rows: Sequence[T], page: int, page_size: int | None = None) -> Page:
    """Slice `rows` for a 1-based page; the page is clamped into range."""
    size = page_size or config.PAGE_SIZE
    if size < 1:
        raise ValueError("page_size must be >= 1")
    total_pages = max(1, math.ceil(len(rows) / size))
    page = min(max(1, page), total_pages)
    start = (page - 1) * size
    return Page(
        rows=tuple(rows[start:start + size]),
        page=page,
        total_pages=total_pages,
        total_rows=len(rows),
    )

"""
utils.py
Validation, dates, payment-date policy, exports.
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import date
from typing import Iterable, Mapping

import pandas as pd

from auth import MIN_PASSWORD_LENGTH
from models import Expense, Payment

PAYMENT_COLUMNS = ["id", "user_id", "full_name", "amount", "payment_date", "payment_month", "created_by", "created_at"]
EXPENSE_COLUMNS = ["id", "description", "amount", "expense_date", "image_url", "created_by", "created_at"]


def today_iso() -> str:
    return date.today().isoformat()


def parse_iso(d: str) -> date:
    return date.fromisoformat(d)


def year_options(count: int = 5, today: date | None = None) -> list[int]:
    """Current year first, then the `count - 1` years before it."""
    year = (today or date.today()).year
    return [year - i for i in range(count)]


def fmt_money(value: float) -> str:
    return f"₺{value:,.2f}"


def parse_amount(raw) -> float:
    amount = float(str(raw).strip().replace(",", "."))
    if amount != amount or amount in (float("inf"), float("-inf")):
        raise ValueError(f"Invalid amount: {raw!r}")
    return amount


def _amount_errors(raw) -> list[str]:
    try:
        amount = parse_amount(raw)
    except (TypeError, ValueError):
        return ["Tutar sayısal olmalıdır."]
    if amount < 0:
        return ["Tutar negatif olamaz."]
    return []


def validate_payment_inputs(user_id, amount, payment_month) -> list[str]:
    errors: list[str] = []
    if not user_id:
        errors.append("Bir üye seçin.")
    errors.extend(_amount_errors(amount))
    if not payment_month:
        errors.append("Ödeme ayı gereklidir.")
    return errors


def validate_expense_inputs(description: str, amount, expense_date: str) -> list[str]:
    errors: list[str] = []
    if not (description or "").strip():
        errors.append("Açıklama gereklidir.")
    errors.extend(_amount_errors(amount))
    try:
        parse_iso(expense_date)
    except (TypeError, ValueError):
        errors.append("Tarih geçerli olmalıdır (YYYY-AA-GG).")
    return errors


def validate_password(new1: str, new2: str) -> list[str]:
    if len(new1 or "") < MIN_PASSWORD_LENGTH:
        return [f"Şifre en az {MIN_PASSWORD_LENGTH} karakter olmalıdır."]
    if new1 != new2:
        return ["Şifreler eşleşmiyor."]
    return []


def validate_member_inputs(username: str, full_name: str, password: str | None = None) -> list[str]:
    """`password` None means "keep the current one" (edit form)."""
    errors: list[str] = []
    if not (username or "").strip():
        errors.append("Kullanıcı adı gereklidir.")
    if not (full_name or "").strip():
        errors.append("Ad soyad gereklidir.")
    if password is not None and len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Şifre en az {MIN_PASSWORD_LENGTH} karakter olmalıdır.")
    return errors


def resolve_payment_date(policy: str, chosen: str | date | None, today: date | None = None) -> str:
    """
    payment_date to store.
    - "today": always the current day, on create and on edit
    - "manual": whatever the user picked (today when nothing was picked)
    """
    today = today or date.today()
    if policy == "manual" and chosen:
        return chosen.isoformat() if isinstance(chosen, date) else str(chosen)
    return today.isoformat()


def payments_frame(payments: Iterable[Payment], names: Mapping[int, str]) -> pd.DataFrame:
    rows = [{**asdict(p), "full_name": names.get(p.user_id, "")} for p in payments]
    if not rows:
        return pd.DataFrame(columns=PAYMENT_COLUMNS)
    return pd.DataFrame(rows)[PAYMENT_COLUMNS]


def expenses_frame(expenses: Iterable[Expense]) -> pd.DataFrame:
    rows = [asdict(e) for e in expenses]
    if not rows:
        return pd.DataFrame(columns=EXPENSE_COLUMNS)
    return pd.DataFrame(rows)[EXPENSE_COLUMNS]


def payments_to_csv_bytes(payments: Iterable[Payment], names: Mapping[int, str]) -> bytes:
    return payments_frame(payments, names).to_csv(index=False).encode("utf-8")


def expenses_to_csv_bytes(expenses: Iterable[Expense]) -> bytes:
    return expenses_frame(expenses).to_csv(index=False).encode("utf-8")

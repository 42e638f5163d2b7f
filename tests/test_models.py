from __future__ import annotations

from datetime import date

import pytest

from models import Expense, Payment, Profile


def test_payment_from_row_normalizes_period():
    p = Payment.from_row(
        {"id": "7", "user_id": 3, "amount": "12.5", "payment_date": "2024-03-09", "payment_month": "2024-03-15", "created_by": 1}
    )
    assert p.id == 7
    assert p.amount == 12.5
    assert p.payment_month == "2024-03-01"
    assert p.created_by == 1


def test_payment_from_row_accepts_dates():
    p = Payment.from_row(
        {"id": 1, "user_id": 1, "amount": 0, "payment_date": date(2024, 1, 2), "payment_month": date(2024, 1, 1)}
    )
    assert p.payment_date == "2024-01-02"
    assert p.created_by is None


@pytest.mark.parametrize(
    "changes",
    [
        {"amount": -1},
        {"amount": "abc"},
        {"amount": None},
        {"id": None},
        {"payment_month": "2024-13-01"},
        {"payment_date": ""},
        {"payment_month": "2024-03-01!!"},
        {"payment_month": "2024-03-01T10:00:00"},
        {"payment_date": "2024-01-02 junk"},
        {"payment_date": "20240102"},
    ],
)
def test_payment_from_row_rejects_bad_rows(changes):
    row = {"id": 1, "user_id": 1, "amount": 10, "payment_date": "2024-01-02", "payment_month": "2024-01-01"}
    row.update(changes)
    with pytest.raises(ValueError):
        Payment.from_row(row)


def test_expense_from_row():
    e = Expense.from_row({"id": 4, "description": "Şeker", "amount": 35, "expense_date": "2024-02-10", "image_url": ""})
    assert e.description == "Şeker"
    assert e.image_url is None


def test_profile_from_row():
    p = Profile.from_row({"id": 2, "full_name": "Deniz", "is_admin": 1})
    assert p.is_admin is True
    assert p.username is None


def test_expense_from_row_keeps_creator():
    e = Expense.from_row({"id": 5, "description": "Çay", "amount": 20, "expense_date": "2024-02-11", "created_by": "3"})
    assert e.created_by == 3
    assert Expense.from_row({"id": 6, "description": "Çay", "amount": 20, "expense_date": "2024-02-11"}).created_by is None


def test_expense_from_row_rejects_trailing_text_in_date():
    with pytest.raises(ValueError):
        Expense.from_row({"id": 7, "description": "Çay", "amount": 20, "expense_date": "2024-02-11xyz"})

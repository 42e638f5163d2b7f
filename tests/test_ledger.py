from __future__ import annotations

from datetime import date, datetime

import pytest

import ledger
from models import Expense, Payment, Profile

_ids = iter(range(1, 10_000))


def pay(user_id: int, amount: float, month: str, payment_date: str = "2024-01-10") -> Payment:
    return Payment(id=next(_ids), user_id=user_id, amount=amount, payment_date=payment_date, payment_month=month)


def exp(amount: float, expense_date: str, description: str = "çay") -> Expense:
    return Expense(id=next(_ids), description=description, amount=amount, expense_date=expense_date)


def member(member_id: int, name: str) -> Profile:
    return Profile(id=member_id, full_name=name, is_admin=False)


A, B, C = member(1, "Ayşe"), member(2, "Burak"), member(3, "Cem")


# ---------- parse_period ----------

@pytest.mark.parametrize(
    "value, expected",
    [
        ("2024-03-01", (2024, 3)),
        ("2024-03", (2024, 3)),
        ("2024-12-31T23:59:59", (2024, 12)),
        ("2024-02-29 10:00:00", (2024, 2)),
        (date(2023, 7, 15), (2023, 7)),
        (datetime(2023, 7, 15, 8, 30), (2023, 7)),
    ],
)
def test_parse_period(value, expected):
    assert ledger.parse_period(value) == expected


@pytest.mark.parametrize(
    "value",
    [
        "", "abc", "2024-13-01", "2024-00", "2023-02-30", "24-03-01", None, 202403,
        "2024-03-01 garbage", "2024-03Tnonsense", "2024-03 x", "2024-03-01T25:00:00",
    ],
)
def test_parse_period_rejects_malformed(value):
    with pytest.raises(ValueError):
        ledger.parse_period(value)


def test_month_key():
    assert ledger.month_key(2024, 3) == "2024-03-01"
    with pytest.raises(ValueError):
        ledger.month_key(2024, 13)


# ---------- year_summary / carry-over ----------

def test_single_expense_month_goes_negative():
    summary = ledger.year_summary([], [exp(200, "2024-06-15")], 2024)

    june = summary.rows[5]
    assert (june.month, june.name) == (6, "Haziran")
    assert june.total_payments == 0
    assert june.total_expenses == 200
    assert june.balance == -200
    assert summary.balance == -200


def test_empty_records_give_twelve_zero_rows():
    summary = ledger.year_summary([], [], 2024)

    assert len(summary.rows) == 12
    assert [r.month for r in summary.rows] == list(range(1, 13))
    assert all(r.total_payments == r.total_expenses == r.balance == 0 for r in summary.rows)
    assert summary.previous_balance == 0
    assert summary.final_balance == 0


def test_monthly_balances_add_up_to_year_totals():
    payments = [
        pay(1, 100, "2024-01-01"),
        pay(2, 50, "2024-01-01"),
        pay(1, 75, "2024-04-01"),
        pay(3, 999, "2023-12-01"),  # other year
    ]
    expenses = [exp(30, "2024-01-20"), exp(45, "2024-11-02"), exp(500, "2025-01-01")]

    summary = ledger.year_summary(payments, expenses, 2024)

    assert summary.rows[0].total_payments == 150
    assert summary.rows[0].total_expenses == 30
    assert summary.rows[3].total_payments == 75
    assert summary.rows[10].total_expenses == 45
    assert sum(r.balance for r in summary.rows) == (100 + 50 + 75) - (30 + 45)
    assert summary.total_payments == 225
    assert summary.total_expenses == 75


def test_carry_over_uses_every_prior_year():
    payments = [
        pay(1, 100, "2022-05-01"),
        pay(1, 50, "2023-12-01"),
        pay(1, 40, "2024-01-01"),
    ]
    expenses = [exp(30, "2023-12-31"), exp(10, "2024-01-01")]

    assert ledger.carry_over_balance(payments, expenses, 2024) == 120
    assert ledger.carry_over_balance(payments, expenses, 2023) == 100
    assert ledger.carry_over_balance(payments, expenses, 2022) == 0

    summary = ledger.year_summary(payments, expenses, 2024)
    assert summary.previous_balance == 120
    assert summary.balance == 30
    assert summary.final_balance == 150


def test_bad_records_are_skipped_not_fatal():
    payments = [pay(1, 100, "2024-02-01"), pay(1, 100, "not-a-date")]
    expenses = [exp(20, "2024-02-30")]

    summary = ledger.year_summary(payments, expenses, 2024)

    assert summary.total_payments == 100
    assert summary.total_expenses == 0


def test_year_summary_is_repeatable():
    payments = [pay(1, 10, "2024-01-01"), pay(2, 20, "2023-03-01")]
    expenses = [exp(5, "2024-02-02")]

    assert ledger.year_summary(payments, expenses, 2024) == ledger.year_summary(payments, expenses, 2024)


# ---------- non-payers ----------

def test_only_payer_is_left_out_of_january():
    payments = [pay(A.id, 100, "2024-01-01")]

    result = ledger.unpaid_by_month([A, B, C], payments, 2024, today=date(2024, 1, 20))

    assert len(result) == 1
    assert result[0].month == 1
    assert result[0].name == "Ocak"
    assert result[0].members == (B, C)


def test_current_year_stops_at_current_month():
    result = ledger.unpaid_by_month([A], [], 2024, today=date(2024, 5, 3))
    assert [r.month for r in result] == [1, 2, 3, 4, 5]


def test_past_year_covers_all_months_future_year_none():
    assert len(ledger.unpaid_by_month([A], [], 2023, today=date(2024, 5, 3))) == 12
    assert ledger.unpaid_by_month([A], [], 2025, today=date(2024, 5, 3)) == []


def test_payment_in_same_month_of_other_year_does_not_count():
    payments = [pay(A.id, 100, "2023-02-01")]

    result = ledger.unpaid_by_month([A, B], payments, 2024, today=date(2024, 3, 1))

    assert result[1].members == (A, B)


def test_outstanding_months_drops_fully_paid_months():
    payments = [pay(A.id, 10, "2024-01-01"), pay(B.id, 10, "2024-01-01"), pay(A.id, 10, "2024-02-01")]

    raw = ledger.unpaid_by_month([A, B], payments, 2024, today=date(2024, 2, 10))
    shown = ledger.outstanding_months(raw)

    assert [r.month for r in raw] == [1, 2]
    assert [r.month for r in shown] == [2]
    assert shown[0].members == (B,)


def test_no_members_means_nothing_outstanding():
    raw = ledger.unpaid_by_month([], [], 2024, today=date(2024, 3, 1))
    assert len(raw) == 3
    assert ledger.outstanding_months(raw) == []


# ---------- payment matrix ----------

def test_installments_are_summed_in_one_cell():
    payments = [pay(A.id, 100, "2024-03-01"), pay(A.id, 50, "2024-03-01")]

    matrix = ledger.payment_matrix(payments, today=date(2024, 6, 1))

    assert [row.year for row in matrix] == [2024, 2023]
    march = matrix[0].cells[2]
    assert march.name == "Mart"
    assert march.is_paid is True
    assert march.amount == 150
    assert march.installments == 2
    assert not matrix[0].cells[3].is_paid
    assert matrix[0].cells[3].amount == 0


def test_matrix_window_is_two_years_but_total_is_all_history():
    payments = [pay(A.id, 100, "2022-01-01"), pay(A.id, 30, "2023-12-01"), pay(A.id, 20, "2024-01-01")]

    matrix = ledger.payment_matrix(payments, today=date(2024, 6, 1))

    paid = [(row.year, c.month) for row in matrix for c in row.cells if c.is_paid]
    assert paid == [(2024, 1), (2023, 12)]
    assert ledger.total_paid(payments) == 150


# ---------- filtering & paging ----------

def test_filter_payments():
    p1 = pay(1, 10, "2024-03-01", payment_date="2024-03-05")
    p2 = pay(2, 20, "2024-03-01", payment_date="2024-03-06")
    p3 = pay(1, 30, "2024-04-01", payment_date="2024-03-06")
    rows = [p1, p2, p3]

    assert ledger.filter_payments(rows) == rows
    assert ledger.filter_payments(rows, user_id=1) == [p1, p3]
    assert ledger.filter_payments(rows, payment_date="2024-03-06") == [p2, p3]
    assert ledger.filter_payments(rows, payment_date=date(2024, 3, 5)) == [p1]
    assert ledger.filter_payments(rows, payment_month="2024-03") == [p1, p2]
    assert ledger.filter_payments(rows, user_id=1, payment_month="2024-04-01") == [p3]


def test_paginate():
    rows = list(range(25))

    first = ledger.paginate(rows, 1, page_size=10)
    last = ledger.paginate(rows, 3, page_size=10)

    assert first.rows == tuple(range(10))
    assert first.total_pages == 3
    assert last.rows == (20, 21, 22, 23, 24)
    assert ledger.paginate(rows, 99, page_size=10).page == 3
    assert ledger.paginate(rows, 0, page_size=10).page == 1


def test_paginate_empty_has_one_page():
    page = ledger.paginate([], 1, page_size=10)
    assert page.rows == ()
    assert page.total_pages == 1
    assert page.total_rows == 0


def test_expenses_in_month():
    e1, e2, e3 = exp(1, "2024-05-01"), exp(2, "2024-05-31"), exp(3, "2023-05-10")
    assert ledger.expenses_in_month([e1, e2, e3], 2024, 5) == [e1, e2]


def test_parse_rows_drops_rows_that_do_not_fit():
    rows = [
        {"id": 1, "user_id": 1, "amount": 10, "payment_date": "2024-01-02", "payment_month": "2024-01-01"},
        {"id": 2, "user_id": 1, "amount": -5, "payment_date": "2024-01-02", "payment_month": "2024-01-01"},
        {"id": 3, "user_id": 1, "amount": 10, "payment_date": "2024-01-02", "payment_month": "garbage"},
    ]

    parsed = ledger.parse_rows(Payment, rows)

    assert [p.id for p in parsed] == [1]

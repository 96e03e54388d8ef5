"""
engine.py
Reconciliation engine: derives per-member and per-class figures from
snapshots of members, transactions, cashier days and settings.

Every function here is pure. Callers load the snapshots (see store.py) and
pass them in; nothing is read from or written to the database.
"""

from __future__ import annotations

from datetime import date

import utils
from models import (
    TREASURER_1,
    TREASURER_2,
    ArrearsItem,
    CashierDayStatus,
    ClassSummary,
    DuesPeriod,
    MemberSummary,
    PeriodArrears,
    TreasurerBalances,
)


def _settings_dues(settings) -> int:
    return getattr(settings, "dues_amount", None) or 0


def dues_for_day(day, settings) -> int:
    """Dues owed on a cashier day, falling back to the global amount."""
    if day.dues_amount is not None:
        return day.dues_amount
    return _settings_dues(settings)


def shared_expense_total(transactions) -> int:
    return sum(t.amount for t in transactions if t.is_shared_expense)


def _day_status(day, member_income, settings) -> CashierDayStatus:
    # Paid by an income linked to this day, or by any income made on its calendar day.
    key = utils.day_key(day.date)
    payments = [
        t for t in member_income
        if (t.cashier_day_id is not None and t.cashier_day_id == day.id) or utils.day_key(t.date) == key
    ]
    return CashierDayStatus(
        cashier_day=day,
        dues_amount=dues_for_day(day, settings),
        paid=bool(payments),
        paid_amount=sum(t.amount for t in payments) if payments else None,
    )


def compute_member_summary(member, transactions, cashier_days, settings, member_count: int) -> MemberSummary:
    """
    Summarise one member's position.

    ``transactions`` is the full, unfiltered set; ``member_count`` is the
    number of members sharing the class-wide expenses.
    """
    personal = [t for t in transactions if t.member_id is not None and t.member_id == member.id]
    income = [t for t in personal if t.is_income]
    expenses = [t for t in personal if t.is_expense]

    total_paid = sum(t.amount for t in income)
    total_dues = sum(dues_for_day(d, settings) for d in cashier_days)
    personal_expenses = sum(t.amount for t in expenses)
    shared_per_member = shared_expense_total(transactions) / member_count if member_count > 0 else 0.0

    total_owed = total_dues + personal_expenses + shared_per_member
    arrears = max(0, total_owed - total_paid)
    withdrawable = max(0, total_paid - total_owed)
    progress = total_paid / total_owed if total_owed > 0 else 1.0

    statuses = [_day_status(d, income, settings) for d in cashier_days]

    unpaid = sorted(
        (s for s in statuses if not s.paid),
        key=lambda s: (utils.day_key(s.cashier_day.date), s.cashier_day.id or 0),
    )
    items = [
        ArrearsItem(kind="dues", description=s.cashier_day.description, amount=s.dues_amount,
                    date=utils.day_key(s.cashier_day.date))
        for s in unpaid
    ]
    if arrears > 0:
        items += [
            ArrearsItem(kind="expense", description=t.description, amount=t.amount, date=utils.day_key(t.date))
            for t in expenses
        ]

    newest_first = sorted(
        statuses,
        key=lambda s: (utils.day_key(s.cashier_day.date), s.cashier_day.id or 0),
        reverse=True,
    )

    return MemberSummary(
        member=member,
        total_paid=total_paid,
        total_dues=total_dues,
        personal_expenses=personal_expenses,
        shared_expense_per_member=shared_per_member,
        total_owed=total_owed,
        arrears=arrears,
        withdrawable_balance=withdrawable,
        progress_ratio=progress,
        arrears_items=tuple(items),
        day_statuses=tuple(newest_first),
        personal_transactions=tuple(personal),
    )


def compute_member_summaries(members, transactions, cashier_days, settings) -> list[MemberSummary]:
    count = len(members)
    return [compute_member_summary(m, transactions, cashier_days, settings, count) for m in members]


def compute_class_summary(transactions) -> ClassSummary:
    total_income = sum(t.amount for t in transactions if t.is_income)
    total_expenses = sum(t.amount for t in transactions if t.is_expense)
    return ClassSummary(
        total_income=total_income,
        total_expenses=total_expenses,
        final_balance=total_income - total_expenses,
    )


def compute_treasurer_balances(transactions) -> TreasurerBalances:
    def pool_balance(treasurer: str) -> int:
        routed = [t for t in transactions if t.treasurer == treasurer]
        return sum(t.amount for t in routed if t.is_income) - sum(t.amount for t in routed if t.is_expense)

    return TreasurerBalances(
        treasurer1_balance=pool_balance(TREASURER_1),
        treasurer2_balance=pool_balance(TREASURER_2),
    )


def dues_periods(settings, today: date | None = None) -> list[DuesPeriod]:
    """Weekly or monthly dues periods from the configured start date up to today."""
    if not settings.start_date or not settings.dues_amount or not settings.dues_frequency:
        return []
    start = utils.parse_iso(utils.day_key(settings.start_date))
    today = today or date.today()

    if settings.dues_frequency == "weekly":
        return [
            DuesPeriod(label=utils.week_label(a, b), start=a.isoformat(), end=b.isoformat(),
                       amount=settings.dues_amount)
            for a, b in utils.iter_weeks(start, today)
        ]
    return [
        DuesPeriod(label=utils.month_label(a), start=a.isoformat(), end=b.isoformat(),
                   amount=settings.dues_amount)
        for a, b in utils.iter_months(start, today)
    ]


def compute_period_arrears(member, transactions, settings, today: date | None = None) -> PeriodArrears:
    """
    Unsettled dues periods for a member.

    The member's total paid is spent on periods oldest first; a period is
    settled when what is left covers one full dues amount.
    """
    periods = dues_periods(settings, today)
    if not periods:
        return PeriodArrears()

    remaining = sum(
        t.amount for t in transactions
        if t.is_income and t.member_id is not None and t.member_id == member.id
    )
    unsettled = []
    for period in periods:
        if remaining >= period.amount:
            remaining -= period.amount
        else:
            unsettled.append(period)
    return PeriodArrears(periods=tuple(unsettled), total=sum(p.amount for p in unsettled))

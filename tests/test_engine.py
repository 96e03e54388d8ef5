"""
Unit tests for the reconciliation engine.

Covers:
- Member summary totals (paid, dues, personal and shared expenses)
- Arrears / withdrawable balance exclusivity and progress ratio
- Cashier-day payment status (explicit link, same-day fallback)
- Itemised arrears ordering
- Class summary and treasurer pool balances
- Period-based arrears from the dues start date
"""

from datetime import date

import pytest

from engine import (
    compute_class_summary,
    compute_member_summaries,
    compute_member_summary,
    compute_period_arrears,
    compute_treasurer_balances,
    dues_for_day,
)
from factories import cashier_day, expense, income, member
from models import TREASURER_1, TREASURER_2, Settings


class TestMemberSummaryScenarios:
    """The reference scenarios for a single member."""

    def test_no_payments_is_all_arrears(self, settings):
        """Three cashier days at 2000 and nothing paid."""
        m = member(1)
        days = [cashier_day(1, "2025-01-06"), cashier_day(2, "2025-01-13"), cashier_day(3, "2025-01-20")]

        summary = compute_member_summary(m, [], days, settings, member_count=1)

        assert summary.total_owed == 6000
        assert summary.total_paid == 0
        assert summary.arrears == 6000
        assert summary.withdrawable_balance == 0
        assert summary.progress_ratio == 0

    def test_overpayment_becomes_withdrawable(self, settings):
        """One payment of 5000 against two cashier days at 2000."""
        m = member(1)
        days = [cashier_day(1, "2025-01-06"), cashier_day(2, "2025-01-13")]
        txs = [income(5000, "2025-01-06", member_id=1)]

        summary = compute_member_summary(m, txs, days, settings, member_count=1)

        assert summary.total_paid == 5000
        assert summary.total_owed == 4000
        assert summary.arrears == 0
        assert summary.withdrawable_balance == 1000
        assert summary.progress_ratio == pytest.approx(1.25)
        assert summary.balance == 1000

    def test_shared_expense_split_across_members(self, settings):
        """A 10000 shared expense costs each of two members 5000."""
        members = [member(1), member(2)]
        txs = [expense(10000, "2025-01-10")]

        summaries = compute_member_summaries(members, txs, [], settings)

        for s in summaries:
            assert s.shared_expense_per_member == 5000
            assert s.total_owed == 5000
            assert s.arrears == 5000


class TestMemberSummaryTotals:
    """Partitioning of the full transaction set."""

    def test_other_members_transactions_are_ignored(self, settings):
        txs = [
            income(2000, "2025-01-06", member_id=1),
            income(9000, "2025-01-06", member_id=2),
            expense(700, "2025-01-07", member_id=2),
        ]
        summary = compute_member_summary(member(1), txs, [], settings, member_count=2)

        assert summary.total_paid == 2000
        assert summary.personal_expenses == 0
        assert [t.amount for t in summary.personal_transactions] == [2000]

    def test_personal_expense_adds_to_owed(self, settings):
        txs = [expense(1500, "2025-01-07", member_id=1, description="Lost book")]
        days = [cashier_day(1, "2025-01-06")]

        summary = compute_member_summary(member(1), txs, days, settings, member_count=1)

        assert summary.personal_expenses == 1500
        assert summary.total_owed == 3500

    def test_cashier_day_amount_overrides_settings(self, settings):
        days = [cashier_day(1, "2025-01-06", dues_amount=5000), cashier_day(2, "2025-01-13")]

        summary = compute_member_summary(member(1), [], days, settings, member_count=1)

        assert summary.total_dues == 7000
        assert dues_for_day(days[0], settings) == 5000
        assert dues_for_day(days[1], settings) == 2000

    def test_missing_settings_default_to_zero(self):
        days = [cashier_day(1, "2025-01-06"), cashier_day(2, "2025-01-13", dues_amount=1000)]

        summary = compute_member_summary(member(1), [], days, None, member_count=1)

        assert summary.total_dues == 1000

    def test_zero_members_has_no_shared_allocation(self, settings):
        txs = [expense(10000, "2025-01-10")]

        summary = compute_member_summary(member(1), txs, [], settings, member_count=0)

        assert summary.shared_expense_per_member == 0

    def test_zero_cashier_days_is_fully_paid(self, settings):
        summary = compute_member_summary(member(1), [], [], settings, member_count=1)

        assert summary.total_dues == 0
        assert summary.total_owed == 0
        assert summary.progress_ratio == 1.0
        assert summary.arrears == 0
        assert summary.withdrawable_balance == 0


class TestCashierDayStatus:
    """Which cashier days count as paid."""

    def test_same_calendar_day_payment_marks_day_paid(self, settings):
        days = [cashier_day(1, "2025-01-06"), cashier_day(2, "2025-01-13")]
        txs = [income(2000, "2025-01-13", member_id=1)]

        summary = compute_member_summary(member(1), txs, days, settings, member_count=1)
        paid = {s.cashier_day.id: s.paid for s in summary.day_statuses}

        assert paid == {1: False, 2: True}

    def test_explicit_link_settles_the_linked_day(self, settings):
        """A late payment linked to day 1 settles day 1 and still counts for the day it was made on."""
        days = [cashier_day(1, "2025-01-06"), cashier_day(2, "2025-01-13")]
        txs = [income(2000, "2025-01-13", member_id=1, cashier_day_id=1)]

        summary = compute_member_summary(member(1), txs, days, settings, member_count=1)
        status = {s.cashier_day.id: s for s in summary.day_statuses}

        assert status[1].paid is True
        assert status[1].paid_amount == 2000
        assert status[2].paid is True
        assert status[2].paid_amount == 2000

    def test_expenses_never_settle_a_day(self, settings):
        days = [cashier_day(1, "2025-01-06")]
        txs = [expense(2000, "2025-01-06", member_id=1)]

        summary = compute_member_summary(member(1), txs, days, settings, member_count=1)

        assert summary.day_statuses[0].paid is False

    def test_day_statuses_are_newest_first(self, settings):
        days = [cashier_day(1, "2025-01-06"), cashier_day(3, "2025-01-20"), cashier_day(2, "2025-01-13")]

        summary = compute_member_summary(member(1), [], days, settings, member_count=1)

        assert [s.cashier_day.id for s in summary.day_statuses] == [3, 2, 1]


class TestArrearsItems:
    """Itemised arrears: unpaid dues chronologically, then personal expenses."""

    def test_order_and_labels(self, settings):
        days = [
            cashier_day(3, "2025-01-20", description="Week 3"),
            cashier_day(1, "2025-01-06", description="Week 1"),
            cashier_day(2, "2025-01-13", description="Week 2"),
        ]
        txs = [
            income(2000, "2025-01-13", member_id=1),
            expense(800, "2025-01-15", member_id=1, description="Field trip"),
            expense(300, "2025-01-02", member_id=1, description="Photocopies"),
        ]

        summary = compute_member_summary(member(1), txs, days, settings, member_count=1)

        assert [(i.kind, i.description, i.amount) for i in summary.arrears_items] == [
            ("dues", "Week 1", 2000),
            ("dues", "Week 3", 2000),
            ("expense", "Field trip", 800),
            ("expense", "Photocopies", 300),
        ]

    def test_covered_expenses_are_not_listed(self, settings):
        days = [cashier_day(1, "2025-01-06")]
        txs = [
            income(5000, "2025-01-06", member_id=1),
            expense(800, "2025-01-07", member_id=1, description="Field trip"),
        ]

        summary = compute_member_summary(member(1), txs, days, settings, member_count=1)

        assert summary.withdrawable_balance == 2200
        assert summary.arrears_items == ()


class TestProperties:
    """Invariants that hold for any snapshot."""

    @pytest.fixture
    def snapshot(self):
        members = [member(1), member(2), member(3)]
        days = [cashier_day(1, "2025-01-06"), cashier_day(2, "2025-01-13", dues_amount=3000)]
        txs = [
            income(2000, "2025-01-06", member_id=1, treasurer=TREASURER_1),
            income(5000, "2025-01-13", member_id=1, treasurer=TREASURER_2),
            income(2000, "2025-01-06", member_id=2, treasurer=TREASURER_1),
            expense(1200, "2025-01-08", member_id=2, treasurer=TREASURER_1),
            expense(10000, "2025-01-10", treasurer=TREASURER_2),
        ]
        return members, txs, days

    def test_arrears_and_withdrawable_are_exclusive(self, snapshot, settings):
        members, txs, days = snapshot
        for s in compute_member_summaries(members, txs, days, settings):
            assert not (s.arrears > 0 and s.withdrawable_balance > 0)
            assert s.arrears == 0 or s.withdrawable_balance == 0

    def test_member_positions_reconcile_with_class_balance(self, snapshot, settings):
        members, txs, days = snapshot
        summaries = compute_member_summaries(members, txs, days, settings)
        class_summary = compute_class_summary(txs)

        member_cash = sum(s.total_paid - s.personal_expenses - s.shared_expense_per_member for s in summaries)

        assert member_cash == pytest.approx(class_summary.final_balance)

    def test_identical_snapshots_give_identical_results(self, snapshot, settings):
        members, txs, days = snapshot
        first = compute_member_summaries(members, txs, days, settings)
        second = compute_member_summaries(list(members), list(txs), list(days), settings)

        assert first == second
        assert compute_class_summary(txs) == compute_class_summary(list(txs))


class TestClassSummary:

    def test_totals(self):
        txs = [
            income(2000, "2025-01-06", member_id=1),
            income(3000, "2025-01-06", member_id=2),
            expense(1500, "2025-01-07", member_id=1),
            expense(500, "2025-01-08"),
        ]
        summary = compute_class_summary(txs)

        assert summary.total_income == 5000
        assert summary.total_expenses == 2000
        assert summary.final_balance == 3000

    def test_empty(self):
        summary = compute_class_summary([])
        assert (summary.total_income, summary.total_expenses, summary.final_balance) == (0, 0, 0)


class TestTreasurerBalances:

    def test_pools_are_tracked_separately(self):
        txs = [
            income(6000, "2025-01-06", member_id=1, treasurer=TREASURER_1),
            income(4000, "2025-01-06", member_id=2, treasurer=TREASURER_2),
            expense(1000, "2025-01-07", treasurer=TREASURER_1),
            expense(2500, "2025-01-07", treasurer=TREASURER_2),
            income(9999, "2025-01-08", member_id=3),
        ]
        balances = compute_treasurer_balances(txs)

        assert balances.treasurer1_balance == 5000
        assert balances.treasurer2_balance == 1500
        assert balances.for_pool(TREASURER_2) == 1500

    def test_unknown_pool_lookup_raises(self):
        with pytest.raises(KeyError):
            compute_treasurer_balances([]).for_pool("Treasurer 3")


class TestPeriodArrears:
    """Weekly/monthly dues periods settled oldest first."""

    def test_weekly_periods(self):
        settings = Settings(dues_amount=2000, dues_frequency="weekly", start_date="2025-01-06")
        txs = [income(3000, "2025-01-06", member_id=1)]

        result = compute_period_arrears(member(1), txs, settings, today=date(2025, 1, 26))

        assert [p.start for p in result.periods] == ["2025-01-13", "2025-01-20"]
        assert result.periods[0].label == "Week: 13 Jan - 19 Jan 2025"
        assert result.total == 4000

    def test_monthly_periods(self):
        settings = Settings(dues_amount=2000, dues_frequency="monthly", start_date="2025-01-15")

        result = compute_period_arrears(member(1), [], settings, today=date(2025, 3, 2))

        assert [p.label for p in result.periods] == ["January 2025", "February 2025", "March 2025"]
        assert result.total == 6000

    def test_fully_paid_has_no_periods(self):
        settings = Settings(dues_amount=2000, dues_frequency="weekly", start_date="2025-01-06")
        txs = [income(10000, "2025-01-06", member_id=1)]

        result = compute_period_arrears(member(1), txs, settings, today=date(2025, 1, 26))

        assert result.periods == ()
        assert result.total == 0

    def test_without_start_date_is_empty(self):
        settings = Settings(dues_amount=2000, start_date=None)

        result = compute_period_arrears(member(1), [], settings, today=date(2025, 1, 26))

        assert result.periods == ()
        assert result.total == 0

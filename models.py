"""
models.py
Lightweight domain records (members, transactions, cashier days, settings)
and the result types produced by the reconciliation engine.
"""

from __future__ import annotations
from dataclasses import dataclass, field

INCOME = "Income"
EXPENSE = "Expense"
TRANSACTION_KINDS = (INCOME, EXPENSE)

TREASURER_1 = "Treasurer 1"
TREASURER_2 = "Treasurer 2"
TREASURERS = (TREASURER_1, TREASURER_2)

DUES_FREQUENCIES = ("weekly", "monthly")

DEFAULT_APP_NAME = "Class Cashier"
DEFAULT_HERO_TITLE = "Smart Treasurer"
DEFAULT_HERO_DESCRIPTION = "Class finances at your fingertips. Look up your name to see your dues status."
DEFAULT_DUES_AMOUNT = 2000


@dataclass(frozen=True)
class Member:
    id: int | None
    name: str


@dataclass(frozen=True)
class Transaction:
    id: int | None
    kind: str  # 'Income' or 'Expense'
    amount: int  # unsigned, sign comes from kind
    date: str  # ISO calendar day
    description: str
    member_id: int | None = None  # None on an expense => shared by the class
    treasurer: str | None = None
    batch_id: str | None = None
    cashier_day_id: int | None = None

    @property
    def is_income(self) -> bool:
        return self.kind == INCOME

    @property
    def is_expense(self) -> bool:
        return self.kind == EXPENSE

    @property
    def is_shared_expense(self) -> bool:
        return self.kind == EXPENSE and self.member_id is None


@dataclass(frozen=True)
class CashierDay:
    id: int | None
    date: str
    description: str
    dues_amount: int | None = None  # falls back to Settings.dues_amount


@dataclass(frozen=True)
class Settings:
    app_name: str = DEFAULT_APP_NAME
    logo_url: str = ""
    hero_title: str = DEFAULT_HERO_TITLE
    hero_description: str = DEFAULT_HERO_DESCRIPTION
    dues_amount: int = DEFAULT_DUES_AMOUNT
    dues_frequency: str = "weekly"
    start_date: str | None = None


# ---------- Engine results ----------

@dataclass(frozen=True)
class ArrearsItem:
    kind: str  # 'dues' for an unpaid cashier day, 'expense' for a personal charge
    description: str
    amount: int
    date: str


@dataclass(frozen=True)
class CashierDayStatus:
    cashier_day: CashierDay
    dues_amount: int
    paid: bool
    paid_amount: int | None = None


@dataclass(frozen=True)
class MemberSummary:
    member: Member
    total_paid: int
    total_dues: int
    personal_expenses: int
    shared_expense_per_member: float
    total_owed: float
    arrears: float
    withdrawable_balance: float
    progress_ratio: float
    arrears_items: tuple[ArrearsItem, ...] = ()
    day_statuses: tuple[CashierDayStatus, ...] = ()
    personal_transactions: tuple[Transaction, ...] = ()

    @property
    def balance(self) -> float:
        """Signed position: positive is surplus, negative is arrears."""
        return self.total_paid - self.total_owed


@dataclass(frozen=True)
class ClassSummary:
    total_income: int
    total_expenses: int
    final_balance: int


@dataclass(frozen=True)
class TreasurerBalances:
    treasurer1_balance: int
    treasurer2_balance: int

    def for_pool(self, treasurer: str) -> int:
        if treasurer == TREASURER_1:
            return self.treasurer1_balance
        if treasurer == TREASURER_2:
            return self.treasurer2_balance
        raise KeyError(treasurer)


@dataclass(frozen=True)
class DuesPeriod:
    label: str
    start: str
    end: str
    amount: int


@dataclass(frozen=True)
class PeriodArrears:
    periods: tuple[DuesPeriod, ...] = field(default_factory=tuple)
    total: int = 0

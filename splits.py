"""
splits.py
Expense split between the two treasurer pools: form state reducer and
validation before anything is written.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace

from errors import ValidationError
from models import EXPENSE, TREASURERS, TREASURER_1, TREASURER_2, Transaction

SPLIT_MODES = ("single", "manual")

NO_POOL = "(no treasurer)"
# Pools first so forms default to a real pool
POOL_CHOICES = TREASURERS + (NO_POOL,)


@dataclass(frozen=True)
class SplitFormState:
    total_amount: int = 0
    split_mode: str = "single"  # 'single' pool or 'manual' two-pool split
    treasurer: str | None = TREASURER_1
    part1: int = 0  # Treasurer 1 share in manual mode


def derive_part2(state: SplitFormState) -> int:
    return state.total_amount - state.part1


def reduce_split_form(state: SplitFormState, action: str, value) -> SplitFormState:
    if action == "set_total":
        return replace(state, total_amount=value)
    if action == "set_mode":
        if value not in SPLIT_MODES:
            raise ValueError(f"Unknown split mode: {value}")
        return replace(state, split_mode=value)
    if action == "set_treasurer":
        return replace(state, treasurer=value)
    if action == "set_part1":
        return replace(state, part1=value)
    raise ValueError(f"Unknown split form action: {action}")


def pool_from_choice(choice: str) -> str | None:
    return None if choice == NO_POOL else choice


def split_parts(state: SplitFormState) -> dict[str, int]:
    """Pool -> amount mapping for the validator; empty when no pool pays."""
    if state.split_mode == "manual":
        return {TREASURER_1: state.part1, TREASURER_2: derive_part2(state)}
    if state.treasurer is None:
        return {}
    return {state.treasurer: state.total_amount}


def validate_expense_split(total_amount: int, parts: dict[str, int], balances) -> list[str]:
    errors: list[str] = []
    if total_amount <= 0:
        errors.append("Amount must be greater than 0.")
    if not parts:
        return errors
    unknown = [p for p in parts if p not in TREASURERS]
    for pool in unknown:
        errors.append(f"Unknown treasurer: {pool}.")
    if sum(parts.values()) != total_amount:
        errors.append(
            f"Split parts add up to {sum(parts.values())} but the expense total is {total_amount}."
        )
    for pool, amount in parts.items():
        if pool in unknown:
            continue
        if amount < 0:
            errors.append(f"{pool} share cannot be negative.")
        elif amount > balances.for_pool(pool):
            errors.append(
                f"Insufficient balance in {pool}: needs {amount}, holds {balances.for_pool(pool)}."
            )
    return errors


def build_expense_split(total_amount: int, parts: dict[str, int], balances, *, date: str,
                        description: str, member_id: int | None = None,
                        batch_id: str | None = None) -> list[Transaction]:
    """
    Turn a validated split into expense transactions, one per non-zero part,
    all under the same batch id. With no parts the expense is a single
    transaction outside both pools. Raises ValidationError and builds nothing
    when any check fails.
    """
    errors = validate_expense_split(total_amount, parts, balances)
    if errors:
        raise ValidationError(errors)

    batch_id = batch_id or uuid.uuid4().hex
    if not parts:
        return [Transaction(id=None, kind=EXPENSE, amount=total_amount, date=date, description=description,
                            member_id=member_id, batch_id=batch_id)]
    return [
        Transaction(
            id=None,
            kind=EXPENSE,
            amount=amount,
            date=date,
            description=description,
            member_id=member_id,
            treasurer=pool,
            batch_id=batch_id,
        )
        for pool, amount in parts.items()
        if amount > 0
    ]

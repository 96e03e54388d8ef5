"""
store.py
Read/write operations over the SQLite tables. Every write validates its
input and checks references before touching the database.
Also seeds sample data for a first look at the app.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import asdict
from datetime import date, timedelta

import db
import engine
import splits
import utils
from errors import IntegrityError, NotFoundError, ValidationError
from models import (
    DEFAULT_APP_NAME,
    DEFAULT_HERO_DESCRIPTION,
    DEFAULT_HERO_TITLE,
    INCOME,
    TREASURER_1,
    TREASURER_2,
    CashierDay,
    Member,
    Settings,
    Transaction,
)

logger = logging.getLogger(__name__)

SETTINGS_PREFIX = "settings."
SETTINGS_FIELDS = (
    "app_name", "logo_url", "hero_title", "hero_description",
    "dues_amount", "dues_frequency", "start_date",
)

INSERT_TRANSACTION_SQL = """
    INSERT INTO transactions(kind, amount, date, description, member_id, treasurer, batch_id, cashier_day_id)
    VALUES(?,?,?,?,?,?,?,?)
"""


def _member(row) -> Member:
    return Member(id=row["id"], name=row["name"])


def _transaction(row) -> Transaction:
    return Transaction(
        id=row["id"],
        kind=row["kind"],
        amount=row["amount"],
        date=row["date"],
        description=row["description"],
        member_id=row["member_id"],
        treasurer=row["treasurer"],
        batch_id=row["batch_id"],
        cashier_day_id=row["cashier_day_id"],
    )


def _cashier_day(row) -> CashierDay:
    return CashierDay(id=row["id"], date=row["date"], description=row["description"],
                      dues_amount=row["dues_amount"])


def _transaction_params(t: Transaction) -> tuple:
    return (t.kind, t.amount, utils.day_key(t.date), t.description.strip(), t.member_id,
            t.treasurer, t.batch_id, t.cashier_day_id)


# ---------- Members ----------

def list_members() -> list[Member]:
    return [_member(r) for r in db.fetch_all("SELECT id, name FROM members ORDER BY name ASC, id ASC")]


def get_member(member_id: int) -> Member:
    row = db.fetch_one("SELECT id, name FROM members WHERE id = ?", (member_id,))
    if not row:
        raise NotFoundError(f"Member {member_id} not found.")
    return _member(row)


def create_member(name: str) -> Member:
    errors = utils.validate_member_name(name)
    if errors:
        raise ValidationError(errors)
    member_id = db.execute("INSERT INTO members(name) VALUES(?)", (name.strip(),))
    logger.info("Created member %s (%s)", member_id, name.strip())
    return Member(id=member_id, name=name.strip())


def rename_member(member_id: int, name: str) -> Member:
    errors = utils.validate_member_name(name)
    if errors:
        raise ValidationError(errors)
    get_member(member_id)
    db.execute("UPDATE members SET name = ? WHERE id = ?", (name.strip(), member_id))
    logger.info("Renamed member %s to %s", member_id, name.strip())
    return Member(id=member_id, name=name.strip())


def member_has_transactions(member_id: int) -> bool:
    row = db.fetch_one("SELECT COUNT(*) AS c FROM transactions WHERE member_id = ?", (member_id,))
    return row["c"] > 0


def delete_member(member_id: int) -> None:
    get_member(member_id)
    if member_has_transactions(member_id):
        logger.warning("Refused to delete member %s: has transactions", member_id)
        raise IntegrityError("This member has transaction history and cannot be deleted.")
    db.execute("DELETE FROM members WHERE id = ?", (member_id,))
    logger.info("Deleted member %s", member_id)


# ---------- Transactions ----------

def list_transactions() -> list[Transaction]:
    rows = db.fetch_all("SELECT * FROM transactions ORDER BY date DESC, id DESC")
    return [_transaction(r) for r in rows]


def get_transaction(transaction_id: int) -> Transaction:
    row = db.fetch_one("SELECT * FROM transactions WHERE id = ?", (transaction_id,))
    if not row:
        raise NotFoundError(f"Transaction {transaction_id} not found.")
    return _transaction(row)


def _check_transaction(t: Transaction) -> None:
    errors = utils.validate_transaction_inputs(t.kind, t.amount, t.date, t.description,
                                               member_id=t.member_id, treasurer=t.treasurer)
    if errors:
        raise ValidationError(errors)
    if t.member_id is not None:
        get_member(t.member_id)
    if t.cashier_day_id is not None:
        if t.kind != INCOME:
            raise ValidationError("Only income can settle a cashier day.")
        get_cashier_day(t.cashier_day_id)


def _check_pool_funds(transactions: list[Transaction], exclude_id: int | None = None) -> None:
    """Reject expenses that would take a treasurer pool below zero."""
    needs: dict[str, int] = {}
    for t in transactions:
        if t.is_expense and t.treasurer:
            needs[t.treasurer] = needs.get(t.treasurer, 0) + t.amount
    if not needs:
        return
    balances = engine.compute_treasurer_balances([t for t in list_transactions() if t.id != exclude_id])
    errors = [
        f"Insufficient balance in {pool}: needs {amount}, holds {balances.for_pool(pool)}."
        for pool, amount in needs.items()
        if amount > balances.for_pool(pool)
    ]
    if errors:
        logger.warning("Rejected expense: %s", errors)
        raise ValidationError(errors)


def create_transaction(kind: str, amount: int, date_iso: str, description: str, *,
                       member_id: int | None = None, treasurer: str | None = None,
                       cashier_day_id: int | None = None) -> Transaction:
    t = Transaction(id=None, kind=kind, amount=amount, date=date_iso, description=description,
                    member_id=member_id, treasurer=treasurer, cashier_day_id=cashier_day_id)
    _check_transaction(t)
    _check_pool_funds([t])
    new_id = db.execute(INSERT_TRANSACTION_SQL, _transaction_params(t))
    logger.info("Created %s transaction %s of %s", kind, new_id, amount)
    return get_transaction(new_id)


def create_transactions(transactions: list[Transaction]) -> list[Transaction]:
    """Insert a batch in a single commit; nothing is written if any row is invalid."""
    for t in transactions:
        _check_transaction(t)
    _check_pool_funds(transactions)
    ids = db.insert_many(INSERT_TRANSACTION_SQL, [_transaction_params(t) for t in transactions])
    logger.info("Created %d transactions in batch %s", len(ids),
                transactions[0].batch_id if transactions else None)
    return [get_transaction(i) for i in ids]


def record_contribution_for_all(amount: int, date_iso: str, description: str,
                                treasurer: str | None = None,
                                cashier_day_id: int | None = None) -> list[Transaction]:
    """One income per member, grouped under a single batch id."""
    members = list_members()
    if not members:
        raise ValidationError("There are no members to record a contribution for.")
    batch_id = uuid.uuid4().hex
    return create_transactions([
        Transaction(id=None, kind=INCOME, amount=amount, date=date_iso, description=description,
                    member_id=m.id, treasurer=treasurer, batch_id=batch_id,
                    cashier_day_id=cashier_day_id)
        for m in members
    ])


def record_expense_split(total_amount: int, parts: dict[str, int], *, date_iso: str,
                         description: str, member_id: int | None = None) -> list[Transaction]:
    """Validate a split against the current pool balances and store all parts or none."""
    balances = engine.compute_treasurer_balances(list_transactions())
    try:
        rows = splits.build_expense_split(total_amount, parts, balances, date=date_iso,
                                          description=description, member_id=member_id)
    except ValidationError as exc:
        logger.warning("Rejected expense split of %s: %s", total_amount, exc)
        raise
    return create_transactions(rows)


def update_transaction(transaction_id: int, kind: str, amount: int, date_iso: str, description: str, *,
                       member_id: int | None = None, treasurer: str | None = None,
                       cashier_day_id: int | None = None) -> Transaction:
    existing = get_transaction(transaction_id)
    if existing.batch_id:
        raise IntegrityError("This transaction belongs to a batch; delete the whole batch instead.")
    t = Transaction(id=transaction_id, kind=kind, amount=amount, date=date_iso, description=description,
                    member_id=member_id, treasurer=treasurer, cashier_day_id=cashier_day_id)
    _check_transaction(t)
    _check_pool_funds([t], exclude_id=transaction_id)
    db.execute(
        """
        UPDATE transactions SET kind=?, amount=?, date=?, description=?, member_id=?,
            treasurer=?, batch_id=?, cashier_day_id=?
        WHERE id=?
        """,
        _transaction_params(t) + (transaction_id,),
    )
    logger.info("Updated transaction %s", transaction_id)
    return get_transaction(transaction_id)


def delete_transaction(transaction_id: int) -> None:
    existing = get_transaction(transaction_id)
    if existing.batch_id:
        raise IntegrityError("This transaction belongs to a batch; delete the whole batch instead.")
    db.execute("DELETE FROM transactions WHERE id = ?", (transaction_id,))
    logger.info("Deleted transaction %s", transaction_id)


def delete_batch(batch_id: str) -> int:
    row = db.fetch_one("SELECT COUNT(*) AS c FROM transactions WHERE batch_id = ?", (batch_id,))
    if not row["c"]:
        raise NotFoundError(f"Batch {batch_id} not found.")
    db.execute("DELETE FROM transactions WHERE batch_id = ?", (batch_id,))
    logger.info("Deleted batch %s (%d transactions)", batch_id, row["c"])
    return row["c"]


# ---------- Cashier days ----------

def list_cashier_days() -> list[CashierDay]:
    rows = db.fetch_all("SELECT * FROM cashier_days ORDER BY date DESC, id DESC")
    return [_cashier_day(r) for r in rows]


def get_cashier_day(cashier_day_id: int) -> CashierDay:
    row = db.fetch_one("SELECT * FROM cashier_days WHERE id = ?", (cashier_day_id,))
    if not row:
        raise NotFoundError(f"Cashier day {cashier_day_id} not found.")
    return _cashier_day(row)


def create_cashier_day(date_iso: str, description: str, dues_amount: int | None = None) -> CashierDay:
    errors = utils.validate_cashier_day_inputs(date_iso, description, dues_amount)
    if errors:
        raise ValidationError(errors)
    new_id = db.execute(
        "INSERT INTO cashier_days(date, description, dues_amount) VALUES(?,?,?)",
        (utils.day_key(date_iso), description.strip(), dues_amount),
    )
    logger.info("Created cashier day %s on %s", new_id, date_iso)
    return get_cashier_day(new_id)


def delete_cashier_day(cashier_day_id: int) -> None:
    get_cashier_day(cashier_day_id)
    db.execute("DELETE FROM cashier_days WHERE id = ?", (cashier_day_id,))
    logger.info("Deleted cashier day %s", cashier_day_id)


# ---------- Settings ----------

def _stored_settings() -> dict[str, str | None]:
    rows = db.fetch_all("SELECT key, value FROM app_settings WHERE key LIKE ?", (SETTINGS_PREFIX + "%",))
    return {r["key"][len(SETTINGS_PREFIX):]: r["value"] for r in rows}


def _save_settings(settings: Settings) -> None:
    values = asdict(settings)
    db.executemany(
        """
        INSERT INTO app_settings(key, value) VALUES(?, ?)
        ON CONFLICT(key) DO UPDATE SET value=excluded.value
        """,
        [(SETTINGS_PREFIX + k, None if values[k] is None else str(values[k])) for k in SETTINGS_FIELDS],
    )


def get_settings() -> Settings:
    """The settings singleton; defaults are written on the first read."""
    stored = _stored_settings()
    if not stored:
        settings = Settings()
        _save_settings(settings)
        logger.info("Created default settings")
        return settings

    try:
        dues_amount = int(stored.get("dues_amount") or 0)
    except ValueError:
        dues_amount = 0
    return Settings(
        app_name=stored.get("app_name") or DEFAULT_APP_NAME,
        logo_url=stored.get("logo_url") or "",
        hero_title=stored.get("hero_title") or DEFAULT_HERO_TITLE,
        hero_description=stored.get("hero_description") or DEFAULT_HERO_DESCRIPTION,
        dues_amount=dues_amount,
        dues_frequency=stored.get("dues_frequency") or "weekly",
        start_date=stored.get("start_date") or None,
    )


def update_settings(settings: Settings) -> Settings:
    errors = utils.validate_settings(settings)
    if errors:
        raise ValidationError(errors)
    _save_settings(settings)
    logger.info("Updated settings")
    return get_settings()


# ---------- Sample data ----------

def insert_sample_data() -> None:
    """
    Insert 3 members, 3 cashier days and a few transactions
    (safe to run multiple times: adds new rows each time).
    """
    today = date.today()
    days = [(today - timedelta(days=7 * n)).isoformat() for n in (2, 1, 0)]

    ids = [create_member(name).id for name in ("Ahmad Hidayat", "Siti Rahma", "Budi Santoso")]
    cashier_day_ids = [create_cashier_day(d, f"Weekly dues {i + 1}").id for i, d in enumerate(days)]

    # Member 1 is fully paid, member 2 paid once, member 3 nothing yet
    for d, cd_id in zip(days, cashier_day_ids):
        create_transaction(INCOME, 2000, d, "Weekly dues", member_id=ids[0],
                           treasurer=TREASURER_1, cashier_day_id=cd_id)
    create_transaction(INCOME, 2000, days[0], "Weekly dues", member_id=ids[1],
                       treasurer=TREASURER_2, cashier_day_id=cashier_day_ids[0])

    record_expense_split(3000, {TREASURER_1: 2000, TREASURER_2: 1000},
                         date_iso=days[2], description="Whiteboard markers")

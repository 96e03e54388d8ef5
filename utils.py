"""
utils.py
Validation, dates, dues periods, currency formatting, exports.
"""

from __future__ import annotations

from datetime import date, timedelta
from io import BytesIO
import pandas as pd

from config import Config
from models import DUES_FREQUENCIES, INCOME, TRANSACTION_KINDS, TREASURERS

MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


def parse_iso(d: str) -> date:
    return date.fromisoformat(d)


def day_key(value: str) -> str:
    """Calendar-day part of an ISO date or datetime string."""
    return value[:10]


def add_months(start: date, months: int) -> date:
    """
    Add months while keeping day in valid range (e.g., Jan 31 + 1 month => Feb 28/29).
    """
    y = start.year + (start.month - 1 + months) // 12
    m = (start.month - 1 + months) % 12 + 1
    # last day of target month
    if m == 12:
        next_month = date(y + 1, 1, 1)
    else:
        next_month = date(y, m + 1, 1)
    last_day = next_month - timedelta(days=1)
    day = min(start.day, last_day.day)
    return date(y, m, day)


def week_bounds(d: date) -> tuple[date, date]:
    monday = d - timedelta(days=d.weekday())
    return monday, monday + timedelta(days=6)


def iter_weeks(start: date, end: date) -> list[tuple[date, date]]:
    """Monday-to-Sunday weeks touching the interval [start, end]."""
    if start > end:
        return []
    weeks = []
    monday, _ = week_bounds(start)
    while monday <= end:
        weeks.append((monday, monday + timedelta(days=6)))
        monday += timedelta(days=7)
    return weeks


def iter_months(start: date, end: date) -> list[tuple[date, date]]:
    """Calendar months touching the interval [start, end]."""
    if start > end:
        return []
    months = []
    first = start.replace(day=1)
    while first <= end:
        next_first = add_months(first, 1)
        months.append((first, next_first - timedelta(days=1)))
        first = next_first
    return months


def week_label(monday: date, sunday: date) -> str:
    return f"Week: {monday.day} {MONTH_NAMES[monday.month - 1][:3]} - {sunday.day} {MONTH_NAMES[sunday.month - 1][:3]} {sunday.year}"


def month_label(first: date) -> str:
    return f"{MONTH_NAMES[first.month - 1]} {first.year}"


def format_currency(amount) -> str:
    """Rupiah style: dot thousands separator, no decimals (e.g. Rp 12.500)."""
    value = int(round(amount))
    digits = f"{abs(value):,}".replace(",", ".")
    sign = "-" if value < 0 else ""
    return f"{sign}{Config.CURRENCY_SYMBOL} {digits}"


def parse_amount(value) -> int:
    """Parse a whole-unit amount typed into a form; raises ValueError on junk."""
    if isinstance(value, int):
        return value
    text = str(value).strip().replace(".", "").replace(",", "")
    return int(text)


# ---------- Validation ----------

def validate_member_name(name: str) -> list[str]:
    errors: list[str] = []
    if not name or not name.strip():
        errors.append("Member name is required.")
    elif len(name.strip()) < 3:
        errors.append("Member name must be at least 3 characters.")
    return errors


def validate_transaction_inputs(kind: str, amount, date_iso: str, description: str,
                                member_id=None, treasurer=None) -> list[str]:
    errors: list[str] = []
    if kind not in TRANSACTION_KINDS:
        errors.append(f"Unknown transaction type: {kind}.")
    if not isinstance(amount, int) or isinstance(amount, bool):
        errors.append("Amount must be a whole number.")
    elif amount <= 0:
        errors.append("Amount must be greater than 0.")
    try:
        parse_iso(day_key(date_iso))
    except (TypeError, ValueError):
        errors.append("Date must be a valid ISO date (YYYY-MM-DD).")
    if not description or len(description.strip()) < 3:
        errors.append("Description must be at least 3 characters.")
    if kind == INCOME and member_id is None:
        errors.append("A member is required for income.")
    if treasurer is not None and treasurer not in TREASURERS:
        errors.append(f"Unknown treasurer: {treasurer}.")
    return errors


def validate_cashier_day_inputs(date_iso: str, description: str, dues_amount=None) -> list[str]:
    errors: list[str] = []
    try:
        parse_iso(day_key(date_iso))
    except (TypeError, ValueError):
        errors.append("Date must be a valid ISO date (YYYY-MM-DD).")
    if not description or len(description.strip()) < 3:
        errors.append("Description must be at least 3 characters.")
    if dues_amount is not None and dues_amount < 0:
        errors.append("Dues amount cannot be negative.")
    return errors


def validate_settings(settings) -> list[str]:
    errors: list[str] = []
    if len(settings.app_name.strip()) < 3:
        errors.append("App name must be at least 3 characters.")
    if settings.logo_url and not settings.logo_url.startswith(("http://", "https://")):
        errors.append("Logo URL is not valid.")
    if len(settings.hero_title.strip()) < 3:
        errors.append("Title must be at least 3 characters.")
    if len(settings.hero_description.strip()) < 10:
        errors.append("Description must be at least 10 characters.")
    if settings.dues_amount < 0:
        errors.append("Dues amount cannot be negative.")
    if settings.dues_frequency not in DUES_FREQUENCIES:
        errors.append("Dues frequency must be weekly or monthly.")
    if settings.start_date:
        try:
            parse_iso(day_key(settings.start_date))
        except ValueError:
            errors.append("Start date must be a valid ISO date (YYYY-MM-DD).")
    return errors


# ---------- Exports ----------

def member_report_frame(summaries) -> pd.DataFrame:
    rows = []
    for s in summaries:
        if s.arrears > 0:
            status = f"Arrears {format_currency(s.arrears)}"
        else:
            status = "Paid up / surplus"
        rows.append({
            "Member": s.member.name,
            "Total paid": s.total_paid,
            "Total owed": round(s.total_owed),
            "Balance": round(s.balance),
            "Status": status,
        })
    if not rows:
        return pd.DataFrame(columns=["Member", "Total paid", "Total owed", "Balance", "Status"])
    return pd.DataFrame(rows)


def transactions_frame(transactions, members) -> pd.DataFrame:
    names = {m.id: m.name for m in members}
    rows = [
        {
            "id": t.id,
            "date": t.date,
            "type": t.kind,
            "member": names.get(t.member_id, "") if t.member_id is not None else "",
            "description": t.description,
            "amount": t.amount if t.is_income else -t.amount,
            "treasurer": t.treasurer or "",
            "batch": t.batch_id or "",
        }
        for t in transactions
    ]
    if not rows:
        return pd.DataFrame(columns=["id", "date", "type", "member", "description", "amount", "treasurer", "batch"])
    return pd.DataFrame(rows)


def cashier_days_frame(cashier_days, settings) -> pd.DataFrame:
    rows = [
        {
            "Date": d.date,
            "Description": d.description,
            "Dues": d.dues_amount if d.dues_amount is not None else settings.dues_amount,
        }
        for d in cashier_days
    ]
    if not rows:
        return pd.DataFrame(columns=["Date", "Description", "Dues"])
    return pd.DataFrame(rows)


def to_csv_bytes(df: pd.DataFrame) -> bytes:
    return df.to_csv(index=False).encode("utf-8")


def to_xlsx_bytes(df: pd.DataFrame, sheet_name: str = "Data") -> bytes:
    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False)
    return buffer.getvalue()

"""Tests for date helpers, currency formatting, validation and exports."""

from datetime import date
from io import BytesIO

import pandas as pd

import engine
import utils
from factories import cashier_day, expense, income, member
from models import INCOME, Settings


class TestDates:

    def test_add_months_clamps_day(self):
        assert utils.add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert utils.add_months(date(2025, 12, 15), 1) == date(2026, 1, 15)

    def test_iter_weeks_starts_on_monday(self):
        weeks = utils.iter_weeks(date(2025, 1, 8), date(2025, 1, 20))

        assert weeks == [
            (date(2025, 1, 6), date(2025, 1, 12)),
            (date(2025, 1, 13), date(2025, 1, 19)),
            (date(2025, 1, 20), date(2025, 1, 26)),
        ]

    def test_iter_months(self):
        months = utils.iter_months(date(2024, 12, 20), date(2025, 2, 1))

        assert [a for a, _ in months] == [date(2024, 12, 1), date(2025, 1, 1), date(2025, 2, 1)]
        assert months[1][1] == date(2025, 1, 31)

    def test_reversed_interval_is_empty(self):
        assert utils.iter_weeks(date(2025, 2, 1), date(2025, 1, 1)) == []
        assert utils.iter_months(date(2025, 2, 1), date(2025, 1, 1)) == []

    def test_day_key(self):
        assert utils.day_key("2025-01-06T17:00:00") == "2025-01-06"


class TestFormatting:

    def test_format_currency(self):
        assert utils.format_currency(2000) == "Rp 2.000"
        assert utils.format_currency(1250000) == "Rp 1.250.000"
        assert utils.format_currency(-3333.4) == "-Rp 3.333"
        assert utils.format_currency(0) == "Rp 0"

    def test_parse_amount(self):
        assert utils.parse_amount("2.000") == 2000
        assert utils.parse_amount(" 5000 ") == 5000
        assert utils.parse_amount(7) == 7


class TestValidation:

    def test_transaction_inputs(self):
        errors = utils.validate_transaction_inputs(INCOME, -1, "not-a-date", "ab", member_id=None,
                                                   treasurer="Treasurer 9")

        assert errors == [
            "Amount must be greater than 0.",
            "Date must be a valid ISO date (YYYY-MM-DD).",
            "Description must be at least 3 characters.",
            "A member is required for income.",
            "Unknown treasurer: Treasurer 9.",
        ]

    def test_member_name(self):
        assert utils.validate_member_name("Al") == ["Member name must be at least 3 characters."]
        assert utils.validate_member_name("Ali") == []

    def test_settings(self):
        assert utils.validate_settings(Settings()) == []
        assert "Logo URL is not valid." in utils.validate_settings(Settings(logo_url="logo.png"))


class TestExports:

    def test_member_report(self):
        members = [member(1, "Ahmad"), member(2, "Budi")]
        days = [cashier_day(1, "2025-01-06")]
        txs = [income(5000, "2025-01-06", member_id=1), expense(1000, "2025-01-07")]
        summaries = engine.compute_member_summaries(members, txs, days, Settings(dues_amount=2000))

        df = utils.member_report_frame(summaries)

        assert list(df["Member"]) == ["Ahmad", "Budi"]
        assert list(df["Balance"]) == [2500, -2500]
        assert df.loc[1, "Status"] == "Arrears Rp 2.500"

    def test_transactions_frame_signs_amounts(self):
        txs = [income(2000, "2025-01-06", member_id=1, tx_id=1), expense(500, "2025-01-07", tx_id=2)]

        df = utils.transactions_frame(txs, [member(1, "Ahmad")])

        assert list(df["amount"]) == [2000, -500]
        assert list(df["member"]) == ["Ahmad", ""]

    def test_empty_frames_keep_columns(self):
        assert list(utils.cashier_days_frame([], Settings()).columns) == ["Date", "Description", "Dues"]
        assert utils.member_report_frame([]).empty

    def test_xlsx_round_trip(self):
        df = utils.cashier_days_frame([cashier_day(1, "2025-01-06", description="Week 1")], Settings())

        data = utils.to_xlsx_bytes(df, "Cashier Days")
        back = pd.read_excel(BytesIO(data), sheet_name="Cashier Days", engine="openpyxl")

        assert list(back["Description"]) == ["Week 1"]
        assert list(back["Dues"]) == [2000]

    def test_csv_bytes(self):
        df = utils.cashier_days_frame([cashier_day(1, "2025-01-06", description="Week 1")], Settings())

        assert utils.to_csv_bytes(df).decode("utf-8").splitlines()[0] == "Date,Description,Dues"

"""
config.py
Environment-driven settings for the class cashier app.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


class Config:
    # --- Storage ---
    DB_FILE = Path(os.getenv("CASHIER_DB_FILE", str(Path(__file__).with_name("cashier.db"))))

    # --- Logging ---
    LOG_LEVEL = os.getenv("CASHIER_LOG_LEVEL", "INFO").upper()
    LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # --- Access passwords seeded on first run ---
    DEFAULT_ADMIN_PASSWORD = os.getenv("CASHIER_ADMIN_PASSWORD", "admin123")
    DEFAULT_READONLY_PASSWORD = os.getenv("CASHIER_READONLY_PASSWORD", "kelas123")
    MIN_PASSWORD_LENGTH = 6

    # --- Display ---
    CURRENCY_SYMBOL = os.getenv("CASHIER_CURRENCY_SYMBOL", "Rp")

"""Shared fixtures: an isolated SQLite file per test."""

from __future__ import annotations

import pytest

import db
from models import Settings


@pytest.fixture
def fresh_db(tmp_path, monkeypatch):
    """Point the storage layer at an empty database under tmp_path."""
    monkeypatch.setattr(db, "DB_FILE", tmp_path / "cashier_test.db")
    db._create_tables()
    return tmp_path / "cashier_test.db"


@pytest.fixture
def settings():
    return Settings(dues_amount=2000)

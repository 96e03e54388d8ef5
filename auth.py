"""
auth.py
Access control: one password per role (full-access admin, read-only viewer),
stored as bcrypt hashes.

This avoids passlib's bcrypt backend auto-detection issues on some Python 3.13 Windows setups.
"""

from __future__ import annotations

import logging

import bcrypt
import db
from config import Config

logger = logging.getLogger(__name__)

ADMIN = "admin"
READONLY = "readonly"
ROLES = (ADMIN, READONLY)


def _to_bcrypt_secret(password: str) -> bytes:
    """
    bcrypt only uses the first 72 BYTES of the password.
    We truncate to 72 bytes to avoid ValueError and to make behavior explicit.
    """
    pw = password.encode("utf-8")
    if len(pw) > 72:
        pw = pw[:72]
    return pw


def hash_password(password: str) -> str:
    """
    Returns a bcrypt hash as a UTF-8 string (stored in SQLite).
    """
    secret = _to_bcrypt_secret(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(secret, salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against stored bcrypt hash.
    """
    secret = _to_bcrypt_secret(password)
    stored = password_hash.encode("utf-8")
    return bcrypt.checkpw(secret, stored)


def default_hashes() -> dict[str, str]:
    return {
        ADMIN: hash_password(Config.DEFAULT_ADMIN_PASSWORD),
        READONLY: hash_password(Config.DEFAULT_READONLY_PASSWORD),
    }


def login(password: str) -> str | None:
    """Return the role the password unlocks, admin checked first."""
    for role in ROLES:
        row = db.fetch_one("SELECT password_hash FROM access_roles WHERE role = ?", (role,))
        if row and verify_password(password, row["password_hash"]):
            logger.info("Login succeeded for role %s", role)
            return role
    logger.warning("Login failed")
    return None


def can_write(role: str | None) -> bool:
    return role == ADMIN


def validate_new_password(new1: str, new2: str) -> list[str]:
    errors: list[str] = []
    if len(new1) < Config.MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {Config.MIN_PASSWORD_LENGTH} characters.")
    if new1 != new2:
        errors.append("Passwords do not match.")
    return errors


def change_password(role: str, new_password: str) -> None:
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}")
    new_hash = hash_password(new_password)
    db.execute(
        "UPDATE access_roles SET password_hash = ? WHERE role = ?",
        (new_hash, role),
    )
    logger.info("Password changed for role %s", role)
    if role == ADMIN:
        db.clear_force_password_change()

"""Class cashier exception hierarchy."""

from __future__ import annotations


class TreasuryError(Exception):
    """Base exception for all class cashier errors."""


class ValidationError(TreasuryError):
    """User input was rejected; ``reasons`` lists every problem found."""

    def __init__(self, reasons: list[str] | str) -> None:
        if isinstance(reasons, str):
            reasons = [reasons]
        self.reasons = list(reasons)
        super().__init__("; ".join(self.reasons))


class IntegrityError(TreasuryError):
    """The change would break a reference between stored records."""


class NotFoundError(TreasuryError):
    """No record with the requested id."""

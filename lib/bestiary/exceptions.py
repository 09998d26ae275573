# bestiary/exceptions.py
from __future__ import annotations


class BestiaryError(Exception):
    """Base class for errors surfaced to callers of the bestiary pipeline."""


class InvalidRequestedVariant(BestiaryError):
    """The caller asked for a variant the record does not declare."""

    def __init__(self, variant_name: str, creature_name: str = ""):
        self.variant_name = variant_name
        self.creature_name = creature_name
        where = f" of {creature_name!r}" if creature_name else ""
        super().__init__(f"Unknown variant {variant_name!r}{where}")


class StorageError(BestiaryError):
    """The remote record store failed for a reason other than a missing key."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)

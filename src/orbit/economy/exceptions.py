"""Economy error taxonomy.

All of these are local, synchronous failures. The HTTP layer maps them to
status codes via ``status_code``; nothing in the core retries them.
"""

from __future__ import annotations


class EconomyError(Exception):
    """Base class for economy failures surfaced to the caller."""

    status_code: int = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class NotFound(EconomyError):
    """Missing user, mission, post or transaction."""

    status_code = 404


class InvalidState(EconomyError):
    """Operation not allowed in the entity's current state."""

    status_code = 409


class InsufficientFunds(EconomyError):
    """Balance too low for a debit."""

    status_code = 402


class NothingToClaim(EconomyError):
    """No pending referral rewards."""

    status_code = 400


class LedgerIntegrityError(EconomyError):
    """Balance and ledger could not be written as one unit. Never swallowed."""

    status_code = 500

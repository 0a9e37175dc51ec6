from __future__ import annotations

from decimal import Decimal
from typing import Any


class LedgerError(Exception):
    """Base ledger error. ``context`` names the entry, account or period involved."""

    def __init__(self, message: str, **context: Any) -> None:
        self.message = message
        self.context = {key: value for key, value in context.items() if value is not None}
        super().__init__(self._format())

    def _format(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{key}={value}" for key, value in self.context.items())
        return f"{self.message} ({details})"

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "context": {key: str(value) for key, value in self.context.items()},
        }


class NotFoundError(LedgerError):
    """Raised when an account, entry, period or budget id does not resolve."""


class InvalidAccountError(LedgerError):
    """Raised for unknown, inactive, non-postable or structurally invalid accounts."""


class InvalidEntryError(LedgerError):
    """Raised when journal lines cannot be stored as given, e.g. an amount rounds to zero."""


class UnbalancedEntryError(LedgerError):
    def __init__(self, *, entry_id: Any, entry_number: str | None, total_debit: Decimal, total_credit: Decimal) -> None:
        self.total_debit = total_debit
        self.total_credit = total_credit
        super().__init__(
            "journal entry is not balanced",
            entry_id=entry_id,
            entry_number=entry_number,
            total_debit=total_debit,
            total_credit=total_credit,
        )


class ClosedPeriodError(LedgerError):
    """Raised when the posting date has no active period."""


class NotPostedError(LedgerError):
    """Raised when reversing an entry that is not in POSTED state."""


class AlreadyReversedError(LedgerError):
    """Raised when an entry already has a reversal linked."""


class EntryNotDraftError(LedgerError):
    """Raised when posting or editing an entry that has left DRAFT."""


class ConcurrentModificationError(LedgerError):
    """Raised when an account row changed underneath a posting transaction."""


class AlreadyClosedError(LedgerError):
    """Raised when closing a period that is already closed."""


class PeriodOverlapError(LedgerError):
    """Raised when a new period's dates intersect an existing period."""


class DuplicateBudgetError(LedgerError):
    """Raised when a budget name is reused within a financial year."""


class BudgetNotDraftError(LedgerError):
    """Raised when approving or editing a budget that is no longer DRAFT."""

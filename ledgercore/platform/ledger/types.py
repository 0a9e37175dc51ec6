from __future__ import annotations

import enum


class AccountType(str, enum.Enum):
    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"


class NormalBalance(str, enum.Enum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class AccountCategory(str, enum.Enum):
    CURRENT_ASSETS = "CURRENT_ASSETS"
    FIXED_ASSETS = "FIXED_ASSETS"
    INTANGIBLE_ASSETS = "INTANGIBLE_ASSETS"
    CURRENT_LIABILITIES = "CURRENT_LIABILITIES"
    LONG_TERM_LIABILITIES = "LONG_TERM_LIABILITIES"
    CAPITAL = "CAPITAL"
    RETAINED_EARNINGS = "RETAINED_EARNINGS"
    STUDENT_FEES = "STUDENT_FEES"
    GRANTS = "GRANTS"
    OTHER_INCOME = "OTHER_INCOME"
    OPERATING_EXPENSES = "OPERATING_EXPENSES"
    ADMINISTRATIVE_EXPENSES = "ADMINISTRATIVE_EXPENSES"
    ACADEMIC_EXPENSES = "ACADEMIC_EXPENSES"


class JournalEntryStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    POSTED = "POSTED"
    REVERSED = "REVERSED"


class PeriodStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"


class BudgetStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    APPROVED = "APPROVED"


class CashFlowCategory(str, enum.Enum):
    OPERATING = "OPERATING"
    INVESTING = "INVESTING"
    FINANCING = "FINANCING"


_DEBIT_NORMAL = {AccountType.ASSET, AccountType.EXPENSE}

# Entries whose lines count toward balances. A reversed entry keeps its
# effect; the mirror entry cancels it.
POSTED_STATUSES = (JournalEntryStatus.POSTED, JournalEntryStatus.REVERSED)


def normal_balance_for(account_type: AccountType | str) -> NormalBalance:
    if AccountType(account_type) in _DEBIT_NORMAL:
        return NormalBalance.DEBIT
    return NormalBalance.CREDIT

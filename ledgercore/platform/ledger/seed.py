from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledgercore.platform.ledger.accounts import account_registry
from ledgercore.platform.ledger.models import Account
from ledgercore.platform.ledger.schemas import AccountCreate, AccountRead
from ledgercore.platform.ledger.types import AccountCategory, AccountType

# (code, name, type, category, parent code); parents are control accounts.
INSTITUTIONAL_CHART: tuple[tuple[str, str, AccountType, AccountCategory | None, str | None], ...] = (
    ("1000", "Assets", AccountType.ASSET, None, None),
    ("1010", "Cash on Hand", AccountType.ASSET, AccountCategory.CURRENT_ASSETS, "1000"),
    ("1020", "Bank", AccountType.ASSET, AccountCategory.CURRENT_ASSETS, "1000"),
    ("1100", "Student Fees Receivable", AccountType.ASSET, AccountCategory.CURRENT_ASSETS, "1000"),
    ("1500", "Equipment", AccountType.ASSET, AccountCategory.FIXED_ASSETS, "1000"),
    ("2000", "Liabilities", AccountType.LIABILITY, None, None),
    ("2010", "Accounts Payable", AccountType.LIABILITY, AccountCategory.CURRENT_LIABILITIES, "2000"),
    ("2100", "Accrued Expenses", AccountType.LIABILITY, AccountCategory.CURRENT_LIABILITIES, "2000"),
    ("2500", "Long-term Loans", AccountType.LIABILITY, AccountCategory.LONG_TERM_LIABILITIES, "2000"),
    ("3000", "Equity", AccountType.EQUITY, None, None),
    ("3010", "Fund Balance", AccountType.EQUITY, AccountCategory.CAPITAL, "3000"),
    ("3100", "Retained Surplus", AccountType.EQUITY, AccountCategory.RETAINED_EARNINGS, "3000"),
    ("4000", "Revenue", AccountType.REVENUE, None, None),
    ("4010", "Tuition Revenue", AccountType.REVENUE, AccountCategory.STUDENT_FEES, "4000"),
    ("4020", "Grant Revenue", AccountType.REVENUE, AccountCategory.GRANTS, "4000"),
    ("4100", "Other Income", AccountType.REVENUE, AccountCategory.OTHER_INCOME, "4000"),
    ("5000", "Expenses", AccountType.EXPENSE, None, None),
    ("5010", "Salaries", AccountType.EXPENSE, AccountCategory.OPERATING_EXPENSES, "5000"),
    ("5020", "Utilities", AccountType.EXPENSE, AccountCategory.OPERATING_EXPENSES, "5000"),
    ("5030", "Office Supplies", AccountType.EXPENSE, AccountCategory.ADMINISTRATIVE_EXPENSES, "5000"),
    ("5040", "Teaching Materials", AccountType.EXPENSE, AccountCategory.ACADEMIC_EXPENSES, "5000"),
)


def seed_chart_of_accounts(session: Session, *, created_by: str = "system") -> list[AccountRead]:
    """Create the institutional chart. Codes that already exist are left alone."""
    ids_by_code = dict(session.execute(select(Account.code, Account.id)).tuples().all())

    created: list[AccountRead] = []
    for code, name, account_type, category, parent_code in INSTITUTIONAL_CHART:
        if code in ids_by_code:
            continue
        account = account_registry.create_account(
            session,
            AccountCreate(
                code=code,
                name=name,
                type=account_type,
                category=category,
                parent_id=ids_by_code.get(parent_code) if parent_code else None,
                is_control_account=parent_code is None,
            ),
            created_by,
        )
        ids_by_code[code] = account.id
        created.append(account)
    return created

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel

from ledgercore.platform.ledger.types import AccountCategory, AccountType, CashFlowCategory


class TrialBalanceRow(BaseModel):
    account_id: UUID
    account_code: str
    account_name: str
    account_type: AccountType
    debit_balance: Decimal
    credit_balance: Decimal


class TrialBalanceReportRead(BaseModel):
    as_of_date: date
    currency: str
    rows: list[TrialBalanceRow]
    total_debits: Decimal
    total_credits: Decimal
    is_balanced: bool


class StatementLine(BaseModel):
    account_id: UUID | None
    account_code: str | None
    account_name: str
    category: AccountCategory | None = None
    amount: Decimal


class IncomeStatementRead(BaseModel):
    from_date: date
    to_date: date
    currency: str
    revenue: list[StatementLine]
    expenses: list[StatementLine]
    total_revenue: Decimal
    total_expenses: Decimal
    net_income: Decimal


class BalanceSheetRead(BaseModel):
    as_of_date: date
    currency: str
    assets: list[StatementLine]
    liabilities: list[StatementLine]
    equity: list[StatementLine]
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    current_earnings: Decimal
    is_balanced: bool


class CashFlowSection(BaseModel):
    category: CashFlowCategory
    lines: list[StatementLine]
    total: Decimal


class CashFlowStatementRead(BaseModel):
    from_date: date
    to_date: date
    currency: str
    operating: CashFlowSection
    investing: CashFlowSection
    financing: CashFlowSection
    net_cash_flow: Decimal

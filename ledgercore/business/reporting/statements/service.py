from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledgercore.business.reporting.statements.schemas import (
    BalanceSheetRead,
    CashFlowSection,
    CashFlowStatementRead,
    IncomeStatementRead,
    StatementLine,
    TrialBalanceReportRead,
    TrialBalanceRow,
)
from ledgercore.core.config import get_settings
from ledgercore.platform.ledger.accounts import posted_deltas
from ledgercore.platform.ledger.models import Account, JournalEntry, JournalEntryLine
from ledgercore.platform.ledger.money import ZERO, is_balanced, natural_amount, sum_money, to_money
from ledgercore.platform.ledger.types import POSTED_STATUSES, AccountType, CashFlowCategory


CURRENT_EARNINGS_LABEL = "Current earnings"


@dataclass(slots=True)
class StatementGenerator:
    """Financial statements derived from posted journal lines.

    Nothing here flushes or commits. Every figure is recomputed per call.
    """

    def trial_balance(self, session: Session, as_of_date: date) -> TrialBalanceReportRead:
        rows: list[TrialBalanceRow] = []
        for account, balance in self._balances(session, as_of_date):
            if not account.is_active and balance == ZERO:
                continue
            rows.append(
                TrialBalanceRow(
                    account_id=account.id,
                    account_code=account.code,
                    account_name=account.name,
                    account_type=account.type,
                    debit_balance=balance if balance > ZERO else to_money(ZERO),
                    credit_balance=-balance if balance < ZERO else to_money(ZERO),
                )
            )

        total_debits = sum_money(row.debit_balance for row in rows)
        total_credits = sum_money(row.credit_balance for row in rows)
        return TrialBalanceReportRead(
            as_of_date=as_of_date,
            currency=get_settings().default_currency,
            rows=rows,
            total_debits=total_debits,
            total_credits=total_credits,
            is_balanced=is_balanced(total_debits, total_credits),
        )

    def income_statement(self, session: Session, from_date: date, to_date: date) -> IncomeStatementRead:
        deltas = posted_deltas(session, start_date=from_date, end_date=to_date)
        accounts = self._accounts(session, [AccountType.REVENUE, AccountType.EXPENSE])

        revenue: list[StatementLine] = []
        expenses: list[StatementLine] = []
        for account in accounts:
            movement = deltas.get(account.id, ZERO)
            if not account.is_active and movement == ZERO:
                continue
            line = self._line(account, natural_amount(movement, account.normal_balance))
            (revenue if account.type is AccountType.REVENUE else expenses).append(line)

        total_revenue = sum_money(line.amount for line in revenue)
        total_expenses = sum_money(line.amount for line in expenses)
        return IncomeStatementRead(
            from_date=from_date,
            to_date=to_date,
            currency=get_settings().default_currency,
            revenue=revenue,
            expenses=expenses,
            total_revenue=total_revenue,
            total_expenses=total_expenses,
            net_income=to_money(total_revenue - total_expenses),
        )

    def balance_sheet(self, session: Session, as_of_date: date) -> BalanceSheetRead:
        """Assets against liabilities plus equity.

        Revenue and expense balances that have not been closed into equity are
        carried as a single current-earnings equity line.
        """
        sections: dict[AccountType, list[StatementLine]] = {
            AccountType.ASSET: [],
            AccountType.LIABILITY: [],
            AccountType.EQUITY: [],
        }
        current_earnings = ZERO
        for account, balance in self._balances(session, as_of_date):
            amount = natural_amount(balance, account.normal_balance)
            if account.type is AccountType.REVENUE:
                current_earnings += amount
            elif account.type is AccountType.EXPENSE:
                current_earnings -= amount
            elif account.is_active or balance != ZERO:
                sections[account.type].append(self._line(account, amount))

        current_earnings = to_money(current_earnings)
        equity = sections[AccountType.EQUITY] + [
            StatementLine(account_id=None, account_code=None, account_name=CURRENT_EARNINGS_LABEL, amount=current_earnings)
        ]
        total_assets = sum_money(line.amount for line in sections[AccountType.ASSET])
        total_liabilities = sum_money(line.amount for line in sections[AccountType.LIABILITY])
        total_equity = sum_money(line.amount for line in equity)
        return BalanceSheetRead(
            as_of_date=as_of_date,
            currency=get_settings().default_currency,
            assets=sections[AccountType.ASSET],
            liabilities=sections[AccountType.LIABILITY],
            equity=equity,
            total_assets=total_assets,
            total_liabilities=total_liabilities,
            total_equity=total_equity,
            current_earnings=current_earnings,
            is_balanced=is_balanced(total_assets, total_liabilities + total_equity),
        )

    def cash_flow_statement(self, session: Session, from_date: date, to_date: date) -> CashFlowStatementRead:
        stmt = (
            select(
                JournalEntryLine.cash_flow_category,
                JournalEntryLine.account_id,
                func.coalesce(func.sum(JournalEntryLine.debit_amount), 0),
                func.coalesce(func.sum(JournalEntryLine.credit_amount), 0),
            )
            .join(JournalEntry, JournalEntry.id == JournalEntryLine.journal_entry_id)
            .where(
                JournalEntry.status.in_(POSTED_STATUSES),
                JournalEntryLine.cash_flow_category.is_not(None),
                JournalEntry.posting_date >= from_date,
                JournalEntry.posting_date <= to_date,
            )
            .group_by(JournalEntryLine.cash_flow_category, JournalEntryLine.account_id)
        )
        records = session.execute(stmt).all()
        account_ids = sorted({row[1] for row in records}, key=str)
        accounts = {
            account.id: account for account in session.scalars(select(Account).where(Account.id.in_(account_ids))).all()
        }

        buckets: dict[CashFlowCategory, list[StatementLine]] = {category: [] for category in CashFlowCategory}
        for category, account_id, debit, credit in records:
            account = accounts[account_id]
            buckets[CashFlowCategory(category)].append(self._line(account, to_money(debit) - to_money(credit)))

        sections = {
            category: CashFlowSection(
                category=category,
                lines=sorted(lines, key=lambda line: line.account_code or ""),
                total=sum_money(line.amount for line in lines),
            )
            for category, lines in buckets.items()
        }
        return CashFlowStatementRead(
            from_date=from_date,
            to_date=to_date,
            currency=get_settings().default_currency,
            operating=sections[CashFlowCategory.OPERATING],
            investing=sections[CashFlowCategory.INVESTING],
            financing=sections[CashFlowCategory.FINANCING],
            net_cash_flow=sum_money(section.total for section in sections.values()),
        )

    def _balances(self, session: Session, as_of_date: date) -> list[tuple[Account, Decimal]]:
        deltas: dict[uuid.UUID, Decimal] = posted_deltas(session, end_date=as_of_date)
        return [
            (account, to_money(account.opening_balance) + deltas.get(account.id, ZERO))
            for account in self._accounts(session)
        ]

    @staticmethod
    def _accounts(session: Session, types: list[AccountType] | None = None) -> list[Account]:
        stmt = select(Account)
        if types is not None:
            stmt = stmt.where(Account.type.in_(types))
        return list(session.scalars(stmt.order_by(Account.code.asc())).all())

    @staticmethod
    def _line(account: Account, amount: Decimal) -> StatementLine:
        return StatementLine(
            account_id=account.id,
            account_code=account.code,
            account_name=account.name,
            category=account.category,
            amount=to_money(amount),
        )


statement_generator = StatementGenerator()

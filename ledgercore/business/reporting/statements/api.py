from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ledgercore.business.reporting.statements.schemas import (
    BalanceSheetRead,
    CashFlowStatementRead,
    IncomeStatementRead,
    TrialBalanceReportRead,
)
from ledgercore.business.reporting.statements.service import statement_generator
from ledgercore.core.database import get_db


router = APIRouter(prefix="/reports/finance", tags=["reports", "finance"])


@router.get("/trial-balance", response_model=TrialBalanceReportRead)
def trial_balance(
    as_of_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
) -> TrialBalanceReportRead:
    return statement_generator.trial_balance(db, as_of_date or date.today())


@router.get("/income-statement", response_model=IncomeStatementRead)
def income_statement(
    from_date: date = Query(),
    to_date: date = Query(),
    db: Session = Depends(get_db),
) -> IncomeStatementRead:
    return statement_generator.income_statement(db, from_date, to_date)


@router.get("/balance-sheet", response_model=BalanceSheetRead)
def balance_sheet(
    as_of_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
) -> BalanceSheetRead:
    return statement_generator.balance_sheet(db, as_of_date or date.today())


@router.get("/cash-flow", response_model=CashFlowStatementRead)
def cash_flow_statement(
    from_date: date = Query(),
    to_date: date = Query(),
    db: Session = Depends(get_db),
) -> CashFlowStatementRead:
    return statement_generator.cash_flow_statement(db, from_date, to_date)

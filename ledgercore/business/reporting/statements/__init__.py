from ledgercore.business.reporting.statements.api import router
from ledgercore.business.reporting.statements.schemas import (
    BalanceSheetRead,
    CashFlowSection,
    CashFlowStatementRead,
    IncomeStatementRead,
    StatementLine,
    TrialBalanceReportRead,
    TrialBalanceRow,
)
from ledgercore.business.reporting.statements.service import StatementGenerator, statement_generator

__all__ = [
    "router",
    "BalanceSheetRead",
    "CashFlowSection",
    "CashFlowStatementRead",
    "IncomeStatementRead",
    "StatementLine",
    "TrialBalanceReportRead",
    "TrialBalanceRow",
    "StatementGenerator",
    "statement_generator",
]

from ledgercore.business.budgeting.api import router
from ledgercore.business.budgeting.models import Budget, BudgetLine
from ledgercore.business.budgeting.schemas import (
    BudgetCreate,
    BudgetLineInput,
    BudgetLineRead,
    BudgetLineVarianceRead,
    BudgetRead,
    BudgetVsActualRead,
)
from ledgercore.business.budgeting.service import BudgetTracker, budget_tracker

__all__ = [
    "router",
    "Budget",
    "BudgetLine",
    "BudgetCreate",
    "BudgetLineInput",
    "BudgetLineRead",
    "BudgetLineVarianceRead",
    "BudgetRead",
    "BudgetVsActualRead",
    "BudgetTracker",
    "budget_tracker",
]

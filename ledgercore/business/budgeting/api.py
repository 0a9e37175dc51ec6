from __future__ import annotations

from datetime import date
import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ledgercore.business.budgeting.schemas import BudgetCreate, BudgetRead, BudgetVsActualRead
from ledgercore.business.budgeting.service import budget_tracker
from ledgercore.core.auth import AuthUser, get_current_user
from ledgercore.core.database import get_db


router = APIRouter(prefix="/budgets", tags=["budgets"])


@router.post("", response_model=BudgetRead, status_code=status.HTTP_201_CREATED)
def create_budget(
    payload: BudgetCreate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> BudgetRead:
    return budget_tracker.create_budget(db, payload, user.sub)


@router.get("", response_model=list[BudgetRead])
def list_budgets(
    financial_year: int | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[BudgetRead]:
    return budget_tracker.list_budgets(db, financial_year)


@router.get("/{budget_id}", response_model=BudgetRead)
def get_budget(budget_id: uuid.UUID, db: Session = Depends(get_db)) -> BudgetRead:
    return budget_tracker.get_budget(db, budget_id)


@router.put("/{budget_id}", response_model=BudgetRead)
def update_budget(
    budget_id: uuid.UUID,
    payload: BudgetCreate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> BudgetRead:
    return budget_tracker.update_budget(db, budget_id, payload, user.sub)


@router.post("/{budget_id}/approve", response_model=BudgetRead)
def approve_budget(
    budget_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> BudgetRead:
    return budget_tracker.approve_budget(db, budget_id, user.sub)


@router.get("/{budget_id}/vs-actual", response_model=BudgetVsActualRead)
def budget_vs_actual(
    budget_id: uuid.UUID,
    as_of_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
) -> BudgetVsActualRead:
    return budget_tracker.budget_vs_actual(db, budget_id, as_of_date or date.today())


@router.post("/{budget_id}/refresh-actuals", response_model=BudgetRead)
def refresh_actuals(
    budget_id: uuid.UUID,
    as_of_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
) -> BudgetRead:
    return budget_tracker.refresh_actuals(db, budget_id, as_of_date or date.today())

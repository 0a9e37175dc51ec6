from __future__ import annotations

from datetime import date
import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ledgercore.core.auth import AuthUser, get_current_user
from ledgercore.core.database import get_db
from ledgercore.platform.ledger.accounts import account_registry
from ledgercore.platform.ledger.journal import journal_engine
from ledgercore.platform.ledger.periods import period_manager
from ledgercore.platform.ledger.schemas import (
    AccountBalanceRead,
    AccountCreate,
    AccountRead,
    AccountUpdate,
    FinancialPeriodCreate,
    FinancialPeriodRead,
    GenerateMonthlyPeriodsRequest,
    JournalEntryCreate,
    JournalEntryPage,
    JournalEntryRead,
    JournalEntryReverseRequest,
)
from ledgercore.platform.ledger.seed import seed_chart_of_accounts as seed_chart
from ledgercore.platform.ledger.types import AccountType, JournalEntryStatus


router = APIRouter(prefix="/ledger", tags=["ledger"])


@router.post("/accounts", response_model=AccountRead, status_code=status.HTTP_201_CREATED)
def create_account(
    payload: AccountCreate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> AccountRead:
    return account_registry.create_account(db, payload, user.sub)


@router.get("/accounts", response_model=list[AccountRead])
def list_accounts(
    account_type: AccountType | None = Query(default=None),
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> list[AccountRead]:
    return account_registry.list_accounts(db, account_type=account_type, include_inactive=include_inactive)


@router.get("/accounts/by-code/{code}", response_model=AccountRead)
def get_account_by_code(code: str, db: Session = Depends(get_db)) -> AccountRead:
    return account_registry.get_account_by_code(db, code)


@router.get("/accounts/{account_id}", response_model=AccountRead)
def get_account(account_id: uuid.UUID, db: Session = Depends(get_db)) -> AccountRead:
    return account_registry.get_account(db, account_id)


@router.patch("/accounts/{account_id}", response_model=AccountRead)
def update_account(
    account_id: uuid.UUID,
    payload: AccountUpdate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> AccountRead:
    return account_registry.update_account(db, account_id, payload, user.sub)


@router.post("/accounts/{account_id}/deactivate", response_model=AccountRead)
def deactivate_account(
    account_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> AccountRead:
    return account_registry.deactivate(db, account_id, user.sub)


@router.get("/accounts/{account_id}/balance", response_model=AccountBalanceRead)
def get_account_balance(
    account_id: uuid.UUID,
    as_of_date: date | None = Query(default=None),
    rollup: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> AccountBalanceRead:
    account = account_registry.get_account(db, account_id)
    if rollup:
        balance = account_registry.get_rollup_balance(db, account_id, as_of_date)
    else:
        balance = account_registry.get_balance(db, account_id, as_of_date)
    return AccountBalanceRead(
        account_id=account.id,
        account_code=account.code,
        as_of_date=as_of_date,
        balance=balance,
        normal_balance=account.normal_balance,
    )


@router.get("/accounts/{account_id}/path", response_model=list[str])
def get_account_path(account_id: uuid.UUID, db: Session = Depends(get_db)) -> list[str]:
    return account_registry.get_hierarchy_path(db, account_id)


@router.post("/journal-entries", response_model=JournalEntryRead, status_code=status.HTTP_201_CREATED)
def create_journal_entry(
    payload: JournalEntryCreate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> JournalEntryRead:
    return journal_engine.create_draft(db, payload, user.sub)


@router.get("/journal-entries", response_model=JournalEntryPage)
def list_journal_entries(
    page_number: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=500),
    from_date: date | None = Query(default=None),
    to_date: date | None = Query(default=None),
    entry_status: JournalEntryStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
) -> JournalEntryPage:
    return journal_engine.list_entries(
        db,
        page_number=page_number,
        page_size=page_size,
        from_date=from_date,
        to_date=to_date,
        status=entry_status,
    )


@router.get("/journal-entries/{entry_id}", response_model=JournalEntryRead)
def get_journal_entry(entry_id: uuid.UUID, db: Session = Depends(get_db)) -> JournalEntryRead:
    return journal_engine.get_entry(db, entry_id)


@router.put("/journal-entries/{entry_id}", response_model=JournalEntryRead)
def update_journal_entry(
    entry_id: uuid.UUID,
    payload: JournalEntryCreate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> JournalEntryRead:
    return journal_engine.update_draft(db, entry_id, payload, user.sub)


@router.post("/journal-entries/{entry_id}/post", response_model=JournalEntryRead)
def post_journal_entry(
    entry_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> JournalEntryRead:
    return journal_engine.post(db, entry_id, user.sub)


@router.post("/journal-entries/{entry_id}/reverse", response_model=JournalEntryRead)
def reverse_journal_entry(
    entry_id: uuid.UUID,
    payload: JournalEntryReverseRequest,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> JournalEntryRead:
    return journal_engine.reverse(db, entry_id, payload.reason, user.sub)


@router.post("/periods", response_model=FinancialPeriodRead, status_code=status.HTTP_201_CREATED)
def create_period(
    payload: FinancialPeriodCreate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> FinancialPeriodRead:
    return period_manager.create_period(db, payload, user.sub)


@router.post("/periods/generate", response_model=list[FinancialPeriodRead], status_code=status.HTTP_201_CREATED)
def generate_periods(
    payload: GenerateMonthlyPeriodsRequest,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> list[FinancialPeriodRead]:
    return period_manager.generate_monthly_periods(
        db,
        payload.financial_year,
        start_month=payload.start_month,
        created_by=user.sub,
    )


@router.get("/periods", response_model=list[FinancialPeriodRead])
def list_periods(
    financial_year: int | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[FinancialPeriodRead]:
    return period_manager.list_periods(db, financial_year)


@router.get("/periods/current", response_model=FinancialPeriodRead)
def get_current_period(db: Session = Depends(get_db)) -> FinancialPeriodRead:
    return period_manager.get_current_period(db)


@router.get("/periods/for-date", response_model=FinancialPeriodRead)
def get_period_for_date(on_date: date = Query(alias="date"), db: Session = Depends(get_db)) -> FinancialPeriodRead:
    return period_manager.get_period_for(db, on_date)


@router.get("/periods/{period_id}", response_model=FinancialPeriodRead)
def get_period(period_id: uuid.UUID, db: Session = Depends(get_db)) -> FinancialPeriodRead:
    return period_manager.get_period(db, period_id)


@router.post("/periods/{period_id}/current", response_model=FinancialPeriodRead)
def set_current_period(
    period_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> FinancialPeriodRead:
    return period_manager.set_current_period(db, period_id, user.sub)


@router.post("/periods/{period_id}/close", response_model=FinancialPeriodRead)
def close_period(
    period_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> FinancialPeriodRead:
    return period_manager.close_period(db, period_id, user.sub)


@router.post("/seeds/chart-of-accounts", response_model=list[AccountRead])
def seed_chart_of_accounts(
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_current_user),
) -> list[AccountRead]:
    return seed_chart(db, created_by=user.sub)

from __future__ import annotations

from collections.abc import Generator
from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ledgercore import audit
from ledgercore.business.budgeting.schemas import BudgetCreate
from ledgercore.business.budgeting.service import BudgetTracker
from ledgercore.core.database import Base
from ledgercore.platform.ledger.accounts import AccountRegistry
from ledgercore.platform.ledger.errors import BudgetNotDraftError, DuplicateBudgetError, InvalidAccountError
from ledgercore.platform.ledger.journal import JournalEngine
from ledgercore.platform.ledger.periods import PeriodManager
from ledgercore.platform.ledger.schemas import JournalEntryCreate
from ledgercore.platform.ledger.seed import seed_chart_of_accounts
from ledgercore.platform.ledger.types import BudgetStatus


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    audit.audit_entries.clear()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def chart(db_session: Session) -> dict[str, object]:
    PeriodManager().generate_monthly_periods(db_session, 2024, created_by="admin")
    return {account.code: account for account in seed_chart_of_accounts(db_session, created_by="admin")}


def _spend(session: Session, chart: dict[str, object], on: date, amount: str, expense_code: str = "5010") -> None:
    engine = JournalEngine()
    draft = engine.create_draft(
        session,
        JournalEntryCreate.model_validate(
            {
                "entry_date": on.isoformat(),
                "description": "Payroll",
                "lines": [
                    {"account_id": str(chart[expense_code].id), "debit_amount": amount},
                    {"account_id": str(chart["1020"].id), "credit_amount": amount},
                ],
            }
        ),
        "clerk",
    )
    engine.post(session, draft.id, "approver")


def _budget(chart: dict[str, object], amount: str = "1000000", name: str = "FY2024 Operating", **extra: object) -> BudgetCreate:
    return BudgetCreate.model_validate(
        {
            "name": name,
            "financial_year": 2024,
            "start_date": "2024-01-01",
            "end_date": "2024-12-31",
            "lines": [{"account_id": str(chart["5010"].id), "budgeted_amount": amount}],
            **extra,
        }
    )


def test_variance_against_posted_salaries(db_session: Session, chart: dict[str, object]) -> None:
    tracker = BudgetTracker()
    budget = tracker.create_budget(db_session, _budget(chart), "planner")
    _spend(db_session, chart, date(2024, 3, 31), "250000")
    _spend(db_session, chart, date(2024, 9, 30), "350000")
    line_id = budget.lines[0].id

    as_of = date(2024, 12, 31)
    assert tracker.actual_for(db_session, line_id, as_of) == Decimal("600000")
    assert tracker.variance(db_session, line_id, as_of) == Decimal("400000")
    assert tracker.variance_percent(db_session, line_id, as_of) == Decimal("40")


def test_actual_is_clipped_to_as_of_date_and_budget_window(db_session: Session, chart: dict[str, object]) -> None:
    tracker = BudgetTracker()
    budget = tracker.create_budget(
        db_session,
        _budget(chart, name="H1", end_date="2024-06-30"),
        "planner",
    )
    _spend(db_session, chart, date(2024, 3, 31), "250000")
    _spend(db_session, chart, date(2024, 9, 30), "350000")
    line_id = budget.lines[0].id

    assert tracker.actual_for(db_session, line_id, date(2024, 2, 1)) == Decimal("0")
    assert tracker.actual_for(db_session, line_id, date(2024, 12, 31)) == Decimal("250000")


def test_zero_budget_has_zero_variance_percent(db_session: Session, chart: dict[str, object]) -> None:
    tracker = BudgetTracker()
    budget = tracker.create_budget(db_session, _budget(chart, amount="0"), "planner")
    _spend(db_session, chart, date(2024, 4, 1), "100")

    line_id = budget.lines[0].id
    assert tracker.variance(db_session, line_id, date(2024, 12, 31)) == Decimal("-100")
    assert tracker.variance_percent(db_session, line_id, date(2024, 12, 31)) == Decimal("0")


def test_control_account_line_rolls_up_children(db_session: Session, chart: dict[str, object]) -> None:
    tracker = BudgetTracker()
    budget = tracker.create_budget(
        db_session,
        BudgetCreate.model_validate(
            {
                "name": "All expenses",
                "financial_year": 2024,
                "start_date": "2024-01-01",
                "end_date": "2024-12-31",
                "lines": [{"account_id": str(chart["5000"].id), "budgeted_amount": "1000"}],
            }
        ),
        "planner",
    )
    _spend(db_session, chart, date(2024, 2, 1), "300", expense_code="5010")
    _spend(db_session, chart, date(2024, 2, 2), "200", expense_code="5020")

    report = tracker.budget_vs_actual(db_session, budget.id, date(2024, 12, 31))
    assert report.lines[0].account_code == "5000"
    assert report.lines[0].actual_amount == Decimal("500")
    assert report.total_variance_percent == Decimal("50")


def test_budget_vs_actual_totals_and_refresh(db_session: Session, chart: dict[str, object]) -> None:
    tracker = BudgetTracker()
    budget = tracker.create_budget(
        db_session,
        BudgetCreate.model_validate(
            {
                "name": "Ops",
                "financial_year": 2024,
                "start_date": "2024-01-01",
                "end_date": "2024-12-31",
                "lines": [
                    {"account_id": str(chart["5010"].id), "budgeted_amount": "1000"},
                    {"account_id": str(chart["5020"].id), "budgeted_amount": "500", "notes": "Electricity"},
                ],
            }
        ),
        "planner",
    )
    _spend(db_session, chart, date(2024, 5, 5), "800", expense_code="5010")
    _spend(db_session, chart, date(2024, 5, 6), "600", expense_code="5020")

    report = tracker.budget_vs_actual(db_session, budget.id, date(2024, 12, 31))
    assert report.total_budgeted == Decimal("1500")
    assert report.total_actual == Decimal("1400")
    assert report.total_variance == Decimal("100")
    assert [row.variance for row in report.lines] == [Decimal("200"), Decimal("-100")]
    assert report.lines[1].variance_percent == Decimal("-20")

    refreshed = tracker.refresh_actuals(db_session, budget.id, date(2024, 12, 31))
    assert [line.actual_amount_cached for line in refreshed.lines] == [Decimal("800"), Decimal("600")]
    assert all(line.actual_refreshed_at is not None for line in refreshed.lines)

    _spend(db_session, chart, date(2024, 6, 1), "100", expense_code="5010")
    assert tracker.budget_vs_actual(db_session, budget.id, date(2024, 12, 31)).total_actual == Decimal("1500")


def test_duplicate_name_in_year_is_rejected(db_session: Session, chart: dict[str, object]) -> None:
    tracker = BudgetTracker()
    tracker.create_budget(db_session, _budget(chart), "planner")

    with pytest.raises(DuplicateBudgetError):
        tracker.create_budget(db_session, _budget(chart), "planner")
    assert len(tracker.list_budgets(db_session, 2024)) == 1


def test_inactive_account_cannot_be_budgeted(db_session: Session, chart: dict[str, object]) -> None:
    AccountRegistry().deactivate(db_session, chart["5040"].id, "admin")
    payload = BudgetCreate.model_validate(
        {
            "name": "Teaching",
            "financial_year": 2024,
            "start_date": "2024-01-01",
            "end_date": "2024-12-31",
            "lines": [{"account_id": str(chart["5040"].id), "budgeted_amount": "10"}],
        }
    )

    with pytest.raises(InvalidAccountError):
        BudgetTracker().create_budget(db_session, payload, "planner")


def test_budget_dates_must_be_ordered(chart: dict[str, object]) -> None:
    with pytest.raises(ValidationError):
        _budget(chart, start_date="2024-12-31", end_date="2024-01-01")


def test_approved_budget_is_frozen(db_session: Session, chart: dict[str, object]) -> None:
    tracker = BudgetTracker()
    budget = tracker.create_budget(db_session, _budget(chart), "planner")

    updated = tracker.update_budget(db_session, budget.id, _budget(chart, amount="900000"), "planner")
    assert updated.lines[0].budgeted_amount == Decimal("900000")

    approved = tracker.approve_budget(db_session, budget.id, "bursar")
    assert approved.status is BudgetStatus.APPROVED
    assert approved.approved_by == "bursar"
    assert audit.audit_entries[-1]["action"] == "budget.approved"

    with pytest.raises(BudgetNotDraftError):
        tracker.update_budget(db_session, budget.id, _budget(chart), "planner")
    with pytest.raises(BudgetNotDraftError):
        tracker.approve_budget(db_session, budget.id, "bursar")

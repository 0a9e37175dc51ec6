from __future__ import annotations

from collections.abc import Generator
from datetime import date

import pytest
from pydantic import ValidationError
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ledgercore import audit
from ledgercore.core.database import Base
from ledgercore.platform.ledger.errors import AlreadyClosedError, NotFoundError, PeriodOverlapError
from ledgercore.platform.ledger.periods import PeriodManager
from ledgercore.platform.ledger.schemas import FinancialPeriodCreate
from ledgercore.platform.ledger.types import PeriodStatus


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


def test_generate_monthly_periods_covers_the_year(db_session: Session) -> None:
    manager = PeriodManager()
    periods = manager.generate_monthly_periods(db_session, 2024, created_by="admin")

    assert len(periods) == 12
    assert periods[0].name == "FY2024 P01 Jan"
    assert periods[0].start_date == date(2024, 1, 1)
    assert periods[1].end_date == date(2024, 2, 29)
    assert periods[-1].end_date == date(2024, 12, 31)
    assert manager.get_period_for(db_session, date(2024, 6, 15)).name == "FY2024 P06 Jun"
    assert len(manager.list_periods(db_session, 2024)) == 12


def test_generate_monthly_periods_with_offset_start(db_session: Session) -> None:
    manager = PeriodManager()
    periods = manager.generate_monthly_periods(db_session, 2024, start_month=7, created_by="admin")

    assert periods[0].start_date == date(2024, 7, 1)
    assert periods[-1].start_date == date(2025, 6, 1)
    assert periods[-1].end_date == date(2025, 6, 30)


def test_overlapping_period_is_rejected(db_session: Session) -> None:
    manager = PeriodManager()
    manager.create_period(
        db_session,
        FinancialPeriodCreate(name="H1", financial_year=2024, start_date=date(2024, 1, 1), end_date=date(2024, 6, 30)),
        "admin",
    )

    with pytest.raises(PeriodOverlapError) as exc_info:
        manager.create_period(
            db_session,
            FinancialPeriodCreate(name="Q2", financial_year=2025, start_date=date(2024, 6, 1), end_date=date(2024, 8, 31)),
            "admin",
        )
    assert exc_info.value.context["existing_period"] == "H1"
    assert len(manager.list_periods(db_session)) == 1


def test_period_dates_must_be_ordered() -> None:
    with pytest.raises(ValidationError):
        FinancialPeriodCreate(name="Bad", financial_year=2024, start_date=date(2024, 2, 1), end_date=date(2024, 1, 1))


def test_close_period_is_terminal_and_blocks_posting(db_session: Session) -> None:
    manager = PeriodManager()
    june = next(
        item for item in manager.generate_monthly_periods(db_session, 2024, created_by="admin") if item.start_date.month == 6
    )

    assert manager.is_postable(db_session, date(2024, 6, 15)) is True
    closed = manager.close_period(db_session, june.id, "controller")
    assert closed.status is PeriodStatus.CLOSED
    assert closed.closed_by == "controller"
    assert closed.closed_at is not None
    assert manager.is_postable(db_session, date(2024, 6, 15)) is False
    assert manager.is_postable(db_session, date(2024, 7, 1)) is True
    assert audit.audit_entries[-1]["action"] == "ledger.period.closed"

    with pytest.raises(AlreadyClosedError) as exc_info:
        manager.close_period(db_session, june.id, "controller")
    assert exc_info.value.context["period_name"] == "FY2024 P06 Jun"


def test_no_period_means_not_postable(db_session: Session) -> None:
    manager = PeriodManager()
    assert manager.is_postable(db_session, date(2030, 1, 1)) is False
    with pytest.raises(NotFoundError):
        manager.get_period_for(db_session, date(2030, 1, 1))


def test_only_one_period_is_current(db_session: Session) -> None:
    manager = PeriodManager()
    periods = manager.generate_monthly_periods(db_session, 2024, created_by="admin")

    with pytest.raises(NotFoundError):
        manager.get_current_period(db_session)

    manager.set_current_period(db_session, periods[0].id, "admin")
    manager.set_current_period(db_session, periods[3].id, "admin")

    current = [item for item in manager.list_periods(db_session) if item.is_current]
    assert [item.id for item in current] == [periods[3].id]
    assert manager.get_current_period(db_session).id == periods[3].id

from __future__ import annotations

import calendar
import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledgercore import audit
from ledgercore.metrics import observe_period_closed
from ledgercore.platform.ledger.errors import AlreadyClosedError, NotFoundError, PeriodOverlapError
from ledgercore.platform.ledger.gateway import LedgerGateway
from ledgercore.platform.ledger.models import FinancialPeriod
from ledgercore.platform.ledger.schemas import FinancialPeriodCreate, FinancialPeriodRead
from ledgercore.platform.ledger.types import PeriodStatus


logger = logging.getLogger("ledgercore.ledger.periods")


def _month_bounds(financial_year: int, start_month: int, period: int) -> tuple[date, date]:
    month_index = (start_month - 1) + (period - 1)
    year = financial_year + (month_index // 12)
    month = (month_index % 12) + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


@dataclass(slots=True)
class PeriodManager:
    gateway: LedgerGateway = LedgerGateway()

    def create_period(self, session: Session, dto: FinancialPeriodCreate, created_by: str) -> FinancialPeriodRead:
        with self.gateway.transaction(session):
            period = self._add_period(
                session,
                name=dto.name,
                financial_year=dto.financial_year,
                start_date=dto.start_date,
                end_date=dto.end_date,
                created_by=created_by,
            )
            if dto.is_current:
                self._flag_current(session, period)

        self._audit_created(session, period, created_by)
        return FinancialPeriodRead.model_validate(period)

    def generate_monthly_periods(
        self,
        session: Session,
        financial_year: int,
        *,
        start_month: int = 1,
        created_by: str,
    ) -> list[FinancialPeriodRead]:
        created: list[FinancialPeriod] = []
        with self.gateway.transaction(session):
            for number in range(1, 13):
                start_date, end_date = _month_bounds(financial_year, start_month, number)
                created.append(
                    self._add_period(
                        session,
                        name=f"FY{financial_year} P{number:02d} {calendar.month_abbr[start_date.month]}",
                        financial_year=financial_year,
                        start_date=start_date,
                        end_date=end_date,
                        created_by=created_by,
                    )
                )

        for period in created:
            self._audit_created(session, period, created_by)
        return [FinancialPeriodRead.model_validate(item) for item in created]

    def get_period_for(self, session: Session, on_date: date) -> FinancialPeriodRead:
        period = self.gateway.load_period(session, on_date)
        if period is None:
            raise NotFoundError("no financial period covers date", posting_date=on_date)
        return FinancialPeriodRead.model_validate(period)

    def get_period(self, session: Session, period_id: uuid.UUID) -> FinancialPeriodRead:
        return FinancialPeriodRead.model_validate(self.gateway.load_period_by_id(session, period_id))

    def get_current_period(self, session: Session) -> FinancialPeriodRead:
        period = session.scalar(select(FinancialPeriod).where(FinancialPeriod.is_current.is_(True)))
        if period is None:
            raise NotFoundError("no current financial period")
        return FinancialPeriodRead.model_validate(period)

    def set_current_period(self, session: Session, period_id: uuid.UUID, changed_by: str) -> FinancialPeriodRead:
        with self.gateway.transaction(session):
            period = self.gateway.load_period_by_id(session, period_id, for_update=True)
            self._flag_current(session, period)

        audit.record(
            actor_user_id=changed_by,
            entity_type="ledger.financial_period",
            entity_id=str(period.id),
            action="ledger.period.current_set",
            before=None,
            after={"is_current": True},
            session=session,
        )
        return FinancialPeriodRead.model_validate(period)

    def list_periods(self, session: Session, financial_year: int | None = None) -> list[FinancialPeriodRead]:
        stmt = select(FinancialPeriod)
        if financial_year is not None:
            stmt = stmt.where(FinancialPeriod.financial_year == financial_year)
        rows = session.scalars(stmt.order_by(FinancialPeriod.start_date.asc())).all()
        return [FinancialPeriodRead.model_validate(item) for item in rows]

    def close_period(self, session: Session, period_id: uuid.UUID, closed_by: str) -> FinancialPeriodRead:
        """Close a period for good. There is no reopen transition."""
        with self.gateway.transaction(session):
            period = self.gateway.load_period_by_id(session, period_id, for_update=True)
            if period.status is PeriodStatus.CLOSED:
                raise AlreadyClosedError(
                    "financial period is already closed",
                    period_name=period.name,
                    closed_by=period.closed_by,
                )
            period.status = PeriodStatus.CLOSED
            period.closed_at = datetime.now(timezone.utc)
            period.closed_by = closed_by
            session.flush()

        observe_period_closed()
        logger.info("ledger.period.closed", extra={"period_name": period.name})
        audit.record(
            actor_user_id=closed_by,
            entity_type="ledger.financial_period",
            entity_id=str(period.id),
            action="ledger.period.closed",
            before={"status": PeriodStatus.ACTIVE.value},
            after={"status": PeriodStatus.CLOSED.value, "closed_by": closed_by},
            session=session,
        )
        return FinancialPeriodRead.model_validate(period)

    def is_postable(self, session: Session, on_date: date) -> bool:
        period = self.gateway.load_period(session, on_date)
        return period is not None and period.status is PeriodStatus.ACTIVE

    def _add_period(
        self,
        session: Session,
        *,
        name: str,
        financial_year: int,
        start_date: date,
        end_date: date,
        created_by: str,
    ) -> FinancialPeriod:
        clash = session.scalars(
            select(FinancialPeriod).where(
                FinancialPeriod.start_date <= end_date,
                FinancialPeriod.end_date >= start_date,
            )
        ).first()
        if clash is not None:
            raise PeriodOverlapError(
                "financial period overlaps an existing period",
                period_name=name,
                existing_period=clash.name,
            )

        period = FinancialPeriod(
            name=name,
            financial_year=financial_year,
            start_date=start_date,
            end_date=end_date,
            status=PeriodStatus.ACTIVE,
            is_current=False,
            created_by=created_by,
        )
        session.add(period)
        try:
            session.flush()
        except IntegrityError as exc:
            raise PeriodOverlapError("financial period name already used", period_name=name) from exc
        return period

    def _flag_current(self, session: Session, period: FinancialPeriod) -> None:
        session.execute(
            update(FinancialPeriod)
            .where(FinancialPeriod.id != period.id, FinancialPeriod.is_current.is_(True))
            .values(is_current=False)
            .execution_options(synchronize_session="fetch")
        )
        period.is_current = True
        session.flush()

    def _audit_created(self, session: Session, period: FinancialPeriod, created_by: str) -> None:
        audit.record(
            actor_user_id=created_by,
            entity_type="ledger.financial_period",
            entity_id=str(period.id),
            action="ledger.period.created",
            before=None,
            after={
                "name": period.name,
                "financial_year": period.financial_year,
                "start_date": period.start_date.isoformat(),
                "end_date": period.end_date.isoformat(),
            },
            session=session,
        )


period_manager = PeriodManager()

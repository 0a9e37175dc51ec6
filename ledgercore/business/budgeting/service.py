from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledgercore import audit
from ledgercore.business.budgeting.models import Budget, BudgetLine
from ledgercore.business.budgeting.repository import BudgetRepository
from ledgercore.business.budgeting.schemas import (
    BudgetCreate,
    BudgetLineInput,
    BudgetLineRead,
    BudgetLineVarianceRead,
    BudgetRead,
    BudgetVsActualRead,
)
from ledgercore.platform.ledger.accounts import AccountRegistry
from ledgercore.platform.ledger.errors import BudgetNotDraftError, DuplicateBudgetError, InvalidAccountError
from ledgercore.platform.ledger.models import Account
from ledgercore.platform.ledger.money import ZERO, natural_amount, to_money
from ledgercore.platform.ledger.types import BudgetStatus


logger = logging.getLogger("ledgercore.budgeting")

HUNDRED = Decimal("100")


def variance_percent_of(budgeted: Decimal, variance: Decimal) -> Decimal:
    if to_money(budgeted) == ZERO:
        return to_money(ZERO)
    return to_money(variance / budgeted * HUNDRED)


@dataclass(slots=True)
class BudgetTracker:
    """Budgets per financial year and their comparison against posted ledger activity.

    Actuals always come from the ledger at call time. ``refresh_actuals`` only
    writes a display cache and nothing here reads it back.
    """

    repository: BudgetRepository = BudgetRepository()
    registry: AccountRegistry = field(default_factory=AccountRegistry)

    def create_budget(self, session: Session, dto: BudgetCreate, created_by: str) -> BudgetRead:
        with self.repository.transaction(session):
            self._require_unique_name(session, dto.name, dto.financial_year)
            self._require_budgetable_accounts(session, dto.lines)
            budget = Budget(
                name=dto.name,
                description=dto.description,
                financial_year=dto.financial_year,
                start_date=dto.start_date,
                end_date=dto.end_date,
                status=BudgetStatus.DRAFT,
                created_by=created_by,
            )
            try:
                self.repository.save_budget(session, budget, [self._build_line(item) for item in dto.lines])
            except IntegrityError as exc:
                raise DuplicateBudgetError(
                    "budget name already used for financial year",
                    budget_name=dto.name,
                    financial_year=dto.financial_year,
                ) from exc

        logger.info("budget.created", extra={"budget_id": str(budget.id)})
        audit.record(
            actor_user_id=created_by,
            entity_type="budget",
            entity_id=str(budget.id),
            action="budget.created",
            before=None,
            after=self._snapshot(budget),
            session=session,
        )
        return self._to_budget_read(session, budget)

    def update_budget(self, session: Session, budget_id: uuid.UUID, dto: BudgetCreate, updated_by: str) -> BudgetRead:
        with self.repository.transaction(session):
            budget = self.repository.load_budget(session, budget_id, for_update=True)
            self._require_draft(budget)
            before = self._snapshot(budget)
            self._require_unique_name(session, dto.name, dto.financial_year, exclude_id=budget.id)
            self._require_budgetable_accounts(session, dto.lines)
            budget.name = dto.name
            budget.description = dto.description
            budget.financial_year = dto.financial_year
            budget.start_date = dto.start_date
            budget.end_date = dto.end_date
            self.repository.save_budget(session, budget, [self._build_line(item) for item in dto.lines])

        audit.record(
            actor_user_id=updated_by,
            entity_type="budget",
            entity_id=str(budget.id),
            action="budget.updated",
            before=before,
            after=self._snapshot(budget),
            session=session,
        )
        return self._to_budget_read(session, budget)

    def approve_budget(self, session: Session, budget_id: uuid.UUID, approved_by: str) -> BudgetRead:
        with self.repository.transaction(session):
            budget = self.repository.load_budget(session, budget_id, for_update=True)
            self._require_draft(budget)
            budget.status = BudgetStatus.APPROVED
            budget.approved_by = approved_by
            budget.approved_at = datetime.now(timezone.utc)
            session.flush()

        logger.info("budget.approved", extra={"budget_id": str(budget.id)})
        audit.record(
            actor_user_id=approved_by,
            entity_type="budget",
            entity_id=str(budget.id),
            action="budget.approved",
            before={"status": BudgetStatus.DRAFT.value},
            after={"status": BudgetStatus.APPROVED.value, "approved_by": approved_by},
            session=session,
        )
        return self._to_budget_read(session, budget)

    def get_budget(self, session: Session, budget_id: uuid.UUID) -> BudgetRead:
        return self._to_budget_read(session, self.repository.load_budget(session, budget_id))

    def list_budgets(self, session: Session, financial_year: int | None = None) -> list[BudgetRead]:
        stmt = select(Budget)
        if financial_year is not None:
            stmt = stmt.where(Budget.financial_year == financial_year)
        rows = session.scalars(stmt.order_by(Budget.financial_year.desc(), Budget.name.asc())).all()
        return [self._to_budget_read(session, row) for row in rows]

    def actual_for(self, session: Session, budget_line_id: uuid.UUID, as_of_date: date) -> Decimal:
        """Ledger activity for the line's account in the budget window, clipped at ``as_of_date``.

        Expressed in the account's natural sign, so spending on an expense
        account is positive. Control accounts roll up their descendants.
        """
        line = self.repository.load_budget_line(session, budget_line_id)
        budget = self.repository.load_budget(session, line.budget_id)
        account = self.repository.load_account(session, line.account_id)
        return self._actual(session, budget, account, as_of_date)

    def variance(self, session: Session, budget_line_id: uuid.UUID, as_of_date: date) -> Decimal:
        line = self.repository.load_budget_line(session, budget_line_id)
        return to_money(line.budgeted_amount) - self.actual_for(session, budget_line_id, as_of_date)

    def variance_percent(self, session: Session, budget_line_id: uuid.UUID, as_of_date: date) -> Decimal:
        line = self.repository.load_budget_line(session, budget_line_id)
        return variance_percent_of(line.budgeted_amount, self.variance(session, budget_line_id, as_of_date))

    def budget_vs_actual(self, session: Session, budget_id: uuid.UUID, as_of_date: date) -> BudgetVsActualRead:
        budget = self.repository.load_budget(session, budget_id)
        lines = self.repository.load_budget_lines(session, budget.id)
        accounts = self.repository.load_accounts(session, [line.account_id for line in lines])

        rows: list[BudgetLineVarianceRead] = []
        total_budgeted = ZERO
        total_actual = ZERO
        for line in lines:
            account = accounts[line.account_id]
            budgeted = to_money(line.budgeted_amount)
            actual = self._actual(session, budget, account, as_of_date)
            variance = budgeted - actual
            total_budgeted += budgeted
            total_actual += actual
            rows.append(
                BudgetLineVarianceRead(
                    budget_line_id=line.id,
                    account_id=account.id,
                    account_code=account.code,
                    account_name=account.name,
                    budgeted_amount=budgeted,
                    actual_amount=actual,
                    variance=to_money(variance),
                    variance_percent=variance_percent_of(budgeted, variance),
                )
            )

        total_variance = total_budgeted - total_actual
        return BudgetVsActualRead(
            budget_id=budget.id,
            budget_name=budget.name,
            financial_year=budget.financial_year,
            as_of_date=as_of_date,
            lines=rows,
            total_budgeted=to_money(total_budgeted),
            total_actual=to_money(total_actual),
            total_variance=to_money(total_variance),
            total_variance_percent=variance_percent_of(total_budgeted, total_variance),
        )

    def refresh_actuals(self, session: Session, budget_id: uuid.UUID, as_of_date: date) -> BudgetRead:
        with self.repository.transaction(session):
            budget = self.repository.load_budget(session, budget_id)
            lines = self.repository.load_budget_lines(session, budget.id)
            accounts = self.repository.load_accounts(session, [line.account_id for line in lines])
            refreshed_at = datetime.now(timezone.utc)
            for line in lines:
                line.actual_amount_cached = self._actual(session, budget, accounts[line.account_id], as_of_date)
                line.actual_refreshed_at = refreshed_at
            session.flush()

        logger.info("budget.actuals.refreshed", extra={"budget_id": str(budget.id)})
        return self._to_budget_read(session, budget)

    def _actual(self, session: Session, budget: Budget, account: Account, as_of_date: date) -> Decimal:
        window_end = min(budget.end_date, as_of_date)
        movement = self.registry.get_activity(
            session,
            account.id,
            budget.start_date,
            window_end,
            include_descendants=account.is_control_account,
        )
        return natural_amount(movement, account.normal_balance)

    def _require_unique_name(
        self,
        session: Session,
        name: str,
        financial_year: int,
        *,
        exclude_id: uuid.UUID | None = None,
    ) -> None:
        stmt = select(Budget.id).where(Budget.name == name, Budget.financial_year == financial_year)
        if exclude_id is not None:
            stmt = stmt.where(Budget.id != exclude_id)
        if session.scalar(stmt) is not None:
            raise DuplicateBudgetError(
                "budget name already used for financial year",
                budget_name=name,
                financial_year=financial_year,
            )

    def _require_budgetable_accounts(self, session: Session, lines: list[BudgetLineInput]) -> None:
        accounts = self.repository.load_accounts(session, [line.account_id for line in lines])
        for line in lines:
            account = accounts.get(line.account_id)
            if account is None:
                raise InvalidAccountError("account not found", account_id=line.account_id)
            if not account.is_active:
                raise InvalidAccountError("account is inactive", account_code=account.code)

    @staticmethod
    def _require_draft(budget: Budget) -> None:
        if budget.status is not BudgetStatus.DRAFT:
            raise BudgetNotDraftError(
                "only draft budgets can be changed",
                budget_id=budget.id,
                budget_name=budget.name,
                status=budget.status.value,
            )

    @staticmethod
    def _build_line(item: BudgetLineInput) -> BudgetLine:
        return BudgetLine(
            account_id=item.account_id,
            budgeted_amount=to_money(item.budgeted_amount),
            notes=item.notes,
        )

    @staticmethod
    def _snapshot(budget: Budget) -> dict[str, object]:
        return {
            "name": budget.name,
            "financial_year": budget.financial_year,
            "start_date": budget.start_date.isoformat(),
            "end_date": budget.end_date.isoformat(),
            "status": budget.status.value,
        }

    def _to_budget_read(self, session: Session, budget: Budget) -> BudgetRead:
        lines = [BudgetLineRead.model_validate(line) for line in self.repository.load_budget_lines(session, budget.id)]
        return BudgetRead.model_validate(budget).model_copy(update={"lines": lines})


budget_tracker = BudgetTracker()

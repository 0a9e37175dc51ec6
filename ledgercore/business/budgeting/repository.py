from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledgercore.business.budgeting.models import Budget, BudgetLine
from ledgercore.platform.ledger.errors import NotFoundError
from ledgercore.platform.ledger.gateway import LedgerGateway


class BudgetRepository(LedgerGateway):
    """Ledger gateway extended with budget loads and saves."""

    def load_budget(self, session: Session, budget_id: uuid.UUID, *, for_update: bool = False) -> Budget:
        stmt = select(Budget).where(Budget.id == budget_id)
        if for_update:
            stmt = stmt.with_for_update()
        budget = session.scalar(stmt)
        if budget is None:
            raise NotFoundError("budget not found", budget_id=budget_id)
        return budget

    def load_budget_line(self, session: Session, line_id: uuid.UUID) -> BudgetLine:
        line = session.get(BudgetLine, line_id)
        if line is None:
            raise NotFoundError("budget line not found", budget_line_id=line_id)
        return line

    def load_budget_lines(self, session: Session, budget_id: uuid.UUID) -> list[BudgetLine]:
        stmt = select(BudgetLine).where(BudgetLine.budget_id == budget_id).order_by(BudgetLine.line_number.asc())
        return list(session.scalars(stmt).all())

    def save_budget(self, session: Session, budget: Budget, lines: list[BudgetLine] | None = None) -> Budget:
        session.add(budget)
        session.flush()
        if lines is not None:
            for existing in self.load_budget_lines(session, budget.id):
                session.delete(existing)
            session.flush()
            for number, line in enumerate(lines, start=1):
                line.budget_id = budget.id
                line.line_number = number
                session.add(line)
            session.flush()
        return budget

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ledgercore.platform.ledger.errors import ConcurrentModificationError, NotFoundError
from ledgercore.platform.ledger.models import (
    Account,
    FinancialPeriod,
    JournalEntry,
    JournalEntryLine,
    LedgerSequence,
)


logger = logging.getLogger("ledgercore.ledger.gateway")


class LedgerGateway:
    """Id-based access to ledger rows plus the unit-of-work boundary.

    Services never follow ORM relationships; every cross-row lookup goes
    through one of these loaders.
    """

    @contextmanager
    def transaction(self, session: Session) -> Iterator[Session]:
        """Commit everything done inside the block, or nothing.

        A stale optimistic version is surfaced as ``ConcurrentModificationError``
        so callers can retry the whole unit.
        """
        try:
            yield session
            session.commit()
        except StaleDataError as exc:
            session.rollback()
            logger.warning("ledger.transaction.conflict", extra={"error": str(exc)})
            raise ConcurrentModificationError("ledger row changed during transaction") from exc
        except BaseException:
            session.rollback()
            raise

    def load_account(self, session: Session, account_id: uuid.UUID, *, for_update: bool = False) -> Account:
        stmt = select(Account).where(Account.id == account_id)
        if for_update:
            stmt = stmt.with_for_update()
        account = session.scalar(stmt)
        if account is None:
            raise NotFoundError("account not found", account_id=account_id)
        return account

    def find_account(self, session: Session, account_id: uuid.UUID) -> Account | None:
        return session.get(Account, account_id)

    def load_account_by_code(self, session: Session, code: str) -> Account:
        account = session.scalar(select(Account).where(Account.code == code))
        if account is None:
            raise NotFoundError("account not found", account_code=code)
        return account

    def load_accounts(
        self,
        session: Session,
        account_ids: Iterable[uuid.UUID],
        *,
        for_update: bool = False,
    ) -> dict[uuid.UUID, Account]:
        # Sorted so concurrent writers acquire row locks in the same order.
        ordered = sorted(set(account_ids), key=str)
        if not ordered:
            return {}
        stmt = select(Account).where(Account.id.in_(ordered)).order_by(Account.id)
        if for_update:
            stmt = stmt.with_for_update()
        return {account.id: account for account in session.scalars(stmt).all()}

    def load_children(self, session: Session, account_id: uuid.UUID) -> list[Account]:
        return list(session.scalars(select(Account).where(Account.parent_id == account_id).order_by(Account.code)).all())

    def save_account(self, session: Session, account: Account) -> Account:
        session.add(account)
        session.flush()
        return account

    def load_entry(self, session: Session, entry_id: uuid.UUID, *, for_update: bool = False) -> JournalEntry:
        stmt = select(JournalEntry).where(JournalEntry.id == entry_id)
        if for_update:
            stmt = stmt.with_for_update()
        entry = session.scalar(stmt)
        if entry is None:
            raise NotFoundError("journal entry not found", entry_id=entry_id)
        return entry

    def load_lines(self, session: Session, entry_id: uuid.UUID) -> list[JournalEntryLine]:
        stmt = (
            select(JournalEntryLine)
            .where(JournalEntryLine.journal_entry_id == entry_id)
            .order_by(JournalEntryLine.line_number.asc())
        )
        return list(session.scalars(stmt).all())

    def save_entry(self, session: Session, entry: JournalEntry, lines: list[JournalEntryLine] | None = None) -> JournalEntry:
        """Persist an entry header and, when given, replace its lines."""
        session.add(entry)
        session.flush()
        if lines is not None:
            for existing in self.load_lines(session, entry.id):
                session.delete(existing)
            session.flush()
            for number, line in enumerate(lines, start=1):
                line.journal_entry_id = entry.id
                line.line_number = number
                session.add(line)
            session.flush()
        return entry

    def load_period(self, session: Session, on_date: date) -> FinancialPeriod | None:
        stmt = (
            select(FinancialPeriod)
            .where(FinancialPeriod.start_date <= on_date, FinancialPeriod.end_date >= on_date)
            .order_by(FinancialPeriod.start_date.asc())
        )
        return session.scalars(stmt).first()

    def load_period_by_id(self, session: Session, period_id: uuid.UUID, *, for_update: bool = False) -> FinancialPeriod:
        stmt = select(FinancialPeriod).where(FinancialPeriod.id == period_id)
        if for_update:
            stmt = stmt.with_for_update()
        period = session.scalar(stmt)
        if period is None:
            raise NotFoundError("financial period not found", period_id=period_id)
        return period

    def next_sequence(self, session: Session, name: str) -> int:
        seq = session.scalar(select(LedgerSequence).where(LedgerSequence.name == name).with_for_update())
        if seq is None:
            seq = LedgerSequence(name=name, next_value=1)
            session.add(seq)
            session.flush()
        value = seq.next_value
        seq.next_value = value + 1
        session.flush()
        return value


ledger_gateway = LedgerGateway()

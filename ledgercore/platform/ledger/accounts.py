from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledgercore import audit
from ledgercore.platform.ledger.errors import InvalidAccountError
from ledgercore.platform.ledger.gateway import LedgerGateway
from ledgercore.platform.ledger.models import Account, JournalEntry, JournalEntryLine
from ledgercore.platform.ledger.money import ZERO, to_money
from ledgercore.platform.ledger.schemas import AccountCreate, AccountRead, AccountUpdate
from ledgercore.platform.ledger.types import POSTED_STATUSES, AccountType, normal_balance_for


logger = logging.getLogger("ledgercore.ledger.accounts")


def posted_delta_query(
    account_ids: list[uuid.UUID] | None = None,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
) -> Select[tuple[uuid.UUID, Decimal, Decimal]]:
    """Per-account debit/credit sums over posted lines, by posting date."""
    stmt = (
        select(
            JournalEntryLine.account_id,
            func.coalesce(func.sum(JournalEntryLine.debit_amount), 0),
            func.coalesce(func.sum(JournalEntryLine.credit_amount), 0),
        )
        .join(JournalEntry, JournalEntry.id == JournalEntryLine.journal_entry_id)
        .where(JournalEntry.status.in_(POSTED_STATUSES))
        .group_by(JournalEntryLine.account_id)
    )
    if account_ids is not None:
        stmt = stmt.where(JournalEntryLine.account_id.in_(account_ids))
    if start_date is not None:
        stmt = stmt.where(JournalEntry.posting_date >= start_date)
    if end_date is not None:
        stmt = stmt.where(JournalEntry.posting_date <= end_date)
    return stmt


def posted_deltas(
    session: Session,
    account_ids: list[uuid.UUID] | None = None,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
) -> dict[uuid.UUID, Decimal]:
    rows = session.execute(posted_delta_query(account_ids, start_date=start_date, end_date=end_date)).all()
    return {account_id: to_money(debit) - to_money(credit) for account_id, debit, credit in rows}


def account_snapshot(account: Account) -> dict[str, object]:
    return {
        "code": account.code,
        "name": account.name,
        "type": account.type.value,
        "parent_id": str(account.parent_id) if account.parent_id else None,
        "is_active": account.is_active,
        "allow_direct_posting": account.allow_direct_posting,
        "is_control_account": account.is_control_account,
    }


@dataclass(slots=True)
class AccountRegistry:
    gateway: LedgerGateway = LedgerGateway()

    def create_account(self, session: Session, dto: AccountCreate, created_by: str) -> AccountRead:
        expected_side = normal_balance_for(dto.type)
        if dto.normal_balance is not None and dto.normal_balance != expected_side:
            raise InvalidAccountError(
                "normal balance contradicts account type",
                account_code=dto.code,
                account_type=dto.type.value,
                normal_balance=dto.normal_balance.value,
            )
        if session.scalar(select(Account.id).where(Account.code == dto.code)) is not None:
            raise InvalidAccountError("account code already exists", account_code=dto.code)

        level = 1
        if dto.parent_id is not None:
            parent = self.gateway.find_account(session, dto.parent_id)
            if parent is None:
                raise InvalidAccountError("parent account not found", account_code=dto.code, parent_id=dto.parent_id)
            level = parent.level + 1

        allow_direct_posting = dto.allow_direct_posting
        if allow_direct_posting is None:
            allow_direct_posting = not dto.is_control_account

        opening = to_money(dto.opening_balance)
        account = Account(
            code=dto.code,
            name=dto.name,
            description=dto.description,
            type=dto.type,
            category=dto.category,
            normal_balance=expected_side,
            parent_id=dto.parent_id,
            level=level,
            opening_balance=opening,
            current_balance=opening,
            is_active=True,
            allow_direct_posting=allow_direct_posting,
            is_control_account=dto.is_control_account,
            created_by=created_by,
        )
        try:
            with self.gateway.transaction(session):
                self.gateway.save_account(session, account)
        except IntegrityError as exc:
            raise InvalidAccountError("account could not be stored", account_code=dto.code) from exc

        logger.info("ledger.account.created", extra={"account_code": account.code})
        audit.record(
            actor_user_id=created_by,
            entity_type="ledger.account",
            entity_id=str(account.id),
            action="ledger.account.created",
            before=None,
            after=account_snapshot(account),
            session=session,
        )
        return AccountRead.model_validate(account)

    def update_account(self, session: Session, account_id: uuid.UUID, dto: AccountUpdate, updated_by: str) -> AccountRead:
        account = self.gateway.load_account(session, account_id)
        before = account_snapshot(account)
        changes = dto.model_dump(exclude_unset=True)

        with self.gateway.transaction(session):
            if "parent_id" in changes and changes["parent_id"] != account.parent_id:
                self._reparent(session, account, changes["parent_id"])
            for key in ("name", "category", "allow_direct_posting", "is_control_account"):
                if changes.get(key) is not None:
                    setattr(account, key, changes[key])
            if "description" in changes:
                account.description = changes["description"]
            self.gateway.save_account(session, account)

        audit.record(
            actor_user_id=updated_by,
            entity_type="ledger.account",
            entity_id=str(account.id),
            action="ledger.account.updated",
            before=before,
            after=account_snapshot(account),
            session=session,
        )
        return AccountRead.model_validate(account)

    def get_account(self, session: Session, account_id: uuid.UUID) -> AccountRead:
        return AccountRead.model_validate(self.gateway.load_account(session, account_id))

    def get_account_by_code(self, session: Session, code: str) -> AccountRead:
        return AccountRead.model_validate(self.gateway.load_account_by_code(session, code))

    def list_accounts(
        self,
        session: Session,
        *,
        account_type: AccountType | None = None,
        include_inactive: bool = False,
    ) -> list[AccountRead]:
        stmt = select(Account)
        if account_type is not None:
            stmt = stmt.where(Account.type == account_type)
        if not include_inactive:
            stmt = stmt.where(Account.is_active.is_(True))
        rows = session.scalars(stmt.order_by(Account.code.asc())).all()
        return [AccountRead.model_validate(item) for item in rows]

    def get_balance(self, session: Session, account_id: uuid.UUID, as_of_date: date | None = None) -> Decimal:
        """Signed debit-positive balance: opening plus posted deltas up to ``as_of_date``.

        Without a date the running balance maintained at post time is returned.
        """
        account = self.gateway.load_account(session, account_id)
        if as_of_date is None:
            return to_money(account.current_balance)
        deltas = posted_deltas(session, [account.id], end_date=as_of_date)
        return to_money(account.opening_balance) + deltas.get(account.id, ZERO)

    def get_activity(
        self,
        session: Session,
        account_id: uuid.UUID,
        start_date: date,
        end_date: date,
        *,
        include_descendants: bool = False,
    ) -> Decimal:
        """Posted debit-positive movement inside an inclusive window, without the opening balance."""
        account = self.gateway.load_account(session, account_id)
        if start_date > end_date:
            return to_money(ZERO)
        member_ids = self._subtree_ids(session, account.id) if include_descendants else [account.id]
        deltas = posted_deltas(session, member_ids, start_date=start_date, end_date=end_date)
        return to_money(sum(deltas.values(), ZERO))

    def get_hierarchy_path(self, session: Session, account_id: uuid.UUID) -> list[str]:
        path: list[str] = []
        seen: set[uuid.UUID] = set()
        current = self.gateway.load_account(session, account_id)
        while True:
            if current.id in seen:
                raise InvalidAccountError("account hierarchy contains a cycle", account_code=current.code)
            seen.add(current.id)
            path.append(current.name)
            if current.parent_id is None:
                break
            current = self.gateway.load_account(session, current.parent_id)
        path.reverse()
        return path

    def get_rollup_balance(self, session: Session, account_id: uuid.UUID, as_of_date: date | None = None) -> Decimal:
        """Balance of the account and every descendant, for control-account display."""
        total = ZERO
        for member_id in self._subtree_ids(session, account_id):
            total += self.get_balance(session, member_id, as_of_date)
        return to_money(total)

    def deactivate(self, session: Session, account_id: uuid.UUID, deactivated_by: str) -> AccountRead:
        with self.gateway.transaction(session):
            account = self.gateway.load_account(session, account_id, for_update=True)
            active_children = [child.code for child in self.gateway.load_children(session, account.id) if child.is_active]
            if active_children:
                raise InvalidAccountError(
                    "account has active child accounts",
                    account_code=account.code,
                    children=",".join(active_children),
                )
            if to_money(account.current_balance) != ZERO:
                raise InvalidAccountError(
                    "account balance is not zero",
                    account_code=account.code,
                    balance=to_money(account.current_balance),
                )
            account.is_active = False
            self.gateway.save_account(session, account)

        logger.info("ledger.account.deactivated", extra={"account_code": account.code})
        audit.record(
            actor_user_id=deactivated_by,
            entity_type="ledger.account",
            entity_id=str(account.id),
            action="ledger.account.deactivated",
            before={"is_active": True},
            after={"is_active": False},
            session=session,
        )
        return AccountRead.model_validate(account)

    def _reparent(self, session: Session, account: Account, parent_id: uuid.UUID | None) -> None:
        if parent_id is None:
            new_level = 1
        else:
            parent = self.gateway.find_account(session, parent_id)
            if parent is None:
                raise InvalidAccountError("parent account not found", account_code=account.code, parent_id=parent_id)
            if parent.id in self._subtree_ids(session, account.id):
                raise InvalidAccountError(
                    "parent would create a cycle",
                    account_code=account.code,
                    parent_code=parent.code,
                )
            new_level = parent.level + 1

        account.parent_id = parent_id
        shift = new_level - account.level
        if shift:
            for member_id in self._subtree_ids(session, account.id):
                member = self.gateway.load_account(session, member_id)
                member.level += shift

    def _subtree_ids(self, session: Session, root_id: uuid.UUID) -> list[uuid.UUID]:
        ordered: list[uuid.UUID] = []
        pending = [root_id]
        seen: set[uuid.UUID] = set()
        while pending:
            current = pending.pop()
            if current in seen:
                continue
            seen.add(current)
            ordered.append(current)
            pending.extend(child.id for child in self.gateway.load_children(session, current))
        return ordered


account_registry = AccountRegistry()

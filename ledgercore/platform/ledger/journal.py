from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledgercore import audit
from ledgercore.core.config import get_settings
from ledgercore.metrics import (
    observe_ledger_entries_posted,
    observe_ledger_entry_reversed,
    observe_ledger_lines_posted,
    observe_ledger_post_failure,
    observe_ledger_post_retry,
)
from ledgercore.otel import get_tracer
from ledgercore.platform.ledger.errors import (
    AlreadyReversedError,
    ClosedPeriodError,
    ConcurrentModificationError,
    EntryNotDraftError,
    InvalidAccountError,
    InvalidEntryError,
    LedgerError,
    NotPostedError,
    UnbalancedEntryError,
)
from ledgercore.platform.ledger.gateway import LedgerGateway
from ledgercore.platform.ledger.models import JournalEntry, JournalEntryLine
from ledgercore.platform.ledger.money import is_balanced, sum_money, to_money
from ledgercore.platform.ledger.schemas import (
    JournalEntryCreate,
    JournalEntryPage,
    JournalEntryRead,
    JournalLineInput,
    JournalLineRead,
)
from ledgercore.platform.ledger.types import JournalEntryStatus, PeriodStatus


logger = logging.getLogger("ledgercore.ledger.journal")
tracer = get_tracer("ledgercore.ledger")

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def _failure_reason(exc: LedgerError) -> str:
    return _CAMEL_RE.sub("_", type(exc).__name__.removesuffix("Error")).lower()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class JournalEngine:
    """Draft -> Posted -> Reversed state machine over the ledger.

    Every transition runs inside one ``LedgerGateway.transaction`` so account
    balances and entry status move together or not at all.
    """

    gateway: LedgerGateway = LedgerGateway()
    clock: Callable[[], date] = date.today
    max_retries: int | None = None

    def create_draft(self, session: Session, dto: JournalEntryCreate, created_by: str) -> JournalEntryRead:
        with self.gateway.transaction(session):
            self._require_known_accounts(session, dto.lines)
            entry = JournalEntry(
                entry_number=self._next_entry_number(session, dto.entry_date),
                entry_date=dto.entry_date,
                posting_date=dto.posting_date or dto.entry_date,
                description=dto.description,
                reference_number=dto.reference_number,
                source_document_type=dto.source_document_type,
                source_document_id=dto.source_document_id,
                status=JournalEntryStatus.DRAFT,
                is_reversal=False,
                created_by=created_by,
            )
            lines = [self._build_line(item) for item in dto.lines]
            self._apply_totals(entry, lines)
            self._save_with_lines(session, entry, lines)

        logger.info("ledger.entry.drafted", extra={"entry_id": str(entry.id), "entry_number": entry.entry_number})
        audit.record(
            actor_user_id=created_by,
            entity_type="ledger.journal_entry",
            entity_id=str(entry.id),
            action="ledger.entry.created",
            before=None,
            after=self._snapshot(entry),
            session=session,
        )
        return self._to_entry_read(session, entry)

    def update_draft(
        self,
        session: Session,
        entry_id: uuid.UUID,
        dto: JournalEntryCreate,
        updated_by: str,
    ) -> JournalEntryRead:
        with self.gateway.transaction(session):
            entry = self.gateway.load_entry(session, entry_id, for_update=True)
            if entry.status is not JournalEntryStatus.DRAFT:
                raise EntryNotDraftError(
                    "only draft entries can be edited",
                    entry_id=entry.id,
                    entry_number=entry.entry_number,
                    status=entry.status.value,
                )
            before = self._snapshot(entry)
            self._require_known_accounts(session, dto.lines)
            entry.entry_date = dto.entry_date
            entry.posting_date = dto.posting_date or dto.entry_date
            entry.description = dto.description
            entry.reference_number = dto.reference_number
            entry.source_document_type = dto.source_document_type
            entry.source_document_id = dto.source_document_id
            lines = [self._build_line(item) for item in dto.lines]
            self._apply_totals(entry, lines)
            self._save_with_lines(session, entry, lines)

        audit.record(
            actor_user_id=updated_by,
            entity_type="ledger.journal_entry",
            entity_id=str(entry.id),
            action="ledger.entry.updated",
            before=before,
            after=self._snapshot(entry),
            session=session,
        )
        return self._to_entry_read(session, entry)

    def get_entry(self, session: Session, entry_id: uuid.UUID) -> JournalEntryRead:
        return self._to_entry_read(session, self.gateway.load_entry(session, entry_id))

    def list_entries(
        self,
        session: Session,
        *,
        page_number: int = 1,
        page_size: int = 50,
        from_date: date | None = None,
        to_date: date | None = None,
        status: JournalEntryStatus | None = None,
    ) -> JournalEntryPage:
        page_number = max(1, page_number)
        page_size = min(max(1, page_size), 500)

        stmt = select(JournalEntry)
        if from_date is not None:
            stmt = stmt.where(JournalEntry.entry_date >= from_date)
        if to_date is not None:
            stmt = stmt.where(JournalEntry.entry_date <= to_date)
        if status is not None:
            stmt = stmt.where(JournalEntry.status == status)

        total = session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        rows = session.scalars(
            stmt.order_by(JournalEntry.entry_date.desc(), JournalEntry.entry_number.desc())
            .offset((page_number - 1) * page_size)
            .limit(page_size)
        ).all()
        return JournalEntryPage(
            items=[self._to_entry_read(session, row) for row in rows],
            page_number=page_number,
            page_size=page_size,
            total_count=total,
        )

    def post(self, session: Session, entry_id: uuid.UUID, posted_by: str) -> JournalEntryRead:
        with tracer.start_as_current_span("ledger.post") as span:
            span.set_attribute("ledger.entry_id", str(entry_id))
            entry, line_count = self._run_with_retry(
                entry_id,
                lambda: self._post_once(session, entry_id, posted_by),
            )
            span.set_attribute("ledger.entry_number", entry.entry_number)
            span.set_attribute("ledger.line_count", line_count)

        observe_ledger_entries_posted()
        observe_ledger_lines_posted(line_count)
        logger.info(
            "ledger.entry.posted",
            extra={"entry_id": str(entry.id), "entry_number": entry.entry_number},
        )
        audit.record(
            actor_user_id=posted_by,
            entity_type="ledger.journal_entry",
            entity_id=str(entry.id),
            action="ledger.entry.posted",
            before={"status": JournalEntryStatus.DRAFT.value},
            after={
                "status": JournalEntryStatus.POSTED.value,
                "posting_date": entry.posting_date.isoformat(),
                "total_debit": str(entry.total_debit),
                "total_credit": str(entry.total_credit),
                "line_count": line_count,
            },
            session=session,
        )
        return self._to_entry_read(session, entry)

    def reverse(self, session: Session, entry_id: uuid.UUID, reason: str, reversed_by: str) -> JournalEntryRead:
        """Post a mirror of ``entry_id`` dated today and flag the original REVERSED.

        The mirror obeys the same period lock as any other posting.
        """
        with tracer.start_as_current_span("ledger.reverse") as span:
            span.set_attribute("ledger.entry_id", str(entry_id))
            mirror, line_count = self._run_with_retry(
                entry_id,
                lambda: self._reverse_once(session, entry_id, reason, reversed_by),
            )
            span.set_attribute("ledger.reversal_entry_id", str(mirror.id))

        observe_ledger_entry_reversed()
        observe_ledger_entries_posted()
        observe_ledger_lines_posted(line_count)
        logger.info(
            "ledger.entry.reversed",
            extra={"entry_id": str(entry_id), "entry_number": mirror.entry_number, "reason": reason},
        )
        audit.record(
            actor_user_id=reversed_by,
            entity_type="ledger.journal_entry",
            entity_id=str(entry_id),
            action="ledger.entry.reversed",
            before={"status": JournalEntryStatus.POSTED.value},
            after={
                "status": JournalEntryStatus.REVERSED.value,
                "reversal_entry_id": str(mirror.id),
                "reason": reason,
            },
            session=session,
        )
        audit.record(
            actor_user_id=reversed_by,
            entity_type="ledger.journal_entry",
            entity_id=str(mirror.id),
            action="ledger.entry.posted",
            before=None,
            after={
                "status": JournalEntryStatus.POSTED.value,
                "reverses_entry_id": str(entry_id),
                "posting_date": mirror.posting_date.isoformat(),
            },
            session=session,
        )
        return self._to_entry_read(session, mirror)

    def _run_with_retry(
        self,
        entry_id: uuid.UUID,
        operation: Callable[[], tuple[JournalEntry, int]],
    ) -> tuple[JournalEntry, int]:
        attempts = max(1, self.max_retries if self.max_retries is not None else get_settings().ledger_post_max_retries)
        attempt = 1
        while True:
            try:
                return operation()
            except ConcurrentModificationError as exc:
                if attempt >= attempts:
                    observe_ledger_post_failure("concurrent_modification")
                    logger.warning(
                        "ledger.post.rejected",
                        extra={"entry_id": str(entry_id), "reason": "concurrent_modification", "attempt": attempt},
                    )
                    raise ConcurrentModificationError(
                        "ledger rows kept changing during posting",
                        entry_id=entry_id,
                        attempts=attempt,
                    ) from exc
                observe_ledger_post_retry()
                logger.warning("ledger.post.retry", extra={"entry_id": str(entry_id), "attempt": attempt})
                attempt += 1
            except LedgerError as exc:
                reason = _failure_reason(exc)
                observe_ledger_post_failure(reason)
                logger.warning(
                    "ledger.post.rejected",
                    extra={"entry_id": str(entry_id), "reason": reason, "error": str(exc)},
                )
                raise

    def _post_once(self, session: Session, entry_id: uuid.UUID, posted_by: str) -> tuple[JournalEntry, int]:
        with self.gateway.transaction(session):
            entry = self.gateway.load_entry(session, entry_id, for_update=True)
            line_count = self._apply_posting(session, entry, posted_by)
        return entry, line_count

    def _reverse_once(
        self,
        session: Session,
        entry_id: uuid.UUID,
        reason: str,
        reversed_by: str,
    ) -> tuple[JournalEntry, int]:
        with self.gateway.transaction(session):
            original = self.gateway.load_entry(session, entry_id, for_update=True)
            if original.reversed_by_entry_id is not None or original.status is JournalEntryStatus.REVERSED:
                raise AlreadyReversedError(
                    "journal entry already reversed",
                    entry_id=original.id,
                    entry_number=original.entry_number,
                    reversal_entry_id=original.reversed_by_entry_id,
                )
            if original.status is not JournalEntryStatus.POSTED:
                raise NotPostedError(
                    "only posted entries can be reversed",
                    entry_id=original.id,
                    entry_number=original.entry_number,
                    status=original.status.value,
                )

            today = self.clock()
            mirror = JournalEntry(
                entry_number=self._next_entry_number(session, today),
                entry_date=today,
                posting_date=today,
                description=f"Reversal of {original.entry_number}: {reason}",
                reference_number=original.entry_number,
                source_document_type=original.source_document_type,
                source_document_id=original.source_document_id,
                status=JournalEntryStatus.DRAFT,
                is_reversal=True,
                reverses_entry_id=original.id,
                reversal_reason=reason,
                created_by=reversed_by,
            )
            lines = [
                JournalEntryLine(
                    account_id=line.account_id,
                    description=line.description,
                    debit_amount=to_money(line.credit_amount),
                    credit_amount=to_money(line.debit_amount),
                    cost_center=line.cost_center,
                    project_code=line.project_code,
                    cash_flow_category=line.cash_flow_category,
                )
                for line in self.gateway.load_lines(session, original.id)
            ]
            self._apply_totals(mirror, lines)
            self._save_with_lines(session, mirror, lines)
            line_count = self._apply_posting(session, mirror, reversed_by)

            original.status = JournalEntryStatus.REVERSED
            original.reversed_by_entry_id = mirror.id
            original.reversal_reason = reason
            session.flush()
        return mirror, line_count

    def _apply_posting(self, session: Session, entry: JournalEntry, posted_by: str) -> int:
        """Validate and apply ``entry`` inside the caller's transaction."""
        if entry.status is not JournalEntryStatus.DRAFT:
            raise EntryNotDraftError(
                "only draft entries can be posted",
                entry_id=entry.id,
                entry_number=entry.entry_number,
                status=entry.status.value,
            )

        lines = self.gateway.load_lines(session, entry.id)
        self._apply_totals(entry, lines)
        if not is_balanced(entry.total_debit, entry.total_credit):
            raise UnbalancedEntryError(
                entry_id=entry.id,
                entry_number=entry.entry_number,
                total_debit=entry.total_debit,
                total_credit=entry.total_credit,
            )

        period = self.gateway.load_period(session, entry.posting_date)
        if period is None or period.status is not PeriodStatus.ACTIVE:
            raise ClosedPeriodError(
                "posting date is not in an open financial period",
                entry_id=entry.id,
                entry_number=entry.entry_number,
                posting_date=entry.posting_date,
                period_name=period.name if period is not None else None,
            )

        accounts = self.gateway.load_accounts(session, [line.account_id for line in lines], for_update=True)
        for line in lines:
            account = accounts.get(line.account_id)
            if account is None:
                raise InvalidAccountError(
                    "account not found",
                    entry_id=entry.id,
                    entry_number=entry.entry_number,
                    account_id=line.account_id,
                )
            if not account.is_active:
                raise InvalidAccountError(
                    "account is inactive",
                    entry_id=entry.id,
                    entry_number=entry.entry_number,
                    account_code=account.code,
                )
            if not account.allow_direct_posting:
                raise InvalidAccountError(
                    "account does not allow direct posting",
                    entry_id=entry.id,
                    entry_number=entry.entry_number,
                    account_code=account.code,
                )

        for line in lines:
            account = accounts[line.account_id]
            account.current_balance = (
                to_money(account.current_balance) + to_money(line.debit_amount) - to_money(line.credit_amount)
            )

        entry.status = JournalEntryStatus.POSTED
        entry.posted_by = posted_by
        entry.posted_at = _utcnow()
        session.flush()
        return len(lines)

    def _save_with_lines(self, session: Session, entry: JournalEntry, lines: list[JournalEntryLine]) -> None:
        try:
            self.gateway.save_entry(session, entry, lines)
        except IntegrityError as exc:
            raise InvalidEntryError(
                "journal lines rejected by the ledger store",
                entry_id=entry.id,
                entry_number=entry.entry_number,
                error=str(exc.orig),
            ) from exc

    def _require_known_accounts(self, session: Session, lines: list[JournalLineInput]) -> None:
        wanted = {line.account_id for line in lines}
        found = self.gateway.load_accounts(session, wanted)
        missing = sorted(str(item) for item in wanted - set(found))
        if missing:
            raise InvalidAccountError("account not found", account_id=",".join(missing))

    def _next_entry_number(self, session: Session, on_date: date) -> str:
        value = self.gateway.next_sequence(session, f"journal_entry:{on_date.year}")
        return f"JE-{on_date.year}-{value:06d}"

    @staticmethod
    def _build_line(item: JournalLineInput) -> JournalEntryLine:
        return JournalEntryLine(
            account_id=item.account_id,
            description=item.description,
            debit_amount=to_money(item.debit_amount),
            credit_amount=to_money(item.credit_amount),
            cost_center=item.cost_center,
            project_code=item.project_code,
            cash_flow_category=item.cash_flow_category,
        )

    @staticmethod
    def _apply_totals(entry: JournalEntry, lines: list[JournalEntryLine]) -> None:
        entry.total_debit = sum_money(line.debit_amount for line in lines)
        entry.total_credit = sum_money(line.credit_amount for line in lines)

    @staticmethod
    def _snapshot(entry: JournalEntry) -> dict[str, object]:
        return {
            "entry_number": entry.entry_number,
            "entry_date": entry.entry_date.isoformat(),
            "posting_date": entry.posting_date.isoformat(),
            "description": entry.description,
            "total_debit": str(entry.total_debit),
            "total_credit": str(entry.total_credit),
            "status": entry.status.value,
        }

    def _to_entry_read(self, session: Session, entry: JournalEntry) -> JournalEntryRead:
        lines = [JournalLineRead.model_validate(line) for line in self.gateway.load_lines(session, entry.id)]
        return JournalEntryRead.model_validate(entry).model_copy(update={"lines": lines})


journal_engine = JournalEngine()

from __future__ import annotations

from collections.abc import Generator
from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError
from sqlalchemy import create_engine, func, select, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ledgercore import audit
from ledgercore.core.database import Base
from ledgercore.otel import setup_inmemory_otel
from ledgercore.platform.ledger.accounts import AccountRegistry
from ledgercore.platform.ledger.errors import (
    AlreadyReversedError,
    ClosedPeriodError,
    ConcurrentModificationError,
    EntryNotDraftError,
    InvalidAccountError,
    InvalidEntryError,
    NotPostedError,
    UnbalancedEntryError,
)
from ledgercore.platform.ledger.gateway import LedgerGateway
from ledgercore.platform.ledger.journal import JournalEngine
from ledgercore.platform.ledger.models import Account, JournalEntry
from ledgercore.platform.ledger.periods import PeriodManager
from ledgercore.platform.ledger.schemas import AccountCreate, JournalEntryCreate, JournalLineInput
from ledgercore.platform.ledger.types import AccountType, CashFlowCategory, JournalEntryStatus


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
def ledger(db_session: Session) -> dict[str, object]:
    registry = AccountRegistry()
    PeriodManager().generate_monthly_periods(db_session, 2024, created_by="admin")

    def create(code: str, account_type: AccountType, **extra: object):
        return registry.create_account(
            db_session,
            AccountCreate(code=code, name=f"Account {code}", type=account_type, **extra),
            "admin",
        )

    return {
        "registry": registry,
        "cash": create("1010", AccountType.ASSET),
        "revenue": create("4010", AccountType.REVENUE),
        "salaries": create("5010", AccountType.EXPENSE),
        "control": create("1000", AccountType.ASSET, is_control_account=True),
    }


def _entry(on: date, lines: list[tuple[object, str, str]], **extra: object) -> JournalEntryCreate:
    return JournalEntryCreate.model_validate(
        {
            "entry_date": on.isoformat(),
            "description": "Tuition receipt",
            "lines": [
                {"account_id": str(account.id), "debit_amount": debit, "credit_amount": credit}
                for account, debit, credit in lines
            ],
            **extra,
        }
    )


def _balances(session: Session) -> dict[str, Decimal]:
    return {row.code: row.current_balance for row in session.scalars(select(Account)).all()}


def test_post_balanced_entry_moves_both_balances(db_session: Session, ledger: dict[str, object]) -> None:
    engine = JournalEngine()
    cash, revenue = ledger["cash"], ledger["revenue"]

    draft = engine.create_draft(
        db_session,
        _entry(date(2024, 6, 15), [(cash, "100000", "0"), (revenue, "0", "100000")]),
        "clerk",
    )
    assert draft.status is JournalEntryStatus.DRAFT
    assert draft.entry_number == "JE-2024-000001"
    assert [line.line_number for line in draft.lines] == [1, 2]
    assert _balances(db_session)["1010"] == Decimal("0")

    posted = engine.post(db_session, draft.id, "approver")

    assert posted.status is JournalEntryStatus.POSTED
    assert posted.posted_by == "approver"
    assert posted.posted_at is not None
    balances = _balances(db_session)
    assert balances["1010"] == Decimal("100000")
    assert balances["4010"] == Decimal("-100000")
    assert audit.audit_entries[-1]["action"] == "ledger.entry.posted"


def test_unbalanced_entry_is_rejected_without_touching_balances(db_session: Session, ledger: dict[str, object]) -> None:
    engine = JournalEngine()
    draft = engine.create_draft(
        db_session,
        _entry(date(2024, 6, 15), [(ledger["cash"], "100000", "0"), (ledger["revenue"], "0", "90000")]),
        "clerk",
    )
    before = _balances(db_session)

    with pytest.raises(UnbalancedEntryError) as exc_info:
        engine.post(db_session, draft.id, "approver")

    assert exc_info.value.context["entry_number"] == draft.entry_number
    assert exc_info.value.total_debit == Decimal("100000")
    assert _balances(db_session) == before
    assert engine.get_entry(db_session, draft.id).status is JournalEntryStatus.DRAFT


def test_store_failure_during_posting_rolls_back_balance_changes(
    db_session: Session, ledger: dict[str, object], monkeypatch: pytest.MonkeyPatch
) -> None:
    engine = JournalEngine()
    draft = engine.create_draft(
        db_session,
        _entry(date(2024, 6, 15), [(ledger["cash"], "500", "0"), (ledger["revenue"], "0", "500")]),
        "clerk",
    )
    before = _balances(db_session)
    real_flush = db_session.flush
    balances_at_failure: dict[str, Decimal] = {}

    def failing_flush(*args: object, **kwargs: object) -> None:
        posting = [
            obj
            for obj in db_session.dirty
            if isinstance(obj, JournalEntry) and obj.status is JournalEntryStatus.POSTED
        ]
        if posting:
            balances_at_failure.update(
                {obj.code: obj.current_balance for obj in db_session.dirty if isinstance(obj, Account)}
            )
            raise OperationalError("UPDATE ledger_account", {}, Exception("disk I/O error"))
        real_flush(*args, **kwargs)

    monkeypatch.setattr(db_session, "flush", failing_flush)

    with pytest.raises(OperationalError):
        engine.post(db_session, draft.id, "approver")

    monkeypatch.undo()
    assert balances_at_failure == {"1010": Decimal("500"), "4010": Decimal("-500")}
    assert _balances(db_session) == before
    assert engine.get_entry(db_session, draft.id).status is JournalEntryStatus.DRAFT

    posted = engine.post(db_session, draft.id, "approver")
    assert posted.status is JournalEntryStatus.POSTED
    assert _balances(db_session)["1010"] == Decimal("500")


def test_amounts_finer_than_four_places_are_rejected(db_session: Session, ledger: dict[str, object]) -> None:
    cash, revenue = ledger["cash"], ledger["revenue"]

    with pytest.raises(ValidationError):
        _entry(date(2024, 6, 15), [(cash, "0.00001", "0"), (revenue, "0", "0.00001")])

    unchecked = JournalEntryCreate.model_construct(
        entry_date=date(2024, 6, 15),
        description="Rounding dust",
        lines=[
            JournalLineInput.model_construct(account_id=cash.id, debit_amount=Decimal("0.00001")),
            JournalLineInput.model_construct(account_id=revenue.id, credit_amount=Decimal("0.00001")),
        ],
    )

    with pytest.raises(InvalidEntryError) as exc_info:
        JournalEngine().create_draft(db_session, unchecked, "clerk")

    assert exc_info.value.context["entry_number"] == "JE-2024-000001"
    assert db_session.scalar(select(func.count()).select_from(JournalEntry)) == 0


def test_sub_cent_difference_is_within_tolerance(db_session: Session, ledger: dict[str, object]) -> None:
    engine = JournalEngine()
    draft = engine.create_draft(
        db_session,
        _entry(
            date(2024, 6, 15),
            [(ledger["cash"], "100.0049", "0"), (ledger["revenue"], "0", "100")],
        ),
        "clerk",
    )

    posted = engine.post(db_session, draft.id, "approver")

    assert posted.status is JournalEntryStatus.POSTED
    assert _balances(db_session)["1010"] == Decimal("100.0049")


def test_closed_period_blocks_posting(db_session: Session, ledger: dict[str, object]) -> None:
    engine = JournalEngine()
    periods = PeriodManager()
    june = periods.get_period_for(db_session, date(2024, 6, 15))
    draft = engine.create_draft(
        db_session,
        _entry(date(2024, 6, 15), [(ledger["cash"], "500", "0"), (ledger["revenue"], "0", "500")]),
        "clerk",
    )
    periods.close_period(db_session, june.id, "controller")
    before = _balances(db_session)

    with pytest.raises(ClosedPeriodError) as exc_info:
        engine.post(db_session, draft.id, "approver")

    assert exc_info.value.context["period_name"] == "FY2024 P06 Jun"
    assert _balances(db_session) == before


def test_posting_outside_any_period_is_rejected(db_session: Session, ledger: dict[str, object]) -> None:
    engine = JournalEngine()
    draft = engine.create_draft(
        db_session,
        _entry(date(2031, 1, 5), [(ledger["cash"], "10", "0"), (ledger["revenue"], "0", "10")]),
        "clerk",
    )

    with pytest.raises(ClosedPeriodError):
        engine.post(db_session, draft.id, "approver")


def test_control_and_inactive_accounts_reject_posting(db_session: Session, ledger: dict[str, object]) -> None:
    engine = JournalEngine()
    registry: AccountRegistry = ledger["registry"]  # type: ignore[assignment]
    to_control = engine.create_draft(
        db_session,
        _entry(date(2024, 6, 15), [(ledger["control"], "10", "0"), (ledger["revenue"], "0", "10")]),
        "clerk",
    )
    with pytest.raises(InvalidAccountError) as control_exc:
        engine.post(db_session, to_control.id, "approver")
    assert control_exc.value.context["account_code"] == "1000"

    to_salaries = engine.create_draft(
        db_session,
        _entry(date(2024, 6, 15), [(ledger["salaries"], "10", "0"), (ledger["cash"], "0", "10")]),
        "clerk",
    )
    registry.deactivate(db_session, ledger["salaries"].id, "admin")
    before = _balances(db_session)
    with pytest.raises(InvalidAccountError) as inactive_exc:
        engine.post(db_session, to_salaries.id, "approver")
    assert inactive_exc.value.context["account_code"] == "5010"
    assert _balances(db_session) == before


def test_create_draft_rejects_unknown_account(db_session: Session, ledger: dict[str, object]) -> None:
    engine = JournalEngine()
    ghost = type("Ghost", (), {"id": "00000000-0000-0000-0000-000000000001"})()

    with pytest.raises(InvalidAccountError):
        engine.create_draft(
            db_session,
            _entry(date(2024, 6, 15), [(ghost, "10", "0"), (ledger["revenue"], "0", "10")]),
            "clerk",
        )
    assert db_session.scalar(select(func.count()).select_from(JournalEntry)) == 0


def test_posted_entry_cannot_be_posted_or_edited_again(db_session: Session, ledger: dict[str, object]) -> None:
    engine = JournalEngine()
    payload = _entry(date(2024, 6, 15), [(ledger["cash"], "10", "0"), (ledger["revenue"], "0", "10")])
    draft = engine.create_draft(db_session, payload, "clerk")
    engine.post(db_session, draft.id, "approver")

    with pytest.raises(EntryNotDraftError):
        engine.post(db_session, draft.id, "approver")
    with pytest.raises(EntryNotDraftError):
        engine.update_draft(db_session, draft.id, payload, "clerk")
    assert _balances(db_session)["1010"] == Decimal("10")


def test_update_draft_replaces_lines_and_totals(db_session: Session, ledger: dict[str, object]) -> None:
    engine = JournalEngine()
    draft = engine.create_draft(
        db_session,
        _entry(date(2024, 6, 15), [(ledger["cash"], "10", "0"), (ledger["revenue"], "0", "10")]),
        "clerk",
    )

    updated = engine.update_draft(
        db_session,
        draft.id,
        _entry(
            date(2024, 6, 16),
            [(ledger["cash"], "30", "0"), (ledger["revenue"], "0", "20"), (ledger["revenue"], "0", "10")],
            reference_number="RCPT-7",
        ),
        "clerk",
    )

    assert updated.entry_number == draft.entry_number
    assert updated.entry_date == date(2024, 6, 16)
    assert updated.total_debit == Decimal("30")
    assert updated.total_credit == Decimal("30")
    assert [line.line_number for line in updated.lines] == [1, 2, 3]
    assert updated.reference_number == "RCPT-7"


def test_reverse_restores_balances_and_links_entries(db_session: Session, ledger: dict[str, object]) -> None:
    engine = JournalEngine(clock=lambda: date(2024, 7, 2))
    cash, revenue = ledger["cash"], ledger["revenue"]
    draft = engine.create_draft(
        db_session,
        _entry(date(2024, 6, 15), [(cash, "100000", "0"), (revenue, "0", "100000")]),
        "clerk",
    )
    engine.post(db_session, draft.id, "approver")
    before_reverse = _balances(db_session)
    assert before_reverse["1010"] == Decimal("100000")

    mirror = engine.reverse(db_session, draft.id, "Duplicate receipt", "controller")

    original = engine.get_entry(db_session, draft.id)
    assert original.status is JournalEntryStatus.REVERSED
    assert original.reversed_by_entry_id == mirror.id
    assert mirror.status is JournalEntryStatus.POSTED
    assert mirror.is_reversal is True
    assert mirror.reverses_entry_id == original.id
    assert mirror.posting_date == date(2024, 7, 2)
    assert mirror.reference_number == original.entry_number
    assert mirror.total_debit == mirror.total_credit == Decimal("100000")
    assert [(line.debit_amount, line.credit_amount) for line in mirror.lines] == [
        (Decimal("0"), Decimal("100000")),
        (Decimal("100000"), Decimal("0")),
    ]
    balances = _balances(db_session)
    assert balances["1010"] == Decimal("0")
    assert balances["4010"] == Decimal("0")
    registry: AccountRegistry = ledger["registry"]  # type: ignore[assignment]
    assert registry.get_balance(db_session, cash.id, date(2024, 6, 30)) == Decimal("100000")
    assert registry.get_balance(db_session, cash.id, date(2024, 7, 31)) == Decimal("0")
    actions = [item["action"] for item in audit.audit_entries[-2:]]
    assert actions == ["ledger.entry.reversed", "ledger.entry.posted"]


def test_reverse_preconditions(db_session: Session, ledger: dict[str, object]) -> None:
    engine = JournalEngine(clock=lambda: date(2024, 7, 2))
    draft = engine.create_draft(
        db_session,
        _entry(date(2024, 6, 15), [(ledger["cash"], "10", "0"), (ledger["revenue"], "0", "10")]),
        "clerk",
    )

    with pytest.raises(NotPostedError):
        engine.reverse(db_session, draft.id, "Too early", "controller")

    engine.post(db_session, draft.id, "approver")
    engine.reverse(db_session, draft.id, "Mistake", "controller")
    with pytest.raises(AlreadyReversedError):
        engine.reverse(db_session, draft.id, "Again", "controller")


def test_reverse_into_closed_period_changes_nothing(db_session: Session, ledger: dict[str, object]) -> None:
    engine = JournalEngine(clock=lambda: date(2024, 7, 2))
    periods = PeriodManager()
    draft = engine.create_draft(
        db_session,
        _entry(date(2024, 6, 15), [(ledger["cash"], "10", "0"), (ledger["revenue"], "0", "10")]),
        "clerk",
    )
    engine.post(db_session, draft.id, "approver")
    periods.close_period(db_session, periods.get_period_for(db_session, date(2024, 7, 2)).id, "controller")
    entry_count = db_session.scalar(select(func.count()).select_from(JournalEntry))

    with pytest.raises(ClosedPeriodError):
        engine.reverse(db_session, draft.id, "Late", "controller")

    assert engine.get_entry(db_session, draft.id).status is JournalEntryStatus.POSTED
    assert db_session.scalar(select(func.count()).select_from(JournalEntry)) == entry_count
    assert _balances(db_session)["1010"] == Decimal("10")


def test_reverse_keeps_line_tags(db_session: Session, ledger: dict[str, object]) -> None:
    engine = JournalEngine(clock=lambda: date(2024, 8, 1))
    payload = JournalEntryCreate.model_validate(
        {
            "entry_date": "2024-06-15",
            "description": "Tagged",
            "lines": [
                {
                    "account_id": str(ledger["cash"].id),
                    "debit_amount": "75",
                    "cost_center": "CC-1",
                    "project_code": "P-9",
                    "cash_flow_category": CashFlowCategory.OPERATING.value,
                },
                {"account_id": str(ledger["revenue"].id), "credit_amount": "75"},
            ],
        }
    )
    draft = engine.create_draft(db_session, payload, "clerk")
    engine.post(db_session, draft.id, "approver")

    mirror = engine.reverse(db_session, draft.id, "Tag check", "controller")

    first = mirror.lines[0]
    assert first.cost_center == "CC-1"
    assert first.project_code == "P-9"
    assert first.cash_flow_category is CashFlowCategory.OPERATING
    assert first.credit_amount == Decimal("75")


def test_conflicting_post_is_retried(
    db_session: Session, ledger: dict[str, object], monkeypatch: pytest.MonkeyPatch
) -> None:
    engine = JournalEngine(max_retries=3)
    draft = engine.create_draft(
        db_session,
        _entry(date(2024, 6, 15), [(ledger["cash"], "40", "0"), (ledger["revenue"], "0", "40")]),
        "clerk",
    )
    original_apply = JournalEngine._apply_posting
    calls = {"count": 0}

    def flaky_apply(self: JournalEngine, session: Session, entry: JournalEntry, posted_by: str) -> int:
        calls["count"] += 1
        if calls["count"] == 1:
            raise ConcurrentModificationError("ledger row changed during transaction")
        return original_apply(self, session, entry, posted_by)

    monkeypatch.setattr(JournalEngine, "_apply_posting", flaky_apply)

    posted = engine.post(db_session, draft.id, "approver")

    assert calls["count"] == 2
    assert posted.status is JournalEntryStatus.POSTED
    assert _balances(db_session)["1010"] == Decimal("40")


def test_conflicting_post_gives_up_after_bounded_attempts(
    db_session: Session, ledger: dict[str, object], monkeypatch: pytest.MonkeyPatch
) -> None:
    engine = JournalEngine(max_retries=2)
    draft = engine.create_draft(
        db_session,
        _entry(date(2024, 6, 15), [(ledger["cash"], "40", "0"), (ledger["revenue"], "0", "40")]),
        "clerk",
    )
    calls = {"count": 0}

    def always_conflicting(self: JournalEngine, session: Session, entry: JournalEntry, posted_by: str) -> int:
        calls["count"] += 1
        raise ConcurrentModificationError("ledger row changed during transaction")

    monkeypatch.setattr(JournalEngine, "_apply_posting", always_conflicting)

    with pytest.raises(ConcurrentModificationError) as exc_info:
        engine.post(db_session, draft.id, "approver")

    assert calls["count"] == 2
    assert exc_info.value.context["attempts"] == 2
    assert engine.get_entry(db_session, draft.id).status is JournalEntryStatus.DRAFT


def test_stale_account_version_surfaces_as_concurrent_modification(
    db_session: Session, ledger: dict[str, object]
) -> None:
    gateway = LedgerGateway()
    cash_id = ledger["cash"].id
    loaded = gateway.load_account(db_session, cash_id)
    db_session.execute(
        update(Account)
        .where(Account.id == cash_id)
        .values(version=Account.version + 1)
        .execution_options(synchronize_session=False)
    )

    with pytest.raises(ConcurrentModificationError):
        with gateway.transaction(db_session):
            loaded.name = "Renamed"
            db_session.flush()

    assert gateway.load_account(db_session, cash_id).name == "Account 1010"


def test_list_entries_pages_and_filters(db_session: Session, ledger: dict[str, object]) -> None:
    engine = JournalEngine()
    ids = []
    for day in (3, 10, 17):
        draft = engine.create_draft(
            db_session,
            _entry(date(2024, 5, day), [(ledger["cash"], "10", "0"), (ledger["revenue"], "0", "10")]),
            "clerk",
        )
        ids.append(draft.id)
    engine.post(db_session, ids[0], "approver")

    first_page = engine.list_entries(db_session, page_number=1, page_size=2)
    assert first_page.total_count == 3
    assert [item.entry_date.day for item in first_page.items] == [17, 10]

    posted_only = engine.list_entries(db_session, status=JournalEntryStatus.POSTED)
    assert [item.id for item in posted_only.items] == [ids[0]]

    windowed = engine.list_entries(db_session, from_date=date(2024, 5, 5), to_date=date(2024, 5, 12))
    assert [item.id for item in windowed.items] == [ids[1]]


def test_post_emits_span(db_session: Session, ledger: dict[str, object]) -> None:
    exporter = setup_inmemory_otel()
    engine = JournalEngine()
    draft = engine.create_draft(
        db_session,
        _entry(date(2024, 6, 15), [(ledger["cash"], "10", "0"), (ledger["revenue"], "0", "10")]),
        "clerk",
    )
    exporter.clear()

    engine.post(db_session, draft.id, "approver")

    spans = [span for span in exporter.get_finished_spans() if span.name == "ledger.post"]
    assert len(spans) == 1
    assert spans[0].attributes["ledger.entry_number"] == draft.entry_number
    assert spans[0].attributes["ledger.line_count"] == 2

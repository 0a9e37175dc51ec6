from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from ledgercore.core.database import Base
from ledgercore.platform.ledger.types import (
    AccountCategory,
    AccountType,
    CashFlowCategory,
    JournalEntryStatus,
    NormalBalance,
    PeriodStatus,
)

Money = Numeric(18, 4)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum(enum_cls: type) -> Enum:
    return Enum(enum_cls, native_enum=False, length=32, validate_strings=True)


class Account(Base):
    __tablename__ = "ledger_account"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[AccountType] = mapped_column(_enum(AccountType), nullable=False)
    category: Mapped[AccountCategory | None] = mapped_column(_enum(AccountCategory), nullable=True)
    normal_balance: Mapped[NormalBalance] = mapped_column(_enum(NormalBalance), nullable=False)
    parent_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("ledger_account.id", ondelete="RESTRICT"),
        nullable=True,
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    opening_balance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    current_balance: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    allow_direct_posting: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_control_account: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("code", name="uq_ledger_account_code"),
        Index("ix_ledger_account_parent", "parent_id"),
        CheckConstraint("parent_id IS NULL OR parent_id <> id", name="ck_ledger_account_not_own_parent"),
    )


class JournalEntry(Base):
    __tablename__ = "ledger_journal_entry"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    entry_number: Mapped[str] = mapped_column(String(32), nullable=False)
    entry_date: Mapped[date] = mapped_column(Date(), nullable=False)
    posting_date: Mapped[date] = mapped_column(Date(), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    reference_number: Mapped[str | None] = mapped_column(String(128), nullable=True)
    total_debit: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    total_credit: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    status: Mapped[JournalEntryStatus] = mapped_column(
        _enum(JournalEntryStatus),
        nullable=False,
        default=JournalEntryStatus.DRAFT,
    )
    source_document_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    source_document_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    is_reversal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reverses_entry_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("ledger_journal_entry.id", ondelete="RESTRICT"),
        nullable=True,
    )
    reversed_by_entry_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("ledger_journal_entry.id", ondelete="RESTRICT"),
        nullable=True,
    )
    reversal_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    posted_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    posted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("entry_number", name="uq_ledger_entry_number"),
        Index("ix_ledger_entry_posting_date", "posting_date", "status"),
        Index("ix_ledger_entry_source", "source_document_type", "source_document_id"),
    )


class JournalEntryLine(Base):
    __tablename__ = "ledger_journal_line"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    journal_entry_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("ledger_journal_entry.id", ondelete="CASCADE"),
        nullable=False,
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("ledger_account.id", ondelete="RESTRICT"),
        nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    debit_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    credit_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"))
    cost_center: Mapped[str | None] = mapped_column(String(64), nullable=True)
    project_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    cash_flow_category: Mapped[CashFlowCategory | None] = mapped_column(_enum(CashFlowCategory), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("journal_entry_id", "line_number", name="uq_ledger_line_number"),
        Index("ix_ledger_line_account", "account_id"),
        CheckConstraint("debit_amount >= 0", name="ck_ledger_line_debit_nonnegative"),
        CheckConstraint("credit_amount >= 0", name="ck_ledger_line_credit_nonnegative"),
        CheckConstraint(
            "((debit_amount > 0 AND credit_amount = 0) OR (credit_amount > 0 AND debit_amount = 0))",
            name="ck_ledger_line_single_sided",
        ),
    )


class FinancialPeriod(Base):
    __tablename__ = "ledger_financial_period"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    financial_year: Mapped[int] = mapped_column(Integer, nullable=False)
    start_date: Mapped[date] = mapped_column(Date(), nullable=False)
    end_date: Mapped[date] = mapped_column(Date(), nullable=False)
    status: Mapped[PeriodStatus] = mapped_column(_enum(PeriodStatus), nullable=False, default=PeriodStatus.ACTIVE)
    is_current: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("financial_year", "name", name="uq_ledger_period_name"),
        Index("ix_ledger_period_dates", "start_date", "end_date"),
        CheckConstraint("start_date <= end_date", name="ck_ledger_period_date_order"),
    )


class LedgerSequence(Base):
    __tablename__ = "ledger_sequence"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    next_value: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

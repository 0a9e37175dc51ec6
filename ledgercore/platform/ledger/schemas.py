from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ledgercore.platform.ledger.types import (
    AccountCategory,
    AccountType,
    CashFlowCategory,
    JournalEntryStatus,
    NormalBalance,
    PeriodStatus,
)


class AccountCreate(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    type: AccountType
    category: AccountCategory | None = None
    normal_balance: NormalBalance | None = None
    parent_id: UUID | None = None
    opening_balance: Decimal = Decimal("0")
    is_control_account: bool = False
    allow_direct_posting: bool | None = None


class AccountUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    category: AccountCategory | None = None
    parent_id: UUID | None = None
    allow_direct_posting: bool | None = None
    is_control_account: bool | None = None


class AccountRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    name: str
    description: str | None
    type: AccountType
    category: AccountCategory | None
    normal_balance: NormalBalance
    parent_id: UUID | None
    level: int
    opening_balance: Decimal
    current_balance: Decimal
    is_active: bool
    allow_direct_posting: bool
    is_control_account: bool
    created_at: datetime


class AccountBalanceRead(BaseModel):
    account_id: UUID
    account_code: str
    as_of_date: date | None
    balance: Decimal
    normal_balance: NormalBalance


class JournalLineInput(BaseModel):
    account_id: UUID
    debit_amount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"), decimal_places=4)
    credit_amount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"), decimal_places=4)
    description: str | None = None
    cost_center: str | None = None
    project_code: str | None = None
    cash_flow_category: CashFlowCategory | None = None

    @model_validator(mode="after")
    def _single_sided(self) -> "JournalLineInput":
        if (self.debit_amount > 0) == (self.credit_amount > 0):
            raise ValueError("line must carry exactly one non-zero debit or credit amount")
        return self


class JournalEntryCreate(BaseModel):
    entry_date: date
    posting_date: date | None = None
    description: str = Field(min_length=1)
    reference_number: str | None = None
    source_document_type: str | None = None
    source_document_id: str | None = None
    lines: list[JournalLineInput] = Field(min_length=2)


class JournalLineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    journal_entry_id: UUID
    account_id: UUID
    line_number: int
    description: str | None
    debit_amount: Decimal
    credit_amount: Decimal
    cost_center: str | None
    project_code: str | None
    cash_flow_category: CashFlowCategory | None


class JournalEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    entry_number: str
    entry_date: date
    posting_date: date
    description: str
    reference_number: str | None
    total_debit: Decimal
    total_credit: Decimal
    status: JournalEntryStatus
    source_document_type: str | None
    source_document_id: str | None
    is_reversal: bool
    reverses_entry_id: UUID | None
    reversed_by_entry_id: UUID | None
    reversal_reason: str | None
    created_by: str
    posted_by: str | None
    posted_at: datetime | None
    created_at: datetime
    lines: list[JournalLineRead] = Field(default_factory=list)


class JournalEntryPage(BaseModel):
    items: list[JournalEntryRead]
    page_number: int
    page_size: int
    total_count: int


class JournalEntryReverseRequest(BaseModel):
    reason: str = Field(min_length=1)


class FinancialPeriodCreate(BaseModel):
    name: str = Field(min_length=1, max_length=128)
    financial_year: int = Field(ge=1900, le=9999)
    start_date: date
    end_date: date
    is_current: bool = False

    @model_validator(mode="after")
    def _date_order(self) -> "FinancialPeriodCreate":
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class GenerateMonthlyPeriodsRequest(BaseModel):
    financial_year: int = Field(ge=1900, le=9999)
    start_month: int = Field(default=1, ge=1, le=12)


class FinancialPeriodRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    financial_year: int
    start_date: date
    end_date: date
    status: PeriodStatus
    is_current: bool
    closed_at: datetime | None
    closed_by: str | None

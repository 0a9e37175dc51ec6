from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ledgercore.platform.ledger.types import BudgetStatus


class BudgetLineInput(BaseModel):
    account_id: UUID
    budgeted_amount: Decimal = Field(ge=Decimal("0"))
    notes: str | None = None


class BudgetCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    financial_year: int = Field(ge=1900, le=9999)
    start_date: date
    end_date: date
    lines: list[BudgetLineInput] = Field(min_length=1)

    @model_validator(mode="after")
    def _date_order(self) -> "BudgetCreate":
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class BudgetLineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    budget_id: UUID
    account_id: UUID
    line_number: int
    budgeted_amount: Decimal
    notes: str | None
    actual_amount_cached: Decimal | None
    actual_refreshed_at: datetime | None


class BudgetRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None
    financial_year: int
    start_date: date
    end_date: date
    status: BudgetStatus
    created_by: str
    approved_by: str | None
    approved_at: datetime | None
    created_at: datetime
    lines: list[BudgetLineRead] = Field(default_factory=list)


class BudgetLineVarianceRead(BaseModel):
    budget_line_id: UUID
    account_id: UUID
    account_code: str
    account_name: str
    budgeted_amount: Decimal
    actual_amount: Decimal
    variance: Decimal
    variance_percent: Decimal


class BudgetVsActualRead(BaseModel):
    budget_id: UUID
    budget_name: str
    financial_year: int
    as_of_date: date
    lines: list[BudgetLineVarianceRead]
    total_budgeted: Decimal
    total_actual: Decimal
    total_variance: Decimal
    total_variance_percent: Decimal

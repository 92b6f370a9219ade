from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal

from pydantic import BaseModel, Field

NonNegativeMoney = Annotated[Decimal, Field(ge=0, max_digits=14, decimal_places=2)]
PositiveMoney = Annotated[Decimal, Field(gt=0, max_digits=14, decimal_places=2)]

MovementKindField = Literal["SALE", "REFUND", "CASH_IN", "CASH_OUT", "PAYOUT"]


class TillOpenRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {
                "terminal_id": "5f0c6f1e-3b3a-4c52-9d5e-0d7f3c1d2a10",
                "opening_float": "100.00",
                "notes": "Morning shift",
            }
        }
    }

    terminal_id: str
    opening_float: NonNegativeMoney
    opened_by_user_id: str | None = None
    notes: str | None = Field(default=None, max_length=2000)


class TillAmountRequest(BaseModel):
    amount: PositiveMoney
    reference: str | None = Field(default=None, max_length=255)
    notes: str | None = Field(default=None, max_length=2000)


class TillMovementRequest(TillAmountRequest):
    kind: MovementKindField


class TillCloseRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {
                "closing_cash_actual": "125.00",
                "notes": "Counted twice",
            }
        }
    }

    closing_cash_actual: NonNegativeMoney
    # Client-side figure shown in the close dialog; the ledger decides.
    expected_cash: Decimal | None = None
    notes: str | None = Field(default=None, max_length=2000)


class TillSessionResponse(BaseModel):
    id: str
    tenant_id: str
    store_id: str
    terminal_id: str
    status: str
    opened_by_user_id: str
    opened_at: datetime
    opening_float: Decimal
    notes: str | None
    closed_by_user_id: str | None
    closed_at: datetime | None
    closing_cash_actual: Decimal | None
    expected_cash: Decimal | None
    over_short: Decimal | None
    closing_notes: str | None


class TillActiveResponse(BaseModel):
    session: TillSessionResponse | None


class TillHistoryResponse(BaseModel):
    rows: list[TillSessionResponse]


class TillSummaryResponse(BaseModel):
    till_id: str
    terminal_id: str
    status: str
    opening_float: Decimal
    sales: Decimal
    refunds: Decimal
    cash_in: Decimal
    cash_out: Decimal
    payouts: Decimal
    expected_cash: Decimal
    movement_count: int
    closing_cash_actual: Decimal | None = None
    over_short: Decimal | None = None
    over_short_type: Literal["OVER", "SHORT", "EVEN"] | None = None


class TillMovementResponse(BaseModel):
    id: str
    till_session_id: str
    terminal_id: str
    kind: str
    amount: Decimal
    reference: str | None
    notes: str | None
    recorded_by_user_id: str
    trace_id: str | None
    recorded_at: datetime


class TillMovementListResponse(BaseModel):
    rows: list[TillMovementResponse]
    total: int


class TillReconciliationResponse(BaseModel):
    till_id: str
    status: str
    consistent: bool
    opening_float: Decimal
    sales: Decimal
    refunds: Decimal
    cash_in: Decimal
    cash_out: Decimal
    payouts: Decimal
    movement_count: int
    recomputed_expected_cash: Decimal
    stored_expected_cash: Decimal | None
    closing_cash_actual: Decimal | None
    recomputed_over_short: Decimal | None
    stored_over_short: Decimal | None

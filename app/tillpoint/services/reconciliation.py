"""Cash reconciliation for till sessions.

Pure functions over a session's opening float and its ledger. Amounts are exact
two-place ``Decimal`` values; nothing here touches the database, so the same ledger
always reconciles to the same figures and closed sessions can be re-audited.

    expected_cash = opening_float + sales + cash_in - refunds - cash_out - payouts
    over_short    = closing_cash_actual - expected_cash
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Literal

MovementKind = Literal["SALE", "REFUND", "CASH_IN", "CASH_OUT", "PAYOUT"]
OverShortType = Literal["OVER", "SHORT", "EVEN"]

MOVEMENT_KINDS: tuple[str, ...] = ("SALE", "REFUND", "CASH_IN", "CASH_OUT", "PAYOUT")
INFLOW_KINDS = frozenset({"SALE", "CASH_IN"})
OUTFLOW_KINDS = frozenset({"REFUND", "CASH_OUT", "PAYOUT"})

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


class InvalidAmount(ValueError):
    pass


def to_money(value: object) -> Decimal:
    """Coerce ``value`` to a two-place Decimal without rounding."""
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmount(f"{value!r} is not a monetary amount") from exc
    if not amount.is_finite():
        raise InvalidAmount(f"{value!r} is not a finite amount")
    quantized = amount.quantize(CENT)
    if quantized != amount:
        raise InvalidAmount(f"{value!r} has more than two decimal places")
    return quantized


@dataclass(frozen=True)
class LedgerTotals:
    opening_float: Decimal
    sales: Decimal = ZERO
    refunds: Decimal = ZERO
    cash_in: Decimal = ZERO
    cash_out: Decimal = ZERO
    payouts: Decimal = ZERO
    movement_count: int = 0

    @property
    def expected_cash(self) -> Decimal:
        return self.opening_float + self.sales + self.cash_in - self.refunds - self.cash_out - self.payouts

    def as_dict(self) -> dict:
        return {
            "opening_float": self.opening_float,
            "sales": self.sales,
            "refunds": self.refunds,
            "cash_in": self.cash_in,
            "cash_out": self.cash_out,
            "payouts": self.payouts,
            "movement_count": self.movement_count,
            "expected_cash": self.expected_cash,
        }


_KIND_FIELDS = {
    "SALE": "sales",
    "REFUND": "refunds",
    "CASH_IN": "cash_in",
    "CASH_OUT": "cash_out",
    "PAYOUT": "payouts",
}


def summarize_ledger(opening_float: Decimal, entries: Iterable[tuple[str, Decimal]]) -> LedgerTotals:
    """Fold ``(kind, amount)`` ledger entries into per-kind totals.

    Amounts are unsigned; the kind decides the direction. Order is irrelevant.
    """
    sums = {field: ZERO for field in _KIND_FIELDS.values()}
    count = 0
    for kind, amount in entries:
        field = _KIND_FIELDS.get(kind)
        if field is None:
            raise ValueError(f"unknown movement kind {kind!r}")
        sums[field] += to_money(amount)
        count += 1
    return LedgerTotals(opening_float=to_money(opening_float), movement_count=count, **sums)


def compute_over_short(closing_cash_actual: Decimal, expected_cash: Decimal) -> Decimal:
    return to_money(closing_cash_actual) - to_money(expected_cash)


def classify_over_short(over_short: Decimal | None) -> OverShortType | None:
    if over_short is None:
        return None
    if over_short > 0:
        return "OVER"
    if over_short < 0:
        return "SHORT"
    return "EVEN"


@dataclass(frozen=True)
class ReconciliationCheck:
    totals: LedgerTotals
    stored_expected_cash: Decimal | None
    stored_over_short: Decimal | None
    recomputed_over_short: Decimal | None

    @property
    def consistent(self) -> bool:
        if self.stored_expected_cash is None:
            return True
        return (
            self.stored_expected_cash == self.totals.expected_cash
            and self.stored_over_short == self.recomputed_over_short
        )


def replay(
    opening_float: Decimal,
    entries: Iterable[tuple[str, Decimal]],
    *,
    closing_cash_actual: Decimal | None,
    stored_expected_cash: Decimal | None,
    stored_over_short: Decimal | None,
) -> ReconciliationCheck:
    """Recompute a session's figures from its ledger and compare with what was stored at close."""
    totals = summarize_ledger(opening_float, entries)
    recomputed = None
    if closing_cash_actual is not None:
        recomputed = compute_over_short(closing_cash_actual, totals.expected_cash)
    return ReconciliationCheck(
        totals=totals,
        stored_expected_cash=stored_expected_cash,
        stored_over_short=stored_over_short,
        recomputed_over_short=recomputed,
    )

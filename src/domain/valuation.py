from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, model_validator

from .ledger import DEFAULT_LONG_TERM_DAYS, Lot, as_calendar_date, holding_period_days

DEFAULT_SHORT_TERM_RATE = Decimal("0.37")
DEFAULT_LONG_TERM_RATE = Decimal("0.20")


class InvalidPriceError(ValueError):
    def __init__(self, message: str, *, price: Any = None) -> None:
        super().__init__(message)
        self.price = price


class TaxRates(BaseModel):
    """Flat rates used to estimate liability on unrealized gains.

    The defaults approximate top US federal brackets; they are estimates, not tax advice.
    """

    model_config = ConfigDict(frozen=True)

    short_term: Decimal = DEFAULT_SHORT_TERM_RATE
    long_term: Decimal = DEFAULT_LONG_TERM_RATE

    @model_validator(mode="after")
    def _validate_rates(self) -> TaxRates:
        for name in ("short_term", "long_term"):
            rate = getattr(self, name)
            if rate < 0 or rate > 1:
                raise ValueError(f"TaxRates.{name} must be between 0 and 1")
        return self


class ValuationResult(BaseModel):
    as_of: date
    current_price: Decimal
    total_btc: Decimal
    total_cost_basis: Decimal
    current_value: Decimal
    average_cost: Decimal
    unrealized_gain: Decimal
    unrealized_gain_percent: Decimal
    short_term_btc: Decimal
    long_term_btc: Decimal
    short_term_gain: Decimal
    long_term_gain: Decimal
    short_term_liability: Decimal
    long_term_liability: Decimal

    @property
    def total_liability(self) -> Decimal:
        return self.short_term_liability + self.long_term_liability


def validate_price(price: Any) -> Decimal:
    """Coerce ``price`` to a positive finite Decimal or raise InvalidPriceError."""
    if price is None:
        raise InvalidPriceError("Current price is required", price=price)
    try:
        value = price if isinstance(price, Decimal) else Decimal(str(price))
    except InvalidOperation as exc:
        raise InvalidPriceError(f"Current price is not a number: {price!r}", price=price) from exc
    if not value.is_finite() or value <= 0:
        raise InvalidPriceError(f"Current price must be positive, got {price!r}", price=price)
    return value


class LiabilityCalculator:
    """Value remaining lots at the current price and estimate tax on their gains."""

    def __init__(self, *, rates: TaxRates | None = None, long_term_days: int = DEFAULT_LONG_TERM_DAYS) -> None:
        self.rates = rates or TaxRates()
        self.long_term_days = long_term_days

    def is_long_term(self, lot: Lot, as_of: date | datetime) -> bool:
        return holding_period_days(lot.acquisition_date, as_of) >= self.long_term_days

    def valuate(self, remaining_lots: Iterable[Lot], current_price: Any, as_of: date | datetime) -> ValuationResult:
        price = validate_price(current_price)
        lots = list(remaining_lots)

        total_btc = sum((lot.amount for lot in lots), start=Decimal("0"))
        total_cost_basis = sum((lot.cost_basis for lot in lots), start=Decimal("0"))
        current_value = total_btc * price
        unrealized_gain = current_value - total_cost_basis
        unrealized_gain_percent = (
            unrealized_gain / total_cost_basis * 100 if total_cost_basis > 0 else Decimal("0")
        )
        average_cost = total_cost_basis / total_btc if total_btc > 0 else Decimal("0")

        short_term_btc = Decimal("0")
        long_term_btc = Decimal("0")
        short_term_gain = Decimal("0")
        long_term_gain = Decimal("0")
        for lot in lots:
            long_term = self.is_long_term(lot, as_of)
            if long_term:
                long_term_btc += lot.amount
            else:
                short_term_btc += lot.amount

            # Losses are not offset against gains.
            lot_gain = lot.amount * price - lot.cost_basis
            if lot_gain <= 0:
                continue
            if long_term:
                long_term_gain += lot_gain
            else:
                short_term_gain += lot_gain

        return ValuationResult(
            as_of=as_calendar_date(as_of),
            current_price=price,
            total_btc=total_btc,
            total_cost_basis=total_cost_basis,
            current_value=current_value,
            average_cost=average_cost,
            unrealized_gain=unrealized_gain,
            unrealized_gain_percent=unrealized_gain_percent,
            short_term_btc=short_term_btc,
            long_term_btc=long_term_btc,
            short_term_gain=short_term_gain,
            long_term_gain=long_term_gain,
            short_term_liability=short_term_gain * self.rates.short_term,
            long_term_liability=long_term_gain * self.rates.long_term,
        )


def valuate(
    remaining_lots: Iterable[Lot],
    current_price: Any,
    as_of: date | datetime,
    *,
    rates: TaxRates | None = None,
    long_term_days: int = DEFAULT_LONG_TERM_DAYS,
) -> ValuationResult:
    return LiabilityCalculator(rates=rates, long_term_days=long_term_days).valuate(remaining_lots, current_price, as_of)

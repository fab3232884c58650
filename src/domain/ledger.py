from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import StrEnum
from typing import NewType
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

TransactionId = NewType("TransactionId", str)
LotId = NewType("LotId", UUID)

BTC = "BTC"
USD = "USD"

# Lots at or below this amount are treated as fully consumed.
DUST_THRESHOLD = Decimal("1e-9")
DEFAULT_LONG_TERM_DAYS = 365


class TransactionKind(StrEnum):
    BUY = "BUY"
    SELL = "SELL"
    INTEREST = "INTEREST"
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"


class DiagnosticKind(StrEnum):
    SKIPPED_RECORD = "SKIPPED_RECORD"
    OVERSOLD = "OVERSOLD"


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def as_calendar_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def holding_period_days(acquired: date | datetime, disposed: date | datetime) -> int:
    """Whole calendar days between acquisition and disposal (time of day is ignored)."""
    return (as_calendar_date(disposed) - as_calendar_date(acquired)).days


class Transaction(BaseModel):
    """A normalized BTC transaction as consumed by the cost-basis engine.

    Numeric fields are optional so that incomplete store rows can still be represented.
    Whether a record is usable is decided by the lot builder and the matcher, which skip
    incomplete records instead of failing.
    """

    model_config = ConfigDict(frozen=True)

    id: TransactionId
    date: datetime
    kind: TransactionKind
    btc_amount: Decimal | None = None
    fiat_amount: Decimal | None = None
    fee_amount: Decimal = Decimal("0")
    fee_is_usd: bool = False
    unit_price: Decimal | None = None

    @field_validator("date", mode="after")
    @classmethod
    def _normalize_date(cls, value: datetime) -> datetime:
        return to_utc(value)

    @model_validator(mode="after")
    def _validate_amounts(self) -> Transaction:
        for name in ("btc_amount", "fiat_amount", "fee_amount", "unit_price"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"Transaction.{name} must be >= 0")
        return self

    @property
    def usd_fee(self) -> Decimal:
        return self.fee_amount if self.fee_is_usd else Decimal("0")


class Lot(BaseModel):
    """An open tax lot.

    ``unit_cost`` is fixed when the lot is created. Partial consumption shrinks ``amount`` and
    ``cost_basis`` by the same ratio, so ``cost_basis / amount`` stays equal to the original
    per-unit cost.
    """

    model_config = ConfigDict(frozen=True)

    id: LotId = LotId(Field(default_factory=uuid4))
    source_id: TransactionId
    amount: Decimal
    acquisition_date: datetime
    cost_basis: Decimal
    unit_cost: Decimal

    @field_validator("acquisition_date", mode="after")
    @classmethod
    def _normalize_acquisition_date(cls, value: datetime) -> datetime:
        return to_utc(value)

    @model_validator(mode="after")
    def _validate_fields(self) -> Lot:
        if self.amount < 0:
            raise ValueError("Lot.amount must be >= 0")
        if self.cost_basis < 0:
            raise ValueError("Lot.cost_basis must be >= 0")
        if self.unit_cost < 0:
            raise ValueError("Lot.unit_cost must be >= 0")
        return self


class RealizedGainRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    lot_id: LotId
    sale_id: TransactionId
    amount_sold: Decimal
    proceeds_allocated: Decimal
    cost_basis_allocated: Decimal
    gain: Decimal
    acquisition_date: datetime
    sale_date: datetime
    is_long_term: bool

    @model_validator(mode="after")
    def _validate(self) -> RealizedGainRecord:
        if self.amount_sold <= 0:
            raise ValueError("amount_sold must be > 0")
        if self.proceeds_allocated < 0:
            raise ValueError("proceeds_allocated must be >= 0")
        return self


class Diagnostic(BaseModel):
    """Non-fatal data problem found while building or matching lots."""

    model_config = ConfigDict(frozen=True)

    kind: DiagnosticKind
    message: str
    transaction_id: TransactionId | None = None
    quantity: Decimal | None = None

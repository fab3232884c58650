from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator

from .ledger import BTC, USD, Transaction, TransactionId, TransactionKind, to_utc

# Kinds where BTC leaves the account (sent side carries BTC, received side carries USD).
_OUTGOING_KINDS = {TransactionKind.SELL, TransactionKind.WITHDRAWAL}


class TransactionRecord(BaseModel):
    """A row as kept by the transaction store.

    Currency checks are not applied here; ``to_transaction`` only picks amounts whose currency
    is BTC or USD as appropriate for the record type.
    """

    id: str
    date: datetime
    type: TransactionKind
    received_amount: Decimal | None = None
    received_currency: str | None = None
    sent_amount: Decimal | None = None
    sent_currency: str | None = None
    fee_amount: Decimal | None = None
    fee_currency: str | None = None
    price: Decimal | None = Field(default=None, validation_alias=AliasChoices("price", "unit_price"))

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> str:
        return str(value).strip()

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, value: str | datetime) -> datetime:
        if isinstance(value, datetime):
            return to_utc(value)
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        return to_utc(datetime.fromisoformat(raw))

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("received_amount", "sent_amount", "fee_amount", "price", mode="before")
    @classmethod
    def _empty_amount(cls, value: str | Decimal | None) -> str | Decimal | None:
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    @field_validator("received_currency", "sent_currency", "fee_currency", mode="before")
    @classmethod
    def _normalize_currency(cls, value: str | None) -> str | None:
        if value is None:
            return None
        code = value.strip().upper()
        return code or None

    def to_transaction(self) -> Transaction:
        if self.type in _OUTGOING_KINDS:
            btc_amount = _amount_in(self.sent_amount, self.sent_currency, BTC)
            fiat_amount = _amount_in(self.received_amount, self.received_currency, USD)
        else:
            btc_amount = _amount_in(self.received_amount, self.received_currency, BTC)
            fiat_amount = _amount_in(self.sent_amount, self.sent_currency, USD)

        # Sells are priced from what was actually received; other kinds use the recorded price.
        if self.type == TransactionKind.SELL:
            unit_price = fiat_amount / btc_amount if btc_amount and fiat_amount else None
        else:
            unit_price = self.price

        return Transaction(
            id=TransactionId(self.id),
            date=self.date,
            kind=self.type,
            btc_amount=btc_amount,
            fiat_amount=fiat_amount,
            fee_amount=self.fee_amount or Decimal("0"),
            fee_is_usd=self.fee_currency == USD,
            unit_price=unit_price,
        )


def _amount_in(amount: Decimal | None, currency: str | None, expected: str) -> Decimal | None:
    if amount is None or currency != expected:
        return None
    return amount


def normalize_records(records: list[TransactionRecord]) -> list[Transaction]:
    """Convert store rows into engine transactions, oldest first."""
    transactions = [record.to_transaction() for record in records]
    transactions.sort(key=lambda tx: tx.date)
    return transactions

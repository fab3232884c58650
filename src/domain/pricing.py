from __future__ import annotations

from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Protocol

from .ledger import BTC, USD


class PriceProvider(Protocol):
    """Source of BTC/USD quotes at a point in time."""

    def rate(self, base_id: str, quote_id: str, timestamp: datetime) -> Decimal: ...


class FixedPriceProvider:
    """Quotes one price for BTC/USD regardless of timestamp (e.g. a price given on the command line)."""

    def __init__(self, price: Decimal) -> None:
        self.price = price

    def rate(self, base_id: str, quote_id: str, timestamp: datetime) -> Decimal:
        if (base_id.upper(), quote_id.upper()) != (BTC, USD):
            msg = f"No fixed price for {base_id}/{quote_id}"
            raise ValueError(msg)
        return self.price


def end_of_day(as_of: date, *, now: datetime | None = None) -> datetime:
    """Last second of ``as_of`` in UTC, capped at ``now`` for the current day."""
    timestamp = datetime.combine(as_of, time(23, 59, 59), tzinfo=timezone.utc)
    if now is not None and now < timestamp:
        return now
    return timestamp


def quote_btc_usd(provider: PriceProvider, as_of: date, *, now: datetime | None = None) -> Decimal:
    return provider.rate(BTC, USD, end_of_day(as_of, now=now))

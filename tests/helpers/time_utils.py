from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from itertools import count
from random import Random
from typing import Callable

from domain.ledger import Transaction, TransactionId, TransactionKind


@dataclass
class TimeGenerator:
    """Deterministic timestamp generator with gaps of a few days."""

    _current: datetime | None = None
    _rng: Random = Random(0)
    _seed: int = 0

    def __call__(self) -> datetime:
        return self.next()

    def next(self) -> datetime:
        if self._current is None:
            self._current = datetime(2023, 1, 1, tzinfo=timezone.utc)
        self._current += timedelta(days=self._rng.randint(1, 10))
        return self._current

    def reset(self) -> None:
        self._current = None
        self._rng = Random(self._seed)


DEFAULT_TIME_GEN = TimeGenerator()
_TX_COUNTER = count()


def make_transaction(
    *,
    kind: TransactionKind,
    btc_amount: Decimal | str | None,
    fiat_amount: Decimal | str | None = None,
    unit_price: Decimal | str | None = None,
    fee_amount: Decimal | str = "0",
    fee_is_usd: bool = True,
    date: datetime | None = None,
    ts_gen: Callable[[], datetime] | None = None,
    tx_id: str | None = None,
) -> Transaction:
    """Helper to create a Transaction with an auto-generated date and id.

    ``unit_price`` defaults to ``fiat_amount / btc_amount`` when both amounts are given.
    """
    if date is None:
        if ts_gen is None:
            ts_gen = DEFAULT_TIME_GEN
        date = ts_gen()

    btc = Decimal(btc_amount) if btc_amount is not None else None
    fiat = Decimal(fiat_amount) if fiat_amount is not None else None
    price = Decimal(unit_price) if unit_price is not None else None
    if price is None and btc and fiat:
        price = fiat / btc

    return Transaction(
        id=TransactionId(tx_id or f"test-tx-{next(_TX_COUNTER)}"),
        date=date,
        kind=kind,
        btc_amount=btc,
        fiat_amount=fiat,
        fee_amount=Decimal(fee_amount),
        fee_is_usd=fee_is_usd,
        unit_price=price,
    )


def buy(btc: str, usd: str, *, on: datetime | None = None, tx_id: str | None = None, fee: str = "0") -> Transaction:
    return make_transaction(
        kind=TransactionKind.BUY, btc_amount=btc, fiat_amount=usd, fee_amount=fee, date=on, tx_id=tx_id
    )


def sell(btc: str, price: str, *, on: datetime | None = None, tx_id: str | None = None, fee: str = "0") -> Transaction:
    return make_transaction(
        kind=TransactionKind.SELL,
        btc_amount=btc,
        fiat_amount=Decimal(btc) * Decimal(price),
        unit_price=price,
        fee_amount=fee,
        date=on,
        tx_id=tx_id,
    )


def utc(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)

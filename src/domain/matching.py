from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum
from typing import Iterable

from pydantic import BaseModel

from .ledger import (
    DEFAULT_LONG_TERM_DAYS,
    DUST_THRESHOLD,
    Diagnostic,
    DiagnosticKind,
    Lot,
    LotId,
    RealizedGainRecord,
    Transaction,
    TransactionKind,
    holding_period_days,
)

logger = logging.getLogger(__name__)


class CostBasisMethod(StrEnum):
    FIFO = "FIFO"
    LIFO = "LIFO"
    # Highest unit cost first. Also what the product labels "Average Cost"; it is not a
    # weighted running average.
    HIFO = "HIFO"

    @classmethod
    def parse(cls, value: str | CostBasisMethod) -> CostBasisMethod:
        if isinstance(value, CostBasisMethod):
            return value
        key = value.strip().upper().replace("-", "_").replace(" ", "_")
        alias = _METHOD_ALIASES.get(key)
        if alias is not None:
            return alias
        try:
            return cls(key)
        except ValueError as exc:
            msg = f"Unknown cost basis method: {value!r}"
            raise ValueError(msg) from exc


_METHOD_ALIASES = {
    "AVERAGE_COST": CostBasisMethod.HIFO,
    "AVG_COST": CostBasisMethod.HIFO,
    "AVERAGE": CostBasisMethod.HIFO,
}


def apply_method(lots: Iterable[Lot], method: CostBasisMethod) -> list[Lot]:
    """Return lots in consumption order for ``method``.

    Sorting is stable, so lots with equal keys keep their input order.
    """
    ordered = list(lots)
    if method == CostBasisMethod.FIFO:
        ordered.sort(key=lambda lot: lot.acquisition_date)
    elif method == CostBasisMethod.LIFO:
        ordered.sort(key=lambda lot: lot.acquisition_date, reverse=True)
    elif method == CostBasisMethod.HIFO:
        ordered.sort(key=lambda lot: lot.unit_cost, reverse=True)
    else:
        msg = f"Unsupported cost basis method: {method}"
        raise ValueError(msg)
    return ordered


@dataclass
class _OpenLotState:
    lot: Lot
    remaining_amount: Decimal
    remaining_cost_basis: Decimal


class MatchResult(BaseModel):
    remaining_lots: list[Lot]
    realized_gains: list[RealizedGainRecord]
    diagnostics: list[Diagnostic]
    sell_fees: Decimal


class LotMatcher:
    """Consume ordered lots with sells and produce realized gain records.

    Input lots are never modified: each call works on its own copy of lot state and returns
    new lot records for whatever remains.
    """

    def __init__(
        self,
        *,
        long_term_days: int = DEFAULT_LONG_TERM_DAYS,
        dust_threshold: Decimal = DUST_THRESHOLD,
    ) -> None:
        self.long_term_days = long_term_days
        self.dust_threshold = dust_threshold

    def match(self, ordered_lots: Iterable[Lot], sells: Iterable[Transaction]) -> MatchResult:
        arena: dict[LotId, _OpenLotState] = {
            lot.id: _OpenLotState(lot=lot, remaining_amount=lot.amount, remaining_cost_basis=lot.cost_basis)
            for lot in ordered_lots
        }
        realized: list[RealizedGainRecord] = []
        diagnostics: list[Diagnostic] = []
        sell_fees = Decimal("0")

        sell_list = [tx for tx in sells if tx.kind == TransactionKind.SELL]
        sell_list.sort(key=lambda tx: tx.date)

        for sell in sell_list:
            sell_fees += sell.usd_fee
            if sell.btc_amount is None or sell.btc_amount <= 0 or sell.unit_price is None or sell.unit_price <= 0:
                diagnostics.append(self._skipped_sell(sell))
                continue

            unmatched = self._consume(arena, sell, realized)
            if unmatched > self.dust_threshold:
                diagnostics.append(self._oversold(sell, unmatched))

        remaining_lots = [
            state.lot.model_copy(
                update={"amount": state.remaining_amount, "cost_basis": state.remaining_cost_basis}
            )
            for state in arena.values()
            if state.remaining_amount > self.dust_threshold
        ]

        return MatchResult(
            remaining_lots=remaining_lots,
            realized_gains=realized,
            diagnostics=diagnostics,
            sell_fees=sell_fees,
        )

    def _consume(
        self,
        arena: dict[LotId, _OpenLotState],
        sell: Transaction,
        realized: list[RealizedGainRecord],
    ) -> Decimal:
        assert sell.btc_amount is not None and sell.unit_price is not None
        remaining = sell.btc_amount

        for state in arena.values():
            if remaining <= self.dust_threshold:
                break
            if state.remaining_amount <= self.dust_threshold:
                continue

            take = min(state.remaining_amount, remaining)
            ratio = take / state.remaining_amount
            allocated_cost = state.remaining_cost_basis * ratio
            proceeds = take * sell.unit_price

            state.remaining_cost_basis -= allocated_cost
            state.remaining_amount -= take
            remaining -= take

            realized.append(
                RealizedGainRecord(
                    lot_id=state.lot.id,
                    sale_id=sell.id,
                    amount_sold=take,
                    proceeds_allocated=proceeds,
                    cost_basis_allocated=allocated_cost,
                    gain=proceeds - allocated_cost,
                    acquisition_date=state.lot.acquisition_date,
                    sale_date=sell.date,
                    is_long_term=holding_period_days(state.lot.acquisition_date, sell.date) >= self.long_term_days,
                )
            )

        return remaining

    @staticmethod
    def _skipped_sell(sell: Transaction) -> Diagnostic:
        message = (
            f"Skipping incomplete SELL transaction {sell.id} on {sell.date.date().isoformat()}: "
            f"btc_amount={sell.btc_amount} unit_price={sell.unit_price}"
        )
        logger.warning("%s", message)
        return Diagnostic(
            kind=DiagnosticKind.SKIPPED_RECORD,
            message=message,
            transaction_id=sell.id,
            quantity=sell.btc_amount,
        )

    @staticmethod
    def _oversold(sell: Transaction, unmatched: Decimal) -> Diagnostic:
        message = (
            f"SELL {sell.id} on {sell.date.date().isoformat()} exceeds available lots; "
            f"unmatched quantity {unmatched} BTC was dropped"
        )
        logger.warning("%s", message)
        return Diagnostic(
            kind=DiagnosticKind.OVERSOLD,
            message=message,
            transaction_id=sell.id,
            quantity=unmatched,
        )


def match_sells(
    ordered_lots: Iterable[Lot],
    sells: Iterable[Transaction],
    *,
    long_term_days: int = DEFAULT_LONG_TERM_DAYS,
) -> MatchResult:
    return LotMatcher(long_term_days=long_term_days).match(ordered_lots, sells)

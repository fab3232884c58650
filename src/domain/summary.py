from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel

from .ledger import Diagnostic, DiagnosticKind, Lot, RealizedGainRecord
from .lots import LotBuildResult
from .matching import CostBasisMethod, MatchResult
from .valuation import ValuationResult


class PortfolioSnapshot(BaseModel):
    """Result of one cost-basis calculation, owned by the caller.

    Serializable with ``model_dump(mode="json")``; holds no references back into the engine.
    """

    method: CostBasisMethod
    as_of: date
    current_price: Decimal
    remaining_lots: list[Lot]
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
    total_liability: Decimal
    realized_gains: list[RealizedGainRecord]
    realized_gain_total: Decimal
    realized_short_term_gain: Decimal
    realized_long_term_gain: Decimal
    average_buy_price: Decimal
    total_fees: Decimal
    total_transactions: int
    diagnostics: list[Diagnostic]

    @property
    def skipped_records(self) -> int:
        return sum(1 for diag in self.diagnostics if diag.kind == DiagnosticKind.SKIPPED_RECORD)

    @property
    def oversold(self) -> bool:
        return any(diag.kind == DiagnosticKind.OVERSOLD for diag in self.diagnostics)


def summarize(
    build_result: LotBuildResult,
    match_result: MatchResult,
    valuation: ValuationResult,
    *,
    method: CostBasisMethod,
    transactions_count: int = 0,
) -> PortfolioSnapshot:
    realized = match_result.realized_gains
    realized_short = sum((r.gain for r in realized if not r.is_long_term), start=Decimal("0"))
    realized_long = sum((r.gain for r in realized if r.is_long_term), start=Decimal("0"))

    average_buy_price = (
        build_result.total_cost_bought / build_result.total_btc_bought
        if build_result.total_btc_bought > 0
        else Decimal("0")
    )

    return PortfolioSnapshot(
        method=method,
        as_of=valuation.as_of,
        current_price=valuation.current_price,
        remaining_lots=list(match_result.remaining_lots),
        total_btc=valuation.total_btc,
        total_cost_basis=valuation.total_cost_basis,
        current_value=valuation.current_value,
        average_cost=valuation.average_cost,
        unrealized_gain=valuation.unrealized_gain,
        unrealized_gain_percent=valuation.unrealized_gain_percent,
        short_term_btc=valuation.short_term_btc,
        long_term_btc=valuation.long_term_btc,
        short_term_gain=valuation.short_term_gain,
        long_term_gain=valuation.long_term_gain,
        short_term_liability=valuation.short_term_liability,
        long_term_liability=valuation.long_term_liability,
        total_liability=valuation.total_liability,
        realized_gains=list(realized),
        realized_gain_total=realized_short + realized_long,
        realized_short_term_gain=realized_short,
        realized_long_term_gain=realized_long,
        average_buy_price=average_buy_price,
        total_fees=build_result.buy_fees + match_result.sell_fees,
        total_transactions=transactions_count,
        diagnostics=[*build_result.diagnostics, *match_result.diagnostics],
    )

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Iterable, Sequence

from .ledger import DEFAULT_LONG_TERM_DAYS, Transaction, TransactionKind
from .lots import LotBuilder
from .matching import CostBasisMethod, LotMatcher, apply_method
from .summary import PortfolioSnapshot, summarize
from .valuation import LiabilityCalculator, TaxRates, validate_price

if TYPE_CHECKING:
    from config import AppSettings

logger = logging.getLogger(__name__)

ALL_METHODS: tuple[CostBasisMethod, ...] = (CostBasisMethod.FIFO, CostBasisMethod.LIFO, CostBasisMethod.HIFO)


class CostBasisEngine:
    """Run build -> order -> match -> valuate -> summarize for one or more methods.

    Every call is a pure function of its arguments. The engine keeps no state between calls
    and does not read the clock, so ``as_of`` must always be supplied.
    """

    def __init__(
        self,
        *,
        rates: TaxRates | None = None,
        long_term_days: int = DEFAULT_LONG_TERM_DAYS,
        include_interest: bool = False,
    ) -> None:
        self._builder = LotBuilder(include_interest=include_interest)
        self._matcher = LotMatcher(long_term_days=long_term_days)
        self._calculator = LiabilityCalculator(rates=rates, long_term_days=long_term_days)

    @classmethod
    def from_settings(cls, settings: AppSettings) -> CostBasisEngine:
        return cls(
            rates=TaxRates(short_term=settings.short_term_tax_rate, long_term=settings.long_term_tax_rate),
            long_term_days=settings.long_term_holding_days,
            include_interest=settings.include_interest,
        )

    def calculate(
        self,
        transactions: Iterable[Transaction],
        *,
        method: CostBasisMethod | str,
        current_price: Any,
        as_of: date | datetime,
    ) -> PortfolioSnapshot:
        resolved_method = CostBasisMethod.parse(method)
        price = validate_price(current_price)
        tx_list = list(transactions)

        build_result = self._builder.build(tx_list)
        ordered_lots = apply_method(build_result.lots, resolved_method)
        sells = [tx for tx in tx_list if tx.kind == TransactionKind.SELL]
        match_result = self._matcher.match(ordered_lots, sells)
        valuation = self._calculator.valuate(match_result.remaining_lots, price, as_of)

        logger.info(
            "%s: %d lots built, %d sells, %d realized records, %d lots remaining",
            resolved_method,
            len(build_result.lots),
            len(sells),
            len(match_result.realized_gains),
            len(match_result.remaining_lots),
        )
        return summarize(
            build_result,
            match_result,
            valuation,
            method=resolved_method,
            transactions_count=len(tx_list),
        )

    def compare_methods(
        self,
        transactions: Iterable[Transaction],
        *,
        current_price: Any,
        as_of: date | datetime,
        methods: Sequence[CostBasisMethod | str] = ALL_METHODS,
    ) -> dict[CostBasisMethod, PortfolioSnapshot]:
        tx_list = list(transactions)
        results: dict[CostBasisMethod, PortfolioSnapshot] = {}
        for method in methods:
            resolved = CostBasisMethod.parse(method)
            results[resolved] = self.calculate(tx_list, method=resolved, current_price=current_price, as_of=as_of)
        return results

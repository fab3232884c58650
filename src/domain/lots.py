from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable

from pydantic import BaseModel

from .ledger import Diagnostic, DiagnosticKind, Lot, Transaction, TransactionKind

logger = logging.getLogger(__name__)


class LotBuildResult(BaseModel):
    lots: list[Lot]
    diagnostics: list[Diagnostic]
    # Totals over usable buys, independent of the accounting method.
    total_btc_bought: Decimal
    total_cost_bought: Decimal
    buy_fees: Decimal


class LotBuilder:
    """Create open tax lots from acquisitions.

    Only buys create lots by default. Interest payouts can be included as zero-cost lots.
    Buys with missing or non-positive amounts are skipped and reported as diagnostics.
    """

    def __init__(self, *, include_interest: bool = False) -> None:
        self.include_interest = include_interest

    def build(self, transactions: Iterable[Transaction]) -> LotBuildResult:
        lots: list[Lot] = []
        diagnostics: list[Diagnostic] = []
        total_btc = Decimal("0")
        total_cost = Decimal("0")
        buy_fees = Decimal("0")

        for tx in transactions:
            if tx.kind == TransactionKind.BUY:
                buy_fees += tx.usd_fee
                missing = _missing_buy_fields(tx)
                if missing:
                    diagnostics.append(_skipped_record(tx, missing))
                    continue
                lot = self._lot_from_buy(tx)
                lots.append(lot)
                total_btc += lot.amount
                total_cost += lot.cost_basis
            elif tx.kind == TransactionKind.INTEREST and self.include_interest:
                if tx.btc_amount is None or tx.btc_amount <= 0:
                    diagnostics.append(_skipped_record(tx, ["btc_amount"]))
                    continue
                lots.append(self._lot_from_interest(tx))

        logger.debug("Built %d lots (%d records skipped)", len(lots), len(diagnostics))
        return LotBuildResult(
            lots=lots,
            diagnostics=diagnostics,
            total_btc_bought=total_btc,
            total_cost_bought=total_cost,
            buy_fees=buy_fees,
        )

    @staticmethod
    def _lot_from_buy(tx: Transaction) -> Lot:
        assert tx.btc_amount is not None and tx.fiat_amount is not None and tx.unit_price is not None
        return Lot(
            source_id=tx.id,
            amount=tx.btc_amount,
            acquisition_date=tx.date,
            cost_basis=tx.fiat_amount + tx.usd_fee,
            unit_cost=tx.unit_price,
        )

    @staticmethod
    def _lot_from_interest(tx: Transaction) -> Lot:
        # Interest is income: the coins carry no purchase cost.
        assert tx.btc_amount is not None
        return Lot(
            source_id=tx.id,
            amount=tx.btc_amount,
            acquisition_date=tx.date,
            cost_basis=Decimal("0"),
            unit_cost=tx.unit_price or Decimal("0"),
        )


def _missing_buy_fields(tx: Transaction) -> list[str]:
    values = {
        "btc_amount": tx.btc_amount,
        "fiat_amount": tx.fiat_amount,
        "unit_price": tx.unit_price,
    }
    return [name for name, value in values.items() if value is None or value <= 0]


def _skipped_record(tx: Transaction, missing: list[str]) -> Diagnostic:
    message = (
        f"Skipping incomplete {tx.kind} transaction {tx.id} on {tx.date.date().isoformat()}: "
        f"missing or non-positive {', '.join(missing)}"
    )
    logger.warning("%s", message)
    return Diagnostic(
        kind=DiagnosticKind.SKIPPED_RECORD,
        message=message,
        transaction_id=tx.id,
        quantity=tx.btc_amount,
    )


def build_lots(transactions: Iterable[Transaction], *, include_interest: bool = False) -> LotBuildResult:
    return LotBuilder(include_interest=include_interest).build(transactions)

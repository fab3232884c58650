from __future__ import annotations

import argparse
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Sequence

from config import AppSettings, config
from db.db import init_db
from db.repositories import TransactionRepository
from domain.engine import ALL_METHODS, CostBasisEngine
from domain.ledger import Transaction
from domain.matching import CostBasisMethod
from domain.pricing import FixedPriceProvider, PriceProvider, quote_btc_usd
from domain.records import normalize_records
from importers.csv_importer import CsvTransactionImporter
from services.spot_price import build_price_provider
from utils.portfolio_summary import render_method_comparison, render_snapshot
from utils.tax_summary import compute_yearly_realized_summary, render_yearly_realized_summary

logger = logging.getLogger(__name__)


def load_transactions(*, csv_path: Path | None, db_path: Path | None) -> list[Transaction]:
    if csv_path is not None:
        importer = CsvTransactionImporter(csv_path)
        records = importer.load_records()
    elif db_path is not None:
        if not db_path.exists():
            msg = f"Transaction database {db_path} does not exist"
            raise ValueError(msg)
        with init_db(db_path) as session:
            records = TransactionRepository(session).list()
        logger.info("Loaded %d stored transactions from %s", len(records), db_path)
    else:
        msg = "Either a CSV export or a database file is required"
        raise ValueError(msg)
    return normalize_records(records)


def resolve_price(
    explicit_price: Decimal | None,
    as_of: date,
    *,
    settings: AppSettings,
    provider: PriceProvider | None = None,
) -> Decimal:
    if explicit_price is not None:
        price_provider: PriceProvider = FixedPriceProvider(explicit_price)
    else:
        price_provider = provider or build_price_provider(settings)
    return quote_btc_usd(price_provider, as_of, now=datetime.now(timezone.utc))


def run(
    *,
    csv_path: Path | None,
    db_path: Path | None,
    methods: Sequence[CostBasisMethod],
    price: Decimal | None,
    as_of: date,
    include_interest: bool,
    settings: AppSettings,
) -> None:
    transactions = load_transactions(csv_path=csv_path, db_path=db_path)
    current_price = resolve_price(price, as_of, settings=settings)

    engine_settings = settings.model_copy(update={"include_interest": settings.include_interest or include_interest})
    engine = CostBasisEngine.from_settings(engine_settings)
    snapshots = engine.compare_methods(transactions, current_price=current_price, as_of=as_of, methods=methods)

    print(f"Loaded {len(transactions)} transactions")
    for snapshot in snapshots.values():
        render_snapshot(snapshot)
        print()
    if len(snapshots) > 1:
        render_method_comparison(snapshots)
        print()

    first = next(iter(snapshots.values()))
    render_yearly_realized_summary(compute_yearly_realized_summary(first.realized_gains))


def _parse_methods(value: str) -> list[CostBasisMethod]:
    if value.strip().lower() == "all":
        return list(ALL_METHODS)
    return [CostBasisMethod.parse(part) for part in value.split(",") if part.strip()]


def main(argv: Sequence[str] | None = None) -> None:
    settings = config()
    parser = argparse.ArgumentParser(description="Compute BTC cost basis, gains and estimated tax liability.")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--csv", type=Path, help="Transaction store CSV export")
    source.add_argument("--db", type=Path, help="SQLite transaction store")
    parser.add_argument("--price", type=Decimal, default=None, help="BTC price in USD (fetched from CoinDesk if omitted)")
    parser.add_argument(
        "--method",
        default=settings.default_method,
        help="fifo, lifo, hifo, average_cost, a comma separated list, or 'all'",
    )
    parser.add_argument("--as-of", type=date.fromisoformat, default=None, help="Valuation date (YYYY-MM-DD)")
    parser.add_argument("--include-interest", action="store_true", help="Treat interest payouts as zero-cost lots")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    run(
        csv_path=args.csv,
        db_path=args.db,
        methods=_parse_methods(args.method),
        price=args.price,
        as_of=args.as_of or datetime.now(timezone.utc).date(),
        include_interest=args.include_interest,
        settings=settings,
    )


if __name__ == "__main__":
    main()

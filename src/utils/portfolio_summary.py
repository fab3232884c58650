from __future__ import annotations

from typing import Mapping

from domain.matching import CostBasisMethod
from domain.summary import PortfolioSnapshot

from .formatting import format_btc, format_currency, format_percent


def render_snapshot(snapshot: PortfolioSnapshot) -> None:
    print(f"Portfolio as of {snapshot.as_of.isoformat()} ({snapshot.method}, BTC @ {format_currency(snapshot.current_price)} USD):")
    fields = [
        ("Holdings (BTC)", format_btc(snapshot.total_btc)),
        ("  short-term", format_btc(snapshot.short_term_btc)),
        ("  long-term", format_btc(snapshot.long_term_btc)),
        ("Cost basis", format_currency(snapshot.total_cost_basis)),
        ("Average cost", format_currency(snapshot.average_cost)),
        ("Average buy price", format_currency(snapshot.average_buy_price)),
        ("Current value", format_currency(snapshot.current_value)),
        ("Unrealized gain", f"{format_currency(snapshot.unrealized_gain)} ({format_percent(snapshot.unrealized_gain_percent)})"),
        ("Realized gain", format_currency(snapshot.realized_gain_total)),
        ("  short-term", format_currency(snapshot.realized_short_term_gain)),
        ("  long-term", format_currency(snapshot.realized_long_term_gain)),
        ("Est. short-term tax", format_currency(snapshot.short_term_liability)),
        ("Est. long-term tax", format_currency(snapshot.long_term_liability)),
        ("Total fees", format_currency(snapshot.total_fees)),
        ("Open lots", str(len(snapshot.remaining_lots))),
        ("Transactions", str(snapshot.total_transactions)),
    ]
    label_width = max(len(label) for label, _ in fields)
    value_width = max(len(value) for _, value in fields)
    lines = [f"  {label:<{label_width}} {value:>{value_width}}" for label, value in fields]
    print("\n".join(lines))

    if snapshot.diagnostics:
        print("Warnings:")
        for diagnostic in snapshot.diagnostics:
            print(f"  [{diagnostic.kind}] {diagnostic.message}")


def render_method_comparison(snapshots: Mapping[CostBasisMethod, PortfolioSnapshot]) -> None:
    print("Cost basis method comparison (USD):")
    if not snapshots:
        print("  (no methods)")
        return

    columns = (
        "Method",
        "BTC",
        "Cost basis",
        "Avg cost",
        "Realized",
        "Unrealized",
        "Unrealized %",
        "ST tax",
        "LT tax",
    )
    rows = [
        (
            str(method),
            format_btc(snap.total_btc),
            format_currency(snap.total_cost_basis),
            format_currency(snap.average_cost),
            format_currency(snap.realized_gain_total),
            format_currency(snap.unrealized_gain),
            format_percent(snap.unrealized_gain_percent),
            format_currency(snap.short_term_liability),
            format_currency(snap.long_term_liability),
        )
        for method, snap in snapshots.items()
    ]
    widths = [max(len(columns[idx]), max(len(row[idx]) for row in rows)) for idx in range(len(columns))]

    def _line(cells: tuple[str, ...]) -> str:
        return " ".join(
            f"{cell:<{widths[idx]}}" if idx == 0 else f"{cell:>{widths[idx]}}" for idx, cell in enumerate(cells)
        )

    header = _line(columns)
    lines = [header, "-" * len(header)]
    lines.extend(_line(row) for row in rows)
    print("\n".join(lines))

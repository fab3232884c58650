from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from domain.ledger import RealizedGainRecord

from .formatting import format_currency


@dataclass
class YearlyRealizedSummary:
    year: int
    disposals: int
    proceeds: Decimal
    cost_basis: Decimal
    short_term_gain: Decimal
    long_term_gain: Decimal

    @property
    def total_gain(self) -> Decimal:
        return self.short_term_gain + self.long_term_gain


def compute_yearly_realized_summary(records: Iterable[RealizedGainRecord]) -> list[YearlyRealizedSummary]:
    """Aggregate realized gain records per calendar year of the sale."""
    by_year: dict[int, YearlyRealizedSummary] = {}

    for record in records:
        year = record.sale_date.year
        summary = by_year.get(year)
        if summary is None:
            summary = YearlyRealizedSummary(
                year=year,
                disposals=0,
                proceeds=Decimal("0"),
                cost_basis=Decimal("0"),
                short_term_gain=Decimal("0"),
                long_term_gain=Decimal("0"),
            )
            by_year[year] = summary

        summary.disposals += 1
        summary.proceeds += record.proceeds_allocated
        summary.cost_basis += record.cost_basis_allocated
        if record.is_long_term:
            summary.long_term_gain += record.gain
        else:
            summary.short_term_gain += record.gain

    return [by_year[year] for year in sorted(by_year)]


def render_yearly_realized_summary(years: Iterable[YearlyRealizedSummary]) -> None:
    years_list = list(years)
    print("Realized gains per tax year (USD):")
    if not years_list:
        print("  (no disposals)")
        return

    columns = ("Year", "Disposals", "Proceeds", "Cost basis", "Short-term", "Long-term", "Total")
    rows = [
        (
            str(row.year),
            str(row.disposals),
            format_currency(row.proceeds),
            format_currency(row.cost_basis),
            format_currency(row.short_term_gain),
            format_currency(row.long_term_gain),
            format_currency(row.total_gain),
        )
        for row in years_list
    ]
    widths = [max(len(columns[idx]), max(len(row[idx]) for row in rows)) for idx in range(len(columns))]

    header = " ".join(
        f"{label:<{widths[idx]}}" if idx == 0 else f"{label:>{widths[idx]}}" for idx, label in enumerate(columns)
    )
    lines = [header, "-" * len(header)]
    for row in rows:
        lines.append(
            " ".join(f"{cell:<{widths[idx]}}" if idx == 0 else f"{cell:>{widths[idx]}}" for idx, cell in enumerate(row))
        )

    print("\n".join(lines))

"""Domain models and the cost-basis pipeline for BTC holdings.

This package holds the in-memory (Pydantic) models for transactions, tax lots and realized
gains, plus the lot builder, matcher, valuation and aggregation steps. Nothing here touches
the database, the network or the clock.
"""

__all__ = [
    "engine",
    "ledger",
    "lots",
    "matching",
    "pricing",
    "records",
    "summary",
    "valuation",
]

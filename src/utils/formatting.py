from __future__ import annotations

from decimal import Decimal

_CENTS = Decimal("0.01")
_SATOSHI = Decimal("0.00000001")


def format_decimal(value: Decimal) -> str:
    quantized = value.normalize()
    # Avoid scientific notation for integers.
    if quantized == quantized.to_integral():
        return f"{quantized:.0f}"
    return format(quantized, "f")


def format_currency(value: Decimal) -> str:
    cents = value.quantize(_CENTS)
    return f"{cents:,.2f}"


def format_btc(value: Decimal) -> str:
    return f"{value.quantize(_SATOSHI):.8f}"


def format_percent(value: Decimal) -> str:
    return f"{value.quantize(_CENTS):.2f}%"

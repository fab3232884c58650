from __future__ import annotations

from decimal import Decimal
from functools import cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    coindesk_api_key: str | None = None
    coindesk_market: str = "coinbase"
    coindesk_instrument: str = "BTC-USD"

    short_term_tax_rate: Decimal = Decimal("0.37")
    long_term_tax_rate: Decimal = Decimal("0.20")
    long_term_holding_days: int = 365
    include_interest: bool = False
    default_method: str = "FIFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@cache
def config() -> AppSettings:
    return AppSettings()

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable

from config import AppSettings

from .coindesk_client import CoinDeskClient

logger = logging.getLogger(__name__)

# Timestamps closer to "now" than this are priced with the latest tick.
_LATEST_WINDOW = timedelta(days=1)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CoinDeskPriceProvider:
    """PriceProvider backed by CoinDesk spot data.

    Recent timestamps use the latest tick; older ones use the daily close of that day.
    Quotes are memoized per instrument and day for the lifetime of the provider.
    """

    def __init__(
        self,
        *,
        client: CoinDeskClient,
        market: str = "coinbase",
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.client = client
        self.market = market
        self._clock = clock
        self._daily_cache: dict[tuple[str, str], Decimal] = {}

    def rate(self, base_id: str, quote_id: str, timestamp: datetime) -> Decimal:
        instrument = f"{base_id.upper()}-{quote_id.upper()}"
        ts = timestamp if timestamp.tzinfo is not None else timestamp.replace(tzinfo=timezone.utc)

        if self._clock() - ts <= _LATEST_WINDOW:
            tick = self.client.get_latest_tick(market=self.market, instrument=instrument)
            logger.info("Latest %s price on %s: %s", instrument, self.market, tick.price)
            return tick.price

        cache_key = (instrument, ts.date().isoformat())
        cached = self._daily_cache.get(cache_key)
        if cached is not None:
            return cached

        close = self.client.get_daily_close(market=self.market, instrument=instrument, to_ts=int(ts.timestamp()))
        logger.info("Daily close %s on %s for %s: %s", instrument, self.market, cache_key[1], close.close)
        self._daily_cache[cache_key] = close.close
        return close.close

    def current_price(self, base_id: str = "BTC", quote_id: str = "USD") -> Decimal:
        return self.rate(base_id, quote_id, self._clock())


def build_price_provider(settings: AppSettings) -> CoinDeskPriceProvider:
    if not settings.coindesk_api_key:
        msg = "COINDESK_API_KEY must be set to fetch prices (or pass an explicit price)"
        raise ValueError(msg)
    client = CoinDeskClient(api_key=settings.coindesk_api_key)
    return CoinDeskPriceProvider(client=client, market=settings.coindesk_market)

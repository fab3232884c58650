from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util import Retry

DEFAULT_BASE_URL = "https://data-api.coindesk.com"
LATEST_TICK_PATH = "/spot/v1/latest/tick"
DAILY_HISTORY_PATH = "/spot/v1/historical/days"


class CoinDeskAPIError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None, payload: Any | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


@dataclass(frozen=True)
class SpotTick:
    timestamp: datetime
    market: str
    instrument: str
    price: Decimal


@dataclass(frozen=True)
class DailyClose:
    timestamp: datetime
    market: str
    instrument: str
    close: Decimal


def build_retrying_session(*, attempts: int, backoff_seconds: float) -> requests.Session:
    """Session that retries GETs rejected with 429 (CoinDesk rate limiting)."""
    adapter = HTTPAdapter(
        max_retries=Retry(total=attempts, backoff_factor=backoff_seconds, status_forcelist={429}, allowed_methods={"GET"})
    )
    session = requests.Session()
    for prefix in ("https://", "http://"):
        session.mount(prefix, adapter)
    return session


class CoinDeskClient:
    """CoinDesk Data API client limited to the BTC spot endpoints used for valuation."""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        session: requests.Session | None = None,
        retry_attempts: int = 5,
        retry_backoff_seconds: float = 1,
    ) -> None:
        if not api_key:
            raise ValueError("api_key must be provided")

        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or build_retrying_session(
            attempts=retry_attempts, backoff_seconds=retry_backoff_seconds
        )

    def get_latest_tick(self, *, market: str, instrument: str) -> SpotTick:
        if not market or not instrument:
            raise ValueError("market and instrument must be provided")

        payload = self._get(LATEST_TICK_PATH, {"market": market, "instruments": instrument, "apply_mapping": "true"})
        by_instrument = payload.get("Data") or {}
        entry = by_instrument.get(instrument) if isinstance(by_instrument, dict) else None
        if not isinstance(entry, dict):
            raise CoinDeskAPIError(f"CoinDesk tick response missing instrument {instrument}", payload=payload)

        price = _decimal_or_none(entry.get("PRICE"))
        if price is None:
            raise CoinDeskAPIError("CoinDesk tick entry has no PRICE", payload=entry)

        updated_at = entry.get("PRICE_LAST_UPDATE_TS") or entry.get("TIMESTAMP")
        return SpotTick(
            timestamp=_from_epoch(updated_at) if updated_at is not None else datetime.now(timezone.utc),
            market=str(entry.get("MARKET", market)),
            instrument=str(entry.get("INSTRUMENT", instrument)),
            price=price,
        )

    def get_daily_close(self, *, market: str, instrument: str, to_ts: int) -> DailyClose:
        """Close of the UTC day containing ``to_ts`` (the last bar at or before it)."""
        payload = self._get(
            DAILY_HISTORY_PATH,
            {
                "market": market,
                "instrument": instrument,
                "limit": 1,
                "aggregate": 1,
                "fill": "true",
                "response_format": "JSON",
                "to_ts": to_ts,
            },
        )
        bars = payload.get("Data") or []
        if not bars:
            raise CoinDeskAPIError(f"CoinDesk returned no daily data for {instrument} at {to_ts}", payload=payload)

        bar = bars[-1]
        close = _decimal_or_none(bar.get("CLOSE"))
        if bar.get("TIMESTAMP") is None or close is None:
            raise CoinDeskAPIError("CoinDesk daily bar has no TIMESTAMP or CLOSE", payload=bar)

        return DailyClose(
            timestamp=_from_epoch(bar["TIMESTAMP"]),
            market=str(bar.get("MARKET", market)),
            instrument=str(bar.get("INSTRUMENT", instrument)),
            close=close,
        )

    def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        try:
            response = self._session.request(
                "GET",
                f"{self.base_url}{path}",
                params=params,
                timeout=self.timeout,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise _http_error(exc) from exc
        except requests.RequestException as exc:
            raise CoinDeskAPIError(
                "CoinDesk API request failed", status_code=getattr(exc.response, "status_code", None)
            ) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise CoinDeskAPIError("CoinDesk API returned invalid JSON", payload=response.text) from exc
        if not isinstance(payload, dict):
            raise CoinDeskAPIError("CoinDesk API returned unexpected payload type", payload=payload)

        message = _error_message(payload)
        if message:
            raise CoinDeskAPIError(message, status_code=response.status_code, payload=payload)
        return payload


def _http_error(exc: requests.HTTPError) -> CoinDeskAPIError:
    response = exc.response
    if response is None:
        return CoinDeskAPIError("CoinDesk API request failed")

    try:
        payload: Any = response.json()
    except ValueError:
        payload = response.text
    message = _error_message(payload) or "CoinDesk API request failed"
    return CoinDeskAPIError(message, status_code=response.status_code, payload=payload)


def _error_message(payload: Any) -> str | None:
    err = payload.get("Err") if isinstance(payload, dict) else None
    if isinstance(err, dict) and err.get("message"):
        return str(err["message"])
    return None


def _from_epoch(value: Any) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _decimal_or_none(value: Any) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value))


__all__ = ["CoinDeskAPIError", "CoinDeskClient", "DailyClose", "SpotTick", "build_retrying_session"]

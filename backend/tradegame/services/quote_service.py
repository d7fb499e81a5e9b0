"""Quote service — resolves stock symbols to prices.

Trading code depends only on the ``QuoteSource`` interface; the Alpha Vantage
specifics (URL layout, ``Global Quote`` payload keys, throttling notices) are
confined to ``AlphaVantageQuoteSource``.
"""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Optional

import httpx

from tradegame.config import settings
from tradegame.exceptions import QuoteSourceError, QuoteUnavailable

logger = logging.getLogger(__name__)

INTRADAY_INTERVALS = ("1min", "5min", "15min", "30min", "60min")


class QuoteSource(ABC):
    @abstractmethod
    def get_price(self, symbol: str) -> Decimal: ...

    @abstractmethod
    def get_intraday(self, symbol: str, interval: str = "1min") -> list[dict]: ...


class AlphaVantageQuoteSource(QuoteSource):
    """Fetches quotes from an Alpha Vantage compatible HTTP API.

    Every call is a fresh round trip bounded by ``timeout``; nothing is cached
    and nothing is retried.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        self.base_url = base_url
        self.api_key = api_key
        self.timeout = timeout
        self._client = client or httpx.Client(headers={"User-Agent": "tradegame"})

    def close(self) -> None:
        self._client.close()

    def _query(self, params: dict) -> dict:
        symbol = params.get("symbol")
        try:
            response = self._client.get(
                self.base_url,
                params={**params, "apikey": self.api_key},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning("Quote request for %s timed out after %ss", symbol, self.timeout)
            raise QuoteSourceError(f"Quote provider timed out for symbol {symbol}") from e
        except httpx.HTTPError as e:
            logger.warning("Quote request for %s failed: %s", symbol, e)
            raise QuoteSourceError(f"Quote provider request failed for symbol {symbol}") from e

        if not response.is_success:
            logger.warning("Quote provider returned HTTP %s for %s", response.status_code, symbol)
            raise QuoteSourceError(
                f"Failed to fetch stock data for symbol {symbol} (HTTP {response.status_code})"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise QuoteSourceError(f"Malformed quote payload for symbol {symbol}") from e
        if not isinstance(data, dict):
            raise QuoteSourceError(f"Malformed quote payload for symbol {symbol}")

        # Throttling and key problems come back as 200 with a notice instead of data
        notice = data.get("Note") or data.get("Information")
        if notice:
            logger.warning("Quote provider notice for %s: %s", symbol, notice)
            raise QuoteSourceError(f"Quote provider unavailable: {notice}")
        if "Error Message" in data:
            raise QuoteUnavailable(f"Stock data not available for symbol {symbol}")
        return data

    def get_price(self, symbol: str) -> Decimal:
        data = self._query({"function": "GLOBAL_QUOTE", "symbol": symbol})
        quote = data.get("Global Quote")
        if not isinstance(quote, dict) or not quote.get("05. price"):
            raise QuoteUnavailable(f"Stock data not available for symbol {symbol}")

        try:
            price = Decimal(str(quote["05. price"]))
        except InvalidOperation as e:
            raise QuoteSourceError(f"Malformed price for symbol {symbol}") from e
        if not price.is_finite() or price <= 0:
            raise QuoteUnavailable(f"No positive price for symbol {symbol}")
        return price

    def get_intraday(self, symbol: str, interval: str = "1min") -> list[dict]:
        if interval not in INTRADAY_INTERVALS:
            raise ValueError(f"Unsupported interval {interval!r}")

        data = self._query({
            "function": "TIME_SERIES_INTRADAY",
            "symbol": symbol,
            "interval": interval,
        })
        series = data.get(f"Time Series ({interval})")
        if not isinstance(series, dict) or not series:
            raise QuoteUnavailable(f"Intraday data not available for symbol {symbol}")

        points = []
        try:
            for timestamp, bar in series.items():
                points.append({
                    "timestamp": timestamp,
                    "open": Decimal(str(bar["1. open"])),
                    "high": Decimal(str(bar["2. high"])),
                    "low": Decimal(str(bar["3. low"])),
                    "close": Decimal(str(bar["4. close"])),
                    "volume": int(bar["5. volume"]),
                })
        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            raise QuoteSourceError(f"Malformed intraday payload for symbol {symbol}") from e
        return sorted(points, key=lambda p: p["timestamp"])


_quote_source: Optional[QuoteSource] = None


def get_quote_source() -> QuoteSource:
    """FastAPI dependency returning the process-wide quote source."""
    global _quote_source
    if _quote_source is None:
        _quote_source = AlphaVantageQuoteSource(
            base_url=settings.QUOTE_API_URL,
            api_key=settings.QUOTE_API_KEY,
            timeout=settings.QUOTE_TIMEOUT_SECONDS,
        )
    return _quote_source

"""Data agent for fetching tickers and candles for tracked assets."""
import asyncio
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import aiohttp
import pandas as pd
import yfinance as yf

from agents.base import BaseAgent
from models.market_data import Asset, AssetType, PriceData, PriceHistory, PriceSample
from models.validation import validate_price, validate_symbol
from utils.exceptions import APIError, ValidationError
from utils.retry import RetryConfig, async_retry_with_backoff, retry_with_backoff

# Binance kline interval -> nearest yfinance interval
_YAHOO_INTERVALS = {
    "1m": "1m", "5m": "5m", "15m": "15m", "30m": "30m",
    "1h": "1h", "4h": "1h", "1d": "1d", "1w": "1wk"
}
# Lookback long enough to cover the kline limit at each interval
_YAHOO_PERIODS = {
    "1m": "5d", "5m": "5d", "15m": "5d", "30m": "1mo",
    "1h": "1mo", "1d": "6mo", "1wk": "2y"
}

_BINANCE_RETRY = RetryConfig(max_attempts=3, initial_delay=0.5, max_delay=5.0)
_YAHOO_RETRY = RetryConfig(max_attempts=2, initial_delay=1.0, max_delay=5.0)


class DataAgent(BaseAgent):
    """
    Fetches latest prices and candle history.

    Pure code agent, no LLM. Crypto pairs come from the Binance public REST
    API over aiohttp; forex and equities from Yahoo Finance. Every failure is
    logged and reported as "no data" (None), never raised to the caller.
    """

    def __init__(self, config=None):
        super().__init__(config)
        self.data_config = self.config.data_provider
        self._session: Optional[aiohttp.ClientSession] = None
        self.log_info(
            f"DataAgent initialized (klines interval={self.data_config.kline_interval}, "
            f"limit={self.data_config.kline_limit})"
        )

    async def process(self, asset: Asset) -> Optional[PriceHistory]:
        """Fetch the candle history used for regime classification."""
        return await self.fetch_history(asset)

    async def fetch_price(self, asset: Asset) -> Optional[PriceData]:
        """
        Fetch the latest ticker for an asset.

        Returns:
            PriceData, or None if the provider failed
        """
        self.generate_correlation_id()
        try:
            symbol = validate_symbol(asset.symbol)
            if asset.type == AssetType.CRYPTO:
                return await self._fetch_binance_price(symbol)
            return await self._run_blocking(self._fetch_yahoo_price, asset)
        except (APIError, ValidationError, aiohttp.ClientError, asyncio.TimeoutError,
                KeyError, TypeError, ValueError) as e:
            self.log_warning(f"Price fetch failed for {asset.symbol}: {e}", symbol=asset.symbol)
            return None

    async def fetch_history(self, asset: Asset) -> Optional[PriceHistory]:
        """
        Fetch candles in ascending time order.

        Returns:
            PriceHistory, or None if the provider failed or returned nothing
        """
        self.generate_correlation_id()
        try:
            symbol = validate_symbol(asset.symbol)
            if asset.type == AssetType.CRYPTO:
                samples = await self._fetch_binance_klines(symbol)
            else:
                samples = await self._run_blocking(self._fetch_yahoo_history, asset)
        except (APIError, ValidationError, aiohttp.ClientError, asyncio.TimeoutError,
                KeyError, TypeError, ValueError) as e:
            self.log_warning(f"History fetch failed for {asset.symbol}: {e}", symbol=asset.symbol)
            return None

        if not samples:
            self.log_warning(f"No candles returned for {asset.symbol}", symbol=asset.symbol)
            return None

        self.log_debug(f"Fetched {len(samples)} candles for {asset.symbol}")
        return PriceHistory(symbol=asset.symbol, samples=samples)

    # Binance

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.data_config.request_timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    @async_retry_with_backoff(_BINANCE_RETRY)
    async def _get_json(self, url: str, params: Dict[str, Any]) -> Any:
        session = await self._get_session()
        async with session.get(url, params=params) as response:
            if response.status != 200:
                body = await response.text()
                raise APIError(
                    f"Binance request failed with HTTP {response.status}",
                    status_code=response.status,
                    correlation_id=self._correlation_id,
                    details={"url": url, "params": params, "body": body[:200]}
                )
            return await response.json()

    async def _fetch_binance_price(self, symbol: str) -> PriceData:
        data = await self._get_json(self.data_config.binance_ticker_url, {"symbol": symbol})
        return PriceData(
            symbol=data.get("symbol", symbol),
            price=validate_price(data["lastPrice"]),
            change_24h=float(data["priceChange"]),
            change_percent_24h=float(data["priceChangePercent"]),
            timestamp=datetime.now(timezone.utc)
        )

    async def _fetch_binance_klines(self, symbol: str) -> List[PriceSample]:
        candles = await self._get_json(
            self.data_config.binance_klines_url,
            {
                "symbol": symbol,
                "interval": self.data_config.kline_interval,
                "limit": self.data_config.kline_limit
            }
        )
        # [open time, open, high, low, close, volume, close time, ...]
        return [
            PriceSample(
                timestamp=datetime.fromtimestamp(candle[0] / 1000, tz=timezone.utc),
                price=float(candle[4]),
                high=float(candle[2]),
                low=float(candle[3]),
                volume=float(candle[5])
            )
            for candle in candles
        ]

    # Yahoo Finance

    @staticmethod
    def yahoo_symbol(asset: Asset) -> str:
        """Yahoo ticker for an asset (forex pairs carry a ``=X`` suffix)."""
        if asset.type == AssetType.FOREX:
            return f"{asset.symbol}=X"
        return asset.symbol

    async def _run_blocking(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    @retry_with_backoff(_YAHOO_RETRY)
    def _yahoo_frame(self, asset: Asset, period: str, interval: str) -> pd.DataFrame:
        try:
            ticker = yf.Ticker(self.yahoo_symbol(asset))
            df = ticker.history(
                period=period,
                interval=interval,
                timeout=self.data_config.request_timeout_seconds
            )
        except Exception as e:
            # yfinance surfaces HTTP and parsing problems as assorted exception types
            raise APIError(f"Yahoo Finance error for {asset.symbol}: {e}") from e
        if df is None or df.empty:
            raise APIError(f"No data returned from Yahoo Finance for {asset.symbol}")
        return df.dropna(subset=["Close"])

    def _fetch_yahoo_price(self, asset: Asset) -> PriceData:
        df = self._yahoo_frame(asset, period="5d", interval="1d")
        closes = df["Close"].astype(float)
        price = validate_price(closes.iloc[-1])
        previous = float(closes.iloc[-2]) if len(closes) > 1 else price
        change = price - previous
        return PriceData(
            symbol=asset.symbol,
            price=price,
            change_24h=change,
            change_percent_24h=(change / previous) * 100 if previous else 0.0,
            timestamp=datetime.now(timezone.utc)
        )

    def _fetch_yahoo_history(self, asset: Asset) -> List[PriceSample]:
        interval = _YAHOO_INTERVALS.get(self.data_config.kline_interval, "1h")
        period = _YAHOO_PERIODS.get(interval, "1mo")
        df = self._yahoo_frame(asset, period=period, interval=interval)
        df = df.tail(self.data_config.kline_limit)

        samples = []
        for idx, row in df.iterrows():
            timestamp = idx.to_pydatetime() if hasattr(idx, "to_pydatetime") else idx
            volume = float(row["Volume"]) if "Volume" in row and not pd.isna(row["Volume"]) else None
            samples.append(PriceSample(
                timestamp=timestamp,
                price=float(row["Close"]),
                high=float(row["High"]) if not pd.isna(row["High"]) else None,
                low=float(row["Low"]) if not pd.isna(row["Low"]) else None,
                volume=volume
            ))
        return [s for s in samples if math.isfinite(s.price)]

    async def cleanup_async_resources(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def health_check(self) -> Dict[str, Any]:
        health = super().health_check()
        health.update({
            "binance_ticker_url": self.data_config.binance_ticker_url,
            "session_open": bool(self._session and not self._session.closed)
        })
        return health

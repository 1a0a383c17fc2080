"""Volatility indicators used for stop placement."""
import logging
from typing import Optional

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


def calculate_atr(high: pd.Series, low: pd.Series, close: pd.Series, period: int = 14) -> pd.Series:
    """
    Calculate Average True Range (ATR).

    Args:
        high: Series of high prices
        low: Series of low prices
        close: Series of closing prices
        period: ATR period (default 14)

    Returns:
        Series of ATR values
    """
    high_low = high - low
    high_close = np.abs(high - close.shift())
    low_close = np.abs(low - close.shift())

    ranges = pd.concat([high_low, high_close, low_close], axis=1)
    true_range = ranges.max(axis=1)

    atr = true_range.rolling(period).mean()
    return atr


def estimate_atr(df: pd.DataFrame, period: int = 14) -> Optional[float]:
    """
    Latest ATR reading for a price frame.

    Uses true range when the frame carries high/low columns, otherwise the
    mean absolute close-to-close change. With fewer rows than ``period`` the
    whole frame is averaged.

    Returns:
        ATR magnitude, or None if it cannot be estimated
    """
    if df is None or df.empty or 'close' not in df.columns or len(df) < 2:
        return None

    close = df['close'].astype(float)
    has_range = (
        'high' in df.columns and 'low' in df.columns
        and df['high'].notna().all() and df['low'].notna().all()
    )
    window = min(period, len(df) - 1)

    if has_range:
        atr = calculate_atr(df['high'].astype(float), df['low'].astype(float), close, period=window)
    else:
        atr = close.diff().abs().rolling(window).mean()

    value = atr.iloc[-1]
    if pd.isna(value):
        logger.debug("ATR estimate returned NaN")
        return None
    return float(value)

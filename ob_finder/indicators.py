"""
Technical indicators used by the order block detector.
All functions are pure; series helpers are computed once per scan.
"""
import math
from typing import Optional

import numpy as np
import pandas as pd

from .models import Candle


def true_range(candle: Candle, previous: Optional[Candle] = None) -> float:
    """
    True Range of a single candle.

    Args:
        candle: Current candle
        previous: Preceding candle, if any. Without it the previous close
            is taken as the candle's own close (TR degenerates to high - low).

    Returns:
        max(high - low, |high - prev_close|, |low - prev_close|)
    """
    prev_close = previous.close if previous is not None else candle.close
    return max(
        candle.high - candle.low,
        abs(candle.high - prev_close),
        abs(candle.low - prev_close),
    )


def true_range_series(df: pd.DataFrame) -> pd.Series:
    """
    Calculate True Range for every candle of the given data.

    Args:
        df: DataFrame with OHLCV data

    Returns:
        Series with TR values (first candle uses its own close as previous)
    """
    high = df['high']
    low = df['low']
    close = df['close'].shift(1)
    close.iloc[:1] = df['close'].iloc[:1]

    tr1 = high - low
    tr2 = abs(high - close)
    tr3 = abs(low - close)

    return pd.concat([tr1, tr2, tr3], axis=1).max(axis=1)


def atr_series(df: pd.DataFrame, period: int = 10) -> pd.Series:
    """
    Wilder-smoothed Average True Range for every candle.

    The seed at position ``period`` is the simple mean of TR over candles
    1..period; later values use alpha = 1/period. Positions before the seed
    are 0.

    Args:
        df: DataFrame with OHLCV data
        period: ATR period (default: 10)

    Returns:
        Series with ATR values aligned to df
    """
    n = len(df)
    out = np.zeros(n, dtype=float)
    if period <= 0 or n <= period:
        return pd.Series(out, index=df.index)

    tr = true_range_series(df).to_numpy(dtype=float)
    alpha = 1.0 / period

    out[period] = tr[1:period + 1].mean()
    for i in range(period + 1, n):
        out[i] = tr[i] * alpha + out[i - 1] * (1 - alpha)

    return pd.Series(out, index=df.index)


def calculate_atr(df: pd.DataFrame, period: int = 10) -> float:
    """
    Current ATR of the series (last smoothed value).

    Returns:
        ATR as a scalar, 0 if there is not enough history for the seed
    """
    if df is None or len(df) <= period:
        return 0.0
    return float(atr_series(df, period).iloc[-1])


def volume_sma(df: pd.DataFrame, end_index: int, period: int = 20) -> float:
    """
    Average volume of the ``period`` candles ending at ``end_index`` inclusive.

    Returns:
        Mean volume, 0 if there is insufficient history and NaN if a volume
        in the window is missing
    """
    if period <= 0 or end_index < period - 1 or end_index >= len(df):
        return 0.0
    window = df['volume'].iloc[end_index - period + 1:end_index + 1]
    return float(window.mean(skipna=False))


def volume_sma_series(df: pd.DataFrame, period: int = 20) -> pd.Series:
    """
    Rolling volume SMA aligned to df.

    The first ``period - 1`` values are 0 (insufficient history). A window
    containing a missing volume stays NaN so that it rejects in filters.
    """
    sma = df['volume'].rolling(window=period).mean()
    sma.iloc[:period - 1] = 0.0
    return sma


def balance_percent(high_half: float, low_half: float) -> int:
    """
    How evenly volume is split between the two halves of a breakout.

    Returns:
        round(100 * smaller / larger) as an int in [0, 100]; 0 when both
        halves are 0 or either is not a finite number
    """
    if not (math.isfinite(high_half) and math.isfinite(low_half)):
        return 0
    larger = max(high_half, low_half)
    if larger <= 0:
        return 0
    smaller = min(high_half, low_half)
    # Round half up
    return int(math.floor(100.0 * smaller / larger + 0.5))


def volume_ratio(volume: float, average: float) -> float:
    """Breakout volume relative to its SMA, 0 when the average is unusable."""
    if not math.isfinite(average) or average <= 0 or not math.isfinite(volume):
        return 0.0
    return volume / average

"""
Data fetcher module for retrieving OHLCV candles from Binance using ccxt.
"""
from datetime import datetime, timedelta, timezone

import ccxt
import pandas as pd

from . import config
from .logger import get_logger

logger = get_logger("data_fetcher")

CANDLE_COLUMNS = ['timestamp', 'open', 'high', 'low', 'close', 'volume']

# Cache the exchange instance for reuse
_exchange = None


def _get_exchange():
    """Get or create the cached exchange instance."""
    global _exchange
    if _exchange is None:
        _exchange = ccxt.binance({
            'enableRateLimit': True,
        })
    return _exchange


def ohlcv_to_dataframe(rows) -> pd.DataFrame:
    """
    Convert raw OHLCV rows into a candle DataFrame.

    Args:
        rows: Sequence of [open_time_ms, open, high, low, close, volume, ...]
            as returned by ccxt or the Binance klines endpoint

    Returns:
        pandas.DataFrame with columns: timestamp, open, high, low, close, volume
    """
    if not rows:
        return pd.DataFrame(columns=CANDLE_COLUMNS)

    df = pd.DataFrame([list(row[:6]) for row in rows], columns=CANDLE_COLUMNS)
    df['timestamp'] = pd.to_datetime(df['timestamp'], unit='ms')
    for column in CANDLE_COLUMNS[1:]:
        df[column] = pd.to_numeric(df[column], errors='coerce')
    return df


def fetch_candles(symbol, timeframe, limit=None):
    """
    Fetch the most recent candles for a symbol and timeframe.

    Args:
        symbol: Trading pair symbol (e.g., "BTC/USDT")
        timeframe: Timeframe string (e.g., "1h", "4h")
        limit: Number of candles (defaults to config.KLINE_LIMIT)

    Returns:
        pandas.DataFrame of candles, empty if the exchange is unavailable
    """
    limit = limit or config.KLINE_LIMIT
    try:
        ohlcv = _get_exchange().fetch_ohlcv(symbol, timeframe, limit=limit)
    except ccxt.BaseError as e:
        logger.error(f"Failed to fetch candles for {symbol} {timeframe}: {e}")
        return pd.DataFrame(columns=CANDLE_COLUMNS)
    return ohlcv_to_dataframe(ohlcv)


def fetch_last_n_days(symbol, timeframe, days=2):
    """
    Fetch OHLCV data for the last N days for a given symbol and timeframe.

    Args:
        symbol: Trading pair symbol (e.g., "BTC/USDT")
        timeframe: Timeframe string (e.g., "15m", "1h")
        days: Number of days of historical data to fetch

    Returns:
        pandas.DataFrame of candles, empty if the exchange is unavailable
    """
    exchange = _get_exchange()
    since = exchange.parse8601(
        (datetime.now(timezone.utc) - timedelta(days=days)).strftime('%Y-%m-%dT%H:%M:%SZ')
    )
    try:
        ohlcv = exchange.fetch_ohlcv(symbol, timeframe, since, limit=config.KLINE_LIMIT)
    except ccxt.BaseError as e:
        logger.error(f"Failed to fetch {days}d history for {symbol} {timeframe}: {e}")
        return pd.DataFrame(columns=CANDLE_COLUMNS)
    return ohlcv_to_dataframe(ohlcv)

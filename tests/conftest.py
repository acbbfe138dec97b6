"""
Shared candle fixtures.

The bullish scenario (swing_length=3) is laid out so that:
- candle 3 becomes the swing high (110) once candles 4-6 close below it
- candle 8 closes at 111 and confirms the breakout
- walking back from candle 7 the lowest low is candle 5 (94), so the
  Support zone is 94-98 formed at candle 5
- candle 10 wicks to 93 (breach), candle 11 trades up to 99 (invalidation)
"""
import os
import sys

import numpy as np
import pandas as pd
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from ob_finder.detection import DetectionConfig

START = pd.Timestamp('2024-01-01')

# (open, high, low, close, volume)
BULLISH_ROWS = [
    (100.0, 101.0, 99.0, 100.0, 20.0),    # 0
    (100.0, 101.0, 99.0, 100.0, 20.0),    # 1
    (100.0, 101.0, 99.0, 100.0, 20.0),    # 2
    (100.0, 110.0, 99.0, 100.0, 20.0),    # 3 swing high
    (100.0, 102.0, 96.0, 97.0, 20.0),     # 4
    (97.0, 98.0, 94.0, 95.0, 20.0),       # 5 order block candle
    (95.0, 99.0, 94.5, 98.0, 100.0),      # 6
    (98.0, 104.0, 97.5, 103.0, 30.0),     # 7
    (103.0, 112.0, 102.5, 111.0, 120.0),  # 8 breakout
    (111.0, 113.0, 108.0, 112.0, 20.0),   # 9
    (96.0, 97.0, 93.0, 95.0, 20.0),       # 10 breach
    (95.0, 99.0, 94.5, 98.5, 20.0),       # 11 invalidation
]


def make_df(rows, start=START, minutes=60):
    """Build a candle DataFrame from (open, high, low, close, volume) tuples."""
    data = []
    for i, (o, h, l, c, v) in enumerate(rows):
        data.append({
            'timestamp': start + pd.Timedelta(minutes=i * minutes),
            'open': o,
            'high': h,
            'low': l,
            'close': c,
            'volume': v,
        })
    return pd.DataFrame(data)


def mirror_rows(rows, pivot=200.0):
    """Reflect prices around ``pivot`` so a bullish setup becomes bearish."""
    return [(pivot - o, pivot - l, pivot - h, pivot - c, v) for o, h, l, c, v in rows]


def with_volumes(rows, volumes):
    """Replace the volume of selected rows: ``volumes`` maps index -> volume."""
    return [
        (o, h, l, c, volumes.get(i, v))
        for i, (o, h, l, c, v) in enumerate(rows)
    ]


def create_synthetic_ohlcv(n_bars=300, base_price=100, volatility=1.0, seed=42):
    """Random-walk OHLCV data."""
    rng = np.random.default_rng(seed)
    data = []
    current_price = base_price

    for i in range(n_bars):
        current_price += rng.standard_normal() * volatility
        open_price = current_price
        close_price = current_price + rng.standard_normal() * volatility
        high_price = max(open_price, close_price) + abs(rng.standard_normal()) * volatility * 0.5
        low_price = min(open_price, close_price) - abs(rng.standard_normal()) * volatility * 0.5
        volume = abs(rng.standard_normal()) * 1000 + 500

        data.append({
            'timestamp': START + pd.Timedelta(minutes=i * 15),
            'open': open_price,
            'high': high_price,
            'low': low_price,
            'close': close_price,
            'volume': volume,
        })

    return pd.DataFrame(data)


@pytest.fixture
def small_cfg():
    return DetectionConfig(swing_length=3, volume_sma_period=5, atr_period=3)


@pytest.fixture
def bullish_df():
    """Breakout scenario up to and including the breakout candle."""
    return make_df(BULLISH_ROWS[:9])


@pytest.fixture
def bullish_full_df():
    return make_df(BULLISH_ROWS)

"""
Order block detection module.
Single forward scan over a candle series: swing tracking, breakout
confirmation, zone construction with volume/balance/size filters and the
per-zone breaker/invalidation state machine.
"""
import math
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from . import config
from .indicators import atr_series, balance_percent, volume_ratio, volume_sma_series
from .logger import get_logger
from .models import Candle, SwingPoint, Zone, ZoneKind, ZoneState
from .patterns import classify_breakout

logger = get_logger("detection")

END_METHODS = ("Wick", "Close")
OHLCV_COLUMNS = ['open', 'high', 'low', 'close', 'volume']


@dataclass(frozen=True)
class DetectionConfig:
    """Numeric parameters of one detection run."""

    swing_length: int = config.SWING_LENGTH
    volume_multiplier: float = config.VOLUME_MULTIPLIER
    volume_sma_period: int = config.VOLUME_SMA_PERIOD
    min_balance_percent: int = config.MIN_BALANCE_PERCENT
    max_balance_percent: int = config.MAX_BALANCE_PERCENT
    max_atr_multiplier: float = config.MAX_ATR_MULTIPLIER
    atr_period: int = config.ATR_PERIOD
    end_method: str = config.END_METHOD

    def __post_init__(self):
        if self.swing_length < 1:
            raise ValueError(f"swing_length must be >= 1, got {self.swing_length}")
        if self.volume_sma_period < 1:
            raise ValueError(f"volume_sma_period must be >= 1, got {self.volume_sma_period}")
        if self.atr_period < 1:
            raise ValueError(f"atr_period must be >= 1, got {self.atr_period}")
        if not 0 <= self.min_balance_percent <= self.max_balance_percent <= 100:
            raise ValueError(
                f"balance bounds must satisfy 0 <= min <= max <= 100, "
                f"got [{self.min_balance_percent}, {self.max_balance_percent}]"
            )
        if self.volume_multiplier < 0 or self.max_atr_multiplier < 0:
            raise ValueError("multipliers must be non-negative")
        if self.end_method not in END_METHODS:
            raise ValueError(f"end_method must be one of {END_METHODS}, got {self.end_method!r}")


class SwingTracker:
    """
    Tracks the active swing-high and swing-low while the scan advances.

    At scan position i the reference candle is i - swing_length; it becomes
    the active swing-high when its high strictly exceeds every high in the
    window (ref, i]. Swing-lows are the mirror image. A new swing replaces
    the previous one of the same side.
    """

    def __init__(self, highs: np.ndarray, lows: np.ndarray, swing_length: int):
        self.highs = highs
        self.lows = lows
        self.swing_length = swing_length
        # Rolling window at i covers (i - swing_length, i]
        self.window_high = pd.Series(highs).rolling(window=swing_length).max().to_numpy()
        self.window_low = pd.Series(lows).rolling(window=swing_length).min().to_numpy()
        self.swing_high: Optional[SwingPoint] = None
        self.swing_low: Optional[SwingPoint] = None

    def update(self, i: int) -> None:
        if i < self.swing_length:
            return
        ref = i - self.swing_length
        if self.highs[ref] > self.window_high[i]:
            self.swing_high = SwingPoint(index=ref, price=float(self.highs[ref]))
        if self.lows[ref] < self.window_low[i]:
            self.swing_low = SwingPoint(index=ref, price=float(self.lows[ref]))


def advance_zone(zone: Zone, candle: Candle, end_method: str = "Wick") -> Zone:
    """
    Apply one candle to a zone's breaker/invalidation state machine.

    Active -> Breached when price crosses the zone from its favorable side
    (wick or body extreme depending on ``end_method``); Breached ->
    Invalidated when price then fully reclaims the opposite boundary.
    A zone moves at most one state per candle.

    Returns:
        The same zone if nothing changed, otherwise a new snapshot
    """
    if zone.state is ZoneState.ACTIVE:
        if zone.kind is ZoneKind.SUPPORT:
            test_low = candle.low if end_method == "Wick" else min(candle.open, candle.close)
            if test_low < zone.bottom:
                return zone.with_state(ZoneState.BREACHED, breach_time=candle.timestamp)
        else:
            test_high = candle.high if end_method == "Wick" else max(candle.open, candle.close)
            if test_high > zone.top:
                return zone.with_state(ZoneState.BREACHED, breach_time=candle.timestamp)
    elif zone.state is ZoneState.BREACHED:
        if zone.kind is ZoneKind.SUPPORT:
            if candle.high > zone.top:
                return zone.with_state(ZoneState.INVALIDATED)
        elif candle.low < zone.bottom:
            return zone.with_state(ZoneState.INVALIDATED)
    return zone


class OrderBlockScanner:
    """
    One detection run over a prepared candle DataFrame.

    Indicators are computed once up front; ``run`` then walks the candles
    a single time, never revisiting earlier positions.
    """

    def __init__(self, df: pd.DataFrame, cfg: DetectionConfig):
        self.cfg = cfg
        self.timestamps = df['timestamp'].tolist() if 'timestamp' in df else list(range(len(df)))
        self.opens = df['open'].to_numpy(dtype=float)
        self.highs = df['high'].to_numpy(dtype=float)
        self.lows = df['low'].to_numpy(dtype=float)
        self.closes = df['close'].to_numpy(dtype=float)
        self.volumes = df['volume'].to_numpy(dtype=float)
        self.atr = atr_series(df, cfg.atr_period).to_numpy(dtype=float)
        self.volume_sma = volume_sma_series(df, cfg.volume_sma_period).to_numpy(dtype=float)
        self.tracker = SwingTracker(self.highs, self.lows, cfg.swing_length)
        self.zones: List[Zone] = []

    def candle(self, i: int) -> Candle:
        return Candle(
            timestamp=self.timestamps[i],
            open=self.opens[i],
            high=self.highs[i],
            low=self.lows[i],
            close=self.closes[i],
            volume=self.volumes[i],
            index=i,
        )

    def run(self) -> List[Zone]:
        for i in range(self.cfg.swing_length, len(self.closes)):
            self.tracker.update(i)
            close = self.closes[i]

            swing_high = self.tracker.swing_high
            if swing_high is not None and not swing_high.crossed and close > swing_high.price:
                swing_high.crossed = True
                zone = self.build_zone(i, swing_high, ZoneKind.SUPPORT)
                if zone is not None:
                    self.zones.append(zone)

            swing_low = self.tracker.swing_low
            if swing_low is not None and not swing_low.crossed and close < swing_low.price:
                swing_low.crossed = True
                zone = self.build_zone(i, swing_low, ZoneKind.RESISTANCE)
                if zone is not None:
                    self.zones.append(zone)

            self.sweep(i)

        return list(self.zones)

    def sweep(self, i: int) -> None:
        """Advance every open zone by candle i and drop invalidated ones."""
        if not self.zones:
            return
        candle = self.candle(i)
        for idx, zone in enumerate(self.zones):
            self.zones[idx] = advance_zone(zone, candle, self.cfg.end_method)
        self.zones = [z for z in self.zones if not z.is_invalidated]

    def build_zone(self, i: int, swing: SwingPoint, kind: ZoneKind) -> Optional[Zone]:
        """
        Try to build a zone confirmed by breakout candle i.

        Returns:
            The new Active zone, or None when a filter rejects it
        """
        cfg = self.cfg
        if i < 2:
            return None

        volume = self.volumes[i]
        average = self.volume_sma[i]
        if not volume > average * cfg.volume_multiplier:
            return None

        prev = i - 1
        formation = prev
        distance = i - swing.index

        if kind is ZoneKind.SUPPORT:
            # Inverted seed: the first walked candle always replaces it
            bottom, top = self.highs[prev], self.lows[prev]
            for step in range(1, distance):
                j = i - step
                if self.lows[j] < bottom:
                    bottom, top = self.lows[j], self.highs[j]
                    formation = j
            high_half = self.volumes[i] + self.volumes[i - 1]
            low_half = self.volumes[i - 2]
        else:
            top, bottom = self.lows[prev], self.highs[prev]
            for step in range(1, distance):
                j = i - step
                if self.highs[j] > top:
                    top, bottom = self.highs[j], self.lows[j]
                    formation = j
            low_half = self.volumes[i] + self.volumes[i - 1]
            high_half = self.volumes[i - 2]

        if not (math.isfinite(top) and math.isfinite(bottom)) or top < bottom:
            logger.warning(
                f"Skipping malformed {kind.value} zone at candle {formation} "
                f"(top={top}, bottom={bottom})"
            )
            return None

        balance = balance_percent(high_half, low_half)
        if not cfg.min_balance_percent <= balance <= cfg.max_balance_percent:
            return None

        zone_size = abs(top - bottom)
        if not zone_size <= self.atr[i] * cfg.max_atr_multiplier:
            return None

        return Zone(
            kind=kind,
            top=float(top),
            bottom=float(bottom),
            formation_time=self.timestamps[formation],
            formation_index=formation,
            confirmation_time=self.timestamps[i],
            confirmation_index=i,
            volume_high=float(high_half),
            volume_low=float(low_half),
            balance_percent=balance,
            volume_ratio=round(volume_ratio(volume, average), 4),
            breakout_pattern=classify_breakout(self.candle(i), kind),
        )


def prepare_candles(df: Optional[pd.DataFrame]) -> Optional[pd.DataFrame]:
    """
    Normalize a candle DataFrame for scanning.

    Resets to a positional index and coerces OHLCV columns to floats
    (non-numeric values become NaN).
    """
    if df is None or df.empty:
        return None
    df = df.reset_index(drop=True).copy()
    for column in OHLCV_COLUMNS:
        df[column] = pd.to_numeric(df[column], errors='coerce').astype(float)
    return df


def detect_zones(df: Optional[pd.DataFrame],
                 cfg: Optional[DetectionConfig] = None) -> List[Zone]:
    """
    Detect order block zones in the given candles.

    Args:
        df: DataFrame with columns timestamp, open, high, low, close, volume,
            ordered by time ascending
        cfg: Detection parameters (defaults from config)

    Returns:
        Active and Breached (breaker) zones in creation order. Invalidated
        zones are not returned. Empty list when there is not enough data.
    """
    cfg = cfg or DetectionConfig()
    df = prepare_candles(df)
    if df is None or len(df) <= cfg.swing_length:
        return []

    zones = OrderBlockScanner(df, cfg).run()
    logger.debug(f"Detected {len(zones)} zones in {len(df)} candles")
    return zones


def group_zones(zones: List[Zone]) -> Dict[str, List[Zone]]:
    """Split zones into 'support' and 'resistance' lists."""
    grouped = {
        'support': [],
        'resistance': []
    }
    for zone in zones:
        if zone.kind is ZoneKind.SUPPORT:
            grouped['support'].append(zone)
        else:
            grouped['resistance'].append(zone)
    return grouped

"""
Unit tests for order block detection module.
Tests the swing tracker, zone construction filters and the zone state
machine with hand-built and synthetic data.
"""
import logging
import math

import numpy as np
import pandas as pd
import pytest

from ob_finder import detection
from ob_finder.detection import DetectionConfig
from ob_finder.indicators import atr_series
from ob_finder.models import Candle, SwingPoint, Zone, ZoneKind, ZoneState

from conftest import (
    BULLISH_ROWS,
    create_synthetic_ohlcv,
    make_df,
    mirror_rows,
    with_volumes,
)


def _zone(kind=ZoneKind.SUPPORT, bottom=100.0, top=105.0):
    ts = pd.Timestamp('2024-01-01')
    return Zone(
        kind=kind,
        top=top,
        bottom=bottom,
        formation_time=ts,
        formation_index=0,
        confirmation_time=ts,
        confirmation_index=1,
        volume_high=60.0,
        volume_low=40.0,
        balance_percent=67,
    )


def _candle(o, h, l, c, hour=0):
    return Candle(
        timestamp=pd.Timestamp('2024-01-01') + pd.Timedelta(hours=hour),
        open=o, high=h, low=l, close=c, volume=1.0,
    )


class TestDetectionConfig:
    """Test parameter validation."""

    def test_defaults(self):
        cfg = DetectionConfig()
        assert cfg.swing_length == 10
        assert cfg.volume_multiplier == 1.2
        assert cfg.volume_sma_period == 20
        assert (cfg.min_balance_percent, cfg.max_balance_percent) == (20, 80)
        assert cfg.max_atr_multiplier == 3.5
        assert cfg.atr_period == 10
        assert cfg.end_method == "Wick"

    @pytest.mark.parametrize("kwargs", [
        {'swing_length': 0},
        {'end_method': 'Body'},
        {'min_balance_percent': 90, 'max_balance_percent': 80},
        {'atr_period': 0},
        {'volume_multiplier': -1},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            DetectionConfig(**kwargs)


class TestSwingTracker:
    """Test swing high/low tracking."""

    def test_swing_high_needs_strictly_higher_reference(self):
        highs = np.array([1.0, 5.0, 2.0, 3.0, 1.0])
        lows = np.array([0.5, 1.0, 1.0, 1.0, 1.0])
        tracker = detection.SwingTracker(highs, lows, swing_length=2)

        tracker.update(2)
        assert tracker.swing_high is None

        tracker.update(3)
        assert tracker.swing_high == SwingPoint(index=1, price=5.0)

        tracker.update(4)
        assert tracker.swing_high.index == 1

    def test_swing_low(self):
        highs = np.array([5.0, 5.0, 5.0, 5.0, 5.0])
        lows = np.array([3.0, 1.0, 2.0, 2.0, 4.0])
        tracker = detection.SwingTracker(highs, lows, swing_length=2)

        for i in range(5):
            tracker.update(i)

        assert tracker.swing_low == SwingPoint(index=1, price=1.0)
        assert tracker.swing_high is None

    def test_newer_swing_replaces_older(self):
        highs = np.array([9.0, 1.0, 1.0, 7.0, 1.0, 1.0])
        lows = np.zeros(6)
        tracker = detection.SwingTracker(highs, lows, swing_length=2)

        tracker.update(2)
        assert tracker.swing_high.index == 0
        tracker.update(5)
        assert tracker.swing_high == SwingPoint(index=3, price=7.0)

    def test_swing_price_exceeds_window(self):
        df = create_synthetic_ohlcv(200)
        highs = df['high'].to_numpy()
        lows = df['low'].to_numpy()
        tracker = detection.SwingTracker(highs, lows, swing_length=5)

        previous = None
        for i in range(len(df)):
            tracker.update(i)
            current = tracker.swing_high
            if current is not None and current is not previous:
                window = highs[current.index + 1:i + 1]
                assert len(window) == 5
                assert current.price > window.max()
            previous = current


class TestAdvanceZone:
    """Test the Active -> Breached -> Invalidated state machine."""

    def test_support_breach_then_invalidation(self):
        zone = _zone(bottom=100.0, top=105.0)

        breached = detection.advance_zone(zone, _candle(101, 104, 98, 102, hour=1))
        assert breached.state is ZoneState.BREACHED
        assert breached.breach_time == pd.Timestamp('2024-01-01 01:00')
        assert breached.is_breaker

        invalidated = detection.advance_zone(breached, _candle(103, 106, 102, 105.5, hour=2))
        assert invalidated.state is ZoneState.INVALIDATED
        assert invalidated.breach_time == breached.breach_time

    def test_one_step_per_candle(self):
        zone = _zone(bottom=100.0, top=105.0)
        result = detection.advance_zone(zone, _candle(101, 106, 98, 102))
        assert result.state is ZoneState.BREACHED

    def test_untouched_zone_is_unchanged(self):
        zone = _zone(bottom=100.0, top=105.0)
        assert detection.advance_zone(zone, _candle(106, 108, 100, 107)) is zone

    def test_breach_time_set_once(self):
        zone = _zone(bottom=100.0, top=105.0)
        breached = detection.advance_zone(zone, _candle(101, 104, 98, 102, hour=1))
        again = detection.advance_zone(breached, _candle(99, 104, 95, 100, hour=2))
        assert again.breach_time == pd.Timestamp('2024-01-01 01:00')

    def test_close_mode_ignores_wicks(self):
        zone = _zone(bottom=100.0, top=105.0)
        wick_only = _candle(101, 104, 98, 102)
        assert detection.advance_zone(zone, wick_only, "Close").state is ZoneState.ACTIVE

        body_below = _candle(101, 104, 98, 99.5)
        assert detection.advance_zone(zone, body_below, "Close").state is ZoneState.BREACHED

    def test_resistance_mirror(self):
        zone = _zone(kind=ZoneKind.RESISTANCE, bottom=100.0, top=105.0)

        breached = detection.advance_zone(zone, _candle(103, 107, 102, 104))
        assert breached.state is ZoneState.BREACHED

        still = detection.advance_zone(breached, _candle(103, 107, 100, 104))
        assert still.state is ZoneState.BREACHED

        invalidated = detection.advance_zone(still, _candle(101, 102, 99, 100))
        assert invalidated.state is ZoneState.INVALIDATED


class TestZoneConstruction:
    """Test breakout confirmation and the zone filters."""

    def test_bullish_zone(self, bullish_df, small_cfg):
        zones = detection.detect_zones(bullish_df, small_cfg)

        assert len(zones) == 1
        zone = zones[0]
        assert zone.kind is ZoneKind.SUPPORT
        assert zone.bottom == 94.0
        assert zone.top == 98.0
        assert zone.formation_index == 5
        assert zone.formation_time == bullish_df['timestamp'].iloc[5]
        assert zone.confirmation_index == 8
        assert zone.confirmation_time == bullish_df['timestamp'].iloc[8]
        assert zone.volume_high == 150.0
        assert zone.volume_low == 100.0
        assert zone.balance_percent == 67
        assert zone.volume_ratio == pytest.approx(120 / 58, abs=1e-4)
        assert zone.state is ZoneState.ACTIVE
        assert zone.breach_time is None

    def test_breakout_pattern_attached(self, bullish_df, small_cfg):
        zone = detection.detect_zones(bullish_df, small_cfg)[0]
        pattern = zone.breakout_pattern
        assert pattern is not None
        assert pattern.is_bullish
        assert pattern.direction_match
        assert pattern.candle_type == "Strong Full-Body"
        assert pattern.tier == "Very Strong"

    def test_bearish_zone_mirror(self, small_cfg):
        df = make_df(mirror_rows(BULLISH_ROWS[:9]))
        zones = detection.detect_zones(df, small_cfg)

        assert len(zones) == 1
        zone = zones[0]
        assert zone.kind is ZoneKind.RESISTANCE
        assert zone.top == pytest.approx(106.0)
        assert zone.bottom == pytest.approx(102.0)
        assert zone.formation_index == 5
        # halves are swapped for bearish zones
        assert zone.volume_low == 150.0
        assert zone.volume_high == 100.0
        assert zone.balance_percent == 67
        assert zone.breakout_pattern.direction_match

    def test_volume_at_baseline_is_rejected(self, small_cfg):
        rows = with_volumes(BULLISH_ROWS[:9], {i: 100.0 for i in range(9)})
        assert detection.detect_zones(make_df(rows), small_cfg) == []

    def test_missing_volume_in_average_window_is_rejected(self, small_cfg):
        # Candle 4 sits inside the 5-candle average ending at the breakout
        rows = with_volumes(BULLISH_ROWS[:9], {4: math.nan})
        assert detection.detect_zones(make_df(rows), small_cfg) == []

        rows = with_volumes(BULLISH_ROWS[:9], {i: 100.0 for i in range(9)})
        rows = with_volumes(rows, {4: math.nan})
        assert detection.detect_zones(make_df(rows), small_cfg) == []

    def test_low_balance_is_rejected(self, small_cfg):
        # 10 / 150 -> 7%
        rows = with_volumes(BULLISH_ROWS[:9], {6: 10.0})
        assert detection.detect_zones(make_df(rows), small_cfg) == []

    def test_high_balance_is_rejected(self, small_cfg):
        # 150 / 160 -> 94%
        rows = with_volumes(BULLISH_ROWS[:9], {6: 160.0})
        assert detection.detect_zones(make_df(rows), small_cfg) == []

    def test_oversized_zone_is_rejected(self, bullish_df):
        # ATR(3) at the breakout is ~6.73, so a 4 point zone fails at 0.5x
        cfg = DetectionConfig(swing_length=3, volume_sma_period=5, atr_period=3,
                              max_atr_multiplier=0.5)
        assert detection.detect_zones(bullish_df, cfg) == []

    def test_atr_threshold(self, bullish_df, small_cfg):
        scanner = detection.OrderBlockScanner(detection.prepare_candles(bullish_df), small_cfg)
        swing = SwingPoint(index=3, price=110.0)

        # 4 > 1.0 * 3.5
        scanner.atr = np.full(len(bullish_df), 1.0)
        assert scanner.build_zone(8, swing, ZoneKind.SUPPORT) is None

        scanner.atr = np.full(len(bullish_df), 2.0)
        zone = scanner.build_zone(8, swing, ZoneKind.SUPPORT)
        assert zone is not None
        assert zone.size == pytest.approx(4.0)

    def test_malformed_zone_is_skipped(self, small_cfg, caplog):
        rows = list(BULLISH_ROWS[:9])
        o, h, l, c, v = rows[7]
        rows[7] = (o, math.nan, l, c, v)
        caplog.set_level(logging.WARNING, logger="ob_finder.detection")

        zones = detection.detect_zones(make_df(rows), small_cfg)

        assert [z for z in zones if z.kind is ZoneKind.SUPPORT] == []
        assert "malformed" in caplog.text

    def test_non_numeric_values_become_nan(self, bullish_df):
        df = bullish_df.astype({'high': object})
        df.loc[7, 'high'] = 'n/a'
        prepared = detection.prepare_candles(df)
        assert math.isnan(prepared['high'].iloc[7])


class TestZoneLifecycle:
    """Test zones across the rest of the scan."""

    def test_breached_zone_is_reported_as_breaker(self, bullish_full_df, small_cfg):
        zones = detection.detect_zones(bullish_full_df.iloc[:11], small_cfg)

        assert len(zones) == 1
        assert zones[0].state is ZoneState.BREACHED
        assert zones[0].breach_time == bullish_full_df['timestamp'].iloc[10]

    def test_invalidated_zone_is_dropped(self, bullish_full_df, small_cfg):
        assert detection.detect_zones(bullish_full_df, small_cfg) == []

    def test_close_mode_keeps_zone_active(self, bullish_full_df):
        cfg = DetectionConfig(swing_length=3, volume_sma_period=5, atr_period=3,
                              end_method="Close")
        zones = detection.detect_zones(bullish_full_df, cfg)

        assert len(zones) == 1
        assert zones[0].state is ZoneState.ACTIVE


class TestInsufficientData:
    """Test the no-op paths."""

    def test_none_and_empty(self):
        assert detection.detect_zones(None) == []
        assert detection.detect_zones(pd.DataFrame()) == []

    def test_not_longer_than_swing_length(self, bullish_df, small_cfg):
        assert detection.detect_zones(bullish_df.iloc[:3], small_cfg) == []


class TestProperties:
    """Invariants over synthetic random walks."""

    @pytest.mark.parametrize("seed", [1, 7, 42])
    def test_invariants(self, seed):
        cfg = DetectionConfig(swing_length=5)
        df = create_synthetic_ohlcv(400, seed=seed)
        zones = detection.detect_zones(df, cfg)
        atr = atr_series(df, cfg.atr_period)

        for zone in zones:
            assert zone.top >= zone.bottom
            assert cfg.min_balance_percent <= zone.balance_percent <= cfg.max_balance_percent
            assert zone.size <= atr.iloc[zone.confirmation_index] * cfg.max_atr_multiplier
            assert zone.formation_index < zone.confirmation_index
            assert zone.state in (ZoneState.ACTIVE, ZoneState.BREACHED)
            assert (zone.breach_time is not None) == (zone.state is ZoneState.BREACHED)
            assert 0 <= zone.breakout_pattern.score <= 100

    def test_idempotent(self):
        df = create_synthetic_ohlcv(400)
        cfg = DetectionConfig(swing_length=5)
        assert detection.detect_zones(df, cfg) == detection.detect_zones(df, cfg)

    def test_input_not_modified(self, bullish_df, small_cfg):
        before = bullish_df.copy()
        detection.detect_zones(bullish_df, small_cfg)
        pd.testing.assert_frame_equal(bullish_df, before)


class TestGroupZones:
    """Test grouping helper."""

    def test_group(self):
        zones = [_zone(), _zone(kind=ZoneKind.RESISTANCE), _zone()]
        grouped = detection.group_zones(zones)
        assert len(grouped['support']) == 2
        assert len(grouped['resistance']) == 1


if __name__ == '__main__':
    pytest.main([__file__, '-v'])

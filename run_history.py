#!/usr/bin/env python3
"""
Historical order block analysis script.
Fetches historical data for configured symbols and timeframes,
detects zones, and generates charts.
"""
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from ob_finder import config
from ob_finder import data_fetcher
from ob_finder import detection
from ob_finder import plotter
from ob_finder.logger import setup_logging


def main():
    """Main function to run historical zone detection."""
    setup_logging()
    print("=" * 60)
    print("Order Block Historical Analysis")
    print("=" * 60)
    print(f"Symbols: {config.SYMBOLS}")
    print(f"Timeframes: {config.TIMEFRAMES}")
    print()

    os.makedirs('charts', exist_ok=True)
    cfg = detection.DetectionConfig()

    for symbol in config.SYMBOLS:
        for timeframe in config.TIMEFRAMES:
            print(f"\nProcessing {symbol} on {timeframe}...")

            try:
                df = data_fetcher.fetch_last_n_days(symbol, timeframe, days=config.HISTORY_DAYS)
                print(f"  Fetched {len(df)} candles")
                if len(df) <= cfg.swing_length:
                    print("  Insufficient data, skipping")
                    continue

                zones = detection.detect_zones(df, cfg)
                grouped = detection.group_zones(zones)
                breakers = sum(1 for z in zones if z.is_breaker)
                print(f"  Detected {len(grouped['support'])} support and "
                      f"{len(grouped['resistance'])} resistance zones ({breakers} breakers)")

                for zone in zones:
                    pattern = zone.breakout_pattern
                    print(f"    {zone.kind.value:<10} {zone.bottom:.4f} - {zone.top:.4f} "
                          f"formed {zone.formation_time} [{zone.state.value}] "
                          f"{pattern.tier if pattern else ''}")

                symbol_filename = symbol.replace('/', '_')
                chart_path = f"charts/{symbol_filename}_{timeframe}_zones.png"
                plotter.plot_with_zones(df, zones, symbol, timeframe, save_path=chart_path)

            except Exception as e:
                print(f"  Error processing {symbol} {timeframe}: {e}")
                continue

    print("\n" + "=" * 60)
    print("Historical analysis complete!")
    print("=" * 60)


if __name__ == "__main__":
    main()

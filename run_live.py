#!/usr/bin/env python3
"""
Live zone detection script.
Polls configured symbols and timeframes, sends notifications when new
order block zones are detected.
"""
import os
import sys
import threading
import time

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from ob_finder import config
from ob_finder import detection
from ob_finder import notifier
from ob_finder import scanner
from ob_finder import state
from ob_finder.logger import setup_logging


# Seen-zone store shared by all workers
LOCK = threading.Lock()
STORE = state.SeenZoneStore(config.STATE_FILE)
CFG = detection.DetectionConfig()


def worker_thread(symbol, timeframe):
    """
    Worker thread that monitors a single symbol/timeframe combination.

    Args:
        symbol: Trading pair symbol (e.g., "BTC/USDT")
        timeframe: Timeframe string (e.g., "1h", "4h")
    """
    print(f"[{symbol} {timeframe}] Worker started")

    while True:
        result = scanner.scan_pair(symbol, timeframe, CFG)

        if result.ok and result.zones:
            with LOCK:
                fresh = scanner.new_zones([result], STORE)
                for _, _, _, key in fresh:
                    STORE.mark_seen(key, save=False)
                if fresh:
                    try:
                        STORE.save()
                    except IOError as e:
                        print(f"Warning: Could not save state: {e}")

            for _, _, zone, _ in fresh:
                print(f"\n[{symbol} {timeframe}] New {zone.kind.value} zone "
                      f"{zone.bottom:.4f}-{zone.top:.4f} formed {zone.formation_time}")
                notifier.notify(symbol, timeframe, zone)
        elif not result.ok:
            print(f"[{symbol} {timeframe}] Error: {result.error}")

        time.sleep(config.POLL_INTERVAL_SEC)


def main():
    """Main function to start live zone monitoring."""
    setup_logging()
    print("=" * 60)
    print("Order Block Zone Live Monitoring")
    print("=" * 60)
    print(f"Symbols: {config.SYMBOLS}")
    print(f"Timeframes: {config.TIMEFRAMES}")
    print(f"Poll Interval: {config.POLL_INTERVAL_SEC} seconds")
    if len(STORE):
        print(f"Loaded {len(STORE)} seen zones from persistent state")
    print()

    threads = []
    for symbol in config.SYMBOLS:
        for timeframe in config.TIMEFRAMES:
            thread = threading.Thread(
                target=worker_thread,
                args=(symbol, timeframe),
                daemon=True,
                name=f"{symbol}_{timeframe}"
            )
            thread.start()
            threads.append(thread)

    print(f"Started {len(threads)} worker threads")
    print("Monitoring for new zones... Press Ctrl+C to stop")
    print("=" * 60)
    print()

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\n\nStopping live monitoring...")
        sys.exit(0)


if __name__ == "__main__":
    main()

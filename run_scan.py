#!/usr/bin/env python3
"""
Single zone check, suitable for cron or a scheduled function.
Scans every configured pair once, alerts new zones and exits.
"""
import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from ob_finder import config
from ob_finder import scanner
from ob_finder import state
from ob_finder.logger import setup_logging


def main():
    parser = argparse.ArgumentParser(description="Scan configured pairs once for new order block zones")
    parser.add_argument(
        '--no-notify',
        action='store_true',
        help='Mark new zones as seen without sending notifications.'
    )
    args = parser.parse_args()
    setup_logging()

    print(f"Checking {config.SYMBOLS} on {config.TIMEFRAMES}...")
    store = state.SeenZoneStore(config.STATE_FILE)
    fresh = scanner.run_once(config.SYMBOLS, config.TIMEFRAMES, store,
                             send_notifications=not args.no_notify)
    print(f"Done. {len(fresh)} new zones.")


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Entry point for WebSocket-based live zone detection.
Starts the WebSocket client and monitors for new zones in real-time.
"""
import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from ob_finder import live_ws

if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="WebSocket-based live order block detection with historical preloading"
    )
    parser.add_argument(
        '--send-historical',
        action='store_true',
        help='Send notifications for zones found in the preloaded history. '
             'If not set, historical zones are marked as seen without notifications.'
    )
    args = parser.parse_args()

    live_ws.main(send_historical=args.send_historical)

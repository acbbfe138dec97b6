#!/usr/bin/env python3
"""
WebSocket-based live zone detection.
Streams Binance klines, keeps a rolling candle buffer per symbol/timeframe
and re-runs detection whenever a candle closes.
"""
import asyncio
import json
from typing import Dict, List, Optional, Tuple

import pandas as pd
import websockets

from . import config
from . import data_fetcher
from . import detection
from . import notifier
from .logger import get_logger, setup_logging
from .models import Zone
from .state import SeenZoneStore, zone_identifier

logger = get_logger("live_ws")


class KlineBuffer:
    """Rolling buffer of closed klines for a symbol/timeframe pair."""

    def __init__(self, max_candles: int = 500, min_candles: int = config.SWING_LENGTH + 1):
        """
        Args:
            max_candles: Maximum number of candles to keep in buffer
            min_candles: Candles required before detection can run
        """
        self.max_candles = max_candles
        self.min_candles = min_candles
        self.klines: List[Dict] = []

    def add_kline(self, kline_data: Dict) -> None:
        """
        Add a closed kline to the buffer.

        A kline with the same open time as the last one replaces it.

        Args:
            kline_data: Kline payload from the WebSocket ('t', 'o', 'h', 'l', 'c', 'v')
        """
        kline = {
            'timestamp': pd.to_datetime(kline_data['t'], unit='ms'),
            'open': float(kline_data['o']),
            'high': float(kline_data['h']),
            'low': float(kline_data['l']),
            'close': float(kline_data['c']),
            'volume': float(kline_data['v'])
        }

        if self.klines and self.klines[-1]['timestamp'] == kline['timestamp']:
            self.klines[-1] = kline
        else:
            self.klines.append(kline)

        if len(self.klines) > self.max_candles:
            self.klines = self.klines[-self.max_candles:]

    def load_dataframe(self, df: pd.DataFrame) -> None:
        """Replace the buffer contents with historical candles."""
        records = df[data_fetcher.CANDLE_COLUMNS].to_dict('records')
        self.klines = records[-self.max_candles:]

    def get_dataframe(self) -> pd.DataFrame:
        if not self.klines:
            return pd.DataFrame(columns=data_fetcher.CANDLE_COLUMNS)
        return pd.DataFrame(self.klines)

    def is_ready(self) -> bool:
        return len(self.klines) >= self.min_candles


class BinanceWebSocketClient:
    """WebSocket client for Binance kline streams."""

    def __init__(self, symbols: list, timeframes: list,
                 store: Optional[SeenZoneStore] = None,
                 cfg: Optional[detection.DetectionConfig] = None,
                 max_bars: int = None):
        """
        Args:
            symbols: List of trading pairs (e.g., ["BTC/USDT", "ETH/USDT"])
            timeframes: List of timeframes (e.g., ["1h", "4h"])
            store: Seen-zone store (defaults to config.STATE_FILE)
            cfg: Detection parameters
            max_bars: Maximum number of bars per buffer (defaults to config.WS_MAX_BARS)
        """
        self.symbols = symbols
        self.timeframes = timeframes
        self.cfg = cfg or detection.DetectionConfig()
        self.max_bars = max_bars or config.WS_MAX_BARS
        self.store = store if store is not None else SeenZoneStore(config.STATE_FILE)
        self.buffers: Dict[Tuple[str, str], KlineBuffer] = {}

        for symbol in symbols:
            for timeframe in timeframes:
                self.buffers[(symbol, timeframe)] = KlineBuffer(
                    max_candles=self.max_bars,
                    min_candles=self.cfg.swing_length + 1,
                )

    @staticmethod
    def stream_symbol(symbol: str) -> str:
        """'BTC/USDT' -> 'btcusdt'"""
        return symbol.replace('/', '').lower()

    def get_stream_names(self) -> list:
        return [
            f"{self.stream_symbol(symbol)}@kline_{timeframe}"
            for symbol in self.symbols
            for timeframe in self.timeframes
        ]

    def get_websocket_url(self) -> str:
        return f"{config.WS_BASE}/stream?streams={'/'.join(self.get_stream_names())}"

    def parse_symbol_from_stream(self, stream_name: str) -> Tuple[str, str]:
        """
        Parse symbol and timeframe from a stream name.

        Args:
            stream_name: Stream name (e.g., "btcusdt@kline_4h")

        Returns:
            Tuple of (symbol, timeframe), e.g. ("BTC/USDT", "4h")
        """
        parts = stream_name.split('@')
        if len(parts) != 2:
            raise ValueError(f"Invalid stream name: {stream_name}")

        stream_symbol, kline_part = parts
        if not kline_part.startswith('kline_'):
            raise ValueError(f"Invalid kline stream: {kline_part}")
        timeframe = kline_part[len('kline_'):]

        for symbol in self.symbols:
            if self.stream_symbol(symbol) == stream_symbol:
                return symbol, timeframe

        raise ValueError(f"Unknown symbol: {stream_symbol}")

    def report_zones(self, symbol: str, timeframe: str, zones: List[Zone],
                     send: bool = True) -> int:
        """
        Alert zones not seen before and mark them as seen.

        Returns:
            Number of new zones
        """
        fresh = 0
        for zone in zones:
            key = zone_identifier(symbol, timeframe, zone)
            if self.store.is_seen(key):
                continue
            fresh += 1
            if send:
                logger.info(f"[{symbol} {timeframe}] New {zone.kind.value} zone "
                            f"{zone.bottom:.4f}-{zone.top:.4f}")
                notifier.notify(symbol, timeframe, zone)
            self.store.mark_seen(key, save=False)

        if fresh:
            try:
                self.store.save()
            except IOError as e:
                logger.error(f"Could not save seen zones: {e}")
        return fresh

    def preload_historical_data(self, send_historical: bool = False) -> None:
        """
        Fill buffers from the REST API and run an initial detection.

        Args:
            send_historical: If True, alert zones found in the history.
                If False, they are only marked as seen.
        """
        for (symbol, timeframe), buffer in self.buffers.items():
            df = data_fetcher.fetch_candles(symbol, timeframe, self.max_bars)
            if df.empty:
                logger.warning(f"[{symbol} {timeframe}] No historical data fetched")
                continue

            buffer.load_dataframe(df)
            if not buffer.is_ready():
                logger.info(f"[{symbol} {timeframe}] Not enough history ({len(buffer.klines)} candles)")
                continue

            zones = detection.detect_zones(buffer.get_dataframe(), self.cfg)
            fresh = self.report_zones(symbol, timeframe, zones, send=send_historical)
            action = "alerted" if send_historical else "marked as seen"
            logger.info(f"[{symbol} {timeframe}] {len(buffer.klines)} candles, "
                        f"{fresh} historical zones {action}")

    async def process_kline(self, message: Dict) -> None:
        """
        Handle one combined-stream message.

        Only closed klines are buffered; each one triggers a detection run
        for its pair.
        """
        try:
            stream_name = message.get('stream', '')
            kline = message.get('data', {}).get('k', {})

            if not kline.get('x', False):
                return

            symbol, timeframe = self.parse_symbol_from_stream(stream_name)
            buffer = self.buffers.get((symbol, timeframe))
            if buffer is None:
                return

            buffer.add_kline(kline)
            if not buffer.is_ready():
                logger.debug(f"[{symbol} {timeframe}] Buffering data... ({len(buffer.klines)} candles)")
                return

            zones = detection.detect_zones(buffer.get_dataframe(), self.cfg)
            self.report_zones(symbol, timeframe, zones)
        except (ValueError, KeyError) as e:
            logger.error(f"Error processing kline: {e}")

    async def connect_and_listen(self, send_historical: bool = False) -> None:
        """
        Connect and listen forever, reconnecting with exponential backoff.

        Args:
            send_historical: Passed to preload_historical_data
        """
        self.preload_historical_data(send_historical=send_historical)

        url = self.get_websocket_url()
        logger.info(f"Connecting to {url}")

        retry_delay = 1
        max_retry_delay = 60

        while True:
            try:
                async with websockets.connect(url, ping_interval=20, ping_timeout=10) as websocket:
                    logger.info("Connected to Binance WebSocket")
                    retry_delay = 1

                    async for raw in websocket:
                        try:
                            data = json.loads(raw)
                        except json.JSONDecodeError as e:
                            logger.error(f"Error decoding message: {e}")
                            continue
                        await self.process_kline(data)

            except (websockets.exceptions.WebSocketException, OSError) as e:
                logger.warning(f"WebSocket error: {e}. Reconnecting in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
                retry_delay = min(retry_delay * 2, max_retry_delay)


async def run_live_ws(send_historical: bool = False):
    print("=" * 60)
    print("Order Block Zone Monitoring (WebSocket)")
    print("=" * 60)
    print(f"Symbols: {config.SYMBOLS}")
    print(f"Timeframes: {config.TIMEFRAMES}")
    print(f"Send Historical Notifications: {send_historical}")
    print()

    client = BinanceWebSocketClient(config.SYMBOLS, config.TIMEFRAMES)
    await client.connect_and_listen(send_historical=send_historical)


def main(send_historical: bool = False):
    """
    Entry point for WebSocket-based live monitoring.

    Args:
        send_historical: If True, alert zones found in the preloaded history.
    """
    setup_logging()
    try:
        asyncio.run(run_live_ws(send_historical=send_historical))
    except KeyboardInterrupt:
        print("\n\nStopping live monitoring...")


if __name__ == "__main__":
    main()

"""
Scan pipeline: fetch candles, detect zones and alert on zones not seen before.
Every symbol/timeframe pair is an independent unit of work; one pair
failing never aborts the others.
"""
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import pandas as pd

from . import config
from . import data_fetcher
from . import detection
from . import notifier
from .logger import get_logger
from .models import Zone
from .state import SeenZoneStore, zone_identifier

logger = get_logger("scanner")

FetchFn = Callable[[str, str, int], pd.DataFrame]


@dataclass
class PairResult:
    """Outcome of scanning one symbol/timeframe pair."""

    symbol: str
    timeframe: str
    zones: List[Zone] = field(default_factory=list)
    candles: int = 0
    skipped: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def scan_pair(symbol: str, timeframe: str,
              cfg: Optional[detection.DetectionConfig] = None,
              limit: Optional[int] = None,
              fetch: Optional[FetchFn] = None) -> PairResult:
    """
    Fetch candles for one pair and run detection on them.

    Args:
        symbol: Trading pair symbol (e.g., "BTC/USDT")
        timeframe: Timeframe string (e.g., "4h")
        cfg: Detection parameters
        limit: Number of candles to fetch
        fetch: Candle source, defaults to data_fetcher.fetch_candles

    Returns:
        PairResult; ``skipped`` is set when there is not enough data and
        ``error`` when anything raised
    """
    cfg = cfg or detection.DetectionConfig()
    fetch = fetch or data_fetcher.fetch_candles
    result = PairResult(symbol=symbol, timeframe=timeframe)

    try:
        df = fetch(symbol, timeframe, limit or config.KLINE_LIMIT)
        result.candles = 0 if df is None else len(df)
        if result.candles <= cfg.swing_length:
            logger.info(f"[{symbol} {timeframe}] Insufficient data ({result.candles} candles), skipping")
            result.skipped = True
            return result
        result.zones = detection.detect_zones(df, cfg)
    except Exception as e:
        logger.exception(f"[{symbol} {timeframe}] Scan failed: {e}")
        result.error = str(e)

    return result


def new_zones(results: List[PairResult], store: SeenZoneStore) -> List[Tuple[str, str, Zone, str]]:
    """
    Zones in ``results`` whose identifiers are not in ``store``.

    Returns:
        List of (symbol, timeframe, zone, identifier) in result order
    """
    fresh = []
    pending = set()
    for result in results:
        for zone in result.zones:
            key = zone_identifier(result.symbol, result.timeframe, zone)
            if store.is_seen(key) or key in pending:
                continue
            pending.add(key)
            fresh.append((result.symbol, result.timeframe, zone, key))
    return fresh


def scan_all(symbols: List[str], timeframes: List[str],
             cfg: Optional[detection.DetectionConfig] = None,
             limit: Optional[int] = None,
             fetch: Optional[FetchFn] = None,
             max_workers: Optional[int] = None) -> List[PairResult]:
    """Scan every symbol/timeframe pair concurrently. Results keep input order."""
    pairs = [(symbol, timeframe) for symbol in symbols for timeframe in timeframes]
    if not pairs:
        return []

    workers = max(1, min(max_workers or config.MAX_WORKERS, len(pairs)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="scan") as executor:
        futures = [
            executor.submit(scan_pair, symbol, timeframe, cfg, limit, fetch)
            for symbol, timeframe in pairs
        ]
        return [future.result() for future in futures]


def run_once(symbols: List[str], timeframes: List[str], store: SeenZoneStore,
             cfg: Optional[detection.DetectionConfig] = None,
             send_notifications: bool = True,
             limit: Optional[int] = None,
             fetch: Optional[FetchFn] = None) -> List[Tuple[str, str, Zone, str]]:
    """
    One full check: scan all pairs, alert new zones, remember them.

    Args:
        symbols: Symbols to scan
        timeframes: Timeframes to scan for each symbol
        store: Seen-zone store used for deduplication
        cfg: Detection parameters
        send_notifications: If False, new zones are only marked as seen
        limit: Number of candles per pair
        fetch: Candle source

    Returns:
        The new zones as (symbol, timeframe, zone, identifier)
    """
    results = scan_all(symbols, timeframes, cfg=cfg, limit=limit, fetch=fetch)

    failed = [r for r in results if not r.ok]
    if failed:
        logger.warning(f"{len(failed)} of {len(results)} pairs failed: "
                       + ", ".join(f"{r.symbol} {r.timeframe}" for r in failed))

    fresh = new_zones(results, store)
    if not fresh:
        logger.info("No new zones found")
        return fresh

    logger.info(f"Found {len(fresh)} new zones")
    for symbol, timeframe, zone, key in fresh:
        logger.info(f"[{symbol} {timeframe}] New {zone.kind.value} zone {zone.bottom:.4f}-{zone.top:.4f} ({key})")
        if send_notifications:
            notifier.notify(symbol, timeframe, zone)
        store.mark_seen(key, save=False)

    try:
        store.save()
    except IOError as e:
        logger.error(f"Could not save seen zones: {e}")

    return fresh

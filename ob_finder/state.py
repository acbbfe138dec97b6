#!/usr/bin/env python3
"""
Seen-zone persistence.
Atomic JSON state files plus the ordered seen set used to decide whether a
detected zone was already reported.
"""
import json
import os
import tempfile
from collections import deque
from datetime import datetime
from typing import Any, Dict, Iterable, Set

import pandas as pd

from . import config
from .logger import get_logger
from .models import Zone

logger = get_logger("state")


def zone_identifier(symbol: str, timeframe: str, zone: Zone) -> str:
    """
    Stable identifier of a zone across runs.

    Keyed by the formation candle's open time (ms) and the zone kind, which
    stay the same when the zone is re-detected from a shifted candle window.

    Format: symbol|timeframe|formation_ms|kind
    """
    formation_ms = int(pd.Timestamp(zone.formation_time).value // 1_000_000)
    return f"{symbol}|{timeframe}|{formation_ms}|{zone.kind.value}"


def load_state(path: str = config.STATE_FILE) -> Dict[str, Any]:
    """
    Load state from a JSON file.

    Args:
        path: Path to the state file

    Returns:
        Dictionary containing the state data. Returns empty dict if file doesn't exist
        or if there's an error loading it.
    """
    if not os.path.exists(path):
        return {}

    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.warning(f"Could not load state file from {path}: {e}")
        return {}

    # Older state files stored a bare list of identifiers
    if isinstance(data, list):
        return {'seen_zones': data}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring unexpected state format in {path}")
        return {}
    return data


def save_state(path: str, state: Dict[str, Any]) -> None:
    """
    Save state to a JSON file using atomic write operation.

    The data goes to a temporary file in the same directory first and is
    then renamed over the destination.

    Args:
        path: Path to the state file
        state: Dictionary containing the state data to save

    Raises:
        IOError: If the state cannot be written
    """
    directory = os.path.dirname(path)
    if directory and not os.path.exists(directory):
        os.makedirs(directory, exist_ok=True)

    fd, temp_path = tempfile.mkstemp(
        dir=directory if directory else None,
        prefix='.tmp_state_',
        suffix='.json'
    )

    try:
        with os.fdopen(fd, 'w') as f:
            json.dump(state, f, indent=2)
        os.replace(temp_path, path)
    except Exception as e:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise IOError(f"Failed to save state to {path}: {e}")


class SeenZoneStore:
    """Ordered set of reported zone identifiers, persisted to a JSON file."""

    def __init__(self, path: str = config.STATE_FILE,
                 max_entries: int = config.STATE_MAX_ENTRIES):
        """
        Args:
            path: Path to the state file
            max_entries: Oldest identifiers are pruned beyond this size
        """
        self.path = path
        self.max_entries = max_entries
        # deque keeps insertion order for FIFO pruning
        self.seen_zones: deque = deque()
        self.seen_set: Set[str] = set()
        self.load()

    def __len__(self) -> int:
        return len(self.seen_set)

    def __contains__(self, key: str) -> bool:
        return key in self.seen_set

    def load(self) -> None:
        data = load_state(self.path)
        keys = [k for k in data.get('seen_zones', []) if isinstance(k, str)]
        self.seen_zones = deque(dict.fromkeys(keys))
        self.seen_set = set(self.seen_zones)
        if self.seen_set:
            logger.info(f"Loaded {len(self.seen_set)} seen zones from {self.path}")

    def save(self) -> None:
        """Persist the store. Raises IOError when the file cannot be written."""
        save_state(self.path, {
            'seen_zones': list(self.seen_zones),
            'last_updated': datetime.now().isoformat(),
        })

    def is_seen(self, key: str) -> bool:
        return key in self.seen_set

    def mark_seen(self, key: str, save: bool = True) -> bool:
        """
        Mark an identifier as seen.

        Returns:
            True if the identifier was new
        """
        if key in self.seen_set:
            return False
        self.seen_zones.append(key)
        self.seen_set.add(key)
        self.prune()
        if save:
            self.save()
        return True

    def mark_many(self, keys: Iterable[str]) -> int:
        """Mark several identifiers and save once. Returns how many were new."""
        added = sum(1 for key in keys if self.mark_seen(key, save=False))
        if added:
            self.save()
        return added

    def prune(self, max_entries: int = None) -> int:
        """
        Drop the oldest identifiers beyond ``max_entries`` (FIFO).

        Returns:
            Number of identifiers removed
        """
        max_entries = self.max_entries if max_entries is None else max_entries
        to_remove = max(0, len(self.seen_zones) - max_entries)
        for _ in range(to_remove):
            self.seen_set.discard(self.seen_zones.popleft())
        if to_remove:
            logger.info(f"Pruned {to_remove} oldest seen zones")
        return to_remove

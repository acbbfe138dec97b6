"""
Data types shared by the detector, the classifier and the I/O glue.
"""
from dataclasses import dataclass, asdict, field, replace
from enum import Enum
from typing import Any, Dict, Optional

import pandas as pd


class ZoneKind(Enum):
    """Which side of price a zone is expected to defend."""

    SUPPORT = "Support"  # bullish order block
    RESISTANCE = "Resistance"  # bearish order block


class ZoneState(Enum):
    """Zone lifecycle. Only ever moves forward."""

    ACTIVE = "Active"
    BREACHED = "Breached"  # breaker: boundary crossed, not yet reclaimed
    INVALIDATED = "Invalidated"


@dataclass(frozen=True)
class Candle:
    """A single OHLCV row."""

    timestamp: pd.Timestamp
    open: float
    high: float
    low: float
    close: float
    volume: float
    index: int = 0

    @classmethod
    def from_row(cls, row: pd.Series, index: int = 0) -> "Candle":
        return cls(
            timestamp=row['timestamp'],
            open=float(row['open']),
            high=float(row['high']),
            low=float(row['low']),
            close=float(row['close']),
            volume=float(row['volume']),
            index=index,
        )


@dataclass
class SwingPoint:
    """Most recent swing extreme not yet crossed by a close."""

    index: int
    price: float
    crossed: bool = False


@dataclass(frozen=True)
class BreakoutPattern:
    """Shape classification of the candle that confirmed a zone."""

    candle_type: str
    is_bullish: bool
    body_percent: float
    upper_wick_percent: float
    lower_wick_percent: float
    base_score: int
    score: int
    direction_match: bool
    tier: str
    recommendation: str
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Zone:
    """
    Order block zone snapshot.

    A zone is immutable; state changes produce a new snapshot through
    ``with_state``. ``SCHEMA_VERSION`` is bumped whenever a field is added
    so downstream consumers can tell payloads apart.
    """

    SCHEMA_VERSION = 2

    kind: ZoneKind
    top: float
    bottom: float
    formation_time: pd.Timestamp
    formation_index: int
    confirmation_time: pd.Timestamp
    confirmation_index: int
    volume_high: float
    volume_low: float
    balance_percent: int
    volume_ratio: float = 0.0
    breakout_pattern: Optional[BreakoutPattern] = None
    state: ZoneState = ZoneState.ACTIVE
    breach_time: Optional[pd.Timestamp] = field(default=None)

    @property
    def volume_aggregate(self) -> float:
        return self.volume_high + self.volume_low

    @property
    def size(self) -> float:
        return abs(self.top - self.bottom)

    @property
    def is_breaker(self) -> bool:
        return self.state is ZoneState.BREACHED

    @property
    def is_invalidated(self) -> bool:
        return self.state is ZoneState.INVALIDATED

    def with_state(self, state: ZoneState,
                   breach_time: Optional[pd.Timestamp] = None) -> "Zone":
        if breach_time is None:
            breach_time = self.breach_time
        return replace(self, state=state, breach_time=breach_time)

    def to_dict(self) -> Dict[str, Any]:
        """Notification/persistence payload with plain JSON-friendly values."""
        return {
            'schema_version': self.SCHEMA_VERSION,
            'kind': self.kind.value,
            'top': self.top,
            'bottom': self.bottom,
            'formation_time': _iso(self.formation_time),
            'formation_index': self.formation_index,
            'confirmation_time': _iso(self.confirmation_time),
            'confirmation_index': self.confirmation_index,
            'volume_high': self.volume_high,
            'volume_low': self.volume_low,
            'volume_aggregate': self.volume_aggregate,
            'balance_percent': self.balance_percent,
            'volume_ratio': self.volume_ratio,
            'breakout_pattern': self.breakout_pattern.to_dict() if self.breakout_pattern else None,
            'state': self.state.value,
            'breach_time': _iso(self.breach_time),
            'is_breaker': self.is_breaker,
        }


def _iso(ts) -> Optional[str]:
    if ts is None:
        return None
    return pd.Timestamp(ts).isoformat()

"""
Breakout candle classification.
Scores the shape of the candle that confirmed a zone and maps the score
to a strength tier.
"""
import math
from typing import List, Tuple

from .models import BreakoutPattern, Candle, ZoneKind

# (minimum body %, candle type, base score), checked top-down
BODY_BUCKETS: List[Tuple[float, str, int]] = [
    (70.0, "Strong Full-Body", 90),
    (50.0, "Standard", 70),
    (30.0, "Small Body", 50),
]

# (minimum score, tier, recommendation), checked top-down
STRENGTH_TIERS: List[Tuple[int, str, str]] = [
    (80, "Very Strong", "High-conviction breakout, zone is a priority level"),
    (60, "Strong", "Solid breakout, zone worth watching on retest"),
    (40, "Moderate", "Acceptable breakout, wait for confirmation on retest"),
    (25, "Fair", "Weak follow-through, treat the zone with caution"),
    (0, "Weak", "Breakout candle is indecisive, low reliability"),
]

DIRECTION_MISMATCH_PENALTY = 30
DECISIVE_BONUS = 10
INDECISIVE_PENALTY = 15


def candle_percentages(candle: Candle) -> Tuple[bool, float, float, float]:
    """
    Body and wick sizes as percentages of the candle range.

    Returns:
        Tuple of (is_bullish, body_percent, upper_wick_percent, lower_wick_percent)
    """
    values = (candle.open, candle.high, candle.low, candle.close)
    is_bullish = candle.close > candle.open
    total_range = candle.high - candle.low
    if not all(math.isfinite(v) for v in values) or total_range <= 0:
        return is_bullish, 0.0, 0.0, 0.0

    body = abs(candle.close - candle.open)
    if is_bullish:
        upper_wick = candle.high - candle.close
        lower_wick = candle.open - candle.low
    else:
        upper_wick = candle.high - candle.open
        lower_wick = candle.close - candle.low

    return (
        is_bullish,
        body / total_range * 100,
        upper_wick / total_range * 100,
        lower_wick / total_range * 100,
    )


def _candle_type(body_pct: float, upper_pct: float, lower_pct: float) -> Tuple[str, int]:
    for threshold, name, base in BODY_BUCKETS:
        if body_pct >= threshold:
            return name, base

    if body_pct <= 10:
        if upper_pct >= 60 and lower_pct < 20:
            return "Shooting Star", 30
        if lower_pct >= 60 and upper_pct < 20:
            return "Hammer", 30
        return "Doji", 15

    # 10 < body < 30
    if upper_pct > lower_pct * 2:
        return "Long Upper Wick", 35
    if lower_pct > upper_pct * 2:
        return "Long Lower Wick", 35
    return "Spinning Top", 30


def strength_tier(score: int) -> Tuple[str, str]:
    """Map a 0-100 score to (tier, recommendation)."""
    for minimum, tier, recommendation in STRENGTH_TIERS:
        if score >= minimum:
            return tier, recommendation
    return STRENGTH_TIERS[-1][1], STRENGTH_TIERS[-1][2]


def classify_breakout(candle: Candle, kind: ZoneKind) -> BreakoutPattern:
    """
    Classify the breakout candle that confirmed a zone.

    Support zones expect a bullish confirming candle, Resistance zones a
    bearish one.

    Args:
        candle: Breakout (confirmation) candle
        kind: Kind of the zone being confirmed

    Returns:
        BreakoutPattern with scores, tier and descriptive text
    """
    is_bullish, body_pct, upper_pct, lower_pct = candle_percentages(candle)
    candle_type, base_score = _candle_type(body_pct, upper_pct, lower_pct)

    direction_match = is_bullish if kind is ZoneKind.SUPPORT else not is_bullish

    score = base_score
    if not direction_match:
        score -= DIRECTION_MISMATCH_PENALTY
    if body_pct >= 60 and upper_pct < 20 and lower_pct < 20:
        score += DECISIVE_BONUS
    if body_pct < 20 or upper_pct > 50 or lower_pct > 50:
        score -= INDECISIVE_PENALTY
    score = max(0, min(100, score))

    tier, recommendation = strength_tier(score)

    direction = "bullish" if is_bullish else "bearish"
    description = (
        f"{candle_type} {direction} candle "
        f"(body {body_pct:.0f}%, upper wick {upper_pct:.0f}%, lower wick {lower_pct:.0f}%)"
    )
    if not direction_match:
        description += f", against the {kind.value.lower()} direction"

    return BreakoutPattern(
        candle_type=candle_type,
        is_bullish=is_bullish,
        body_percent=round(body_pct, 2),
        upper_wick_percent=round(upper_pct, 2),
        lower_wick_percent=round(lower_pct, 2),
        base_score=base_score,
        score=score,
        direction_match=direction_match,
        tier=tier,
        recommendation=recommendation,
        description=description,
    )

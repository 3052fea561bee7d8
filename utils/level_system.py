"""
Account level and rank computation.

A user's level is derived from the cumulative value of their completed
trades. Reaching level ``n + 1`` from level ``n`` costs
``required_transactions(n + 1)``; the tier thresholds are the running sum of
those costs. Ranks group level ranges for display.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Union

from config import Config

logger = logging.getLogger(__name__)

Number = Union[Decimal, int, float]

MAX_LEVEL = Config.MAX_LEVEL
LEVEL_STEP = 500


@dataclass(frozen=True)
class RankInfo:
    rank: str
    color_name: str
    min_level: int
    max_level: int


@dataclass(frozen=True)
class LevelInfo:
    level: int
    rank: str
    color_name: str
    required_transactions: int
    total_required_transactions: int


@dataclass(frozen=True)
class LevelProgress:
    """Position of a transaction total inside the current level band"""

    current_level_transactions: Decimal
    next_level_required: int
    progress: float
    remaining: Decimal


RANKS: List[RankInfo] = [
    RankInfo("Iron", "Iron", 1, 10),
    RankInfo("Bronze", "Bronze", 11, 30),
    RankInfo("Gold", "Gold", 31, 60),
    RankInfo("Platinum", "Platinum", 61, 99),
    RankInfo("Diamond", "Diamond", 100, 150),
    RankInfo("Emerald", "Emerald", 151, 200),
    RankInfo("Ruby", "Ruby", 201, 250),
]


def required_transactions(level: int) -> int:
    """Trade value needed to step from ``level - 1`` into ``level``.

    Equivalent to summing ``500 * i`` for ``i`` in ``1 .. level - 1``.
    """
    if level <= 1:
        return 0
    return LEVEL_STEP * (level - 1) * level // 2


def total_required_transactions(level: int) -> int:
    """Cumulative trade value at which ``level`` begins"""
    if level <= 1:
        return 0
    # Closed form of sum(required_transactions(i + 1) for i in 1 .. level - 1)
    return LEVEL_STEP * (level - 1) * level * (level + 1) // 6


def rank_for_level(level: int) -> RankInfo:
    for rank in RANKS:
        if rank.min_level <= level <= rank.max_level:
            return rank
    # Beyond the ladder (or below it) falls back to the highest rank
    return RANKS[-1]


def get_level_info(level: int) -> LevelInfo:
    rank = rank_for_level(level)
    return LevelInfo(
        level=level,
        rank=rank.rank,
        color_name=rank.color_name,
        required_transactions=required_transactions(level),
        total_required_transactions=total_required_transactions(level),
    )


def level_from_transaction_value(total_value: Number) -> int:
    """Highest level whose threshold ``total_value`` has reached, capped at MAX_LEVEL"""
    value = Decimal(str(total_value))
    level = 1
    while level < MAX_LEVEL and value >= total_required_transactions(level + 1):
        level += 1
    return level


def progress_to_next_level(current_level: int, total_value: Number) -> Optional[LevelProgress]:
    """
    Progress through the current level band.

    Returns None at MAX_LEVEL: there is no next tier, so no progress is shown.
    ``progress`` is a percentage clamped to [0, 100].
    """
    if current_level >= MAX_LEVEL:
        return None

    value = Decimal(str(total_value))
    current_threshold = total_required_transactions(current_level)
    next_threshold = total_required_transactions(current_level + 1)
    band = next_threshold - current_threshold

    into_band = value - current_threshold
    progress = float(into_band / band * 100) if band > 0 else 100.0
    progress = max(0.0, min(100.0, progress))

    return LevelProgress(
        current_level_transactions=into_band,
        next_level_required=band,
        progress=progress,
        remaining=max(Decimal("0"), next_threshold - value),
    )


def format_transaction_value(value: Number, symbol: Optional[str] = None) -> str:
    """Compact display form: 1.5M EGP, 2.3K EGP, 950 EGP"""
    symbol = symbol or Config.CURRENCY_SYMBOL
    amount = float(value)
    if amount >= 1_000_000:
        return f"{amount / 1_000_000:.1f}M {symbol}"
    if amount >= 1_000:
        return f"{amount / 1_000:.1f}K {symbol}"
    return f"{amount:.0f} {symbol}"

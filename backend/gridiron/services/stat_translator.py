"""
Stat Translator - converts a raw per-game stat record into fantasy points

Pure functions only. Live scoring, trend computation and season aggregation
all go through `calculate_fantasy_points` so the numbers always agree.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional


class ScoringProfile(str, Enum):
    """Reception value differs between weekly play and season aggregates"""

    WEEKLY = "weekly"  # half PPR
    SEASON = "season"  # full PPR


RECEPTION_POINTS = {
    ScoringProfile.WEEKLY: 0.5,
    ScoringProfile.SEASON: 1.0,
}

SCORING_WEIGHTS = {
    "passing_yards": 0.04,  # 1 point per 25 yards
    "passing_touchdowns": 4.0,
    "passing_interceptions": -2.0,
    "rushing_yards": 0.1,  # 1 point per 10 yards
    "rushing_touchdowns": 6.0,
    "receiving_yards": 0.1,
    "receiving_touchdowns": 6.0,
    "fumbles_lost": -2.0,
}

# Alternate field names seen in provider payloads
METRIC_ALIASES = {
    "receiving_receptions": "receptions",
    "interceptions": "passing_interceptions",
    "passing_tds": "passing_touchdowns",
    "rushing_tds": "rushing_touchdowns",
    "receiving_tds": "receiving_touchdowns",
}

POSITION_ALIASES = {
    "QUARTERBACK": "QB",
    "RUNNING BACK": "RB",
    "WIDE RECEIVER": "WR",
    "TIGHT END": "TE",
    "KICKER": "K",
    "PLACE KICKER": "K",
    "DEFENSE": "DEF",
    "DST": "DEF",
    "D/ST": "DEF",
}


def normalize_position(position: Optional[str]) -> str:
    """Map provider position names ("Wide Receiver") onto abbreviations ("WR")"""
    if not position:
        return ""
    key = position.strip().upper()
    return POSITION_ALIASES.get(key, key)


def to_number(value: Any) -> float:
    """Stats may arrive as strings or be missing entirely; both count as 0"""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number:  # NaN
        return 0.0
    return number


def normalize_stats(stats: Optional[Mapping[str, Any]]) -> Dict[str, float]:
    """Numeric view of a stat record with aliases folded into canonical names"""
    metrics: Dict[str, float] = {}
    for name, value in (stats or {}).items():
        canonical = METRIC_ALIASES.get(name, name)
        number = to_number(value)
        # A canonical field wins over its alias when both are present
        if canonical in metrics and canonical != name:
            continue
        metrics[canonical] = number
    return metrics


def calculate_fantasy_points(
    stats: Optional[Mapping[str, Any]],
    position: Optional[str] = None,
    profile: ScoringProfile = ScoringProfile.WEEKLY,
) -> float:
    """Fantasy points for one game, floored at 0 and rounded to 1 decimal.

    Scoring is position independent today; `position` is accepted so callers
    do not need to change when position-specific bonuses are introduced.
    """
    metrics = normalize_stats(stats)

    points = 0.0
    for metric, weight in SCORING_WEIGHTS.items():
        points += metrics.get(metric, 0.0) * weight
    points += metrics.get("receptions", 0.0) * RECEPTION_POINTS[profile]

    return round(max(0.0, points), 1)


@dataclass
class StatLine:
    position: str
    fantasy_points: float
    metrics: Dict[str, float] = field(default_factory=dict)


def translate(
    stats: Optional[Mapping[str, Any]],
    position: Optional[str] = None,
    profile: ScoringProfile = ScoringProfile.WEEKLY,
) -> StatLine:
    """Per-metric fields plus fantasy points for a stat record"""
    metrics = normalize_stats(stats)
    for metric in list(SCORING_WEIGHTS) + ["receptions"]:
        metrics.setdefault(metric, 0.0)
    return StatLine(
        position=normalize_position(position),
        fantasy_points=calculate_fantasy_points(metrics, position, profile),
        metrics=metrics,
    )

"""
Trend Analyzer - recent form versus season average / position baseline

`compute_trend` is pure. `TrendService` builds each player's game series from
finalized stats and fully overwrites the player's TrendingCache row.
"""
import math
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gridiron.core.errors import NotFound
from gridiron.models.database_models import (
    Game,
    Player,
    PlayerGameStats,
    TrendDirection,
    TrendingCache,
    Week,
)
from gridiron.services.stat_translator import (
    ScoringProfile,
    calculate_fantasy_points,
    normalize_position,
)

logger = logging.getLogger(__name__)

# Typical weekly fantasy points per position
POSITION_BASELINES = {
    "QB": 18.0,
    "RB": 12.0,
    "WR": 12.0,
    "TE": 10.0,
    "K": 8.0,
    "DEF": 8.0,
}
DEFAULT_BASELINE = 5.0

MAX_TREND_PCT = 200
DIRECTION_DEAD_ZONE = 0.01
RECENT_GAMES = 3


def position_baseline(position: Optional[str]) -> float:
    return POSITION_BASELINES.get(normalize_position(position), DEFAULT_BASELINE)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _round1(value: float) -> float:
    return math.floor(value * 10 + 0.5) / 10


@dataclass
class TrendResult:
    direction: TrendDirection
    strength: int
    season_avg: float
    last_3_avg: float
    games_played: int


def compute_trend(position: Optional[str], points: Sequence[float]) -> TrendResult:
    """Trend for a player's per-game points, most recent game first"""
    games = [float(p) for p in points]
    if not games:
        return TrendResult(TrendDirection.STABLE, 0, 0.0, 0.0, 0)

    baseline = position_baseline(position)
    season_avg = sum(games) / len(games)

    if len(games) == 1:
        recent = games[0]
        diff = recent - baseline
        pct = _round_half_up(diff / baseline * 100)
    elif len(games) == 2:
        recent, previous = games[0], games[1]
        diff = recent - previous
        denominator = max(previous, baseline * 0.5)
        pct = _round_half_up(diff / denominator * 100)
    else:
        recent = sum(games[:RECENT_GAMES]) / RECENT_GAMES
        diff = recent - season_avg
        denominator = max(season_avg, baseline * 0.5)
        pct = _round_half_up(diff / denominator * 100)

    pct = max(-MAX_TREND_PCT, min(MAX_TREND_PCT, pct))

    if diff > DIRECTION_DEAD_ZONE:
        direction = TrendDirection.UP
    elif diff < -DIRECTION_DEAD_ZONE:
        direction = TrendDirection.DOWN
    else:
        direction = TrendDirection.STABLE

    return TrendResult(
        direction=direction,
        strength=pct,
        season_avg=_round1(season_avg),
        last_3_avg=_round1(recent),
        games_played=len(games),
    )


class TrendService:
    """Recomputes the trending cache from finalized game stats"""

    def __init__(self, db: Session):
        self.db = db

    def game_points(self, player: Player, season_year: int) -> List[float]:
        """Per-game points for the season, most recent first; zero-point games are skipped"""
        rows = (
            self.db.query(PlayerGameStats)
            .join(Game, PlayerGameStats.game_id == Game.id)
            .join(Week, Game.week_id == Week.id)
            .filter(
                PlayerGameStats.player_id == player.id,
                PlayerGameStats.finalized.is_(True),
                Week.season_year == season_year,
            )
            .order_by(desc(Week.week_number), desc(PlayerGameStats.game_date))
            .all()
        )
        points = [
            calculate_fantasy_points(row.stat_json, player.position, ScoringProfile.WEEKLY)
            for row in rows
        ]
        return [p for p in points if p > 0]

    def recompute_trend(self, player_id: int, season_year: int) -> TrendingCache:
        player = self.db.query(Player).filter(Player.id == player_id).first()
        if not player:
            raise NotFound(f"Player {player_id} not found", player_id=player_id)

        result = compute_trend(player.position, self.game_points(player, season_year))
        try:
            row = self._write(player.id, season_year, result)
            self.db.commit()
        except IntegrityError:
            # Another recompute inserted the row first; overwrite it
            self.db.rollback()
            row = self._write(player.id, season_year, result)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Trend for player {player.id} season {season_year}: "
            f"{result.direction.value} {result.strength}% over {result.games_played} games"
        )
        return row

    def recompute_season(self, season_year: int) -> Dict[str, int]:
        """Recompute every active player's trend for the season"""
        players = self.db.query(Player).filter(Player.active.is_(True)).all()
        processed = 0
        with_trends = 0
        for player in players:
            row = self.recompute_trend(player.id, season_year)
            processed += 1
            if row.trend_direction != TrendDirection.STABLE:
                with_trends += 1
            if processed % 100 == 0:
                logger.info(f"Processed {processed}/{len(players)} players...")

        logger.info(
            f"Calculated trends for {processed} players ({with_trends} with up/down trends)"
        )
        return {"players_processed": processed, "players_with_trends": with_trends}

    def get_trend(self, player_id: int, season_year: int) -> Optional[TrendingCache]:
        return (
            self.db.query(TrendingCache)
            .filter(
                TrendingCache.player_id == player_id,
                TrendingCache.season_year == season_year,
            )
            .first()
        )

    def _write(self, player_id: int, season_year: int, result: TrendResult) -> TrendingCache:
        row = self.get_trend(player_id, season_year)
        if row is None:
            row = TrendingCache(player_id=player_id, season_year=season_year)
            self.db.add(row)
        # Full overwrite, never a merge with the previous values
        row.trend_direction = result.direction
        row.trend_strength = result.strength
        row.season_avg = result.season_avg
        row.last_3_avg = result.last_3_avg
        row.games_played = result.games_played
        row.updated_at = datetime.utcnow()
        self.db.flush()
        return row

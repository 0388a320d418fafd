"""
API endpoints for player information
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from gridiron.core.database import get_db
from gridiron.models.game_models import ApiResponse, TrendResponse
from gridiron.services.trend_analyzer import TrendService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/players", tags=["players"])


@router.get("/{player_id}/trending", response_model=ApiResponse)
async def get_player_trending(
    player_id: int,
    season_year: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """Trend for a player; computed on first request for the season"""
    season_year = season_year or datetime.utcnow().year
    service = TrendService(db)
    row = service.get_trend(player_id, season_year)
    if row is None:
        row = service.recompute_trend(player_id, season_year)

    trend = TrendResponse(
        player_id=row.player_id,
        season_year=row.season_year,
        trend_direction=row.trend_direction.value,
        trend_strength=row.trend_strength,
        season_avg=row.season_avg,
        last_3_avg=row.last_3_avg,
        games_played=row.games_played,
        updated_at=row.updated_at,
    )
    return ApiResponse(message="Trend retrieved", data=trend.model_dump(mode="json"))

"""
Batch endpoints triggered by the scheduler (cron secret required)
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session
import logging

from gridiron.core.auth import require_cron_secret
from gridiron.core.database import get_db
from gridiron.core.errors import GameError
from gridiron.models.game_models import ApiResponse, RecomputeTrendRequest, ScoreWeekRequest
from gridiron.services.scoring_orchestrator import ScoringOrchestrator
from gridiron.services.trend_analyzer import TrendService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(require_cron_secret)],
)


@router.post("/score-week", response_model=ApiResponse)
async def score_week(request: ScoreWeekRequest, db: Session = Depends(get_db)):
    """
    Score every submitted lineup for a week.
    Defaults to the most recently completed week.
    """
    try:
        orchestrator = ScoringOrchestrator(db)
        week = orchestrator.resolve_week(
            request.week_id, request.season_year, request.week_number
        )
        report = orchestrator.score_week(week.id)
        return ApiResponse(
            message=f"Scored {report.lineups_scored} lineups ({report.lineups_failed} failed)",
            data=report.model_dump(),
        )
    except GameError:
        raise
    except Exception as e:
        logger.error(f"Scoring job failed: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Scoring job failed",
        )


@router.post("/trending/recompute", response_model=ApiResponse)
async def recompute_trending(request: RecomputeTrendRequest, db: Session = Depends(get_db)):
    try:
        service = TrendService(db)
        if request.player_id is not None:
            row = service.recompute_trend(request.player_id, request.season_year)
            return ApiResponse(
                message=f"Trend recomputed for player {row.player_id}",
                data={
                    "player_id": row.player_id,
                    "trend_direction": row.trend_direction.value,
                    "trend_strength": row.trend_strength,
                },
            )

        stats = service.recompute_season(request.season_year)
        return ApiResponse(
            message=f"Calculated trends for {stats['players_processed']} players",
            data=stats,
        )
    except GameError:
        raise
    except Exception as e:
        logger.error(f"Trend recompute failed: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Trend recompute failed",
        )


@router.post("/catalog/refresh", response_model=ApiResponse)
async def refresh_catalog(http_request: Request):
    """Drop cached catalog snapshots after cards, packs or token types change"""
    cache = http_request.app.state.catalog_cache
    removed = cache.invalidate()
    return ApiResponse(
        message="Catalog cache cleared",
        data={"entries_removed": removed, "stats": cache.get_stats()},
    )

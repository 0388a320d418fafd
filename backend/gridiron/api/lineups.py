"""
API endpoints for weekly lineups
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
import logging

from gridiron.core.auth import get_current_user
from gridiron.core.database import get_db
from gridiron.core.errors import GameError
from gridiron.models.game_models import ApiResponse, SubmitLineupRequest
from gridiron.services.lineup_manager import LineupManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/lineup", tags=["lineups"])


@router.post("/submit", response_model=ApiResponse)
async def submit_lineup(
    request: SubmitLineupRequest,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Submit (or replace) a team's lineup for a week.
    Rejected as a whole with per-slot violations if any slot is invalid.
    """
    try:
        result = LineupManager(db).submit(user_id, request.teamId, request.weekId, request.slots)
        return ApiResponse(message="Lineup submitted", data=result.model_dump())
    except GameError:
        raise
    except Exception as e:
        logger.error(f"Failed to submit lineup for team {request.teamId}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to submit lineup",
        )


@router.get("/{team_id}/{week_id}", response_model=ApiResponse)
async def get_lineup(
    team_id: int,
    week_id: int,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    lineup = LineupManager(db).get_lineup(user_id, team_id, week_id)
    return ApiResponse(
        message="Lineup retrieved",
        data={
            "lineup_id": lineup.id,
            "status": lineup.status.value,
            "total_points": lineup.total_points,
            "slots": [
                {
                    "slot": s.slot_label or s.slot.value,
                    "user_card_id": s.user_card_id,
                    "applied_token_id": s.applied_token_id,
                    "points": s.points,
                }
                for s in lineup.slots
            ],
        },
    )

"""
API endpoints for teams and their inventory (packs, cards)
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session
import logging

from gridiron.core.auth import get_current_user
from gridiron.core.database import get_db
from gridiron.core.errors import GameError
from gridiron.models.game_models import (
    ApiResponse,
    CreateTeamRequest,
    OpenPackRequest,
    SellCardRequest,
    TeamResponse,
)
from gridiron.services.economy_ledger import EconomyLedger
from gridiron.services.pack_roller import PackRoller

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/teams", tags=["teams"])


def _team_data(team) -> dict:
    return TeamResponse(
        id=team.id,
        name=team.name,
        coins=team.coins,
        active=team.active,
        created_at=team.created_at,
    ).model_dump(mode="json")


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def create_team(
    request: CreateTeamRequest,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create a team with the starter coin balance"""
    try:
        team = EconomyLedger(db).create_team(user_id, request.teamName.strip())
        return ApiResponse(message=f"Team '{team.name}' created", data=_team_data(team))
    except GameError:
        raise
    except Exception as e:
        logger.error(f"Failed to create team: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create team",
        )


@router.get("/{team_id}", response_model=ApiResponse)
async def get_team(
    team_id: int,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    team = EconomyLedger(db).get_team(user_id, team_id)
    return ApiResponse(message="Team retrieved", data=_team_data(team))


@router.delete("/{team_id}", response_model=ApiResponse)
async def deactivate_team(
    team_id: int,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Soft-deactivate a team; the last active team cannot be removed"""
    try:
        team = EconomyLedger(db).deactivate_team(user_id, team_id)
        return ApiResponse(message=f"Team '{team.name}' deactivated", data=_team_data(team))
    except GameError:
        raise
    except Exception as e:
        logger.error(f"Failed to deactivate team {team_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to deactivate team",
        )


@router.get("/{team_id}/reconcile", response_model=ApiResponse)
async def reconcile_team_balance(
    team_id: int,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Compare the team's balance with the sum of its ledger entries"""
    result = EconomyLedger(db).reconcile(user_id, team_id)
    return ApiResponse(message="Balance reconciled", data=result.model_dump())


@router.post("/open-pack", response_model=ApiResponse)
async def open_pack(
    request: OpenPackRequest,
    http_request: Request,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Open a purchased pack.
    Contents are rolled against the catalog and granted exactly once.
    """
    try:
        roller = PackRoller(db, http_request.app.state.catalog_cache)
        result = EconomyLedger(db).open_pack(
            user_id, request.teamId, request.userPackId, roller
        )
        return ApiResponse(
            message=f"Opened pack: {len(result.cards)} cards, {len(result.tokens)} tokens",
            data=result.model_dump(),
        )
    except GameError:
        raise
    except Exception as e:
        logger.error(f"Failed to open pack {request.userPackId}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to open pack",
        )


@router.post("/sell-card", response_model=ApiResponse)
async def sell_card(
    request: SellCardRequest,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        result = EconomyLedger(db).sell_card(user_id, request.teamId, request.userCardId)
        return ApiResponse(
            message=f"Card sold for {result.coins_received} coins",
            data=result.model_dump(),
        )
    except GameError:
        raise
    except Exception as e:
        logger.error(f"Failed to sell card {request.userCardId}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to sell card",
        )

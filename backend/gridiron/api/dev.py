"""
Development-only endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from gridiron.core.auth import get_current_user
from gridiron.core.config import settings
from gridiron.core.database import get_db
from gridiron.core.errors import Unauthorized
from gridiron.models.game_models import ApiResponse, GrantCoinsRequest
from gridiron.services.economy_ledger import EconomyLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dev", tags=["dev"])


@router.post("/grant-coins", response_model=ApiResponse)
async def grant_coins(
    request: GrantCoinsRequest,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Grant coins to one of the caller's teams (disabled in production)"""
    if not settings.dev_grants_enabled():
        logger.warning(f"Dev coin grant attempted by user {user_id} while disabled")
        raise Unauthorized("Coin grants are disabled in this environment")

    ledger = EconomyLedger(db)
    team = ledger.get_team(user_id, request.teamId)
    transaction = ledger.grant_coins(
        team.id, request.amount, reason=request.reason or "Development grant"
    )
    db.refresh(team)
    return ApiResponse(
        message=f"Granted {request.amount} coins",
        data={
            "transaction_id": transaction.id,
            "team_id": team.id,
            "amount": request.amount,
            "new_balance": team.coins,
        },
    )

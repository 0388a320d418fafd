"""
API endpoints for the pack store
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
import logging

from gridiron.core.auth import get_current_user
from gridiron.core.database import get_db
from gridiron.core.errors import GameError
from gridiron.models.game_models import ApiResponse, PurchasePackRequest
from gridiron.services.economy_ledger import EconomyLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/store", tags=["store"])


@router.post("/purchase-pack", response_model=ApiResponse)
async def purchase_pack(
    request: PurchasePackRequest,
    user_id: str = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Purchase a pack for a team.
    Retrying with the same idempotency key returns the original purchase.
    """
    try:
        result = EconomyLedger(db).purchase_pack(
            user_id, request.teamId, request.packId, request.idempotencyKey
        )
        message = "Purchase already completed" if result.replayed else "Pack purchased"
        return ApiResponse(message=message, data=result.model_dump())
    except GameError:
        raise
    except Exception as e:
        logger.error(f"Failed to purchase pack {request.packId}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to purchase pack",
        )

"""
Card Evolution Engine

A card's rarity tier is driven by the fantasy points it has accumulated in
scored lineups, independent of the catalog rarity it was pulled at. Tiers
only ever go up; each tier-up raises sell value and adds contracts.
"""
import logging
from dataclasses import dataclass
from typing import List

from sqlalchemy.orm import Session

from gridiron.core.errors import InvalidState, NotFound
from gridiron.models.database_models import CardStatus, Rarity, UserCard
from gridiron.models.game_models import EvolutionResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EvolutionTier:
    rarity: Rarity
    threshold: float
    value_multiplier: float
    bonus_contracts: int


# Ascending; thresholds are cumulative fantasy points, never reset between weeks
EVOLUTION_TIERS: List[EvolutionTier] = [
    EvolutionTier(Rarity.COMMON, 0.0, 1.0, 0),
    EvolutionTier(Rarity.RARE, 40.0, 1.5, 1),
    EvolutionTier(Rarity.EPIC, 100.0, 2.0, 2),
    EvolutionTier(Rarity.LEGENDARY, 200.0, 3.0, 3),
]

STARTING_RARITY = EVOLUTION_TIERS[0].rarity


def tier_for_points(total_points: float) -> EvolutionTier:
    """Highest tier whose threshold is met"""
    reached = EVOLUTION_TIERS[0]
    for tier in EVOLUTION_TIERS:
        if total_points >= tier.threshold:
            reached = tier
    return reached


def tier_index(rarity: Rarity) -> int:
    for index, tier in enumerate(EVOLUTION_TIERS):
        if tier.rarity == rarity:
            return index
    # Catalog-only rarities (e.g. uncommon) sit at the bottom of the ladder
    return 0


class CardEvolutionEngine:
    def __init__(self, db: Session):
        self.db = db

    def apply(self, user_card: UserCard, points_earned: float) -> EvolutionResult:
        """Accumulate points and advance the tier inside the caller's unit of work"""
        if user_card.status != CardStatus.OWNED:
            raise InvalidState(
                f"Card {user_card.id} is {user_card.status.value} and cannot evolve",
                user_card_id=user_card.id,
            )

        previous = user_card.current_rarity or STARTING_RARITY
        points = max(0.0, float(points_earned or 0.0))
        user_card.total_fantasy_points = round(
            (user_card.total_fantasy_points or 0.0) + points, 2
        )

        current_index = tier_index(previous)
        target = tier_for_points(user_card.total_fantasy_points)
        target_index = EVOLUTION_TIERS.index(target)

        evolved = target_index > current_index
        if evolved:
            current = EVOLUTION_TIERS[current_index]
            base_value = user_card.card.base_sell_value if user_card.card else user_card.current_sell_value
            user_card.current_sell_value = max(
                user_card.current_sell_value,
                int(round(base_value * target.value_multiplier)),
            )
            user_card.remaining_contracts += target.bonus_contracts - current.bonus_contracts
            user_card.current_rarity = target.rarity
            logger.info(
                f"Card {user_card.id} evolved {previous.value} -> {target.rarity.value} "
                f"at {user_card.total_fantasy_points} pts"
            )

        return EvolutionResult(
            user_card_id=user_card.id,
            points_added=points,
            total_fantasy_points=user_card.total_fantasy_points,
            previous_rarity=previous.value,
            current_rarity=user_card.current_rarity.value,
            evolved=evolved,
            remaining_contracts=user_card.remaining_contracts,
            current_sell_value=user_card.current_sell_value,
        )

    def evolve(self, user_card_id: int, points_earned: float) -> EvolutionResult:
        """Standalone evolution: point accumulation and tier change commit together"""
        try:
            user_card = (
                self.db.query(UserCard)
                .filter(UserCard.id == user_card_id)
                .with_for_update()
                .first()
            )
            if not user_card:
                raise NotFound(f"Card {user_card_id} not found", user_card_id=user_card_id)
            result = self.apply(user_card, points_earned)
            self.db.commit()
            return result
        except Exception:
            self.db.rollback()
            raise

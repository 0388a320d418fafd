"""
Pack Roller - weighted rarity selection for pack contents

The random source is injected (anything with a `random()` method returning a
float in [0, 1), e.g. `random.Random`) so rolls can be made deterministic.
"""
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from sqlalchemy.orm import Session

from gridiron.models.database_models import Rarity
from gridiron.models.game_models import PackContentsSchema, SlotType
from gridiron.services.catalog_cache import CatalogCache, CatalogEntry

logger = logging.getLogger(__name__)

RARITY_VALUES = {r.value for r in Rarity}


def roll_rarity(weights: Mapping[str, float], rng) -> Optional[str]:
    """Cumulative-weight draw; the first declared rarity is the fallback"""
    if not weights:
        return None

    total = sum(max(0.0, float(w)) for w in weights.values())
    draw = rng.random() * total

    cumulative = 0.0
    for rarity, weight in weights.items():
        cumulative += max(0.0, float(weight))
        if cumulative > draw:
            return rarity

    fallback = next(iter(weights))
    logger.warning(
        f"Weighted draw {draw:.6f} exhausted total weight {total:.6f}; "
        f"falling back to '{fallback}'"
    )
    return fallback


def pick_uniform(pool: List[Any], rng) -> Any:
    index = min(int(rng.random() * len(pool)), len(pool) - 1)
    return pool[index]


@dataclass
class RolledContents:
    cards: List[CatalogEntry] = field(default_factory=list)
    tokens: List[CatalogEntry] = field(default_factory=list)
    coins: int = 0
    gaps: List[Dict[str, Any]] = field(default_factory=list)


class PackRoller:
    def __init__(self, db: Session, catalog: CatalogCache, rng=None):
        self.db = db
        self.catalog = catalog
        self.rng = rng if rng is not None else random.Random()

    def roll(self, schema: Union[PackContentsSchema, Mapping[str, Any]]) -> RolledContents:
        if not isinstance(schema, PackContentsSchema):
            schema = PackContentsSchema.model_validate(schema or {})

        contents = RolledContents()
        for slot_index, slot in enumerate(schema.slots):
            for _ in range(slot.count):
                if slot.type == SlotType.COINS:
                    contents.coins += slot.amount
                    continue

                rarity = roll_rarity(slot.rarityWeights, self.rng)
                entry = self._pick(slot.type, rarity)
                if entry is None:
                    contents.gaps.append(
                        {"slot": slot_index, "type": slot.type.value, "rarity": rarity}
                    )
                    logger.warning(
                        f"Pack slot {slot_index} ({slot.type.value}) rolled '{rarity}' "
                        f"but no enabled catalog entry exists"
                    )
                elif slot.type == SlotType.CARD:
                    contents.cards.append(entry)
                else:
                    contents.tokens.append(entry)

        return contents

    def _pick(self, slot_type: SlotType, rarity: Optional[str]) -> Optional[CatalogEntry]:
        if rarity is None or rarity not in RARITY_VALUES:
            return None
        if slot_type == SlotType.CARD:
            pool = self.catalog.cards_for_rarity(self.db, rarity)
        else:
            pool = self.catalog.token_types_for_rarity(self.db, rarity)
        if not pool:
            return None
        return pick_uniform(pool, self.rng)

"""
Tests for weighted pack rolls and the catalog cache
"""
import random
from datetime import datetime, timedelta

from gridiron.models.database_models import Rarity
from gridiron.services.catalog_cache import CatalogCache
from gridiron.services.pack_roller import PackRoller, roll_rarity


class SequenceRandom:
    """Deterministic random source replaying fixed draws"""

    def __init__(self, values):
        self.values = list(values)

    def random(self):
        return self.values.pop(0)


class TestRollRarity:
    def test_distribution_follows_weights(self):
        rng = random.Random(1234)
        weights = {"common": 90, "rare": 10}
        commons = sum(1 for _ in range(100_000) if roll_rarity(weights, rng) == "common")
        assert 85_000 <= commons <= 95_000

    def test_first_cumulative_weight_above_draw_wins(self):
        weights = {"common": 60, "rare": 30, "epic": 10}
        assert roll_rarity(weights, SequenceRandom([0.0])) == "common"
        assert roll_rarity(weights, SequenceRandom([0.59])) == "common"
        assert roll_rarity(weights, SequenceRandom([0.6])) == "rare"
        assert roll_rarity(weights, SequenceRandom([0.95])) == "epic"

    def test_weights_need_not_sum_to_one(self):
        assert roll_rarity({"common": 3, "rare": 1}, SequenceRandom([0.8])) == "rare"

    def test_exhausted_draw_falls_back_to_first_rarity(self):
        # A draw at the very top of the range matches no cumulative bucket
        assert roll_rarity({"rare": 1, "epic": 1}, SequenceRandom([1.0])) == "rare"

    def test_empty_weights(self):
        assert roll_rarity({}, SequenceRandom([0.5])) is None


class TestPackRoller:
    def test_rolls_cards_and_tokens_per_slot(self, db, seed, catalog):
        common = seed.card(rarity=Rarity.COMMON)
        rare = seed.card(rarity=Rarity.RARE)
        token = seed.token_type(rarity=Rarity.COMMON)
        schema = {
            "slots": [
                {"type": "card", "count": 2, "rarityWeights": {"common": 50, "rare": 50}},
                {"type": "token", "rarityWeights": {"common": 1}},
            ]
        }

        # rarity, pick, rarity, pick, rarity, pick
        rng = SequenceRandom([0.1, 0.0, 0.9, 0.0, 0.5, 0.0])
        contents = PackRoller(db, catalog, rng).roll(schema)

        assert [c["id"] for c in contents.cards] == [common.id, rare.id]
        assert [t["id"] for t in contents.tokens] == [token.id]
        assert contents.gaps == []

    def test_empty_rarity_pool_is_a_gap(self, db, seed, catalog):
        seed.card(rarity=Rarity.COMMON)
        schema = {"slots": [{"type": "card", "count": 1, "rarityWeights": {"legendary": 1}}]}

        contents = PackRoller(db, catalog, SequenceRandom([0.3])).roll(schema)

        assert contents.cards == []
        assert contents.gaps == [{"slot": 0, "type": "card", "rarity": "legendary"}]

    def test_unknown_rarity_is_a_gap(self, db, seed, catalog):
        schema = {"slots": [{"type": "card", "rarityWeights": {"mythic": 1}}]}
        contents = PackRoller(db, catalog, SequenceRandom([0.3])).roll(schema)
        assert len(contents.gaps) == 1

    def test_disabled_cards_are_never_rolled(self, db, seed, catalog):
        card = seed.card(rarity=Rarity.COMMON)
        card.enabled = False
        db.commit()
        schema = {"slots": [{"type": "card", "rarityWeights": {"common": 1}}]}

        contents = PackRoller(db, catalog, SequenceRandom([0.3])).roll(schema)
        assert contents.cards == []

    def test_coin_slots(self, db, catalog):
        schema = {"slots": [{"type": "coins", "count": 2, "amount": 150}]}
        contents = PackRoller(db, catalog, SequenceRandom([])).roll(schema)
        assert contents.coins == 300

    def test_zero_count_slot_yields_nothing(self, db, seed, catalog):
        seed.card(rarity=Rarity.COMMON)
        schema = {"slots": [{"type": "card", "count": 0, "rarityWeights": {"common": 1}}]}
        contents = PackRoller(db, catalog, SequenceRandom([])).roll(schema)
        assert contents.cards == []


class TestCatalogCache:
    def test_snapshot_is_cached_until_invalidated(self, db, seed):
        cache = CatalogCache(ttl_seconds=60)
        seed.card(rarity=Rarity.RARE)
        assert len(cache.cards_for_rarity(db, "rare")) == 1

        seed.card(rarity=Rarity.RARE)
        assert len(cache.cards_for_rarity(db, "rare")) == 1
        assert cache.hits == 1

        assert cache.invalidate() == 1
        assert len(cache.cards_for_rarity(db, "rare")) == 2

    def test_entries_expire(self, db, seed):
        now = [datetime(2025, 9, 1)]
        cache = CatalogCache(ttl_seconds=60, clock=lambda: now[0])
        seed.token_type(rarity=Rarity.EPIC)
        cache.token_types_for_rarity(db, "epic")

        seed.token_type(rarity=Rarity.EPIC)
        now[0] += timedelta(seconds=61)
        assert len(cache.token_types_for_rarity(db, "epic")) == 2
        assert cache.misses == 2

    def test_prefix_invalidation(self, db, seed):
        cache = CatalogCache()
        cache.cards_for_rarity(db, "common")
        cache.token_types_for_rarity(db, "common")

        assert cache.invalidate("cards:") == 1
        assert cache.get_stats()["total_entries"] == 1

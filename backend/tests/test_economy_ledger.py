"""
Tests for purchases, pack openings, sales and grants
"""
import pytest
from sqlalchemy.exc import IntegrityError

from gridiron.core.config import settings
from gridiron.core.errors import (
    AlreadyOpened,
    DuplicateRequest,
    InsufficientFunds,
    InvalidState,
    NoContractsRemaining,
    NotFound,
    NotOwned,
    Unauthorized,
)
from gridiron.models.database_models import (
    CardStatus,
    PackStatus,
    Rarity,
    Team,
    Transaction,
    TransactionType,
    UserCard,
    UserPack,
    UserToken,
)
from gridiron.services.economy_ledger import EconomyLedger
from gridiron.services.pack_roller import PackRoller

KEY = "purchase-key-0001"


def _transactions(db, team, transaction_type=None):
    query = db.query(Transaction).filter(Transaction.team_id == team.id)
    if transaction_type is not None:
        query = query.filter(Transaction.type == transaction_type.value)
    return query.all()


class TestTeams:
    def test_create_team_grants_starter_coins(self, db):
        team = EconomyLedger(db).create_team("user-1", "Gridiron Gang")

        assert team.coins == settings.STARTER_COINS
        grants = _transactions(db, team, TransactionType.GRANT_COINS)
        assert len(grants) == 1
        assert grants[0].amount == settings.STARTER_COINS

    def test_duplicate_team_name(self, db):
        ledger = EconomyLedger(db)
        ledger.create_team("user-1", "Gridiron Gang")
        with pytest.raises(InvalidState):
            ledger.create_team("user-1", "Gridiron Gang")
        # Same name for another user is fine
        ledger.create_team("user-2", "Gridiron Gang")

    def test_name_of_deactivated_team_can_be_reused(self, db):
        ledger = EconomyLedger(db)
        old = ledger.create_team("user-1", "Old Name")
        ledger.create_team("user-1", "Second Team")
        ledger.deactivate_team("user-1", old.id)

        renamed = ledger.create_team("user-1", "Old Name")

        assert renamed.id != old.id
        assert renamed.active is True
        with pytest.raises(InvalidState):
            ledger.create_team("user-1", "Old Name")

    def test_schema_enforces_unique_active_names(self, db, seed):
        seed.team(name="Blitz", active=False)
        seed.team(name="Blitz")

        with pytest.raises(IntegrityError):
            seed.team(name="Blitz")
        db.rollback()

    def test_cannot_deactivate_last_team(self, db, seed):
        team = seed.team()
        with pytest.raises(InvalidState):
            EconomyLedger(db).deactivate_team(team.user_id, team.id)
        db.refresh(team)
        assert team.active is True

    def test_deactivated_team_rejects_ledger_operations(self, db, seed):
        team = seed.team(name="First")
        seed.team(name="Second")
        pack = seed.pack()
        ledger = EconomyLedger(db)

        ledger.deactivate_team(team.user_id, team.id)

        with pytest.raises(NotFound):
            ledger.purchase_pack(team.user_id, team.id, pack.id, KEY)

    def test_other_users_team(self, db, seed):
        team = seed.team(user_id="owner")
        with pytest.raises(Unauthorized):
            EconomyLedger(db).get_team("intruder", team.id)


class TestPurchase:
    def test_purchase_debits_and_creates_unopened_pack(self, db, seed):
        team = seed.team(coins=1000)
        pack = seed.pack(price=400)

        result = EconomyLedger(db).purchase_pack(team.user_id, team.id, pack.id, KEY)

        db.refresh(team)
        assert team.coins == 600
        assert result.remaining_coins == 600
        assert result.replayed is False
        user_pack = db.query(UserPack).filter(UserPack.id == result.user_pack_id).one()
        assert user_pack.status == PackStatus.UNOPENED
        purchases = _transactions(db, team, TransactionType.PURCHASE_PACK)
        assert [t.amount for t in purchases] == [-400]

    def test_same_key_charges_once(self, db, seed):
        team = seed.team(coins=1000)
        pack = seed.pack(price=400)
        ledger = EconomyLedger(db)

        first = ledger.purchase_pack(team.user_id, team.id, pack.id, KEY)
        second = ledger.purchase_pack(team.user_id, team.id, pack.id, KEY)

        db.refresh(team)
        assert team.coins == 600
        assert second.replayed is True
        assert second.transaction_id == first.transaction_id
        assert second.user_pack_id == first.user_pack_id
        assert len(_transactions(db, team, TransactionType.PURCHASE_PACK)) == 1
        assert db.query(UserPack).count() == 1

    def test_key_reused_for_different_pack(self, db, seed):
        team = seed.team(coins=1000)
        pack = seed.pack(price=100)
        other = seed.pack(price=100, name="Other")
        ledger = EconomyLedger(db)
        ledger.purchase_pack(team.user_id, team.id, pack.id, KEY)

        with pytest.raises(DuplicateRequest) as exc_info:
            ledger.purchase_pack(team.user_id, team.id, other.id, KEY)

        assert exc_info.value.retryable is True
        assert exc_info.value.prior_result["pack_id"] == pack.id
        db.refresh(team)
        assert team.coins == 900

    def _lose_key_lookup_race(self, ledger, monkeypatch):
        """First key lookup misses, as if a concurrent request had not committed yet"""
        real_find = ledger._find_transaction
        lookups = []

        def find_transaction(*args):
            lookups.append(args)
            if len(lookups) == 1:
                return None
            return real_find(*args)

        monkeypatch.setattr(ledger, "_find_transaction", find_transaction)

    def test_concurrent_same_key_is_replayed(self, db, seed, monkeypatch):
        team = seed.team(coins=1000)
        pack = seed.pack(price=400)
        ledger = EconomyLedger(db)
        first = ledger.purchase_pack(team.user_id, team.id, pack.id, KEY)
        self._lose_key_lookup_race(ledger, monkeypatch)

        second = ledger.purchase_pack(team.user_id, team.id, pack.id, KEY)

        assert second.replayed is True
        assert second.transaction_id == first.transaction_id
        assert second.user_pack_id == first.user_pack_id
        assert second.remaining_coins == 600
        db.refresh(team)
        assert team.coins == 600
        assert len(_transactions(db, team, TransactionType.PURCHASE_PACK)) == 1
        assert db.query(UserPack).count() == 1

    def test_concurrent_key_reuse_for_different_pack(self, db, seed, monkeypatch):
        team = seed.team(coins=1000)
        pack = seed.pack(price=400)
        other = seed.pack(price=100, name="Other")
        ledger = EconomyLedger(db)
        ledger.purchase_pack(team.user_id, team.id, pack.id, KEY)
        self._lose_key_lookup_race(ledger, monkeypatch)

        with pytest.raises(DuplicateRequest):
            ledger.purchase_pack(team.user_id, team.id, other.id, KEY)

        db.refresh(team)
        assert team.coins == 600
        assert db.query(UserPack).count() == 1

    def test_keys_are_scoped_per_team(self, db, seed):
        first = seed.team(name="First", coins=500)
        second = seed.team(name="Second", coins=500)
        pack = seed.pack(price=100)
        ledger = EconomyLedger(db)

        ledger.purchase_pack(first.user_id, first.id, pack.id, KEY)
        result = ledger.purchase_pack(second.user_id, second.id, pack.id, KEY)
        assert result.replayed is False

    def test_insufficient_funds_changes_nothing(self, db, seed):
        team = seed.team(coins=300)
        pack = seed.pack(price=400)

        with pytest.raises(InsufficientFunds) as exc_info:
            EconomyLedger(db).purchase_pack(team.user_id, team.id, pack.id, KEY)

        assert exc_info.value.required == 400
        assert exc_info.value.available == 300
        db.refresh(team)
        assert team.coins == 300
        assert db.query(UserPack).count() == 0
        assert _transactions(db, team) == []

    def test_balance_never_goes_negative(self, db, seed):
        team = seed.team(coins=1000)
        pack = seed.pack(price=300)
        ledger = EconomyLedger(db)

        bought = 0
        for attempt in range(5):
            try:
                ledger.purchase_pack(team.user_id, team.id, pack.id, f"{KEY}-{attempt}")
                bought += 1
            except InsufficientFunds:
                pass
            db.refresh(team)
            assert team.coins >= 0

        assert bought == 3
        assert team.coins == 100

    def test_unauthorized_team(self, db, seed):
        team = seed.team(user_id="owner")
        pack = seed.pack()
        with pytest.raises(Unauthorized):
            EconomyLedger(db).purchase_pack("intruder", team.id, pack.id, KEY)

    def test_disabled_pack(self, db, seed):
        team = seed.team()
        pack = seed.pack()
        pack.enabled = False
        db.commit()
        with pytest.raises(NotFound):
            EconomyLedger(db).purchase_pack(team.user_id, team.id, pack.id, KEY)


class TestOpenPack:
    def _bought_pack(self, db, seed, team, slots=None):
        pack = seed.pack(price=100, slots=slots)
        result = EconomyLedger(db).purchase_pack(team.user_id, team.id, pack.id, KEY)
        return result.user_pack_id

    def test_open_grants_cards_at_catalog_base(self, db, seed, catalog):
        team = seed.team()
        card = seed.card(rarity=Rarity.EPIC, base_contracts=4, base_sell_value=250)
        user_pack_id = self._bought_pack(
            db, seed, team, [{"type": "card", "count": 2, "rarityWeights": {"epic": 1}}]
        )

        result = EconomyLedger(db).open_pack(
            team.user_id, team.id, user_pack_id, PackRoller(db, catalog)
        )

        assert len(result.cards) == 2
        user_cards = db.query(UserCard).filter(UserCard.team_id == team.id).all()
        assert len(user_cards) == 2
        for user_card in user_cards:
            assert user_card.card_id == card.id
            assert user_card.remaining_contracts == 4
            assert user_card.current_sell_value == 250
            # Evolution tier starts at the bottom regardless of catalog rarity
            assert user_card.current_rarity == Rarity.COMMON
            assert user_card.status == CardStatus.OWNED
        user_pack = db.query(UserPack).filter(UserPack.id == user_pack_id).one()
        assert user_pack.status == PackStatus.OPENED

    def test_open_grants_tokens_and_coins(self, db, seed, catalog):
        team = seed.team(coins=1000)
        token_type = seed.token_type(rarity=Rarity.RARE, max_uses=2)
        user_pack_id = self._bought_pack(
            db,
            seed,
            team,
            [
                {"type": "token", "rarityWeights": {"rare": 1}},
                {"type": "coins", "amount": 250},
            ],
        )

        result = EconomyLedger(db).open_pack(
            team.user_id, team.id, user_pack_id, PackRoller(db, catalog)
        )

        assert result.coins_granted == 250
        tokens = db.query(UserToken).filter(UserToken.team_id == team.id).all()
        assert [(t.token_type_id, t.uses_remaining) for t in tokens] == [(token_type.id, 2)]
        db.refresh(team)
        assert team.coins == 1000 - 100 + 250
        assert len(_transactions(db, team, TransactionType.PACK_COINS)) == 1

    def test_second_open_grants_nothing(self, db, seed, catalog):
        team = seed.team()
        seed.card(rarity=Rarity.COMMON)
        user_pack_id = self._bought_pack(db, seed, team)
        ledger = EconomyLedger(db)
        ledger.open_pack(team.user_id, team.id, user_pack_id, PackRoller(db, catalog))

        with pytest.raises(AlreadyOpened):
            ledger.open_pack(team.user_id, team.id, user_pack_id, PackRoller(db, catalog))

        assert db.query(UserCard).filter(UserCard.team_id == team.id).count() == 3

    def test_apply_after_concurrent_open(self, db, seed, catalog):
        team = seed.team()
        seed.card(rarity=Rarity.COMMON)
        user_pack_id = self._bought_pack(db, seed, team)
        ledger = EconomyLedger(db)
        contents = PackRoller(db, catalog).roll(
            {"slots": [{"type": "card", "rarityWeights": {"common": 1}}]}
        )
        ledger.apply_pack_contents(team.user_id, team.id, user_pack_id, contents.cards, [])

        with pytest.raises(AlreadyOpened):
            ledger.apply_pack_contents(team.user_id, team.id, user_pack_id, contents.cards, [])
        assert db.query(UserCard).count() == 1

    def test_pack_of_another_team(self, db, seed, catalog):
        owner = seed.team(name="Owner")
        other = seed.team(name="Other")
        user_pack_id = self._bought_pack(db, seed, owner)

        with pytest.raises(NotFound):
            EconomyLedger(db).open_pack(
                other.user_id, other.id, user_pack_id, PackRoller(db, catalog)
            )


class TestSellCard:
    def test_sale_credits_current_value(self, db, seed):
        team = seed.team(coins=100)
        user_card = seed.user_card(team, sell_value=175)

        result = EconomyLedger(db).sell_card(team.user_id, team.id, user_card.id)

        assert result.coins_received == 175
        assert result.new_balance == 275
        db.refresh(user_card)
        assert user_card.status == CardStatus.SOLD
        assert user_card.sold_at is not None
        sales = _transactions(db, team, TransactionType.SELL_CARD)
        assert [t.amount for t in sales] == [175]

    def test_cannot_sell_twice(self, db, seed):
        team = seed.team(coins=0)
        user_card = seed.user_card(team, sell_value=50)
        ledger = EconomyLedger(db)
        ledger.sell_card(team.user_id, team.id, user_card.id)

        with pytest.raises(InvalidState):
            ledger.sell_card(team.user_id, team.id, user_card.id)

        db.refresh(team)
        assert team.coins == 50

    def test_card_of_another_team(self, db, seed):
        owner = seed.team(name="Owner")
        other = seed.team(name="Other")
        user_card = seed.user_card(owner)

        with pytest.raises(NotOwned):
            EconomyLedger(db).sell_card(other.user_id, other.id, user_card.id)

    def test_card_without_contracts(self, db, seed):
        team = seed.team(coins=0)
        user_card = seed.user_card(team, remaining_contracts=0)

        with pytest.raises(NoContractsRemaining):
            EconomyLedger(db).sell_card(team.user_id, team.id, user_card.id)

        db.refresh(user_card)
        assert user_card.status == CardStatus.OWNED


class TestGrantsAndReconciliation:
    def test_grant_with_key_is_applied_once(self, db, seed):
        team = seed.team(coins=0)
        ledger = EconomyLedger(db)

        first = ledger.grant_coins(team.id, 40, reason="bonus", idempotency_key="bonus-1")
        second = ledger.grant_coins(team.id, 40, reason="bonus", idempotency_key="bonus-1")

        assert first.id == second.id
        db.refresh(team)
        assert team.coins == 40

    def test_non_positive_grant(self, db, seed):
        team = seed.team()
        with pytest.raises(InvalidState):
            EconomyLedger(db).grant_coins(team.id, 0)

    def test_reconcile_matches_ledger(self, db, seed, catalog):
        ledger = EconomyLedger(db)
        team = ledger.create_team("user-1", "Ledger Team")
        pack = seed.pack(price=700)
        ledger.purchase_pack(team.user_id, team.id, pack.id, KEY)

        report = ledger.reconcile(team.user_id, team.id)

        assert report.balance == settings.STARTER_COINS - 700
        assert report.ledger_total == report.balance
        assert report.drift == 0
        assert report.transactions == 2

    def test_reconcile_reports_drift(self, db, seed):
        team = seed.team(coins=500)
        report = EconomyLedger(db).reconcile(team.user_id, team.id)
        assert report.drift == 500
        assert db.query(Team).filter(Team.id == team.id).one().coins == 500

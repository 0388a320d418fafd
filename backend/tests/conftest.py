"""
Shared fixtures: an in-memory SQLite database and seeding helpers
"""
from datetime import datetime, timedelta

import jwt
import pytest

from gridiron.core.config import settings
from gridiron.core.database import Base, build_engine, make_session_factory
from gridiron.models.database_models import (
    Card,
    Game,
    GameStatus,
    Pack,
    Player,
    PlayerGameStats,
    Rarity,
    Team,
    TokenType,
    UserCard,
    UserToken,
    Week,
)
from gridiron.services.catalog_cache import CatalogCache

# Fixed reference time; weeks are laid out around it
NOW = datetime(2025, 9, 10, 12, 0, 0)


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSessionLocal = make_session_factory(engine)
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def catalog():
    return CatalogCache(ttl_seconds=60)


class Seeder:
    """Writes fixture rows directly, bypassing the services under test"""

    def __init__(self, db):
        self.db = db

    def _save(self, row):
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def team(self, user_id="user-1", name="Touchdown Makers", coins=1000, active=True):
        return self._save(Team(user_id=user_id, name=name, coins=coins, active=active))

    def player(self, position="WR", first_name="Test", last_name="Player", team_abbr="KC"):
        return self._save(
            Player(
                first_name=first_name,
                last_name=last_name,
                position=position,
                team_abbr=team_abbr,
                active=True,
            )
        )

    def card(self, player=None, rarity=Rarity.COMMON, base_contracts=3, base_sell_value=100):
        player = player or self.player()
        return self._save(
            Card(
                player_id=player.id,
                rarity=rarity,
                base_contracts=base_contracts,
                base_sell_value=base_sell_value,
                enabled=True,
            )
        )

    def pack(self, price=500, slots=None, name="Starter Pack"):
        if slots is None:
            slots = [{"type": "card", "count": 3, "rarityWeights": {"common": 1}}]
        return self._save(
            Pack(name=name, price_coins=price, contents_schema={"slots": slots}, enabled=True)
        )

    def token_type(self, condition=None, reward=None, rarity=Rarity.COMMON, max_uses=1):
        return self._save(
            TokenType(
                name="Big Game",
                rarity=rarity,
                condition_json=condition
                or {"type": "stat", "metric": "receiving_yards", "op": ">=", "value": 100},
                reward_json=reward or {"type": "points", "value": 5},
                max_uses=max_uses,
                enabled=True,
            )
        )

    def user_card(self, team, card=None, remaining_contracts=3, sell_value=100, **fields):
        card = card or self.card()
        return self._save(
            UserCard(
                user_id=team.user_id,
                team_id=team.id,
                card_id=card.id,
                remaining_contracts=remaining_contracts,
                current_sell_value=sell_value,
                current_rarity=Rarity.COMMON,
                total_fantasy_points=fields.pop("total_fantasy_points", 0.0),
                **fields,
            )
        )

    def user_token(self, team, token_type=None, uses_remaining=1):
        token_type = token_type or self.token_type()
        return self._save(
            UserToken(
                user_id=team.user_id,
                team_id=team.id,
                token_type_id=token_type.id,
                uses_remaining=uses_remaining,
            )
        )

    def week(self, season_year=2025, week_number=1, lock_in=timedelta(days=2), anchor=NOW):
        lock_at = anchor + lock_in
        return self._save(
            Week(
                season_year=season_year,
                week_number=week_number,
                start_at=lock_at - timedelta(days=5),
                lock_at=lock_at,
                end_at=lock_at + timedelta(days=3),
            )
        )

    def game(self, week, home="KC", away="BUF", home_score=0, away_score=0,
             status=GameStatus.FINAL):
        return self._save(
            Game(
                week_id=week.id,
                home_team_abbr=home,
                away_team_abbr=away,
                home_score=home_score,
                away_score=away_score,
                status=status,
            )
        )

    def stats(self, player, game, stat_json, finalized=True):
        return self._save(
            PlayerGameStats(
                player_id=player.id,
                game_id=game.id,
                stat_json=stat_json,
                finalized=finalized,
            )
        )


@pytest.fixture
def seed(db):
    return Seeder(db)


def make_auth_headers(user_id: str) -> dict:
    token = jwt.encode({"sub": user_id}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    return make_auth_headers

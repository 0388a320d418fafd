"""
SQLAlchemy database models for persistent storage
"""

from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    Boolean,
    DateTime,
    Text,
    ForeignKey,
    JSON,
    Enum,
    UniqueConstraint,
    CheckConstraint,
    Index,
    text,
)
from sqlalchemy.orm import relationship
from gridiron.core.database import Base
import enum
from datetime import datetime
from typing import Optional


class Rarity(str, enum.Enum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class CardStatus(str, enum.Enum):
    OWNED = "owned"
    SOLD = "sold"


class PackStatus(str, enum.Enum):
    UNOPENED = "unopened"
    OPENED = "opened"


class WeekStatus(str, enum.Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    LOCKED = "locked"
    COMPLETED = "completed"


class LineupStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    SCORED = "scored"


class RosterSlot(str, enum.Enum):
    QB = "QB"
    RB = "RB"
    WR = "WR"
    TE = "TE"
    FLEX = "FLEX"
    BENCH = "BENCH"


class GameStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    FINAL = "final"
    POSTPONED = "postponed"
    CANCELLED = "cancelled"


class TransactionType(str, enum.Enum):
    PURCHASE_PACK = "purchase-pack"
    SELL_CARD = "sell-card"
    GRANT_COINS = "grant-coins"
    PACK_COINS = "pack-coins"
    LINEUP_REWARD = "lineup-reward"


class TrendDirection(str, enum.Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class Team(Base):
    __tablename__ = "user_teams"
    __table_args__ = (
        CheckConstraint("coins >= 0", name="ck_user_teams_coins_non_negative"),
        # Names are unique among a user's active teams only
        Index(
            "uq_user_teams_user_name_active",
            "user_id",
            "name",
            unique=True,
            postgresql_where=text("active"),
            sqlite_where=text("active"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    coins = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    deactivated_at = Column(DateTime)

    # Relationships
    cards = relationship("UserCard", back_populates="team")
    packs = relationship("UserPack", back_populates="team")
    tokens = relationship("UserToken", back_populates="team")
    transactions = relationship("Transaction", back_populates="team")


class Player(Base):
    __tablename__ = "players"

    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(String(64), unique=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    position = Column(String(32), nullable=False)  # "WR" or "Wide Receiver"
    team_abbr = Column(String(8))
    active = Column(Boolean, default=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Card(Base):
    """Immutable catalog template for a player card"""

    __tablename__ = "cards"

    id = Column(Integer, primary_key=True, index=True)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False, index=True)
    rarity = Column(Enum(Rarity), nullable=False, index=True)
    base_contracts = Column(Integer, nullable=False, default=3)
    base_sell_value = Column(Integer, nullable=False, default=100)
    enabled = Column(Boolean, default=True)

    player = relationship("Player")


class UserCard(Base):
    __tablename__ = "user_cards"
    __table_args__ = (
        CheckConstraint(
            "remaining_contracts >= 0", name="ck_user_cards_contracts_non_negative"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("user_teams.id"), nullable=False, index=True)
    card_id = Column(Integer, ForeignKey("cards.id"), nullable=False)
    user_pack_id = Column(Integer, ForeignKey("user_packs.id"))

    remaining_contracts = Column(Integer, nullable=False)
    current_sell_value = Column(Integer, nullable=False)
    current_rarity = Column(Enum(Rarity), nullable=False, default=Rarity.COMMON)
    total_fantasy_points = Column(Float, nullable=False, default=0.0)
    status = Column(Enum(CardStatus), nullable=False, default=CardStatus.OWNED)

    acquired_at = Column(DateTime, default=datetime.utcnow)
    sold_at = Column(DateTime)

    # Relationships
    team = relationship("Team", back_populates="cards")
    card = relationship("Card")


class Pack(Base):
    __tablename__ = "packs"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    price_coins = Column(Integer, nullable=False)
    # {"slots": [{"type": "card", "count": 5, "rarityWeights": {...}}, ...]}
    contents_schema = Column(JSON, nullable=False, default=dict)
    enabled = Column(Boolean, default=True)


class UserPack(Base):
    __tablename__ = "user_packs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("user_teams.id"), nullable=False, index=True)
    pack_id = Column(Integer, ForeignKey("packs.id"), nullable=False)
    status = Column(Enum(PackStatus), nullable=False, default=PackStatus.UNOPENED)
    purchased_at = Column(DateTime, default=datetime.utcnow)
    opened_at = Column(DateTime)

    team = relationship("Team", back_populates="packs")
    pack = relationship("Pack")


class TokenType(Base):
    __tablename__ = "token_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text)
    rarity = Column(Enum(Rarity), nullable=False, index=True)
    # {"type": "stat", "metric": "rushing_yards", "op": ">=", "value": 100}
    # {"type": "team_result", "result": "win"}
    condition_json = Column(JSON, nullable=False)
    # {"type": "points", "value": 5} or {"type": "multiplier", "value": 1.5}
    reward_json = Column(JSON, nullable=False)
    max_uses = Column(Integer, nullable=False, default=1)
    enabled = Column(Boolean, default=True)


class UserToken(Base):
    __tablename__ = "user_tokens"
    __table_args__ = (
        CheckConstraint("uses_remaining >= 0", name="ck_user_tokens_uses_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("user_teams.id"), nullable=False, index=True)
    token_type_id = Column(Integer, ForeignKey("token_types.id"), nullable=False)
    user_pack_id = Column(Integer, ForeignKey("user_packs.id"))
    uses_remaining = Column(Integer, nullable=False)
    acquired_at = Column(DateTime, default=datetime.utcnow)

    team = relationship("Team", back_populates="tokens")
    token_type = relationship("TokenType")


class Week(Base):
    __tablename__ = "weeks"
    __table_args__ = (
        UniqueConstraint("season_year", "week_number", name="uq_weeks_season_week"),
        CheckConstraint("start_at < lock_at AND lock_at < end_at", name="ck_weeks_order"),
    )

    id = Column(Integer, primary_key=True, index=True)
    season_year = Column(Integer, nullable=False)
    week_number = Column(Integer, nullable=False)
    start_at = Column(DateTime, nullable=False)
    lock_at = Column(DateTime, nullable=False)
    end_at = Column(DateTime, nullable=False)

    games = relationship("Game", back_populates="week")

    def status_at(self, now: datetime) -> WeekStatus:
        if now < self.start_at:
            return WeekStatus.UPCOMING
        if now < self.lock_at:
            return WeekStatus.ACTIVE
        if now < self.end_at:
            return WeekStatus.LOCKED
        return WeekStatus.COMPLETED

    @property
    def status(self) -> WeekStatus:
        return self.status_at(datetime.utcnow())


class Game(Base):
    __tablename__ = "games"

    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(String(64), unique=True)
    week_id = Column(Integer, ForeignKey("weeks.id"), nullable=False, index=True)
    home_team_abbr = Column(String(8), nullable=False)
    away_team_abbr = Column(String(8), nullable=False)
    home_score = Column(Integer, default=0)
    away_score = Column(Integer, default=0)
    status = Column(Enum(GameStatus), default=GameStatus.SCHEDULED)
    kickoff_at = Column(DateTime)

    week = relationship("Week", back_populates="games")

    def result_for(self, team_abbr: Optional[str]) -> Optional[str]:
        """win/loss/tie for the given side, or None while the result is unknown"""
        if self.status != GameStatus.FINAL or not team_abbr:
            return None
        if team_abbr == self.home_team_abbr:
            ours, theirs = self.home_score or 0, self.away_score or 0
        elif team_abbr == self.away_team_abbr:
            ours, theirs = self.away_score or 0, self.home_score or 0
        else:
            return None
        if ours > theirs:
            return "win"
        if ours < theirs:
            return "loss"
        return "tie"


class PlayerGameStats(Base):
    __tablename__ = "player_game_stats"
    __table_args__ = (
        UniqueConstraint("player_id", "game_id", name="uq_player_game_stats_player_game"),
    )

    id = Column(Integer, primary_key=True, index=True)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False, index=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False, index=True)
    stat_json = Column(JSON, nullable=False, default=dict)
    finalized = Column(Boolean, nullable=False, default=False)
    game_date = Column(DateTime)

    player = relationship("Player")
    game = relationship("Game")


class Lineup(Base):
    __tablename__ = "lineups"
    __table_args__ = (
        UniqueConstraint("team_id", "week_id", name="uq_lineups_team_week"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("user_teams.id"), nullable=False, index=True)
    week_id = Column(Integer, ForeignKey("weeks.id"), nullable=False, index=True)
    status = Column(Enum(LineupStatus), nullable=False, default=LineupStatus.DRAFT)
    total_points = Column(Float, default=0.0)
    submitted_at = Column(DateTime)
    scored_at = Column(DateTime)

    slots = relationship(
        "LineupSlot",
        back_populates="lineup",
        cascade="all, delete-orphan",
        order_by="LineupSlot.id",
    )
    week = relationship("Week")


class LineupSlot(Base):
    __tablename__ = "lineup_slots"

    id = Column(Integer, primary_key=True, index=True)
    lineup_id = Column(Integer, ForeignKey("lineups.id"), nullable=False, index=True)
    slot = Column(Enum(RosterSlot), nullable=False)
    slot_label = Column(String(8))  # as submitted, e.g. "RB2"
    user_card_id = Column(Integer, ForeignKey("user_cards.id"))
    applied_token_id = Column(Integer, ForeignKey("user_tokens.id"))

    # Filled in by scoring
    base_points = Column(Float)
    token_points = Column(Float)
    points = Column(Float)

    lineup = relationship("Lineup", back_populates="slots")
    user_card = relationship("UserCard")
    applied_token = relationship("UserToken")


class Transaction(Base):
    """Append-only ledger entry; never updated or deleted"""

    __tablename__ = "transactions"
    __table_args__ = (
        UniqueConstraint(
            "team_id", "type", "idempotency_key", name="uq_transactions_idempotency"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("user_teams.id"), nullable=False, index=True)
    type = Column(String(32), nullable=False)
    amount = Column(Integer, nullable=False)
    idempotency_key = Column(String(128))
    meta_json = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)

    team = relationship("Team", back_populates="transactions")


class TokenEvaluation(Base):
    __tablename__ = "token_evaluations"

    id = Column(Integer, primary_key=True, index=True)
    lineup_slot_id = Column(
        Integer, ForeignKey("lineup_slots.id"), nullable=False, unique=True
    )
    user_token_id = Column(Integer, ForeignKey("user_tokens.id"), nullable=False, index=True)
    satisfied = Column(Boolean, nullable=False, default=False)
    points_awarded = Column(Float, nullable=False, default=0.0)
    rule_snapshot = Column(JSON)
    consumed = Column(Boolean, nullable=False, default=False)
    evaluated_at = Column(DateTime, default=datetime.utcnow)
    consumed_at = Column(DateTime)


class TrendingCache(Base):
    """Derived per-season trend row; recomputable, never authoritative"""

    __tablename__ = "player_trending_cache"
    __table_args__ = (
        UniqueConstraint("player_id", "season_year", name="uq_trending_player_season"),
    )

    id = Column(Integer, primary_key=True, index=True)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False, index=True)
    season_year = Column(Integer, nullable=False)
    trend_direction = Column(Enum(TrendDirection), nullable=False)
    trend_strength = Column(Integer, nullable=False, default=0)
    season_avg = Column(Float, nullable=False, default=0.0)
    last_3_avg = Column(Float, nullable=False, default=0.0)
    games_played = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any, Union, Literal
from datetime import datetime
from enum import Enum


class SlotType(str, Enum):
    CARD = "card"
    TOKEN = "token"
    COINS = "coins"


class PackSlot(BaseModel):
    type: SlotType
    count: int = Field(default=1, ge=0)
    rarityWeights: Dict[str, float] = Field(default_factory=dict)
    # Only used by coins slots: coins granted per unit
    amount: int = Field(default=0, ge=0)


class PackContentsSchema(BaseModel):
    slots: List[PackSlot] = Field(default_factory=list)


# Token rules


class StatCondition(BaseModel):
    type: Literal["stat"] = "stat"
    metric: str
    op: Literal[">=", "<=", "==", "=", ">", "<"]
    value: float


class TeamResultCondition(BaseModel):
    type: Literal["team_result"] = "team_result"
    result: Literal["win", "loss", "tie"]


TokenCondition = Union[StatCondition, TeamResultCondition]


class PointsReward(BaseModel):
    type: Literal["points"] = "points"
    value: float


class MultiplierReward(BaseModel):
    type: Literal["multiplier"] = "multiplier"
    value: float = Field(ge=0)


TokenReward = Union[PointsReward, MultiplierReward]


# Requests


class CreateTeamRequest(BaseModel):
    teamName: str = Field(min_length=3, max_length=50)


class PurchasePackRequest(BaseModel):
    packId: int
    teamId: int
    idempotencyKey: str = Field(min_length=10, max_length=128)


class OpenPackRequest(BaseModel):
    userPackId: int
    teamId: int


class SellCardRequest(BaseModel):
    userCardId: int
    teamId: int


class LineupSlotRequest(BaseModel):
    slot: Literal["QB", "RB", "RB1", "RB2", "WR", "WR1", "WR2", "TE", "FLEX", "BENCH"]
    user_card_id: Optional[int] = None
    applied_token_id: Optional[int] = None


class SubmitLineupRequest(BaseModel):
    weekId: int
    teamId: int
    slots: List[LineupSlotRequest]


class GrantCoinsRequest(BaseModel):
    teamId: int
    amount: int = Field(gt=0, le=1_000_000)
    reason: Optional[str] = None


class ScoreWeekRequest(BaseModel):
    week_id: Optional[int] = None
    season_year: Optional[int] = None
    week_number: Optional[int] = None


class RecomputeTrendRequest(BaseModel):
    season_year: int
    player_id: Optional[int] = None


# Responses


class TeamResponse(BaseModel):
    id: int
    name: str
    coins: int
    active: bool
    created_at: Optional[datetime] = None


class PurchaseResult(BaseModel):
    transaction_id: int
    user_pack_id: int
    pack_id: int
    price: int
    remaining_coins: int
    replayed: bool = False


class GrantedCard(BaseModel):
    user_card_id: int
    card_id: int
    player_id: int
    catalog_rarity: str
    remaining_contracts: int
    current_sell_value: int


class GrantedToken(BaseModel):
    user_token_id: int
    token_type_id: int
    name: str
    uses_remaining: int


class OpenPackResult(BaseModel):
    user_pack_id: int
    cards: List[GrantedCard] = Field(default_factory=list)
    tokens: List[GrantedToken] = Field(default_factory=list)
    coins_granted: int = 0


class SellCardResult(BaseModel):
    user_card_id: int
    coins_received: int
    new_balance: int
    transaction_id: int


class EvolutionResult(BaseModel):
    user_card_id: int
    points_added: float
    total_fantasy_points: float
    previous_rarity: str
    current_rarity: str
    evolved: bool
    remaining_contracts: int
    current_sell_value: int


class LineupResponse(BaseModel):
    lineup_id: int
    week_id: int
    team_id: int
    status: str
    filled_slots: int
    total_slots: int


class TrendResponse(BaseModel):
    player_id: int
    season_year: int
    trend_direction: str
    trend_strength: int
    season_avg: float
    last_3_avg: float
    games_played: int
    updated_at: Optional[datetime] = None


class ScoringReportResponse(BaseModel):
    week_id: int
    lineups_found: int
    lineups_scored: int
    lineups_failed: int
    lineups_skipped: int
    token_bonuses: int
    tokens_consumed: int
    errors: Dict[int, str] = Field(default_factory=dict)


class ReconciliationResponse(BaseModel):
    team_id: int
    balance: int
    ledger_total: int
    drift: int
    transactions: int
    extra: Dict[str, Any] = Field(default_factory=dict)


class ApiResponse(BaseModel):
    success: bool = True
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)

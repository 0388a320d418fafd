"""
Token Evaluator - conditional token rules

Conditions are checked against a player's game stats or the team result;
rewards turn into a signed point delta. Nothing here touches the database.
"""
import logging
import operator
from typing import Any, Mapping, Optional, Union

from pydantic import TypeAdapter

from gridiron.models.game_models import (
    MultiplierReward,
    PointsReward,
    StatCondition,
    TeamResultCondition,
    TokenCondition,
    TokenReward,
)
from gridiron.services.stat_translator import METRIC_ALIASES, normalize_stats

logger = logging.getLogger(__name__)

_OPERATORS = {
    ">=": operator.ge,
    "<=": operator.le,
    "==": operator.eq,
    "=": operator.eq,
    ">": operator.gt,
    "<": operator.lt,
}

_condition_adapter = TypeAdapter(TokenCondition)
_reward_adapter = TypeAdapter(TokenReward)


def parse_condition(raw: Union[TokenCondition, Mapping[str, Any]]) -> TokenCondition:
    if isinstance(raw, (StatCondition, TeamResultCondition)):
        return raw
    return _condition_adapter.validate_python(raw)


def parse_reward(raw: Union[TokenReward, Mapping[str, Any]]) -> TokenReward:
    if isinstance(raw, (PointsReward, MultiplierReward)):
        return raw
    return _reward_adapter.validate_python(raw)


def evaluate(
    condition: Union[TokenCondition, Mapping[str, Any]],
    player_stats: Optional[Mapping[str, Any]],
    team_result: Optional[str],
) -> bool:
    condition = parse_condition(condition)

    if isinstance(condition, TeamResultCondition):
        # Unknown game state never satisfies a result condition
        if team_result is None:
            return False
        return team_result == condition.result

    metrics = normalize_stats(player_stats)
    metric = METRIC_ALIASES.get(condition.metric, condition.metric)
    value = metrics.get(metric, 0.0)
    return _OPERATORS[condition.op](value, condition.value)


def compute_reward(reward: Union[TokenReward, Mapping[str, Any]], base_points: float) -> float:
    """Signed point delta for a satisfied token"""
    reward = parse_reward(reward)
    if isinstance(reward, MultiplierReward):
        return round(base_points * (reward.value - 1.0), 2)
    return float(reward.value)

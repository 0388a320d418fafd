"""
Scoring Orchestrator - weekly batch that scores submitted lineups

Each lineup is its own unit of work: it is claimed with a conditional
submitted -> scored flip, scored, evolved, rewarded and committed together.
A failing lineup is rolled back (left submitted) and reported; it never stops
the rest of the batch.

Token uses are consumed after the loop from the recorded TokenEvaluation rows
that are satisfied and not yet consumed, so a rerun cannot consume twice.
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from gridiron.core.config import settings
from gridiron.core.errors import NotFound, StatsNotFinal
from gridiron.models.database_models import (
    CardStatus,
    Game,
    Lineup,
    LineupSlot,
    LineupStatus,
    PlayerGameStats,
    RosterSlot,
    Team,
    TokenEvaluation,
    TransactionType,
    UserToken,
    Week,
)
from gridiron.models.game_models import ScoringReportResponse
from gridiron.services.card_evolution import CardEvolutionEngine
from gridiron.services.economy_ledger import EconomyLedger
from gridiron.services.stat_translator import ScoringProfile, calculate_fantasy_points
from gridiron.services.token_evaluator import compute_reward, evaluate

logger = logging.getLogger(__name__)


@dataclass
class LineupOutcome:
    lineup_id: int
    total_points: float
    token_bonuses: int


class ScoringOrchestrator:
    def __init__(self, db: Session, clock: Callable[[], datetime] = datetime.utcnow):
        self.db = db
        self._clock = clock
        self.evolution = CardEvolutionEngine(db)
        self.ledger = EconomyLedger(db)

    def resolve_week(
        self,
        week_id: Optional[int] = None,
        season_year: Optional[int] = None,
        week_number: Optional[int] = None,
    ) -> Week:
        query = self.db.query(Week)
        if week_id is not None:
            week = query.filter(Week.id == week_id).first()
        elif season_year is not None and week_number is not None:
            week = query.filter(
                Week.season_year == season_year, Week.week_number == week_number
            ).first()
        else:
            # Most recently completed week
            week = (
                query.filter(Week.end_at <= self._clock())
                .order_by(Week.end_at.desc())
                .first()
            )
        if not week:
            raise NotFound(
                "Week not found",
                week_id=week_id,
                season_year=season_year,
                week_number=week_number,
            )
        return week

    def score_week(self, week_id: int) -> ScoringReportResponse:
        week = self.resolve_week(week_id=week_id)
        logger.info(f"Scoring week {week.season_year}/{week.week_number} (id {week.id})")

        lineup_ids = [
            row.id
            for row in self.db.query(Lineup.id)
            .filter(Lineup.week_id == week.id, Lineup.status == LineupStatus.SUBMITTED)
            .order_by(Lineup.id)
            .all()
        ]
        already_scored = (
            self.db.query(Lineup)
            .filter(Lineup.week_id == week.id, Lineup.status == LineupStatus.SCORED)
            .count()
        )

        report = ScoringReportResponse(
            week_id=week.id,
            lineups_found=len(lineup_ids) + already_scored,
            lineups_scored=0,
            lineups_failed=0,
            lineups_skipped=already_scored,
            token_bonuses=0,
            tokens_consumed=0,
        )

        for lineup_id in lineup_ids:
            try:
                outcome = self.score_lineup(lineup_id, week)
            except Exception as e:
                self.db.rollback()
                report.lineups_failed += 1
                report.errors[lineup_id] = str(e)
                logger.error(f"Error scoring lineup {lineup_id}: {e}")
                continue

            if outcome is None:
                report.lineups_skipped += 1
                continue
            report.lineups_scored += 1
            report.token_bonuses += outcome.token_bonuses

        report.tokens_consumed = self.consume_tokens(week.id)

        logger.info(
            f"Week {week.id} scored: {report.lineups_scored} succeeded, "
            f"{report.lineups_failed} failed, {report.lineups_skipped} skipped"
        )
        return report

    def score_lineup(self, lineup_id: int, week: Week) -> Optional[LineupOutcome]:
        """Score one lineup and commit; None if another run already claimed it"""
        now = self._clock()
        try:
            claimed = (
                self.db.query(Lineup)
                .filter(Lineup.id == lineup_id, Lineup.status == LineupStatus.SUBMITTED)
                .update(
                    {Lineup.status: LineupStatus.SCORED, Lineup.scored_at: now},
                    synchronize_session=False,
                )
            )
            if claimed != 1:
                self.db.rollback()
                return None

            lineup = self.db.query(Lineup).filter(Lineup.id == lineup_id).one()
            self.db.refresh(lineup)

            total = 0.0
            token_bonuses = 0
            for slot in lineup.slots:
                if slot.slot == RosterSlot.BENCH:
                    continue
                points, bonus = self._score_slot(slot, week, now)
                total += points
                token_bonuses += bonus

            lineup.total_points = round(total, 2)
            self._reward(lineup)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Lineup {lineup_id} scored {lineup.total_points} pts")
        return LineupOutcome(lineup_id, lineup.total_points, token_bonuses)

    def _score_slot(self, slot: LineupSlot, week: Week, now: datetime) -> Tuple[float, int]:
        user_card = slot.user_card
        if user_card is None or user_card.status != CardStatus.OWNED:
            # Sold between submission and scoring
            slot.base_points = slot.token_points = slot.points = 0.0
            logger.warning(f"Lineup slot {slot.id} card is no longer owned; scored as 0")
            return 0.0, 0

        player = user_card.card.player
        stats_row = self._stats_for(player.id, week.id)
        if stats_row is not None and not stats_row.finalized:
            raise StatsNotFinal(
                f"Stats for player {player.id} are not final yet",
                player_id=player.id,
                week_id=week.id,
            )

        stats = stats_row.stat_json if stats_row is not None else {}
        base_points = calculate_fantasy_points(stats, player.position, ScoringProfile.WEEKLY)

        token_points = 0.0
        bonus = 0
        if slot.applied_token_id is not None:
            game = stats_row.game if stats_row is not None else None
            team_result = game.result_for(player.team_abbr) if game is not None else None
            token_points, satisfied = self._evaluate_token(
                slot, stats, team_result, base_points, now
            )
            bonus = 1 if satisfied else 0

        points = round(max(0.0, base_points + token_points), 2)
        slot.base_points = base_points
        slot.token_points = token_points
        slot.points = points

        self.evolution.apply(user_card, points)
        user_card.remaining_contracts = max(0, user_card.remaining_contracts - 1)
        return points, bonus

    def _evaluate_token(
        self,
        slot: LineupSlot,
        stats: Dict,
        team_result: Optional[str],
        base_points: float,
        now: datetime,
    ) -> Tuple[float, bool]:
        user_token = slot.applied_token
        token_type = user_token.token_type
        snapshot = {"condition": token_type.condition_json, "reward": token_type.reward_json}

        satisfied = user_token.uses_remaining > 0 and evaluate(
            token_type.condition_json, stats, team_result
        )
        delta = compute_reward(token_type.reward_json, base_points) if satisfied else 0.0

        self.db.add(
            TokenEvaluation(
                lineup_slot_id=slot.id,
                user_token_id=user_token.id,
                satisfied=satisfied,
                points_awarded=delta,
                rule_snapshot=snapshot,
                consumed=False,
                evaluated_at=now,
            )
        )
        return delta, satisfied

    def _stats_for(self, player_id: int, week_id: int) -> Optional[PlayerGameStats]:
        return (
            self.db.query(PlayerGameStats)
            .join(Game, PlayerGameStats.game_id == Game.id)
            .filter(PlayerGameStats.player_id == player_id, Game.week_id == week_id)
            .first()
        )

    def _reward(self, lineup: Lineup):
        coins = int(math.floor(lineup.total_points * settings.LINEUP_COINS_PER_POINT))
        if coins <= 0:
            return
        team = self.db.query(Team).filter(Team.id == lineup.team_id).first()
        if not team or not team.active:
            logger.info(f"Team {lineup.team_id} inactive; no reward for lineup {lineup.id}")
            return
        self.ledger.grant_coins(
            lineup.team_id,
            coins,
            reason="Weekly lineup reward",
            idempotency_key=f"lineup:{lineup.id}",
            transaction_type=TransactionType.LINEUP_REWARD,
            meta={"lineup_id": lineup.id, "total_points": lineup.total_points},
            commit=False,
        )

    def consume_tokens(self, week_id: int) -> int:
        """Decrement uses for satisfied evaluations not yet consumed"""
        pending: List[TokenEvaluation] = (
            self.db.query(TokenEvaluation)
            .join(LineupSlot, TokenEvaluation.lineup_slot_id == LineupSlot.id)
            .join(Lineup, LineupSlot.lineup_id == Lineup.id)
            .filter(
                Lineup.week_id == week_id,
                Lineup.status == LineupStatus.SCORED,
                TokenEvaluation.satisfied.is_(True),
                TokenEvaluation.consumed.is_(False),
            )
            .order_by(TokenEvaluation.id)
            .all()
        )

        consumed = 0
        now = self._clock()
        try:
            for evaluation in pending:
                flipped = (
                    self.db.query(TokenEvaluation)
                    .filter(
                        TokenEvaluation.id == evaluation.id,
                        TokenEvaluation.consumed.is_(False),
                    )
                    .update(
                        {TokenEvaluation.consumed: True, TokenEvaluation.consumed_at: now},
                        synchronize_session=False,
                    )
                )
                if flipped != 1:
                    continue

                decremented = (
                    self.db.query(UserToken)
                    .filter(
                        UserToken.id == evaluation.user_token_id,
                        UserToken.uses_remaining > 0,
                    )
                    .update(
                        {UserToken.uses_remaining: UserToken.uses_remaining - 1},
                        synchronize_session=False,
                    )
                )
                if decremented:
                    consumed += 1
                else:
                    logger.warning(
                        f"Token {evaluation.user_token_id} had no uses left when consuming "
                        f"evaluation {evaluation.id}"
                    )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if consumed:
            logger.info(f"Consumed {consumed} token use(s) for week {week_id}")
        return consumed

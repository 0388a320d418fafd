"""
Lineup Manager - weekly lineup submission

One lineup per (team, week), moving draft -> submitted -> scored. A submission
is validated as a whole; any violation rejects it without writing anything.
Re-submitting before lock replaces the previous slots entirely.
"""
import logging
from collections import Counter
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from gridiron.core.errors import (
    InvalidState,
    NotFound,
    SlotViolation,
    Unauthorized,
    ValidationFailed,
    WeekLocked,
)
from gridiron.models.database_models import (
    Card,
    CardStatus,
    Lineup,
    LineupSlot,
    LineupStatus,
    RosterSlot,
    Team,
    UserCard,
    UserToken,
    Week,
)
from gridiron.models.game_models import LineupResponse, LineupSlotRequest
from gridiron.services.stat_translator import normalize_position

logger = logging.getLogger(__name__)

# Submitted labels; numbered labels share their base slot's limit
SLOT_LABELS: Dict[str, RosterSlot] = {
    "QB": RosterSlot.QB,
    "RB": RosterSlot.RB,
    "RB1": RosterSlot.RB,
    "RB2": RosterSlot.RB,
    "WR": RosterSlot.WR,
    "WR1": RosterSlot.WR,
    "WR2": RosterSlot.WR,
    "TE": RosterSlot.TE,
    "FLEX": RosterSlot.FLEX,
    "BENCH": RosterSlot.BENCH,
}

SLOT_LIMITS: Dict[RosterSlot, int] = {
    RosterSlot.QB: 1,
    RosterSlot.RB: 2,
    RosterSlot.WR: 2,
    RosterSlot.TE: 1,
    RosterSlot.FLEX: 1,
    RosterSlot.BENCH: 6,
}

FLEX_POSITIONS = {"RB", "WR", "TE"}

# None means any position is accepted
ACCEPTED_POSITIONS: Dict[RosterSlot, Optional[set]] = {
    RosterSlot.QB: {"QB"},
    RosterSlot.RB: {"RB"},
    RosterSlot.WR: {"WR"},
    RosterSlot.TE: {"TE"},
    RosterSlot.FLEX: FLEX_POSITIONS,
    RosterSlot.BENCH: None,
}


class LineupManager:
    def __init__(self, db: Session, clock: Callable[[], datetime] = datetime.utcnow):
        self.db = db
        self._clock = clock

    def submit(
        self,
        user_id: str,
        team_id: int,
        week_id: int,
        slots: Sequence[LineupSlotRequest],
    ) -> LineupResponse:
        week = self.db.query(Week).filter(Week.id == week_id).first()
        if not week:
            raise NotFound(f"Week {week_id} not found", week_id=week_id)

        now = self._clock()
        if now >= week.lock_at:
            raise WeekLocked(
                f"Week {week.week_number} locked at {week.lock_at.isoformat()}",
                week_id=week.id,
                lock_at=week.lock_at.isoformat(),
            )

        team = self.db.query(Team).filter(Team.id == team_id).first()
        if not team or not team.active:
            raise NotFound(f"Team {team_id} not found", team_id=team_id)
        if team.user_id != user_id:
            raise Unauthorized(f"Team {team_id} is not owned by this user", team_id=team_id)

        existing = self._find(team.id, week.id)
        if existing and existing.status == LineupStatus.SCORED:
            raise InvalidState(
                "Lineup has already been scored", lineup_id=existing.id, week_id=week.id
            )

        violations = self.validate(team, slots)
        if violations:
            logger.info(
                f"Lineup for team {team.id} week {week.id} rejected with "
                f"{len(violations)} violation(s)"
            )
            raise ValidationFailed(violations)

        try:
            lineup = self._commit_write(user_id, team, week, slots, now)
        except IntegrityError:
            # A concurrent first submission created the row; overwrite it
            lineup = self._commit_write(user_id, team, week, slots, now)

        filled = sum(1 for s in slots if s.user_card_id is not None)
        logger.info(
            f"Lineup {lineup.id} submitted for team {team.id} week {week.id}: "
            f"{filled}/{len(slots)} slots filled"
        )
        return LineupResponse(
            lineup_id=lineup.id,
            week_id=week.id,
            team_id=team.id,
            status=lineup.status.value,
            filled_slots=filled,
            total_slots=len(slots),
        )

    def validate(self, team: Team, slots: Sequence[LineupSlotRequest]) -> List[SlotViolation]:
        """Every violation in the submission, in slot order"""
        card_ids = {s.user_card_id for s in slots if s.user_card_id is not None}
        token_ids = {s.applied_token_id for s in slots if s.applied_token_id is not None}

        cards: Dict[int, UserCard] = {}
        if card_ids:
            rows = (
                self.db.query(UserCard)
                .options(joinedload(UserCard.card).joinedload(Card.player))
                .filter(UserCard.id.in_(card_ids))
                .all()
            )
            cards = {row.id: row for row in rows}

        tokens: Dict[int, UserToken] = {}
        if token_ids:
            rows = self.db.query(UserToken).filter(UserToken.id.in_(token_ids)).all()
            tokens = {row.id: row for row in rows}

        violations: List[SlotViolation] = []
        slot_counts: Counter = Counter()
        starters_seen = set()
        tokens_seen = set()

        def violation(index: int, label: str, code: str, message: str):
            violations.append(SlotViolation(index, label, code, message))

        for index, request in enumerate(slots):
            label = request.slot
            slot = SLOT_LABELS[label]

            slot_counts[slot] += 1
            if slot_counts[slot] > SLOT_LIMITS[slot]:
                violation(
                    index, label, "slot_limit",
                    f"At most {SLOT_LIMITS[slot]} {slot.value} slot(s) allowed",
                )

            if request.user_card_id is None:
                if request.applied_token_id is not None:
                    violation(index, label, "token_without_card", "Token applied to an empty slot")
                continue

            user_card = cards.get(request.user_card_id)
            if user_card is None or user_card.team_id != team.id:
                violation(index, label, "card_not_owned", "Card not owned by this team")
                continue
            if user_card.status != CardStatus.OWNED:
                violation(index, label, "card_not_available", "Card has been sold")
                continue
            if user_card.remaining_contracts <= 0:
                violation(index, label, "no_contracts", "Card has no remaining contracts")

            position = normalize_position(user_card.card.player.position)
            accepted = ACCEPTED_POSITIONS[slot]
            if accepted is not None and position not in accepted:
                violation(
                    index, label, "position_mismatch",
                    f"{slot.value} slot cannot hold a {position}",
                )

            if slot != RosterSlot.BENCH:
                if user_card.id in starters_seen:
                    violation(index, label, "duplicate_card", "Card already used in another slot")
                starters_seen.add(user_card.id)

            if request.applied_token_id is None:
                continue
            token = tokens.get(request.applied_token_id)
            if slot == RosterSlot.BENCH:
                violation(index, label, "token_on_bench", "Tokens cannot be applied to bench slots")
            elif token is None or token.team_id != team.id:
                violation(index, label, "token_not_owned", "Token not owned by this team")
            elif token.uses_remaining <= 0:
                violation(index, label, "token_exhausted", "Token has no uses remaining")
            elif token.id in tokens_seen:
                violation(index, label, "duplicate_token", "Token already applied to another slot")
            tokens_seen.add(request.applied_token_id)

        return violations

    def get_lineup(self, user_id: str, team_id: int, week_id: int) -> Lineup:
        lineup = self._find(team_id, week_id)
        if not lineup:
            raise NotFound("Lineup not found", team_id=team_id, week_id=week_id)
        if lineup.user_id != user_id:
            raise Unauthorized("Lineup is not owned by this user", lineup_id=lineup.id)
        return lineup

    def _find(self, team_id: int, week_id: int) -> Optional[Lineup]:
        return (
            self.db.query(Lineup)
            .filter(Lineup.team_id == team_id, Lineup.week_id == week_id)
            .first()
        )

    def _commit_write(
        self,
        user_id: str,
        team: Team,
        week: Week,
        slots: Sequence[LineupSlotRequest],
        now: datetime,
    ) -> Lineup:
        try:
            lineup = self._write(user_id, team, week, slots, now)
            self.db.commit()
            return lineup
        except Exception:
            self.db.rollback()
            raise

    def _write(
        self,
        user_id: str,
        team: Team,
        week: Week,
        slots: Sequence[LineupSlotRequest],
        now: datetime,
    ) -> Lineup:
        lineup = self._find(team.id, week.id)
        if lineup is None:
            lineup = Lineup(user_id=user_id, team_id=team.id, week_id=week.id)
            self.db.add(lineup)
        elif lineup.status == LineupStatus.SCORED:
            raise InvalidState("Lineup has already been scored", lineup_id=lineup.id)

        # Replacing the collection deletes the previous slots (delete-orphan)
        lineup.slots = [
            LineupSlot(
                slot=SLOT_LABELS[s.slot],
                slot_label=s.slot,
                user_card_id=s.user_card_id,
                applied_token_id=s.applied_token_id,
            )
            for s in slots
            if s.user_card_id is not None
        ]
        lineup.status = LineupStatus.SUBMITTED
        lineup.total_points = 0.0
        lineup.submitted_at = now
        self.db.flush()
        return lineup

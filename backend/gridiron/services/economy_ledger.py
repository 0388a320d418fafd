"""
Economy Ledger - the only code path that changes a team's coin balance

Every public operation is one unit of work: balance change, inventory change
and the append-only Transaction row commit together or not at all.

Concurrency:
- the team row is locked (SELECT ... FOR UPDATE) before any balance change
- debits and status flips are conditional UPDATEs, so a lost race shows up
  as zero affected rows instead of a negative balance or a double grant
- idempotency keys are enforced by the unique constraint on
  transactions(team_id, type, idempotency_key); an IntegrityError on commit
  means a concurrent request with the same key won
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

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
    Pack,
    PackStatus,
    Team,
    Transaction,
    TransactionType,
    UserCard,
    UserPack,
    UserToken,
)
from gridiron.models.game_models import (
    GrantedCard,
    GrantedToken,
    OpenPackResult,
    PurchaseResult,
    ReconciliationResponse,
    SellCardResult,
)
from gridiron.services.card_evolution import STARTING_RARITY
from gridiron.services.catalog_cache import CatalogEntry
from gridiron.services.pack_roller import PackRoller

logger = logging.getLogger(__name__)


class EconomyLedger:
    """Purchases, pack openings, card sales and coin grants"""

    def __init__(self, db: Session):
        self.db = db

    # TEAM OPERATIONS

    def get_team(self, user_id: str, team_id: int, for_update: bool = False) -> Team:
        query = self.db.query(Team).filter(Team.id == team_id)
        if for_update:
            query = query.with_for_update()
        team = query.first()
        if not team or not team.active:
            raise NotFound(f"Team {team_id} not found", team_id=team_id)
        if team.user_id != user_id:
            raise Unauthorized(f"Team {team_id} is not owned by this user", team_id=team_id)
        return team

    def create_team(self, user_id: str, name: str) -> Team:
        """Create a team and seed it with the starter coin grant"""
        existing = (
            self.db.query(Team)
            .filter(Team.user_id == user_id, Team.name == name, Team.active.is_(True))
            .first()
        )
        if existing:
            raise InvalidState("You already have a team with this name", team_name=name)

        try:
            team = Team(user_id=user_id, name=name, coins=0, active=True)
            self.db.add(team)
            self.db.flush()

            if settings.STARTER_COINS > 0:
                self._credit(team, settings.STARTER_COINS)
                self._record(
                    team,
                    TransactionType.GRANT_COINS,
                    settings.STARTER_COINS,
                    idempotency_key=f"starter:{team.id}",
                    meta={"reason": "Welcome bonus for new team", "team_name": name},
                )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise InvalidState("You already have a team with this name", team_name=name)
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(team)
        logger.info(f"Team created: {team.id} '{name}' for user {user_id}")
        return team

    def deactivate_team(self, user_id: str, team_id: int) -> Team:
        """Soft-deactivate a team; a user always keeps at least one active team"""
        try:
            team = self.get_team(user_id, team_id, for_update=True)
            other_active = (
                self.db.query(func.count(Team.id))
                .filter(Team.user_id == user_id, Team.active.is_(True), Team.id != team.id)
                .scalar()
            )
            if not other_active:
                raise InvalidState(
                    "Cannot deactivate your last team. You must have at least one active team.",
                    team_id=team_id,
                )
            team.active = False
            team.deactivated_at = datetime.utcnow()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Team {team_id} deactivated by user {user_id}")
        return team

    # PURCHASES

    def purchase_pack(
        self, user_id: str, team_id: int, pack_id: int, idempotency_key: str
    ) -> PurchaseResult:
        try:
            team = self.get_team(user_id, team_id, for_update=True)

            prior = self._find_transaction(team.id, TransactionType.PURCHASE_PACK, idempotency_key)
            if prior is not None:
                result = self._replay_purchase(prior, team, pack_id)
                self.db.rollback()
                return result

            pack = (
                self.db.query(Pack)
                .filter(Pack.id == pack_id, Pack.enabled.is_(True))
                .first()
            )
            if not pack:
                raise NotFound(f"Pack {pack_id} not found", pack_id=pack_id)

            self._debit(team, pack.price_coins)

            user_pack = UserPack(
                user_id=user_id,
                team_id=team.id,
                pack_id=pack.id,
                status=PackStatus.UNOPENED,
                purchased_at=datetime.utcnow(),
            )
            self.db.add(user_pack)
            self.db.flush()

            transaction = self._record(
                team,
                TransactionType.PURCHASE_PACK,
                -pack.price_coins,
                idempotency_key=idempotency_key,
                meta={
                    "pack_id": pack.id,
                    "pack_name": pack.name,
                    "user_pack_id": user_pack.id,
                    "price": pack.price_coins,
                },
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            prior = self._find_transaction(team_id, TransactionType.PURCHASE_PACK, idempotency_key)
            if prior is None:
                raise
            team = self.db.query(Team).filter(Team.id == team_id).first()
            logger.info(f"Concurrent purchase with key {idempotency_key} lost the race; replaying")
            return self._replay_purchase(prior, team, pack_id)
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Pack {pack.id} purchased for team {team.id}: user pack {user_pack.id}, "
            f"{pack.price_coins} coins"
        )
        return PurchaseResult(
            transaction_id=transaction.id,
            user_pack_id=user_pack.id,
            pack_id=pack.id,
            price=pack.price_coins,
            remaining_coins=team.coins,
        )

    def _replay_purchase(self, prior: Transaction, team: Team, pack_id: int) -> PurchaseResult:
        meta = prior.meta_json or {}
        result = PurchaseResult(
            transaction_id=prior.id,
            user_pack_id=meta.get("user_pack_id"),
            pack_id=meta.get("pack_id"),
            price=meta.get("price", -prior.amount),
            remaining_coins=team.coins,
            replayed=True,
        )
        if meta.get("pack_id") != pack_id:
            raise DuplicateRequest(
                "Idempotency key was already used to purchase a different pack",
                prior_result=result.model_dump(),
            )
        return result

    # PACK OPENING

    def open_pack(
        self, user_id: str, team_id: int, user_pack_id: int, roller: PackRoller
    ) -> OpenPackResult:
        """Roll the pack's contents, then apply them in one unit of work"""
        team = self.get_team(user_id, team_id)
        user_pack = self._get_user_pack(user_id, team, user_pack_id)
        if user_pack.status != PackStatus.UNOPENED:
            raise AlreadyOpened(
                f"Pack {user_pack_id} has already been opened", user_pack_id=user_pack_id
            )

        # Catalog snapshot is taken before the write transaction begins
        contents = roller.roll(user_pack.pack.contents_schema)
        return self.apply_pack_contents(
            user_id, team_id, user_pack_id, contents.cards, contents.tokens, contents.coins
        )

    def apply_pack_contents(
        self,
        user_id: str,
        team_id: int,
        user_pack_id: int,
        cards: List[CatalogEntry],
        tokens: List[CatalogEntry],
        coins: int = 0,
    ) -> OpenPackResult:
        try:
            team = self.get_team(user_id, team_id, for_update=True)
            user_pack = self._get_user_pack(user_id, team, user_pack_id)

            flipped = (
                self.db.query(UserPack)
                .filter(UserPack.id == user_pack.id, UserPack.status == PackStatus.UNOPENED)
                .update(
                    {UserPack.status: PackStatus.OPENED, UserPack.opened_at: datetime.utcnow()},
                    synchronize_session=False,
                )
            )
            if flipped != 1:
                raise AlreadyOpened(
                    f"Pack {user_pack_id} has already been opened", user_pack_id=user_pack_id
                )

            result = OpenPackResult(user_pack_id=user_pack.id)

            for card in cards:
                user_card = UserCard(
                    user_id=user_id,
                    team_id=team.id,
                    card_id=card["id"],
                    user_pack_id=user_pack.id,
                    remaining_contracts=card["base_contracts"],
                    current_sell_value=card["base_sell_value"],
                    current_rarity=STARTING_RARITY,
                    total_fantasy_points=0.0,
                    status=CardStatus.OWNED,
                )
                self.db.add(user_card)
                self.db.flush()
                result.cards.append(
                    GrantedCard(
                        user_card_id=user_card.id,
                        card_id=card["id"],
                        player_id=card["player_id"],
                        catalog_rarity=card["rarity"],
                        remaining_contracts=user_card.remaining_contracts,
                        current_sell_value=user_card.current_sell_value,
                    )
                )

            for token in tokens:
                user_token = UserToken(
                    user_id=user_id,
                    team_id=team.id,
                    token_type_id=token["id"],
                    user_pack_id=user_pack.id,
                    uses_remaining=token["max_uses"],
                )
                self.db.add(user_token)
                self.db.flush()
                result.tokens.append(
                    GrantedToken(
                        user_token_id=user_token.id,
                        token_type_id=token["id"],
                        name=token.get("name", ""),
                        uses_remaining=user_token.uses_remaining,
                    )
                )

            if coins > 0:
                self._credit(team, coins)
                self._record(
                    team,
                    TransactionType.PACK_COINS,
                    coins,
                    idempotency_key=f"user-pack:{user_pack.id}",
                    meta={"user_pack_id": user_pack.id},
                )
                result.coins_granted = coins

            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise AlreadyOpened(
                f"Pack {user_pack_id} has already been opened", user_pack_id=user_pack_id
            )
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Pack {user_pack_id} opened for team {team_id}: {len(result.cards)} cards, "
            f"{len(result.tokens)} tokens, {result.coins_granted} coins"
        )
        return result

    def _get_user_pack(self, user_id: str, team: Team, user_pack_id: int) -> UserPack:
        user_pack = self.db.query(UserPack).filter(UserPack.id == user_pack_id).first()
        if not user_pack or user_pack.team_id != team.id or user_pack.user_id != user_id:
            raise NotFound(
                "Pack not found or not owned by this team",
                user_pack_id=user_pack_id,
                team_id=team.id,
            )
        return user_pack

    # CARD SALES

    def sell_card(self, user_id: str, team_id: int, user_card_id: int) -> SellCardResult:
        try:
            team = self.get_team(user_id, team_id, for_update=True)

            user_card = self.db.query(UserCard).filter(UserCard.id == user_card_id).first()
            if not user_card:
                raise NotFound(f"Card {user_card_id} not found", user_card_id=user_card_id)
            if user_card.team_id != team.id or user_card.user_id != user_id:
                raise NotOwned(
                    "Card not owned by this team", user_card_id=user_card_id, team_id=team.id
                )
            if user_card.status != CardStatus.OWNED:
                raise InvalidState(
                    f"Card {user_card_id} has already been sold", user_card_id=user_card_id
                )
            if user_card.remaining_contracts <= 0:
                raise NoContractsRemaining(
                    "Cannot sell card with no remaining contracts", user_card_id=user_card_id
                )

            sell_value = user_card.current_sell_value
            flipped = (
                self.db.query(UserCard)
                .filter(UserCard.id == user_card.id, UserCard.status == CardStatus.OWNED)
                .update(
                    {UserCard.status: CardStatus.SOLD, UserCard.sold_at: datetime.utcnow()},
                    synchronize_session=False,
                )
            )
            if flipped != 1:
                raise InvalidState(
                    f"Card {user_card_id} has already been sold", user_card_id=user_card_id
                )

            self._credit(team, sell_value)
            # A card can be sold once, so its id doubles as the idempotency key
            transaction = self._record(
                team,
                TransactionType.SELL_CARD,
                sell_value,
                idempotency_key=f"user-card:{user_card.id}",
                meta={
                    "user_card_id": user_card.id,
                    "card_id": user_card.card_id,
                    "current_rarity": user_card.current_rarity.value,
                },
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise InvalidState(
                f"Card {user_card_id} has already been sold", user_card_id=user_card_id
            )
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Card {user_card_id} sold by team {team_id} for {sell_value} coins")
        return SellCardResult(
            user_card_id=user_card_id,
            coins_received=sell_value,
            new_balance=team.coins,
            transaction_id=transaction.id,
        )

    # GRANTS

    def grant_coins(
        self,
        team_id: int,
        amount: int,
        reason: Optional[str] = None,
        idempotency_key: Optional[str] = None,
        transaction_type: TransactionType = TransactionType.GRANT_COINS,
        meta: Optional[Dict[str, Any]] = None,
        commit: bool = True,
    ) -> Transaction:
        """Credit coins to a team.

        With ``commit=False`` the grant joins the caller's unit of work (used by
        scoring so a lineup's reward commits together with its score).
        """
        if amount <= 0:
            raise InvalidState("Grant amount must be positive", amount=amount)

        try:
            team = (
                self.db.query(Team)
                .filter(Team.id == team_id)
                .with_for_update()
                .first()
            )
            if not team or not team.active:
                raise NotFound(f"Team {team_id} not found", team_id=team_id)

            if idempotency_key:
                prior = self._find_transaction(team.id, transaction_type, idempotency_key)
                if prior is not None:
                    return prior

            self._credit(team, amount)
            transaction = self._record(
                team,
                transaction_type,
                amount,
                idempotency_key=idempotency_key,
                meta=dict(meta or {}, reason=reason),
            )
            if commit:
                self.db.commit()
        except Exception:
            if commit:
                self.db.rollback()
            raise

        logger.info(f"Granted {amount} coins to team {team_id} ({transaction_type.value})")
        return transaction

    # RECONCILIATION

    def reconcile(self, user_id: str, team_id: int) -> ReconciliationResponse:
        team = self.get_team(user_id, team_id)
        ledger_total, count = (
            self.db.query(func.coalesce(func.sum(Transaction.amount), 0), func.count(Transaction.id))
            .filter(Transaction.team_id == team.id)
            .one()
        )
        drift = team.coins - int(ledger_total)
        if drift:
            logger.warning(f"Team {team.id} balance drift of {drift} coins against ledger")
        return ReconciliationResponse(
            team_id=team.id,
            balance=team.coins,
            ledger_total=int(ledger_total),
            drift=drift,
            transactions=count,
        )

    # INTERNALS

    def _find_transaction(
        self, team_id: int, transaction_type: TransactionType, idempotency_key: str
    ) -> Optional[Transaction]:
        return (
            self.db.query(Transaction)
            .filter(
                Transaction.team_id == team_id,
                Transaction.type == transaction_type.value,
                Transaction.idempotency_key == idempotency_key,
            )
            .first()
        )

    def _debit(self, team: Team, amount: int):
        debited = (
            self.db.query(Team)
            .filter(Team.id == team.id, Team.coins >= amount)
            .update({Team.coins: Team.coins - amount}, synchronize_session=False)
        )
        if debited != 1:
            self.db.refresh(team)
            raise InsufficientFunds(required=amount, available=team.coins)
        self.db.refresh(team)

    def _credit(self, team: Team, amount: int):
        self.db.query(Team).filter(Team.id == team.id).update(
            {Team.coins: Team.coins + amount}, synchronize_session=False
        )
        self.db.refresh(team)

    def _record(
        self,
        team: Team,
        transaction_type: TransactionType,
        amount: int,
        idempotency_key: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> Transaction:
        transaction = Transaction(
            user_id=team.user_id,
            team_id=team.id,
            type=transaction_type.value,
            amount=amount,
            idempotency_key=idempotency_key,
            meta_json=dict(meta or {}, team_id=team.id),
            created_at=datetime.utcnow(),
        )
        self.db.add(transaction)
        self.db.flush()
        return transaction

"""Initial card game schema

Revision ID: 0001_initial
Revises:
Create Date: 2025-09-01 12:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

RARITY = sa.Enum("COMMON", "UNCOMMON", "RARE", "EPIC", "LEGENDARY", name="rarity")
CARD_STATUS = sa.Enum("OWNED", "SOLD", name="cardstatus")
PACK_STATUS = sa.Enum("UNOPENED", "OPENED", name="packstatus")
LINEUP_STATUS = sa.Enum("DRAFT", "SUBMITTED", "SCORED", name="lineupstatus")
ROSTER_SLOT = sa.Enum("QB", "RB", "WR", "TE", "FLEX", "BENCH", name="rosterslot")
GAME_STATUS = sa.Enum(
    "SCHEDULED", "LIVE", "FINAL", "POSTPONED", "CANCELLED", name="gamestatus"
)
TREND_DIRECTION = sa.Enum("UP", "DOWN", "STABLE", name="trenddirection")


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "user_teams",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("coins", sa.Integer(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("deactivated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("coins >= 0", name="ck_user_teams_coins_non_negative"),
    )
    op.create_index("ix_user_teams_id", "user_teams", ["id"], unique=False)
    op.create_index("ix_user_teams_user_id", "user_teams", ["user_id"], unique=False)
    op.create_index(
        "uq_user_teams_user_name_active",
        "user_teams",
        ["user_id", "name"],
        unique=True,
        postgresql_where=sa.text("active"),
        sqlite_where=sa.text("active"),
    )

    op.create_table(
        "players",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("external_id", sa.String(length=64), nullable=True),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("position", sa.String(length=32), nullable=False),
        sa.Column("team_abbr", sa.String(length=8), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("external_id"),
    )
    op.create_index("ix_players_id", "players", ["id"], unique=False)

    op.create_table(
        "cards",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("rarity", RARITY, nullable=False),
        sa.Column("base_contracts", sa.Integer(), nullable=False),
        sa.Column("base_sell_value", sa.Integer(), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=True),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_cards_id", "cards", ["id"], unique=False)
    op.create_index("ix_cards_player_id", "cards", ["player_id"], unique=False)
    op.create_index("ix_cards_rarity", "cards", ["rarity"], unique=False)

    op.create_table(
        "packs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("price_coins", sa.Integer(), nullable=False),
        sa.Column("contents_schema", sa.JSON(), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_packs_id", "packs", ["id"], unique=False)

    op.create_table(
        "user_packs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("pack_id", sa.Integer(), nullable=False),
        sa.Column("status", PACK_STATUS, nullable=False),
        sa.Column("purchased_at", sa.DateTime(), nullable=True),
        sa.Column("opened_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["pack_id"], ["packs.id"]),
        sa.ForeignKeyConstraint(["team_id"], ["user_teams.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_user_packs_id", "user_packs", ["id"], unique=False)
    op.create_index("ix_user_packs_user_id", "user_packs", ["user_id"], unique=False)
    op.create_index("ix_user_packs_team_id", "user_packs", ["team_id"], unique=False)

    op.create_table(
        "user_cards",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("card_id", sa.Integer(), nullable=False),
        sa.Column("user_pack_id", sa.Integer(), nullable=True),
        sa.Column("remaining_contracts", sa.Integer(), nullable=False),
        sa.Column("current_sell_value", sa.Integer(), nullable=False),
        sa.Column("current_rarity", RARITY, nullable=False),
        sa.Column("total_fantasy_points", sa.Float(), nullable=False),
        sa.Column("status", CARD_STATUS, nullable=False),
        sa.Column("acquired_at", sa.DateTime(), nullable=True),
        sa.Column("sold_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["card_id"], ["cards.id"]),
        sa.ForeignKeyConstraint(["team_id"], ["user_teams.id"]),
        sa.ForeignKeyConstraint(["user_pack_id"], ["user_packs.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "remaining_contracts >= 0", name="ck_user_cards_contracts_non_negative"
        ),
    )
    op.create_index("ix_user_cards_id", "user_cards", ["id"], unique=False)
    op.create_index("ix_user_cards_user_id", "user_cards", ["user_id"], unique=False)
    op.create_index("ix_user_cards_team_id", "user_cards", ["team_id"], unique=False)

    op.create_table(
        "token_types",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("rarity", RARITY, nullable=False),
        sa.Column("condition_json", sa.JSON(), nullable=False),
        sa.Column("reward_json", sa.JSON(), nullable=False),
        sa.Column("max_uses", sa.Integer(), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_token_types_id", "token_types", ["id"], unique=False)
    op.create_index("ix_token_types_rarity", "token_types", ["rarity"], unique=False)

    op.create_table(
        "user_tokens",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("token_type_id", sa.Integer(), nullable=False),
        sa.Column("user_pack_id", sa.Integer(), nullable=True),
        sa.Column("uses_remaining", sa.Integer(), nullable=False),
        sa.Column("acquired_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["team_id"], ["user_teams.id"]),
        sa.ForeignKeyConstraint(["token_type_id"], ["token_types.id"]),
        sa.ForeignKeyConstraint(["user_pack_id"], ["user_packs.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("uses_remaining >= 0", name="ck_user_tokens_uses_non_negative"),
    )
    op.create_index("ix_user_tokens_id", "user_tokens", ["id"], unique=False)
    op.create_index("ix_user_tokens_user_id", "user_tokens", ["user_id"], unique=False)
    op.create_index("ix_user_tokens_team_id", "user_tokens", ["team_id"], unique=False)

    op.create_table(
        "weeks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("season_year", sa.Integer(), nullable=False),
        sa.Column("week_number", sa.Integer(), nullable=False),
        sa.Column("start_at", sa.DateTime(), nullable=False),
        sa.Column("lock_at", sa.DateTime(), nullable=False),
        sa.Column("end_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("season_year", "week_number", name="uq_weeks_season_week"),
        sa.CheckConstraint("start_at < lock_at AND lock_at < end_at", name="ck_weeks_order"),
    )
    op.create_index("ix_weeks_id", "weeks", ["id"], unique=False)

    op.create_table(
        "games",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("external_id", sa.String(length=64), nullable=True),
        sa.Column("week_id", sa.Integer(), nullable=False),
        sa.Column("home_team_abbr", sa.String(length=8), nullable=False),
        sa.Column("away_team_abbr", sa.String(length=8), nullable=False),
        sa.Column("home_score", sa.Integer(), nullable=True),
        sa.Column("away_score", sa.Integer(), nullable=True),
        sa.Column("status", GAME_STATUS, nullable=True),
        sa.Column("kickoff_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["week_id"], ["weeks.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("external_id"),
    )
    op.create_index("ix_games_id", "games", ["id"], unique=False)
    op.create_index("ix_games_week_id", "games", ["week_id"], unique=False)

    op.create_table(
        "player_game_stats",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("game_id", sa.Integer(), nullable=False),
        sa.Column("stat_json", sa.JSON(), nullable=False),
        sa.Column("finalized", sa.Boolean(), nullable=False),
        sa.Column("game_date", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["game_id"], ["games.id"]),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("player_id", "game_id", name="uq_player_game_stats_player_game"),
    )
    op.create_index("ix_player_game_stats_id", "player_game_stats", ["id"], unique=False)
    op.create_index(
        "ix_player_game_stats_player_id", "player_game_stats", ["player_id"], unique=False
    )
    op.create_index(
        "ix_player_game_stats_game_id", "player_game_stats", ["game_id"], unique=False
    )

    op.create_table(
        "lineups",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("week_id", sa.Integer(), nullable=False),
        sa.Column("status", LINEUP_STATUS, nullable=False),
        sa.Column("total_points", sa.Float(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(), nullable=True),
        sa.Column("scored_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["team_id"], ["user_teams.id"]),
        sa.ForeignKeyConstraint(["week_id"], ["weeks.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("team_id", "week_id", name="uq_lineups_team_week"),
    )
    op.create_index("ix_lineups_id", "lineups", ["id"], unique=False)
    op.create_index("ix_lineups_user_id", "lineups", ["user_id"], unique=False)
    op.create_index("ix_lineups_team_id", "lineups", ["team_id"], unique=False)
    op.create_index("ix_lineups_week_id", "lineups", ["week_id"], unique=False)

    op.create_table(
        "lineup_slots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("lineup_id", sa.Integer(), nullable=False),
        sa.Column("slot", ROSTER_SLOT, nullable=False),
        sa.Column("slot_label", sa.String(length=8), nullable=True),
        sa.Column("user_card_id", sa.Integer(), nullable=True),
        sa.Column("applied_token_id", sa.Integer(), nullable=True),
        sa.Column("base_points", sa.Float(), nullable=True),
        sa.Column("token_points", sa.Float(), nullable=True),
        sa.Column("points", sa.Float(), nullable=True),
        sa.ForeignKeyConstraint(["applied_token_id"], ["user_tokens.id"]),
        sa.ForeignKeyConstraint(["lineup_id"], ["lineups.id"]),
        sa.ForeignKeyConstraint(["user_card_id"], ["user_cards.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_lineup_slots_id", "lineup_slots", ["id"], unique=False)
    op.create_index("ix_lineup_slots_lineup_id", "lineup_slots", ["lineup_id"], unique=False)

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("idempotency_key", sa.String(length=128), nullable=True),
        sa.Column("meta_json", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["team_id"], ["user_teams.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "team_id", "type", "idempotency_key", name="uq_transactions_idempotency"
        ),
    )
    op.create_index("ix_transactions_id", "transactions", ["id"], unique=False)
    op.create_index("ix_transactions_user_id", "transactions", ["user_id"], unique=False)
    op.create_index("ix_transactions_team_id", "transactions", ["team_id"], unique=False)

    op.create_table(
        "token_evaluations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("lineup_slot_id", sa.Integer(), nullable=False),
        sa.Column("user_token_id", sa.Integer(), nullable=False),
        sa.Column("satisfied", sa.Boolean(), nullable=False),
        sa.Column("points_awarded", sa.Float(), nullable=False),
        sa.Column("rule_snapshot", sa.JSON(), nullable=True),
        sa.Column("consumed", sa.Boolean(), nullable=False),
        sa.Column("evaluated_at", sa.DateTime(), nullable=True),
        sa.Column("consumed_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["lineup_slot_id"], ["lineup_slots.id"]),
        sa.ForeignKeyConstraint(["user_token_id"], ["user_tokens.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("lineup_slot_id"),
    )
    op.create_index("ix_token_evaluations_id", "token_evaluations", ["id"], unique=False)
    op.create_index(
        "ix_token_evaluations_user_token_id", "token_evaluations", ["user_token_id"], unique=False
    )

    op.create_table(
        "player_trending_cache",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("season_year", sa.Integer(), nullable=False),
        sa.Column("trend_direction", TREND_DIRECTION, nullable=False),
        sa.Column("trend_strength", sa.Integer(), nullable=False),
        sa.Column("season_avg", sa.Float(), nullable=False),
        sa.Column("last_3_avg", sa.Float(), nullable=False),
        sa.Column("games_played", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("player_id", "season_year", name="uq_trending_player_season"),
    )
    op.create_index("ix_player_trending_cache_id", "player_trending_cache", ["id"], unique=False)
    op.create_index(
        "ix_player_trending_cache_player_id", "player_trending_cache", ["player_id"], unique=False
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("player_trending_cache")
    op.drop_table("token_evaluations")
    op.drop_table("transactions")
    op.drop_table("lineup_slots")
    op.drop_table("lineups")
    op.drop_table("player_game_stats")
    op.drop_table("games")
    op.drop_table("weeks")
    op.drop_table("user_tokens")
    op.drop_table("token_types")
    op.drop_table("user_cards")
    op.drop_table("user_packs")
    op.drop_table("packs")
    op.drop_table("cards")
    op.drop_table("players")
    op.drop_table("user_teams")

    bind = op.get_bind()
    for enum_type in (
        TREND_DIRECTION,
        GAME_STATUS,
        ROSTER_SLOT,
        LINEUP_STATUS,
        PACK_STATUS,
        CARD_STATUS,
        RARITY,
    ):
        enum_type.drop(bind, checkfirst=True)

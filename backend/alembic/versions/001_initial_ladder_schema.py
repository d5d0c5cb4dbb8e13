"""Initial migration: players, sessions, attendance, games, tournaments

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "player",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("emoji", sa.String(), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "playsession",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("played_on", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "attendance",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("present", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["session_id"], ["playsession.id"]),
        sa.ForeignKeyConstraint(["player_id"], ["player.id"]),
        sa.UniqueConstraint("session_id", "player_id", name="uq_attendance_session_player"),
    )
    op.create_index("ix_attendance_session_id", "attendance", ["session_id"])
    op.create_index("ix_attendance_player_id", "attendance", ["player_id"])

    op.create_table(
        "game",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("score_a", sa.Integer(), nullable=False),
        sa.Column("score_b", sa.Integer(), nullable=False),
        sa.Column("team_a_player_ids", sa.JSON(), nullable=False),
        sa.Column("team_b_player_ids", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["session_id"], ["playsession.id"]),
    )
    op.create_index("ix_game_session_id", "game", ["session_id"])

    op.create_table(
        "ratinghistory",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("game_id", sa.Integer(), nullable=False),
        sa.Column("rating_before", sa.Integer(), nullable=False),
        sa.Column("rating_after", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["player_id"], ["player.id"]),
        sa.ForeignKeyConstraint(["session_id"], ["playsession.id"]),
        sa.ForeignKeyConstraint(["game_id"], ["game.id"]),
    )
    op.create_index("ix_ratinghistory_player_id", "ratinghistory", ["player_id"])

    op.create_table(
        "tournament",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("team_mode", sa.String(), nullable=False),
        sa.Column("stage", sa.String(), nullable=False),
        sa.Column("special_mode", sa.String(), nullable=False),
        sa.Column("winner_team_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("ended_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["session_id"], ["playsession.id"]),
        sa.UniqueConstraint("session_id"),
    )
    op.create_index(
        "uq_tournament_single_active",
        "tournament",
        ["status"],
        unique=True,
        sqlite_where=sa.text("status = 'ACTIVE'"),
        postgresql_where=sa.text("status = 'ACTIVE'"),
    )

    op.create_table(
        "tournamentteam",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("seed", sa.Integer(), nullable=False),
        sa.Column("player_a_id", sa.Integer(), nullable=False),
        sa.Column("player_b_id", sa.Integer(), nullable=True),
        sa.Column("wins", sa.Integer(), nullable=False),
        sa.Column("losses", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournament.id"]),
        sa.ForeignKeyConstraint(["player_a_id"], ["player.id"]),
        sa.ForeignKeyConstraint(["player_b_id"], ["player.id"]),
        sa.UniqueConstraint("tournament_id", "seed", name="uq_tournament_team_seed"),
    )
    op.create_index("ix_tournamentteam_tournament_id", "tournamentteam", ["tournament_id"])

    op.create_table(
        "tournamentmatch",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("stage", sa.String(), nullable=False),
        sa.Column("round", sa.Integer(), nullable=False),
        sa.Column("slot", sa.Integer(), nullable=False),
        sa.Column("best_of", sa.Integer(), nullable=False),
        sa.Column("team_a_id", sa.Integer(), nullable=True),
        sa.Column("team_b_id", sa.Integer(), nullable=True),
        sa.Column("team_a_player_ids", sa.JSON(), nullable=False),
        sa.Column("team_b_player_ids", sa.JSON(), nullable=False),
        sa.Column("wins_a", sa.Integer(), nullable=False),
        sa.Column("wins_b", sa.Integer(), nullable=False),
        sa.Column("is_complete", sa.Boolean(), nullable=False),
        sa.Column("winner_team_id", sa.Integer(), nullable=True),
        sa.Column("loser_team_id", sa.Integer(), nullable=True),
        sa.Column("winner_side", sa.String(), nullable=True),
        sa.Column("meta_json", sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournament.id"]),
        sa.ForeignKeyConstraint(["team_a_id"], ["tournamentteam.id"]),
        sa.ForeignKeyConstraint(["team_b_id"], ["tournamentteam.id"]),
        sa.ForeignKeyConstraint(["winner_team_id"], ["tournamentteam.id"]),
        sa.ForeignKeyConstraint(["loser_team_id"], ["tournamentteam.id"]),
    )
    op.create_index("ix_tournamentmatch_tournament_id", "tournamentmatch", ["tournament_id"])
    op.create_index(
        "idx_tournamentmatch_stage_round",
        "tournamentmatch",
        ["tournament_id", "stage", "round", "slot"],
    )

    op.create_table(
        "tournamentmatchgame",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_match_id", sa.Integer(), nullable=False),
        sa.Column("game_id", sa.Integer(), nullable=False),
        sa.Column("game_number", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["tournament_match_id"], ["tournamentmatch.id"]),
        sa.ForeignKeyConstraint(["game_id"], ["game.id"]),
        sa.UniqueConstraint("tournament_match_id", "game_number", name="uq_match_game_number"),
    )
    op.create_index("ix_tournamentmatchgame_tournament_match_id", "tournamentmatchgame", ["tournament_match_id"])


def downgrade() -> None:
    op.drop_table("tournamentmatchgame")
    op.drop_table("tournamentmatch")
    op.drop_table("tournamentteam")
    op.drop_index("uq_tournament_single_active", table_name="tournament")
    op.drop_table("tournament")
    op.drop_table("ratinghistory")
    op.drop_table("game")
    op.drop_table("attendance")
    op.drop_table("playsession")
    op.drop_table("player")

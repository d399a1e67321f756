"""Initial migration: create player, entrant, tournament, registration, match tables

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
        sa.Column("ranking", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "entrant",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("kind", sa.String(), nullable=False),
        sa.Column("player_a_id", sa.Integer(), nullable=False),
        sa.Column("player_b_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["player_a_id"], ["player.id"]),
        sa.ForeignKeyConstraint(["player_b_id"], ["player.id"]),
    )

    op.create_table(
        "tournament",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("entrant_kind", sa.String(), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("bracket_mode", sa.String(), nullable=False),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("bracket_built_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "registration",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("entrant_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournament.id"]),
        sa.ForeignKeyConstraint(["entrant_id"], ["entrant.id"]),
        sa.UniqueConstraint("tournament_id", "entrant_id", name="uq_registration_entrant"),
        sa.UniqueConstraint("tournament_id", "position", name="uq_registration_position"),
    )
    op.create_index("ix_registration_tournament_id", "registration", ["tournament_id"])

    op.create_table(
        "match",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("match_number", sa.Integer(), nullable=False),
        sa.Column("slot1_entrant_id", sa.Integer(), nullable=True),
        sa.Column("slot2_entrant_id", sa.Integer(), nullable=True),
        sa.Column("placeholder_slot1", sa.String(), nullable=True),
        sa.Column("placeholder_slot2", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("winner_entrant_id", sa.Integer(), nullable=True),
        sa.Column("is_bye", sa.Boolean(), nullable=False),
        sa.Column("score_json", sa.JSON(), nullable=True),
        sa.Column("feeds_to_match_id", sa.Integer(), nullable=True),
        sa.Column("feeds_to_position", sa.Integer(), nullable=True),
        sa.Column("previous_match_1_id", sa.Integer(), nullable=True),
        sa.Column("previous_match_2_id", sa.Integer(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournament.id"]),
        sa.ForeignKeyConstraint(["slot1_entrant_id"], ["entrant.id"]),
        sa.ForeignKeyConstraint(["slot2_entrant_id"], ["entrant.id"]),
        sa.ForeignKeyConstraint(["winner_entrant_id"], ["entrant.id"]),
        sa.ForeignKeyConstraint(["feeds_to_match_id"], ["match.id"]),
        sa.ForeignKeyConstraint(["previous_match_1_id"], ["match.id"]),
        sa.ForeignKeyConstraint(["previous_match_2_id"], ["match.id"]),
        sa.UniqueConstraint("tournament_id", "round_number", "match_number", name="uq_match_position"),
    )
    op.create_index("ix_match_tournament_id", "match", ["tournament_id"])


def downgrade() -> None:
    op.drop_index("ix_match_tournament_id", table_name="match")
    op.drop_table("match")
    op.drop_index("ix_registration_tournament_id", table_name="registration")
    op.drop_table("registration")
    op.drop_table("tournament")
    op.drop_table("entrant")
    op.drop_table("player")

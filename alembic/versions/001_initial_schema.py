"""initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("username", sa.String(length=100), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("current_match_id", sa.String(length=16), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
    op.create_index(op.f("ix_users_id"), "users", ["id"], unique=False)
    op.create_index(op.f("ix_users_username"), "users", ["username"], unique=True)

    op.create_table(
        "matches",
        sa.Column("id", sa.String(length=16), nullable=False),
        sa.Column(
            "status",
            sa.Enum("waiting", "intro", "playing", "finished", name="matchstatus"),
            nullable=False,
        ),
        sa.Column("players", sa.JSON(), nullable=False),
        sa.Column("order_players", sa.JSON(), nullable=False),
        sa.Column("turn", sa.Integer(), nullable=False),
        sa.Column(
            "turn_state",
            sa.Enum("draw", "decide", "opponent_decide", name="turnstate"),
            nullable=False,
        ),
        sa.Column("memory_deck", sa.JSON(), nullable=False),
        sa.Column("cards_drawn", sa.Integer(), nullable=False),
        sa.Column("table_cards", sa.JSON(), nullable=False),
        sa.Column("current_card", sa.JSON(), nullable=True),
        sa.Column("selected_card_index", sa.Integer(), nullable=True),
        sa.Column("card_initiator", sa.String(length=64), nullable=True),
        sa.Column("current_multiplier", sa.Integer(), nullable=False),
        sa.Column("revealed_memories", sa.JSON(), nullable=False),
        sa.Column("winner", sa.String(length=64), nullable=True),
        sa.Column(
            "win_reason",
            sa.Enum(
                "reached_upper_threshold",
                "opponent_defeated",
                "deck_exhausted",
                "opponent_left",
                name="winreason",
            ),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_update", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "memory_pool",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("memory", sa.String(length=500), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("memory"),
    )
    op.create_index(op.f("ix_memory_pool_id"), "memory_pool", ["id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_memory_pool_id"), table_name="memory_pool")
    op.drop_table("memory_pool")
    op.drop_table("matches")
    op.drop_index(op.f("ix_users_username"), table_name="users")
    op.drop_index(op.f("ix_users_id"), table_name="users")
    op.drop_index(op.f("ix_users_email"), table_name="users")
    op.drop_table("users")
    sa.Enum(name="winreason").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="turnstate").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="matchstatus").drop(op.get_bind(), checkfirst=True)

"""collection tables (game systems, armies, models, paints, painting sessions, settings)

Revision ID: 0001_collection
Revises:
Create Date: 2025-10-20
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_collection"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "game_systems",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("color_scheme_json", sa.String(), nullable=True),
    )

    # no FK: cascades are applied by the store in the same session
    op.create_table(
        "armies",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("game_system_id", sa.String(), nullable=False),
    )
    op.create_index("ix_armies_game_system_id", "armies", ["game_system_id"], unique=False)

    op.create_table(
        "models",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("game_system_id", sa.String(), nullable=False),
        sa.Column("army_ids_json", sa.String(), nullable=False, server_default="[]"),
        sa.Column("description", sa.String(), nullable=False, server_default=""),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("image_url", sa.String(), nullable=True),
        sa.Column("painting_notes", sa.String(), nullable=True),
        sa.Column("paint_recipe_json", sa.String(), nullable=False, server_default="[]"),
        sa.Column("created_at", sa.String(), nullable=False),
        sa.Column("last_updated", sa.String(), nullable=False),
    )
    op.create_index("ix_models_game_system_id", "models", ["game_system_id"], unique=False)

    op.create_table(
        "paints",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("manufacturer", sa.String(), nullable=False),
        sa.Column("paint_type", sa.String(), nullable=False),
        sa.Column("color_scheme", sa.String(), nullable=False, server_default=""),
        sa.Column("rgb_code", sa.String(), nullable=True),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "painting_sessions",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("start", sa.String(), nullable=False),
        sa.Column("end", sa.String(), nullable=False),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("model_ids_json", sa.String(), nullable=False, server_default="[]"),
        sa.Column("game_system_id", sa.String(), nullable=True),
    )

    op.create_table(
        "settings",
        sa.Column("key", sa.String(), primary_key=True),
        sa.Column("value_json", sa.String(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("settings")
    op.drop_table("painting_sessions")
    op.drop_table("paints")
    op.drop_index("ix_models_game_system_id", table_name="models")
    op.drop_table("models")
    op.drop_index("ix_armies_game_system_id", table_name="armies")
    op.drop_table("armies")
    op.drop_table("game_systems")

"""Initial schema baseline

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates the local flashcards store: decks, cards, card reviews, study logs
and the trash. Databases created with init_db() already match this schema:
    alembic stamp 001
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "decks",
        sa.Column("id", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True, default=""),
        sa.Column("cards_count", sa.Integer(), nullable=True, default=0),
        sa.Column("new_cards_per_day", sa.Integer(), nullable=False),
        sa.Column("reviews_per_day", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_decks_created_at", "decks", ["created_at"])
    op.create_index("ix_decks_updated_at", "decks", ["updated_at"])

    op.create_table(
        "cards",
        sa.Column("id", sa.Text(), nullable=False),
        sa.Column("deck_id", sa.Text(), nullable=False),
        sa.Column("front", sa.Text(), nullable=False),
        sa.Column("back", sa.Text(), nullable=False),
        sa.Column("tags", sa.Text(), nullable=True),
        sa.Column("source", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("media", sa.Text(), nullable=True),
        sa.Column("deleted", sa.Text(), nullable=True),
        sa.Column("deleted_at", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_cards_deck_id", "cards", ["deck_id"])
    op.create_index("ix_cards_deleted", "cards", ["deleted"])
    op.create_index("ix_cards_deleted_at", "cards", ["deleted_at"])
    op.create_index("ix_cards_created_at", "cards", ["created_at"])
    op.create_index("ix_cards_updated_at", "cards", ["updated_at"])

    op.create_table(
        "card_reviews",
        sa.Column("id", sa.Text(), nullable=False),
        sa.Column("card_id", sa.Text(), nullable=False),
        sa.Column("ease", sa.Float(), nullable=False),
        sa.Column("interval", sa.Float(), nullable=False),
        sa.Column("repetitions", sa.Integer(), nullable=False),
        sa.Column("next_review", sa.BigInteger(), nullable=False),
        sa.Column("last_review", sa.BigInteger(), nullable=True),
        sa.Column("state", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_card_reviews_card_id", "card_reviews", ["card_id"], unique=True)
    op.create_index("ix_card_reviews_next_review", "card_reviews", ["next_review"])
    op.create_index("ix_card_reviews_state", "card_reviews", ["state"])

    op.create_table(
        "study_logs",
        sa.Column("id", sa.Text(), nullable=False),
        sa.Column("card_id", sa.Text(), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("time_spent", sa.Integer(), nullable=False),
        sa.Column("timestamp", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_study_logs_card_id", "study_logs", ["card_id"])
    op.create_index("ix_study_logs_timestamp", "study_logs", ["timestamp"])

    op.create_table(
        "trash_items",
        sa.Column("id", sa.Text(), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("deck_name", sa.Text(), nullable=True),
        sa.Column("deleted_at", sa.BigInteger(), nullable=False),
        sa.Column("data", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_trash_items_type", "trash_items", ["type"])
    op.create_index("ix_trash_items_deleted_at", "trash_items", ["deleted_at"])


def downgrade() -> None:
    op.drop_table("trash_items")
    op.drop_table("study_logs")
    op.drop_table("card_reviews")
    op.drop_table("cards")
    op.drop_table("decks")

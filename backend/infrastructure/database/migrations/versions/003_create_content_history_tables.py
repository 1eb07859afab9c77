"""Create tweet, thread and reply history tables

Revision ID: 003
Revises: 002
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "003"
down_revision: str | None = "002"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _history_table(name: str, *extra: sa.Column) -> None:
    op.create_table(
        name,
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("tone", sa.String(length=50), nullable=True),
        *extra,
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(f"ix_{name}_user_created", name, ["user_id", "created_at"])


def upgrade() -> None:
    _history_table("tweet_history")
    _history_table("thread_history", sa.Column("parts", sa.JSON(), nullable=True))
    _history_table("reply_history", sa.Column("original_post", sa.Text(), nullable=True))


def downgrade() -> None:
    for name in ("reply_history", "thread_history", "tweet_history"):
        op.drop_index(f"ix_{name}_user_created", table_name=name)
        op.drop_table(name)

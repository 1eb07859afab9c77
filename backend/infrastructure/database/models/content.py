"""
Generated content history models.

Rows are written by the generation service after content is produced and
purged per user by an admin usage reset.
"""

from typing import Optional
from uuid import uuid4

from sqlalchemy import ForeignKey, Index, String, Text, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class TweetHistory(Base, TimestampMixin):
    """A single generated tweet."""

    __tablename__ = "tweet_history"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    tone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    __table_args__ = (Index("ix_tweet_history_user_created", "user_id", "created_at"),)


class ThreadHistory(Base, TimestampMixin):
    """A generated thread; parts are stored in order."""

    __tablename__ = "thread_history"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    parts: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    tone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    __table_args__ = (Index("ix_thread_history_user_created", "user_id", "created_at"),)


class ReplyHistory(Base, TimestampMixin):
    """A generated reply to an existing post."""

    __tablename__ = "reply_history"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    original_post: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    tone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    __table_args__ = (Index("ix_reply_history_user_created", "user_id", "created_at"),)

"""
Admin database models.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, Index, String, JSON, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class AdminActionKind(str, Enum):
    """Operator override types."""

    CREDIT_ADJUSTMENT = "credit_adjustment"
    PLAN_CHANGE = "plan_change"
    USAGE_RESET = "usage_reset"


class AdminAction(Base):
    """Append-only audit trail of operator overrides."""

    __tablename__ = "admin_actions"

    # Primary key
    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    # Admin who performed the action
    admin_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    action: Mapped[str] = mapped_column(String(50), nullable=False)

    target_user_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Additional context
    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    """
    Structure depends on the action:
    {
        "amount": -10,
        "new_usage": 15,
        "reason": "Refund for failed generation"
    }
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    # Indexes
    __table_args__ = (
        Index("ix_admin_actions_target_user", "target_user_id"),
        Index("ix_admin_actions_created", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<AdminAction(action={self.action}, target={self.target_user_id})>"

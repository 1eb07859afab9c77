"""
Subscription, payment history and webhook bookkeeping models.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class PlanType(str, Enum):
    """Subscription plan enumeration."""

    FREE = "free"
    PRO = "pro"


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status."""

    PENDING = "pending"  # Checkout created, provider has not confirmed
    ACTIVE = "active"
    PAST_DUE = "past_due"  # Renewal payment failed or subscription on hold
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Terminal payment outcome."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Subscription(Base, TimestampMixin):
    """
    One subscription row per user.

    No row means the user is on the free plan. Rows are never deleted;
    downgrades move the status to cancelled.
    """

    __tablename__ = "subscriptions"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    plan_type: Mapped[str] = mapped_column(
        String(20),
        default=PlanType.FREE.value,
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=SubscriptionStatus.PENDING.value,
        nullable=False,
    )

    # Provider identifiers, unknown until checkout is created
    external_subscription_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, unique=True
    )
    external_customer_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )

    current_period_start: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    current_period_end: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_subscriptions_status", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Subscription(user_id={self.user_id}, plan={self.plan_type}, "
            f"status={self.status})>"
        )


class PaymentRecord(Base):
    """Append-only payment outcome log, one row per provider payment id."""

    __tablename__ = "payment_history"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    external_payment_id: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True
    )
    external_subscription_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )
    # Smallest currency unit, as reported by the provider
    amount: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<PaymentRecord(id={self.external_payment_id}, status={self.status})>"


class ProcessedWebhookEvent(Base):
    """Delivery ids of webhooks whose effects have been committed."""

    __tablename__ = "processed_webhook_events"

    event_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    processed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

"""
SQLAlchemy database models.
"""

from .admin import AdminAction, AdminActionKind
from .base import Base, TimestampMixin
from .content import ReplyHistory, ThreadHistory, TweetHistory
from .subscription import (
    PaymentRecord,
    PaymentStatus,
    PlanType,
    ProcessedWebhookEvent,
    Subscription,
    SubscriptionStatus,
)
from .usage import UsageRecord
from .user import User, UserRole, UserStatus

__all__ = [
    "Base",
    "TimestampMixin",
    "User",
    "UserRole",
    "UserStatus",
    "UsageRecord",
    "Subscription",
    "SubscriptionStatus",
    "PlanType",
    "PaymentRecord",
    "PaymentStatus",
    "ProcessedWebhookEvent",
    "AdminAction",
    "AdminActionKind",
    "TweetHistory",
    "ThreadHistory",
    "ReplyHistory",
]

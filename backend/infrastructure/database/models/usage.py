"""
Monthly credit usage model.
"""

from uuid import uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class UsageRecord(Base, TimestampMixin):
    """
    Credits consumed by one user in one calendar month.

    A missing row means zero usage for that month. Rows are created by the
    first increment of the month and only ever modified through single
    statement upserts/updates so concurrent writers never lose an update.
    """

    __tablename__ = "usage_records"

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
    # YYYY-MM
    month_key: Mapped[str] = mapped_column(String(7), nullable=False)
    credits_consumed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "month_key", name="uq_usage_records_user_month"),
        CheckConstraint("credits_consumed >= 0", name="ck_usage_records_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<UsageRecord(user_id={self.user_id}, month={self.month_key}, "
            f"credits={self.credits_consumed})>"
        )

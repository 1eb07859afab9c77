"""
Usage ledger: per-user, per-calendar-month credit counters.

Every write is a single SQL statement so concurrent requests for the same
user and month serialize in the database instead of racing in Python.
A missing row is a valid zero balance.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import InvalidAmountError, StorageError, UsageRecordingError
from infrastructure.database.models.content import ReplyHistory, ThreadHistory, TweetHistory
from infrastructure.database.models.usage import UsageRecord
from infrastructure.database.upsert import dialect_insert

logger = logging.getLogger(__name__)

# Upper bound for a single ledger write
MAX_CREDIT_AMOUNT = 10_000


def get_month_key(moment: Optional[datetime] = None) -> str:
    """Billing month key (``YYYY-MM``, UTC) for the given instant or now."""
    moment = moment or datetime.now(UTC)
    return moment.strftime("%Y-%m")


@dataclass
class ResetResult:
    """Rows removed by a usage reset."""

    month_key: str
    usage_records_deleted: int
    history_rows_deleted: int


def _validate_amount(amount: int) -> None:
    # bool is an int subclass; reject it explicitly
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 1:
        raise InvalidAmountError(f"Amount must be a positive integer, got {amount!r}")
    if amount > MAX_CREDIT_AMOUNT:
        raise InvalidAmountError(f"Amount must not exceed {MAX_CREDIT_AMOUNT} credits")


class UsageLedger:
    """Reads and atomically mutates monthly usage records."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_usage(self, user_id: str, month_key: Optional[str] = None) -> int:
        """
        Credits consumed by a user in a billing month.

        Args:
            user_id: Owning user
            month_key: ``YYYY-MM``; defaults to the current month

        Returns:
            Credits consumed, 0 when no record exists
        """
        month_key = month_key or get_month_key()
        result = await self.db.execute(
            select(UsageRecord.credits_consumed).where(
                UsageRecord.user_id == user_id,
                UsageRecord.month_key == month_key,
            )
        )
        consumed = result.scalar_one_or_none()
        return consumed or 0

    async def increment_usage(self, user_id: str, amount: int) -> int:
        """
        Atomically add credits to the current month's record.

        Creates the record on the first consumption of the month. Concurrent
        callers never lose each other's increments because the add happens
        inside a single INSERT ... ON CONFLICT DO UPDATE.

        Args:
            user_id: Owning user
            amount: Positive number of credits

        Returns:
            New credits_consumed value for the month

        Raises:
            InvalidAmountError: If amount is not a positive integer
            UsageRecordingError: If the write fails
        """
        _validate_amount(amount)
        month_key = get_month_key()

        stmt = dialect_insert(self.db, UsageRecord).values(
            user_id=user_id,
            month_key=month_key,
            credits_consumed=amount,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[UsageRecord.user_id, UsageRecord.month_key],
            set_={
                "credits_consumed": UsageRecord.credits_consumed + stmt.excluded.credits_consumed,
                "updated_at": func.now(),
            },
        ).returning(UsageRecord.credits_consumed)

        try:
            result = await self.db.execute(stmt)
            new_total = result.scalar_one()
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(
                "Failed to record usage of %s credits for user %s: %s",
                amount,
                user_id,
                e,
                extra={"user_id": user_id},
            )
            raise UsageRecordingError("Failed to record usage") from e

        logger.info(
            "Recorded %s credits for user %s (%s total in %s)",
            amount,
            user_id,
            new_total,
            month_key,
            extra={"user_id": user_id},
        )
        return new_total

    async def decrement_usage(self, user_id: str, amount: int) -> int:
        """
        Atomically subtract credits from the current month's record.

        The result is bounded at zero. With no record for the month there is
        nothing to subtract and 0 is returned.

        Raises:
            InvalidAmountError: If amount is not a positive integer
            StorageError: If the write fails
        """
        _validate_amount(amount)
        month_key = get_month_key()

        stmt = (
            update(UsageRecord)
            .where(
                UsageRecord.user_id == user_id,
                UsageRecord.month_key == month_key,
            )
            .values(
                credits_consumed=case(
                    (UsageRecord.credits_consumed > amount, UsageRecord.credits_consumed - amount),
                    else_=0,
                ),
                updated_at=func.now(),
            )
            .returning(UsageRecord.credits_consumed)
            .execution_options(synchronize_session=False)
        )

        try:
            result = await self.db.execute(stmt)
            new_total = result.scalar_one_or_none()
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to decrement usage for user %s: %s", user_id, e)
            raise StorageError("Failed to adjust usage") from e

        return new_total or 0

    async def reset_usage(self, user_id: str) -> ResetResult:
        """
        Delete the current month's record and purge the user's content history.

        Irreversible. Both deletions commit together or not at all.

        Raises:
            StorageError: If the deletes fail
        """
        month_key = get_month_key()

        try:
            usage_result = await self.db.execute(
                delete(UsageRecord)
                .where(
                    UsageRecord.user_id == user_id,
                    UsageRecord.month_key == month_key,
                )
                .execution_options(synchronize_session=False)
            )
            history_deleted = 0
            for model in (TweetHistory, ThreadHistory, ReplyHistory):
                history_result = await self.db.execute(
                    delete(model)
                    .where(model.user_id == user_id)
                    .execution_options(synchronize_session=False)
                )
                history_deleted += history_result.rowcount or 0
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to reset usage for user %s: %s", user_id, e)
            raise StorageError("Failed to reset usage") from e

        logger.info(
            "Reset usage for user %s in %s (%s history rows purged)",
            user_id,
            month_key,
            history_deleted,
        )
        return ResetResult(
            month_key=month_key,
            usage_records_deleted=usage_result.rowcount or 0,
            history_rows_deleted=history_deleted,
        )

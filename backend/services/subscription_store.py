"""
Subscription store.

Durable subscription state per user plus the append-only payment log.
Methods here never commit: callers own the transaction so a webhook can
apply its effects and its dedupe marker atomically.

A user without a subscription row is on the free plan. That default is
resolved here (``get_plan_state``) and nowhere else.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Optional

from sqlalchemy import and_, func, not_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import InvalidPlanError, SubscriptionConflictError
from core.plans import DEFAULT_PLAN, is_valid_plan
from infrastructure.config.settings import settings
from infrastructure.database.models.subscription import (
    PaymentRecord,
    PlanType,
    Subscription,
    SubscriptionStatus,
)
from infrastructure.database.upsert import dialect_insert

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanState:
    """Plan and status as seen by the entitlement evaluator."""

    plan_type: str
    status: str


# Implicit state of a user with no subscription row
DEFAULT_PLAN_STATE = PlanState(plan_type=DEFAULT_PLAN, status=SubscriptionStatus.ACTIVE.value)


def billing_period(start: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """Default billing period starting now."""
    start = start or datetime.now(UTC)
    return start, start + timedelta(days=settings.subscription_period_days)


class SubscriptionStore:
    """Reads and writes subscription rows and payment history."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_for_user(self, user_id: str) -> Optional[Subscription]:
        result = await self.db.execute(
            select(Subscription).where(Subscription.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_plan_state(self, user_id: str) -> PlanState:
        """Plan and status for a user, defaulting to free/active without a row."""
        result = await self.db.execute(
            select(Subscription.plan_type, Subscription.status).where(
                Subscription.user_id == user_id
            )
        )
        row = result.one_or_none()
        if row is None:
            return DEFAULT_PLAN_STATE
        return PlanState(plan_type=row.plan_type, status=row.status)

    async def has_active_pro(self, user_id: str) -> bool:
        result = await self.db.execute(
            select(Subscription.id).where(
                Subscription.user_id == user_id,
                Subscription.plan_type == PlanType.PRO.value,
                Subscription.status == SubscriptionStatus.ACTIVE.value,
            )
        )
        return result.scalar_one_or_none() is not None

    async def create_pending(
        self,
        user_id: str,
        external_subscription_id: str,
        external_customer_id: Optional[str] = None,
        plan_type: str = PlanType.PRO.value,
    ) -> str:
        """
        Record a new checkout as a pending subscription for the user.

        Starts a fresh cycle on top of any previous row (pending, past_due or
        cancelled). The conflict guard refuses to overwrite an active pro row
        in the same statement, so two racing checkouts cannot both replace a
        paid subscription.

        Returns:
            Subscription row id

        Raises:
            SubscriptionConflictError: If the user already has an active pro subscription
        """
        previous = await self.db.execute(
            select(Subscription.status, Subscription.external_subscription_id).where(
                Subscription.user_id == user_id,
                Subscription.status == SubscriptionStatus.PAST_DUE.value,
            )
        )
        past_due = previous.one_or_none()
        if past_due is not None and past_due.external_subscription_id:
            # Events for the replaced provider subscription will no longer match
            logger.warning(
                "Replacing past_due subscription %s for user %s with %s",
                past_due.external_subscription_id,
                user_id,
                external_subscription_id,
                extra={"user_id": user_id, "subscription_id": past_due.external_subscription_id},
            )

        stmt = dialect_insert(self.db, Subscription).values(
            user_id=user_id,
            plan_type=plan_type,
            status=SubscriptionStatus.PENDING.value,
            external_subscription_id=external_subscription_id,
            external_customer_id=external_customer_id,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[Subscription.user_id],
            set_={
                "plan_type": stmt.excluded.plan_type,
                "status": stmt.excluded.status,
                "external_subscription_id": stmt.excluded.external_subscription_id,
                "external_customer_id": stmt.excluded.external_customer_id,
                "current_period_start": None,
                "current_period_end": None,
                "updated_at": func.now(),
            },
            where=not_(
                and_(
                    Subscription.plan_type == PlanType.PRO.value,
                    Subscription.status == SubscriptionStatus.ACTIVE.value,
                )
            ),
        ).returning(Subscription.id)

        result = await self.db.execute(stmt)
        row_id = result.scalar_one_or_none()
        if row_id is None:
            raise SubscriptionConflictError("User already has an active Pro subscription")

        logger.info(
            "Pending subscription %s recorded for user %s",
            external_subscription_id,
            user_id,
            extra={"user_id": user_id, "subscription_id": external_subscription_id},
        )
        return row_id

    async def apply_status(
        self,
        external_subscription_id: str,
        status: SubscriptionStatus,
        period_start: Optional[datetime] = None,
        period_end: Optional[datetime] = None,
    ) -> Optional[str]:
        """
        Move the subscription with this provider id to ``status``.

        Unconditional on the previous status, so replays and out-of-order
        deliveries converge on the same row state.

        Returns:
            Owning user id, or None when no row has this provider id
        """
        values = {"status": status.value, "updated_at": func.now()}
        if period_start is not None:
            values["current_period_start"] = period_start
        if period_end is not None:
            values["current_period_end"] = period_end

        result = await self.db.execute(
            update(Subscription)
            .where(Subscription.external_subscription_id == external_subscription_id)
            .values(**values)
            .returning(Subscription.user_id)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none()

    async def get_user_id_for_subscription(self, external_subscription_id: str) -> Optional[str]:
        result = await self.db.execute(
            select(Subscription.user_id).where(
                Subscription.external_subscription_id == external_subscription_id
            )
        )
        return result.scalar_one_or_none()

    async def set_plan(self, user_id: str, plan_type: str) -> Optional[str]:
        """
        Force a user's plan outside the webhook path.

        ``pro`` upserts an active pro row with a fresh billing period.
        ``free`` cancels any non-cancelled row; without a row the user is
        already free.

        Returns:
            Resulting status, or None when there was nothing to change

        Raises:
            InvalidPlanError: For a plan outside the catalog
        """
        if not is_valid_plan(plan_type):
            raise InvalidPlanError(plan_type)

        if plan_type == PlanType.PRO.value:
            period_start, period_end = billing_period()
            stmt = dialect_insert(self.db, Subscription).values(
                user_id=user_id,
                plan_type=PlanType.PRO.value,
                status=SubscriptionStatus.ACTIVE.value,
                current_period_start=period_start,
                current_period_end=period_end,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[Subscription.user_id],
                set_={
                    "plan_type": stmt.excluded.plan_type,
                    "status": stmt.excluded.status,
                    "current_period_start": stmt.excluded.current_period_start,
                    "current_period_end": stmt.excluded.current_period_end,
                    "updated_at": func.now(),
                },
            )
            await self.db.execute(stmt)
            return SubscriptionStatus.ACTIVE.value

        result = await self.db.execute(
            update(Subscription)
            .where(
                Subscription.user_id == user_id,
                Subscription.status != SubscriptionStatus.CANCELLED.value,
            )
            .values(status=SubscriptionStatus.CANCELLED.value, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            return None
        return SubscriptionStatus.CANCELLED.value

    async def record_payment(
        self,
        user_id: str,
        external_payment_id: str,
        status: str,
        amount: int = 0,
        currency: str = "USD",
        external_subscription_id: Optional[str] = None,
    ) -> bool:
        """
        Append a payment outcome.

        Returns:
            False when this payment id was already recorded
        """
        stmt = (
            dialect_insert(self.db, PaymentRecord)
            .values(
                user_id=user_id,
                external_payment_id=external_payment_id,
                external_subscription_id=external_subscription_id,
                amount=amount,
                currency=currency,
                status=status,
            )
            .on_conflict_do_nothing(index_elements=[PaymentRecord.external_payment_id])
        )
        result = await self.db.execute(stmt)
        return bool(result.rowcount)

    async def list_payments(self, user_id: str, limit: int = 5) -> list[PaymentRecord]:
        """Most recent payments for a user, newest first."""
        result = await self.db.execute(
            select(PaymentRecord)
            .where(PaymentRecord.user_id == user_id)
            .order_by(PaymentRecord.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

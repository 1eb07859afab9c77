"""
Entitlement evaluator.

Combines the subscription store and the usage ledger into the
``can_generate`` decision. Always re-reads both stores; nothing is cached
between calls.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.domain.entitlement import Entitlement
from core.plans import DEFAULT_PLAN, get_plan_limit
from infrastructure.config.settings import settings
from infrastructure.database.models.subscription import SubscriptionStatus
from services.subscription_store import PlanState, SubscriptionStore
from services.usage_ledger import UsageLedger

logger = logging.getLogger(__name__)


def resolve_plan_type(state: PlanState, degrade_on_past_due: bool | None = None) -> str:
    """
    Plan whose limits apply for a subscription state.

    Only ``active`` rows (and ``past_due`` rows unless degrading) carry
    their plan. Pending and cancelled rows fall back to free.
    """
    if degrade_on_past_due is None:
        degrade_on_past_due = settings.degrade_limit_on_past_due

    if state.status == SubscriptionStatus.ACTIVE.value:
        return state.plan_type
    if state.status == SubscriptionStatus.PAST_DUE.value and not degrade_on_past_due:
        return state.plan_type
    return DEFAULT_PLAN


def default_entitlement() -> Entitlement:
    """Free-tier view shown to callers without a session."""
    return Entitlement(
        can_generate=True,
        current_usage=0,
        limit=get_plan_limit(DEFAULT_PLAN),
        plan_type=DEFAULT_PLAN,
    )


class EntitlementService:
    """Computes entitlements for a user."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.subscriptions = SubscriptionStore(db)
        self.ledger = UsageLedger(db)

    async def evaluate(self, user_id: str) -> Entitlement:
        """
        Compute the entitlement for a user. Read only.

        Raises:
            SQLAlchemyError: If either store cannot be read
        """
        state = await self.subscriptions.get_plan_state(user_id)
        plan_type = resolve_plan_type(state)
        limit = get_plan_limit(plan_type)
        current_usage = await self.ledger.get_usage(user_id)

        return Entitlement(
            can_generate=current_usage < limit,
            current_usage=current_usage,
            limit=limit,
            plan_type=plan_type,
        )

    async def check(self, user_id: str) -> Entitlement:
        """
        Evaluate, denying generation if storage cannot be read.

        Used as the pre-flight check before generation.
        """
        try:
            return await self.evaluate(user_id)
        except SQLAlchemyError as e:
            logger.error(
                "Entitlement check failed for user %s, denying: %s",
                user_id,
                e,
                extra={"user_id": user_id},
            )
            return Entitlement(
                can_generate=False,
                current_usage=0,
                limit=0,
                plan_type=DEFAULT_PLAN,
                degraded=True,
            )

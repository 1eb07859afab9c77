"""
Admin override gateway.

Operator-issued credit adjustments, plan changes and usage resets. Each
operation commits its primary effect first and then writes an audit row.
Audit writes are best effort: a failure there is logged and swallowed,
while a failure of the primary effect propagates to the caller.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import InvalidAmountError, InvalidPlanError, StorageError
from core.plans import is_valid_plan
from infrastructure.database.models.admin import AdminAction, AdminActionKind
from infrastructure.database.models.user import User
from services.subscription_store import SubscriptionStore
from services.usage_ledger import MAX_CREDIT_AMOUNT, UsageLedger

logger = logging.getLogger(__name__)


@dataclass
class OverrideResult:
    """Outcome of an admin override."""

    action: AdminActionKind
    user_id: str
    message: str
    details: dict[str, Any]
    audit_logged: bool


class AdminOverrideService:
    """
    Applies admin overrides on behalf of an authenticated operator.

    Writes go through the same ledger and store primitives used by normal
    consumption and webhook processing.
    """

    def __init__(self, db: AsyncSession, admin: User):
        """
        Args:
            db: Async database session
            admin: Operator performing the actions, recorded in the audit log
        """
        self.db = db
        self.admin_id = admin.id
        self.ledger = UsageLedger(db)
        self.subscriptions = SubscriptionStore(db)

    async def adjust_credits(
        self, user_id: str, amount: int, reason: Optional[str] = None
    ) -> OverrideResult:
        """
        Add or remove credits from the user's current-month usage.

        Positive amounts use the same atomic increment as consumption
        reporting; negative amounts atomically decrement, bounded at zero.

        Raises:
            InvalidAmountError: If amount is zero, out of range or not an integer
            UsageRecordingError / StorageError: If the ledger write fails
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount == 0:
            raise InvalidAmountError("Adjustment amount must be a non-zero integer")
        if abs(amount) > MAX_CREDIT_AMOUNT:
            raise InvalidAmountError(
                f"Adjustment amount must be between -{MAX_CREDIT_AMOUNT} and {MAX_CREDIT_AMOUNT}"
            )

        if amount > 0:
            new_usage = await self.ledger.increment_usage(user_id, amount)
            verb = "added"
        else:
            new_usage = await self.ledger.decrement_usage(user_id, -amount)
            verb = "subtracted"

        details = {"amount": amount, "new_usage": new_usage, "reason": reason}
        audit_logged = await self._audit(AdminActionKind.CREDIT_ADJUSTMENT, user_id, details)

        return OverrideResult(
            action=AdminActionKind.CREDIT_ADJUSTMENT,
            user_id=user_id,
            message=f"Successfully {verb} {abs(amount)} credits",
            details=details,
            audit_logged=audit_logged,
        )

    async def change_plan(
        self, user_id: str, new_plan: Optional[str], reason: Optional[str] = None
    ) -> OverrideResult:
        """
        Force the user's plan.

        ``pro`` leaves an active pro subscription; ``free`` cancels any
        live subscription. Usage is left untouched.

        Raises:
            InvalidPlanError: For a plan outside the catalog
            StorageError: If the subscription write fails
        """
        if not new_plan or not is_valid_plan(new_plan):
            raise InvalidPlanError(str(new_plan))

        try:
            status = await self.subscriptions.set_plan(user_id, new_plan)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to change plan for user %s: %s", user_id, e)
            raise StorageError("Failed to change plan") from e

        details = {"new_plan": new_plan, "status": status, "reason": reason}
        audit_logged = await self._audit(AdminActionKind.PLAN_CHANGE, user_id, details)

        verb = "upgraded" if new_plan == "pro" else "downgraded"
        return OverrideResult(
            action=AdminActionKind.PLAN_CHANGE,
            user_id=user_id,
            message=f"Successfully {verb} user to {new_plan} plan",
            details=details,
            audit_logged=audit_logged,
        )

    async def reset_usage(self, user_id: str, reason: Optional[str] = None) -> OverrideResult:
        """
        Zero the current month's usage and purge content history.

        Raises:
            StorageError: If the reset fails
        """
        result = await self.ledger.reset_usage(user_id)

        details = {
            "month": result.month_key,
            "history_rows_deleted": result.history_rows_deleted,
            "reason": reason,
        }
        audit_logged = await self._audit(AdminActionKind.USAGE_RESET, user_id, details)

        return OverrideResult(
            action=AdminActionKind.USAGE_RESET,
            user_id=user_id,
            message="Successfully reset user usage and history",
            details=details,
            audit_logged=audit_logged,
        )

    async def _audit(self, action: AdminActionKind, target_user_id: str, details: dict) -> bool:
        try:
            self.db.add(
                AdminAction(
                    admin_id=self.admin_id,
                    action=action.value,
                    target_user_id=target_user_id,
                    details=details,
                )
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.warning(
                "Admin action %s on user %s applied but not audited: %s",
                action.value,
                target_user_id,
                e,
                extra={"admin_id": self.admin_id, "user_id": target_user_id},
            )
            return False

        logger.info(
            "Admin %s performed %s on user %s",
            self.admin_id,
            action.value,
            target_user_id,
            extra={"admin_id": self.admin_id, "user_id": target_user_id},
        )
        return True


async def list_admin_actions(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    target_user_id: Optional[str] = None,
) -> tuple[list[AdminAction], int]:
    """Page through the audit log, newest first."""
    query = select(AdminAction)
    count_query = select(func.count()).select_from(AdminAction)
    if target_user_id:
        query = query.where(AdminAction.target_user_id == target_user_id)
        count_query = count_query.where(AdminAction.target_user_id == target_user_id)

    total = (await db.execute(count_query)).scalar() or 0
    result = await db.execute(
        query.order_by(AdminAction.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return list(result.scalars().all()), total

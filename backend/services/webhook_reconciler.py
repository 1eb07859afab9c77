"""
Webhook reconciler.

Applies payment provider lifecycle events to the subscription store and
payment history. Handlers only assert the end state for a provider id
("this subscription is now active"), never the state it came from, so
retries and out-of-order deliveries are safe. Each delivery is also
recorded in ``processed_webhook_events`` inside the same transaction as
its effects, so an exact redelivery is skipped entirely.
"""

import hashlib
import logging
from datetime import UTC
from enum import Enum
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.schemas.webhooks import (
    PaymentEvent,
    PaymentFailedEvent,
    PaymentSucceededEvent,
    SubscriptionActiveEvent,
    SubscriptionCancelledEvent,
    SubscriptionEvent,
    SubscriptionFailedEvent,
    SubscriptionRenewedEvent,
    UnknownWebhookEvent,
    WebhookEvent,
)
from core.exceptions import StorageError
from infrastructure.database.models.subscription import (
    PaymentStatus,
    ProcessedWebhookEvent,
    SubscriptionStatus,
)
from infrastructure.database.upsert import dialect_insert
from services.subscription_store import SubscriptionStore, billing_period

logger = logging.getLogger(__name__)


class WebhookOutcome(str, Enum):
    """What happened to a delivery."""

    APPLIED = "applied"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"  # Unknown event type
    UNMATCHED = "unmatched"  # No subscription with this provider id


def delivery_id(body: bytes, header_id: Optional[str] = None) -> str:
    """Dedupe key for a delivery: the provider's webhook id, else a body hash."""
    if header_id:
        return header_id
    return "sha256:" + hashlib.sha256(body).hexdigest()


class WebhookReconciler:
    """Applies one webhook delivery per call."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.store = SubscriptionStore(db)

    async def process(self, event: WebhookEvent, event_id: str) -> WebhookOutcome:
        """
        Apply an event and commit.

        Args:
            event: Parsed webhook payload
            event_id: Delivery dedupe key (see ``delivery_id``)

        Returns:
            WebhookOutcome describing what was done

        Raises:
            StorageError: If the database write fails; nothing is committed
        """
        if isinstance(event, UnknownWebhookEvent):
            logger.info("Ignoring unhandled webhook event: %s", event.type, extra={"event_type": event.type})
            return WebhookOutcome.IGNORED

        try:
            if not await self._claim(event_id, event.type):
                await self.db.rollback()
                logger.info(
                    "Duplicate webhook delivery %s (%s) skipped",
                    event_id,
                    event.type,
                    extra={"event_type": event.type},
                )
                return WebhookOutcome.DUPLICATE

            if isinstance(event, (PaymentSucceededEvent, PaymentFailedEvent)):
                matched = await self._apply_payment(event)
            else:
                matched = await self._apply_subscription(event)

            if not matched:
                # Unmatched deliveries leave no dedupe marker behind
                await self.db.rollback()
                subscription_id = event.data.subscription_id
                logger.warning(
                    "No subscription found for %s event (subscription %s); event dropped",
                    event.type,
                    subscription_id,
                    extra={"event_type": event.type, "subscription_id": subscription_id},
                )
                return WebhookOutcome.UNMATCHED

            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to apply webhook %s: %s", event.type, e, exc_info=True)
            raise StorageError("Failed to apply webhook event") from e

        return WebhookOutcome.APPLIED

    async def _claim(self, event_id: str, event_type: str) -> bool:
        stmt = (
            dialect_insert(self.db, ProcessedWebhookEvent)
            .values(event_id=event_id, event_type=event_type)
            .on_conflict_do_nothing(index_elements=[ProcessedWebhookEvent.event_id])
        )
        result = await self.db.execute(stmt)
        return bool(result.rowcount)

    async def _apply_subscription(self, event: SubscriptionEvent) -> bool:
        data = event.data
        period_start = period_end = None

        if isinstance(event, SubscriptionActiveEvent):
            new_status = SubscriptionStatus.ACTIVE
            period_start, period_end = billing_period()
        elif isinstance(event, SubscriptionRenewedEvent):
            new_status = SubscriptionStatus.ACTIVE
            period_start, period_end = billing_period()
            if data.next_billing_date is not None:
                period_end = data.next_billing_date
                if period_end.tzinfo is None:
                    period_end = period_end.replace(tzinfo=UTC)
        elif isinstance(event, SubscriptionFailedEvent):
            new_status = SubscriptionStatus.PAST_DUE
        elif isinstance(event, SubscriptionCancelledEvent):
            new_status = SubscriptionStatus.CANCELLED
        else:
            raise TypeError(f"Unsupported subscription event: {type(event).__name__}")

        user_id = await self.store.apply_status(
            data.subscription_id,
            new_status,
            period_start=period_start,
            period_end=period_end,
        )
        if user_id is None:
            return False

        metadata_user = data.metadata.user_id if data.metadata else None
        if metadata_user and metadata_user != user_id:
            logger.warning(
                "Webhook metadata user %s does not own subscription %s",
                metadata_user,
                data.subscription_id,
                extra={"subscription_id": data.subscription_id},
            )

        logger.info(
            "Subscription %s for user %s is now %s (%s)",
            data.subscription_id,
            user_id,
            new_status.value,
            event.type,
            extra={
                "user_id": user_id,
                "subscription_id": data.subscription_id,
                "event_type": event.type,
            },
        )
        return True

    async def _apply_payment(self, event: PaymentEvent) -> bool:
        data = event.data
        if not data.subscription_id:
            return False

        user_id = await self.store.get_user_id_for_subscription(data.subscription_id)
        if user_id is None:
            return False

        status = (
            PaymentStatus.SUCCEEDED
            if isinstance(event, PaymentSucceededEvent)
            else PaymentStatus.FAILED
        )
        inserted = await self.store.record_payment(
            user_id=user_id,
            external_payment_id=data.payment_id,
            status=status.value,
            amount=data.amount,
            currency=data.currency,
            external_subscription_id=data.subscription_id,
        )
        if inserted:
            logger.info(
                "Payment %s %s for user %s",
                data.payment_id,
                status.value,
                user_id,
                extra={"user_id": user_id, "subscription_id": data.subscription_id},
            )
        return True

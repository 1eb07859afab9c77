"""
Subscription lifecycle API routes.

Checkout creation and cancellation talk to Dodo Payments; the webhook
endpoint is the only path through which provider events change local
subscription state.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.payments import DodoPaymentsAdapter, DodoPaymentsError
from api.dependencies import get_current_user, get_payments_adapter
from api.middleware.rate_limit import limiter, get_rate_limit
from api.schemas.subscription import (
    PaymentResponse,
    SubscriptionCancelResponse,
    SubscriptionCreateRequest,
    SubscriptionCreateResponse,
    SubscriptionStatusResponse,
)
from api.schemas.webhooks import WebhookResponse, parse_webhook_event
from api.utils import http_error_for
from core.exceptions import MeteringError, SubscriptionConflictError
from core.plans import DEFAULT_PLAN
from infrastructure.config.settings import settings
from infrastructure.database.connection import get_db
from infrastructure.database.models.subscription import PlanType, SubscriptionStatus
from infrastructure.database.models.user import User
from services.subscription_store import SubscriptionStore
from services.webhook_reconciler import WebhookReconciler, delivery_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscription", tags=["Subscription"])


@router.post("/create", response_model=SubscriptionCreateResponse)
@limiter.limit(get_rate_limit("subscription"))
async def create_subscription(
    request: Request,
    body: SubscriptionCreateRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    adapter: Annotated[DodoPaymentsAdapter, Depends(get_payments_adapter)],
    db: AsyncSession = Depends(get_db),
):
    """
    Start a Pro subscription and return the provider's payment link.

    The local row stays ``pending`` until the provider confirms payment
    with a ``subscription.active`` webhook.
    """
    if body.plan_type != PlanType.PRO.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid plan type. Must be: pro",
        )

    store = SubscriptionStore(db)
    if await store.has_active_pro(current_user.id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User already has an active Pro subscription",
        )

    if not adapter.api_key or not adapter.product_id:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment system not configured",
        )

    try:
        subscription = await adapter.create_subscription(
            user_id=current_user.id,
            email=current_user.email,
            name=current_user.name,
            return_url=f"{settings.app_url.rstrip('/')}/pricing?success=true",
            plan_type=body.plan_type,
        )
    except DodoPaymentsError as e:
        logger.error("Subscription creation failed for user %s: %s", current_user.id, e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to create subscription. Please try again.",
        )

    try:
        await store.create_pending(
            user_id=current_user.id,
            external_subscription_id=subscription.subscription_id,
            external_customer_id=subscription.customer_id,
            plan_type=body.plan_type,
        )
        await db.commit()
    except SubscriptionConflictError as e:
        await db.rollback()
        raise http_error_for(e)
    except SQLAlchemyError as e:
        await db.rollback()
        # The provider subscription exists but cannot be matched by webhooks
        logger.error(
            "Failed to record subscription %s for user %s: %s",
            subscription.subscription_id,
            current_user.id,
            e,
            extra={"user_id": current_user.id, "subscription_id": subscription.subscription_id},
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to record subscription. Please retry.",
        )

    logger.info(
        "Created subscription %s for user %s",
        subscription.subscription_id,
        current_user.id,
        extra={"user_id": current_user.id, "subscription_id": subscription.subscription_id},
    )

    return SubscriptionCreateResponse(
        payment_link=subscription.payment_link,
        subscription_id=subscription.subscription_id,
    )


@router.get("/status", response_model=SubscriptionStatusResponse)
async def get_subscription_status(
    current_user: Annotated[User, Depends(get_current_user)],
    db: AsyncSession = Depends(get_db),
):
    """Current subscription row (or free defaults) with recent payments."""
    store = SubscriptionStore(db)
    subscription = await store.get_for_user(current_user.id)
    payments = await store.list_payments(current_user.id, limit=5)
    recent_payments = [PaymentResponse.model_validate(p) for p in payments]

    if subscription is None:
        return SubscriptionStatusResponse(
            plan_type=DEFAULT_PLAN,
            status=SubscriptionStatus.ACTIVE.value,
            recent_payments=recent_payments,
        )

    return SubscriptionStatusResponse(
        plan_type=subscription.plan_type,
        status=subscription.status,
        subscription_id=subscription.external_subscription_id,
        customer_id=subscription.external_customer_id,
        current_period_start=subscription.current_period_start,
        current_period_end=subscription.current_period_end,
        recent_payments=recent_payments,
    )


@router.post("/cancel", response_model=SubscriptionCancelResponse)
@limiter.limit(get_rate_limit("subscription"))
async def cancel_subscription(
    request: Request,
    current_user: Annotated[User, Depends(get_current_user)],
    adapter: Annotated[DodoPaymentsAdapter, Depends(get_payments_adapter)],
    db: AsyncSession = Depends(get_db),
):
    """
    Ask the provider to cancel the caller's subscription.

    The plan stays in effect until the ``subscription.cancelled`` webhook
    arrives.
    """
    subscription = await SubscriptionStore(db).get_for_user(current_user.id)
    if subscription is None or not subscription.external_subscription_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No active subscription to cancel",
        )

    if subscription.status == SubscriptionStatus.CANCELLED.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Subscription is already cancelled",
        )

    logger.info(
        "Subscription cancellation requested for user %s",
        current_user.id,
        extra={"user_id": current_user.id, "subscription_id": subscription.external_subscription_id},
    )

    try:
        await adapter.cancel_subscription(subscription.external_subscription_id)
    except DodoPaymentsError as e:
        logger.error("Provider cancel failed for user %s: %s", current_user.id, e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to cancel subscription. Please try again or contact support.",
        )

    return SubscriptionCancelResponse(
        success=True,
        message="Cancellation requested. Your plan stays active until the provider confirms it.",
    )


@router.post("/webhook", response_model=WebhookResponse)
@limiter.limit(get_rate_limit("webhook"))
async def handle_webhook(
    request: Request,
    adapter: Annotated[DodoPaymentsAdapter, Depends(get_payments_adapter)],
    x_dodo_signature: Annotated[Optional[str], Header(alias="X-Dodo-Signature")] = None,
    webhook_id: Annotated[Optional[str], Header(alias="webhook-id")] = None,
    db: AsyncSession = Depends(get_db),
):
    """
    Handle Dodo Payments webhook events.

    - subscription.active: payment confirmed, plan becomes active
    - subscription.renewed: new billing period
    - subscription.failed / subscription.on_hold: plan becomes past_due
    - subscription.cancelled: plan becomes cancelled
    - payment.succeeded / payment.failed: appended to payment history

    Other event types are acknowledged and ignored. Redeliveries of an
    already applied event are acknowledged without side effects.
    """
    body = await request.body()

    if not adapter.webhook_secret:
        # 403 rather than 5xx so the provider does not retry aggressively
        logger.error("Webhook rejected: DODO_WEBHOOK_SECRET not configured")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Webhook verification not configured",
        )

    if not x_dodo_signature:
        logger.warning("Webhook received without signature")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing webhook signature",
        )

    if not adapter.verify_webhook_signature(body, x_dodo_signature):
        logger.error("Invalid webhook signature")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook signature",
        )

    try:
        event = parse_webhook_event(body)
    except ValidationError as e:
        logger.error("Invalid webhook payload: %s", e.errors(include_url=False))
        # 400 so the provider stops retrying a malformed payload
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid webhook payload",
        )

    try:
        outcome = await WebhookReconciler(db).process(event, delivery_id(body, webhook_id))
    except MeteringError as e:
        raise http_error_for(e)

    return WebhookResponse(outcome=outcome.value)

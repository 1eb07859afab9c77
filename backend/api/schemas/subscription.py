"""
Subscription request/response schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class SubscriptionCreateRequest(BaseModel):
    """Request to start a paid subscription."""

    plan_type: str = Field(
        ...,
        validation_alias=AliasChoices("plan_type", "planType"),
        description="Plan to subscribe to (pro)",
    )

    model_config = {"json_schema_extra": {"example": {"plan_type": "pro"}}}


class SubscriptionCreateResponse(BaseModel):
    """Hosted payment link for the new subscription."""

    success: bool = True
    payment_link: Optional[str] = Field(None, description="Provider-hosted payment page")
    subscription_id: str = Field(..., description="Provider subscription ID")


class PaymentResponse(BaseModel):
    """A recorded payment outcome."""

    model_config = ConfigDict(from_attributes=True)

    external_payment_id: str
    amount: int
    currency: str
    status: str
    created_at: datetime


class SubscriptionStatusResponse(BaseModel):
    """Current subscription state for the caller."""

    plan_type: str = Field(..., description="Plan on record (free when no subscription)")
    status: str = Field(..., description="pending, active, past_due or cancelled")
    subscription_id: Optional[str] = Field(None, description="Provider subscription ID")
    customer_id: Optional[str] = Field(None, description="Provider customer ID")
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    recent_payments: list[PaymentResponse] = Field(default_factory=list)


class SubscriptionCancelResponse(BaseModel):
    """Response after requesting cancellation."""

    success: bool = Field(..., description="Whether the provider accepted the request")
    message: str = Field(..., description="Status message")

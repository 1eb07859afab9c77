"""
Payment provider webhook payloads.

Each recognised event type parses into its own model. Anything else lands
in ``UnknownWebhookEvent`` so new provider event types never break parsing
of the known ones.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, TypeAdapter


class WebhookCustomer(BaseModel):
    """Customer block echoed by the provider."""

    model_config = ConfigDict(extra="allow")

    customer_id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None


class WebhookMetadata(BaseModel):
    """Metadata attached at subscription creation."""

    model_config = ConfigDict(extra="allow")

    user_id: Optional[str] = None
    plan_type: Optional[str] = None


class SubscriptionEventData(BaseModel):
    model_config = ConfigDict(extra="allow")

    subscription_id: str = Field(..., min_length=1)
    customer: Optional[WebhookCustomer] = None
    metadata: Optional[WebhookMetadata] = None


class SubscriptionRenewedData(SubscriptionEventData):
    next_billing_date: Optional[datetime] = None


class PaymentEventData(BaseModel):
    model_config = ConfigDict(extra="allow")

    payment_id: str = Field(..., min_length=1)
    subscription_id: Optional[str] = None
    # Smallest currency unit
    amount: int = 0
    currency: str = "USD"
    customer: Optional[WebhookCustomer] = None


class SubscriptionActiveEvent(BaseModel):
    type: Literal["subscription.active"]
    data: SubscriptionEventData


class SubscriptionRenewedEvent(BaseModel):
    type: Literal["subscription.renewed"]
    data: SubscriptionRenewedData


class SubscriptionFailedEvent(BaseModel):
    """Renewal failed or the provider put the subscription on hold."""

    type: Literal["subscription.failed", "subscription.on_hold"]
    data: SubscriptionEventData


class SubscriptionCancelledEvent(BaseModel):
    type: Literal["subscription.cancelled"]
    data: SubscriptionEventData


class PaymentSucceededEvent(BaseModel):
    type: Literal["payment.succeeded"]
    data: PaymentEventData


class PaymentFailedEvent(BaseModel):
    type: Literal["payment.failed"]
    data: PaymentEventData


class UnknownWebhookEvent(BaseModel):
    """Any event type this service does not act on."""

    type: str
    data: dict[str, Any] = Field(default_factory=dict)


# Event type -> union tag
_EVENT_TAGS = {
    "subscription.active": "subscription.active",
    "subscription.renewed": "subscription.renewed",
    "subscription.failed": "subscription.failed",
    "subscription.on_hold": "subscription.failed",
    "subscription.cancelled": "subscription.cancelled",
    "payment.succeeded": "payment.succeeded",
    "payment.failed": "payment.failed",
}


def _event_tag(value: Any) -> str:
    if isinstance(value, dict):
        event_type = value.get("type")
    else:
        event_type = getattr(value, "type", None)
    return _EVENT_TAGS.get(event_type, "unknown")


WebhookEvent = Annotated[
    Union[
        Annotated[SubscriptionActiveEvent, Tag("subscription.active")],
        Annotated[SubscriptionRenewedEvent, Tag("subscription.renewed")],
        Annotated[SubscriptionFailedEvent, Tag("subscription.failed")],
        Annotated[SubscriptionCancelledEvent, Tag("subscription.cancelled")],
        Annotated[PaymentSucceededEvent, Tag("payment.succeeded")],
        Annotated[PaymentFailedEvent, Tag("payment.failed")],
        Annotated[UnknownWebhookEvent, Tag("unknown")],
    ],
    Discriminator(_event_tag),
]

SubscriptionEvent = Union[
    SubscriptionActiveEvent,
    SubscriptionRenewedEvent,
    SubscriptionFailedEvent,
    SubscriptionCancelledEvent,
]
PaymentEvent = Union[PaymentSucceededEvent, PaymentFailedEvent]

_webhook_event_adapter: TypeAdapter[WebhookEvent] = TypeAdapter(WebhookEvent)


def parse_webhook_event(body: bytes | str | dict) -> WebhookEvent:
    """
    Parse a raw webhook body into its typed event.

    Raises:
        pydantic.ValidationError: If the body is not JSON, has no ``type``,
            or a recognised event is missing required fields
    """
    if isinstance(body, dict):
        return _webhook_event_adapter.validate_python(body)
    return _webhook_event_adapter.validate_json(body)


class WebhookResponse(BaseModel):
    """Acknowledgement returned to the provider."""

    success: bool = True
    outcome: str

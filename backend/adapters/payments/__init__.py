"""Payment adapters for billing and subscription management."""

from .dodo_adapter import (
    DodoPaymentsAdapter,
    DodoPaymentsAPIError,
    DodoPaymentsAuthError,
    DodoPaymentsError,
    DodoPaymentsWebhookError,
    DodoSubscription,
    create_dodo_adapter,
)

__all__ = [
    "DodoPaymentsAdapter",
    "DodoSubscription",
    "DodoPaymentsError",
    "DodoPaymentsAPIError",
    "DodoPaymentsWebhookError",
    "DodoPaymentsAuthError",
    "create_dodo_adapter",
]

"""
Service layer for business logic.
"""

from services.admin_overrides import AdminOverrideService
from services.entitlements import EntitlementService
from services.subscription_store import SubscriptionStore
from services.usage_ledger import UsageLedger
from services.webhook_reconciler import WebhookReconciler

__all__ = [
    "AdminOverrideService",
    "EntitlementService",
    "SubscriptionStore",
    "UsageLedger",
    "WebhookReconciler",
]

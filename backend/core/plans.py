"""
Plan configuration for subscription tiers.

This module is the single source of truth for plan limits and credit costs.
It lives in core/ so both service and API layers can import from it
without creating circular dependencies.
"""

from typing import Optional

DEFAULT_PLAN = "free"

# Plan configuration with features and limits
PLANS = {
    "free": {
        "name": "Free",
        "price_monthly": 0,
        "features": [
            "50 credits per month",
            "Tweets, threads and replies",
            "Generation history",
        ],
        "limits": {
            "credits_per_month": 50,
        },
    },
    "pro": {
        "name": "SuperTw33t",
        "price_monthly": 5.99,
        "features": [
            "500 credits per month",
            "All tweet styles & tones",
            "Unlimited thread generation",
            "Premium templates",
            "Priority support",
            "Advanced AI features",
        ],
        "limits": {
            "credits_per_month": 500,
        },
    },
}

# Credits charged per generated item
CREDIT_COSTS = {
    "tweet": 5,
    "reply": 5,
    # Threads are charged per part
    "thread": 1,
}


def is_valid_plan(plan_type: Optional[str]) -> bool:
    """Check whether a plan identifier exists in the catalog."""
    return plan_type in PLANS


def get_plan_limit(plan_type: Optional[str]) -> int:
    """
    Monthly credit limit for a plan.

    Unknown or missing plan identifiers resolve to the free plan so a
    corrupted row can never grant a larger allowance.
    """
    plan = PLANS.get(plan_type or DEFAULT_PLAN, PLANS[DEFAULT_PLAN])
    return plan["limits"]["credits_per_month"]


def credit_cost(content_type: str, parts: int = 1) -> int:
    """
    Credits charged for one generation of the given content type.

    Args:
        content_type: One of CREDIT_COSTS keys.
        parts: Number of parts for a thread; ignored for other types.

    Raises:
        ValueError: For an unknown content type or a non-positive part count.
    """
    if content_type not in CREDIT_COSTS:
        raise ValueError(f"Unknown content type: {content_type}")
    if content_type == "thread":
        if parts < 1:
            raise ValueError("A thread must have at least one part")
        return CREDIT_COSTS["thread"] * parts
    return CREDIT_COSTS[content_type]

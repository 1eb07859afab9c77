"""
Plan catalog response schemas.
"""

from pydantic import BaseModel, Field


class PlanLimits(BaseModel):
    """Usage limits for a subscription plan."""

    credits_per_month: int = Field(..., description="Credits available per calendar month")


class PlanInfo(BaseModel):
    """Information about a subscription plan."""

    id: str = Field(..., description="Plan ID (free, pro)")
    name: str = Field(..., description="Display name of the plan")
    price_monthly: float = Field(..., description="Monthly price in USD")
    features: list[str] = Field(..., description="List of features included in the plan")
    limits: PlanLimits = Field(..., description="Usage limits for the plan")


class PricingResponse(BaseModel):
    """Response containing all available pricing plans."""

    plans: list[PlanInfo] = Field(..., description="List of all available plans")
    credit_costs: dict[str, int] = Field(
        ..., description="Credits charged per generation (threads: per part)"
    )

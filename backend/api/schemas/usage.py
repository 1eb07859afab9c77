"""
Usage metering request/response schemas.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field

from core.domain.entitlement import Entitlement
from core.plans import credit_cost


class EntitlementResponse(BaseModel):
    """Permission-and-quota view for the caller."""

    can_generate: bool = Field(..., description="Whether a new generation is allowed")
    current_usage: int = Field(..., description="Credits consumed this month")
    limit: int = Field(..., description="Monthly credit limit of the effective plan")
    plan_type: str = Field(..., description="Effective plan (free, pro)")
    remaining: int = Field(..., description="Credits left this month")
    message: Optional[str] = Field(None, description="Why generation is blocked, if it is")

    @classmethod
    def from_entitlement(cls, entitlement: Entitlement) -> "EntitlementResponse":
        return cls(
            can_generate=entitlement.can_generate,
            current_usage=entitlement.current_usage,
            limit=entitlement.limit,
            plan_type=entitlement.plan_type,
            remaining=entitlement.remaining,
            message=entitlement.limit_message,
        )


class UsageIncrementRequest(BaseModel):
    """
    Consumption report from the generation service.

    Either an explicit ``amount`` or a ``content_type`` (plus ``parts`` for
    threads) from which the cost is derived. Defaults to one credit.
    """

    amount: Optional[int] = Field(None, ge=1, le=10_000, description="Credits to charge")
    content_type: Optional[Literal["tweet", "thread", "reply"]] = Field(
        None, description="Generated content type"
    )
    parts: int = Field(1, ge=1, le=100, description="Thread part count")

    def resolved_amount(self) -> int:
        if self.amount is not None:
            return self.amount
        if self.content_type is not None:
            return credit_cost(self.content_type, self.parts)
        return 1

    model_config = {
        "json_schema_extra": {"example": {"content_type": "thread", "parts": 6}}
    }


class UsageIncrementResponse(BaseModel):
    """Result of recording consumption."""

    success: bool = True
    credits_charged: int
    current_usage: int
    limit: int
    plan_type: str
    can_generate: bool

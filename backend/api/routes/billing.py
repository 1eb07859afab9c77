"""
Plan catalog API routes.
"""

from fastapi import APIRouter

from api.schemas.billing import PlanInfo, PlanLimits, PricingResponse
from core.plans import CREDIT_COSTS, PLANS

router = APIRouter(prefix="/billing", tags=["billing"])


@router.get("/pricing", response_model=PricingResponse)
async def get_pricing():
    """
    Get available subscription plans and credit costs.

    Public endpoint - no authentication required.
    """
    plans = []

    for plan_id, plan_data in PLANS.items():
        plans.append(
            PlanInfo(
                id=plan_id,
                name=plan_data["name"],
                price_monthly=plan_data["price_monthly"],
                features=plan_data["features"],
                limits=PlanLimits(**plan_data["limits"]),
            )
        )

    return PricingResponse(plans=plans, credit_costs=dict(CREDIT_COSTS))

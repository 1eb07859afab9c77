"""
Usage metering API routes.

``/usage/check`` is the pre-flight permission check used by the generation
flow; ``/usage/increment`` is called after a generation succeeds.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_current_user, get_optional_user
from api.middleware.rate_limit import limiter, get_rate_limit
from api.schemas.usage import (
    EntitlementResponse,
    UsageIncrementRequest,
    UsageIncrementResponse,
)
from api.utils import http_error_for
from core.exceptions import MeteringError
from infrastructure.config.settings import settings
from infrastructure.database.connection import get_db
from infrastructure.database.models.user import User
from services.entitlements import EntitlementService, default_entitlement
from services.usage_ledger import UsageLedger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/usage", tags=["Usage"])


@router.get("/check", response_model=EntitlementResponse)
@limiter.limit(get_rate_limit("usage_check"))
async def check_usage(
    request: Request,
    current_user: Annotated[Optional[User], Depends(get_optional_user)],
    db: AsyncSession = Depends(get_db),
):
    """
    Whether the caller may generate, with current usage and limit.

    Callers without a session get the free-plan defaults so the UI can
    render before sign-in (disable with USAGE_ANONYMOUS_FALLBACK=false).
    """
    if current_user is None:
        if not settings.usage_anonymous_fallback:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Not authenticated",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return EntitlementResponse.from_entitlement(default_entitlement())

    entitlement = await EntitlementService(db).check(current_user.id)
    return EntitlementResponse.from_entitlement(entitlement)


@router.post("/increment", response_model=UsageIncrementResponse)
@limiter.limit(get_rate_limit("usage_increment"))
async def increment_usage(
    request: Request,
    current_user: Annotated[User, Depends(get_current_user)],
    body: Optional[UsageIncrementRequest] = None,
    db: AsyncSession = Depends(get_db),
):
    """
    Record credits consumed by a completed generation.

    Charges the explicit ``amount``, else the cost of ``content_type``,
    else one credit.
    """
    body = body or UsageIncrementRequest()
    try:
        amount = body.resolved_amount()
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        new_total = await UsageLedger(db).increment_usage(current_user.id, amount)
    except MeteringError as e:
        raise http_error_for(e)

    entitlement = await EntitlementService(db).check(current_user.id)

    return UsageIncrementResponse(
        credits_charged=amount,
        current_usage=new_total,
        limit=entitlement.limit,
        plan_type=entitlement.plan_type,
        can_generate=entitlement.can_generate,
    )

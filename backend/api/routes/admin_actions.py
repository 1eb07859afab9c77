"""
Admin override API routes.

Credit adjustments, forced plan changes and usage resets, plus the audit
log they write to.
"""

import logging
from math import ceil
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps_admin import get_current_admin_user
from api.middleware.rate_limit import limiter, get_rate_limit
from api.schemas.admin import (
    AdminActionListResponse,
    AdminActionLogItem,
    AdminActionRequest,
    AdminActionResponse,
)
from api.schemas.usage import EntitlementResponse
from api.utils import http_error_for
from core.exceptions import MeteringError
from infrastructure.database.connection import get_db
from infrastructure.database.models.user import User
from services.admin_overrides import AdminOverrideService, list_admin_actions
from services.entitlements import EntitlementService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin - Actions"])


@router.post("/actions", response_model=AdminActionResponse)
@limiter.limit(get_rate_limit("admin_action"))
async def perform_admin_action(
    request: Request,
    body: AdminActionRequest,
    db: AsyncSession = Depends(get_db),
    admin_user: User = Depends(get_current_admin_user),
) -> AdminActionResponse:
    """
    Apply an override to a user.

    - adjust_credits: ``amount`` credits added (positive) or removed (negative)
    - change_plan: force ``new_plan`` (free or pro)
    - reset_usage: zero this month's usage and purge content history

    Admin access required.
    """
    result = await db.execute(select(User.id).where(User.id == body.user_id))
    if result.scalar_one_or_none() is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    service = AdminOverrideService(db, admin_user)
    try:
        if body.action == "adjust_credits":
            outcome = await service.adjust_credits(body.user_id, body.amount, body.reason)
        elif body.action == "change_plan":
            outcome = await service.change_plan(body.user_id, body.new_plan, body.reason)
        else:
            outcome = await service.reset_usage(body.user_id, body.reason)
    except MeteringError as e:
        raise http_error_for(e)

    entitlement = await EntitlementService(db).check(body.user_id)

    return AdminActionResponse(
        action=outcome.action.value,
        user_id=outcome.user_id,
        message=outcome.message,
        details=outcome.details,
        audit_logged=outcome.audit_logged,
        entitlement=EntitlementResponse.from_entitlement(entitlement),
    )


@router.get("/actions", response_model=AdminActionListResponse)
async def get_admin_actions(
    db: AsyncSession = Depends(get_db),
    admin_user: User = Depends(get_current_admin_user),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    user_id: Optional[str] = Query(None, description="Only actions targeting this user"),
) -> AdminActionListResponse:
    """
    List admin override actions, newest first.

    Admin access required.
    """
    items, total = await list_admin_actions(
        db, page=page, page_size=page_size, target_user_id=user_id
    )

    return AdminActionListResponse(
        items=[AdminActionLogItem.model_validate(item) for item in items],
        total=total,
        page=page,
        page_size=page_size,
        pages=ceil(total / page_size) if total > 0 else 0,
    )

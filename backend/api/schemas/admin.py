"""
Admin override request/response schemas.
"""

from datetime import datetime
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from api.schemas.usage import EntitlementResponse


class AdminActionRequest(BaseModel):
    """Operator override on a single user."""

    action: Literal["adjust_credits", "change_plan", "reset_usage"]
    user_id: str = Field(..., validation_alias=AliasChoices("user_id", "userId"))
    amount: Optional[int] = Field(
        None, description="Signed credit adjustment (adjust_credits only)"
    )
    new_plan: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("new_plan", "newPlan"),
        description="Target plan (change_plan only)",
    )
    reason: Optional[str] = Field(None, max_length=500)

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, v: str) -> str:
        return str(UUID(v))

    model_config = {
        "json_schema_extra": {
            "example": {
                "action": "adjust_credits",
                "user_id": "3f6c1f0e-7c1a-4f55-9a53-2a8e2b0a9c11",
                "amount": -10,
                "reason": "Refund for failed generation",
            }
        }
    }


class AdminActionResponse(BaseModel):
    """Result of an override, with the user's entitlement afterwards."""

    success: bool = True
    action: str
    user_id: str
    message: str
    details: dict[str, Any]
    audit_logged: bool
    entitlement: EntitlementResponse


class AdminActionLogItem(BaseModel):
    """Audit log entry."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    admin_id: Optional[str] = None
    action: str
    target_user_id: Optional[str] = None
    details: Optional[dict[str, Any]] = None
    created_at: datetime


class AdminActionListResponse(BaseModel):
    """Paginated audit log."""

    items: list[AdminActionLogItem]
    total: int
    page: int
    page_size: int
    pages: int

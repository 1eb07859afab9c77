"""
Unit tests for entitlement evaluation.

Tests:
- Effective plan resolution per subscription status
- Entitlement value object (remaining, limit message)
- Fail-closed behaviour when storage cannot be read
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from core.domain.entitlement import Entitlement
from services.entitlements import EntitlementService, default_entitlement, resolve_plan_type
from services.subscription_store import DEFAULT_PLAN_STATE, PlanState


class TestResolvePlanType:
    """Tests for resolve_plan_type()."""

    def test_no_subscription_is_free(self):
        assert resolve_plan_type(DEFAULT_PLAN_STATE) == "free"

    def test_active_pro(self):
        assert resolve_plan_type(PlanState("pro", "active")) == "pro"

    @pytest.mark.parametrize("status", ["pending", "cancelled"])
    def test_inactive_pro_falls_back_to_free(self, status):
        assert resolve_plan_type(PlanState("pro", status)) == "free"

    def test_past_due_keeps_plan_by_default(self):
        assert resolve_plan_type(PlanState("pro", "past_due"), degrade_on_past_due=False) == "pro"

    def test_past_due_degrades_when_configured(self):
        assert resolve_plan_type(PlanState("pro", "past_due"), degrade_on_past_due=True) == "free"

    def test_default_comes_from_settings(self):
        with patch("services.entitlements.settings.degrade_limit_on_past_due", True):
            assert resolve_plan_type(PlanState("pro", "past_due")) == "free"


class TestEntitlement:
    """Tests for the Entitlement value object."""

    def test_remaining(self):
        assert Entitlement(True, 20, 50, "free").remaining == 30

    def test_remaining_never_negative(self):
        assert Entitlement(False, 54, 50, "free").remaining == 0

    def test_no_message_when_allowed(self):
        assert Entitlement(True, 10, 50, "free").limit_message is None

    def test_limit_message(self):
        entitlement = Entitlement(False, 54, 50, "free")
        assert entitlement.limit_message == (
            "Usage limit reached. You've used 54/50 credits this period."
        )

    def test_degraded_message(self):
        entitlement = Entitlement(False, 0, 0, "free", degraded=True)
        assert "could not be verified" in entitlement.limit_message

    def test_default_entitlement(self):
        entitlement = default_entitlement()
        assert entitlement.can_generate is True
        assert entitlement.current_usage == 0
        assert entitlement.limit == 50
        assert entitlement.plan_type == "free"


class TestEntitlementCheckFailsClosed:
    """Storage failures must deny generation rather than allow it."""

    @pytest.mark.asyncio
    async def test_check_denies_on_storage_error(self):
        db = AsyncMock()
        db.execute.side_effect = OperationalError("SELECT 1", {}, Exception("connection lost"))

        entitlement = await EntitlementService(db).check("3f6c1f0e-7c1a-4f55-9a53-2a8e2b0a9c11")

        assert entitlement.can_generate is False
        assert entitlement.degraded is True
        assert entitlement.plan_type == "free"

    @pytest.mark.asyncio
    async def test_evaluate_propagates_storage_error(self):
        db = AsyncMock()
        db.execute.side_effect = OperationalError("SELECT 1", {}, Exception("connection lost"))

        with pytest.raises(OperationalError):
            await EntitlementService(db).evaluate("3f6c1f0e-7c1a-4f55-9a53-2a8e2b0a9c11")

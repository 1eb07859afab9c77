"""
Integration tests for admin overrides.

Tests:
- AdminOverrideService credit adjustments, plan changes and resets
- Best-effort audit logging
- POST /admin/actions and GET /admin/actions
- Admin access control
"""

from unittest.mock import patch
from uuid import uuid4

import pytest
from fastapi import status
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import InvalidAmountError, InvalidPlanError
from infrastructure.database.models import (
    AdminAction,
    AdminActionKind,
    Subscription,
    TweetHistory,
    UsageRecord,
    User,
)
from services.admin_overrides import AdminOverrideService, list_admin_actions
from services.entitlements import EntitlementService
from services.usage_ledger import UsageLedger, get_month_key

ACTIONS_URL = "/api/v1/admin/actions"


async def _set_usage(db: AsyncSession, user_id: str, credits: int) -> None:
    db.add(UsageRecord(user_id=user_id, month_key=get_month_key(), credits_consumed=credits))
    await db.commit()


async def _subscription_status(db: AsyncSession, user_id: str) -> str | None:
    return await db.scalar(select(Subscription.status).where(Subscription.user_id == user_id))


class TestAdminOverrideService:
    """Tests for AdminOverrideService."""

    @pytest.mark.asyncio
    async def test_positive_adjustment(
        self, db_session: AsyncSession, admin_user: User, test_user: User
    ):
        result = await AdminOverrideService(db_session, admin_user).adjust_credits(
            test_user.id, 25, "Goodwill credit"
        )

        assert result.action == AdminActionKind.CREDIT_ADJUSTMENT
        assert result.details["new_usage"] == 25
        assert result.audit_logged is True
        assert result.message == "Successfully added 25 credits"

        audit = (await db_session.execute(select(AdminAction))).scalar_one()
        assert audit.admin_id == admin_user.id
        assert audit.target_user_id == test_user.id
        assert audit.action == "credit_adjustment"
        assert audit.details["reason"] == "Goodwill credit"

    @pytest.mark.asyncio
    async def test_negative_adjustment_is_bounded(
        self, db_session: AsyncSession, admin_user: User, test_user: User
    ):
        await _set_usage(db_session, test_user.id, 30)
        service = AdminOverrideService(db_session, admin_user)

        first = await service.adjust_credits(test_user.id, -10)
        second = await service.adjust_credits(test_user.id, -100)

        assert first.details["new_usage"] == 20
        assert first.message == "Successfully subtracted 10 credits"
        assert second.details["new_usage"] == 0
        assert await UsageLedger(db_session).get_usage(test_user.id) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, None, 2.5, 10_001, -(10**20)])
    async def test_invalid_adjustment(
        self, db_session: AsyncSession, admin_user: User, test_user: User, amount
    ):
        with pytest.raises(InvalidAmountError):
            await AdminOverrideService(db_session, admin_user).adjust_credits(test_user.id, amount)

        assert await db_session.scalar(select(func.count()).select_from(AdminAction)) == 0

    @pytest.mark.asyncio
    async def test_change_plan_to_pro_and_back(
        self, db_session: AsyncSession, admin_user: User, test_user: User
    ):
        service = AdminOverrideService(db_session, admin_user)
        await _set_usage(db_session, test_user.id, 60)

        upgraded = await service.change_plan(test_user.id, "pro")

        assert upgraded.details["status"] == "active"
        entitlement = await EntitlementService(db_session).evaluate(test_user.id)
        assert entitlement.limit == 500
        assert entitlement.can_generate is True
        # Usage is untouched by plan changes
        assert entitlement.current_usage == 60

        downgraded = await service.change_plan(test_user.id, "free")

        assert downgraded.details["status"] == "cancelled"
        assert await _subscription_status(db_session, test_user.id) == "cancelled"
        entitlement = await EntitlementService(db_session).evaluate(test_user.id)
        assert entitlement.limit == 50
        assert entitlement.can_generate is False

    @pytest.mark.asyncio
    async def test_change_plan_to_free_without_subscription(
        self, db_session: AsyncSession, admin_user: User, test_user: User
    ):
        result = await AdminOverrideService(db_session, admin_user).change_plan(test_user.id, "free")

        assert result.details["status"] is None
        assert await _subscription_status(db_session, test_user.id) is None

    @pytest.mark.asyncio
    async def test_change_plan_invalid(
        self, db_session: AsyncSession, admin_user: User, test_user: User
    ):
        with pytest.raises(InvalidPlanError):
            await AdminOverrideService(db_session, admin_user).change_plan(test_user.id, "premium")

    @pytest.mark.asyncio
    async def test_reset_usage(self, db_session: AsyncSession, admin_user: User, test_user: User):
        await _set_usage(db_session, test_user.id, 45)
        db_session.add(TweetHistory(user_id=test_user.id, content="gm"))
        await db_session.commit()

        result = await AdminOverrideService(db_session, admin_user).reset_usage(test_user.id)

        assert result.action == AdminActionKind.USAGE_RESET
        assert result.details["history_rows_deleted"] == 1
        assert await UsageLedger(db_session).get_usage(test_user.id) == 0

    @pytest.mark.asyncio
    async def test_audit_failure_keeps_primary_action(
        self, db_engine, db_session: AsyncSession, admin_user: User, test_user: User
    ):
        """An audit write failure is reported but never undoes the override."""
        user_id = test_user.id
        service = AdminOverrideService(db_session, admin_user)
        await db_session.commit()
        async with db_engine.begin() as conn:
            await conn.run_sync(AdminAction.__table__.drop)

        result = await service.adjust_credits(user_id, 15)

        assert result.audit_logged is False
        assert result.details["new_usage"] == 15
        assert await UsageLedger(db_session).get_usage(user_id) == 15


class TestListAdminActions:
    """Tests for list_admin_actions()."""

    @pytest.mark.asyncio
    async def test_pagination_and_filter(
        self, db_session: AsyncSession, admin_user: User, test_user: User, other_user: User
    ):
        service = AdminOverrideService(db_session, admin_user)
        for _ in range(3):
            await service.adjust_credits(test_user.id, 1)
        await service.adjust_credits(other_user.id, 1)

        items, total = await list_admin_actions(db_session, page=1, page_size=2)
        assert total == 4
        assert len(items) == 2

        items, total = await list_admin_actions(db_session, target_user_id=other_user.id)
        assert total == 1
        assert items[0].target_user_id == other_user.id


class TestAdminActionsAPI:
    """Tests for POST/GET /admin/actions."""

    @pytest.mark.asyncio
    async def test_requires_authentication(self, async_client: AsyncClient):
        response = await async_client.post(
            ACTIONS_URL, json={"action": "reset_usage", "user_id": str(uuid4())}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_non_admin_forbidden(
        self, async_client: AsyncClient, test_user: User, auth_headers: dict
    ):
        response = await async_client.post(
            ACTIONS_URL,
            json={"action": "adjust_credits", "user_id": test_user.id, "amount": -50},
            headers=auth_headers,
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    @pytest.mark.asyncio
    async def test_admin_email_allowed(
        self, async_client: AsyncClient, test_user: User, auth_headers: dict
    ):
        with patch("api.deps_admin.settings.admin_emails", "test@example.com"):
            response = await async_client.post(
                ACTIONS_URL,
                json={"action": "adjust_credits", "user_id": test_user.id, "amount": 3},
                headers=auth_headers,
            )

        assert response.status_code == status.HTTP_200_OK

    @pytest.mark.asyncio
    async def test_adjust_credits(
        self,
        async_client: AsyncClient,
        db_session: AsyncSession,
        test_user: User,
        admin_headers: dict,
    ):
        await _set_usage(db_session, test_user.id, 48)

        response = await async_client.post(
            ACTIONS_URL,
            json={"action": "adjust_credits", "userId": test_user.id, "amount": -8, "reason": "Refund"},
            headers=admin_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["action"] == "credit_adjustment"
        assert data["audit_logged"] is True
        assert data["details"]["new_usage"] == 40
        assert data["entitlement"]["current_usage"] == 40
        assert data["entitlement"]["remaining"] == 10

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body", [{"amount": 0}, {}, {"amount": 10**20}, {"amount": -(10**20)}]
    )
    async def test_adjust_credits_invalid_amount(
        self, async_client: AsyncClient, test_user: User, admin_headers: dict, body: dict
    ):
        response = await async_client.post(
            ACTIONS_URL,
            json={"action": "adjust_credits", "user_id": test_user.id, **body},
            headers=admin_headers,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    @pytest.mark.asyncio
    async def test_change_plan_updates_entitlement(
        self, async_client: AsyncClient, test_user: User, admin_headers: dict
    ):
        response = await async_client.post(
            ACTIONS_URL,
            json={"action": "change_plan", "user_id": test_user.id, "newPlan": "pro"},
            headers=admin_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        entitlement = response.json()["entitlement"]
        assert entitlement["plan_type"] == "pro"
        assert entitlement["limit"] == 500

    @pytest.mark.asyncio
    async def test_change_plan_invalid(
        self, async_client: AsyncClient, test_user: User, admin_headers: dict
    ):
        response = await async_client.post(
            ACTIONS_URL,
            json={"action": "change_plan", "user_id": test_user.id, "new_plan": "gold"},
            headers=admin_headers,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    @pytest.mark.asyncio
    async def test_reset_usage(
        self,
        async_client: AsyncClient,
        db_session: AsyncSession,
        test_user: User,
        admin_headers: dict,
    ):
        await _set_usage(db_session, test_user.id, 50)

        response = await async_client.post(
            ACTIONS_URL,
            json={"action": "reset_usage", "user_id": test_user.id},
            headers=admin_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        entitlement = response.json()["entitlement"]
        assert entitlement["current_usage"] == 0
        assert entitlement["can_generate"] is True

    @pytest.mark.asyncio
    async def test_unknown_user(self, async_client: AsyncClient, admin_headers: dict):
        response = await async_client.post(
            ACTIONS_URL,
            json={"action": "reset_usage", "user_id": str(uuid4())},
            headers=admin_headers,
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.asyncio
    async def test_malformed_user_id(self, async_client: AsyncClient, admin_headers: dict):
        response = await async_client.post(
            ACTIONS_URL,
            json={"action": "reset_usage", "user_id": "not-a-uuid"},
            headers=admin_headers,
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_list_actions(
        self, async_client: AsyncClient, test_user: User, other_user: User, admin_headers: dict
    ):
        for user in (test_user, other_user):
            await async_client.post(
                ACTIONS_URL,
                json={"action": "adjust_credits", "user_id": user.id, "amount": 1},
                headers=admin_headers,
            )

        response = await async_client.get(ACTIONS_URL, headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["total"] == 2
        assert data["pages"] == 1
        assert {item["target_user_id"] for item in data["items"]} == {test_user.id, other_user.id}

        response = await async_client.get(
            ACTIONS_URL, params={"user_id": other_user.id}, headers=admin_headers
        )
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["action"] == "credit_adjustment"

    @pytest.mark.asyncio
    async def test_list_actions_forbidden_for_users(
        self, async_client: AsyncClient, auth_headers: dict
    ):
        response = await async_client.get(ACTIONS_URL, headers=auth_headers)

        assert response.status_code == status.HTTP_403_FORBIDDEN

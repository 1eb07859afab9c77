"""
Integration tests for usage metering API routes.

Tests:
- GET /usage/check for anonymous, free and pro users
- POST /usage/increment with explicit amounts and content types
- Limit crossing (a generation may push usage past the limit once)
"""

from unittest.mock import patch

import pytest
from fastapi import status
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.models import Subscription, UsageRecord, User
from services.usage_ledger import get_month_key


async def _set_usage(db: AsyncSession, user: User, credits: int) -> None:
    db.add(UsageRecord(user_id=user.id, month_key=get_month_key(), credits_consumed=credits))
    await db.commit()


class TestUsageCheck:
    """Tests for GET /usage/check."""

    @pytest.mark.asyncio
    async def test_anonymous_gets_free_defaults(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/usage/check")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data == {
            "can_generate": True,
            "current_usage": 0,
            "limit": 50,
            "plan_type": "free",
            "remaining": 50,
            "message": None,
        }

    @pytest.mark.asyncio
    async def test_anonymous_rejected_when_fallback_disabled(self, async_client: AsyncClient):
        with patch("api.routes.usage.settings.usage_anonymous_fallback", False):
            response = await async_client.get("/api/v1/usage/check")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_invalid_token_rejected(self, async_client: AsyncClient):
        response = await async_client.get(
            "/api/v1/usage/check", headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_free_user_with_usage(
        self, async_client: AsyncClient, db_session: AsyncSession, test_user: User, auth_headers: dict
    ):
        await _set_usage(db_session, test_user, 20)

        response = await async_client.get("/api/v1/usage/check", headers=auth_headers)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["can_generate"] is True
        assert data["current_usage"] == 20
        assert data["limit"] == 50
        assert data["remaining"] == 30

    @pytest.mark.asyncio
    async def test_at_limit_is_blocked(
        self, async_client: AsyncClient, db_session: AsyncSession, test_user: User, auth_headers: dict
    ):
        await _set_usage(db_session, test_user, 50)

        response = await async_client.get("/api/v1/usage/check", headers=auth_headers)

        data = response.json()
        assert data["can_generate"] is False
        assert data["message"] == "Usage limit reached. You've used 50/50 credits this period."

    @pytest.mark.asyncio
    async def test_active_pro_limit(
        self, async_client: AsyncClient, db_session: AsyncSession, test_user: User, auth_headers: dict
    ):
        db_session.add(
            Subscription(
                user_id=test_user.id,
                plan_type="pro",
                status="active",
                external_subscription_id="sub_pro_1",
            )
        )
        await db_session.commit()
        await _set_usage(db_session, test_user, 120)

        response = await async_client.get("/api/v1/usage/check", headers=auth_headers)

        data = response.json()
        assert data["plan_type"] == "pro"
        assert data["limit"] == 500
        assert data["can_generate"] is True

    @pytest.mark.asyncio
    async def test_pending_pro_uses_free_limit(
        self, async_client: AsyncClient, db_session: AsyncSession, test_user: User, auth_headers: dict
    ):
        db_session.add(
            Subscription(
                user_id=test_user.id,
                plan_type="pro",
                status="pending",
                external_subscription_id="sub_pending_1",
            )
        )
        await db_session.commit()

        response = await async_client.get("/api/v1/usage/check", headers=auth_headers)

        data = response.json()
        assert data["plan_type"] == "free"
        assert data["limit"] == 50


class TestUsageIncrement:
    """Tests for POST /usage/increment."""

    @pytest.mark.asyncio
    async def test_requires_authentication(self, async_client: AsyncClient):
        response = await async_client.post("/api/v1/usage/increment", json={"amount": 5})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.asyncio
    async def test_explicit_amount(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.post(
            "/api/v1/usage/increment", json={"amount": 5}, headers=auth_headers
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["credits_charged"] == 5
        assert data["current_usage"] == 5
        assert data["can_generate"] is True

    @pytest.mark.asyncio
    async def test_thread_charged_per_part(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.post(
            "/api/v1/usage/increment",
            json={"content_type": "thread", "parts": 6},
            headers=auth_headers,
        )

        assert response.json()["credits_charged"] == 6

    @pytest.mark.asyncio
    async def test_reply_cost(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.post(
            "/api/v1/usage/increment", json={"content_type": "reply"}, headers=auth_headers
        )

        assert response.json()["credits_charged"] == 5

    @pytest.mark.asyncio
    async def test_empty_body_charges_one_credit(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.post("/api/v1/usage/increment", headers=auth_headers)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["credits_charged"] == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [{"amount": 0}, {"amount": -5}, {"content_type": "video"}, {"content_type": "thread", "parts": 0}],
    )
    async def test_invalid_requests(self, async_client: AsyncClient, auth_headers: dict, body: dict):
        response = await async_client.post(
            "/api/v1/usage/increment", json=body, headers=auth_headers
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_amount_over_maximum(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.post(
            "/api/v1/usage/increment", json={"amount": 10**20}, headers=auth_headers
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_recording_failure_is_reported(
        self, async_client: AsyncClient, db_engine, db_session: AsyncSession, auth_headers: dict
    ):
        """A failed write is a retryable error, never a silent success."""
        await db_session.commit()
        async with db_engine.begin() as conn:
            await conn.run_sync(UsageRecord.__table__.drop)

        response = await async_client.post(
            "/api/v1/usage/increment", json={"content_type": "tweet"}, headers=auth_headers
        )

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.headers["Retry-After"] == "1"
        assert "success" not in response.json()
        assert "credits_charged" not in response.json()

    @pytest.mark.asyncio
    async def test_crossing_the_limit(
        self, async_client: AsyncClient, db_session: AsyncSession, test_user: User, auth_headers: dict
    ):
        """At 49/50 a 5-credit tweet is allowed, lands at 54, then blocks further generation."""
        await _set_usage(db_session, test_user, 49)

        check = await async_client.get("/api/v1/usage/check", headers=auth_headers)
        assert check.json()["can_generate"] is True

        response = await async_client.post(
            "/api/v1/usage/increment", json={"content_type": "tweet"}, headers=auth_headers
        )
        data = response.json()
        assert data["current_usage"] == 54
        assert data["can_generate"] is False

        check = await async_client.get("/api/v1/usage/check", headers=auth_headers)
        data = check.json()
        assert data["can_generate"] is False
        assert data["remaining"] == 0
        assert data["message"] == "Usage limit reached. You've used 54/50 credits this period."

"""
Pytest configuration and shared fixtures for backend tests.
"""

import hashlib
import hmac
import json
import sys
from pathlib import Path

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

import pytest
from typing import AsyncGenerator, Callable
from uuid import uuid4

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Import after path is set
from adapters.payments import DodoPaymentsAdapter
from api.dependencies import get_payments_adapter, token_service
from infrastructure.database.connection import get_db
from infrastructure.database.models import Base, User, UserRole


# Database URL for testing (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_WEBHOOK_SECRET = "whsec_test_secret_for_signing_webhooks"


@pytest.fixture
async def db_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session() as session:
        yield session
        await session.rollback()


async def _create_user(db: AsyncSession, email: str, name: str, role: str = UserRole.USER.value) -> User:
    user = User(
        id=str(uuid4()),
        email=email,
        name=name,
        role=role,
        status="active",
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a test user."""
    return await _create_user(db_session, "test@example.com", "Test User")


@pytest.fixture
async def other_user(db_session: AsyncSession) -> User:
    """A second regular user, for isolation checks."""
    return await _create_user(db_session, "other@example.com", "Other User")


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    """Create an admin user."""
    return await _create_user(db_session, "admin@example.com", "Admin User", UserRole.ADMIN.value)


def _headers_for(user: User) -> dict:
    access_token = token_service.create_access_token(user_id=user.id)
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Generate authentication headers for test user."""
    return _headers_for(test_user)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    """Generate authentication headers for the admin user."""
    return _headers_for(admin_user)


@pytest.fixture
def payments_adapter() -> DodoPaymentsAdapter:
    """Dodo Payments adapter with test credentials. Network calls must be patched."""
    return DodoPaymentsAdapter(
        api_key="test_api_key_123",
        api_url="https://test.dodopayments.com",
        webhook_secret=TEST_WEBHOOK_SECRET,
        product_id="prod_supertweet_pro",
    )


@pytest.fixture
def sign_webhook() -> Callable[[dict], tuple[bytes, dict]]:
    """
    Serialize a webhook payload and sign it the way Dodo Payments does.

    Returns (body, headers) ready to post to the webhook endpoint. Pass
    ``webhook_id`` to set the provider delivery id header.
    """

    def _sign(payload: dict, webhook_id: str | None = None, secret: str = TEST_WEBHOOK_SECRET):
        body = json.dumps(payload).encode()
        signature = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
        headers = {"Content-Type": "application/json", "X-Dodo-Signature": signature}
        if webhook_id:
            headers["webhook-id"] = webhook_id
        return body, headers

    return _sign


@pytest.fixture
async def async_client(
    db_session: AsyncSession, payments_adapter: DodoPaymentsAdapter
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    # Import app here to avoid circular imports
    from main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payments_adapter] = lambda: payments_adapter

    # Reset rate limiter state between tests to prevent cross-test 429s
    app.state.limiter.reset()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ============================================================================
# Webhook payload builders
# ============================================================================


@pytest.fixture
def subscription_event() -> Callable[..., dict]:
    """Build a subscription.* webhook payload."""

    def _build(event_type: str, subscription_id: str, user_id: str | None = None, **extra) -> dict:
        data = {
            "subscription_id": subscription_id,
            "customer": {"customer_id": "cus_test_1", "email": "test@example.com"},
            "metadata": {"user_id": user_id, "plan_type": "pro"} if user_id else {},
        }
        data.update(extra)
        return {"type": event_type, "data": data}

    return _build


@pytest.fixture
def payment_event() -> Callable[..., dict]:
    """Build a payment.* webhook payload."""

    def _build(
        event_type: str,
        payment_id: str,
        subscription_id: str | None,
        amount: int = 599,
        currency: str = "USD",
    ) -> dict:
        return {
            "type": event_type,
            "data": {
                "payment_id": payment_id,
                "subscription_id": subscription_id,
                "amount": amount,
                "currency": currency,
            },
        }

    return _build

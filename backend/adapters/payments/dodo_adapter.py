"""
Dodo Payments adapter for subscription management.

Provides integration with the Dodo Payments API for creating subscriptions
behind a hosted payment link, cancelling them, and verifying webhook
signatures.
"""

import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)


# Custom Exceptions
class DodoPaymentsError(Exception):
    """Base exception for Dodo Payments adapter errors."""

    pass


class DodoPaymentsAPIError(DodoPaymentsError):
    """Raised when the Dodo Payments API returns an error."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class DodoPaymentsWebhookError(DodoPaymentsError):
    """Raised when webhook verification cannot be performed."""

    pass


class DodoPaymentsAuthError(DodoPaymentsError):
    """Raised when API credentials are missing."""

    pass


@dataclass
class DodoSubscription:
    """Subscription created through the Dodo Payments API."""

    subscription_id: str
    customer_id: str | None
    payment_link: str | None
    status: str | None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "DodoSubscription":
        """Create subscription from API response data."""
        customer = data.get("customer") or {}
        return cls(
            subscription_id=data.get("subscription_id", ""),
            customer_id=customer.get("customer_id"),
            payment_link=data.get("payment_link"),
            status=data.get("status"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert subscription to dictionary format."""
        return {
            "subscription_id": self.subscription_id,
            "customer_id": self.customer_id,
            "payment_link": self.payment_link,
            "status": self.status,
        }


class DodoPaymentsAdapter:
    """
    Dodo Payments API adapter for subscription billing.

    Only the calls the metering engine needs are wrapped; subscription state
    itself is driven by webhooks, never by API responses.
    """

    SIGNATURE_HEADER = "X-Dodo-Signature"

    # Placeholder billing address; the hosted payment page collects the real one
    DEFAULT_BILLING = {
        "city": "Default City",
        "country": "US",
        "state": "Default State",
        "street": "Default Street",
        "zipcode": "12345",
    }

    def __init__(
        self,
        api_key: str | None = None,
        api_url: str | None = None,
        webhook_secret: str | None = None,
        product_id: str | None = None,
        timeout: float | None = None,
    ):
        """
        Initialize Dodo Payments adapter.

        Args:
            api_key: Dodo Payments API key (defaults to settings)
            api_url: API base URL (defaults to settings)
            webhook_secret: Webhook signing secret (defaults to settings)
            product_id: Product ID of the pro plan (defaults to settings)
            timeout: HTTP timeout in seconds (defaults to settings)
        """
        self.api_key = api_key or settings.dodo_payments_api_key
        self.api_url = (api_url or settings.dodo_payments_api_url).rstrip("/")
        self.webhook_secret = webhook_secret or settings.dodo_webhook_secret
        self.product_id = product_id or settings.dodo_pro_product_id
        self.timeout = timeout or settings.dodo_timeout

        if not self.api_key:
            logger.warning(
                "Dodo Payments API key not configured. Set DODO_PAYMENTS_API_KEY."
            )

    def _get_headers(self) -> dict[str, str]:
        """Get HTTP headers for API requests."""
        if not self.api_key:
            raise DodoPaymentsAuthError(
                "Dodo Payments API key not configured. Set DODO_PAYMENTS_API_KEY."
            )

        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Make HTTP request to the Dodo Payments API.

        Args:
            method: HTTP method (GET, POST, PATCH)
            endpoint: API endpoint path
            data: JSON request body

        Returns:
            API response as dictionary

        Raises:
            DodoPaymentsAPIError: If the API request fails
        """
        url = f"{self.api_url}/{endpoint}"
        headers = self._get_headers()

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                logger.info(f"Making {method} request to {endpoint}")
                response = await client.request(method, url, headers=headers, json=data)
                response.raise_for_status()

                if response.status_code == 204 or not response.content:
                    return {}

                return response.json()

        except httpx.HTTPStatusError as e:
            error_detail = str(e)
            try:
                error_data = e.response.json()
                if isinstance(error_data, dict):
                    error_detail = error_data.get("message") or error_data.get("error") or error_detail
            except ValueError:
                pass

            logger.error(f"Dodo Payments API error: {error_detail}")
            raise DodoPaymentsAPIError(
                f"API request failed: {error_detail}",
                status_code=e.response.status_code,
            )
        except httpx.RequestError as e:
            logger.error(f"HTTP request error: {e}")
            raise DodoPaymentsAPIError(f"Request failed: {e}")

    async def create_subscription(
        self,
        user_id: str,
        email: str,
        name: str | None,
        return_url: str,
        plan_type: str = "pro",
    ) -> DodoSubscription:
        """
        Create a subscription with a hosted payment link.

        The provider echoes ``metadata`` back on lifecycle webhooks, which is
        how the owning user is identified on creation-time events.

        Returns:
            DodoSubscription with the payment link to present to the user

        Raises:
            DodoPaymentsAPIError: If the API request fails
        """
        payload = {
            "billing": self.DEFAULT_BILLING,
            "customer": {
                "email": email,
                "name": name or email,
            },
            "product_id": self.product_id,
            "quantity": 1,
            "payment_link": True,
            "return_url": return_url,
            "metadata": {
                "user_id": user_id,
                "plan_type": plan_type,
            },
        }

        logger.info(f"Creating {plan_type} subscription for user {user_id}")
        response = await self._make_request("POST", "subscriptions", data=payload)
        subscription = DodoSubscription.from_api_response(response)

        if not subscription.subscription_id:
            raise DodoPaymentsAPIError("API response did not include a subscription_id")

        return subscription

    async def cancel_subscription(self, subscription_id: str) -> bool:
        """
        Ask the provider to cancel a subscription.

        Local state changes only when the subscription.cancelled webhook
        arrives.

        Raises:
            DodoPaymentsAPIError: If the API request fails
        """
        logger.info(f"Cancelling subscription {subscription_id}")
        await self._make_request(
            "PATCH",
            f"subscriptions/{subscription_id}",
            data={"status": "cancelled"},
        )
        return True

    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        """
        Verify webhook signature using HMAC SHA256.

        Args:
            payload: Raw webhook payload (bytes)
            signature: Hex digest from the X-Dodo-Signature header

        Returns:
            True if signature is valid, False otherwise

        Raises:
            DodoPaymentsWebhookError: If webhook secret not configured
        """
        if not self.webhook_secret:
            raise DodoPaymentsWebhookError(
                "Webhook secret not configured. Set DODO_WEBHOOK_SECRET."
            )

        expected_signature = hmac.new(
            key=self.webhook_secret.encode("utf-8"),
            msg=payload,
            digestmod=hashlib.sha256,
        ).hexdigest()

        # Header values arrive latin-1 decoded; compare bytes so non-ASCII input fails cleanly
        is_valid = hmac.compare_digest(
            expected_signature.encode("ascii"),
            signature.strip().lower().encode("utf-8"),
        )

        if not is_valid:
            logger.warning("Webhook signature verification failed")

        return is_valid


# Factory function for easy instantiation
def create_dodo_adapter(
    api_key: str | None = None,
    webhook_secret: str | None = None,
) -> DodoPaymentsAdapter:
    """
    Create a Dodo Payments adapter instance.

    Args:
        api_key: Dodo Payments API key (defaults to settings)
        webhook_secret: Webhook signing secret (defaults to settings)

    Returns:
        DodoPaymentsAdapter instance
    """
    return DodoPaymentsAdapter(api_key=api_key, webhook_secret=webhook_secret)

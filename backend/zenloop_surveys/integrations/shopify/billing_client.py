"""
Shopify Billing API client for the app's recurring subscription.

Uses Shopify's GraphQL Admin API for billing operations.
All billing MUST go through Shopify Billing API for public apps.
"""

import base64
import hashlib
import hmac
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from zenloop_surveys.config import get_shopify_api_secret
from zenloop_surveys.integrations.shopify.admin_client import ShopifyAdminClient
from zenloop_surveys.platform.errors import UpstreamError

logger = logging.getLogger(__name__)

ACTIVE_SUBSCRIPTIONS_QUERY = """
query getActiveSubscriptions {
    currentAppInstallation {
        activeSubscriptions {
            id
            name
            status
            createdAt
            currentPeriodEnd
            test
        }
    }
}
"""

CREATE_SUBSCRIPTION_MUTATION = """
mutation appSubscriptionCreate($name: String!, $returnUrl: URL!, $test: Boolean, $lineItems: [AppSubscriptionLineItemInput!]!, $trialDays: Int, $replacementBehavior: AppSubscriptionReplacementBehavior) {
    appSubscriptionCreate(
        name: $name
        returnUrl: $returnUrl
        test: $test
        trialDays: $trialDays
        lineItems: $lineItems
        replacementBehavior: $replacementBehavior
    ) {
        appSubscription {
            id
            name
            status
            createdAt
            currentPeriodEnd
            test
        }
        confirmationUrl
        userErrors {
            field
            message
        }
    }
}
"""


@dataclass
class ShopifySubscriptionResponse:
    """Response from Shopify subscription API."""
    subscription_id: str
    confirmation_url: Optional[str] = None
    status: Optional[str] = None
    current_period_end: Optional[datetime] = None
    created_at: Optional[datetime] = None
    name: Optional[str] = None
    test: bool = False

    def to_dict(self) -> dict:
        return {
            "subscription_id": self.subscription_id,
            "confirmation_url": self.confirmation_url,
            "status": self.status,
            "current_period_end": self.current_period_end.isoformat() if self.current_period_end else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "name": self.name,
            "test": self.test,
        }


@dataclass
class ShopifyPlanConfig:
    """Configuration for a Shopify billing plan."""
    name: str
    price: float  # In plan currency units
    currency_code: str = "USD"
    interval: str = "EVERY_30_DAYS"  # or "ANNUAL"
    trial_days: int = 0
    test: bool = False
    replacement_behavior: str = "STANDARD"


class ShopifyBillingClient(ShopifyAdminClient):
    """
    Client for Shopify Billing API (GraphQL Admin API).

    Handles:
    - Querying active subscriptions
    - Creating recurring application charges
    - Webhook signature verification
    """

    async def get_active_subscriptions(self) -> list[ShopifySubscriptionResponse]:
        """
        Get all active subscriptions for the shop.

        Returns:
            List of active subscriptions
        """
        data = await self.execute(ACTIVE_SUBSCRIPTIONS_QUERY, operation="get_active_subscriptions")
        installation = data.get("currentAppInstallation") or {}
        subscriptions = installation.get("activeSubscriptions") or []

        return [
            ShopifySubscriptionResponse(
                subscription_id=sub.get("id"),
                status=sub.get("status"),
                current_period_end=self._parse_datetime(sub.get("currentPeriodEnd")),
                created_at=self._parse_datetime(sub.get("createdAt")),
                name=sub.get("name"),
                test=sub.get("test", False),
            )
            for sub in subscriptions
        ]

    async def create_subscription(
        self,
        plan: ShopifyPlanConfig,
        return_url: str,
    ) -> ShopifySubscriptionResponse:
        """
        Create a recurring application subscription.

        Args:
            plan: Plan configuration with name, price, interval
            return_url: URL to redirect merchant after approval

        Returns:
            ShopifySubscriptionResponse with confirmation_url for merchant approval
        """
        variables = {
            "name": plan.name,
            "returnUrl": return_url,
            "test": plan.test,
            "trialDays": plan.trial_days,
            "replacementBehavior": plan.replacement_behavior,
            "lineItems": [
                {
                    "plan": {
                        "appRecurringPricingDetails": {
                            "price": {
                                "amount": plan.price,
                                "currencyCode": plan.currency_code,
                            },
                            "interval": plan.interval,
                        }
                    }
                }
            ],
        }

        data = await self.execute(CREATE_SUBSCRIPTION_MUTATION, variables, operation="create_subscription")
        result = data.get("appSubscriptionCreate") or {}

        user_errors = result.get("userErrors") or []
        if user_errors:
            error_msg = user_errors[0].get("message", "Subscription creation failed")
            logger.error("Shopify subscription creation failed", extra={
                "shop_domain": self.shop_domain,
                "user_errors": user_errors,
            })
            raise UpstreamError("create_subscription", provider_message=error_msg)

        subscription = result.get("appSubscription") or {}
        confirmation_url = result.get("confirmationUrl")

        if not subscription or not confirmation_url:
            raise UpstreamError("create_subscription", provider_message="No subscription returned from Shopify")

        logger.info("Shopify subscription created", extra={
            "shop_domain": self.shop_domain,
            "subscription_id": subscription.get("id"),
            "plan_name": plan.name,
        })

        return ShopifySubscriptionResponse(
            subscription_id=subscription.get("id"),
            confirmation_url=confirmation_url,
            status=subscription.get("status"),
            current_period_end=self._parse_datetime(subscription.get("currentPeriodEnd")),
            created_at=self._parse_datetime(subscription.get("createdAt")),
            name=subscription.get("name"),
            test=subscription.get("test", False),
        )

    @staticmethod
    def verify_webhook_signature(
        payload: bytes,
        signature: Optional[str],
        secret: Optional[str] = None,
    ) -> bool:
        """
        Verify Shopify webhook HMAC signature.

        Args:
            payload: Raw request body bytes
            signature: X-Shopify-Hmac-Sha256 header value
            secret: Webhook secret (uses SHOPIFY_API_SECRET env var if not provided)

        Returns:
            True if signature is valid
        """
        secret = secret or get_shopify_api_secret()
        if not secret:
            logger.error("SHOPIFY_API_SECRET not configured for webhook verification")
            return False
        if not signature:
            return False

        computed_hmac = hmac.new(
            secret.encode("utf-8"),
            payload,
            hashlib.sha256,
        ).digest()
        computed_signature = base64.b64encode(computed_hmac).decode("utf-8")

        return hmac.compare_digest(computed_signature, signature)

    @staticmethod
    def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
        """Parse ISO datetime string from Shopify."""
        if not value:
            return None
        try:
            if value.endswith("Z"):
                value = value[:-1] + "+00:00"
            return datetime.fromisoformat(value)
        except (ValueError, TypeError):
            return None

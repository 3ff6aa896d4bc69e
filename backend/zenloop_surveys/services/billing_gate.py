"""
Billing gate for the admin pages.

A shop without an active recurring subscription is sent to the app's plan
selection page in Shopify Admin. The gate keeps no local state; Shopify's
billing subsystem is the source of truth.

A billing check that cannot complete is an authentication failure, never an
implicit grant.
"""

import logging
from typing import Optional

from zenloop_surveys.config import SHOPIFY_APP_HANDLE, is_production
from zenloop_surveys.config.settings import (
    BILLING_PLAN_CURRENCY,
    BILLING_PLAN_INTERVAL,
    BILLING_PLAN_NAME,
    BILLING_PLAN_PRICE,
    BILLING_PLAN_TRIAL_DAYS,
)
from zenloop_surveys.integrations.shopify.billing_client import (
    ShopifyBillingClient,
    ShopifyPlanConfig,
    ShopifySubscriptionResponse,
)
from zenloop_surveys.platform.errors import AuthenticationError, BillingRequiredError, UpstreamError

logger = logging.getLogger(__name__)

MYSHOPIFY_SUFFIX = ".myshopify.com"


def store_handle(shop_domain: str) -> str:
    """'cool-shop.myshopify.com' -> 'cool-shop'"""
    if shop_domain.endswith(MYSHOPIFY_SUFFIX):
        return shop_domain[: -len(MYSHOPIFY_SUFFIX)]
    return shop_domain


def plan_selection_url(shop_domain: str, app_handle: str = SHOPIFY_APP_HANDLE) -> str:
    return f"https://admin.shopify.com/store/{store_handle(shop_domain)}/charges/{app_handle}/pricing_plans"


def default_plan() -> ShopifyPlanConfig:
    return ShopifyPlanConfig(
        name=BILLING_PLAN_NAME,
        price=BILLING_PLAN_PRICE,
        currency_code=BILLING_PLAN_CURRENCY,
        interval=BILLING_PLAN_INTERVAL,
        trial_days=BILLING_PLAN_TRIAL_DAYS,
        test=not is_production(),
    )


class BillingGate:
    """Checks and requires the app subscription for one shop."""

    def __init__(self, billing_client: ShopifyBillingClient):
        self.billing = billing_client

    @property
    def shop_domain(self) -> str:
        return self.billing.shop_domain

    async def _active_subscription(self) -> Optional[ShopifySubscriptionResponse]:
        try:
            subscriptions = await self.billing.get_active_subscriptions()
        except UpstreamError as e:
            logger.error("Billing check failed", extra={
                "shop_domain": self.shop_domain,
                "error": e.provider_message,
            })
            raise AuthenticationError()

        for sub in subscriptions:
            if (sub.status or "").upper() == "ACTIVE":
                return sub
        return None

    async def has_active_payment(self) -> bool:
        """
        Raises:
            AuthenticationError: If Shopify billing cannot be reached
        """
        return await self._active_subscription() is not None

    async def check(self) -> None:
        """
        Raises:
            BillingRequiredError: If the shop has no active subscription
            AuthenticationError: If Shopify billing cannot be reached
        """
        if await self.has_active_payment():
            return

        redirect_url = plan_selection_url(self.shop_domain)
        logger.info("Shop has no active subscription", extra={
            "shop_domain": self.shop_domain,
            "redirect_url": redirect_url,
        })
        raise BillingRequiredError(redirect_url)

    async def require(self, return_url: str, plan: Optional[ShopifyPlanConfig] = None) -> ShopifySubscriptionResponse:
        """
        Return the active subscription, creating one when there is none.

        A newly created subscription carries the confirmation_url the
        merchant must approve.

        Raises:
            AuthenticationError: If the active-subscription check fails
            UpstreamError: If subscription creation fails
        """
        active = await self._active_subscription()
        if active is not None:
            return active

        return await self.billing.create_subscription(plan or default_plan(), return_url)

"""
Billing route for the app's recurring subscription.

Requires an authenticated merchant but not an active subscription: this is
where a shop without one gets it.
"""

import logging
from typing import Callable
from urllib.parse import urlencode

from fastapi import APIRouter, Depends

from zenloop_surveys.api.dependencies.shopify_auth import (
    AdminContext,
    get_billing_client_factory,
    require_admin_session,
)
from zenloop_surveys.config.settings import get_app_url
from zenloop_surveys.integrations.shopify.billing_client import ShopifyBillingClient
from zenloop_surveys.services.billing_gate import BillingGate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/app/billing", tags=["billing"])


def billing_return_url(shop_domain: str) -> str:
    """Where Shopify sends the merchant after approving the charge."""
    return f"{get_app_url()}/app?{urlencode({'shop': shop_domain})}"


@router.get("")
async def require_subscription(
    admin: AdminContext = Depends(require_admin_session),
    billing_client_factory: Callable[[str, str], ShopifyBillingClient] = Depends(get_billing_client_factory),
):
    """
    Return the active subscription, creating one if there is none.

    A new subscription carries ``confirmation_url``; the client opens it in
    the top frame so the merchant can approve the charge.
    """
    async with billing_client_factory(admin.shop_domain, admin.access_token) as billing:
        subscription = await BillingGate(billing).require(billing_return_url(admin.shop_domain))

    logger.info("Billing requirement resolved", extra={
        "shop_domain": admin.shop_domain,
        "subscription_id": subscription.subscription_id,
        "status": subscription.status,
        "needs_confirmation": bool(subscription.confirmation_url),
    })
    return subscription.to_dict()

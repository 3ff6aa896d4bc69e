"""Shopify GraphQL Admin API clients."""

from zenloop_surveys.integrations.shopify.admin_client import ShopifyAdminClient
from zenloop_surveys.integrations.shopify.billing_client import (
    ShopifyBillingClient,
    ShopifyPlanConfig,
    ShopifySubscriptionResponse,
)

__all__ = [
    "ShopifyAdminClient",
    "ShopifyBillingClient",
    "ShopifyPlanConfig",
    "ShopifySubscriptionResponse",
]

"""
Database models.

The only local state is the Shopify session table. Survey settings live in
a shop metafield, not here.
"""

from zenloop_surveys.models.shop_session import ShopSession

__all__ = ["ShopSession"]

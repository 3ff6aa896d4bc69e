"""
Request authentication dependencies.

Admin pages authenticate with the App Bridge session token
(``Authorization: Bearer <token>``); the shop comes from the verified token
and the Admin API access token from the stored session. Checkout extension
requests are authenticated in api/dependencies/checkout.py.

Clients are built per request and closed when the request ends.
"""

import logging
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from zenloop_surveys.database.session import get_db_session
from zenloop_surveys.integrations.shopify.admin_client import ShopifyAdminClient
from zenloop_surveys.integrations.shopify.billing_client import ShopifyBillingClient
from zenloop_surveys.integrations.zenloop.client import ZenloopClient
from zenloop_surveys.platform.errors import AuthenticationError
from zenloop_surveys.platform.shopify_session import (
    ShopifySessionTokenVerifier,
    extract_bearer_token,
)
from zenloop_surveys.services.billing_gate import BillingGate
from zenloop_surveys.services.session_store import find_session_for_shop

logger = logging.getLogger(__name__)


@dataclass
class AdminContext:
    """An authenticated merchant request."""
    shop_domain: str
    access_token: str
    user_id: Optional[str] = None


def get_token_verifier() -> ShopifySessionTokenVerifier:
    return ShopifySessionTokenVerifier()


def get_admin_client_factory() -> Callable[[str, str], ShopifyAdminClient]:
    return ShopifyAdminClient


def get_billing_client_factory() -> Callable[[str, str], ShopifyBillingClient]:
    return ShopifyBillingClient


async def get_zenloop_client() -> AsyncIterator[ZenloopClient]:
    async with ZenloopClient() as client:
        yield client


def require_admin_session(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db_session),
    verifier: ShopifySessionTokenVerifier = Depends(get_token_verifier),
) -> AdminContext:
    """
    Authenticate an embedded admin request.

    Raises:
        AuthenticationError: If the token is missing or invalid, or the shop
            has no stored session
    """
    token = extract_bearer_token(authorization)
    session_ctx = verifier.verify_session_token(token)

    shop_session = find_session_for_shop(db, session_ctx.shop_domain)
    if shop_session is None:
        logger.warning("No stored session for authenticated shop", extra={
            "shop_domain": session_ctx.shop_domain,
        })
        raise AuthenticationError()

    return AdminContext(
        shop_domain=session_ctx.shop_domain,
        access_token=shop_session.access_token,
        user_id=session_ctx.user_id,
    )


async def require_active_billing(
    admin: AdminContext = Depends(require_admin_session),
    billing_client_factory: Callable[[str, str], ShopifyBillingClient] = Depends(get_billing_client_factory),
) -> AdminContext:
    """
    Authenticated admin request from a shop with an active subscription.

    Raises:
        BillingRequiredError: If the shop has no active subscription
        AuthenticationError: If billing cannot be checked
    """
    async with billing_client_factory(admin.shop_domain, admin.access_token) as billing:
        await BillingGate(billing).check()
    return admin


async def get_admin_client(
    admin: AdminContext = Depends(require_active_billing),
    admin_client_factory: Callable[[str, str], ShopifyAdminClient] = Depends(get_admin_client_factory),
) -> AsyncIterator[ShopifyAdminClient]:
    """Admin API client for a billed, authenticated merchant request."""
    async with admin_client_factory(admin.shop_domain, admin.access_token) as client:
        yield client

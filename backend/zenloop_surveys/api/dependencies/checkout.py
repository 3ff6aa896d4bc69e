"""
Helpers for the CORS-open endpoints called from checkout extensions.

Extensions run on Shopify's checkout origin, so every response from these
routes, errors included, carries the CORS headers. Routes therefore catch
AppError themselves and render it with ``cors_error``.
"""

import logging
from typing import Any, Callable, Optional

from fastapi import Response
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from zenloop_surveys.config import SETTINGS_KEY, SETTINGS_NAMESPACE
from zenloop_surveys.integrations.shopify.admin_client import ShopifyAdminClient
from zenloop_surveys.platform.errors import (
    AppError,
    NotFoundError,
    SettingsFetchError,
    UpstreamError,
    ValidationError,
    error_response,
)
from zenloop_surveys.platform.shopify_session import (
    CheckoutSessionContext,
    ShopifySessionTokenVerifier,
    extract_bearer_token,
)
from zenloop_surveys.services.metafield_store import MetafieldStore
from zenloop_surveys.services.session_store import find_session_for_shop

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "*",
}
CORS_MAX_AGE_SECONDS = "86400"


def cors_json(content: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=content, status_code=status_code, headers=CORS_HEADERS)


def cors_error(error: AppError) -> JSONResponse:
    return error_response(error, extra_headers=CORS_HEADERS)


def cors_preflight() -> Response:
    return Response(
        status_code=204,
        headers={**CORS_HEADERS, "Access-Control-Max-Age": CORS_MAX_AGE_SECONDS},
    )


def verify_checkout_request(
    authorization: Optional[str],
    verifier: ShopifySessionTokenVerifier,
) -> CheckoutSessionContext:
    """
    Raises:
        AuthenticationError: If the checkout session token is missing or invalid
        ValidationError: If the token carries no shop domain
    """
    context = verifier.verify_checkout_token(extract_bearer_token(authorization))
    if not context.shop_domain:
        raise ValidationError("Shop domain not found", code="SHOP_DOMAIN_MISSING")
    return context


async def read_stored_settings(
    db: Session,
    shop_domain: str,
    admin_client_factory: Callable[[str, str], ShopifyAdminClient],
) -> Any:
    """
    Read the raw settings metafield value for a shop.

    Returns the decoded JSON, or None when no readable metafield exists.

    Raises:
        NotFoundError: If the shop has no stored session
        SettingsFetchError: If the Admin API read fails
    """
    shop_session = find_session_for_shop(db, shop_domain)
    if shop_session is None:
        logger.warning("Shop session not found", extra={"shop_domain": shop_domain})
        raise NotFoundError("Shop session", message="Shop session not found")

    try:
        async with admin_client_factory(shop_domain, shop_session.access_token) as admin:
            return await MetafieldStore(admin).get(SETTINGS_NAMESPACE, SETTINGS_KEY)
    except UpstreamError as e:
        logger.error("Error fetching stored settings", extra={
            "shop_domain": shop_domain,
            "operation": e.operation,
            "error": e.provider_message,
        })
        raise SettingsFetchError()

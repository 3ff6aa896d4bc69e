"""
Shopify embedded app entry point route.

When a merchant opens the app from Shopify Admin, Shopify navigates the iframe
to GET /app with authentication query parameters:
  - hmac: HMAC-SHA256 signature of query params (hex)
  - shop: e.g. myshop.myshopify.com
  - host: Base64-encoded Shopify Admin host
  - timestamp: Unix timestamp

This route:
1. Validates the Shopify HMAC to confirm the request is from Shopify Admin
2. Checks the shop's subscription; without one, serves a page that opens the
   plan selection page in the top frame
3. Otherwise serves the HTML bootstrap page that loads App Bridge

Shopify sends auth here as query params, not Bearer tokens, so this route
does not use the session token dependencies.
"""

import hashlib
import hmac as hmac_mod
import html
import json
import logging
import os
from typing import Callable
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from zenloop_surveys.api.dependencies.shopify_auth import get_billing_client_factory
from zenloop_surveys.config import get_shopify_api_key, get_shopify_api_secret
from zenloop_surveys.database.session import get_db_session
from zenloop_surveys.integrations.shopify.billing_client import ShopifyBillingClient
from zenloop_surveys.platform.errors import AuthenticationError, BillingRequiredError
from zenloop_surveys.platform.shopify_session import normalize_shop_domain
from zenloop_surveys.services.billing_gate import BillingGate
from zenloop_surveys.services.session_store import find_session_for_shop

logger = logging.getLogger(__name__)

router = APIRouter(tags=["shopify-entry"])

APP_TITLE = "Zenloop Surveys"

SECURITY_HEADERS = {
    "Content-Security-Policy": (
        "default-src 'self'; "
        "script-src 'self' 'unsafe-inline' https://cdn.shopify.com; "
        "style-src 'self' 'unsafe-inline' https://cdn.shopify.com; "
        "img-src 'self' data: https:; "
        "connect-src 'self' https://admin.shopify.com; "
        "frame-ancestors https://admin.shopify.com https://*.myshopify.com; "
        "object-src 'none'; "
        "base-uri 'self'"
    ),
    "X-Content-Type-Options": "nosniff",
}


def verify_shopify_query_hmac(query_params: dict, api_secret: str) -> bool:
    """
    Verify the HMAC signature on Shopify query-string authentication.

    Shopify signs query params differently from webhooks:
    - Remove the ``hmac`` key from the params
    - Sort remaining keys alphabetically
    - Encode as ``key=value`` joined by ``&``
    - HMAC-SHA256 with the app API secret (hex digest)
    """
    if not api_secret:
        logger.error("SHOPIFY_API_SECRET not configured")
        return False

    hmac_value = query_params.get("hmac")
    if not hmac_value:
        return False

    filtered = {k: v for k, v in query_params.items() if k != "hmac"}
    sorted_params = urlencode(sorted(filtered.items()))

    computed = hmac_mod.new(
        api_secret.encode("utf-8"),
        sorted_params.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()

    return hmac_mod.compare_digest(computed, hmac_value)


@router.get("/app", response_class=HTMLResponse)
async def shopify_app_entry(
    request: Request,
    db: Session = Depends(get_db_session),
    billing_client_factory: Callable[[str, str], ShopifyBillingClient] = Depends(get_billing_client_factory),
):
    """
    Entry page for the Shopify Admin iframe.

    Raises:
        HTTPException: 403 if the HMAC is invalid
        AuthenticationError: If the shop has no stored session or billing
            cannot be checked
    """
    query_params = dict(request.query_params)

    if not query_params.get("shop") and not query_params.get("hmac"):
        return HTMLResponse(content=_build_open_from_admin_html(), status_code=200)

    if not verify_shopify_query_hmac(query_params, get_shopify_api_secret()):
        logger.warning(
            "Shopify entry HMAC verification failed",
            extra={
                "shop": query_params.get("shop"),
                "has_hmac": bool(query_params.get("hmac")),
                "path": request.url.path,
            },
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid HMAC signature",
        )

    shop = normalize_shop_domain(query_params.get("shop"))
    host = query_params.get("host", "")

    shop_session = find_session_for_shop(db, shop)
    if shop_session is None:
        logger.warning("Shopify entry without stored session", extra={"shop": shop})
        raise AuthenticationError()

    try:
        async with billing_client_factory(shop, shop_session.access_token) as billing:
            await BillingGate(billing).check()
    except BillingRequiredError as e:
        return HTMLResponse(
            content=_build_exit_iframe_html(e.redirect_url),
            status_code=200,
            headers=SECURITY_HEADERS,
        )

    logger.info(
        "Shopify Admin app entry",
        extra={"shop": shop, "has_host": bool(host)},
    )

    return HTMLResponse(
        content=_build_app_html(api_key=get_shopify_api_key(), host=host, shop=shop),
        status_code=200,
        headers=SECURITY_HEADERS,
    )


def _build_exit_iframe_html(redirect_url: str) -> str:
    """Page that navigates the top frame to a URL outside the embedded app."""
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <title>{APP_TITLE}</title>
</head>
<body>
  <p>Redirecting to plan selection...</p>
  <script>
    window.open({json.dumps(redirect_url)}, "_top");
  </script>
</body>
</html>"""


def _build_app_html(api_key: str, host: str, shop: str) -> str:
    """Build the HTML bootstrap page that loads the admin UI inside Shopify Admin."""
    frontend_origin = os.getenv("FRONTEND_URL", "")
    config = json.dumps({"apiKey": api_key, "host": host, "shop": shop})
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <meta name="shopify-api-key" content="{html.escape(api_key)}" />
  <title>{APP_TITLE}</title>
  <script src="https://cdn.shopify.com/shopifycloud/app-bridge.js"></script>
</head>
<body>
  <div id="root"></div>
  <script>
    window.__SHOPIFY_CONFIG__ = {config};
  </script>
  <script type="module" src="{html.escape(frontend_origin)}/src/main.tsx"></script>
</body>
</html>"""


def _build_open_from_admin_html() -> str:
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8" />
  <title>{APP_TITLE}</title>
</head>
<body>
  <p>Open {APP_TITLE} from your Shopify Admin.</p>
</body>
</html>"""

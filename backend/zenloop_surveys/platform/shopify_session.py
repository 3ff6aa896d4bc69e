"""
Shopify session token verification.

Two kinds of Shopify-issued JWTs reach this app, both signed with the app's
API secret (HS256):

- Admin session tokens, sent by App Bridge from the embedded admin as
  ``Authorization: Bearer <token>``. ``dest`` is ``https://{shop}`` and
  ``aud`` is the app's API key.
- Checkout session tokens, sent by the thank-you and post-purchase
  extensions. The shop domain is in ``input_data.shop.domain`` for
  post-purchase tokens and in ``dest`` otherwise. Audience is not checked.

SECURITY:
- The shop domain is only ever taken from a verified token
- Token contents are never logged
"""

import logging
from dataclasses import dataclass
from typing import Optional

import jwt

from zenloop_surveys.config import get_shopify_api_key, get_shopify_api_secret
from zenloop_surveys.platform.errors import AuthenticationError

logger = logging.getLogger(__name__)

ALGORITHMS = ["HS256"]
LEEWAY_SECONDS = 10


def normalize_shop_domain(value: Optional[str]) -> str:
    """Strip scheme and trailing path from a shop URL."""
    if not value:
        return ""
    domain = value.replace("https://", "").replace("http://", "")
    return domain.split("/", 1)[0].strip().lower()


def extract_bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthenticationError("Missing session token")
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise AuthenticationError("Missing session token")
    return token


@dataclass
class ShopifySessionContext:
    """Verified claims of an admin session token."""
    shop_domain: str
    user_id: Optional[str]
    session_id: Optional[str]


@dataclass
class CheckoutSessionContext:
    """Verified claims of a checkout or post-purchase session token."""
    shop_domain: str
    claims: dict


class ShopifySessionTokenVerifier:
    """Verifies Shopify session tokens with the app credentials."""

    def __init__(self, api_key: Optional[str] = None, api_secret: Optional[str] = None):
        self.api_key = api_key if api_key is not None else get_shopify_api_key()
        self.api_secret = api_secret if api_secret is not None else get_shopify_api_secret()

    def _decode(self, token: str, verify_audience: bool) -> dict:
        if not self.api_secret:
            logger.error("SHOPIFY_API_SECRET not configured for session token verification")
            raise AuthenticationError()

        try:
            if verify_audience:
                return jwt.decode(
                    token,
                    self.api_secret,
                    algorithms=ALGORITHMS,
                    audience=self.api_key,
                    leeway=LEEWAY_SECONDS,
                )
            return jwt.decode(
                token,
                self.api_secret,
                algorithms=ALGORITHMS,
                options={"verify_aud": False},
                leeway=LEEWAY_SECONDS,
            )
        except jwt.ExpiredSignatureError:
            logger.info("Expired Shopify session token")
            raise AuthenticationError()
        except jwt.InvalidTokenError as e:
            logger.warning("Invalid Shopify session token", extra={"error_type": type(e).__name__})
            raise AuthenticationError()

    def verify_session_token(self, token: str) -> ShopifySessionContext:
        """
        Verify an App Bridge admin session token.

        Raises:
            AuthenticationError: If the token is invalid, expired or lacks dest
        """
        payload = self._decode(token, verify_audience=True)

        shop_domain = normalize_shop_domain(payload.get("dest"))
        if not shop_domain:
            logger.warning("Session token missing dest claim")
            raise AuthenticationError()

        return ShopifySessionContext(
            shop_domain=shop_domain,
            user_id=payload.get("sub"),
            session_id=payload.get("sid"),
        )

    def verify_checkout_token(self, token: str) -> CheckoutSessionContext:
        """
        Verify a checkout or post-purchase session token.

        The returned shop_domain is empty when the token carries no shop;
        callers decide how to respond.
        """
        payload = self._decode(token, verify_audience=False)

        input_shop = ((payload.get("input_data") or {}).get("shop") or {}).get("domain")
        shop_domain = normalize_shop_domain(input_shop or payload.get("dest"))

        return CheckoutSessionContext(shop_domain=shop_domain, claims=payload)

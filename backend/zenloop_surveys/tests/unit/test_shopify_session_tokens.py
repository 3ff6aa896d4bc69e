"""
Unit tests for Shopify session token verification.

Tests cover:
- Admin session tokens: valid, wrong secret, wrong audience, expired, missing dest
- Checkout tokens: shop from input_data or dest, audience not checked
- Bearer header parsing and shop domain normalization
"""

import pytest

from zenloop_surveys.platform.errors import AuthenticationError
from zenloop_surveys.platform.shopify_session import (
    ShopifySessionTokenVerifier,
    extract_bearer_token,
    normalize_shop_domain,
)


@pytest.fixture
def verifier():
    return ShopifySessionTokenVerifier()


class TestHelpers:

    @pytest.mark.parametrize("value,expected", [
        ("https://Cool-Shop.myshopify.com", "cool-shop.myshopify.com"),
        ("cool-shop.myshopify.com/admin", "cool-shop.myshopify.com"),
        ("http://cool-shop.myshopify.com/", "cool-shop.myshopify.com"),
        (None, ""),
        ("", ""),
    ])
    def test_normalize_shop_domain(self, value, expected):
        assert normalize_shop_domain(value) == expected

    def test_extract_bearer_token(self):
        assert extract_bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"

    @pytest.mark.parametrize("header", [None, "", "Basic abc", "Bearer ", "Bearer"])
    def test_missing_bearer_token(self, header):
        with pytest.raises(AuthenticationError) as exc_info:
            extract_bearer_token(header)

        assert exc_info.value.message == "Missing session token"


class TestAdminSessionToken:

    def test_valid_token(self, verifier, admin_token, shop_domain):
        context = verifier.verify_session_token(admin_token())

        assert context.shop_domain == shop_domain
        assert context.user_id == "42"
        assert context.session_id == "session-abc"

    def test_wrong_secret(self, verifier, admin_token):
        with pytest.raises(AuthenticationError):
            verifier.verify_session_token(admin_token(secret="another-secret-0123456789abcdef0123"))

    def test_wrong_audience(self, verifier, admin_token):
        with pytest.raises(AuthenticationError):
            verifier.verify_session_token(admin_token(aud="some-other-app"))

    def test_expired(self, verifier, admin_token):
        with pytest.raises(AuthenticationError):
            verifier.verify_session_token(admin_token(expires_in=-120))

    def test_missing_dest(self, verifier, admin_token):
        with pytest.raises(AuthenticationError):
            verifier.verify_session_token(admin_token(dest=""))

    def test_unconfigured_secret(self, admin_token):
        verifier = ShopifySessionTokenVerifier(api_key="test-api-key", api_secret="")

        with pytest.raises(AuthenticationError):
            verifier.verify_session_token(admin_token())

    def test_garbage_token(self, verifier):
        with pytest.raises(AuthenticationError):
            verifier.verify_session_token("not-a-jwt")


class TestCheckoutToken:

    def test_shop_from_dest(self, verifier, checkout_token, shop_domain):
        context = verifier.verify_checkout_token(checkout_token())

        assert context.shop_domain == shop_domain

    def test_shop_from_post_purchase_input_data(self, verifier, checkout_token):
        token = checkout_token(
            dest="",
            input_data={"shop": {"domain": "post-purchase-shop.myshopify.com"}},
        )

        context = verifier.verify_checkout_token(token)

        assert context.shop_domain == "post-purchase-shop.myshopify.com"
        assert context.claims["input_data"]["shop"]["domain"] == "post-purchase-shop.myshopify.com"

    def test_audience_not_checked(self, verifier, checkout_token, shop_domain):
        context = verifier.verify_checkout_token(checkout_token(aud="checkout-extension"))

        assert context.shop_domain == shop_domain

    def test_missing_shop_is_empty(self, verifier, checkout_token):
        assert verifier.verify_checkout_token(checkout_token(dest="")).shop_domain == ""

    def test_wrong_secret(self, verifier, checkout_token):
        with pytest.raises(AuthenticationError):
            verifier.verify_checkout_token(checkout_token(secret="another-secret-0123456789abcdef0123"))

"""
Integration tests for the embedded app entry page and health checks.
"""

import hashlib
import hmac
import json
import time
from urllib.parse import urlencode

import pytest

from zenloop_surveys.api.routes.shopify_entry import verify_shopify_query_hmac


@pytest.fixture
def signed_query(api_secret):
    """Admin launch query params signed the way Shopify signs them."""

    def _make(shop: str = "cool-shop.myshopify.com", secret: str = None) -> dict:
        params = {
            "host": "YWRtaW4uc2hvcGlmeS5jb20vc3RvcmUvY29vbC1zaG9w",
            "shop": shop,
            "timestamp": str(int(time.time())),
        }
        message = urlencode(sorted(params.items()))
        params["hmac"] = hmac.new(
            (secret or api_secret).encode("utf-8"), message.encode("utf-8"), hashlib.sha256
        ).hexdigest()
        return params

    return _make


class TestQueryHmac:

    def test_valid(self, signed_query, api_secret):
        assert verify_shopify_query_hmac(signed_query(), api_secret)

    def test_tampered_param(self, signed_query, api_secret):
        params = signed_query()
        params["shop"] = "evil.myshopify.com"

        assert not verify_shopify_query_hmac(params, api_secret)

    def test_missing_secret(self, signed_query):
        assert not verify_shopify_query_hmac(signed_query(), "")


class TestAppEntry:

    def test_without_params_asks_to_open_from_admin(self, client):
        response = client.get("/app")

        assert response.status_code == 200
        assert "from your Shopify Admin" in response.text

    def test_invalid_hmac(self, client, shop_session, signed_query):
        response = client.get("/app", params=signed_query(secret="wrong-secret"))

        assert response.status_code == 403

    def test_no_stored_session(self, client, signed_query):
        response = client.get("/app", params=signed_query())

        assert response.status_code == 401

    def test_bootstrap_page(self, client, shop_session, signed_query):
        params = signed_query()

        response = client.get("/app", params=params)

        assert response.status_code == 200
        assert "app-bridge.js" in response.text
        assert '<meta name="shopify-api-key" content="test-api-key" />' in response.text
        config = json.dumps({"apiKey": "test-api-key", "host": params["host"], "shop": "cool-shop.myshopify.com"})
        assert f"window.__SHOPIFY_CONFIG__ = {config};" in response.text
        assert "frame-ancestors https://admin.shopify.com" in response.headers["Content-Security-Policy"]

    def test_without_subscription_opens_plan_selection(self, client, shop_session, fake_shopify, signed_query):
        fake_shopify.active_subscriptions = []

        response = client.get("/app", params=signed_query())

        assert response.status_code == 200
        assert "app-bridge.js" not in response.text
        assert 'window.open("https://admin.shopify.com/store/cool-shop/charges/' in response.text
        assert '"_top"' in response.text


class TestHealth:

    def test_liveness(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_readiness(self, client):
        response = client.get("/api/health/readiness")

        assert response.status_code == 200
        assert response.json() == {"status": "ready", "checks": {"database": "ok"}}

"""
Shared fixtures for the Zenloop Surveys test suite.

- Shopify app credentials are set for every test
- db_session is an in-memory SQLite database with the session table
- admin_token / checkout_token build signed Shopify session tokens
"""

import base64
import hashlib
import hmac
import json
import time

import httpx
import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import zenloop_surveys.models  # noqa: F401  registers models on Base
from zenloop_surveys.api.dependencies.shopify_auth import (
    get_admin_client_factory,
    get_billing_client_factory,
    get_zenloop_client,
)
from zenloop_surveys.database.session import get_db_session
from zenloop_surveys.db_base import Base
from zenloop_surveys.integrations.shopify.admin_client import ShopifyAdminClient
from zenloop_surveys.integrations.shopify.billing_client import ShopifyBillingClient
from zenloop_surveys.integrations.zenloop.client import ZenloopClient
from zenloop_surveys.main import create_app
from zenloop_surveys.models.shop_session import ShopSession

TEST_API_KEY = "test-api-key"
TEST_API_SECRET = "test-shopify-api-secret-0123456789abcdef"
TEST_SHOP = "cool-shop.myshopify.com"
TEST_ACCESS_TOKEN = "shpat_test_token"


@pytest.fixture(autouse=True)
def shopify_credentials(monkeypatch):
    monkeypatch.setenv("SHOPIFY_API_KEY", TEST_API_KEY)
    monkeypatch.setenv("SHOPIFY_API_SECRET", TEST_API_SECRET)


@pytest.fixture
def api_secret():
    return TEST_API_SECRET


@pytest.fixture
def shop_domain():
    return TEST_SHOP


@pytest.fixture
def db_session():
    """Create in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def shop_session(db_session):
    """Offline session for TEST_SHOP."""
    row = ShopSession(
        id=f"offline_{TEST_SHOP}",
        shop=TEST_SHOP,
        is_online=False,
        scope="write_products",
        access_token=TEST_ACCESS_TOKEN,
    )
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture
def admin_token():
    """Build an App Bridge session token."""

    def _make(shop: str = TEST_SHOP, secret: str = TEST_API_SECRET, expires_in: int = 60, **claims) -> str:
        now = int(time.time())
        payload = {
            "iss": f"https://{shop}/admin",
            "dest": f"https://{shop}",
            "aud": TEST_API_KEY,
            "sub": "42",
            "sid": "session-abc",
            "iat": now,
            "nbf": now,
            "exp": now + expires_in,
        }
        payload.update(claims)
        return jwt.encode(payload, secret, algorithm="HS256")

    return _make


@pytest.fixture
def checkout_token():
    """Build a checkout extension session token."""

    def _make(shop: str = TEST_SHOP, secret: str = TEST_API_SECRET, **claims) -> str:
        now = int(time.time())
        payload = {
            "dest": shop,
            "iat": now,
            "nbf": now,
            "exp": now + 60,
        }
        payload.update(claims)
        return jwt.encode(payload, secret, algorithm="HS256")

    return _make


# ============================================================================
# Fake upstream APIs (served through httpx.MockTransport)
# ============================================================================

SHOP_GID = "gid://shopify/Shop/1001"
CONFIRMATION_URL = "https://cool-shop.myshopify.com/admin/charges/1/confirm_recurring_application_charge"


def _graphql_data(data: dict) -> httpx.Response:
    return httpx.Response(200, json={"data": data})


class FakeShopifyAdmin:
    """Shopify GraphQL Admin API holding one shop's settings metafield and subscriptions."""

    def __init__(self):
        self.shop_id = SHOP_GID
        self.metafield_value = None
        self.active_subscriptions = [{
            "id": "gid://shopify/AppSubscription/1",
            "name": "Zenloop Surveys Subscription",
            "status": "ACTIVE",
            "createdAt": "2026-01-05T10:00:00Z",
            "currentPeriodEnd": "2026-02-04T10:00:00Z",
            "test": True,
        }]
        self.set_user_errors = []
        self.status_code = 200
        self.requests = []

    def store_settings(self, value: dict):
        self.metafield_value = json.dumps(value)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        if self.status_code != 200:
            return httpx.Response(self.status_code)

        query = body["query"]
        variables = body.get("variables") or {}

        if "currentAppInstallation" in query:
            return _graphql_data({"currentAppInstallation": {"activeSubscriptions": self.active_subscriptions}})

        if "appSubscriptionCreate" in query:
            return _graphql_data({"appSubscriptionCreate": {
                "appSubscription": {
                    "id": "gid://shopify/AppSubscription/2",
                    "name": variables["name"],
                    "status": "PENDING",
                    "createdAt": "2026-01-05T10:00:00Z",
                    "currentPeriodEnd": None,
                    "test": variables["test"],
                },
                "confirmationUrl": CONFIRMATION_URL,
                "userErrors": [],
            }})

        if "metafieldsSet" in query:
            if self.set_user_errors:
                return _graphql_data({"metafieldsSet": {"metafields": [], "userErrors": self.set_user_errors}})
            metafield = variables["metafields"][0]
            self.metafield_value = metafield["value"]
            return _graphql_data({"metafieldsSet": {
                "metafields": [{
                    "id": "gid://shopify/Metafield/9",
                    "namespace": metafield["namespace"],
                    "key": metafield["key"],
                    "value": metafield["value"],
                }],
                "userErrors": [],
            }})

        if "metafieldsDelete" in query:
            existed = self.metafield_value is not None
            self.metafield_value = None
            deleted = [{"key": "settings", "namespace": "zenloop", "ownerId": self.shop_id}] if existed else [None]
            return _graphql_data({"metafieldsDelete": {"deletedMetafields": deleted, "userErrors": []}})

        if "metafield(" in query:
            metafield = None
            if self.metafield_value is not None:
                metafield = {"id": "gid://shopify/Metafield/9", "value": self.metafield_value}
            return _graphql_data({"shop": {"id": self.shop_id, "metafield": metafield}})

        return _graphql_data({"shop": {"id": self.shop_id}})


class FakeZenloopApi:
    """Zenloop public survey API for one survey."""

    def __init__(self):
        self.survey_json = {
            "title": {"default": "How was your order?", "de": "Wie war Ihre Bestellung?"},
            "pages": [{"elements": [{
                "type": "rating",
                "name": "nps",
                "rateType": "stars",
                "rateCount": 5,
                "rateMin": 1,
                "rateMax": 5,
                "minRateDescription": "Poor",
                "maxRateDescription": "Excellent",
            }]}],
        }
        self.aggregate = {"aggregatedData": [{"questionId": "q1", "average": 4.5}]}
        self.response_pages = [
            {"responses": [{"id": "r1", "value": 5}, {"id": "r2", "value": 4}], "total_pages": 2},
            {"responses": [{"id": "r3", "value": 3}], "total_pages": 2},
        ]
        self.status_code = 200
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_code != 200:
            return httpx.Response(self.status_code)

        path = request.url.path
        if path.startswith("/api/v2/surveys/public/"):
            return httpx.Response(200, json={"surveyJson": self.survey_json})
        if path.endswith("/responses/aggregate"):
            return httpx.Response(200, json=self.aggregate)
        if path.endswith("/public-responses"):
            page = int(request.url.params["page"])
            if page <= len(self.response_pages):
                return httpx.Response(200, json=self.response_pages[page - 1])
            return httpx.Response(200, json={"responses": []})
        return httpx.Response(404)


@pytest.fixture(autouse=True)
def fast_read_retries(monkeypatch):
    monkeypatch.setattr("zenloop_surveys.services.metafield_store.GRAPHQL_READ_BACKOFF_SECONDS", 0)


@pytest.fixture
def fake_shopify():
    return FakeShopifyAdmin()


@pytest.fixture
def fake_zenloop():
    return FakeZenloopApi()


@pytest.fixture
def admin_client_factory(fake_shopify):
    def _factory(shop_domain: str, access_token: str) -> ShopifyAdminClient:
        return ShopifyAdminClient(
            shop_domain,
            access_token,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(fake_shopify)),
        )

    return _factory


@pytest.fixture
def billing_client_factory(fake_shopify):
    def _factory(shop_domain: str, access_token: str) -> ShopifyBillingClient:
        return ShopifyBillingClient(
            shop_domain,
            access_token,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(fake_shopify)),
        )

    return _factory


@pytest.fixture
def zenloop_client(fake_zenloop):
    return ZenloopClient(
        base_url="https://surveys.example.com",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(fake_zenloop)),
    )


# ============================================================================
# Application
# ============================================================================

@pytest.fixture
def app(db_session, admin_client_factory, billing_client_factory, zenloop_client):
    """Full application wired to the in-memory database and fake upstream APIs."""
    app = create_app()
    app.dependency_overrides[get_db_session] = lambda: db_session
    app.dependency_overrides[get_admin_client_factory] = lambda: admin_client_factory
    app.dependency_overrides[get_billing_client_factory] = lambda: billing_client_factory
    app.dependency_overrides[get_zenloop_client] = lambda: zenloop_client
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def sign_webhook(api_secret):
    """Compute X-Shopify-Hmac-Sha256 for a raw body."""

    def _sign(body: bytes, secret: str = None) -> str:
        digest = hmac.new((secret or api_secret).encode("utf-8"), body, hashlib.sha256).digest()
        return base64.b64encode(digest).decode("utf-8")

    return _sign

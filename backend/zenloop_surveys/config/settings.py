"""
Runtime configuration for the Zenloop Surveys app.

Values come from environment variables. Shopify credentials are read lazily
so tests can set them after import.
"""

import os

# Metafield location for the shop's survey settings
SETTINGS_NAMESPACE = "zenloop"
SETTINGS_KEY = "settings"

SHOPIFY_API_VERSION = os.getenv("SHOPIFY_API_VERSION", "2024-10")

# Must match the "handle" in shopify.app.toml
SHOPIFY_APP_HANDLE = os.getenv("SHOPIFY_APP_HANDLE", "zenloop-surveys-1")

# Zenloop survey definitions and response analytics
SURVEY_API_URL = os.getenv(
    "ZENLOOP_SURVEY_API_URL", "https://surveys-backend-1mxy.onrender.com"
).rstrip("/")

# Where shoppers answer the survey
SURVEY_BASE_URL = os.getenv("ZENLOOP_SURVEY_BASE_URL", "https://zenresponses.zenloop.com/")

HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))

# Admin GraphQL read retries
GRAPHQL_READ_MAX_ATTEMPTS = 3
GRAPHQL_READ_BACKOFF_SECONDS = 1.0

# Feedback viewer pagination
FEEDBACK_PAGE_SIZE = int(os.getenv("FEEDBACK_PAGE_SIZE", "25"))
FEEDBACK_MAX_PAGES = int(os.getenv("FEEDBACK_MAX_PAGES", "20"))

# Recurring charge required before the admin pages are usable
BILLING_PLAN_NAME = "Zenloop Surveys Subscription"
BILLING_PLAN_PRICE = 9.99
BILLING_PLAN_CURRENCY = "USD"
BILLING_PLAN_INTERVAL = "EVERY_30_DAYS"
BILLING_PLAN_TRIAL_DAYS = 14


def get_shopify_api_key() -> str:
    return os.getenv("SHOPIFY_API_KEY", "")


def get_shopify_api_secret() -> str:
    return os.getenv("SHOPIFY_API_SECRET", "")


def get_app_url() -> str:
    return os.getenv("SHOPIFY_APP_URL", "").rstrip("/")


def is_production() -> bool:
    return os.getenv("APP_ENV", "development").lower() == "production"


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()

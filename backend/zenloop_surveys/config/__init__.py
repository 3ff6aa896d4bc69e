"""Configuration module for the Zenloop Surveys backend."""

from zenloop_surveys.config.settings import (
    SETTINGS_KEY,
    SETTINGS_NAMESPACE,
    SHOPIFY_API_VERSION,
    SHOPIFY_APP_HANDLE,
    SURVEY_API_URL,
    SURVEY_BASE_URL,
    get_shopify_api_key,
    get_shopify_api_secret,
    is_production,
)

__all__ = [
    "SETTINGS_KEY",
    "SETTINGS_NAMESPACE",
    "SHOPIFY_API_VERSION",
    "SHOPIFY_APP_HANDLE",
    "SURVEY_API_URL",
    "SURVEY_BASE_URL",
    "get_shopify_api_key",
    "get_shopify_api_secret",
    "is_production",
]

"""Zenloop post-purchase surveys for Shopify."""

__version__ = "1.0.0"

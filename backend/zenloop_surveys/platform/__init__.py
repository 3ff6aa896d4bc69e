"""Cross-cutting platform concerns: errors, retries, Shopify session tokens."""

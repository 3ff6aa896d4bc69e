"""
Shopify GraphQL Admin API client.

One client per request, built from the shop's session credentials. There is
no module-level client: credentials are request-scoped.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from zenloop_surveys.config import SHOPIFY_API_VERSION
from zenloop_surveys.config.settings import HTTP_TIMEOUT_SECONDS
from zenloop_surveys.platform.errors import UpstreamError
from zenloop_surveys.platform.retry import NO_RETRY, RetryPolicy
from zenloop_surveys.platform.shopify_session import normalize_shop_domain

logger = logging.getLogger(__name__)


class ShopifyAdminClient:
    """
    Client for the Shopify GraphQL Admin API.

    Handles:
    - Query/mutation execution with error normalization
    - Optional retry for read queries
    """

    def __init__(
        self,
        shop_domain: str,
        access_token: str,
        api_version: str = SHOPIFY_API_VERSION,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the Admin API client.

        Args:
            shop_domain: The shop's myshopify.com domain (e.g., 'example.myshopify.com')
            access_token: Shop's access token for API calls
            api_version: Admin API version
            http_client: Pre-built httpx client (tests inject a MockTransport here)
        """
        self.shop_domain = normalize_shop_domain(shop_domain)
        self.graphql_url = f"https://{self.shop_domain}/admin/api/{api_version}/graphql.json"

        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS)
        self._headers = {
            "X-Shopify-Access-Token": access_token,
            "Content-Type": "application/json",
        }

    async def close(self):
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def execute(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
        operation: str = "graphql",
        retry_policy: RetryPolicy = NO_RETRY,
    ) -> Dict[str, Any]:
        """
        Execute a GraphQL document and return its ``data`` object.

        Args:
            query: GraphQL query or mutation
            variables: Optional variables
            operation: Name used in logs and error details
            retry_policy: Applied to transport and GraphQL-level failures

        Raises:
            UpstreamError: If the request fails or GraphQL reports errors
        """
        return await retry_policy.run(
            lambda: self._execute_once(query, variables, operation),
            operation=operation,
        )

    async def _execute_once(
        self,
        query: str,
        variables: Optional[Dict[str, Any]],
        operation: str,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        try:
            response = await self._client.post(self.graphql_url, json=payload, headers=self._headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("Shopify API HTTP error", extra={
                "shop_domain": self.shop_domain,
                "operation": operation,
                "status_code": e.response.status_code,
                "response": e.response.text[:500],
            })
            raise UpstreamError(
                operation,
                provider_message=f"Shopify API error: {e.response.status_code}",
                upstream_status=e.response.status_code,
            )
        except httpx.RequestError as e:
            logger.error("Shopify API request error", extra={
                "shop_domain": self.shop_domain,
                "operation": operation,
                "error": str(e),
            })
            raise UpstreamError(operation, provider_message=f"Request failed: {str(e)}")
        except ValueError as e:
            logger.error("Shopify API returned invalid JSON", extra={
                "shop_domain": self.shop_domain,
                "operation": operation,
            })
            raise UpstreamError(operation, provider_message=str(e))

        if not isinstance(data, dict):
            logger.error("Shopify API returned a non-object body", extra={
                "shop_domain": self.shop_domain,
                "operation": operation,
                "body_type": type(data).__name__,
            })
            raise UpstreamError(operation, provider_message="Unexpected response body")

        if data.get("errors"):
            errors = data["errors"]
            if isinstance(errors, list) and isinstance(errors[0], dict):
                error_msg = errors[0].get("message", "Unknown GraphQL error")
            else:
                error_msg = str(errors)
            logger.error("Shopify GraphQL error", extra={
                "shop_domain": self.shop_domain,
                "operation": operation,
                "errors": errors,
            })
            raise UpstreamError(operation, provider_message=error_msg)

        result = data.get("data")
        return result if isinstance(result, dict) else {}

"""
Shop metafield storage for JSON values.

One instance per request. The shop GID is looked up once per instance and
cached on it; nothing is cached across requests.

Reads are retried (3 attempts, linear backoff). Writes are a single
metafieldsSet upsert and are never retried.
"""

import json
import logging
from typing import Any, Optional

from zenloop_surveys.config import SETTINGS_KEY, SETTINGS_NAMESPACE
from zenloop_surveys.config.settings import GRAPHQL_READ_BACKOFF_SECONDS, GRAPHQL_READ_MAX_ATTEMPTS
from zenloop_surveys.integrations.shopify.admin_client import ShopifyAdminClient
from zenloop_surveys.platform.errors import CommitFailedError, UpstreamError
from zenloop_surveys.platform.retry import RetryPolicy, linear_backoff
from zenloop_surveys.services.survey_settings import SurveySettings

logger = logging.getLogger(__name__)

SHOP_ID_QUERY = """
query getShopId {
    shop {
        id
    }
}
"""

GET_METAFIELD_QUERY = """
query getShopMetafield($namespace: String!, $key: String!) {
    shop {
        id
        metafield(namespace: $namespace, key: $key) {
            id
            value
        }
    }
}
"""

SET_METAFIELD_MUTATION = """
mutation metafieldsSet($metafields: [MetafieldsSetInput!]!) {
    metafieldsSet(metafields: $metafields) {
        metafields {
            id
            namespace
            key
            value
        }
        userErrors {
            field
            message
        }
    }
}
"""

DELETE_METAFIELD_MUTATION = """
mutation metafieldsDelete($metafields: [MetafieldIdentifierInput!]!) {
    metafieldsDelete(metafields: $metafields) {
        deletedMetafields {
            key
            namespace
            ownerId
        }
        userErrors {
            field
            message
        }
    }
}
"""


def default_read_retry_policy() -> RetryPolicy:
    return RetryPolicy(
        max_attempts=GRAPHQL_READ_MAX_ATTEMPTS,
        backoff=linear_backoff(GRAPHQL_READ_BACKOFF_SECONDS),
    )


class MetafieldStore:
    """Reads and writes JSON metafields owned by the shop."""

    def __init__(self, admin_client: ShopifyAdminClient, read_retry_policy: Optional[RetryPolicy] = None):
        self.admin = admin_client
        self.read_retry_policy = read_retry_policy or default_read_retry_policy()
        self._shop_id: Optional[str] = None

    @property
    def shop_domain(self) -> str:
        return self.admin.shop_domain

    async def get_shop_id(self) -> str:
        """
        Resolve the shop's GID (gid://shopify/Shop/N).

        Raises:
            UpstreamError: If the lookup fails or returns no id
        """
        if self._shop_id:
            return self._shop_id

        data = await self.admin.execute(
            SHOP_ID_QUERY,
            operation="get_shop_id",
            retry_policy=self.read_retry_policy,
        )
        shop_id = (data.get("shop") or {}).get("id")
        if not shop_id:
            logger.error("Could not retrieve shop ID", extra={"shop_domain": self.shop_domain})
            raise UpstreamError("get_shop_id", provider_message="Could not retrieve shop ID")

        self._shop_id = shop_id
        return shop_id

    async def get(self, namespace: str, key: str) -> Optional[Any]:
        """
        Read and JSON-decode a shop metafield.

        Returns None when the metafield does not exist or its value is not
        valid JSON.

        Raises:
            UpstreamError: If the Admin API fails after retries
        """
        data = await self.admin.execute(
            GET_METAFIELD_QUERY,
            {"namespace": namespace, "key": key},
            operation="get_metafield",
            retry_policy=self.read_retry_policy,
        )
        shop = data.get("shop") or {}
        if shop.get("id"):
            self._shop_id = shop["id"]

        metafield = shop.get("metafield") or {}
        raw_value = metafield.get("value")
        if not raw_value:
            return None

        try:
            return json.loads(raw_value)
        except (TypeError, ValueError):
            logger.error("Failed to parse metafield value", extra={
                "shop_domain": self.shop_domain,
                "namespace": namespace,
                "key": key,
            })
            return None

    async def set(self, namespace: str, key: str, value: Any) -> dict:
        """
        Upsert a JSON metafield on the shop.

        Returns:
            The committed metafield record (id, namespace, key, value)

        Raises:
            CommitFailedError: If Shopify reports user errors or returns no metafield
            UpstreamError: If the Admin API call fails
        """
        shop_id = await self.get_shop_id()

        data = await self.admin.execute(
            SET_METAFIELD_MUTATION,
            {
                "metafields": [
                    {
                        "namespace": namespace,
                        "key": key,
                        "type": "json",
                        "value": json.dumps(value),
                        "ownerId": shop_id,
                    }
                ]
            },
            operation="set_metafield",
        )
        result = data.get("metafieldsSet") or {}

        user_errors = result.get("userErrors") or []
        if user_errors:
            logger.error("Metafield set rejected", extra={
                "shop_domain": self.shop_domain,
                "namespace": namespace,
                "key": key,
                "user_errors": user_errors,
            })
            raise CommitFailedError(
                user_errors[0].get("message") or "Failed to save settings",
                details={"field": user_errors[0].get("field")},
            )

        metafields = result.get("metafields") or []
        if not metafields:
            logger.error("Metafield set returned no metafield", extra={
                "shop_domain": self.shop_domain,
                "namespace": namespace,
                "key": key,
            })
            raise CommitFailedError()

        logger.info("Metafield saved", extra={
            "shop_domain": self.shop_domain,
            "namespace": namespace,
            "key": key,
        })
        return metafields[0]

    async def delete(self, namespace: str, key: str) -> bool:
        """
        Delete a shop metafield.

        Returns:
            True if a metafield was deleted, False if none existed

        Raises:
            CommitFailedError: If Shopify reports user errors
            UpstreamError: If the Admin API call fails
        """
        shop_id = await self.get_shop_id()

        data = await self.admin.execute(
            DELETE_METAFIELD_MUTATION,
            {"metafields": [{"ownerId": shop_id, "namespace": namespace, "key": key}]},
            operation="delete_metafield",
        )
        result = data.get("metafieldsDelete") or {}

        user_errors = result.get("userErrors") or []
        if user_errors:
            logger.error("Metafield delete rejected", extra={
                "shop_domain": self.shop_domain,
                "namespace": namespace,
                "key": key,
                "user_errors": user_errors,
            })
            raise CommitFailedError(user_errors[0].get("message") or "Failed to delete metafield")

        deleted = [m for m in (result.get("deletedMetafields") or []) if m]
        logger.info("Metafield deleted", extra={
            "shop_domain": self.shop_domain,
            "namespace": namespace,
            "key": key,
            "deleted": bool(deleted),
        })
        return bool(deleted)

    # ------------------------------------------------------------------
    # Survey settings
    # ------------------------------------------------------------------

    async def get_settings(self) -> Optional[SurveySettings]:
        """The shop's survey settings, or None when not configured."""
        return SurveySettings.from_dict(await self.get(SETTINGS_NAMESPACE, SETTINGS_KEY))

    async def save_settings(self, settings: SurveySettings) -> SurveySettings:
        await self.set(SETTINGS_NAMESPACE, SETTINGS_KEY, settings.to_dict())
        return settings

    async def delete_settings(self) -> bool:
        return await self.delete(SETTINGS_NAMESPACE, SETTINGS_KEY)

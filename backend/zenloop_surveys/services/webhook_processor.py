"""
Processing for Shopify app-lifecycle and GDPR compliance webhooks.

- app/uninstalled         delete every session row for the shop
- customers/data_request  nothing stored about customers; fixed acknowledgment
- customers/redact        nothing stored about customers; fixed acknowledgment
- shop/redact             delete the shop's settings metafield (best effort)

SECURITY:
- Signatures are verified by the route before anything here runs
- shop_domain comes from the verified X-Shopify-Shop-Domain header
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from zenloop_surveys.integrations.shopify.admin_client import ShopifyAdminClient
from zenloop_surveys.services.metafield_store import MetafieldStore
from zenloop_surveys.services.session_store import delete_sessions_for_shop, find_session_for_shop

logger = logging.getLogger(__name__)


class WebhookTopic(str, Enum):
    APP_UNINSTALLED = "app/uninstalled"
    CUSTOMERS_DATA_REQUEST = "customers/data_request"
    CUSTOMERS_REDACT = "customers/redact"
    SHOP_REDACT = "shop/redact"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["WebhookTopic"]:
        try:
            return cls(value)
        except ValueError:
            return None


GDPR_TOPICS = (
    WebhookTopic.CUSTOMERS_DATA_REQUEST,
    WebhookTopic.CUSTOMERS_REDACT,
    WebhookTopic.SHOP_REDACT,
)


@dataclass
class WebhookResult:
    """HTTP status and JSON body to acknowledge the webhook with."""
    status_code: int
    body: dict[str, Any] = field(default_factory=dict)


class WebhookProcessor:
    """Applies webhook side effects for one shop."""

    def __init__(
        self,
        db_session: Session,
        admin_client_factory: Callable[[str, str], ShopifyAdminClient] = ShopifyAdminClient,
    ):
        self.db = db_session
        self.admin_client_factory = admin_client_factory

    async def process_webhook(self, topic: Optional[str], shop_domain: str, payload: dict) -> WebhookResult:
        parsed = WebhookTopic.parse(topic)

        if parsed is WebhookTopic.APP_UNINSTALLED:
            return self.handle_app_uninstalled(shop_domain)
        if parsed is WebhookTopic.CUSTOMERS_DATA_REQUEST:
            return WebhookResult(200, {"message": "No customer data stored"})
        if parsed is WebhookTopic.CUSTOMERS_REDACT:
            return WebhookResult(200, {"message": "No customer data to erase"})
        if parsed is WebhookTopic.SHOP_REDACT:
            return await self.handle_shop_redact(shop_domain)

        logger.warning("Unhandled webhook topic", extra={
            "topic": topic,
            "shop_domain": shop_domain,
        })
        return WebhookResult(400, {"message": "Unhandled topic"})

    def handle_app_uninstalled(self, shop_domain: str) -> WebhookResult:
        """Delete the shop's sessions. No sessions to delete is still success."""
        try:
            deleted = delete_sessions_for_shop(self.db, shop_domain)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to delete sessions on uninstall", extra={
                "shop_domain": shop_domain,
                "error": str(e),
            })
            return WebhookResult(500, {"status": "error"})

        logger.info("App uninstall processed", extra={
            "shop_domain": shop_domain,
            "deleted_sessions": deleted,
        })
        return WebhookResult(200, {"status": "processed"})

    async def handle_shop_redact(self, shop_domain: str) -> WebhookResult:
        """
        Delete the settings metafield if the shop can still be reached.

        Always acknowledged: Shopify expects a timely 200 regardless.
        """
        try:
            session = find_session_for_shop(self.db, shop_domain)
            if session is None:
                logger.info("No session for shop/redact; nothing to delete", extra={
                    "shop_domain": shop_domain,
                })
            else:
                async with self.admin_client_factory(shop_domain, session.access_token) as admin:
                    await MetafieldStore(admin).delete_settings()
        except Exception as e:
            logger.error("Error deleting settings metafield on shop/redact", extra={
                "shop_domain": shop_domain,
                "error_type": type(e).__name__,
                "error": str(e),
            })

        return WebhookResult(200, {"message": "Shop data erased"})

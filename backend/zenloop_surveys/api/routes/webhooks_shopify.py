"""
Shopify webhook handlers for app uninstall and GDPR compliance topics.

SECURITY:
- All webhooks MUST verify HMAC signature
- No session token authentication (webhooks are from Shopify, not users)
- shop_domain comes from the X-Shopify-Shop-Domain header, never from payload
"""

import json
import logging
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from zenloop_surveys.api.dependencies.shopify_auth import get_admin_client_factory
from zenloop_surveys.database.session import get_db_session
from zenloop_surveys.integrations.shopify.admin_client import ShopifyAdminClient
from zenloop_surveys.integrations.shopify.billing_client import ShopifyBillingClient
from zenloop_surveys.platform.shopify_session import normalize_shop_domain
from zenloop_surveys.services.webhook_processor import (
    GDPR_TOPICS,
    WebhookProcessor,
    WebhookResult,
    WebhookTopic,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


async def verify_webhook(request: Request, x_shopify_hmac_sha256: Optional[str]) -> bytes:
    """
    Verify Shopify webhook HMAC signature.

    Returns:
        Raw request body bytes

    Raises:
        HTTPException: If signature is invalid
    """
    body = await request.body()

    if not ShopifyBillingClient.verify_webhook_signature(body, x_shopify_hmac_sha256):
        logger.warning("Invalid webhook signature", extra={
            "path": request.url.path,
        })
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid webhook signature"
        )

    return body


def parse_payload(body: bytes) -> dict:
    if not body:
        return {}
    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        logger.error("Invalid webhook JSON payload")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON payload"
        )
    return payload if isinstance(payload, dict) else {}


def to_response(result: WebhookResult) -> JSONResponse:
    return JSONResponse(status_code=result.status_code, content=result.body)


@router.post("/app/uninstalled")
async def handle_app_uninstalled(
    request: Request,
    x_shopify_topic: Optional[str] = Header(None, alias="X-Shopify-Topic"),
    x_shopify_shop_domain: str = Header(..., alias="X-Shopify-Shop-Domain"),
    x_shopify_hmac_sha256: Optional[str] = Header(None, alias="X-Shopify-Hmac-Sha256"),
    db: Session = Depends(get_db_session),
):
    """
    Handle app/uninstalled.

    Deletes every stored session for the shop. Zero sessions is success.
    """
    body = await verify_webhook(request, x_shopify_hmac_sha256)
    payload = parse_payload(body)
    shop_domain = normalize_shop_domain(x_shopify_shop_domain)

    logger.info("Received app uninstalled webhook", extra={
        "topic": x_shopify_topic,
        "shop_domain": shop_domain,
    })

    processor = WebhookProcessor(db)
    result = await processor.process_webhook(
        topic=WebhookTopic.APP_UNINSTALLED.value,
        shop_domain=shop_domain,
        payload=payload,
    )
    return to_response(result)


@router.post("/gdpr")
async def handle_gdpr(
    request: Request,
    x_shopify_topic: Optional[str] = Header(None, alias="X-Shopify-Topic"),
    x_shopify_shop_domain: str = Header(..., alias="X-Shopify-Shop-Domain"),
    x_shopify_hmac_sha256: Optional[str] = Header(None, alias="X-Shopify-Hmac-Sha256"),
    db: Session = Depends(get_db_session),
    admin_client_factory: Callable[[str, str], ShopifyAdminClient] = Depends(get_admin_client_factory),
):
    """
    Handle the mandatory GDPR topics, dispatching on X-Shopify-Topic.

    Non-GDPR topics are answered with 400 "Unhandled topic".
    """
    body = await verify_webhook(request, x_shopify_hmac_sha256)
    payload = parse_payload(body)
    shop_domain = normalize_shop_domain(x_shopify_shop_domain)

    logger.info("Received GDPR webhook", extra={
        "topic": x_shopify_topic,
        "shop_domain": shop_domain,
    })

    if WebhookTopic.parse(x_shopify_topic) not in GDPR_TOPICS:
        logger.warning("Unhandled GDPR webhook topic", extra={
            "topic": x_shopify_topic,
            "shop_domain": shop_domain,
        })
        return to_response(WebhookResult(400, {"message": "Unhandled topic"}))

    processor = WebhookProcessor(db, admin_client_factory=admin_client_factory)
    result = await processor.process_webhook(
        topic=x_shopify_topic,
        shop_domain=shop_domain,
        payload=payload,
    )
    return to_response(result)

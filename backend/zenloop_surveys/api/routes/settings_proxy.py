"""
Storefront and checkout lookups of a shop's survey settings.

- GET  /api/settings?shop=<domain>   public lookup by shop domain
- POST /api/zenloop-settings         lookup for the shop in a checkout session token

Both are CORS-open and answer OPTIONS preflights.
"""

import logging
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.orm import Session

from zenloop_surveys.api.dependencies.checkout import (
    cors_error,
    cors_json,
    cors_preflight,
    read_stored_settings,
    verify_checkout_request,
)
from zenloop_surveys.api.dependencies.shopify_auth import get_admin_client_factory, get_token_verifier
from zenloop_surveys.database.session import get_db_session
from zenloop_surveys.integrations.shopify.admin_client import ShopifyAdminClient
from zenloop_surveys.platform.errors import AppError, NotFoundError, ValidationError
from zenloop_surveys.platform.shopify_session import ShopifySessionTokenVerifier, normalize_shop_domain
from zenloop_surveys.services.survey_settings import SurveySettings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["settings-proxy"])


@router.options("/settings")
async def settings_preflight():
    return cors_preflight()


@router.get("/settings")
async def get_shop_settings(
    shop: Optional[str] = Query(None),
    db: Session = Depends(get_db_session),
    admin_client_factory: Callable[[str, str], ShopifyAdminClient] = Depends(get_admin_client_factory),
):
    shop_domain = normalize_shop_domain(shop)
    try:
        if not shop_domain:
            raise ValidationError("Shop parameter is required", code="SHOP_REQUIRED")

        settings = SurveySettings.from_dict(
            await read_stored_settings(db, shop_domain, admin_client_factory)
        )
        if settings is None:
            raise NotFoundError("Settings", message="Settings not found")
    except AppError as e:
        return cors_error(e)

    return cors_json(settings.to_dict())


@router.options("/zenloop-settings")
async def zenloop_settings_preflight():
    return cors_preflight()


@router.post("/zenloop-settings")
async def get_checkout_settings(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db_session),
    verifier: ShopifySessionTokenVerifier = Depends(get_token_verifier),
    admin_client_factory: Callable[[str, str], ShopifyAdminClient] = Depends(get_admin_client_factory),
):
    """Settings for the shop named in the checkout session token."""
    try:
        checkout = verify_checkout_request(authorization, verifier)

        stored = await read_stored_settings(db, checkout.shop_domain, admin_client_factory)
        if stored is None:
            logger.info("Settings metafield not found", extra={"shop_domain": checkout.shop_domain})
            raise NotFoundError("Settings", message="Settings not found")

        settings = SurveySettings.from_dict(stored)
        if settings is None:
            logger.error("Stored settings missing required fields", extra={
                "shop_domain": checkout.shop_domain,
            })
            raise ValidationError("Invalid settings format", code="INVALID_SETTINGS_FORMAT")
    except AppError as e:
        return cors_error(e)

    return cors_json({"data": settings.to_dict()})

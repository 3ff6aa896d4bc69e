"""
Survey prompt for the thank-you and post-purchase extensions.

POST /api/survey-prompt returns the prompt descriptor for one order: whether
to render, the survey link, and for form display the rating widget options.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from zenloop_surveys.api.dependencies.checkout import (
    cors_error,
    cors_json,
    cors_preflight,
    read_stored_settings,
    verify_checkout_request,
)
from zenloop_surveys.api.dependencies.shopify_auth import (
    get_admin_client_factory,
    get_token_verifier,
    get_zenloop_client,
)
from zenloop_surveys.database.session import get_db_session
from zenloop_surveys.integrations.shopify.admin_client import ShopifyAdminClient
from zenloop_surveys.integrations.zenloop.client import ZenloopClient
from zenloop_surveys.platform.errors import AppError
from zenloop_surveys.platform.shopify_session import ShopifySessionTokenVerifier
from zenloop_surveys.services.survey_resolver import OrderContext, SurveyResolver
from zenloop_surveys.services.survey_settings import SurveySettings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["survey-prompt"])


class Surface(str, Enum):
    THANK_YOU = "thank_you"
    POST_PURCHASE = "post_purchase"


class SurveyPromptRequest(BaseModel):
    """Request body sent by the extensions."""
    orderId: Optional[str] = Field(None, description="Order the shopper just placed")
    locale: str = Field("default", description="Shopper locale, e.g. 'de-CH'")
    surface: Surface = Surface.THANK_YOU
    inputData: Optional[Dict[str, Any]] = Field(None, description="Post-purchase extension inputData")


def build_order_context(body: SurveyPromptRequest, shop_domain: str) -> OrderContext:
    """The shop in the survey URL is always the one from the verified token."""
    if body.surface is Surface.POST_PURCHASE:
        context = OrderContext.from_post_purchase_input(body.inputData, locale=body.locale)
        if context.shop_domain and context.shop_domain != shop_domain:
            logger.warning("Post-purchase input names another shop", extra={
                "shop_domain": shop_domain,
                "input_shop_domain": context.shop_domain,
            })
        context.shop_domain = shop_domain
        return context

    return OrderContext(shop_domain=shop_domain, order_id=body.orderId or "", locale=body.locale)


@router.options("/survey-prompt")
async def survey_prompt_preflight():
    return cors_preflight()


@router.post("/survey-prompt")
async def get_survey_prompt(
    body: SurveyPromptRequest,
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db_session),
    verifier: ShopifySessionTokenVerifier = Depends(get_token_verifier),
    admin_client_factory: Callable[[str, str], ShopifyAdminClient] = Depends(get_admin_client_factory),
    zenloop_client: ZenloopClient = Depends(get_zenloop_client),
):
    """
    Resolve the prompt for the order in the request.

    A failed survey definition fetch still yields a link prompt; only
    authentication and settings lookup failures are errors.
    """
    try:
        checkout = verify_checkout_request(authorization, verifier)
        stored = await read_stored_settings(db, checkout.shop_domain, admin_client_factory)
    except AppError as e:
        return cors_error(e)

    settings = SurveySettings.from_dict(stored)
    context = build_order_context(body, checkout.shop_domain)

    prompt = await SurveyResolver(zenloop_client).resolve(settings, context)

    logger.info("Survey prompt resolved", extra={
        "shop_domain": checkout.shop_domain,
        "surface": body.surface.value,
        "state": prompt.state.value,
    })
    return cors_json(prompt.to_dict())

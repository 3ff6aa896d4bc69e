"""
Admin settings page API.

GET returns the shop's current survey settings; POST validates and saves
them. Both require an App Bridge session token and an active subscription.
The shop is always taken from the verified session, never from the form.
"""

import logging

from fastapi import APIRouter, Depends, Request

from zenloop_surveys.api.dependencies.shopify_auth import get_admin_client, get_zenloop_client
from zenloop_surveys.integrations.shopify.admin_client import ShopifyAdminClient
from zenloop_surveys.integrations.zenloop.client import ZenloopClient
from zenloop_surveys.platform.errors import CommitFailedError, UpstreamError
from zenloop_surveys.services.metafield_store import MetafieldStore
from zenloop_surveys.services.settings_validator import SettingsValidator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/app/settings", tags=["settings"])


@router.get("")
async def get_settings(admin_client: ShopifyAdminClient = Depends(get_admin_client)):
    """Current settings; ``settings`` is null until the first save."""
    store = MetafieldStore(admin_client)
    settings = await store.get_settings()
    shop_id = await store.get_shop_id()

    return {
        "shopId": shop_id,
        "settings": settings.to_dict() if settings else None,
    }


@router.post("")
async def save_settings(
    request: Request,
    admin_client: ShopifyAdminClient = Depends(get_admin_client),
    zenloop_client: ZenloopClient = Depends(get_zenloop_client),
):
    """
    Validate and save settings from the form fields orgId, surveyId, displayType.

    Nothing is written when validation fails.
    """
    form = await request.form()
    settings = await SettingsValidator(zenloop_client).validate(form)

    store = MetafieldStore(admin_client)
    try:
        await store.save_settings(settings)
    except UpstreamError as e:
        logger.error("Settings save failed", extra={
            "shop_domain": admin_client.shop_domain,
            "operation": e.operation,
            "error": e.provider_message,
        })
        raise CommitFailedError()

    logger.info("Settings saved", extra={
        "shop_domain": admin_client.shop_domain,
        "survey_id": settings.survey_id,
        "display_type": settings.display_type.value,
    })
    return {"message": "Settings saved successfully", "settings": settings.to_dict()}

"""
Feedback page data: the shop's survey response analytics.
"""

import logging

from fastapi import APIRouter, Depends

from zenloop_surveys.api.dependencies.shopify_auth import get_admin_client, get_zenloop_client
from zenloop_surveys.integrations.shopify.admin_client import ShopifyAdminClient
from zenloop_surveys.integrations.zenloop.client import ZenloopClient
from zenloop_surveys.services.feedback_service import FeedbackService
from zenloop_surveys.services.metafield_store import MetafieldStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/app/feedback", tags=["feedback"])

NOT_CONFIGURED_MESSAGE = "Please configure your Zenloop settings first"


@router.get("")
async def get_feedback(
    admin_client: ShopifyAdminClient = Depends(get_admin_client),
    zenloop_client: ZenloopClient = Depends(get_zenloop_client),
):
    settings = await MetafieldStore(admin_client).get_settings()
    if settings is None:
        return {"error": NOT_CONFIGURED_MESSAGE, "settings": None}

    report = await FeedbackService(zenloop_client).get_report(settings)

    return {"settings": settings.to_dict(), **report.to_dict()}

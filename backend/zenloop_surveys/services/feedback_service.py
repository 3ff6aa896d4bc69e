"""
Survey response analytics for the admin feedback page.

Fetches the per-question aggregate, then pages through the individual
responses of the first aggregated question. Pages are fetched one after
another; paging stops when the server-declared page count is exhausted, a
page comes back empty, or FEEDBACK_MAX_PAGES is reached.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from zenloop_surveys.config.settings import FEEDBACK_MAX_PAGES, FEEDBACK_PAGE_SIZE
from zenloop_surveys.integrations.zenloop.client import ZenloopClient
from zenloop_surveys.services.survey_settings import SurveySettings

logger = logging.getLogger(__name__)


@dataclass
class FeedbackReport:
    aggregate: dict
    question_id: Optional[str] = None
    responses: list[dict] = field(default_factory=list)
    pages_fetched: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "aggregate": self.aggregate,
            "questionId": self.question_id,
            "responses": self.responses,
            "pagesFetched": self.pages_fetched,
        }


def _total_pages(page_payload: dict) -> Optional[int]:
    for key in ("total_pages", "totalPages"):
        value = page_payload.get(key)
        if value is not None:
            try:
                return int(value)
            except (TypeError, ValueError):
                return None
    return None


class FeedbackService:
    """Loads response analytics for a shop's configured survey."""

    def __init__(
        self,
        zenloop_client: ZenloopClient,
        page_size: int = FEEDBACK_PAGE_SIZE,
        max_pages: int = FEEDBACK_MAX_PAGES,
    ):
        self.zenloop = zenloop_client
        self.page_size = page_size
        self.max_pages = max_pages

    async def get_report(self, settings: SurveySettings) -> FeedbackReport:
        """
        Raises:
            UpstreamError: If any Zenloop call fails
        """
        aggregate = await self.zenloop.get_response_aggregate(settings.survey_id)
        aggregated = aggregate.get("aggregatedData") or []
        if not aggregated:
            return FeedbackReport(aggregate=aggregate)

        question_id = str(aggregated[0].get("questionId") or "")
        if not question_id:
            return FeedbackReport(aggregate=aggregate)

        responses, pages = await self.collect_responses(settings.survey_id, question_id)
        return FeedbackReport(
            aggregate=aggregate,
            question_id=question_id,
            responses=responses,
            pages_fetched=pages,
        )

    async def collect_responses(self, survey_id: str, question_id: str) -> tuple[list[dict], int]:
        """Return all responses for one question and the number of pages fetched."""
        responses: list[dict] = []
        page = 1
        fetched = 0

        while page <= self.max_pages:
            payload = await self.zenloop.get_public_responses(
                survey_id,
                question_ids=question_id,
                page=page,
                page_size=self.page_size,
            )
            fetched += 1

            page_responses = payload.get("responses") or []
            if not page_responses:
                break
            responses.extend(page_responses)

            total_pages = _total_pages(payload)
            if total_pages is None or page >= total_pages:
                break
            page += 1

        logger.info("Collected survey responses", extra={
            "survey_id": survey_id,
            "question_id": question_id,
            "pages_fetched": fetched,
            "response_count": len(responses),
        })
        return responses, fetched

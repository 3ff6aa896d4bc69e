"""
Zenloop survey API client.

Public, unauthenticated endpoints:
- GET /api/v2/surveys/public/{surveyId}                  survey definition
- GET /api/v2/surveys/{surveyId}/responses/aggregate     per-question aggregate
- GET /api/v2/surveys/{surveyId}/public-responses        paginated responses

No call here is retried. Callers decide what a failure means.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from zenloop_surveys.config import SURVEY_API_URL
from zenloop_surveys.config.settings import HTTP_TIMEOUT_SECONDS
from zenloop_surveys.integrations.zenloop.models import SurveyDefinition
from zenloop_surveys.platform.errors import UpstreamError

logger = logging.getLogger(__name__)


class ZenloopClient:
    """Client for Zenloop's public survey endpoints."""

    def __init__(
        self,
        base_url: str = SURVEY_API_URL,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS)

    async def close(self):
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _get_json(self, path: str, operation: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.get(url, params=params, headers={"accept": "application/json"})
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.warning("Zenloop API HTTP error", extra={
                "operation": operation,
                "status_code": e.response.status_code,
                "path": path,
            })
            raise UpstreamError(
                operation,
                provider_message=f"HTTP error! status: {e.response.status_code}",
                upstream_status=e.response.status_code,
            )
        except httpx.RequestError as e:
            logger.warning("Zenloop API request error", extra={
                "operation": operation,
                "path": path,
                "error": str(e),
            })
            raise UpstreamError(operation, provider_message=str(e))
        except ValueError as e:
            logger.warning("Zenloop API returned invalid JSON", extra={
                "operation": operation,
                "path": path,
            })
            raise UpstreamError(operation, provider_message=str(e))

    async def get_public_survey(self, survey_id: str) -> Optional[SurveyDefinition]:
        """
        Fetch a survey definition.

        Returns None when the response has no ``surveyJson`` document.

        Raises:
            UpstreamError: On network errors, non-2xx responses or bad JSON
        """
        payload = await self._get_json(
            f"/api/v2/surveys/public/{survey_id}",
            operation="get_public_survey",
        )
        survey_json = payload.get("surveyJson") if isinstance(payload, dict) else None
        if not isinstance(survey_json, dict):
            return None
        return SurveyDefinition.from_survey_json(survey_json)

    async def get_response_aggregate(self, survey_id: str) -> dict:
        """Fetch per-question aggregated response data."""
        payload = await self._get_json(
            f"/api/v2/surveys/{survey_id}/responses/aggregate",
            operation="get_response_aggregate",
        )
        return payload if isinstance(payload, dict) else {}

    async def get_public_responses(
        self,
        survey_id: str,
        question_ids: str,
        page: int = 1,
        page_size: int = 25,
    ) -> dict:
        """Fetch one page of individual responses for the given questions."""
        payload = await self._get_json(
            f"/api/v2/surveys/{survey_id}/public-responses",
            operation="get_public_responses",
            params={"question_ids": question_ids, "page": page, "page_size": page_size},
        )
        return payload if isinstance(payload, dict) else {}

"""
Validation of survey settings submitted from the admin settings page.

The embedded form display type is only accepted when the survey has a rating
question. A survey lookup failure is a rejection, never a silent downgrade
to the link display type.
"""

import logging
from typing import Mapping, Optional

from zenloop_surveys.integrations.zenloop.client import ZenloopClient
from zenloop_surveys.integrations.zenloop.models import SurveyDefinition
from zenloop_surveys.platform.errors import (
    InvalidNumberError,
    MissingFieldError,
    UnsupportedDisplayTypeError,
    UpstreamError,
    ValidationError,
)
from zenloop_surveys.services.survey_settings import DisplayType, SurveySettings

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("orgId", "surveyId", "displayType")


def _is_digits(value: str) -> bool:
    return value.isascii() and value.isdigit()


class SettingsValidator:
    """Turns raw form input into SurveySettings or raises a ValidationError."""

    def __init__(self, zenloop_client: ZenloopClient):
        self.zenloop = zenloop_client

    async def validate(self, form: Mapping[str, Optional[str]]) -> SurveySettings:
        """
        Validate raw settings input.

        Args:
            form: Mapping with orgId, surveyId and displayType

        Returns:
            Normalized SurveySettings

        Raises:
            MissingFieldError: If a field is absent or blank
            InvalidNumberError: If orgId or surveyId is not all digits
            ValidationError: If displayType is not a known value
            UnsupportedDisplayTypeError: If form display has no rating question to show
        """
        values = {name: str(form.get(name) or "").strip() for name in REQUIRED_FIELDS}

        missing = [name for name, value in values.items() if not value]
        if missing:
            raise MissingFieldError(fields=missing)

        org_id = values["orgId"]
        survey_id = values["surveyId"]
        if not _is_digits(org_id) or not _is_digits(survey_id):
            raise InvalidNumberError()

        display_type = DisplayType.parse(values["displayType"])
        if display_type is None:
            raise ValidationError(
                "Display type must be one of: link, form",
                details={"displayType": values["displayType"]},
            )

        if display_type is DisplayType.FORM:
            survey = await self._fetch_survey(survey_id)
            if survey is None or not survey.has_rating_question():
                logger.info("Rejected form display type", extra={
                    "survey_id": survey_id,
                    "survey_found": survey is not None,
                })
                raise UnsupportedDisplayTypeError(survey_id)

        return SurveySettings(org_id=org_id, survey_id=survey_id, display_type=display_type)

    async def _fetch_survey(self, survey_id: str) -> Optional[SurveyDefinition]:
        try:
            return await self.zenloop.get_public_survey(survey_id)
        except UpstreamError as e:
            logger.warning("Survey lookup failed during settings validation", extra={
                "survey_id": survey_id,
                "error": e.provider_message,
            })
            return None

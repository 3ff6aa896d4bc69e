"""
SurveySettings - the per-shop survey configuration stored in the metafield.

Serialized form: {"orgId": "123", "surveyId": "456", "displayType": "link"}
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class DisplayType(str, Enum):
    """How the survey is presented to the shopper."""
    LINK = "link"  # Single button linking to the survey
    FORM = "form"  # Inline rating widget; requires a rating question

    @classmethod
    def parse(cls, value: Any) -> Optional["DisplayType"]:
        try:
            return cls(str(value))
        except ValueError:
            return None


@dataclass(frozen=True)
class SurveySettings:
    """Validated survey settings for one shop."""
    org_id: str
    survey_id: str
    display_type: DisplayType = DisplayType.LINK

    def to_dict(self) -> dict:
        return {
            "orgId": self.org_id,
            "surveyId": self.survey_id,
            "displayType": self.display_type.value,
        }

    @classmethod
    def from_dict(cls, value: Any) -> Optional["SurveySettings"]:
        """
        Build settings from a stored metafield value.

        Returns None when the value is not an object or lacks orgId/surveyId.
        A missing or unknown displayType reads as link.
        """
        if not isinstance(value, dict):
            return None

        org_id = value.get("orgId")
        survey_id = value.get("surveyId")
        if not org_id or not survey_id:
            return None

        display_type = DisplayType.parse(value.get("displayType")) or DisplayType.LINK
        return cls(org_id=str(org_id), survey_id=str(survey_id), display_type=display_type)

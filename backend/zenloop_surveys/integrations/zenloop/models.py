"""
Survey definition types parsed from Zenloop's public survey JSON.

Only the parts the app acts on are modelled: the title and the rating
questions. Everything else in ``surveyJson`` is ignored.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Union

RATING_QUESTION_TYPE = "rating"


@dataclass
class RatingQuestion:
    """A rating element from the survey pages."""
    name: str = ""
    rate_type: str = ""
    rate_count: int = 0
    rate_min: int = 0
    rate_max: int = 0
    min_rate_description: str = ""
    max_rate_description: str = ""

    @classmethod
    def from_element(cls, element: dict) -> "RatingQuestion":
        return cls(
            name=str(element.get("name") or ""),
            rate_type=str(element.get("rateType") or ""),
            rate_count=_as_int(element.get("rateCount")),
            rate_min=_as_int(element.get("rateMin")),
            rate_max=_as_int(element.get("rateMax")),
            min_rate_description=_as_text(element.get("minRateDescription")),
            max_rate_description=_as_text(element.get("maxRateDescription")),
        )


@dataclass
class SurveyDefinition:
    """A survey as served by ``/api/v2/surveys/public/{surveyId}``."""
    title: Union[str, dict, None] = None
    elements: list[dict] = field(default_factory=list)

    @classmethod
    def from_survey_json(cls, survey_json: dict) -> "SurveyDefinition":
        """Malformed pages or elements parse as a survey without elements."""
        pages = survey_json.get("pages")
        elements = [
            element
            for page in (pages if isinstance(pages, list) else [])
            if isinstance(page, dict)
            for element in _as_list(page.get("elements"))
            if isinstance(element, dict)
        ]
        return cls(title=survey_json.get("title"), elements=elements)

    def has_rating_question(self) -> bool:
        return self.first_rating_question() is not None

    def first_rating_question(self) -> Optional[RatingQuestion]:
        """The first rating element in page order, if any."""
        for element in self.elements:
            if element.get("type") == RATING_QUESTION_TYPE:
                return RatingQuestion.from_element(element)
        return None

    def title_for_locale(self, locale: str = "default") -> str:
        """
        Resolve a possibly localized title.

        Localized titles are maps keyed by language ('de', 'en', ...) with a
        'default' entry. 'de-CH' resolves through 'de'.
        """
        if self.title is None:
            return ""
        if isinstance(self.title, str):
            return self.title
        if isinstance(self.title, dict):
            language = (locale or "default").split("-")[0]
            if language in self.title:
                return _as_text(self.title[language])
            return _as_text(self.title.get("default"))
        return str(self.title)


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, dict):
        # Localized descriptions fall back to their default entry
        return str(value.get("default") or "")
    return str(value)


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []

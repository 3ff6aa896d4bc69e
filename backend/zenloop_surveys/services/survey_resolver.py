"""
Survey resolution for the thank-you and post-purchase surfaces.

Given the shop's survey settings and the order being confirmed, decides what
the shopper sees:

    UNCONFIGURED  no settings                          -> nothing
    LOADING       form settings, definition in flight  -> loading indicator
    LINK          link settings, or no rating question -> single survey link
    FORM          form settings + rating question      -> inline rating widget
    ERROR         definition fetch failed              -> single survey link

Every rating option is itself a link to the survey with
``satisfaction_level`` set; there is no separate submit step.

A cancelled fetch (asyncio.CancelledError) propagates to the caller and is
never turned into the ERROR state.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional
from urllib.parse import urlencode

from zenloop_surveys.config import SURVEY_BASE_URL
from zenloop_surveys.integrations.zenloop.client import ZenloopClient
from zenloop_surveys.integrations.zenloop.models import RatingQuestion, SurveyDefinition
from zenloop_surveys.services.survey_settings import DisplayType, SurveySettings

logger = logging.getLogger(__name__)

NBSP = "\u00a0"
STAR_EMPTY = "☆"
STAR_FILLED = "★"

MINIMAL_SMILEYS = ["☹️", "😊"]

# Largest scale rendered inline (0-10 NPS); bigger scales are shown as a link
MAX_RATING_OPTIONS = 11

# Curated emoji scales, lowest rating first
SMILEY_SEQUENCES: dict[int, list[str]] = {
    10: ["😡", "😠", "😖", "☹️", "😕", "😐", "🙂", "😊", "😃", "🤩"],
    9: ["😠", "😖", "☹️", "😕", "😐", "🙂", "😊", "😃", "🤩"],
    8: ["😖", "☹️", "😕", "😐", "🙂", "😊", "😃", "🤩"],
    7: ["😖", "☹️", "😕", "😐", "🙂", "😊", "😃"],
    6: ["☹️", "😕", "😐", "🙂", "😊", "😃"],
    5: ["☹️", "😕", "😐", "🙂", "😊"],
    4: ["☹️", "😐", "🙂", "😊"],
    3: ["☹️", "😐", "😊"],
    2: MINIMAL_SMILEYS,
}


class PromptState(str, Enum):
    UNCONFIGURED = "unconfigured"
    LOADING = "loading"
    LINK = "link"
    FORM = "form"
    ERROR = "error"


class WidgetKind(str, Enum):
    SMILEYS = "smileys"
    STARS = "stars"
    LABELS = "labels"


def widget_kind_for(rate_type: str) -> WidgetKind:
    """Map a Zenloop rateType to a widget; unknown types render numeric labels."""
    if rate_type == WidgetKind.SMILEYS.value:
        return WidgetKind.SMILEYS
    if rate_type == WidgetKind.STARS.value:
        return WidgetKind.STARS
    return WidgetKind.LABELS


def emojis_for_rate_count(rate_count: int) -> list[str]:
    return SMILEY_SEQUENCES.get(rate_count, MINIMAL_SMILEYS)


def padded_label(rating: int) -> str:
    """Pad a numeric label so one- and two-digit options have equal width."""
    if rating > 9:
        return f"{NBSP}{rating}{NBSP}"
    return f"{NBSP}{NBSP}{rating}{NBSP}{NBSP}"


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


@dataclass
class OrderContext:
    """Where the survey is shown and the order context appended to its URL."""
    shop_domain: str
    order_id: str
    locale: str = "default"
    # Post-purchase only: customer_id, product_title, product_variant, total_price, currency
    extra_params: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_post_purchase_input(cls, input_data: Optional[dict], locale: str = "default") -> "OrderContext":
        """
        Build the context from the post-purchase extension's ``inputData``.

        Missing values become empty strings so the query keys are always sent.
        Levels of the wrong shape read as missing.
        """
        input_data = _as_dict(input_data)
        shop = _as_dict(input_data.get("shop"))
        purchase = _as_dict(input_data.get("initialPurchase"))
        line_items = purchase.get("lineItems")
        first_item = _as_dict(line_items[0]) if isinstance(line_items, list) and line_items else {}
        product = _as_dict(first_item.get("product"))
        variant = _as_dict(product.get("variant"))
        shop_money = _as_dict(_as_dict(purchase.get("totalPriceSet")).get("shopMoney"))

        customer_id = purchase.get("customerId")

        return cls(
            shop_domain=str(shop.get("domain") or ""),
            order_id=str(purchase.get("referenceId") or ""),
            locale=locale,
            extra_params={
                "customer_id": "" if customer_id is None else str(customer_id),
                "product_title": str(product.get("title") or ""),
                "product_variant": str(variant.get("title") or ""),
                "total_price": str(shop_money.get("amount") or ""),
                "currency": str(shop_money.get("currencyCode") or ""),
            },
        )


def build_survey_url(
    settings: SurveySettings,
    context: OrderContext,
    satisfaction_level: Optional[int] = None,
    base_url: str = SURVEY_BASE_URL,
) -> str:
    """
    Build the shopper-facing survey URL.

    The receiving survey platform keys its analytics on these parameter
    names; they must not change.
    """
    params = {
        "orgId": settings.org_id,
        "surveyId": settings.survey_id,
        "shop_domain": context.shop_domain,
        "order_id": context.order_id,
    }
    params.update(context.extra_params)
    if satisfaction_level is not None:
        params["satisfaction_level"] = str(satisfaction_level)

    return f"{base_url}?{urlencode(params)}"


@dataclass
class RatingOption:
    rating: int
    label: str
    url: str

    def to_dict(self) -> dict:
        return {"rating": self.rating, "label": self.label, "url": self.url}


@dataclass
class RatingWidget:
    """An inline rating picker; each option navigates to the survey."""
    kind: WidgetKind
    title: str
    options: list[RatingOption]
    min_rate_description: str = ""
    max_rate_description: str = ""

    def star_fill(self, hover_rating: int) -> list[str]:
        """Star icons while hovering ``hover_rating`` (0 = nothing hovered)."""
        return [STAR_FILLED if option.rating <= hover_rating else STAR_EMPTY for option in self.options]

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "title": self.title,
            "minRateDescription": self.min_rate_description,
            "maxRateDescription": self.max_rate_description,
            "options": [option.to_dict() for option in self.options],
        }


def build_rating_widget(
    question: RatingQuestion,
    title: str,
    url_for_rating: Callable[[int], str],
) -> RatingWidget:
    """Choose and populate the widget for a rating question."""
    kind = widget_kind_for(question.rate_type)
    ratings = range(1, min(max(question.rate_count, 0), MAX_RATING_OPTIONS) + 1)

    if kind is WidgetKind.SMILEYS:
        emojis = emojis_for_rate_count(question.rate_count)
        options = [
            RatingOption(
                rating=rating,
                label=emojis[rating - 1] if rating <= len(emojis) else str(rating),
                url=url_for_rating(rating),
            )
            for rating in ratings
        ]
    elif kind is WidgetKind.STARS:
        options = [RatingOption(rating=rating, label=STAR_EMPTY, url=url_for_rating(rating)) for rating in ratings]
    else:
        options = [RatingOption(rating=rating, label=padded_label(rating), url=url_for_rating(rating)) for rating in ratings]

    return RatingWidget(
        kind=kind,
        title=title,
        options=options,
        min_rate_description=question.min_rate_description,
        max_rate_description=question.max_rate_description,
    )


@dataclass
class SurveyPrompt:
    """What to render on the thank-you or post-purchase surface."""
    state: PromptState
    survey_url: Optional[str] = None
    widget: Optional[RatingWidget] = None
    fallback_reason: Optional[str] = None

    @property
    def should_render(self) -> bool:
        return self.state is not PromptState.UNCONFIGURED

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "render": self.should_render,
            "surveyUrl": self.survey_url,
            "widget": self.widget.to_dict() if self.widget else None,
            "fallbackReason": self.fallback_reason,
        }


class SurveyResolver:
    """Resolves the prompt for one order from settings and the survey definition."""

    def __init__(self, zenloop_client: ZenloopClient, base_url: str = SURVEY_BASE_URL):
        self.zenloop = zenloop_client
        self.base_url = base_url

    def _link_prompt(
        self,
        settings: SurveySettings,
        context: OrderContext,
        state: PromptState = PromptState.LINK,
        fallback_reason: Optional[str] = None,
    ) -> SurveyPrompt:
        return SurveyPrompt(
            state=state,
            survey_url=build_survey_url(settings, context, base_url=self.base_url),
            fallback_reason=fallback_reason,
        )

    def initial_prompt(self, settings: Optional[SurveySettings], context: OrderContext) -> SurveyPrompt:
        """The prompt to show before any survey definition has been fetched."""
        if settings is None:
            return SurveyPrompt(state=PromptState.UNCONFIGURED)
        if settings.display_type is DisplayType.FORM:
            return SurveyPrompt(state=PromptState.LOADING)
        return self._link_prompt(settings, context)

    async def resolve(self, settings: Optional[SurveySettings], context: OrderContext) -> SurveyPrompt:
        """
        Resolve the final prompt.

        Only form settings trigger a survey definition fetch.
        """
        initial = self.initial_prompt(settings, context)
        if initial.state is not PromptState.LOADING:
            return initial

        try:
            survey = await self.zenloop.get_public_survey(settings.survey_id)
        except Exception as e:
            logger.warning("Survey definition fetch failed; falling back to link", extra={
                "shop_domain": context.shop_domain,
                "survey_id": settings.survey_id,
                "error_type": type(e).__name__,
            })
            return self._link_prompt(settings, context, PromptState.ERROR, "survey_fetch_failed")

        return self.prompt_for_survey(settings, context, survey)

    def prompt_for_survey(
        self,
        settings: SurveySettings,
        context: OrderContext,
        survey: Optional[SurveyDefinition],
    ) -> SurveyPrompt:
        """Pick link or form once the survey definition is known."""
        if settings.display_type is not DisplayType.FORM:
            return self._link_prompt(settings, context)

        question = survey.first_rating_question() if survey else None
        if question is None:
            logger.info("No rating question in survey; rendering link", extra={
                "shop_domain": context.shop_domain,
                "survey_id": settings.survey_id,
                "survey_found": survey is not None,
            })
            return self._link_prompt(settings, context, fallback_reason="no_rating_question")

        if question.rate_count > MAX_RATING_OPTIONS:
            logger.info("Rating scale too large to render inline; rendering link", extra={
                "shop_domain": context.shop_domain,
                "survey_id": settings.survey_id,
                "rate_count": question.rate_count,
            })
            return self._link_prompt(settings, context, fallback_reason="rating_scale_too_large")

        widget = build_rating_widget(
            question,
            title=survey.title_for_locale(context.locale),
            url_for_rating=lambda rating: build_survey_url(
                settings, context, satisfaction_level=rating, base_url=self.base_url
            ),
        )
        return SurveyPrompt(
            state=PromptState.FORM,
            survey_url=build_survey_url(settings, context, base_url=self.base_url),
            widget=widget,
        )

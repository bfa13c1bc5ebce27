"""Domain models for the personalization engine.

Behavioral events are a tagged union keyed on ``type``; each variant carries
its own typed payload. Everything derived from the event log (profile,
recommendation results, sections) is a plain value object recomputed on
demand.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    computed_field,
    field_validator,
    model_validator,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventType(str, Enum):
    VIEW = "view"
    CLICK = "click"
    IMPRESSION = "impression"
    FEEDBACK = "feedback"
    SEARCH = "search"


class MetricKind(str, Enum):
    IMPRESSION = "impression"
    CLICK = "click"


# ===== Collaborator records =====


class Product(BaseModel):
    """Catalog product record, supplied read-only by the catalog."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str = ""
    category: str
    price: float = 0.0
    rating: float = 0.0
    featured: bool = False
    tags: List[str] = Field(default_factory=list)


class OrderLineItem(BaseModel):
    """Past order line item, used as a category preference signal."""

    model_config = ConfigDict(frozen=True)

    product_id: int
    category: str
    ordered_at: Optional[datetime] = None


# ===== Behavioral events =====


class _BaseEvent(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    timestamp: datetime = Field(default_factory=utcnow)


class ViewEvent(_BaseEvent):
    """A product page or category page view."""

    type: Literal["view"] = "view"
    product_id: Optional[int] = None
    category: Optional[str] = None
    path: Optional[str] = None

    @model_validator(mode="after")
    def _requires_target(self) -> "ViewEvent":
        if self.product_id is None and not self.category:
            raise ValueError("view event needs a product_id or a category")
        return self


class ClickEvent(_BaseEvent):
    """A click on a product, usually from inside a rendered section."""

    type: Literal["click"] = "click"
    product_id: Optional[int] = None
    category: Optional[str] = None
    section_id: Optional[str] = None

    @model_validator(mode="after")
    def _requires_target(self) -> "ClickEvent":
        if self.product_id is None and not self.category and not self.section_id:
            raise ValueError("click event needs a product_id, category or section_id")
        return self


class ImpressionEvent(_BaseEvent):
    """A section or product rendered to the shopper."""

    type: Literal["impression"] = "impression"
    section_id: str
    product_id: Optional[int] = None


class FeedbackEvent(_BaseEvent):
    """Explicit thumbs-up/down on a recommended product."""

    type: Literal["feedback"] = "feedback"
    section_id: str
    product_id: Optional[int] = None
    category: Optional[str] = None
    positive: bool


class SearchEvent(_BaseEvent):
    """A storefront search submitted by the shopper."""

    type: Literal["search"] = "search"
    term: str = Field(..., min_length=1)
    path: Optional[str] = None

    @field_validator("term")
    @classmethod
    def _strip_term(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("search term must not be blank")
        return value


BehaviorEvent = Annotated[
    Union[ViewEvent, ClickEvent, ImpressionEvent, FeedbackEvent, SearchEvent],
    Field(discriminator="type"),
]

behavior_event_adapter: TypeAdapter = TypeAdapter(BehaviorEvent)


# ===== Settings & metrics =====


class PersonalizationSettings(BaseModel):
    """Configuration read by the scoring engine and the section assembler."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    max_sections: int = Field(default=3, ge=0)
    max_items_per_section: int = Field(default=8, ge=0)

    include_recently_viewed: bool = True
    include_most_viewed: bool = True
    include_category_collection: bool = True

    category_weight: float = Field(default=0.5, ge=0)
    view_weight: float = Field(default=0.35, ge=0)
    feedback_weight: float = Field(default=0.15, ge=0)
    recency_weight: float = Field(default=0.7, ge=0)
    frequency_weight: float = Field(default=0.5, ge=0)
    category_feedback_factor: float = Field(default=0.5, ge=0, le=1)

    min_relevance_score: float = Field(default=0.3, ge=0, le=1)
    recent_views_window: int = Field(default=10, ge=1)
    top_categories_count: int = Field(default=3, ge=1)


class FeedbackCounts(BaseModel):
    positive: int = 0
    negative: int = 0


class PersonalizationMetrics(BaseModel):
    """Running counters maintained by the feedback and metrics sink."""

    impressions: int = 0
    clicks: int = 0
    feedback: FeedbackCounts = Field(default_factory=FeedbackCounts)
    last_updated: Optional[datetime] = None

    @computed_field  # type: ignore[misc]
    @property
    def engagement_rate(self) -> float:
        """Clicks per hundred impressions."""
        if self.impressions == 0:
            return 0.0
        return round(self.clicks / self.impressions * 100, 2)

    @computed_field  # type: ignore[misc]
    @property
    def feedback_quality(self) -> float:
        """Share of positive feedback, as a percentage."""
        total = self.feedback.positive + self.feedback.negative
        if total == 0:
            return 0.0
        return round(self.feedback.positive / total * 100, 2)


# ===== Derived profile =====


class CategoryPreference(BaseModel):
    category: str
    weight: float
    count: int


class ProductViewCount(BaseModel):
    product_id: int
    view_count: int


class ProfilePreferences(BaseModel):
    top_categories: List[str] = Field(default_factory=list)
    top_products: List[int] = Field(default_factory=list)
    recent_searches: List[str] = Field(default_factory=list)


class ProfileStats(BaseModel):
    total_events: int = 0
    product_views: int = 0
    category_views: int = 0
    clicks: int = 0
    impressions: int = 0
    feedback: int = 0
    searches: int = 0


class PersonalizationProfile(BaseModel):
    """Snapshot of a shopper's interests, recomputed from the event log."""

    preferences: ProfilePreferences = Field(default_factory=ProfilePreferences)
    category_weights: List[CategoryPreference] = Field(default_factory=list)
    most_viewed: Dict[int, int] = Field(default_factory=dict)
    recent_views: List[ViewEvent] = Field(default_factory=list)
    metrics: PersonalizationMetrics = Field(default_factory=PersonalizationMetrics)
    stats: ProfileStats = Field(default_factory=ProfileStats)
    last_updated: datetime = Field(default_factory=utcnow)

    @property
    def has_signal(self) -> bool:
        return bool(self.category_weights or self.most_viewed or self.recent_views)


# ===== Ranked output =====


class SignalBreakdown(BaseModel):
    category: float = 0.0
    view: float = 0.0
    feedback: float = 0.0

    def any_nonzero(self) -> bool:
        return any(value != 0 for value in (self.category, self.view, self.feedback))


class RecommendationResult(BaseModel):
    """A catalog product wrapped with its relevance score."""

    product: Product
    relevance_score: float = Field(default=0.0, ge=0.0, le=1.0)
    is_personalized: bool = False
    signals: SignalBreakdown = Field(default_factory=SignalBreakdown)


class Section(BaseModel):
    """A titled, ordered group of products ready for display."""

    id: str
    title: str
    description: str = ""
    icon: str = "tag"
    products: List[RecommendationResult] = Field(default_factory=list)
    is_personalized: bool = False

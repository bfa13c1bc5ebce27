"""Section assembler.

Turns the profile and the scored catalog into the ordered list of display
sections for the storefront home page:

1. Recommended For You (only results above the relevance threshold)
2. Recently Viewed
3. Your Favorites (most viewed), if room remains
4. <Category> Collection for the top preferred category, if room remains
5. Featured / Bestsellers fallback when fewer than two sections exist

Building steps 1-4 yields an explicit ``SectionBuildResult``. A failed build
degrades to the fallback sections so that a profile bug never blocks the page.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from src.personalization.exceptions import BuildError
from src.personalization.models import (
    PersonalizationProfile,
    PersonalizationSettings,
    Product,
    RecommendationResult,
    Section,
    utcnow,
)
from src.personalization.profile import ProfileBuilder
from src.personalization.scoring import ScoringEngine

# Configure module logger
logger = logging.getLogger(__name__)

# Minimum number of sections before fallback sections are appended
MIN_SECTIONS = 2

CATEGORY_ICONS = {
    "Dry Fruits": "leaf",
    "Spices": "leaf",
    "Nuts": "leaf",
    "Superfoods": "leaf",
    "Gift Boxes": "box-open",
    "Organic": "leaf",
}


def category_slug(category: str) -> str:
    return re.sub(r"\s+", "-", category.strip().lower())


@dataclass
class SectionBuildResult:
    """Outcome of the personalized build steps."""

    sections: List[Section] = field(default_factory=list)
    error: Optional[BuildError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, error: BuildError) -> "SectionBuildResult":
        return cls(sections=[], error=error)


def _plain(products: Sequence[Product]) -> List[RecommendationResult]:
    return [RecommendationResult(product=p) for p in products]


def fallback_sections(catalog: Sequence[Product], max_items: int) -> List[Section]:
    """Deterministic, non-personalized sections: featured, then bestsellers."""
    sections = []

    featured = [p for p in catalog if p.featured][:max_items]
    if featured:
        sections.append(
            Section(
                id="featured",
                title="Featured Products",
                description="Our handpicked selection of premium products",
                icon="tag",
                products=_plain(featured),
                is_personalized=False,
            )
        )

    # sorted() is stable, so equal ratings keep catalog order
    bestsellers = sorted(catalog, key=lambda p: p.rating or 0.0, reverse=True)[:max_items]
    if bestsellers:
        sections.append(
            Section(
                id="bestsellers",
                title="Bestsellers",
                description="Our most popular products",
                icon="shopping-cart",
                products=_plain(bestsellers),
                is_personalized=False,
            )
        )

    return sections


def truncate_sections(sections: List[Section], settings: PersonalizationSettings) -> List[Section]:
    limited = sections[: settings.max_sections]
    return [
        section.model_copy(update={"products": section.products[: settings.max_items_per_section]})
        for section in limited
    ]


def _time_of_day(now: datetime) -> str:
    if now.hour < 12:
        return "morning"
    if now.hour < 18:
        return "afternoon"
    return "evening"


def welcome_message(
    profile: Optional[PersonalizationProfile],
    first_name: Optional[str] = None,
    now: Optional[datetime] = None,
    store_name: str = "ShopRec",
) -> str:
    """Greeting for the top of the personalized home page."""
    greeting = f"Good {_time_of_day(now or utcnow())}"
    top_categories = profile.preferences.top_categories if profile else []

    if first_name:
        message = f"{greeting}, {first_name}!"
        if top_categories:
            return f"{message} We have some amazing {top_categories[0].lower()} for you today."
        return f"{message} Welcome back to {store_name}."

    message = f"{greeting}! Welcome to {store_name}."
    if top_categories:
        return f"{message} Explore our premium {top_categories[0].lower()} collection."
    return message


class SectionAssembler:
    """Builds display sections from the profile and the scoring engine."""

    def __init__(
        self,
        profile_builder: ProfileBuilder,
        scoring: ScoringEngine,
        settings_provider: Optional[Callable[[], PersonalizationSettings]] = None,
    ):
        self.profile_builder = profile_builder
        self.scoring = scoring
        self.settings_provider = settings_provider or PersonalizationSettings

    def build_personalized(
        self,
        catalog: Sequence[Product],
        settings: PersonalizationSettings,
    ) -> SectionBuildResult:
        """Run the personalized steps, capturing any failure in the result."""
        sections: List[Section] = []
        step = "profile"
        max_items = settings.max_items_per_section

        def has_room() -> bool:
            return len(sections) < settings.max_sections

        try:
            profile = self.profile_builder.get_personalization_profile()
            catalog_by_id: Dict[int, Product] = {p.id: p for p in catalog}

            step = "recommended-for-you"
            scored = self.scoring.score_candidates(catalog, profile=profile)
            scored_by_id = {r.product.id: r for r in scored}

            def wrap(product_ids: Sequence[int]) -> List[RecommendationResult]:
                wrapped = []
                for pid in product_ids:
                    if pid in scored_by_id:
                        wrapped.append(scored_by_id[pid])
                    elif pid in catalog_by_id:
                        wrapped.append(RecommendationResult(product=catalog_by_id[pid]))
                return wrapped[:max_items]

            confident = [r for r in scored if self.scoring.is_confident(r)]
            if confident:
                sections.append(
                    Section(
                        id="recommended-for-you",
                        title="Recommended For You",
                        description="Picked for you based on your browsing",
                        icon="thumbs-up",
                        products=confident[:max_items],
                        is_personalized=True,
                    )
                )

            step = "recently-viewed"
            if settings.include_recently_viewed:
                recent = wrap([v.product_id for v in profile.recent_views])
                if recent:
                    sections.append(
                        Section(
                            id="recently-viewed",
                            title="Recently Viewed",
                            description="Products you've viewed recently",
                            icon="history",
                            products=recent,
                            is_personalized=True,
                        )
                    )

            step = "most-viewed"
            if settings.include_most_viewed and has_room() and profile.most_viewed:
                favorites = wrap(list(profile.most_viewed))
                if favorites:
                    sections.append(
                        Section(
                            id="most-viewed",
                            title="Your Favorites",
                            description="Products you've shown interest in",
                            icon="heart",
                            products=favorites,
                            is_personalized=True,
                        )
                    )

            step = "category-collection"
            if settings.include_category_collection and has_room():
                for category in profile.preferences.top_categories:
                    in_category = [r for r in scored if r.product.category == category]
                    if not in_category:
                        continue
                    sections.append(
                        Section(
                            id=f"category-{category_slug(category)}",
                            title=f"{category} Collection",
                            description=f"Our best {category.lower()} products",
                            icon=CATEGORY_ICONS.get(category, "tag"),
                            products=in_category[:max_items],
                            is_personalized=True,
                        )
                    )
                    break

        except Exception as e:
            return SectionBuildResult.failure(BuildError(step, e))

        return SectionBuildResult(sections=sections)

    def assemble(self, catalog: Sequence[Product]) -> List[Section]:
        """Produce the final, bounded list of sections.

        Never raises for profile or scoring problems; those degrade to the
        fallback sections.
        """
        start_time = time.time()
        settings = self.settings_provider()
        catalog = list(catalog)

        if not settings.enabled:
            logger.info("Personalization disabled, using fallback sections")
            sections = fallback_sections(catalog, settings.max_items_per_section)
        else:
            result = self.build_personalized(catalog, settings)
            if result.ok:
                sections = result.sections
                if len(sections) < MIN_SECTIONS:
                    existing = {s.id for s in sections}
                    sections = sections + [
                        s
                        for s in fallback_sections(catalog, settings.max_items_per_section)
                        if s.id not in existing
                    ]
            else:
                original = result.error.original
                logger.error(
                    "Personalized section build failed, degrading to fallback",
                    extra=result.error.details,
                    exc_info=(type(original), original, original.__traceback__),
                )
                sections = fallback_sections(catalog, settings.max_items_per_section)

        sections = truncate_sections(sections, settings)

        logger.info(
            "Assembled sections",
            extra={
                "section_ids": [s.id for s in sections],
                "num_personalized": sum(1 for s in sections if s.is_personalized),
                "duration_ms": round((time.time() - start_time) * 1000, 2),
            },
        )
        return sections

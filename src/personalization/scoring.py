"""Heuristic scoring engine.

Scores catalog products against a personalization profile. Each product gets
three signals, each normalized to [0, 1] (feedback to [-1, 1]):

- category affinity: rank weight of the product's category among the
  shopper's preferred categories
- view signal: blend of view frequency and view recency for the product
- explicit feedback: thumbs-up/down on the product, plus a damped share of
  feedback given to other products in the same category

The relevance score is the weighted sum, clipped to [0, 1].
"""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
from pydantic import ValidationError

from src.personalization.models import (
    EventType,
    FeedbackEvent,
    PersonalizationProfile,
    PersonalizationSettings,
    Product,
    RecommendationResult,
    SignalBreakdown,
)
from src.personalization.profile import ProfileBuilder

# Configure module logger
logger = logging.getLogger(__name__)

Candidate = Union[Product, Dict[str, Any]]


def _as_product(candidate: Candidate) -> Product:
    if isinstance(candidate, Product):
        return candidate
    return Product.model_validate(candidate)


def category_affinities(profile: PersonalizationProfile) -> Dict[str, float]:
    """Map each preferred category to a linear rank weight.

    The top category gets 1.0, the n-th of n gets 1/n; categories without
    recorded affinity are absent (weight 0).
    """
    ranked = [pref.category for pref in profile.category_weights]
    n = len(ranked)
    return {category: 1.0 - rank / n for rank, category in enumerate(ranked)}


def view_signals(
    profile: PersonalizationProfile,
    settings: PersonalizationSettings,
) -> Dict[int, float]:
    """Blend normalized view frequency and view recency per product."""
    max_count = max(profile.most_viewed.values(), default=0)
    window = max(settings.recent_views_window, 1)
    recency = {
        view.product_id: 1.0 - position / window
        for position, view in enumerate(profile.recent_views)
        if view.product_id is not None
    }

    total_weight = settings.frequency_weight + settings.recency_weight
    if total_weight <= 0:
        return {}

    signals: Dict[int, float] = {}
    for product_id in set(profile.most_viewed) | set(recency):
        frequency = profile.most_viewed.get(product_id, 0) / max_count if max_count else 0.0
        blended = (
            settings.frequency_weight * frequency
            + settings.recency_weight * recency.get(product_id, 0.0)
        ) / total_weight
        signals[product_id] = blended
    return signals


class FeedbackTally:
    """Net thumbs-up/down counts per product and per category."""

    def __init__(self) -> None:
        self.by_product: Dict[int, List[int]] = defaultdict(lambda: [0, 0])
        self.by_category: Dict[str, List[int]] = defaultdict(lambda: [0, 0])
        self.by_product_in_category: Dict[Tuple[str, int], List[int]] = defaultdict(lambda: [0, 0])

    @classmethod
    def from_events(
        cls,
        events: Iterable[FeedbackEvent],
        category_of: Dict[int, str],
    ) -> "FeedbackTally":
        tally = cls()
        for event in events:
            slot = 0 if event.positive else 1
            category = event.category or category_of.get(event.product_id)
            if event.product_id is not None:
                tally.by_product[event.product_id][slot] += 1
            if category:
                tally.by_category[category][slot] += 1
                if event.product_id is not None:
                    tally.by_product_in_category[(category, event.product_id)][slot] += 1
        return tally

    @staticmethod
    def _ratio(positive: int, negative: int) -> float:
        total = positive + negative
        if total == 0:
            return 0.0
        return (positive - negative) / total

    def signal_for(self, product: Product, category_factor: float) -> float:
        own_pos, own_neg = self.by_product.get(product.id, (0, 0))
        direct = self._ratio(own_pos, own_neg)

        cat_pos, cat_neg = self.by_category.get(product.category, (0, 0))
        mine_pos, mine_neg = self.by_product_in_category.get((product.category, product.id), (0, 0))
        siblings = self._ratio(cat_pos - mine_pos, cat_neg - mine_neg)

        return float(np.clip(direct + category_factor * siblings, -1.0, 1.0))


class ScoringEngine:
    """Assigns relevance scores to candidate products.

    Args:
        profile_builder: Source of profiles and of the feedback events.
        settings_provider: Callable returning current settings.
    """

    def __init__(
        self,
        profile_builder: ProfileBuilder,
        settings_provider: Optional[Callable[[], PersonalizationSettings]] = None,
    ):
        self.profile_builder = profile_builder
        self.settings_provider = settings_provider or PersonalizationSettings

    def is_confident(self, result: RecommendationResult) -> bool:
        """Whether a result clears the confidently-personalized threshold."""
        return result.relevance_score > self.settings_provider().min_relevance_score

    def score_candidates(
        self,
        candidates: Sequence[Candidate],
        profile: Optional[PersonalizationProfile] = None,
        exclude_ids: Optional[Iterable[int]] = None,
    ) -> List[RecommendationResult]:
        """Score every candidate and return them ranked.

        Candidates that fail validation or scoring are logged and left out.
        Ties are broken by the featured flag, then by ascending id.
        """
        settings = self.settings_provider()
        if profile is None:
            profile = self.profile_builder.get_personalization_profile()
        excluded = set(exclude_ids or [])

        affinities = category_affinities(profile)
        views = view_signals(profile, settings)

        products: List[Product] = []
        rows: List[Tuple[float, float, float]] = []
        parsed: List[Product] = []
        for candidate in candidates:
            try:
                parsed.append(_as_product(candidate))
            except (ValidationError, TypeError, ValueError) as e:
                logger.warning(
                    "Skipping invalid candidate",
                    extra={"error": str(e), "error_type": type(e).__name__},
                )

        category_of = {p.id: p.category for p in parsed}
        feedback_events = self.profile_builder.events.query_by_type(EventType.FEEDBACK)
        tally = FeedbackTally.from_events(feedback_events, category_of)

        for product in parsed:
            if product.id in excluded:
                continue
            try:
                rows.append(
                    (
                        affinities.get(product.category, 0.0),
                        views.get(product.id, 0.0),
                        tally.signal_for(product, settings.category_feedback_factor),
                    )
                )
                products.append(product)
            except (TypeError, ValueError, KeyError, AttributeError) as e:
                logger.warning(
                    "Failed to score candidate",
                    extra={"product_id": product.id, "error": str(e)},
                )

        if not products:
            return []

        signals = np.array(rows, dtype=float)
        weights = np.array(
            [settings.category_weight, settings.view_weight, settings.feedback_weight],
            dtype=float,
        )
        total_weight = weights.sum()
        if total_weight > 0:
            scores = np.clip(signals @ (weights / total_weight), 0.0, 1.0)
        else:
            scores = np.zeros(len(products))
        scores = np.round(scores, 6)

        ids = np.array([p.id for p in products])
        not_featured = np.array([not p.featured for p in products])
        order = np.lexsort((ids, not_featured, -scores))

        results = []
        for idx in order:
            breakdown = SignalBreakdown(
                category=round(float(signals[idx, 0]), 6),
                view=round(float(signals[idx, 1]), 6),
                feedback=round(float(signals[idx, 2]), 6),
            )
            results.append(
                RecommendationResult(
                    product=products[idx],
                    relevance_score=float(scores[idx]),
                    is_personalized=breakdown.any_nonzero(),
                    signals=breakdown,
                )
            )
        return results

    def get_personalized_recommendations(
        self,
        candidates: Sequence[Candidate],
        count: int = 8,
        exclude_ids: Optional[Iterable[int]] = None,
        profile: Optional[PersonalizationProfile] = None,
    ) -> List[RecommendationResult]:
        """Return the top ``count`` scored candidates.

        Args:
            candidates: Catalog products (or mappings with product fields).
            count: Maximum number of results.
            exclude_ids: Product ids to leave out.
            profile: Precomputed profile; built from the event log if None.

        Returns:
            Ranked results, highest relevance first.
        """
        if count <= 0:
            return []

        results = self.score_candidates(candidates, profile=profile, exclude_ids=exclude_ids)
        top = results[:count]

        logger.info(
            "Scored personalized recommendations",
            extra={
                "num_candidates": len(candidates),
                "num_results": len(top),
                "num_personalized": sum(1 for r in top if r.is_personalized),
            },
        )
        return top

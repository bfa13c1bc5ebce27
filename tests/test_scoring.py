"""Tests for the heuristic scoring engine."""

import pytest

from src.personalization.models import PersonalizationProfile, Product
from src.personalization.scoring import FeedbackTally, category_affinities, view_signals


def ids(results):
    return [r.product.id for r in results]


def test_cold_start_returns_unpersonalized_featured_first(service, catalog):
    """Without any events every score is zero and ties fall back to featured, then id."""
    results = service.get_personalized_recommendations(catalog, count=8)

    assert ids(results) == [1, 3, 5, 7, 2, 4, 6, 8]
    assert all(r.relevance_score == 0.0 for r in results)
    assert not any(r.is_personalized for r in results)


def test_viewed_product_outranks_unviewed(service, catalog):
    service.track_product_view(6)

    results = service.get_personalized_recommendations(catalog, count=8)
    by_id = {r.product.id: r for r in results}

    assert by_id[6].relevance_score == pytest.approx(0.85)
    assert by_id[6].relevance_score > by_id[4].relevance_score
    assert by_id[6].is_personalized
    assert ids(results)[0] == 6


def test_negative_feedback_lowers_score(service, catalog):
    service.track_product_view(1)
    service.track_product_view(1)
    before = {r.product.id: r for r in service.get_personalized_recommendations(catalog)}

    service.record_feedback("recommended-for-you", 1, positive=False)
    after = {r.product.id: r for r in service.get_personalized_recommendations(catalog)}

    assert before[1].relevance_score == pytest.approx(0.85)
    assert after[1].relevance_score == pytest.approx(0.7)
    assert after[1].signals.feedback == pytest.approx(-1.0)


def test_feedback_spreads_to_same_category(service, catalog):
    service.track_category_view("Spices")
    service.record_feedback("recommended-for-you", 1, positive=True)

    by_id = {r.product.id: r for r in service.get_personalized_recommendations(catalog)}

    # sibling share is damped by category_feedback_factor
    assert by_id[2].signals.feedback == pytest.approx(0.5)
    assert by_id[2].relevance_score == pytest.approx(0.575)
    assert by_id[4].signals.feedback == 0.0


def test_negative_feedback_spreads_to_same_category(service, catalog):
    service.track_category_view("Spices")
    service.record_feedback("recommended-for-you", 1, positive=False)

    by_id = {r.product.id: r for r in service.get_personalized_recommendations(catalog)}

    assert by_id[2].relevance_score == pytest.approx(0.425)


def test_results_are_ordered_by_score_then_featured_then_id(service, catalog):
    service.track_product_view(4)
    service.track_category_view("Nuts")
    service.track_category_view("Spices")
    service.record_feedback("recommended-for-you", 8, positive=True)

    results = service.get_personalized_recommendations(catalog, count=8)

    keys = [(-r.relevance_score, not r.product.featured, r.product.id) for r in results]
    assert keys == sorted(keys)


def test_scores_stay_within_bounds(service, catalog):
    for product_id in [1, 1, 3, 5, 5, 5]:
        service.track_product_view(product_id)
    service.record_feedback("recently-viewed", 5, positive=True)
    service.record_feedback("recently-viewed", 3, positive=False)

    for result in service.get_personalized_recommendations(catalog, count=8):
        assert 0.0 <= result.relevance_score <= 1.0
        assert -1.0 <= result.signals.feedback <= 1.0


def test_exclude_ids_and_count(service, catalog):
    results = service.get_personalized_recommendations(catalog, count=3, exclude_ids=[1, 3])

    assert ids(results) == [5, 7, 2]


def test_zero_count_returns_nothing(service, catalog):
    service.track_product_view(1)

    assert service.get_personalized_recommendations(catalog, count=0) == []


def test_defaults_to_whole_catalog(service):
    assert len(service.get_personalized_recommendations(count=20)) == 8


def test_invalid_candidates_are_skipped(service, catalog):
    candidates = [
        {"id": "not-a-number", "category": "Spices"},
        {"name": "missing id and category"},
        {"id": 99, "category": "Spices", "name": "Black Pepper"},
        catalog[1],
    ]
    service.track_category_view("Spices")

    results = service.get_personalized_recommendations(candidates)

    assert sorted(ids(results)) == [2, 99]


def test_zero_weights_give_zero_scores(service, catalog):
    service.track_product_view(1)
    service.update_personalization_settings(
        {"category_weight": 0, "view_weight": 0, "feedback_weight": 0}
    )

    results = service.get_personalized_recommendations(catalog)

    assert all(r.relevance_score == 0.0 for r in results)


def test_confidence_threshold(service, catalog):
    service.track_category_view("Spices")
    results = {r.product.id: r for r in service.get_personalized_recommendations(catalog)}

    assert service.scoring.is_confident(results[1])
    assert not service.scoring.is_confident(results[3])

    service.update_personalization_settings({"min_relevance_score": 0.5})
    assert not service.scoring.is_confident(results[1])


def test_category_affinities_rank_weights():
    profile = PersonalizationProfile(
        category_weights=[
            {"category": "Spices", "weight": 3.0, "count": 3},
            {"category": "Nuts", "weight": 1.0, "count": 1},
        ]
    )

    assert category_affinities(profile) == {"Spices": 1.0, "Nuts": 0.5}
    assert category_affinities(PersonalizationProfile()) == {}


def test_view_signals_blend_frequency_and_recency(service):
    service.track_product_view(3)
    service.track_product_view(3)
    service.track_product_view(6)
    profile = service.get_personalization_profile()

    signals = view_signals(profile, service.get_personalization_settings())

    assert signals[3] == pytest.approx((0.5 * 1.0 + 0.7 * 0.9) / 1.2)
    assert signals[6] == pytest.approx((0.5 * 0.5 + 0.7 * 1.0) / 1.2)


def test_feedback_tally_counts_without_category():
    tally = FeedbackTally.from_events([], {})
    product = Product(id=1, category="Spices")

    assert tally.signal_for(product, 0.5) == 0.0

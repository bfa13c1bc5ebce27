"""Tests for the feedback and metrics sink."""

import pytest

from conftest import NOW, BrokenBackendStore, fixed_clock
from src.personalization.events import EventStore
from src.personalization.feedback import MetricsSink
from src.personalization.models import (
    ClickEvent,
    EventType,
    FeedbackEvent,
    ImpressionEvent,
    MetricKind,
    PersonalizationMetrics,
)
from src.personalization.storage import METRICS_KEY


@pytest.fixture
def events(store) -> EventStore:
    return EventStore(store)


@pytest.fixture
def sink(store, events) -> MetricsSink:
    return MetricsSink(store, events)


def test_fresh_sink_reports_zeros(sink):
    metrics = sink.get_metrics()

    assert metrics.impressions == 0
    assert metrics.clicks == 0
    assert metrics.engagement_rate == 0.0
    assert metrics.feedback_quality == 0.0
    assert metrics.last_updated is None


def test_impressions_and_clicks_are_counted(sink):
    sink.update_personalization_metrics("impression", section_id="featured")
    sink.update_personalization_metrics(MetricKind.IMPRESSION, section_id="featured")
    sink.update_personalization_metrics("click", section_id="featured", product_id=3)

    metrics = sink.get_metrics()

    assert metrics.impressions == 2
    assert metrics.clicks == 1
    assert metrics.engagement_rate == 50.0
    assert metrics.last_updated is not None


def test_duplicate_impressions_are_counted(sink):
    for _ in range(3):
        sink.update_personalization_metrics("impression", section_id="bestsellers", product_id=3)

    assert sink.get_metrics().impressions == 3


def test_unknown_metric_kind_raises(sink):
    with pytest.raises(ValueError):
        sink.update_personalization_metrics("purchase")

    assert sink.get_metrics().impressions == 0


def test_actions_are_appended_to_event_log(sink, events):
    sink.update_personalization_metrics("impression")
    sink.update_personalization_metrics("click", section_id="most-viewed", product_id=4, category="Nuts")

    impression, click = events.all_events()

    assert isinstance(impression, ImpressionEvent)
    assert impression.section_id == "unknown"
    assert isinstance(click, ClickEvent)
    assert click.category == "Nuts"
    assert click.section_id == "most-viewed"


def test_feedback_updates_counters_and_log(sink, events):
    sink.record_feedback("recommended-for-you", 1, positive=True, category="Spices")
    sink.record_feedback("recommended-for-you", 2, positive=True)
    sink.record_feedback("recommended-for-you", 3, positive=False)

    metrics = sink.get_metrics()
    logged = events.query_by_type(EventType.FEEDBACK)

    assert metrics.feedback.positive == 2
    assert metrics.feedback.negative == 1
    assert metrics.feedback_quality == pytest.approx(66.67)
    assert [e.product_id for e in logged] == [3, 2, 1]
    assert isinstance(logged[-1], FeedbackEvent)
    assert logged[-1].category == "Spices"


def test_write_failures_are_swallowed(store, sink, events):
    store.fail_writes = True

    sink.update_personalization_metrics("impression", section_id="featured")
    sink.record_feedback("featured", 1, positive=False)

    store.fail_writes = False
    assert sink.get_metrics().impressions == 0
    assert len(events) == 0


def test_read_failure_reports_zeros(store, sink):
    sink.update_personalization_metrics("click", section_id="featured")
    store.fail_reads = True

    assert sink.get_metrics() == PersonalizationMetrics()


def test_malformed_metrics_blob_is_reset(store, sink):
    store.set(METRICS_KEY, '{"impressions": "lots"}')

    assert sink.get_metrics().impressions == 0

    sink.update_personalization_metrics("impression", section_id="featured")
    assert sink.get_metrics().impressions == 1


def test_reset_metrics(store, sink):
    sink.update_personalization_metrics("impression", section_id="featured")

    sink.reset_metrics()

    assert sink.get_metrics().impressions == 0
    assert store.get(METRICS_KEY) is None


def test_actions_are_stamped_with_injected_clock(store, events):
    sink = MetricsSink(store, events, clock=fixed_clock)

    sink.update_personalization_metrics("impression", section_id="featured")
    sink.update_personalization_metrics("click", section_id="featured", product_id=3)
    sink.record_feedback("featured", 3, positive=True)

    assert [e.timestamp for e in events.all_events()] == [NOW, NOW, NOW]
    assert sink.get_metrics().last_updated == NOW


def test_service_stamps_every_event_with_its_clock(service):
    service.track_product_view(1)
    service.update_personalization_metrics("click", section_id="recently-viewed", product_id=3)
    service.record_feedback("recently-viewed", 3, positive=False)
    service.track_search("almonds")

    stamps = {e.type: e.timestamp for e in service.events.all_events()}

    assert stamps == {"view": NOW, "click": NOW, "feedback": NOW, "search": NOW}


def test_non_storage_backend_errors_are_swallowed():
    store = BrokenBackendStore()
    sink = MetricsSink(store, EventStore(store))

    sink.update_personalization_metrics("click", section_id="featured", product_id=1)
    sink.record_feedback("featured", 1, positive=True)
    sink.reset_metrics()

    assert sink.get_metrics().clicks == 0
    unreadable = BrokenBackendStore(fail_reads=True)
    assert MetricsSink(unreadable, EventStore(unreadable)).get_metrics() == PersonalizationMetrics()

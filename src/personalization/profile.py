"""Profile builder.

Aggregates the behavioral event log and the shopper's purchase history into a
``PersonalizationProfile``: recency-weighted category affinities, most viewed
products, recent distinct product views and recent searches. The profile is
never persisted; it is a pure function of the log, the purchase history and
the current time.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

import pandas as pd

from src.personalization.events import EventStore
from src.personalization.feedback import MetricsSink
from src.personalization.models import (
    BehaviorEvent,
    CategoryPreference,
    EventType,
    OrderLineItem,
    PersonalizationMetrics,
    PersonalizationProfile,
    PersonalizationSettings,
    ProductViewCount,
    ProfilePreferences,
    ProfileStats,
    SearchEvent,
    ViewEvent,
    utcnow,
)

# Configure module logger
logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400
DEFAULT_TOP_CATEGORIES = 5
DEFAULT_MOST_VIEWED = 10
DEFAULT_RECENT_VIEWS = 10
TOP_PRODUCTS_COUNT = 5
DEFAULT_SEARCH_HISTORY = 20
RECENT_SEARCHES_COUNT = 3

EVENT_COLUMNS = ["seq", "type", "timestamp", "product_id", "category", "term"]


def events_to_frame(events: Sequence[BehaviorEvent]) -> pd.DataFrame:
    """Flatten events into a DataFrame, one row per event in append order."""
    rows = [
        {
            "seq": seq,
            "type": event.type,
            "timestamp": event.timestamp,
            "product_id": getattr(event, "product_id", None),
            "category": getattr(event, "category", None),
            "term": getattr(event, "term", None),
        }
        for seq, event in enumerate(events)
    ]
    frame = pd.DataFrame(rows, columns=EVENT_COLUMNS)
    frame["timestamp"] = pd.to_datetime(frame["timestamp"], utc=True)
    frame["product_id"] = frame["product_id"].astype("Int64")
    return frame


def _as_utc(now: datetime) -> pd.Timestamp:
    stamp = pd.Timestamp(now)
    if stamp.tzinfo is None:
        return stamp.tz_localize(timezone.utc)
    return stamp.tz_convert(timezone.utc)


def preferred_categories(
    frame: pd.DataFrame,
    purchases: Sequence[OrderLineItem],
    now: datetime,
    top_n: Optional[int] = None,
) -> List[CategoryPreference]:
    """Rank categories by recency-weighted frequency.

    Each view/click carrying a category and each purchased line item adds
    ``1 / (1 + age_in_days)`` to its category. Ties are broken by raw count,
    then by the most recent interaction, then by name.
    """
    now_ts = _as_utc(now)

    interactions = frame[
        frame["type"].isin([EventType.VIEW.value, EventType.CLICK.value])
        & frame["category"].notna()
        & (frame["category"] != "")
    ][["category", "timestamp"]]

    if purchases:
        purchased = pd.DataFrame(
            {
                "category": [item.category for item in purchases],
                "timestamp": pd.to_datetime(
                    [item.ordered_at or now_ts for item in purchases], utc=True
                ),
            }
        )
        interactions = pd.concat([interactions, purchased], ignore_index=True)

    if interactions.empty:
        return []

    age_days = (now_ts - interactions["timestamp"]).dt.total_seconds() / SECONDS_PER_DAY
    interactions = interactions.assign(weight=1.0 / (1.0 + age_days.clip(lower=0)))

    ranked = (
        interactions.groupby("category")
        .agg(
            weight=("weight", "sum"),
            raw_count=("weight", "size"),
            last_seen=("timestamp", "max"),
        )
        .reset_index()
        .sort_values(
            ["weight", "raw_count", "last_seen", "category"],
            ascending=[False, False, False, True],
            kind="mergesort",
        )
    )
    if top_n is not None:
        ranked = ranked.head(max(top_n, 0))

    return [
        CategoryPreference(
            category=row.category,
            weight=round(float(row.weight), 6),
            count=int(row.raw_count),
        )
        for row in ranked.itertuples(index=False)
    ]


def most_viewed_products(frame: pd.DataFrame, limit: Optional[int] = None) -> List[ProductViewCount]:
    """Count ``view`` events per product, highest first."""
    views = frame[(frame["type"] == EventType.VIEW.value) & frame["product_id"].notna()]
    if views.empty:
        return []

    counts = (
        views.groupby("product_id")
        .agg(view_count=("seq", "size"), last_seq=("seq", "max"))
        .reset_index()
        .sort_values(
            ["view_count", "last_seq", "product_id"],
            ascending=[False, False, True],
            kind="mergesort",
        )
    )
    if limit is not None:
        counts = counts.head(max(limit, 0))

    return [
        ProductViewCount(product_id=int(row.product_id), view_count=int(row.view_count))
        for row in counts.itertuples(index=False)
    ]


def recent_product_views(
    frame: pd.DataFrame,
    events: Sequence[BehaviorEvent],
    limit: Optional[int] = None,
) -> List[ViewEvent]:
    """Most recent distinct product views, newest first, in append order."""
    views = frame[(frame["type"] == EventType.VIEW.value) & frame["product_id"].notna()]
    latest = views.iloc[::-1].drop_duplicates(subset="product_id", keep="first")
    if limit is not None:
        latest = latest.head(max(limit, 0))
    return [events[int(seq)] for seq in latest["seq"]]


def recent_category_views(
    frame: pd.DataFrame,
    events: Sequence[BehaviorEvent],
    limit: Optional[int] = None,
) -> List[ViewEvent]:
    views = frame[
        (frame["type"] == EventType.VIEW.value)
        & frame["product_id"].isna()
        & frame["category"].notna()
    ]
    latest = views.iloc[::-1]
    if limit is not None:
        latest = latest.head(max(limit, 0))
    return [events[int(seq)] for seq in latest["seq"]]


def search_history(
    frame: pd.DataFrame,
    events: Sequence[BehaviorEvent],
    limit: Optional[int] = DEFAULT_SEARCH_HISTORY,
) -> List[SearchEvent]:
    """Distinct search terms, newest first; a repeated term keeps its latest search."""
    searches = frame[(frame["type"] == EventType.SEARCH.value) & frame["term"].notna()]
    latest = searches.iloc[::-1].drop_duplicates(subset="term", keep="first")
    if limit is not None:
        latest = latest.head(max(limit, 0))
    return [events[int(seq)] for seq in latest["seq"]]


class ProfileBuilder:
    """Builds profiles from an event store and a purchase history.

    Args:
        events: Event store to read from.
        purchase_history: Past order line items.
        metrics: Metrics sink providing the running counters snapshot.
        settings_provider: Callable returning current settings.
        clock: Callable returning "now"; injectable for deterministic tests.
    """

    def __init__(
        self,
        events: EventStore,
        purchase_history: Optional[Sequence[OrderLineItem]] = None,
        metrics: Optional[MetricsSink] = None,
        settings_provider: Optional[Callable[[], PersonalizationSettings]] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.events = events
        self.purchase_history = list(purchase_history or [])
        self.metrics = metrics
        self.settings_provider = settings_provider or PersonalizationSettings
        self.clock = clock

    def _load(self):
        events = self.events.all_events()
        return events, events_to_frame(events)

    def get_preferred_categories(self, top_n: int = DEFAULT_TOP_CATEGORIES) -> List[CategoryPreference]:
        _, frame = self._load()
        return preferred_categories(frame, self.purchase_history, self.clock(), top_n)

    def get_most_viewed_products(self, limit: int = DEFAULT_MOST_VIEWED) -> List[ProductViewCount]:
        _, frame = self._load()
        return most_viewed_products(frame, limit)

    def get_recent_product_views(self, limit: int = DEFAULT_RECENT_VIEWS) -> List[ViewEvent]:
        events, frame = self._load()
        return recent_product_views(frame, events, limit)

    def get_recent_category_views(self, limit: int = 5) -> List[ViewEvent]:
        events, frame = self._load()
        return recent_category_views(frame, events, limit)

    def get_search_history(self, limit: int = DEFAULT_SEARCH_HISTORY) -> List[SearchEvent]:
        events, frame = self._load()
        return search_history(frame, events, limit)

    def get_personalization_profile(self) -> PersonalizationProfile:
        """Compose the full profile from a single read of the event log."""
        now = self.clock()
        settings = self.settings_provider()
        events, frame = self._load()

        categories = preferred_categories(frame, self.purchase_history, now)
        viewed = most_viewed_products(frame)
        recent = recent_product_views(frame, events, settings.recent_views_window)
        searches = search_history(frame, events, RECENT_SEARCHES_COUNT)
        metrics = self.metrics.get_metrics() if self.metrics else PersonalizationMetrics()

        type_counts = frame["type"].value_counts()
        views = frame[frame["type"] == EventType.VIEW.value]
        stats = ProfileStats(
            total_events=len(frame),
            product_views=int(views["product_id"].notna().sum()),
            category_views=int(views["product_id"].isna().sum()),
            clicks=int(type_counts.get(EventType.CLICK.value, 0)),
            impressions=int(type_counts.get(EventType.IMPRESSION.value, 0)),
            feedback=int(type_counts.get(EventType.FEEDBACK.value, 0)),
            searches=int(type_counts.get(EventType.SEARCH.value, 0)),
        )

        profile = PersonalizationProfile(
            preferences=ProfilePreferences(
                top_categories=[c.category for c in categories[: settings.top_categories_count]],
                top_products=[v.product_id for v in viewed[:TOP_PRODUCTS_COUNT]],
                recent_searches=[s.term for s in searches],
            ),
            category_weights=categories,
            most_viewed={v.product_id: v.view_count for v in viewed},
            recent_views=recent,
            metrics=metrics,
            stats=stats,
            last_updated=now,
        )

        logger.debug(
            "Built personalization profile",
            extra={
                "total_events": stats.total_events,
                "num_categories": len(categories),
                "num_viewed_products": len(viewed),
            },
        )
        return profile

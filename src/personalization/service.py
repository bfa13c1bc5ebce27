"""Service facade exposing the personalization engine to the UI layer.

Wires the event store, settings store, metrics sink, profile builder, scoring
engine and section assembler around one blob store. Every dependency is
passed in explicitly; there is no module-level state.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from src.personalization.catalog import load_catalog, load_order_history
from src.personalization.config import EngineConfig
from src.personalization.events import DEFAULT_MAX_EVENTS, EventStore
from src.personalization.feedback import MetricsSink
from src.personalization.models import (
    MetricKind,
    OrderLineItem,
    PersonalizationMetrics,
    PersonalizationProfile,
    PersonalizationSettings,
    Product,
    RecommendationResult,
    SearchEvent,
    Section,
    ViewEvent,
    utcnow,
)
from src.personalization.profile import DEFAULT_SEARCH_HISTORY, ProfileBuilder
from src.personalization.scoring import Candidate, ScoringEngine
from src.personalization.sections import SectionAssembler, welcome_message
from src.personalization.settings import SettingsStore
from src.personalization.storage import BlobStore, FileBlobStore, InMemoryBlobStore

# Configure module logger
logger = logging.getLogger(__name__)


class PersonalizationService:
    """Entry point for one shopper's personalization state.

    Args:
        store: Blob store holding events, settings and metrics.
        catalog: Catalog products used for sections and lookups.
        purchase_history: Past order line items of the shopper.
        max_events: Capacity of the event log.
        clock: Callable returning "now".
    """

    def __init__(
        self,
        store: BlobStore,
        catalog: Optional[Sequence[Product]] = None,
        purchase_history: Optional[Sequence[OrderLineItem]] = None,
        max_events: int = DEFAULT_MAX_EVENTS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.catalog: List[Product] = list(catalog or [])
        self.clock = clock

        self.events = EventStore(store, max_events=max_events)
        self.settings_store = SettingsStore(store)
        self.metrics = MetricsSink(store, self.events, clock=clock)
        self.profile_builder = ProfileBuilder(
            self.events,
            purchase_history=purchase_history,
            metrics=self.metrics,
            settings_provider=self.settings_store.get_personalization_settings,
            clock=clock,
        )
        self.scoring = ScoringEngine(
            self.profile_builder,
            settings_provider=self.settings_store.get_personalization_settings,
        )
        self.assembler = SectionAssembler(
            self.profile_builder,
            self.scoring,
            settings_provider=self.settings_store.get_personalization_settings,
        )

    @classmethod
    def from_config(cls, config: EngineConfig) -> "PersonalizationService":
        """Build a service from runtime configuration."""
        store: BlobStore
        if config.storage_dir:
            store = FileBlobStore(config.storage_dir)
        else:
            logger.warning("No storage directory configured, events are kept in memory only")
            store = InMemoryBlobStore()

        catalog = load_catalog(config.catalog_path) if config.catalog_path else []
        orders = load_order_history(config.orders_path) if config.orders_path else []

        return cls(
            store,
            catalog=catalog,
            purchase_history=orders,
            max_events=config.max_events,
        )

    # ----- catalog -----

    def get_product(self, product_id: int) -> Optional[Product]:
        for product in self.catalog:
            if product.id == product_id:
                return product
        return None

    def _category_of(self, product_id: Optional[int]) -> Optional[str]:
        if product_id is None:
            return None
        product = self.get_product(product_id)
        return product.category if product else None

    # ----- settings -----

    def get_personalization_settings(self) -> PersonalizationSettings:
        return self.settings_store.get_personalization_settings()

    def update_personalization_settings(self, partial: Dict[str, Any]) -> PersonalizationSettings:
        return self.settings_store.update_personalization_settings(partial)

    def reset_personalization_settings(self) -> PersonalizationSettings:
        return self.settings_store.reset_personalization_settings()

    # ----- tracking -----

    def track_product_view(self, product_id: int, path: Optional[str] = None) -> bool:
        """Record a product page view, tagging the product's category."""
        event = ViewEvent(
            product_id=product_id,
            category=self._category_of(product_id),
            path=path or f"/product/{product_id}",
            timestamp=self.clock(),
        )
        return self.events.record(event)

    def track_category_view(self, category: str, path: Optional[str] = None) -> bool:
        event = ViewEvent(category=category, path=path, timestamp=self.clock())
        return self.events.record(event)

    def track_search(self, term: str, path: Optional[str] = None) -> bool:
        """Record a storefront search; blank terms are rejected with ValueError."""
        event = SearchEvent(term=term, path=path, timestamp=self.clock())
        return self.events.record(event)

    def update_personalization_metrics(
        self,
        kind: Union[MetricKind, str],
        section_id: Optional[str] = None,
        product_id: Optional[int] = None,
    ) -> None:
        self.metrics.update_personalization_metrics(
            kind,
            section_id=section_id,
            product_id=product_id,
            category=self._category_of(product_id),
        )

    def record_feedback(self, section_id: str, product_id: Optional[int], positive: bool) -> None:
        self.metrics.record_feedback(
            section_id,
            product_id,
            positive,
            category=self._category_of(product_id),
        )

    # ----- reads -----

    def get_personalization_profile(self) -> PersonalizationProfile:
        return self.profile_builder.get_personalization_profile()

    def get_personalized_recommendations(
        self,
        candidates: Optional[Sequence[Candidate]] = None,
        count: int = 8,
        exclude_ids: Optional[Iterable[int]] = None,
    ) -> List[RecommendationResult]:
        if candidates is None:
            candidates = self.catalog
        return self.scoring.get_personalized_recommendations(candidates, count, exclude_ids)

    def get_sections(self) -> List[Section]:
        return self.assembler.assemble(self.catalog)

    def get_welcome_message(self, first_name: Optional[str] = None) -> str:
        return welcome_message(self.get_personalization_profile(), first_name, now=self.clock())

    def get_search_history(self, limit: int = DEFAULT_SEARCH_HISTORY) -> List[SearchEvent]:
        return self.profile_builder.get_search_history(limit)

    def get_metrics(self) -> PersonalizationMetrics:
        return self.metrics.get_metrics()

    def clear_personalization_data(self) -> bool:
        """Forget all behavioral data and counters; settings are kept."""
        cleared = self.events.clear()
        self.metrics.reset_metrics()
        logger.info("Cleared personalization data")
        return cleared

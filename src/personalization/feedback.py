"""Feedback and metrics sink.

Records impressions, clicks and explicit thumbs-up/down. Counters live in the
blob store next to the event log; every recorded action is also appended to
the log so the next profile build can read it. Duplicates are expected and
counted.
"""

import json
import logging
from datetime import datetime
from typing import Callable, Optional, Union

from pydantic import ValidationError

from src.personalization.events import EventStore
from src.personalization.models import (
    ClickEvent,
    FeedbackEvent,
    ImpressionEvent,
    MetricKind,
    PersonalizationMetrics,
    utcnow,
)
from src.personalization.storage import METRICS_KEY, BlobStore, dump_json, load_json

# Configure module logger
logger = logging.getLogger(__name__)


def _decode_metrics(blob: Optional[str]) -> PersonalizationMetrics:
    if blob is None:
        return PersonalizationMetrics()
    try:
        return PersonalizationMetrics.model_validate(json.loads(blob))
    except (ValueError, ValidationError):
        logger.warning("Stored metrics are malformed, resetting counters")
        return PersonalizationMetrics()


class MetricsSink:
    """Counts engagement and forwards it into the event log."""

    def __init__(
        self,
        store: BlobStore,
        events: EventStore,
        key: str = METRICS_KEY,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.events = events
        self.key = key
        self.clock = clock

    def _bump(self, field: str) -> None:
        def _update(blob: Optional[str]) -> str:
            metrics = _decode_metrics(blob)
            if field == "positive":
                metrics.feedback.positive += 1
            elif field == "negative":
                metrics.feedback.negative += 1
            else:
                setattr(metrics, field, getattr(metrics, field) + 1)
            metrics.last_updated = self.clock()
            return dump_json(metrics.model_dump(mode="json", exclude={"engagement_rate", "feedback_quality"}))

        try:
            self.store.merge(self.key, _update)
        except Exception as e:
            logger.warning(
                "Failed to update personalization metrics",
                extra={"counter": field, "error": str(e), "error_type": type(e).__name__},
                exc_info=True,
            )

    def update_personalization_metrics(
        self,
        kind: Union[MetricKind, str],
        section_id: Optional[str] = None,
        product_id: Optional[int] = None,
        category: Optional[str] = None,
    ) -> None:
        """Record an impression or a click.

        Args:
            kind: "impression" or "click".
            section_id: Section that was shown or interacted with.
            product_id: Product that was shown or clicked, if any.
            category: Category of the clicked product, if known.

        Raises:
            ValueError: If ``kind`` is not a known metric kind.
        """
        kind = MetricKind(kind)

        if kind is MetricKind.IMPRESSION:
            self._bump("impressions")
            self.events.record(
                ImpressionEvent(
                    section_id=section_id or "unknown",
                    product_id=product_id,
                    timestamp=self.clock(),
                )
            )
        else:
            self._bump("clicks")
            self.events.record(
                ClickEvent(
                    section_id=section_id or "unknown",
                    product_id=product_id,
                    category=category,
                    timestamp=self.clock(),
                )
            )

    def record_feedback(
        self,
        section_id: str,
        product_id: Optional[int],
        positive: bool,
        category: Optional[str] = None,
    ) -> None:
        """Record explicit relevance feedback on a recommendation.

        The scoring engine reads it on the next build; already rendered
        sections are not rescored.
        """
        self._bump("positive" if positive else "negative")
        self.events.record(
            FeedbackEvent(
                section_id=section_id,
                product_id=product_id,
                category=category,
                positive=positive,
                timestamp=self.clock(),
            )
        )
        logger.info(
            "Recorded recommendation feedback",
            extra={"section_id": section_id, "product_id": product_id, "positive": positive},
        )

    def get_metrics(self) -> PersonalizationMetrics:
        try:
            raw = load_json(self.store, self.key, default=None)
        except Exception as e:
            logger.warning(f"Failed to read metrics: {e}", exc_info=True)
            return PersonalizationMetrics()
        if raw is None:
            return PersonalizationMetrics()
        try:
            return PersonalizationMetrics.model_validate(raw)
        except ValidationError:
            logger.warning("Stored metrics are malformed, reporting zeros")
            return PersonalizationMetrics()

    def reset_metrics(self) -> None:
        try:
            self.store.delete(self.key)
        except Exception as e:
            logger.warning(f"Failed to reset metrics: {e}", exc_info=True)

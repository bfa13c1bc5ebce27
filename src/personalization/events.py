"""Capped, append-only log of behavioral events.

Every view, search, click, impression and feedback action is appended here. The log
is the single source the profile builder reads from. Once it exceeds its
capacity the oldest entries are evicted first.
"""

import json
import logging
from typing import List, Optional, Union

from pydantic import ValidationError

from src.personalization.models import BehaviorEvent, EventType, behavior_event_adapter
from src.personalization.storage import EVENTS_KEY, BlobStore, dump_json

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_MAX_EVENTS = 500


def _decode_log(blob: Optional[str]) -> list:
    if blob is None:
        return []
    try:
        data = json.loads(blob)
    except (TypeError, ValueError) as e:
        logger.warning(f"Event log is not valid JSON, starting empty: {e}")
        return []
    if not isinstance(data, list):
        logger.warning(
            "Event log has unexpected shape, starting empty",
            extra={"blob_type": type(data).__name__},
        )
        return []
    return data


class EventStore:
    """Append-only event log persisted in a blob store.

    Args:
        store: Blob store holding the log under ``key``.
        max_events: Capacity; the oldest events are evicted beyond it.
        key: Storage key for the log.
    """

    def __init__(
        self,
        store: BlobStore,
        max_events: int = DEFAULT_MAX_EVENTS,
        key: str = EVENTS_KEY,
    ):
        if max_events <= 0:
            raise ValueError(f"max_events must be positive, got {max_events}")
        self.store = store
        self.max_events = max_events
        self.key = key

    def record(self, event: BehaviorEvent) -> bool:
        """Append one event.

        Persistence failures are logged as warnings and swallowed so that
        telemetry never breaks the page.

        Args:
            event: The event to append.

        Returns:
            True if the event was persisted, False otherwise.
        """
        entry = event.model_dump(mode="json")

        def _append(blob: Optional[str]) -> str:
            entries = _decode_log(blob)
            entries.append(entry)
            overflow = len(entries) - self.max_events
            if overflow > 0:
                logger.debug(f"Evicting {overflow} oldest events")
                entries = entries[overflow:]
            return dump_json(entries)

        try:
            self.store.merge(self.key, _append)
        except Exception as e:
            # Recording never propagates backend errors
            logger.warning(
                "Failed to record behavior event",
                extra={
                    "event_type": entry.get("type"),
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            return False

        logger.debug(
            "Recorded behavior event",
            extra={"event_type": entry.get("type")},
        )
        return True

    def all_events(self) -> List[BehaviorEvent]:
        """Return every stored event in append order (oldest first).

        A corrupt log reads as empty; individual malformed entries are
        dropped. Storage read failures also read as empty.
        """
        try:
            blob = self.store.get(self.key)
        except Exception as e:
            logger.warning(f"Failed to read event log: {e}", exc_info=True)
            return []

        events: List[BehaviorEvent] = []
        dropped = 0
        for raw in _decode_log(blob):
            try:
                events.append(behavior_event_adapter.validate_python(raw))
            except ValidationError:
                dropped += 1

        if dropped:
            logger.warning(
                "Dropped malformed events from log",
                extra={"dropped": dropped, "kept": len(events)},
            )
        return events

    def query_by_type(
        self,
        event_type: Union[EventType, str],
        limit: Optional[int] = None,
    ) -> List[BehaviorEvent]:
        """Return the most recent events of one type, most recent first.

        Args:
            event_type: Event type to select.
            limit: Maximum number of events; all matching events if None.
        """
        wanted = EventType(event_type).value
        matching = [e for e in reversed(self.all_events()) if e.type == wanted]
        if limit is None:
            return matching
        return matching[: max(limit, 0)]

    def clear(self) -> bool:
        """Empty the log (logout or explicit privacy reset)."""
        try:
            self.store.delete(self.key)
        except Exception as e:
            logger.warning(f"Failed to clear event log: {e}", exc_info=True)
            return False
        logger.info("Cleared behavior event log")
        return True

    def __len__(self) -> int:
        return len(self.all_events())

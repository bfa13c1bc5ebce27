"""Settings store for the personalization engine."""

import json
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from src.personalization.exceptions import SettingsValidationError
from src.personalization.models import PersonalizationSettings
from src.personalization.storage import SETTINGS_KEY, BlobStore, dump_json, load_json

# Configure module logger
logger = logging.getLogger(__name__)


class SettingsStore:
    """Loads settings once and persists every explicit update immediately."""

    def __init__(self, store: BlobStore, key: str = SETTINGS_KEY):
        self.store = store
        self.key = key
        self._settings: Optional[PersonalizationSettings] = None

    def _load(self) -> PersonalizationSettings:
        try:
            stored = load_json(self.store, self.key, default={})
        except Exception as e:
            logger.warning(f"Failed to read settings, using defaults: {e}", exc_info=True)
            return PersonalizationSettings()

        if not isinstance(stored, dict):
            logger.warning("Stored settings have unexpected shape, using defaults")
            return PersonalizationSettings()

        known = {k: v for k, v in stored.items() if k in PersonalizationSettings.model_fields}
        try:
            return PersonalizationSettings.model_validate(known)
        except ValidationError as e:
            logger.warning(
                "Stored settings are invalid, using defaults",
                extra={"errors": e.error_count()},
            )
            return PersonalizationSettings()

    def get_personalization_settings(self) -> PersonalizationSettings:
        if self._settings is None:
            self._settings = self._load()
        return self._settings

    def update_personalization_settings(self, partial: Dict[str, Any]) -> PersonalizationSettings:
        """Apply a partial update, validate it and persist it.

        Args:
            partial: Mapping of setting names to new values.

        Returns:
            The updated settings.

        Raises:
            SettingsValidationError: If a key is unknown or a value is invalid.
        """
        current = self.get_personalization_settings()
        merged = {**current.model_dump(), **partial}
        try:
            updated = PersonalizationSettings.model_validate(merged)
        except ValidationError as e:
            raise SettingsValidationError(
                e.errors(include_url=False, include_context=False, include_input=False)
            ) from e

        self._settings = updated
        changes = {k: getattr(updated, k) for k in partial}

        def _merge(blob: Optional[str]) -> str:
            stored: Any = {}
            if blob is not None:
                try:
                    stored = json.loads(blob)
                except ValueError:
                    stored = {}
            if not isinstance(stored, dict):
                stored = {}
            stored.update(changes)
            return dump_json(stored)

        try:
            self.store.merge(self.key, _merge)
        except Exception as e:
            logger.warning(f"Failed to persist settings update: {e}", exc_info=True)

        logger.info("Updated personalization settings", extra={"changed": sorted(changes)})
        return updated

    def reset_personalization_settings(self) -> PersonalizationSettings:
        """Restore defaults and drop the stored settings."""
        self._settings = PersonalizationSettings()
        try:
            self.store.delete(self.key)
        except Exception as e:
            logger.warning(f"Failed to delete stored settings: {e}", exc_info=True)
        return self._settings

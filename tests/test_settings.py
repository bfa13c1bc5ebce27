"""Tests for the personalization settings store."""

import json

import pytest

from conftest import BrokenBackendStore
from src.personalization.exceptions import SettingsValidationError
from src.personalization.models import PersonalizationSettings
from src.personalization.settings import SettingsStore
from src.personalization.storage import SETTINGS_KEY


@pytest.fixture
def settings_store(store) -> SettingsStore:
    return SettingsStore(store)


def test_defaults_when_nothing_stored(settings_store):
    settings = settings_store.get_personalization_settings()

    assert settings == PersonalizationSettings()
    assert settings.enabled
    assert settings.max_sections == 3
    assert settings.max_items_per_section == 8
    assert settings.min_relevance_score == 0.3


def test_update_applies_and_persists(store, settings_store):
    updated = settings_store.update_personalization_settings({"max_sections": 5, "enabled": False})

    assert updated.max_sections == 5
    assert not updated.enabled
    assert json.loads(store.get(SETTINGS_KEY)) == {"max_sections": 5, "enabled": False}

    reloaded = SettingsStore(store).get_personalization_settings()
    assert reloaded.max_sections == 5
    assert not reloaded.enabled
    assert reloaded.max_items_per_section == 8


def test_successive_updates_merge(store, settings_store):
    settings_store.update_personalization_settings({"max_sections": 4})
    settings_store.update_personalization_settings({"view_weight": 0.6})

    reloaded = SettingsStore(store).get_personalization_settings()

    assert reloaded.max_sections == 4
    assert reloaded.view_weight == 0.6


@pytest.mark.parametrize(
    "partial",
    [
        {"max_sections": -1},
        {"min_relevance_score": 1.5},
        {"category_weight": "heavy"},
        {"recent_views_window": 0},
        {"favourite_colour": "blue"},
    ],
)
def test_invalid_update_is_rejected(settings_store, partial):
    with pytest.raises(SettingsValidationError) as exc_info:
        settings_store.update_personalization_settings(partial)

    assert exc_info.value.errors
    assert settings_store.get_personalization_settings() == PersonalizationSettings()


def test_reset_restores_defaults(store, settings_store):
    settings_store.update_personalization_settings({"max_sections": 1})

    settings = settings_store.reset_personalization_settings()

    assert settings == PersonalizationSettings()
    assert store.get(SETTINGS_KEY) is None


def test_corrupt_stored_settings_fall_back_to_defaults(store):
    store.set(SETTINGS_KEY, "{not json")

    assert SettingsStore(store).get_personalization_settings() == PersonalizationSettings()


def test_invalid_stored_values_fall_back_to_defaults(store):
    store.set(SETTINGS_KEY, json.dumps({"max_sections": -4}))

    assert SettingsStore(store).get_personalization_settings() == PersonalizationSettings()


def test_unknown_stored_keys_are_ignored(store):
    store.set(SETTINGS_KEY, json.dumps({"max_sections": 2, "legacy_flag": True}))

    assert SettingsStore(store).get_personalization_settings().max_sections == 2


def test_non_object_stored_settings_fall_back_to_defaults(store):
    store.set(SETTINGS_KEY, json.dumps([1, 2, 3]))

    assert SettingsStore(store).get_personalization_settings() == PersonalizationSettings()


def test_read_failure_uses_defaults(store):
    store.fail_reads = True

    assert SettingsStore(store).get_personalization_settings() == PersonalizationSettings()


def test_write_failure_keeps_update_in_memory(store, settings_store):
    store.fail_writes = True

    updated = settings_store.update_personalization_settings({"max_items_per_section": 2})

    assert updated.max_items_per_section == 2
    assert settings_store.get_personalization_settings().max_items_per_section == 2
    store.fail_writes = False
    assert store.get(SETTINGS_KEY) is None


def test_non_storage_backend_errors_keep_settings_usable():
    settings_store = SettingsStore(BrokenBackendStore(fail_reads=True))

    assert settings_store.get_personalization_settings() == PersonalizationSettings()
    assert settings_store.update_personalization_settings({"max_sections": 1}).max_sections == 1
    assert settings_store.reset_personalization_settings() == PersonalizationSettings()

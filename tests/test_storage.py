"""Tests for the blob stores."""

import pytest

from src.personalization.exceptions import StorageError
from src.personalization.storage import (
    FileBlobStore,
    InMemoryBlobStore,
    dump_json,
    load_json,
)


@pytest.fixture(params=["memory", "file"])
def blob_store(request, tmp_path):
    """Fixture providing each blob store implementation."""
    if request.param == "memory":
        return InMemoryBlobStore()
    return FileBlobStore(str(tmp_path / "store"))


def test_get_missing_key_returns_none(blob_store):
    assert blob_store.get("missing") is None


def test_set_then_get(blob_store):
    blob_store.set("settings", '{"max_sections": 2}')

    assert blob_store.get("settings") == '{"max_sections": 2}'


def test_set_replaces_previous_value(blob_store):
    blob_store.set("key", "first")
    blob_store.set("key", "second")

    assert blob_store.get("key") == "second"


def test_delete_removes_key_and_ignores_missing(blob_store):
    blob_store.set("key", "value")
    blob_store.delete("key")
    blob_store.delete("never-set")

    assert blob_store.get("key") is None


def test_merge_reads_current_value(blob_store):
    blob_store.set("counter", "1")

    written = blob_store.merge("counter", lambda blob: str(int(blob or "0") + 1))

    assert written == "2"
    assert blob_store.get("counter") == "2"


def test_merge_on_missing_key_receives_none(blob_store):
    seen = []

    def update(blob):
        seen.append(blob)
        return "created"

    blob_store.merge("fresh", update)

    assert seen == [None]
    assert blob_store.get("fresh") == "created"


def test_file_store_persists_across_instances(tmp_path):
    root = str(tmp_path / "shared")
    FileBlobStore(root).set("events", "[]")

    assert FileBlobStore(root).get("events") == "[]"


def test_file_store_leaves_no_temp_files(tmp_path):
    store = FileBlobStore(str(tmp_path))
    store.set("events", "[1, 2, 3]")

    assert sorted(p.name for p in tmp_path.iterdir()) == ["events.json"]


def test_file_store_unusable_root_raises_storage_error(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")

    with pytest.raises(StorageError):
        FileBlobStore(str(blocker / "store"))


def test_load_json_malformed_returns_default():
    store = InMemoryBlobStore({"metrics": "{not json"})

    assert load_json(store, "metrics", default={}) == {}


def test_load_json_decodes_dump_json():
    store = InMemoryBlobStore()
    store.set("data", dump_json({"a": [1, 2]}))

    assert load_json(store, "data", default=None) == {"a": [1, 2]}

"""Tests for luxedetails.storage."""

import json

import pytest

from luxedetails.storage import FileStore, MemoryStore


@pytest.fixture(params=["memory", "file"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryStore()
    return FileStore(tmp_path / "store.json")


# ---------------------------------------------------------------------------
# Contract shared by every store
# ---------------------------------------------------------------------------


def test_missing_key_is_none(store):
    assert store.get_item("nope") is None


def test_set_then_get(store):
    store.set_item("k", "v")
    assert store.get_item("k") == "v"


def test_set_overwrites(store):
    store.set_item("k", "v1")
    store.set_item("k", "v2")
    assert store.get_item("k") == "v2"
    assert store.keys() == ["k"]


def test_remove_item(store):
    store.set_item("k", "v")
    store.remove_item("k")
    assert store.get_item("k") is None


def test_remove_missing_is_noop(store):
    store.remove_item("never-set")
    assert store.keys() == []


def test_clear(store):
    store.set_item("a", "1")
    store.set_item("b", "2")
    store.clear()
    assert store.keys() == []


# ---------------------------------------------------------------------------
# FileStore specifics
# ---------------------------------------------------------------------------


def test_file_store_persists_across_instances(tmp_path):
    path = tmp_path / "nested" / "store.json"
    FileStore(path).set_item("k", "v")
    assert FileStore(path).get_item("k") == "v"


def test_file_store_not_created_until_written(tmp_path):
    store = FileStore(tmp_path / "store.json")
    assert store.get_item("k") is None
    assert not store.exists()


def test_file_store_restricted_permissions(tmp_path):
    store = FileStore(tmp_path / "store.json")
    store.set_item("k", "v")
    assert store.path.stat().st_mode & 0o777 == 0o600


def test_file_store_leaves_no_temp_file(tmp_path):
    store = FileStore(tmp_path / "store.json")
    store.set_item("k", "v")
    assert [p.name for p in tmp_path.iterdir()] == ["store.json"]


def test_file_store_format_is_plain_json(tmp_path):
    store = FileStore(tmp_path / "store.json")
    store.set_item("k", "[1, 2]")
    assert json.loads(store.path.read_text()) == {"k": "[1, 2]"}


def test_corrupt_file_reads_as_empty(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("{not json")
    store = FileStore(path)
    assert store.get_item("k") is None

    store.set_item("k", "v")
    assert store.get_item("k") == "v"


def test_non_object_file_reads_as_empty(tmp_path):
    path = tmp_path / "store.json"
    path.write_text('["a", "b"]')
    assert FileStore(path).keys() == []

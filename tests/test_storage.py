"""Tests for snapshot storage backends."""

import json

import pytest

from pantransfer.cache import JsonFileStorage, MemoryStorage
from pantransfer.exceptions import CacheStorageError


class TestJsonFileStorage:
    """Tests for JsonFileStorage."""

    def test_missing_snapshot(self, tmp_path):
        """Test a table without a file loads as None."""
        assert JsonFileStorage(tmp_path).load_snapshot("completed") is None

    def test_persist_creates_directory(self, tmp_path):
        """Test persisting creates the storage directory."""
        storage = JsonFileStorage(tmp_path / "nested" / "cache")
        storage.persist_snapshot("completed", {"version": 1, "entries": {}})

        path = tmp_path / "nested" / "cache" / "completed.json"
        assert json.loads(path.read_text()) == {"version": 1, "entries": {}}
        assert storage.load_snapshot("completed") == {"version": 1, "entries": {}}

    def test_persist_replaces_previous_snapshot(self, tmp_path):
        """Test a second write replaces the first and leaves no temp files."""
        storage = JsonFileStorage(tmp_path)
        storage.persist_snapshot("t", {"n": 1})
        storage.persist_snapshot("t", {"n": 2})
        assert storage.load_snapshot("t") == {"n": 2}
        assert [p.name for p in tmp_path.iterdir()] == ["t.json"]

    def test_unserializable_data(self, tmp_path):
        """Test serialization errors raise and keep the old snapshot."""
        storage = JsonFileStorage(tmp_path)
        storage.persist_snapshot("t", {"n": 1})
        with pytest.raises(CacheStorageError):
            storage.persist_snapshot("t", {"n": {1, 2}})
        assert storage.load_snapshot("t") == {"n": 1}
        assert [p.name for p in tmp_path.iterdir()] == ["t.json"]

    def test_corrupt_snapshot(self, tmp_path):
        """Test unreadable JSON raises CacheStorageError."""
        (tmp_path / "t.json").write_text("{nope")
        with pytest.raises(CacheStorageError, match="Failed to load"):
            JsonFileStorage(tmp_path).load_snapshot("t")

    def test_non_object_snapshot(self, tmp_path):
        """Test a snapshot must be a JSON object."""
        (tmp_path / "t.json").write_text("[1, 2]")
        with pytest.raises(CacheStorageError, match="not a JSON object"):
            JsonFileStorage(tmp_path).load_snapshot("t")


class TestMemoryStorage:
    """Tests for MemoryStorage."""

    def test_snapshots_are_copied(self):
        """Test stored snapshots are isolated from caller mutation."""
        storage = MemoryStorage()
        data = {"entries": {"a": 1}}
        storage.persist_snapshot("t", data)
        data["entries"]["b"] = 2

        loaded = storage.load_snapshot("t")
        loaded["entries"]["c"] = 3

        assert storage.load_snapshot("t") == {"entries": {"a": 1}}

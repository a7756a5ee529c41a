"""Tests for RevisionStore."""

import json

import pytest

from tree_mirror.errors import FilesystemError
from tree_mirror.mirror.state import STATE_FILE_NAME, STATE_VERSION, RevisionStore


@pytest.fixture
def store(tmp_path):
    return RevisionStore(tmp_path / ".tree_mirror")


class TestRevisionStore:
    def test_default_state(self, store):
        assert store.load() == {
            "version": STATE_VERSION,
            "last_sync": None,
            "last_revision": None,
        }
        assert store.get_last_revision() is None

    def test_round_trip(self, store):
        store.set_last_revision("abc123")
        assert store.get_last_revision() == "abc123"
        state = json.loads(store.path.read_text())
        assert state["version"] == STATE_VERSION
        assert state["last_sync"] is not None

    def test_overwrite(self, store):
        store.set_last_revision("one")
        store.set_last_revision("two")
        assert store.get_last_revision() == "two"

    def test_no_temporary_files_left(self, store):
        store.set_last_revision("abc")
        assert [p.name for p in store.path.parent.iterdir()] == [STATE_FILE_NAME]

    def test_unknown_keys_preserved(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text(json.dumps({"version": 1, "note": "x"}))
        store.set_last_revision("abc")
        assert json.loads(store.path.read_text())["note"] == "x"

    def test_malformed_file(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json")
        with pytest.raises(FilesystemError):
            store.load()

    def test_non_object_file(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text("[1, 2]")
        with pytest.raises(FilesystemError, match="Malformed"):
            store.get_last_revision()

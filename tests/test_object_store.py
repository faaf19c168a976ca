"""Tests for the content-addressed object store."""

import pytest

from kvlet import CommitBuilder, CorruptRecord, ObjectNotFound, ObjectStore, content_digest
from kvlet.kv.memory import Memory
from kvlet.object_store import OBJECT_KEY


class TestObjectStore:
    def test_put_get(self):
        objects = ObjectStore(Memory())
        digest = objects.put(b"hello")
        assert objects.get(digest) == b"hello"

    def test_digest_matches_content(self):
        objects = ObjectStore(Memory())
        assert objects.put(b"hello") == content_digest(b"hello")

    def test_put_idempotent(self):
        store = Memory()
        objects = ObjectStore(store)
        d1 = objects.put(b"same")
        d2 = objects.put(b"same")
        assert d1 == d2
        assert len(list(store.keys())) == 1

    def test_distinct_content_distinct_digest(self):
        objects = ObjectStore(Memory())
        assert objects.put(b"x") != objects.put(b"y")

    def test_empty_bytes(self):
        objects = ObjectStore(Memory())
        assert objects.get(objects.put(b"")) == b""

    def test_missing_raises(self):
        objects = ObjectStore(Memory())
        with pytest.raises(ObjectNotFound) as exc_info:
            objects.get("deadbeef")
        assert exc_info.value.digest == "deadbeef"

    def test_contains(self):
        objects = ObjectStore(Memory())
        digest = objects.put(b"x")
        assert digest in objects
        assert "nope" not in objects

    def test_get_many(self):
        objects = ObjectStore(Memory())
        d1 = objects.put(b"1")
        d2 = objects.put(b"2")
        assert objects.get_many([d1, d2]) == {d1: b"1", d2: b"2"}

    def test_get_many_missing_raises(self):
        objects = ObjectStore(Memory())
        d1 = objects.put(b"1")
        with pytest.raises(ObjectNotFound):
            objects.get_many([d1, "missing"])


class TestCommitObjects:
    def test_commit_stored_under_its_digest(self):
        objects = ObjectStore(Memory())
        commit = CommitBuilder().finish("msg", timestamp=1)
        assert objects.put_commit(commit) == commit.digest
        assert objects.get_commit(commit.digest) == commit

    def test_tampered_commit_detected(self):
        store = Memory()
        objects = ObjectStore(store)
        commit = CommitBuilder().finish("msg", timestamp=1)
        other = CommitBuilder().finish("other", timestamp=1)
        store.set(OBJECT_KEY % commit.digest, other.encode())
        with pytest.raises(CorruptRecord):
            objects.get_commit(commit.digest)

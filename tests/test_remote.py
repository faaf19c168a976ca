"""Tests for remotes: fetch, push and pull between two stores."""

import pytest

from kvlet import (
    BranchNotFound,
    FetchIntoCurrentBranch,
    NotAncestor,
    RemoteExists,
    RemoteNotFound,
    Repository,
)
from kvlet.kv.memory import Memory
from kvlet.sync import copy_ancestry

from .helpers import make_repo, write_and_commit


@pytest.fixture
def pair():
    """A local and a remote repository sharing an in-memory registry."""
    stores = {"remote-path": Memory(), "empty-path": Memory()}
    remote = make_repo(stores["remote-path"])
    remote.init()
    local = make_repo(remote_opener=stores.__getitem__)
    local.init()
    local.add_remote("origin", "remote-path")
    return local, remote


class TestRemoteRegistry:
    def test_add_remote(self, pair):
        local, _ = pair
        assert local.remotes() == {"origin": "remote-path"}

    def test_add_duplicate(self, pair):
        local, _ = pair
        with pytest.raises(RemoteExists):
            local.add_remote("origin", "elsewhere")

    def test_remove_remote(self, pair):
        local, _ = pair
        local.remove_remote("origin")
        assert local.remotes() == {}

    def test_remove_unknown(self, pair):
        local, _ = pair
        with pytest.raises(RemoteNotFound):
            local.remove_remote("nope")


class TestFetch:
    def test_fetch_creates_tracking_branch(self, pair):
        local, remote = pair
        write_and_commit(remote, "r1", f=b"1")
        r2 = write_and_commit(remote, "r2", f=b"2", g=b"g")

        tracking = local.fetch("origin", "master")
        assert tracking == "origin/master"
        assert local.branches()["origin/master"] == r2.digest
        assert local.current_branch == "master"

        fetched = local.get_commit(r2.digest)
        assert fetched == r2
        assert local.read_blob(fetched.get("g")) == b"g"
        assert r2.digest in local.records.load_state().known_ids

    def test_fetch_unknown_branch(self, pair):
        local, _ = pair
        with pytest.raises(BranchNotFound):
            local.fetch("origin", "nope")

    def test_fetch_unknown_remote(self, pair):
        local, _ = pair
        with pytest.raises(RemoteNotFound):
            local.fetch("upstream", "master")

    def test_fetch_uninitialized_remote(self, pair):
        local, _ = pair
        local.add_remote("blank", "empty-path")
        with pytest.raises(RemoteNotFound, match="Remote directory not found"):
            local.fetch("blank", "master")

    def test_refetch_copies_nothing(self, pair):
        local, remote = pair
        r1 = write_and_commit(remote, "r1", f=b"1")
        local.fetch("origin", "master")

        local_state = local.records.load_state()
        remote_state = remote.records.load_state()
        copied = copy_ancestry(
            remote_state, remote.objects, local_state, local.objects, r1.digest
        )
        assert copied == []

    def test_fetch_stops_at_known_commits(self, pair):
        local, remote = pair
        write_and_commit(remote, "r1", f=b"1")
        local.fetch("origin", "master")
        r2 = write_and_commit(remote, "r2", f=b"2")

        local_state = local.records.load_state()
        copied = copy_ancestry(
            remote.records.load_state(), remote.objects, local_state, local.objects, r2.digest
        )
        assert copied == [r2.digest]


class TestPush:
    def test_push_fast_forwards_remote(self, pair):
        local, remote = pair
        write_and_commit(local, "l1", f=b"1")
        l2 = write_and_commit(local, "l2", f=b"2")

        local.push("origin", "master")
        assert remote.branches()["master"] == l2.digest
        remote.reset(l2.digest)
        assert remote.workdir.read("f") == b"2"

    def test_push_creates_branch(self, pair):
        local, remote = pair
        l1 = write_and_commit(local, "l1", f=b"1")
        local.push("origin", "feature")
        assert remote.branches()["feature"] == l1.digest
        assert remote.branches()["master"] == remote.log()[-1].digest

    def test_push_rejects_divergence(self, pair):
        local, remote = pair
        r1 = write_and_commit(remote, "r1", f=b"remote")
        write_and_commit(local, "l1", f=b"local")
        with pytest.raises(NotAncestor):
            local.push("origin", "master")
        assert remote.branches()["master"] == r1.digest

    def test_push_after_pull(self, pair):
        local, remote = pair
        write_and_commit(remote, "r1", g=b"remote")
        write_and_commit(local, "l1", f=b"local")
        result = local.pull("origin", "master")
        assert result.strategy == "three_way"
        local.push("origin", "master")
        assert remote.branches()["master"] == result.commit


class TestPull:
    def test_pull_fast_forward(self, pair):
        local, remote = pair
        r1 = write_and_commit(remote, "r1", f=b"1")
        result = local.pull("origin", "master")
        assert result.strategy == "fast_forward"
        assert local.head() == r1
        assert local.workdir.read("f") == b"1"

    def test_pull_merges(self, pair):
        local, remote = pair
        write_and_commit(remote, "r1", g=b"remote")
        write_and_commit(local, "l1", f=b"local")
        result = local.pull("origin", "master")
        assert not result.has_conflicts
        assert local.head().message == "Merged origin/master into master."
        assert local.workdir.read("g") == b"remote"
        assert local.workdir.read("f") == b"local"


class TestDiskRemote:
    def test_fetch_from_disk_remote(self, tmp_path):
        from kvlet.kv.disk import Disk

        remote_path = str(tmp_path / "remote")
        store = Disk(remote_path)
        remote = make_repo(store)
        remote.init()
        r1 = write_and_commit(remote, "r1", f=b"1")
        store.close()

        local = Repository()
        local.init()
        local.add_remote("origin", remote_path)
        local.fetch("origin", "master")
        assert local.branches()["origin/master"] == r1.digest

    def test_missing_directory(self, tmp_path):
        local = Repository()
        local.init()
        local.add_remote("origin", str(tmp_path / "nope"))
        with pytest.raises(RemoteNotFound, match="Remote directory not found"):
            local.fetch("origin", "master")


class ClosingMemory(Memory):
    def __init__(self) -> None:
        super().__init__()
        self.closed = 0

    def close(self) -> None:
        self.closed += 1


class TestRemoteHandles:
    @pytest.fixture
    def tracked(self):
        store = ClosingMemory()
        remote = make_repo(store)
        remote.init()
        local = make_repo(remote_opener=lambda path: store)
        local.init()
        local.add_remote("origin", "remote-path")
        return local, remote, store

    def test_fetch_closes_remote(self, tracked):
        local, remote, store = tracked
        write_and_commit(remote, "r1", f=b"1")
        local.fetch("origin", "master")
        assert store.closed == 1

    def test_push_closes_remote(self, tracked):
        local, _, store = tracked
        write_and_commit(local, "l1", f=b"1")
        local.push("origin", "master")
        assert store.closed == 1

    def test_failed_push_closes_remote(self, tracked):
        local, remote, store = tracked
        write_and_commit(remote, "r1", f=b"r")
        write_and_commit(local, "l1", f=b"l")
        with pytest.raises(NotAncestor):
            local.push("origin", "master")
        assert store.closed == 1

    def test_uninitialized_remote_closed(self):
        store = ClosingMemory()
        local = make_repo(remote_opener=lambda path: store)
        local.init()
        local.add_remote("origin", "remote-path")
        with pytest.raises(RemoteNotFound):
            local.fetch("origin", "master")
        assert store.closed == 1


class TestFetchIntoCheckedOutBranch:
    def test_refuses_current_tracking_branch(self, pair):
        local, remote = pair
        local.fetch("origin", "master")
        local.checkout_branch("origin/master")
        r1 = write_and_commit(remote, "r1", f=b"1")

        with pytest.raises(FetchIntoCurrentBranch):
            local.fetch("origin", "master")
        assert local.branches()["origin/master"] != r1.digest
        assert local.status().modified == ()

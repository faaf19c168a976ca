"""Repository: every user-facing operation over one store and working area."""

import logging
import os
import time
from dataclasses import dataclass
from typing import Callable

from .errors import (
    AlreadyInitialized,
    AlreadyOnBranch,
    BranchExists,
    BranchNotFound,
    CannotRemoveCurrentBranch,
    EmptyMessage,
    FetchIntoCurrentBranch,
    FileNotFound,
    FileNotInCommit,
    MergeBlocked,
    NotAncestor,
    NothingToCommit,
    RemoteExists,
    RemoteNotFound,
    UntrackedFileConflict,
)
from .kv.base import KVStore
from .kv.memory import Memory
from .merge import Ancestry, MergeResult, find_split_point, reconcile
from .objects import Blob, Commit, CommitBuilder, content_digest
from .state import RecordStore, RepoState, Stage
from .sync import copy_ancestry
from .workdir import MemoryWorkingArea, WorkingArea

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "master"
INITIAL_MESSAGE = "initial commit"


@dataclass(frozen=True)
class StatusReport:
    """Branches, stage contents and working-area differences."""

    current_branch: str
    branches: tuple[str, ...]
    staged: tuple[str, ...]
    removed: tuple[str, ...]
    modified: tuple[str, ...]
    untracked: tuple[str, ...]


def open_disk_store(path: str) -> KVStore:
    """Open the store of a remote kept in a local directory."""
    if not os.path.isdir(path):
        raise RemoteNotFound("Remote directory not found.")
    from .kv.disk import Disk

    return Disk(path)


class Repository:
    """A version-controlled set of files.

    Each operation loads the state and stage records from ``store``,
    validates everything up front, then writes objects, the working
    area and finally the records. A rejected operation leaves the
    store and the working area untouched.

    Args:
        store: Backend holding objects and records (default: in-memory).
        workdir: Working area to snapshot and restore (default: in-memory).
        default_branch: Branch created by ``init()``.
        ancestry: Split-point algorithm for merges, ``"full"`` or
            ``"first_parent"``.
        remote_opener: Turns a remote's path into its ``KVStore``.
        clock: Source of commit timestamps.
    """

    def __init__(
        self,
        store: KVStore | None = None,
        workdir: WorkingArea | None = None,
        *,
        default_branch: str = DEFAULT_BRANCH,
        ancestry: Ancestry = "full",
        remote_opener: Callable[[str], KVStore] = open_disk_store,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if ancestry not in ("full", "first_parent"):
            raise ValueError(f"Unknown ancestry: {ancestry!r}")
        self.store = store if store is not None else Memory()
        self.workdir = workdir if workdir is not None else MemoryWorkingArea()
        self.records = RecordStore(self.store)
        self.objects = self.records.objects
        self.default_branch = default_branch
        self.ancestry = ancestry
        self.remote_opener = remote_opener
        self.clock = clock

    def exists(self) -> bool:
        return self.records.is_initialized()

    def init(self) -> Commit:
        """Create the initial commit and the default branch.

        The initial commit has a fixed timestamp, so every repository
        starts from the same root and can exchange history.
        """
        if self.records.is_initialized():
            raise AlreadyInitialized(
                "A kvlet repository already exists in this store."
            )
        initial = CommitBuilder().finish(INITIAL_MESSAGE, timestamp=0)
        state = RepoState(current_branch=self.default_branch)
        state.advance(initial)
        self.records.save(state, Stage())
        logger.info("Initialized repository on branch %s", self.default_branch)
        return initial

    def _load(self) -> tuple[RepoState, Stage]:
        return self.records.load_state(), self.records.load_stage()

    # -- Staging --

    def add(self, name: str, content: bytes | None = None) -> str:
        """Stage a file's content for the next commit.

        Reads the working file unless ``content`` is given. Adding the
        content already committed for ``name`` drops any staged change
        instead.

        Returns:
            ``"staged"`` or ``"unchanged"``.
        """
        state, stage = self._load()
        self.workdir.check_name(name)
        if content is None:
            content = self.workdir.read(name)
            if content is None:
                raise FileNotFound("File does not exist.")

        committed = state.current_commit.get(name)
        digest = content_digest(content)
        stage.removed.discard(name)
        if committed is not None and committed.content_digest == digest:
            stage.added.pop(name, None)
            status = "unchanged"
        else:
            revision = committed.revision + 1 if committed is not None else 1
            self.objects.put(content)
            stage.stage_added(name, Blob(digest, name, revision))
            status = "staged"

        self.records.save_stage(stage)
        return status

    def remove(self, name: str) -> str:
        """Unstage ``name`` or stage its removal.

        A file tracked by the current commit is also deleted from the
        working area.

        Returns:
            ``"unstaged"``, ``"removed"`` or ``"nothing_to_remove"``.
        """
        state, stage = self._load()
        if name in stage.added:
            stage.unstage(name)
            status = "unstaged"
        elif name in state.current_commit:
            stage.stage_removed(name)
            self.workdir.delete(name)
            status = "removed"
        else:
            return "nothing_to_remove"
        self.records.save_stage(stage)
        return status

    # -- Commits --

    def commit(self, message: str) -> Commit:
        """Fold the stage into a new commit on the current branch."""
        if not message:
            raise EmptyMessage("Please enter a commit message.")
        state, stage = self._load()
        if stage.is_empty():
            raise NothingToCommit("No changes added to the commit.")

        builder = CommitBuilder(state.current_commit)
        for name, blob in stage.added.items():
            builder.add_blob(name, blob)
        for name in stage.removed:
            builder.remove_blob(name)
        commit = builder.finish(message, self.clock())

        state.advance(commit)
        stage.clear()
        self.records.save(state, stage)
        logger.info("Committed %s on %s", commit.digest[:12], state.current_branch)
        return commit

    # -- History --

    def log(self) -> list[Commit]:
        """First-parent history of the current branch, newest first."""
        state = self.records.load_state()
        history: list[Commit] = []
        current: str | None = state.branches[state.current_branch]
        while current is not None:
            commit = state.commits[current]
            history.append(commit)
            current = commit.parent
        return history

    def global_log(self) -> list[Commit]:
        """Every commit in the repository, in no particular order."""
        return list(self.records.load_state().commits.values())

    def find(self, message: str) -> list[str]:
        """Digests of every commit whose message is exactly ``message``."""
        state = self.records.load_state()
        return sorted(d for d, c in state.commits.items() if c.message == message)

    def head(self) -> Commit:
        return self.records.load_state().current_commit

    def get_commit(self, commit_id: str) -> Commit:
        return self.records.load_state().resolve(commit_id)

    def read_blob(self, blob: Blob) -> bytes:
        return self.objects.get(blob.content_digest)

    # -- Branches --

    @property
    def current_branch(self) -> str:
        return self.records.load_state().current_branch

    def branches(self) -> dict[str, str]:
        return dict(self.records.load_state().branches)

    def branch(self, name: str) -> None:
        """Create a branch pointing at the current commit."""
        state = self.records.load_state()
        if name in state.branches:
            raise BranchExists("A branch with that name already exists.")
        state.branches[name] = state.branches[state.current_branch]
        self.records.save(state)
        logger.info("Created branch %s", name)

    def remove_branch(self, name: str) -> None:
        """Delete a branch pointer; its commits stay in the repository."""
        state = self.records.load_state()
        if name not in state.branches:
            raise BranchNotFound("A branch with that name does not exist.")
        if name == state.current_branch:
            raise CannotRemoveCurrentBranch("Cannot remove the current branch.")
        del state.branches[name]
        self.records.save(state)
        logger.info("Removed branch %s", name)

    # -- Status --

    def status(self) -> StatusReport:
        state, stage = self._load()
        tracked = state.current_commit.snapshot
        working = self.workdir.names()

        modified: list[str] = []
        for name in working:
            blob = stage.added.get(name) or tracked.get(name)
            if blob is None or name in stage.removed:
                continue
            content = self.workdir.read(name)
            if content is not None and content_digest(content) != blob.content_digest:
                modified.append(f"{name} (modified)")
        for name in set(tracked) | set(stage.added):
            if name not in working and name not in stage.removed:
                modified.append(f"{name} (deleted)")

        untracked = [
            name
            for name in working
            if (name not in tracked and name not in stage.added) or name in stage.removed
        ]
        return StatusReport(
            current_branch=state.current_branch,
            branches=tuple(sorted(state.branches)),
            staged=tuple(sorted(stage.added)),
            removed=tuple(sorted(stage.removed)),
            modified=tuple(sorted(modified)),
            untracked=tuple(sorted(untracked)),
        )

    # -- Checkout / reset --

    def _untracked(self, current: Commit) -> set[str]:
        return {name for name in self.workdir.names() if name not in current}

    def _check_names(self, names: set[str]) -> None:
        for name in sorted(names):
            self.workdir.check_name(name)

    def _check_overwrite(self, current: Commit, names: set[str]) -> None:
        self._check_names(names | set(current.snapshot))
        blocked = self._untracked(current) & names
        if blocked:
            raise UntrackedFileConflict(blocked)

    def _materialize(self, current: Commit, target: Commit) -> None:
        """Make the working area match ``target``'s tracked files."""
        contents = self.objects.get_many(
            {blob.content_digest for blob in target.snapshot.values()}
        )
        for name, blob in target.snapshot.items():
            self.workdir.write(name, contents[blob.content_digest])
        for name in current.snapshot:
            if name not in target:
                self.workdir.delete(name)

    def checkout_branch(self, name: str) -> None:
        """Switch to another branch, replacing the tracked working files."""
        state, stage = self._load()
        if name not in state.branches:
            raise BranchNotFound("No such branch exists.")
        if name == state.current_branch:
            raise AlreadyOnBranch("No need to checkout the current branch.")

        current = state.current_commit
        target = state.branch_commit(name)
        self._check_overwrite(current, set(target.snapshot))
        self._materialize(current, target)

        state.current_branch = name
        stage.clear()
        self.records.save(state, stage)
        logger.info("Switched to branch %s", name)

    def reset(self, commit_id: str) -> Commit:
        """Move the current branch to any commit and restore its files."""
        state, stage = self._load()
        target = state.resolve(commit_id)
        current = state.current_commit
        self._check_overwrite(current, set(target.snapshot))
        self._materialize(current, target)

        state.branches[state.current_branch] = target.digest
        stage.clear()
        self.records.save(state, stage)
        logger.info("Reset %s to %s", state.current_branch, target.digest[:12])
        return target

    def checkout_file(self, name: str) -> None:
        """Restore one file from the current commit."""
        self._restore_file(self.records.load_state().current_commit, name)

    def checkout_commit_file(self, commit_id: str, name: str) -> None:
        """Restore one file as of the given commit (id or unique prefix)."""
        self._restore_file(self.records.load_state().resolve(commit_id), name)

    def _restore_file(self, commit: Commit, name: str) -> None:
        blob = commit.get(name)
        if blob is None:
            raise FileNotInCommit("File does not exist in that commit.")
        self.workdir.write(name, self.objects.get(blob.content_digest))

    # -- Merge --

    def merge(self, branch: str) -> MergeResult:
        """Merge ``branch`` into the current branch.

        Fast-forwards when the current commit is an ancestor of the
        branch, does nothing when the branch is already merged, and
        otherwise records a two-parent merge commit. Conflicting files
        get conflict markers and are listed in the result; the merge
        commit is made regardless.
        """
        state, stage = self._load()
        if not stage.is_empty():
            raise MergeBlocked("uncommitted_changes", "You have uncommitted changes.")
        if branch not in state.branches:
            raise MergeBlocked(
                "unknown_branch", "A branch with that name does not exist."
            )
        if branch == state.current_branch:
            raise MergeBlocked("self_merge", "Cannot merge a branch with itself.")

        ours = state.current_commit
        theirs = state.branch_commit(branch)
        split = find_split_point(state, ours.digest, theirs.digest, self.ancestry)

        if split == theirs.digest:
            logger.info("Given branch is an ancestor of the current branch.")
            return MergeResult(strategy="no_op", commit=ours.digest)

        if split == ours.digest:
            self._check_merge_overwrite(ours, set(theirs.snapshot))
            self._materialize(ours, theirs)
            state.branches[state.current_branch] = theirs.digest
            stage.clear()
            self.records.save(state, stage)
            logger.info("Current branch fast-forwarded to %s", theirs.digest[:12])
            return MergeResult(strategy="fast_forward", commit=theirs.digest)

        base = state.commits[split] if split is not None else None
        plan = reconcile(self.objects, base, ours, theirs)
        self._check_merge_overwrite(ours, set(plan.contents) | plan.deletions)

        for name, content in plan.contents.items():
            self.objects.put(content)
            self.workdir.write(name, content)
        for name in plan.deletions:
            self.workdir.delete(name)

        builder = CommitBuilder(ours, theirs)
        for name in plan.deletions:
            builder.remove_blob(name)
        for name, blob in plan.snapshot.items():
            builder.add_blob(name, blob)
        commit = builder.finish(
            f"Merged {branch} into {state.current_branch}.", self.clock()
        )

        state.advance(commit)
        stage.clear()
        self.records.save(state, stage)
        if plan.conflicts:
            logger.warning(
                "Encountered a merge conflict in: %s", ", ".join(plan.conflicts)
            )
        logger.info("Merged %s into %s as %s", branch, state.current_branch, commit.digest[:12])
        return MergeResult(
            strategy="three_way", commit=commit.digest, conflicts=tuple(plan.conflicts)
        )

    def _check_merge_overwrite(self, current: Commit, names: set[str]) -> None:
        self._check_names(names | set(current.snapshot))
        blocked = self._untracked(current) & names
        if blocked:
            raise MergeBlocked(
                "untracked_files",
                "There is an untracked file in the way; delete it, "
                f"or add and commit it first: {', '.join(sorted(blocked))}",
            )

    # -- Remotes --

    def remotes(self) -> dict[str, str]:
        return dict(self.records.load_state().remotes)

    def add_remote(self, name: str, path: str) -> None:
        state = self.records.load_state()
        if name in state.remotes:
            raise RemoteExists("A remote with that name already exists.")
        state.remotes[name] = path
        self.records.save(state)

    def remove_remote(self, name: str) -> None:
        state = self.records.load_state()
        if name not in state.remotes:
            raise RemoteNotFound("A remote with that name does not exist.")
        del state.remotes[name]
        self.records.save(state)

    def _open_remote(self, state: RepoState, name: str) -> RecordStore:
        if name not in state.remotes:
            raise RemoteNotFound("A remote with that name does not exist.")
        remote = RecordStore(self.remote_opener(state.remotes[name]))
        if not remote.is_initialized():
            remote.store.close()
            raise RemoteNotFound("Remote directory not found.")
        return remote

    def fetch(self, remote: str, branch: str) -> str:
        """Copy a remote branch's history into ``<remote>/<branch>``.

        Returns:
            The name of the local tracking branch.
        """
        state = self.records.load_state()
        tracking = f"{remote}/{branch}"
        if tracking == state.current_branch:
            raise FetchIntoCurrentBranch(
                f"Cannot fetch into the checked-out branch {tracking}."
            )
        remote_records = self._open_remote(state, remote)
        try:
            remote_state = remote_records.load_state()
            if branch not in remote_state.branches:
                raise BranchNotFound("That remote does not have that branch.")

            tip = remote_state.branches[branch]
            copied = copy_ancestry(
                remote_state, remote_records.objects, state, self.objects, tip
            )
        finally:
            remote_records.store.close()
        state.branches[tracking] = tip
        self.records.save(state)
        logger.info("Fetched %d commits into %s", len(copied), tracking)
        return tracking

    def push(self, remote: str, branch: str) -> None:
        """Fast-forward a remote branch to the current commit."""
        state = self.records.load_state()
        remote_records = self._open_remote(state, remote)
        try:
            remote_state = remote_records.load_state()
            head = state.current_commit

            remote_tip = remote_state.branches.get(branch)
            if remote_tip is not None and remote_tip not in state.ancestors(head.digest):
                raise NotAncestor("Please pull down remote changes before pushing.")

            copied = copy_ancestry(
                state, self.objects, remote_state, remote_records.objects, head.digest
            )
            remote_state.branches[branch] = head.digest
            remote_records.save(remote_state)
        finally:
            remote_records.store.close()
        logger.info("Pushed %d commits to %s/%s", len(copied), remote, branch)

    def pull(self, remote: str, branch: str) -> MergeResult:
        """Fetch a remote branch and merge it into the current branch."""
        return self.merge(self.fetch(remote, branch))
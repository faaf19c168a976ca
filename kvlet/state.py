"""Repository state and stage records, plus their persistence."""

import logging
import pickle
from dataclasses import dataclass, field

from .errors import CorruptRecord, NoSuchCommit, NotInitialized
from .kv.base import KVStore
from .object_store import ObjectStore
from .objects import PICKLE_PROTOCOL, Blob, Commit

logger = logging.getLogger(__name__)

STATE_KEY = "__state__"
STAGE_KEY = "__stage__"


@dataclass
class RepoState:
    """Commit index, branch pointers, active branch and remotes."""

    commits: dict[str, Commit] = field(default_factory=dict)
    branches: dict[str, str] = field(default_factory=dict)
    current_branch: str = "master"
    remotes: dict[str, str] = field(default_factory=dict)
    known_ids: set[str] = field(default_factory=set)

    @property
    def current_commit(self) -> Commit:
        return self.commits[self.branches[self.current_branch]]

    def branch_commit(self, name: str) -> Commit:
        return self.commits[self.branches[name]]

    def register(self, commit: Commit) -> None:
        self.commits[commit.digest] = commit

    def advance(self, commit: Commit) -> None:
        """Register ``commit`` and point the current branch at it."""
        self.register(commit)
        self.branches[self.current_branch] = commit.digest

    def resolve(self, commit_id: str) -> Commit:
        """Look up a commit by full digest or unique prefix."""
        if commit_id in self.commits:
            return self.commits[commit_id]
        matches = [d for d in self.commits if commit_id and d.startswith(commit_id)]
        if len(matches) != 1:
            raise NoSuchCommit("No commit with that id exists.")
        return self.commits[matches[0]]

    def ancestors(self, digest: str) -> set[str]:
        """Every commit reachable from ``digest`` over all parents, inclusive."""
        seen: set[str] = set()
        pending = [digest]
        while pending:
            current = pending.pop()
            if current in seen:
                continue
            seen.add(current)
            pending.extend(self.commits[current].parents)
        return seen


@dataclass
class Stage:
    """Pending additions and removals; a name is never in both."""

    added: dict[str, Blob] = field(default_factory=dict)
    removed: set[str] = field(default_factory=set)

    def stage_added(self, name: str, blob: Blob) -> None:
        self.removed.discard(name)
        self.added[name] = blob

    def stage_removed(self, name: str) -> None:
        self.added.pop(name, None)
        self.removed.add(name)

    def unstage(self, name: str) -> None:
        self.added.pop(name, None)
        self.removed.discard(name)

    def is_empty(self) -> bool:
        return not self.added and not self.removed

    def clear(self) -> None:
        self.added.clear()
        self.removed.clear()


class RecordStore:
    """Loads and saves the state and stage records of one KV store."""

    def __init__(self, store: KVStore) -> None:
        self.store = store
        self.objects = ObjectStore(store)

    def is_initialized(self) -> bool:
        return STATE_KEY in self.store

    def load_state(self) -> RepoState:
        raw = self.store.get(STATE_KEY)
        if raw is None:
            raise NotInitialized("Not in an initialized kvlet repository.")
        record = _decode_record(raw, "state")
        try:
            digests = record["commits"]
            state = RepoState(
                branches=dict(record["branches"]),
                current_branch=record["current_branch"],
                remotes=dict(record["remotes"]),
                known_ids=set(record["known_ids"]),
            )
        except (KeyError, TypeError) as e:
            raise CorruptRecord("Malformed state record") from e
        for digest, data in self.objects.get_many(digests).items():
            state.register(Commit.decode(digest, data))
        if state.current_branch not in state.branches:
            raise CorruptRecord(f"Current branch {state.current_branch!r} has no pointer")
        return state

    def load_stage(self) -> Stage:
        raw = self.store.get(STAGE_KEY)
        if raw is None:
            return Stage()
        record = _decode_record(raw, "stage")
        try:
            added = {
                name: Blob(digest, source_path, revision)
                for name, (digest, source_path, revision) in record["added"].items()
            }
            return Stage(added=added, removed=set(record["removed"]))
        except (KeyError, TypeError, ValueError) as e:
            raise CorruptRecord("Malformed stage record") from e

    def save(self, state: RepoState, stage: Stage | None = None) -> None:
        """Persist the state (and stage) records in one batch.

        Commit objects are written before the records that name them.
        """
        for digest, commit in state.commits.items():
            if digest not in self.objects:
                self.objects.put_commit(commit)
        records = {STATE_KEY: _encode_state(state)}
        if stage is not None:
            records[STAGE_KEY] = _encode_stage(stage)
        self.store.set_many(**records)
        logger.debug(
            "Saved state: %d commits, branch %s", len(state.commits), state.current_branch
        )

    def save_stage(self, stage: Stage) -> None:
        self.store.set(STAGE_KEY, _encode_stage(stage))


def _encode_state(state: RepoState) -> bytes:
    record = {
        "commits": sorted(state.commits),
        "branches": dict(state.branches),
        "current_branch": state.current_branch,
        "remotes": dict(state.remotes),
        "known_ids": sorted(state.known_ids),
    }
    return pickle.dumps(record, protocol=PICKLE_PROTOCOL)


def _encode_stage(stage: Stage) -> bytes:
    record = {
        "added": {
            name: (blob.content_digest, blob.source_path, blob.revision)
            for name, blob in stage.added.items()
        },
        "removed": sorted(stage.removed),
    }
    return pickle.dumps(record, protocol=PICKLE_PROTOCOL)


def _decode_record(raw: bytes, kind: str) -> dict:
    try:
        record = pickle.loads(raw)
    except Exception as e:
        raise CorruptRecord(f"Malformed {kind} record") from e
    if not isinstance(record, dict):
        raise CorruptRecord(f"Malformed {kind} record")
    return record

"""Split-point discovery and three-way reconciliation of snapshots."""

from dataclasses import dataclass, field
from typing import Literal

from .object_store import ObjectStore
from .objects import Blob, Commit
from .state import RepoState

Ancestry = Literal["full", "first_parent"]

CONFLICT_START = b"<<<<<<< HEAD\n"
CONFLICT_SEPARATOR = b"=======\n"
CONFLICT_END = b">>>>>>>\n"


@dataclass(frozen=True)
class MergeResult:
    """Result of a merge operation."""

    strategy: str  # "no_op", "fast_forward", "three_way"
    commit: str
    conflicts: tuple[str, ...] = ()

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)


@dataclass
class MergePlan:
    """Outcome of reconciling two snapshots against their split point.

    Nothing is written while building a plan; ``contents`` holds the
    bytes each changed working file must end up with.
    """

    snapshot: dict[str, Blob]
    contents: dict[str, bytes] = field(default_factory=dict)
    deletions: set[str] = field(default_factory=set)
    conflicts: list[str] = field(default_factory=list)


def find_split_point(
    state: RepoState, ours: str, theirs: str, ancestry: Ancestry = "full"
) -> str | None:
    """Find the common ancestor to merge ``theirs`` into ``ours`` against.

    ``"full"`` intersects the complete ancestor sets of both commits,
    keeps the common ancestors that are not themselves ancestors of
    another common ancestor, and picks the most recent of those.
    ``"first_parent"`` follows only first parents: the ancestors of
    ``ours`` are collected and ``theirs`` is walked back until one of
    them is hit. It misses split points reachable only through a
    second parent.
    """
    if ours == theirs:
        return ours
    if ancestry == "first_parent":
        return _first_parent_split(state, ours, theirs)
    if ancestry != "full":
        raise ValueError(f"Unknown ancestry: {ancestry!r}")

    common = state.ancestors(ours) & state.ancestors(theirs)
    if not common:
        return None

    dominated: set[str] = set()
    pending = [p for c in common for p in state.commits[c].parents]
    while pending:
        current = pending.pop()
        if current in dominated:
            continue
        dominated.add(current)
        pending.extend(state.commits[current].parents)

    best = common - dominated
    return max(best, key=lambda d: (state.commits[d].timestamp, d))


def _first_parent_split(state: RepoState, ours: str, theirs: str) -> str | None:
    ancestors: set[str] = set()
    current: str | None = ours
    while current is not None:
        ancestors.add(current)
        current = state.commits[current].parent

    current = theirs
    while current is not None:
        if current in ancestors:
            return current
        current = state.commits[current].parent
    return None


def conflict_marker(ours: bytes | None, theirs: bytes | None) -> bytes:
    """Whole-file conflict text; a deleted side contributes nothing."""
    return (
        CONFLICT_START
        + (ours or b"")
        + CONFLICT_SEPARATOR
        + (theirs or b"")
        + CONFLICT_END
    )


def _same(a: Blob | None, b: Blob | None) -> bool:
    if a is None or b is None:
        return a is None and b is None
    return a.content_digest == b.content_digest


def reconcile(
    objects: ObjectStore, split: Commit | None, ours: Commit, theirs: Commit
) -> MergePlan:
    """Three-way merge of ``theirs`` into ``ours`` file by file.

    Without a split point both sides are treated as descending from an
    empty snapshot.
    """
    base_snapshot = split.snapshot if split is not None else {}
    plan = MergePlan(snapshot=dict(ours.snapshot))
    names = set(base_snapshot) | set(ours.snapshot) | set(theirs.snapshot)

    for name in sorted(names):
        base = base_snapshot.get(name)
        our_blob = ours.get(name)
        their_blob = theirs.get(name)

        if _same(our_blob, their_blob) or _same(base, their_blob):
            continue

        if _same(base, our_blob):
            if their_blob is None:
                del plan.snapshot[name]
                plan.deletions.add(name)
            else:
                plan.snapshot[name] = their_blob
                plan.contents[name] = objects.get(their_blob.content_digest)
            continue

        our_content = objects.get(our_blob.content_digest) if our_blob else None
        their_content = objects.get(their_blob.content_digest) if their_blob else None
        marker = conflict_marker(our_content, their_content)
        revision = max(
            [1] + [b.revision + 1 for b in (our_blob, their_blob) if b is not None]
        )
        plan.snapshot[name] = Blob.from_content(name, marker, revision)
        plan.contents[name] = marker
        plan.conflicts.append(name)

    return plan

"""Blobs and commits: the immutable objects of a repository."""

import hashlib
import pickle
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from .errors import CorruptRecord

PICKLE_PROTOCOL = 4
"""Pinned so commit encodings, and therefore digests, are stable."""


def content_digest(data: bytes) -> str:
    """Return the hex SHA-256 digest of ``data``."""
    return hashlib.sha256(data).hexdigest()


@dataclass(frozen=True)
class Blob:
    """One file's content at one revision.

    Two blobs holding identical bytes share ``content_digest`` no
    matter which file they came from. ``revision`` only counts edits
    of ``source_path`` and means nothing across files.
    """

    content_digest: str
    source_path: str
    revision: int = 1

    @classmethod
    def from_content(cls, source_path: str, content: bytes, revision: int = 1) -> "Blob":
        return cls(content_digest(content), source_path, revision)


@dataclass(frozen=True)
class Commit:
    """A finalized, content-addressed snapshot of every tracked file.

    ``digest`` is the SHA-256 of ``encode()``, so a commit is stored
    in the object store under its own identity. Instances are only
    produced by ``CommitBuilder.finish()`` or ``Commit.decode()``.
    """

    digest: str
    parent: str | None
    second_parent: str | None
    message: str
    timestamp: float
    snapshot: Mapping[str, Blob]

    def __hash__(self) -> int:
        return hash(self.digest)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Commit):
            return NotImplemented
        return self.digest == other.digest

    @property
    def parents(self) -> tuple[str, ...]:
        return tuple(p for p in (self.parent, self.second_parent) if p is not None)

    @property
    def is_merge(self) -> bool:
        return self.second_parent is not None

    def get(self, name: str) -> Blob | None:
        return self.snapshot.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self.snapshot

    def encode(self) -> bytes:
        return _encode(
            self.parent, self.second_parent, self.message, self.timestamp, self.snapshot
        )

    def verify(self) -> None:
        """Raise ``CorruptRecord`` unless ``digest`` matches the content."""
        actual = content_digest(self.encode())
        if actual != self.digest:
            raise CorruptRecord(
                f"Commit {self.digest} does not match its content ({actual})"
            )

    @classmethod
    def decode(cls, digest: str, data: bytes) -> "Commit":
        """Rebuild a commit from its stored bytes and verify it."""
        try:
            parent, second_parent, message, timestamp, entries = pickle.loads(data)
            snapshot = {
                name: Blob(blob_digest, source_path, revision)
                for name, blob_digest, source_path, revision in entries
            }
        except Exception as e:
            raise CorruptRecord(f"Malformed commit object {digest}") from e
        commit = cls(
            digest=digest,
            parent=parent,
            second_parent=second_parent,
            message=message,
            timestamp=timestamp,
            snapshot=MappingProxyType(snapshot),
        )
        commit.verify()
        return commit


def _encode(
    parent: str | None,
    second_parent: str | None,
    message: str,
    timestamp: float,
    snapshot: Mapping[str, Blob],
) -> bytes:
    # Entries are sorted by name so equal snapshots encode identically.
    entries = tuple(
        (name, blob.content_digest, blob.source_path, blob.revision)
        for name, blob in sorted(snapshot.items())
    )
    payload = (parent, second_parent, message, float(timestamp), entries)
    return pickle.dumps(payload, protocol=PICKLE_PROTOCOL)


class CommitBuilder:
    """Mutable commit under construction.

    Starts from a parent snapshot, takes additions and removals, and
    turns into an immutable ``Commit`` on ``finish()``. A builder can
    only be finished once and rejects changes afterwards.
    """

    def __init__(
        self,
        parent: Commit | None = None,
        second_parent: Commit | None = None,
    ) -> None:
        self.parent = parent.digest if parent is not None else None
        self.second_parent = second_parent.digest if second_parent is not None else None
        self.snapshot: dict[str, Blob] = dict(parent.snapshot) if parent is not None else {}
        self._finished = False

    def _check_open(self) -> None:
        if self._finished:
            raise RuntimeError("Commit is already finalized")

    def add_blob(self, name: str, blob: Blob) -> None:
        self._check_open()
        self.snapshot[name] = blob

    def remove_blob(self, name: str) -> None:
        self._check_open()
        self.snapshot.pop(name, None)

    def finish(self, message: str, timestamp: float | None = None) -> Commit:
        """Assign timestamp and digest, returning the immutable commit."""
        self._check_open()
        if timestamp is None:
            timestamp = time.time()
        timestamp = float(timestamp)
        data = _encode(self.parent, self.second_parent, message, timestamp, self.snapshot)
        self._finished = True
        return Commit(
            digest=content_digest(data),
            parent=self.parent,
            second_parent=self.second_parent,
            message=message,
            timestamp=timestamp,
            snapshot=MappingProxyType(dict(self.snapshot)),
        )


def format_commit(commit: Commit) -> str:
    """Render a commit as a log entry."""
    lines = ["===", f"commit {commit.digest}"]
    if commit.second_parent is not None:
        lines.append(f"Merge: {commit.parent[:7]} {commit.second_parent[:7]}")
    date = time.strftime("%a %b %d %H:%M:%S %Y %z", time.localtime(commit.timestamp))
    lines.append(f"Date: {date}")
    lines.append(commit.message)
    lines.append("")
    return "\n".join(lines)

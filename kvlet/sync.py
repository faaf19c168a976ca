"""Copying commit ancestry between two repositories' stores."""

import logging

from .object_store import ObjectStore
from .state import RepoState

logger = logging.getLogger(__name__)


def copy_ancestry(
    source_state: RepoState,
    source_objects: ObjectStore,
    dest_state: RepoState,
    dest_objects: ObjectStore,
    tip: str,
) -> list[str]:
    """Copy ``tip`` and its missing ancestors into the destination.

    Walks all parents from ``tip`` and stops descending at commits the
    destination already knows. Blob bytes are written before the
    commit that references them; the caller saves ``dest_state``.

    Returns:
        Digests of the copied commits, newest first.
    """
    copied: list[str] = []
    seen: set[str] = set()
    pending = [tip]
    while pending:
        digest = pending.pop(0)
        if digest in seen or digest in dest_state.commits or digest in dest_state.known_ids:
            continue
        seen.add(digest)
        commit = source_state.commits[digest]

        for blob in commit.snapshot.values():
            if blob.content_digest not in dest_objects:
                dest_objects.put(source_objects.get(blob.content_digest))
        dest_objects.put_commit(commit)

        dest_state.register(commit)
        dest_state.known_ids.add(digest)
        copied.append(digest)
        pending.extend(commit.parents)

    logger.debug("Copied %d commits ending at %s", len(copied), tip[:12])
    return copied

"""Repository factory function."""

from pathlib import Path
from typing import Callable, Literal

from .kv.base import KVStore
from .kv.memory import Memory
from .merge import Ancestry
from .repository import DEFAULT_BRANCH, Repository, open_disk_store
from .workdir import DirectoryWorkingArea, MemoryWorkingArea, WorkingArea


def repository(
    kind: Literal["memory", "disk"] = "memory",
    *,
    path: str | None = None,
    workdir: str | Path | WorkingArea | None = None,
    default_branch: str = DEFAULT_BRANCH,
    ancestry: Ancestry = "full",
    remote_opener: Callable[[str], KVStore] = open_disk_store,
) -> Repository:
    """Create a Repository with sensible defaults.

    The repository is not initialized; call ``init()`` on a fresh store.

    Args:
        kind: ``"memory"`` (default) or ``"disk"``.
        path: Required when ``kind="disk"``. Directory path for
            the disk backend.
        workdir: Directory path or ``WorkingArea`` holding the
            working files (default: an in-memory working area).
        default_branch: Branch created by ``init()`` (default ``"master"``).
        ancestry: ``"full"`` (default) or ``"first_parent"`` split-point
            search for merges.
        remote_opener: Resolves a remote path to its store (default:
            a disk store in that directory).

    Returns:
        A ``Repository`` instance.
    """
    if kind == "memory":
        backend: KVStore = Memory()
    elif kind == "disk":
        if path is None:
            raise ValueError("path is required when kind='disk'")
        from .kv.disk import Disk

        backend = Disk(path)
    else:
        raise ValueError(f"Unknown kind: {kind!r}")

    if workdir is None:
        area: WorkingArea = MemoryWorkingArea()
    elif isinstance(workdir, WorkingArea):
        area = workdir
    else:
        area = DirectoryWorkingArea(workdir)

    return Repository(
        backend,
        area,
        default_branch=default_branch,
        ancestry=ancestry,
        remote_opener=remote_opener,
    )

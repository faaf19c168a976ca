"""kvlet: content-addressed version control over a KV store."""

from .errors import (
    AlreadyInitialized,
    AlreadyOnBranch,
    BranchExists,
    BranchNotFound,
    CannotRemoveCurrentBranch,
    CorruptRecord,
    EmptyMessage,
    FetchIntoCurrentBranch,
    FileNotFound,
    FileNotInCommit,
    InvalidFileName,
    KvletError,
    MergeBlocked,
    NoSuchCommit,
    NotAncestor,
    NothingToCommit,
    NotInitialized,
    ObjectNotFound,
    PreconditionFailure,
    RemoteExists,
    RemoteNotFound,
    StorageIntegrityFailure,
    UntrackedFileConflict,
)
from .kv.base import KVStore
from .merge import MergeResult
from .object_store import ObjectStore
from .objects import Blob, Commit, CommitBuilder, content_digest, format_commit
from .repository import Repository, StatusReport
from .state import RepoState, Stage
from .store import repository
from .workdir import DirectoryWorkingArea, MemoryWorkingArea, WorkingArea

__all__ = [
    "AlreadyInitialized",
    "AlreadyOnBranch",
    "Blob",
    "BranchExists",
    "BranchNotFound",
    "CannotRemoveCurrentBranch",
    "Commit",
    "CommitBuilder",
    "CorruptRecord",
    "DirectoryWorkingArea",
    "EmptyMessage",
    "FetchIntoCurrentBranch",
    "FileNotFound",
    "FileNotInCommit",
    "InvalidFileName",
    "KVStore",
    "KvletError",
    "MemoryWorkingArea",
    "MergeBlocked",
    "MergeResult",
    "NoSuchCommit",
    "NotAncestor",
    "NotInitialized",
    "NothingToCommit",
    "ObjectNotFound",
    "ObjectStore",
    "PreconditionFailure",
    "RemoteExists",
    "RemoteNotFound",
    "RepoState",
    "Repository",
    "Stage",
    "StatusReport",
    "StorageIntegrityFailure",
    "UntrackedFileConflict",
    "WorkingArea",
    "content_digest",
    "format_commit",
    "repository",
]

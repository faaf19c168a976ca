"""kvlet error types.

Two families: ``PreconditionFailure`` is raised before anything is
written, so the repository is unchanged and the caller can fix its
input and retry. ``StorageIntegrityFailure`` means the persisted data
itself is missing or malformed and is never repaired automatically.
"""


class KvletError(Exception):
    """Base class for all kvlet errors."""


class PreconditionFailure(KvletError):
    """An operation was rejected before mutating any state."""


class NotInitialized(PreconditionFailure):
    """The store holds no repository."""


class AlreadyInitialized(PreconditionFailure):
    """``init`` was called on a store that already holds a repository."""


class EmptyMessage(PreconditionFailure):
    """A commit was attempted without a message."""


class NothingToCommit(PreconditionFailure):
    """A commit was attempted with an empty stage."""


class FileNotFound(PreconditionFailure):
    """The named file does not exist in the working area."""


class InvalidFileName(PreconditionFailure, ValueError):
    """The working area cannot hold a file under that name."""


class BranchNotFound(PreconditionFailure):
    """The named branch does not exist."""


class BranchExists(PreconditionFailure):
    """A branch with that name already exists."""


class AlreadyOnBranch(PreconditionFailure):
    """Checkout of the branch that is already current."""


class CannotRemoveCurrentBranch(PreconditionFailure):
    """The current branch cannot be removed."""


class NoSuchCommit(PreconditionFailure):
    """No commit matches the given id or id prefix."""


class FileNotInCommit(PreconditionFailure):
    """The file is not tracked by the requested commit."""


class UntrackedFileConflict(PreconditionFailure):
    """An untracked working file would be overwritten.

    Attributes:
        names: The untracked files in the way.
    """

    def __init__(self, names: set[str]) -> None:
        self.names = names
        names_str = ", ".join(sorted(names))
        super().__init__(
            "There is an untracked file in the way; delete it, "
            f"or add and commit it first: {names_str}"
        )


class MergeBlocked(PreconditionFailure):
    """A merge cannot start.

    Attributes:
        cause: Short machine-readable reason (``"uncommitted_changes"``,
            ``"unknown_branch"``, ``"self_merge"``, ``"untracked_files"``).
    """

    def __init__(self, cause: str, message: str) -> None:
        self.cause = cause
        super().__init__(message)


class RemoteNotFound(PreconditionFailure):
    """The remote is not registered or its store holds no repository."""


class RemoteExists(PreconditionFailure):
    """A remote with that name already exists."""


class NotAncestor(PreconditionFailure):
    """A push would not fast-forward the remote branch."""


class FetchIntoCurrentBranch(PreconditionFailure):
    """A fetch would move the checked-out branch under the working area."""


class StorageIntegrityFailure(KvletError):
    """Persisted data is missing or malformed."""


class ObjectNotFound(StorageIntegrityFailure):
    """No object is stored under a digest.

    Attributes:
        digest: The digest that was looked up.
    """

    def __init__(self, digest: str) -> None:
        self.digest = digest
        super().__init__(f"Object not found: {digest}")


class CorruptRecord(StorageIntegrityFailure):
    """A persisted record or object could not be decoded or verified."""

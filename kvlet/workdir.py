"""Working area: the files a repository snapshots and restores."""

import os
from abc import ABC, abstractmethod
from pathlib import Path

from .errors import InvalidFileName


class WorkingArea(ABC):
    """Flat set of named files holding bytes."""

    @abstractmethod
    def names(self) -> list[str]:
        """Sorted names of the files currently present."""

    @abstractmethod
    def read(self, name: str) -> bytes | None:
        """File content, or None if the file does not exist."""

    @abstractmethod
    def write(self, name: str, content: bytes) -> None:
        """Create or overwrite a file."""

    @abstractmethod
    def delete(self, name: str) -> None:
        """Delete a file if present."""

    def check_name(self, name: str) -> None:
        """Raise ``InvalidFileName`` if ``name`` cannot be written here."""
        if not name:
            raise InvalidFileName(f"Invalid working file name: {name!r}")

    def __contains__(self, name: str) -> bool:
        return self.read(name) is not None


class DirectoryWorkingArea(WorkingArea):
    """Plain files directly inside a directory.

    Subdirectories and dot-files are ignored, so a store kept in a
    hidden directory under ``root`` never shows up as a working file.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def names(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(
            entry.name
            for entry in os.scandir(self.root)
            if entry.is_file() and not entry.name.startswith(".")
        )

    def _path(self, name: str) -> Path:
        if not name or name.startswith(".") or os.sep in name or "/" in name:
            raise InvalidFileName(f"Invalid working file name: {name!r}")
        return self.root / name

    def check_name(self, name: str) -> None:
        self._path(name)

    def read(self, name: str) -> bytes | None:
        path = self._path(name)
        if not path.is_file():
            return None
        return path.read_bytes()

    def write(self, name: str, content: bytes) -> None:
        self._path(name).write_bytes(content)

    def delete(self, name: str) -> None:
        self._path(name).unlink(missing_ok=True)


class MemoryWorkingArea(WorkingArea):
    """A dict-backed working area."""

    def __init__(self, files: dict[str, bytes] | None = None) -> None:
        self.files: dict[str, bytes] = dict(files or {})

    def names(self) -> list[str]:
        return sorted(self.files)

    def read(self, name: str) -> bytes | None:
        return self.files.get(name)

    def write(self, name: str, content: bytes) -> None:
        if not isinstance(content, bytes):
            raise TypeError(f"Expected bytes, got {type(content).__name__}")
        self.files[name] = content

    def delete(self, name: str) -> None:
        self.files.pop(name, None)

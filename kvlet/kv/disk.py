"""Disk-backed KV store using diskcache."""

from typing import Iterable, Mapping, cast

from .base import KVStore


class Disk(KVStore):
    """KV store backed by diskcache (SQLite + mmap).

    The size limit is disabled: objects are write-once and must never
    be culled by the cache's eviction policy.
    """

    def __init__(self, directory: str) -> None:
        from diskcache import Cache as DiskCache

        self.directory = directory
        self.store = DiskCache(directory, size_limit=0, eviction_policy="none")

    def get(self, key: str) -> bytes | None:
        return cast(bytes | None, self.store.get(key))

    def set(self, key: str, value: bytes) -> None:
        if not isinstance(value, bytes):
            raise TypeError(f"Expected bytes, got {type(value).__name__}")
        self.store[key] = value

    def get_many(self, *args: str) -> Mapping[str, bytes]:
        return {k: v for k in args if (v := self.get(k)) is not None}

    def set_many(self, **kwargs: bytes) -> None:
        for key, value in kwargs.items():
            if not isinstance(value, bytes):
                raise TypeError(f"Expected bytes for {key}, got {type(value).__name__}")
        with self.store.transact():
            for key, value in kwargs.items():
                self.store[key] = value

    def keys(self) -> Iterable[str]:
        for key in self.store.iterkeys():
            yield str(key)

    def __contains__(self, key: str) -> bool:
        return key in self.store

    def clear(self) -> None:
        self.store.clear()

    def close(self) -> None:
        self.store.close()

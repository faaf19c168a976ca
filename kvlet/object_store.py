"""Write-once, content-addressed object storage over a KV store."""

import logging
from typing import Iterable

from .errors import ObjectNotFound
from .kv.base import KVStore
from .objects import Commit, content_digest

logger = logging.getLogger(__name__)

OBJECT_KEY = "__object__%s"


class ObjectStore:
    """Blob bytes and encoded commits keyed by their digest.

    There is no update or delete: putting bytes that are already
    present is a no-op returning the same digest.
    """

    def __init__(self, store: KVStore) -> None:
        self.store = store

    def put(self, data: bytes) -> str:
        digest = content_digest(data)
        key = OBJECT_KEY % digest
        if key not in self.store:
            self.store.set(key, data)
            logger.debug("Stored object %s (%d bytes)", digest[:12], len(data))
        return digest

    def get(self, digest: str) -> bytes:
        data = self.store.get(OBJECT_KEY % digest)
        if data is None:
            raise ObjectNotFound(digest)
        return data

    def get_many(self, digests: Iterable[str]) -> dict[str, bytes]:
        """Fetch several objects, raising on the first missing one."""
        digests = list(digests)
        found = self.store.get_many(*(OBJECT_KEY % d for d in digests))
        result: dict[str, bytes] = {}
        for digest in digests:
            data = found.get(OBJECT_KEY % digest)
            if data is None:
                raise ObjectNotFound(digest)
            result[digest] = data
        return result

    def __contains__(self, digest: str) -> bool:
        return (OBJECT_KEY % digest) in self.store

    def put_commit(self, commit: Commit) -> str:
        return self.put(commit.encode())

    def get_commit(self, digest: str) -> Commit:
        return Commit.decode(digest, self.get(digest))
